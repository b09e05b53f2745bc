"""SQLAlchemy ORM models for profilelink.

All models are exported from this module for convenient imports:
    from profilelink.models import PendingVerificationRecord, ...

- base.py: Base, TimestampMixin
- verification.py: PendingVerificationRecord, VerifiedLinkRecord,
  ServerPolicyRecord, AuditLogRecord
"""

from profilelink.models.base import Base, TimestampMixin
from profilelink.models.verification import (
    AuditLogRecord,
    PendingVerificationRecord,
    ServerPolicyRecord,
    VerifiedLinkRecord,
)

__all__ = [
    "AuditLogRecord",
    "Base",
    "PendingVerificationRecord",
    "ServerPolicyRecord",
    "TimestampMixin",
    "VerifiedLinkRecord",
]
