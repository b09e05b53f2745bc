"""Verification ORM models.

Four tables back the verification engine:
- pending_verifications: one live attempt per (subject_id, server_id)
- verified_links: one link per (subject_id, server_id)
- server_policies: one policy row per server
- verification_audit_log: append-only, never updated or deleted

Chat-platform and external-platform identifiers are opaque strings
(Discord snowflakes and Roblox user ids exceed 32-bit ints and are
compared, never computed on).
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from profilelink.models.base import Base, TimestampMixin

_DEFAULT_UUID = text("gen_random_uuid()")
_SNOWFLAKE = String(32)


class PendingVerificationRecord(Base):
    """Outstanding verification attempt.

    Rows are never updated: a reissue deletes the old row and inserts a new
    one. The unique constraint makes a concurrent double insert fail loudly
    instead of leaving two live attempts.

    Attributes:
        id: UUID primary key.
        subject_id: Chat-platform user id.
        server_id: Chat-platform server id.
        code: Issued verification code (VERIFY-XXXXXX).
        username_hint: External username supplied at issuance, if any.
        created_at: Issuance time.
        expires_at: created_at + 30 minutes.
    """

    __tablename__ = "pending_verifications"
    __table_args__ = (
        UniqueConstraint(
            "subject_id", "server_id", name="uq_pending_verifications_subject_server"
        ),
        Index("ix_pending_verifications_code", "code"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    subject_id: Mapped[str] = mapped_column(_SNOWFLAKE, nullable=False)
    server_id: Mapped[str] = mapped_column(_SNOWFLAKE, nullable=False)
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    username_hint: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )


class VerifiedLinkRecord(Base):
    """Proven link between a chat-platform member and an external account.

    Attributes:
        id: UUID primary key.
        subject_id: Chat-platform user id.
        server_id: Chat-platform server id.
        subject_display_name: Chat-platform name at verification time.
        external_id: External platform account id.
        external_username: External platform username.
        code: The code that proved ownership.
        verified_at: When the link was created.
    """

    __tablename__ = "verified_links"
    __table_args__ = (
        UniqueConstraint(
            "subject_id", "server_id", name="uq_verified_links_subject_server"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    subject_id: Mapped[str] = mapped_column(_SNOWFLAKE, nullable=False)
    server_id: Mapped[str] = mapped_column(_SNOWFLAKE, nullable=False)
    subject_display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    external_id: Mapped[str] = mapped_column(String(32), nullable=False)
    external_username: Mapped[str] = mapped_column(String(64), nullable=False)
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    verified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class ServerPolicyRecord(Base, TimestampMixin):
    """Per-server verification policy.

    Column defaults mirror ServerPolicy defaults so a row created from a
    partial update reads back the same as an absent row would resolve.

    Attributes:
        server_id: Chat-platform server id (primary key).
        verification_role_ids: Roles granted on successful verification.
        unverified_role_id: Role removed on successful verification.
        verification_channel_id: Channel where members verify.
        log_channel_id: Channel that receives audit mirrors.
        auto_kick_unverified: Kick unverified members (stored only).
        dm_on_verification: DM the member after verification.
        allow_reverification: Allow a linked member to start over.
    """

    __tablename__ = "server_policies"

    server_id: Mapped[str] = mapped_column(_SNOWFLAKE, primary_key=True)
    verification_role_ids: Mapped[list[str]] = mapped_column(
        ARRAY(String(32)),
        nullable=False,
        server_default=text("'{}'"),
    )
    unverified_role_id: Mapped[str | None] = mapped_column(_SNOWFLAKE, nullable=True)
    verification_channel_id: Mapped[str | None] = mapped_column(
        _SNOWFLAKE, nullable=True
    )
    log_channel_id: Mapped[str | None] = mapped_column(_SNOWFLAKE, nullable=True)
    auto_kick_unverified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    dm_on_verification: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true")
    )
    allow_reverification: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true")
    )


class AuditLogRecord(Base):
    """Append-only record of a verification attempt or state change.

    Attributes:
        id: UUID primary key.
        subject_id: Chat-platform user id.
        display_name: Chat-platform name at the time of the event.
        external_username: External username involved, if known.
        server_id: Chat-platform server id.
        status: pending, success, or failed.
        message: Human-readable description.
        created_at: Event timestamp.
    """

    __tablename__ = "verification_audit_log"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'success', 'failed')",
            name="ck_verification_audit_log_status",
        ),
        Index("ix_verification_audit_log_server_created", "server_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    subject_id: Mapped[str] = mapped_column(_SNOWFLAKE, nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    external_username: Mapped[str | None] = mapped_column(String(64), nullable=True)
    server_id: Mapped[str] = mapped_column(_SNOWFLAKE, nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False)
    message: Mapped[str] = mapped_column(Text(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        # now() is fixed per transaction; entries written together must still order
        server_default=text("clock_timestamp()"),
        nullable=False,
    )
