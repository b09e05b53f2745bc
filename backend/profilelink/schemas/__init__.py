"""Pydantic request/response schemas for API endpoints."""

from profilelink.schemas.verification import (
    AddRoleRequest,
    AuditEntryResponse,
    CheckVerificationResponse,
    CompletionResponse,
    ExternalAccountResponse,
    MemberActionRequest,
    PendingVerificationResponse,
    PolicyResponse,
    PolicyUpdate,
    SettingsUpdate,
    SetupRequest,
    StartVerificationRequest,
    StartVerificationResponse,
    VerificationStatusResponse,
    VerifiedLinkResponse,
)

__all__ = [
    "AddRoleRequest",
    "AuditEntryResponse",
    "CheckVerificationResponse",
    "CompletionResponse",
    "ExternalAccountResponse",
    "MemberActionRequest",
    "PendingVerificationResponse",
    "PolicyResponse",
    "PolicyUpdate",
    "SettingsUpdate",
    "SetupRequest",
    "StartVerificationRequest",
    "StartVerificationResponse",
    "VerificationStatusResponse",
    "VerifiedLinkResponse",
]
