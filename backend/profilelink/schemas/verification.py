"""Verification API request/response schemas.

Chat-platform and external identifiers are strings throughout; snowflakes
exceed the range JSON clients can represent as numbers.
All request schemas use ConfigDict(extra="forbid") to reject unexpected fields.
"""

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from profilelink.services.verification_types import (
    AuditEntry,
    CompletionReport,
    ExternalAccount,
    PendingVerification,
    ServerPolicy,
    VerifiedLink,
)

_ID_MAX = 32
_NAME_MAX = 100
_USERNAME_MAX = 64

SnowflakeStr = Annotated[str, Field(min_length=1, max_length=_ID_MAX)]

# =============================================================================
# Requests
# =============================================================================


class StartVerificationRequest(BaseModel):
    """Request schema for POST /servers/{server_id}/verifications."""

    model_config = ConfigDict(extra="forbid")

    subject_id: SnowflakeStr
    display_name: str = Field(min_length=1, max_length=_NAME_MAX)
    username_hint: str = Field(min_length=1, max_length=_USERNAME_MAX)


class MemberActionRequest(BaseModel):
    """Request schema for check and update: the member's current name."""

    model_config = ConfigDict(extra="forbid")

    display_name: str = Field(min_length=1, max_length=_NAME_MAX)


class PolicyUpdate(BaseModel):
    """Request schema for PATCH /servers/{server_id}/policy.

    Only fields present in the body are changed.
    """

    model_config = ConfigDict(extra="forbid")

    verification_role_ids: list[str] | None = Field(default=None, max_length=50)
    unverified_role_id: str | None = Field(default=None, max_length=_ID_MAX)
    verification_channel_id: str | None = Field(default=None, max_length=_ID_MAX)
    log_channel_id: str | None = Field(default=None, max_length=_ID_MAX)
    auto_kick_unverified: bool | None = None
    dm_on_verification: bool | None = None
    allow_reverification: bool | None = None


class SettingsUpdate(BaseModel):
    """Request schema for PATCH /servers/{server_id}/settings."""

    model_config = ConfigDict(extra="forbid")

    auto_kick_unverified: bool | None = None
    dm_on_verification: bool | None = None
    allow_reverification: bool | None = None


class AddRoleRequest(BaseModel):
    """Request schema for POST /servers/{server_id}/policy/roles."""

    model_config = ConfigDict(extra="forbid")

    role_id: SnowflakeStr


class SetupRequest(BaseModel):
    """Request schema for POST /servers/{server_id}/setup.

    Attributes:
        verification_role_id: Role granted on verification.
        verification_channel_id: Channel where members verify.
        unverified_role_id: Optional role removed on verification.
        actor_id: Admin running the setup.
        actor_name: Admin's display name.
    """

    model_config = ConfigDict(extra="forbid")

    verification_role_id: SnowflakeStr
    verification_channel_id: SnowflakeStr
    unverified_role_id: str | None = Field(default=None, max_length=_ID_MAX)
    actor_id: SnowflakeStr
    actor_name: str = Field(min_length=1, max_length=_NAME_MAX)


# =============================================================================
# Responses
# =============================================================================


class PendingVerificationResponse(BaseModel):
    """A pending attempt as shown to the member."""

    code: str
    created_at: datetime
    expires_at: datetime
    username_hint: str | None = None

    @classmethod
    def from_pending(cls, pending: PendingVerification) -> "PendingVerificationResponse":
        return cls(
            code=pending.code,
            created_at=pending.created_at,
            expires_at=pending.expires_at,
            username_hint=pending.username_hint,
        )


class ExternalAccountResponse(BaseModel):
    """An external platform account."""

    external_id: str
    username: str
    display_name: str | None = None

    @classmethod
    def from_account(cls, account: ExternalAccount) -> "ExternalAccountResponse":
        return cls(
            external_id=account.external_id,
            username=account.username,
            display_name=account.display_name,
        )


class VerifiedLinkResponse(BaseModel):
    """A verified link."""

    external_id: str
    external_username: str
    verified_at: datetime
    subject_display_name: str

    @classmethod
    def from_link(cls, link: VerifiedLink) -> "VerifiedLinkResponse":
        return cls(
            external_id=link.external_id,
            external_username=link.external_username,
            verified_at=link.verified_at,
            subject_display_name=link.subject_display_name,
        )


class StartVerificationResponse(BaseModel):
    """Response for start and update."""

    pending: PendingVerificationResponse
    preview: ExternalAccountResponse | None = None
    reverification: bool = False


class CompletionResponse(BaseModel):
    """Side effects applied by a successful check."""

    roles_added: list[str]
    roles_removed: list[str]
    renamed: bool
    notified: bool
    failures: list[str]

    @classmethod
    def from_report(cls, report: CompletionReport) -> "CompletionResponse":
        return cls(
            roles_added=list(report.roles_added),
            roles_removed=list(report.roles_removed),
            renamed=report.renamed,
            notified=report.notified,
            failures=list(report.failures),
        )


class CheckVerificationResponse(BaseModel):
    """Response for POST .../check.

    outcome is one of verified, not_verified, already_verified.
    """

    outcome: str
    link: VerifiedLinkResponse | None = None
    pending: PendingVerificationResponse | None = None
    completion: CompletionResponse | None = None


class VerificationStatusResponse(BaseModel):
    """Response for GET .../verifications/{subject_id}."""

    verified: bool
    link: VerifiedLinkResponse | None = None
    pending: PendingVerificationResponse | None = None
    pending_expired: bool = False


class PolicyResponse(BaseModel):
    """A server's resolved verification policy."""

    server_id: str
    verification_role_ids: list[str]
    unverified_role_id: str | None
    verification_channel_id: str | None
    log_channel_id: str | None
    auto_kick_unverified: bool
    dm_on_verification: bool
    allow_reverification: bool

    @classmethod
    def from_policy(cls, policy: ServerPolicy) -> "PolicyResponse":
        return cls(
            server_id=policy.server_id,
            verification_role_ids=list(policy.verification_role_ids),
            unverified_role_id=policy.unverified_role_id,
            verification_channel_id=policy.verification_channel_id,
            log_channel_id=policy.log_channel_id,
            auto_kick_unverified=policy.auto_kick_unverified,
            dm_on_verification=policy.dm_on_verification,
            allow_reverification=policy.allow_reverification,
        )


class AuditEntryResponse(BaseModel):
    """One audit log entry."""

    subject_id: str
    display_name: str
    external_username: str | None
    status: str
    message: str
    timestamp: datetime

    @classmethod
    def from_entry(cls, entry: AuditEntry) -> "AuditEntryResponse":
        return cls(
            subject_id=entry.subject_id,
            display_name=entry.display_name,
            external_username=entry.external_username,
            status=entry.status.value,
            message=entry.message,
            timestamp=entry.timestamp,
        )

