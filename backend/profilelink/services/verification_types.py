"""Domain types for the verification engine.

These are the store-agnostic shapes the engine passes around. The SQL store
converts ORM rows into them; the in-memory store keeps them directly.

Lifecycle per (subject_id, server_id):

    NONE -> PENDING -> SUCCESS | EXPIRED | CANCELLED
                    -> PENDING (transient failure, retryable)

A PendingVerification is never mutated; supersession replaces it.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum

# Fixed literal prefix of every verification code
CODE_PREFIX = "VERIFY-"

# Number of random base36 characters after the prefix
CODE_RANDOM_LENGTH = 6

# Lifetime of a pending verification
CODE_TTL = timedelta(minutes=30)


class AuditStatus(str, Enum):
    """Status recorded on an audit entry."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class ScanOutcome(str, Enum):
    """Result category of a profile scan."""

    MATCHED = "matched"
    NOT_MATCHED = "not_matched"
    EXPIRED = "expired"


@dataclass(frozen=True)
class PendingVerification:
    """Outstanding verification attempt for one (subject, server) key.

    Attributes:
        subject_id: Chat-platform user id.
        server_id: Chat-platform server id.
        code: Verification code the user must place in their profile.
        created_at: Issuance time (UTC).
        expires_at: Always created_at + 30 minutes.
        username_hint: External username given by the user, if any.
    """

    subject_id: str
    server_id: str
    code: str
    created_at: datetime
    expires_at: datetime
    username_hint: str | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the attempt is past its expiry.

        Args:
            now: Reference time. Defaults to the current UTC time.

        Returns:
            True if now is strictly after expires_at.
        """
        return (now or datetime.now(UTC)) > self.expires_at


@dataclass(frozen=True)
class VerifiedLink:
    """Proven link between a chat member and an external account."""

    subject_id: str
    server_id: str
    external_id: str
    external_username: str
    code: str
    verified_at: datetime
    subject_display_name: str = ""


@dataclass(frozen=True)
class ServerPolicy:
    """Per-server verification policy with defaults applied.

    Attributes:
        server_id: Chat-platform server id.
        verification_role_ids: Roles granted on successful verification.
        unverified_role_id: Role removed on successful verification.
        verification_channel_id: Channel where members verify.
        log_channel_id: Channel that receives audit mirrors.
        auto_kick_unverified: Kick unverified members (stored, not enforced).
        dm_on_verification: Send a confirmation DM after verification.
        allow_reverification: Whether a linked member may start over.
    """

    server_id: str
    verification_role_ids: tuple[str, ...] = ()
    unverified_role_id: str | None = None
    verification_channel_id: str | None = None
    log_channel_id: str | None = None
    auto_kick_unverified: bool = False
    dm_on_verification: bool = True
    allow_reverification: bool = True


@dataclass(frozen=True)
class AuditEntry:
    """One append-only audit record."""

    subject_id: str
    display_name: str
    server_id: str
    status: AuditStatus
    message: str
    external_username: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class ExternalAccount:
    """Account on the external identity platform.

    Attributes:
        external_id: Platform account id.
        username: Platform username (unique login name).
        display_name: Platform display name, if different.
    """

    external_id: str
    username: str
    display_name: str | None = None


@dataclass(frozen=True)
class MatchResult:
    """Outcome of scanning candidate profiles for a code."""

    outcome: ScanOutcome
    external_id: str | None = None
    external_username: str | None = None

    @property
    def matched(self) -> bool:
        """True only for a definitive match."""
        return self.outcome is ScanOutcome.MATCHED


@dataclass
class CompletionReport:
    """What the completer actually did.

    Attributes:
        success: True when the link was persisted and the pending row removed.
        roles_added: Role ids granted during this call.
        roles_removed: Role ids removed during this call.
        renamed: Whether the display name was updated.
        notified: Whether the confirmation DM was sent.
        failures: Short descriptions of best-effort steps that failed.
        link: The persisted link, when success is True.
    """

    success: bool = False
    roles_added: list[str] = field(default_factory=list)
    roles_removed: list[str] = field(default_factory=list)
    renamed: bool = False
    notified: bool = False
    failures: list[str] = field(default_factory=list)
    link: VerifiedLink | None = None
