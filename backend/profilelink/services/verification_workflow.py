"""Dispatcher-facing verification operations.

Coordinates the engine components for each member or admin command:

    start   -> CodeIssuer (+ preview lookup of the hinted account)
    check   -> ProfileScanner -> VerificationCompleter
    update  -> CodeIssuer, hinted with the linked username
    status  -> read-only view
    reset   -> delete link and pending attempt (admin)
    setup / update_settings -> ConfigResolver (admin)

Every state change is recorded through the AuditLogger. Reverification never
deletes the existing link up front: the old link stays valid until the
completer overwrites it, so there is no window in which a member is
unlinked.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from profilelink.adapters.chat.base import ChatPlatformClient, Member
from profilelink.adapters.identity.base import IdentityProvider
from profilelink.core.errors import (
    ConflictError,
    ExpiredError,
    NotFoundError,
    PersistenceError,
    TransientUpstreamError,
    ValidationError,
)
from profilelink.services.audit_logger import AuditLogger
from profilelink.services.code_issuer import CodeIssuer
from profilelink.services.config_resolver import ConfigResolver
from profilelink.services.profile_scanner import ProfileScanner
from profilelink.services.verification_completer import VerificationCompleter
from profilelink.services.verification_store import VerificationStore
from profilelink.services.verification_types import (
    AuditStatus,
    CompletionReport,
    ExternalAccount,
    PendingVerification,
    ScanOutcome,
    ServerPolicy,
    VerifiedLink,
)

logger = logging.getLogger(__name__)

_SETTINGS_FLAGS = ("auto_kick_unverified", "dm_on_verification", "allow_reverification")


class CheckOutcome(str, Enum):
    """What a verification check concluded."""

    VERIFIED = "verified"
    NOT_VERIFIED = "not_verified"
    ALREADY_VERIFIED = "already_verified"


@dataclass(frozen=True)
class StartResult:
    """Result of starting (or restarting) a verification.

    Attributes:
        pending: The issued attempt; pending.code goes into the profile.
        preview: The hinted account if it exists, None if not found or the
            lookup failed.
        reverification: True when the member already had a link.
    """

    pending: PendingVerification
    preview: ExternalAccount | None = None
    reverification: bool = False


@dataclass(frozen=True)
class CheckResult:
    """Result of a verification check."""

    outcome: CheckOutcome
    link: VerifiedLink | None = None
    pending: PendingVerification | None = None
    report: CompletionReport | None = None


@dataclass(frozen=True)
class StatusView:
    """Read-only verification state of one member."""

    link: VerifiedLink | None
    pending: PendingVerification | None
    pending_expired: bool = False


class VerificationWorkflow:
    """Runs verification commands against the engine components.

    Args:
        store: Verification store.
        chat: Chat-platform client.
        identity: External identity API client.
        scan_deadline_seconds: Upper bound on a profile scan.
        clock: Source of "now"; shared by issuer, scanner, and completer.
    """

    def __init__(
        self,
        store: VerificationStore,
        chat: ChatPlatformClient,
        identity: IdentityProvider,
        *,
        scan_deadline_seconds: float | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._store = store
        self._chat = chat
        self._identity = identity
        self.resolver = ConfigResolver(store)
        self.audit = AuditLogger(store, chat)
        self._issuer = CodeIssuer(store, clock=self._clock)
        self._scanner = ProfileScanner(
            identity, deadline_seconds=scan_deadline_seconds, clock=self._clock
        )
        self._completer = VerificationCompleter(store, chat, clock=self._clock)

    # =========================================================================
    # Member operations
    # =========================================================================

    async def start(
        self,
        server_id: str,
        subject_id: str,
        display_name: str,
        username_hint: str | None,
    ) -> StartResult:
        """Issue a verification code for a member.

        Raises:
            ValidationError: If username_hint is blank.
            ConflictError: ALREADY_VERIFIED when the member is linked and the
                server does not allow reverification.
            PersistenceError: If the store is unreachable.
        """
        hint = (username_hint or "").strip()
        if not hint:
            raise ValidationError(
                "An external username is required to start verification",
                details=[{"field": "username_hint", "error": "REQUIRED"}],
            )

        policy = await self.resolver.resolve(server_id)
        link = await self._store.get_link(subject_id, server_id)
        if link is not None and not policy.allow_reverification:
            raise ConflictError(
                code="ALREADY_VERIFIED",
                message=(
                    f"You are already verified as {link.external_username}. "
                    "Reverification is not allowed on this server."
                ),
            )

        pending = await self._issuer.issue(subject_id, server_id, hint)
        preview = await self._preview(hint)

        await self.audit.record(
            subject_id,
            display_name,
            hint,
            server_id,
            AuditStatus.PENDING,
            f"Verification initiated with username {hint}",
            log_channel_id=policy.log_channel_id,
        )
        return StartResult(
            pending=pending, preview=preview, reverification=link is not None
        )

    async def check(
        self,
        server_id: str,
        subject_id: str,
        display_name: str,
    ) -> CheckResult:
        """Check the member's profile for their pending code.

        Raises:
            NotFoundError: If the member has neither a pending attempt nor a link.
            ExpiredError: If the pending attempt is past expiry (it is deleted).
            TransientUpstreamError: If candidate discovery failed or the scan
                ran past its deadline; the attempt stays pending.
            PersistenceError: If the store is unreachable or the link could
                not be saved; the attempt stays pending.
        """
        pending = await self._store.get_pending(subject_id, server_id)
        if pending is None:
            link = await self._store.get_link(subject_id, server_id)
            if link is not None:
                return CheckResult(outcome=CheckOutcome.ALREADY_VERIFIED, link=link)
            raise NotFoundError("Pending verification", subject_id)

        policy = await self.resolver.resolve(server_id)

        try:
            match = await self._scanner.scan(pending, display_name)
        except TransientUpstreamError as exc:
            await self._audit_failure(
                pending, display_name, policy, f"Profile check unavailable: {exc.message}"
            )
            raise

        if match.outcome is ScanOutcome.EXPIRED:
            await self._store.delete_pending(subject_id, server_id)
            await self._audit_failure(
                pending, display_name, policy, "Verification code expired"
            )
            raise ExpiredError()

        if not match.matched:
            return CheckResult(outcome=CheckOutcome.NOT_VERIFIED, pending=pending)

        external_id = match.external_id or ""
        external_username = match.external_username or ""
        member = await self._fetch_member(server_id, subject_id)
        report = await self._completer.complete(
            pending, external_id, external_username, policy, member
        )

        if not report.success:
            await self._audit_failure(
                pending,
                display_name,
                policy,
                "Verification matched but could not be saved",
                external_username=external_username,
            )
            raise PersistenceError()

        await self.audit.record(
            subject_id,
            display_name,
            external_username,
            server_id,
            AuditStatus.SUCCESS,
            f"Verified as {external_username}",
            log_channel_id=policy.log_channel_id,
        )
        return CheckResult(
            outcome=CheckOutcome.VERIFIED, link=report.link, report=report
        )

    async def update(
        self,
        server_id: str,
        subject_id: str,
        display_name: str,
    ) -> StartResult:
        """Start a reverification for a linked member.

        The new code is hinted with the currently linked external username.

        Raises:
            NotFoundError: If the member has no link.
            ConflictError: ALREADY_VERIFIED when the server does not allow
                reverification.
            PersistenceError: If the store is unreachable.
        """
        link = await self._store.get_link(subject_id, server_id)
        if link is None:
            raise NotFoundError("Verified link", subject_id)

        policy = await self.resolver.resolve(server_id)
        if not policy.allow_reverification:
            raise ConflictError(
                code="ALREADY_VERIFIED",
                message=(
                    f"You are already verified as {link.external_username}. "
                    "Reverification is not allowed on this server."
                ),
            )

        pending = await self._issuer.issue(
            subject_id, server_id, link.external_username
        )
        await self.audit.record(
            subject_id,
            display_name,
            link.external_username,
            server_id,
            AuditStatus.PENDING,
            "Verification update initiated",
            log_channel_id=policy.log_channel_id,
        )
        return StartResult(pending=pending, reverification=True)

    async def status(self, server_id: str, subject_id: str) -> StatusView:
        """Return the member's link and pending attempt, if any.

        Raises:
            PersistenceError: If the store is unreachable.
        """
        link = await self._store.get_link(subject_id, server_id)
        pending = await self._store.get_pending(subject_id, server_id)
        return StatusView(
            link=link,
            pending=pending,
            pending_expired=pending is not None and pending.is_expired(self._clock()),
        )

    # =========================================================================
    # Admin operations
    # =========================================================================

    async def reset(
        self,
        server_id: str,
        subject_id: str,
        subject_display_name: str,
        actor: str,
    ) -> None:
        """Force a member to verify again.

        Deletes the link and any pending attempt.

        Args:
            server_id: Chat-platform server id.
            subject_id: Member to reset.
            subject_display_name: Member's name, for the audit entry.
            actor: Name of the admin performing the reset.

        Raises:
            NotFoundError: If the member had neither a link nor a pending attempt.
            PersistenceError: If the store is unreachable.
        """
        link_deleted = await self._store.delete_link(subject_id, server_id)
        pending_deleted = await self._store.delete_pending(subject_id, server_id)
        if not (link_deleted or pending_deleted):
            raise NotFoundError("Verification", subject_id)

        policy = await self.resolver.resolve(server_id)
        await self.audit.record(
            subject_id,
            subject_display_name,
            None,
            server_id,
            AuditStatus.PENDING,
            f"Forced reverification by {actor}",
            log_channel_id=policy.log_channel_id,
        )

    async def setup(
        self,
        server_id: str,
        *,
        verification_role_id: str,
        verification_channel_id: str,
        unverified_role_id: str | None = None,
        actor_id: str,
        actor_name: str,
    ) -> ServerPolicy:
        """Quick setup: verification role, verification channel, optional
        unverified role.

        Raises:
            ValidationError: If a required id is blank.
            PersistenceError: If the store is unreachable.
        """
        changes: dict[str, object] = {
            "verification_channel_id": verification_channel_id,
        }
        if unverified_role_id is not None:
            changes["unverified_role_id"] = unverified_role_id

        await self.resolver.add_verification_role(server_id, verification_role_id)
        policy = await self.resolver.upsert(server_id, **changes)

        await self.audit.record(
            actor_id,
            actor_name,
            None,
            server_id,
            AuditStatus.SUCCESS,
            "Verification system setup completed",
            log_channel_id=policy.log_channel_id,
        )
        return policy

    async def update_settings(
        self,
        server_id: str,
        *,
        auto_kick_unverified: bool | None = None,
        dm_on_verification: bool | None = None,
        allow_reverification: bool | None = None,
    ) -> ServerPolicy:
        """Change behaviour flags; unspecified flags keep their value.

        Raises:
            ValidationError: If no flag is given.
            PersistenceError: If the store is unreachable.
        """
        values = dict(
            zip(
                _SETTINGS_FLAGS,
                (auto_kick_unverified, dm_on_verification, allow_reverification),
                strict=True,
            )
        )
        changes = {name: value for name, value in values.items() if value is not None}
        if not changes:
            raise ValidationError(
                "Specify at least one setting to update",
                details=[{"field": name, "error": "MISSING"} for name in _SETTINGS_FLAGS],
            )
        return await self.resolver.upsert(server_id, **changes)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _preview(self, username: str) -> ExternalAccount | None:
        try:
            accounts = await self._identity.lookup_by_names([username])
        except Exception as exc:
            logger.warning(
                "Preview lookup failed",
                extra={"error_type": type(exc).__name__},
            )
            return None
        return accounts[0] if accounts else None

    async def _fetch_member(self, server_id: str, subject_id: str) -> Member | None:
        try:
            return await self._chat.fetch_member(server_id, subject_id)
        except Exception as exc:
            logger.warning(
                "Member lookup failed",
                extra={
                    "server_id": server_id,
                    "subject_id": subject_id,
                    "error_type": type(exc).__name__,
                },
            )
            return None

    async def _audit_failure(
        self,
        pending: PendingVerification,
        display_name: str,
        policy: ServerPolicy,
        message: str,
        *,
        external_username: str | None = None,
    ) -> None:
        await self.audit.record(
            pending.subject_id,
            display_name,
            external_username or pending.username_hint,
            pending.server_id,
            AuditStatus.FAILED,
            message,
            log_channel_id=policy.log_channel_id,
        )
