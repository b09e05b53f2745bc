"""Applies the effects of a successful verification.

Order of effects:

1. Role delta (best effort): grant configured verification roles the member
   lacks, remove the unverified role if held.
2. Persist the VerifiedLink, overwriting any prior link for the key.
3. Delete the pending attempt.
4. Rename the member to the external username (best effort).
5. Confirmation DM, only if the policy asks for it (best effort).

Steps 2-3 must succeed; if either fails the report says success=False and
the pending row is left for a retry. Best-effort failures are logged and
listed in the report but never undo steps 2-3.
"""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from profilelink.adapters.chat.base import ChatPlatformClient, Member
from profilelink.core.errors import PersistenceError
from profilelink.services.verification_store import VerificationStore
from profilelink.services.verification_types import (
    CompletionReport,
    PendingVerification,
    ServerPolicy,
    VerifiedLink,
)

logger = structlog.get_logger()

_DEFAULT_SERVER_NAME = "the server"


def confirmation_message(external_username: str, server_name: str) -> str:
    """Text of the DM sent after a successful verification."""
    return (
        f"You have been successfully verified as **{external_username}** "
        f"in {server_name}"
    )


class VerificationCompleter:
    """Turns a matched scan into a persisted link plus member updates."""

    def __init__(
        self,
        store: VerificationStore,
        chat: ChatPlatformClient,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._chat = chat
        self._clock = clock or (lambda: datetime.now(UTC))

    async def complete(
        self,
        pending: PendingVerification,
        external_id: str,
        external_username: str,
        policy: ServerPolicy,
        member: Member | None,
    ) -> CompletionReport:
        """Apply every effect of a verified match.

        Args:
            pending: The matched attempt.
            external_id: Matched external account id.
            external_username: Matched external username.
            policy: The server's resolved policy.
            member: Current member snapshot; None if the member could not be
                fetched, in which case role and name changes are skipped.

        Returns:
            CompletionReport describing what was actually done.
        """
        report = CompletionReport()
        log = logger.bind(subject_id=pending.subject_id, server_id=pending.server_id)

        if member is not None:
            await self._apply_role_delta(pending, policy, member, report)
        else:
            report.failures.append("member_unavailable")

        link = VerifiedLink(
            subject_id=pending.subject_id,
            server_id=pending.server_id,
            external_id=external_id,
            external_username=external_username,
            code=pending.code,
            verified_at=self._clock(),
            subject_display_name=member.display_name if member else "",
        )
        step = "persist_link"
        try:
            saved = await self._store.put_link(link)
            step = "delete_pending"
            await self._store.delete_pending(pending.subject_id, pending.server_id)
        except PersistenceError:
            log.error(
                "verification_link_persist_failed", step=step, external_id=external_id
            )
            report.failures.append(step)
            return report

        report.link = saved
        report.success = True

        if member is not None:
            try:
                await self._chat.set_display_name(
                    pending.server_id, pending.subject_id, external_username
                )
                report.renamed = True
            except Exception as exc:
                log.warning("verification_rename_failed", error_type=type(exc).__name__)
                report.failures.append("rename")

        if policy.dm_on_verification:
            try:
                server_name = await self._chat.fetch_server_name(pending.server_id)
                await self._chat.send_direct_message(
                    pending.subject_id,
                    confirmation_message(
                        external_username, server_name or _DEFAULT_SERVER_NAME
                    ),
                )
                report.notified = True
            except Exception as exc:
                log.warning("verification_dm_failed", error_type=type(exc).__name__)
                report.failures.append("direct_message")

        log.info(
            "verification_completed",
            external_id=external_id,
            roles_added=len(report.roles_added),
            roles_removed=len(report.roles_removed),
            failures=report.failures,
        )
        return report

    async def _apply_role_delta(
        self,
        pending: PendingVerification,
        policy: ServerPolicy,
        member: Member,
        report: CompletionReport,
    ) -> None:
        for role_id in policy.verification_role_ids:
            if self._chat.has_role(member, role_id):
                continue
            try:
                await self._chat.add_role(pending.server_id, pending.subject_id, role_id)
                report.roles_added.append(role_id)
            except Exception as exc:
                logger.warning(
                    "verification_role_add_failed",
                    server_id=pending.server_id,
                    role_id=role_id,
                    error_type=type(exc).__name__,
                )
                report.failures.append(f"add_role:{role_id}")

        unverified = policy.unverified_role_id
        if unverified and self._chat.has_role(member, unverified):
            try:
                await self._chat.remove_role(
                    pending.server_id, pending.subject_id, unverified
                )
                report.roles_removed.append(unverified)
            except Exception as exc:
                logger.warning(
                    "verification_role_remove_failed",
                    server_id=pending.server_id,
                    role_id=unverified,
                    error_type=type(exc).__name__,
                )
                report.failures.append(f"remove_role:{unverified}")
