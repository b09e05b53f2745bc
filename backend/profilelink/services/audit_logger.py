"""Append-only verification audit trail.

record() never raises: a lost audit entry is logged locally and the
verification carries on. When the server has a log channel, each entry is
also mirrored there through the chat client (best effort).
"""

import logging

from profilelink.adapters.chat.base import ChatPlatformClient
from profilelink.core.errors import PersistenceError
from profilelink.services.verification_store import VerificationStore
from profilelink.services.verification_types import AuditEntry, AuditStatus

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 10
MAX_RECENT_LIMIT = 100


def format_audit_line(entry: AuditEntry) -> str:
    """Render an entry as a single chat line."""
    line = f"[{entry.status.value.upper()}] {entry.display_name} (<@{entry.subject_id}>)"
    if entry.external_username:
        line += f" -> {entry.external_username}"
    return f"{line}: {entry.message}"


class AuditLogger:
    """Writes and reads the verification audit log."""

    def __init__(
        self,
        store: VerificationStore,
        chat: ChatPlatformClient | None = None,
    ) -> None:
        self._store = store
        self._chat = chat

    async def record(
        self,
        subject_id: str,
        display_name: str,
        external_username: str | None,
        server_id: str,
        status: AuditStatus,
        message: str,
        *,
        log_channel_id: str | None = None,
    ) -> AuditEntry:
        """Append an entry. Storage and mirror failures are logged, not raised.

        Args:
            subject_id: Chat-platform user id.
            display_name: Chat-platform name.
            external_username: External username involved, if known.
            server_id: Chat-platform server id.
            status: pending, success, or failed.
            message: Human-readable description.
            log_channel_id: Channel to mirror the entry to, if any.

        Returns:
            The entry as built (returned even if it could not be stored).
        """
        entry = AuditEntry(
            subject_id=subject_id,
            display_name=display_name,
            server_id=server_id,
            status=status,
            message=message,
            external_username=external_username,
        )

        try:
            await self._store.append_audit(entry)
        except PersistenceError:
            logger.error(
                "Failed to write audit entry",
                extra={
                    "subject_id": subject_id,
                    "server_id": server_id,
                    "status": status.value,
                },
            )

        if log_channel_id and self._chat is not None:
            try:
                await self._chat.send_channel_message(
                    log_channel_id, format_audit_line(entry)
                )
            except Exception as exc:
                logger.warning(
                    "Failed to mirror audit entry to log channel",
                    extra={
                        "server_id": server_id,
                        "channel_id": log_channel_id,
                        "error_type": type(exc).__name__,
                    },
                )

        return entry

    async def recent(
        self, server_id: str, limit: int = DEFAULT_RECENT_LIMIT
    ) -> list[AuditEntry]:
        """Newest-first entries for a server.

        Args:
            server_id: Chat-platform server id.
            limit: Number of entries, clamped to 1-100.

        Raises:
            PersistenceError: If the store is unreachable.
        """
        bounded = max(1, min(limit, MAX_RECENT_LIMIT))
        return await self._store.list_audit(server_id, bounded)
