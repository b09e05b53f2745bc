"""Persistence interface for the verification engine.

VerificationStore is the keyed CRUD surface the engine depends on. Two
implementations:

- SqlVerificationStore: async SQLAlchemy over the repositories. Each operation
  runs in its own savepoint so a failed write never poisons the request's
  session, and every storage failure surfaces as PersistenceError.
- InMemoryVerificationStore: dict-backed, for local runs and engine tests.
  Methods never await internally, so each one is atomic on the event loop.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from profilelink.core.errors import PersistenceError
from profilelink.models.verification import (
    AuditLogRecord,
    PendingVerificationRecord,
    ServerPolicyRecord,
    VerifiedLinkRecord,
)
from profilelink.repositories.audit_log_repository import AuditLogRepository
from profilelink.repositories.pending_verification_repository import (
    PendingVerificationRepository,
)
from profilelink.repositories.server_policy_repository import ServerPolicyRepository
from profilelink.repositories.verified_link_repository import VerifiedLinkRepository
from profilelink.services.verification_types import (
    AuditEntry,
    AuditStatus,
    PendingVerification,
    ServerPolicy,
    VerifiedLink,
)

logger = logging.getLogger(__name__)


class VerificationStore(ABC):
    """Keyed store for pending attempts, links, policies, and the audit log.

    Keys are (subject_id, server_id) for attempts and links, server_id for
    policies. Implementations raise PersistenceError when storage is
    unreachable; absence is reported as None, never as an error.
    """

    # -- Pending verifications ------------------------------------------------

    @abstractmethod
    async def get_pending(
        self, subject_id: str, server_id: str
    ) -> PendingVerification | None:
        """Return the live pending attempt for a key, expired or not."""

    @abstractmethod
    async def get_pending_by_code(self, code: str) -> PendingVerification | None:
        """Return the most recent pending attempt carrying a code."""

    @abstractmethod
    async def replace_pending(
        self, pending: PendingVerification
    ) -> PendingVerification:
        """Delete any attempt for the key, then persist the given one."""

    @abstractmethod
    async def delete_pending(self, subject_id: str, server_id: str) -> bool:
        """Delete the attempt for a key. Returns True if one existed."""

    # -- Verified links -------------------------------------------------------

    @abstractmethod
    async def get_link(self, subject_id: str, server_id: str) -> VerifiedLink | None:
        """Return the link for a key."""

    @abstractmethod
    async def put_link(self, link: VerifiedLink) -> VerifiedLink:
        """Persist a link, overwriting any prior link for the key."""

    @abstractmethod
    async def delete_link(self, subject_id: str, server_id: str) -> bool:
        """Delete the link for a key. Returns True if one existed."""

    # -- Server policies ------------------------------------------------------

    @abstractmethod
    async def get_policy(self, server_id: str) -> ServerPolicy | None:
        """Return the stored policy, or None when the server has none."""

    @abstractmethod
    async def put_policy(self, policy: ServerPolicy) -> ServerPolicy:
        """Persist a complete policy."""

    # -- Audit log ------------------------------------------------------------

    @abstractmethod
    async def append_audit(self, entry: AuditEntry) -> None:
        """Append an audit entry."""

    @abstractmethod
    async def list_audit(self, server_id: str, limit: int) -> list[AuditEntry]:
        """Return up to limit entries for a server, newest first."""


# =============================================================================
# SQL implementation
# =============================================================================


def _to_pending(record: PendingVerificationRecord) -> PendingVerification:
    return PendingVerification(
        subject_id=record.subject_id,
        server_id=record.server_id,
        code=record.code,
        created_at=record.created_at,
        expires_at=record.expires_at,
        username_hint=record.username_hint,
    )


def _to_link(record: VerifiedLinkRecord) -> VerifiedLink:
    return VerifiedLink(
        subject_id=record.subject_id,
        server_id=record.server_id,
        external_id=record.external_id,
        external_username=record.external_username,
        code=record.code,
        verified_at=record.verified_at,
        subject_display_name=record.subject_display_name,
    )


def _to_policy(record: ServerPolicyRecord) -> ServerPolicy:
    return ServerPolicy(
        server_id=record.server_id,
        verification_role_ids=tuple(record.verification_role_ids or ()),
        unverified_role_id=record.unverified_role_id,
        verification_channel_id=record.verification_channel_id,
        log_channel_id=record.log_channel_id,
        auto_kick_unverified=record.auto_kick_unverified,
        dm_on_verification=record.dm_on_verification,
        allow_reverification=record.allow_reverification,
    )


def _to_audit(record: AuditLogRecord) -> AuditEntry:
    return AuditEntry(
        subject_id=record.subject_id,
        display_name=record.display_name,
        server_id=record.server_id,
        status=AuditStatus(record.status),
        message=record.message,
        external_username=record.external_username,
        timestamp=record.created_at,
    )


class SqlVerificationStore(VerificationStore):
    """VerificationStore backed by PostgreSQL through the repositories.

    The store never commits; the owning session (request scope) does. Each
    operation is wrapped in a savepoint so a failure rolls back only that
    operation and leaves the session usable for the caller's next step.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            async with self._db.begin_nested():
                yield
        except (SQLAlchemyError, OSError) as exc:
            logger.error(
                "Verification store operation failed",
                extra={"operation": operation, "error_type": type(exc).__name__},
                exc_info=exc,
            )
            raise PersistenceError() from exc

    async def get_pending(
        self, subject_id: str, server_id: str
    ) -> PendingVerification | None:
        async with self._guard("get_pending"):
            record = await PendingVerificationRepository.get(
                self._db, subject_id=subject_id, server_id=server_id
            )
        return _to_pending(record) if record else None

    async def get_pending_by_code(self, code: str) -> PendingVerification | None:
        async with self._guard("get_pending_by_code"):
            record = await PendingVerificationRepository.get_by_code(self._db, code)
        return _to_pending(record) if record else None

    async def replace_pending(
        self, pending: PendingVerification
    ) -> PendingVerification:
        async with self._guard("replace_pending"):
            await PendingVerificationRepository.delete(
                self._db, subject_id=pending.subject_id, server_id=pending.server_id
            )
            try:
                async with self._db.begin_nested():
                    record = await self._insert_pending(pending)
            except IntegrityError:
                # Another issuer inserted for the key between our delete and
                # insert. Last writer wins.
                logger.info(
                    "Pending verification insert raced, replacing",
                    extra={
                        "subject_id": pending.subject_id,
                        "server_id": pending.server_id,
                    },
                )
                await PendingVerificationRepository.delete(
                    self._db,
                    subject_id=pending.subject_id,
                    server_id=pending.server_id,
                )
                record = await self._insert_pending(pending)
        return _to_pending(record)

    async def _insert_pending(
        self, pending: PendingVerification
    ) -> PendingVerificationRecord:
        return await PendingVerificationRepository.create(
            self._db,
            subject_id=pending.subject_id,
            server_id=pending.server_id,
            code=pending.code,
            created_at=pending.created_at,
            expires_at=pending.expires_at,
            username_hint=pending.username_hint,
        )

    async def delete_pending(self, subject_id: str, server_id: str) -> bool:
        async with self._guard("delete_pending"):
            return await PendingVerificationRepository.delete(
                self._db, subject_id=subject_id, server_id=server_id
            )

    async def get_link(self, subject_id: str, server_id: str) -> VerifiedLink | None:
        async with self._guard("get_link"):
            record = await VerifiedLinkRepository.get(
                self._db, subject_id=subject_id, server_id=server_id
            )
        return _to_link(record) if record else None

    async def put_link(self, link: VerifiedLink) -> VerifiedLink:
        async with self._guard("put_link"):
            await VerifiedLinkRepository.delete(
                self._db, subject_id=link.subject_id, server_id=link.server_id
            )
            try:
                async with self._db.begin_nested():
                    record = await self._insert_link(link)
            except IntegrityError:
                await VerifiedLinkRepository.delete(
                    self._db, subject_id=link.subject_id, server_id=link.server_id
                )
                record = await self._insert_link(link)
        return _to_link(record)

    async def _insert_link(self, link: VerifiedLink) -> VerifiedLinkRecord:
        return await VerifiedLinkRepository.create(
            self._db,
            subject_id=link.subject_id,
            server_id=link.server_id,
            subject_display_name=link.subject_display_name,
            external_id=link.external_id,
            external_username=link.external_username,
            code=link.code,
        )

    async def delete_link(self, subject_id: str, server_id: str) -> bool:
        async with self._guard("delete_link"):
            return await VerifiedLinkRepository.delete(
                self._db, subject_id=subject_id, server_id=server_id
            )

    async def get_policy(self, server_id: str) -> ServerPolicy | None:
        async with self._guard("get_policy"):
            record = await ServerPolicyRepository.get(self._db, server_id)
        return _to_policy(record) if record else None

    async def put_policy(self, policy: ServerPolicy) -> ServerPolicy:
        async with self._guard("put_policy"):
            record = await ServerPolicyRepository.upsert(
                self._db,
                policy.server_id,
                {
                    "verification_role_ids": list(policy.verification_role_ids),
                    "unverified_role_id": policy.unverified_role_id,
                    "verification_channel_id": policy.verification_channel_id,
                    "log_channel_id": policy.log_channel_id,
                    "auto_kick_unverified": policy.auto_kick_unverified,
                    "dm_on_verification": policy.dm_on_verification,
                    "allow_reverification": policy.allow_reverification,
                },
            )
        return _to_policy(record)

    async def append_audit(self, entry: AuditEntry) -> None:
        async with self._guard("append_audit"):
            await AuditLogRepository.create(
                self._db,
                subject_id=entry.subject_id,
                display_name=entry.display_name,
                external_username=entry.external_username,
                server_id=entry.server_id,
                status=entry.status.value,
                message=entry.message,
            )

    async def list_audit(self, server_id: str, limit: int) -> list[AuditEntry]:
        async with self._guard("list_audit"):
            records = await AuditLogRepository.list_for_server(
                self._db, server_id, limit=limit
            )
        return [_to_audit(record) for record in records]


# =============================================================================
# In-memory implementation
# =============================================================================


class InMemoryVerificationStore(VerificationStore):
    """Dict-backed VerificationStore.

    Note: Safe for async usage on a single event loop, not for threads. Data
    is lost on restart.
    """

    def __init__(self) -> None:
        self._pending: dict[tuple[str, str], PendingVerification] = {}
        self._links: dict[tuple[str, str], VerifiedLink] = {}
        self._policies: dict[str, ServerPolicy] = {}
        self._audit: list[AuditEntry] = []

    async def get_pending(
        self, subject_id: str, server_id: str
    ) -> PendingVerification | None:
        return self._pending.get((subject_id, server_id))

    async def get_pending_by_code(self, code: str) -> PendingVerification | None:
        matches = [p for p in self._pending.values() if p.code == code]
        if not matches:
            return None
        return max(matches, key=lambda p: p.created_at)

    async def replace_pending(
        self, pending: PendingVerification
    ) -> PendingVerification:
        key = (pending.subject_id, pending.server_id)
        self._pending.pop(key, None)
        self._pending[key] = pending
        return pending

    async def delete_pending(self, subject_id: str, server_id: str) -> bool:
        return self._pending.pop((subject_id, server_id), None) is not None

    async def get_link(self, subject_id: str, server_id: str) -> VerifiedLink | None:
        return self._links.get((subject_id, server_id))

    async def put_link(self, link: VerifiedLink) -> VerifiedLink:
        self._links[(link.subject_id, link.server_id)] = link
        return link

    async def delete_link(self, subject_id: str, server_id: str) -> bool:
        return self._links.pop((subject_id, server_id), None) is not None

    async def get_policy(self, server_id: str) -> ServerPolicy | None:
        return self._policies.get(server_id)

    async def put_policy(self, policy: ServerPolicy) -> ServerPolicy:
        self._policies[policy.server_id] = policy
        return policy

    async def append_audit(self, entry: AuditEntry) -> None:
        self._audit.append(entry)

    async def list_audit(self, server_id: str, limit: int) -> list[AuditEntry]:
        entries = [e for e in self._audit if e.server_id == server_id]
        # Appended in time order; insertion order breaks timestamp ties.
        return list(reversed(entries))[:limit]

    def clear(self) -> None:
        """Drop all stored data."""
        self._pending.clear()
        self._links.clear()
        self._policies.clear()
        self._audit.clear()


# Global store instance for the "memory" backend
_store: InMemoryVerificationStore | None = None


def get_in_memory_store() -> InMemoryVerificationStore:
    """Get the global in-memory store instance.

    Returns:
        InMemoryVerificationStore singleton.
    """
    global _store
    if _store is None:
        _store = InMemoryVerificationStore()
    return _store


def reset_in_memory_store() -> None:
    """Reset the global store (for testing)."""
    global _store
    _store = None

