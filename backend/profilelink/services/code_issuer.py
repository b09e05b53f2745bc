"""Verification code issuance.

A code is "VERIFY-" followed by six uppercase base36 characters drawn from
the secrets module. Issuing for a key supersedes any earlier attempt for the
same key: the old row is deleted before the new one is persisted, under a
per-key lock so concurrent issuers for one key run one after the other.

Collisions between codes of different keys are tolerated; lookups are by
key, not by code.
"""

import asyncio
import logging
import secrets
import string
import weakref
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from profilelink.services.verification_store import VerificationStore
from profilelink.services.verification_types import (
    CODE_PREFIX,
    CODE_RANDOM_LENGTH,
    CODE_TTL,
    PendingVerification,
)

logger = logging.getLogger(__name__)

_BASE36_UPPER = string.digits + string.ascii_uppercase

# One lock per (subject_id, server_id). Entries disappear once no coroutine
# holds or waits on the lock.
_issue_locks: "weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock]" = (
    weakref.WeakValueDictionary()
)


def generate_code() -> str:
    """Generate a fresh verification code.

    Returns:
        Code matching ^VERIFY-[0-9A-Z]{6}$.
    """
    suffix = "".join(secrets.choice(_BASE36_UPPER) for _ in range(CODE_RANDOM_LENGTH))
    return f"{CODE_PREFIX}{suffix}"


def _lock_for(subject_id: str, server_id: str) -> asyncio.Lock:
    key = (subject_id, server_id)
    lock = _issue_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _issue_locks[key] = lock
    return lock


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CodeIssuer:
    """Issues pending verifications and enforces one live attempt per key."""

    def __init__(
        self,
        store: VerificationStore,
        *,
        ttl: timedelta = CODE_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._ttl = ttl
        self._clock = clock

    async def issue(
        self,
        subject_id: str,
        server_id: str,
        username_hint: str | None = None,
    ) -> PendingVerification:
        """Issue a new code for a key, superseding any earlier attempt.

        The hint is stored as given (trimmed); its plausibility is never
        checked here.

        Args:
            subject_id: Chat-platform user id.
            server_id: Chat-platform server id.
            username_hint: External username the user claims, if any.

        Returns:
            The persisted PendingVerification; its code is the issued code.

        Raises:
            PersistenceError: If the store is unreachable.
        """
        hint = username_hint.strip() if username_hint else None

        async with _lock_for(subject_id, server_id):
            superseded = await self._store.delete_pending(subject_id, server_id)
            created_at = self._clock()
            pending = PendingVerification(
                subject_id=subject_id,
                server_id=server_id,
                code=generate_code(),
                created_at=created_at,
                expires_at=created_at + self._ttl,
                username_hint=hint or None,
            )
            saved = await self._store.replace_pending(pending)

        logger.info(
            "Verification code issued",
            extra={
                "subject_id": subject_id,
                "server_id": server_id,
                "superseded": superseded,
                "has_hint": saved.username_hint is not None,
            },
        )
        return saved
