"""Per-server verification policy resolution.

Absence of a stored policy is not an error: resolve() falls back to the
ServerPolicy defaults. Writes are partial merges over whatever is stored.
Authorization is the caller's job; this module only type-checks.
"""

import logging
from dataclasses import replace
from typing import Any

from profilelink.core.errors import ValidationError
from profilelink.services.verification_store import VerificationStore
from profilelink.services.verification_types import ServerPolicy

logger = logging.getLogger(__name__)

# Fields accepted by upsert() and the value kind each one takes
_OPTIONAL_ID_FIELDS = frozenset(
    {"unverified_role_id", "verification_channel_id", "log_channel_id"}
)
_FLAG_FIELDS = frozenset(
    {"auto_kick_unverified", "dm_on_verification", "allow_reverification"}
)
_ROLE_LIST_FIELD = "verification_role_ids"

UPDATABLE_FIELDS = _OPTIONAL_ID_FIELDS | _FLAG_FIELDS | {_ROLE_LIST_FIELD}


def _check_field(name: str, value: Any) -> Any:
    """Validate one partial-update value and return its stored form.

    Returns:
        The value to store (role lists become tuples).

    Raises:
        ValidationError: If the field is unknown or the value has the wrong type.
    """
    if name not in UPDATABLE_FIELDS:
        raise ValidationError(
            f"Unknown policy field: {name}",
            details=[{"field": name, "error": "UNKNOWN_FIELD"}],
        )

    if name in _FLAG_FIELDS:
        if not isinstance(value, bool):
            raise ValidationError(
                f"{name} must be a boolean",
                details=[{"field": name, "error": "INVALID_TYPE"}],
            )
        return value

    if name in _OPTIONAL_ID_FIELDS:
        if value is not None and (not isinstance(value, str) or not value.strip()):
            raise ValidationError(
                f"{name} must be a non-empty string or null",
                details=[{"field": name, "error": "INVALID_TYPE"}],
            )
        return value

    if not isinstance(value, list | tuple) or not all(
        isinstance(role_id, str) and role_id.strip() for role_id in value
    ):
        raise ValidationError(
            f"{name} must be a list of non-empty strings",
            details=[{"field": name, "error": "INVALID_TYPE"}],
        )
    # Order kept, duplicates dropped
    return tuple(dict.fromkeys(value))


class ConfigResolver:
    """Reads and merges per-server verification policy."""

    def __init__(self, store: VerificationStore) -> None:
        self._store = store

    async def resolve(self, server_id: str) -> ServerPolicy:
        """Return the stored policy, or the defaults when none is stored.

        Only absence yields defaults. A store outage propagates, because
        upsert merges over this result and would otherwise overwrite the
        stored policy with defaults.

        Raises:
            PersistenceError: If the store is unreachable.
        """
        stored = await self._store.get_policy(server_id)
        return stored if stored is not None else ServerPolicy(server_id=server_id)

    async def upsert(self, server_id: str, **partial: Any) -> ServerPolicy:
        """Merge a partial update into the stored policy, creating it if absent.

        Args:
            server_id: Chat-platform server id.
            **partial: Policy fields to change.

        Returns:
            The merged, persisted policy.

        Raises:
            ValidationError: If a field is unknown or has the wrong type.
            PersistenceError: If the store is unreachable.
        """
        changes = {name: _check_field(name, value) for name, value in partial.items()}
        current = await self.resolve(server_id)
        merged = replace(current, **changes)
        saved = await self._store.put_policy(merged)
        logger.info(
            "Server policy updated",
            extra={"server_id": server_id, "fields": sorted(changes)},
        )
        return saved

    async def add_verification_role(self, server_id: str, role_id: str) -> ServerPolicy:
        """Append a role to the roles granted on verification.

        Adding a role that is already configured is a no-op.

        Raises:
            ValidationError: If role_id is blank.
            PersistenceError: If the store is unreachable.
        """
        if not role_id or not role_id.strip():
            raise ValidationError(
                "role_id is required",
                details=[{"field": "role_id", "error": "REQUIRED"}],
            )
        current = await self.resolve(server_id)
        if role_id in current.verification_role_ids:
            return current
        return await self.upsert(
            server_id,
            verification_role_ids=[*current.verification_role_ids, role_id],
        )
