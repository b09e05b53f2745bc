"""Shared dependencies for API endpoints.

The API is called by a command dispatcher (the chat bot process), not by end
users directly:

- Every route requires the dispatcher key (X-API-Key) when API_KEY is set.
- Server-management routes additionally require the dispatcher to vouch that
  the invoking member holds the manage_server permission
  (X-Caller-Permissions, comma-separated).
"""

import secrets
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from profilelink.adapters.chat.base import ChatPlatformClient
from profilelink.adapters.factory import get_chat_client, get_identity_provider
from profilelink.adapters.identity.base import IdentityProvider
from profilelink.core.config import settings
from profilelink.core.database import get_db
from profilelink.core.errors import ForbiddenError, UnauthorizedError
from profilelink.services.verification_store import (
    SqlVerificationStore,
    VerificationStore,
    get_in_memory_store,
)
from profilelink.services.verification_workflow import VerificationWorkflow

MANAGE_SERVER_PERMISSION = "manage_server"

DbSession = Annotated[AsyncSession, Depends(get_db)]


def require_dispatcher(
    x_api_key: Annotated[str | None, Header()] = None,
) -> None:
    """Check the dispatcher key.

    Security: constant-time comparison. An empty API_KEY disables the check
    (refused in production by Settings).

    Raises:
        UnauthorizedError: If the key is missing or wrong.
    """
    expected = settings.api_key.get_secret_value()
    if not expected:
        return
    if not x_api_key or not secrets.compare_digest(x_api_key, expected):
        raise UnauthorizedError()


def require_manager(
    _dispatcher: Annotated[None, Depends(require_dispatcher)],
    x_caller_permissions: Annotated[str | None, Header()] = None,
) -> None:
    """Check the caller holds the manage_server permission.

    Raises:
        ForbiddenError: If the permission is not listed.
    """
    granted = {
        permission.strip().lower()
        for permission in (x_caller_permissions or "").split(",")
        if permission.strip()
    }
    if MANAGE_SERVER_PERMISSION not in granted:
        raise ForbiddenError(
            "You need the Manage Server permission to use this command."
        )


def get_store(db: DbSession) -> VerificationStore:
    """Verification store for the configured backend."""
    if settings.store_backend == "memory":
        return get_in_memory_store()
    return SqlVerificationStore(db)


def get_chat() -> ChatPlatformClient:
    """Chat-platform client singleton."""
    return get_chat_client()


def get_identity() -> IdentityProvider:
    """External identity provider singleton."""
    return get_identity_provider()


Store = Annotated[VerificationStore, Depends(get_store)]
Chat = Annotated[ChatPlatformClient, Depends(get_chat)]
Identity = Annotated[IdentityProvider, Depends(get_identity)]


def get_workflow(store: Store, chat: Chat, identity: Identity) -> VerificationWorkflow:
    """Verification workflow bound to this request's store."""
    return VerificationWorkflow(
        store,
        chat,
        identity,
        scan_deadline_seconds=settings.scan_deadline_seconds,
    )


# Reusable type aliases for dependency injection
Workflow = Annotated[VerificationWorkflow, Depends(get_workflow)]
DispatcherAuth = Annotated[None, Depends(require_dispatcher)]
ManagerAuth = Annotated[None, Depends(require_manager)]
