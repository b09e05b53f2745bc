"""Server administration endpoints.

All routes require the manage_server permission.

    GET   /servers/{server_id}/policy
    PATCH /servers/{server_id}/policy
    POST  /servers/{server_id}/policy/roles
    PATCH /servers/{server_id}/settings
    POST  /servers/{server_id}/setup
    GET   /servers/{server_id}/audit-log?limit=
"""

from typing import Annotated

from fastapi import APIRouter, Path, Query

from profilelink.api.deps import ManagerAuth, Workflow
from profilelink.core.responses import DataResponse, ListResponse
from profilelink.schemas.verification import (
    AddRoleRequest,
    AuditEntryResponse,
    PolicyResponse,
    PolicyUpdate,
    SettingsUpdate,
    SetupRequest,
)
from profilelink.services.audit_logger import DEFAULT_RECENT_LIMIT, MAX_RECENT_LIMIT

router = APIRouter()

ServerId = Annotated[str, Path(min_length=1, max_length=32)]
AuditLimit = Annotated[
    int,
    Query(ge=1, le=MAX_RECENT_LIMIT, description="Number of entries (newest first)"),
]


@router.get("/{server_id}/policy")
async def get_policy(
    _auth: ManagerAuth,
    workflow: Workflow,
    server_id: ServerId,
) -> DataResponse[PolicyResponse]:
    """Resolved policy; defaults when the server has none stored."""
    policy = await workflow.resolver.resolve(server_id)
    return DataResponse(data=PolicyResponse.from_policy(policy))


@router.patch("/{server_id}/policy")
async def update_policy(
    _auth: ManagerAuth,
    workflow: Workflow,
    server_id: ServerId,
    body: PolicyUpdate,
) -> DataResponse[PolicyResponse]:
    """Merge the fields present in the body into the stored policy."""
    policy = await workflow.resolver.upsert(
        server_id, **body.model_dump(exclude_unset=True)
    )
    return DataResponse(data=PolicyResponse.from_policy(policy))


@router.post("/{server_id}/policy/roles")
async def add_verification_role(
    _auth: ManagerAuth,
    workflow: Workflow,
    server_id: ServerId,
    body: AddRoleRequest,
) -> DataResponse[PolicyResponse]:
    """Add a role granted on verification."""
    policy = await workflow.resolver.add_verification_role(server_id, body.role_id)
    return DataResponse(data=PolicyResponse.from_policy(policy))


@router.patch("/{server_id}/settings")
async def update_settings(
    _auth: ManagerAuth,
    workflow: Workflow,
    server_id: ServerId,
    body: SettingsUpdate,
) -> DataResponse[PolicyResponse]:
    """Change behaviour flags.

    Raises:
        ValidationError: No flag given (400).
    """
    policy = await workflow.update_settings(
        server_id,
        auto_kick_unverified=body.auto_kick_unverified,
        dm_on_verification=body.dm_on_verification,
        allow_reverification=body.allow_reverification,
    )
    return DataResponse(data=PolicyResponse.from_policy(policy))


@router.post("/{server_id}/setup")
async def setup_server(
    _auth: ManagerAuth,
    workflow: Workflow,
    server_id: ServerId,
    body: SetupRequest,
) -> DataResponse[PolicyResponse]:
    """Quick setup of the verification role and channel."""
    policy = await workflow.setup(
        server_id,
        verification_role_id=body.verification_role_id,
        verification_channel_id=body.verification_channel_id,
        unverified_role_id=body.unverified_role_id,
        actor_id=body.actor_id,
        actor_name=body.actor_name,
    )
    return DataResponse(data=PolicyResponse.from_policy(policy))


@router.get("/{server_id}/audit-log")
async def list_audit_log(
    _auth: ManagerAuth,
    workflow: Workflow,
    server_id: ServerId,
    limit: AuditLimit = DEFAULT_RECENT_LIMIT,
) -> ListResponse[AuditEntryResponse]:
    """Most recent verification audit entries."""
    entries = await workflow.audit.recent(server_id, limit)
    return ListResponse(data=[AuditEntryResponse.from_entry(e) for e in entries])
