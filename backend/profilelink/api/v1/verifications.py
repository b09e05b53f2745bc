"""Member verification endpoints.

    POST   /servers/{server_id}/verifications                      start
    POST   /servers/{server_id}/verifications/{subject_id}/check   check
    POST   /servers/{server_id}/verifications/{subject_id}/update  update
    GET    /servers/{server_id}/verifications/{subject_id}         status
    DELETE /servers/{server_id}/verifications/{subject_id}         reset (manager)

Response envelopes: {"data": ...}; errors use the standard error envelope.
"""

from typing import Annotated

from fastapi import APIRouter, Path, Query, Request, Response, status

from profilelink.api.deps import DispatcherAuth, ManagerAuth, Workflow
from profilelink.core.config import settings
from profilelink.core.rate_limiting import limiter
from profilelink.core.responses import DataResponse
from profilelink.schemas.verification import (
    CheckVerificationResponse,
    CompletionResponse,
    ExternalAccountResponse,
    MemberActionRequest,
    PendingVerificationResponse,
    StartVerificationRequest,
    StartVerificationResponse,
    VerificationStatusResponse,
    VerifiedLinkResponse,
)
from profilelink.services.verification_workflow import StartResult

router = APIRouter()

ServerId = Annotated[str, Path(min_length=1, max_length=32)]
SubjectId = Annotated[str, Path(min_length=1, max_length=32)]


def _start_response(result: StartResult) -> StartVerificationResponse:
    return StartVerificationResponse(
        pending=PendingVerificationResponse.from_pending(result.pending),
        preview=(
            ExternalAccountResponse.from_account(result.preview)
            if result.preview
            else None
        ),
        reverification=result.reverification,
    )


@router.post("/{server_id}/verifications", status_code=status.HTTP_201_CREATED)
async def start_verification(
    _auth: DispatcherAuth,
    workflow: Workflow,
    server_id: ServerId,
    body: StartVerificationRequest,
) -> DataResponse[StartVerificationResponse]:
    """Issue a verification code for a member.

    Raises:
        ConflictError: ALREADY_VERIFIED when reverification is disabled (409).
    """
    result = await workflow.start(
        server_id, body.subject_id, body.display_name, body.username_hint
    )
    return DataResponse(data=_start_response(result))


@router.post("/{server_id}/verifications/{subject_id}/check")
@limiter.limit(settings.rate_limit_check)
async def check_verification(
    request: Request,  # noqa: ARG001 - Required by rate limiter
    _auth: DispatcherAuth,
    workflow: Workflow,
    server_id: ServerId,
    subject_id: SubjectId,
    body: MemberActionRequest,
) -> DataResponse[CheckVerificationResponse]:
    """Check the member's external profile for their code.

    Security: Rate limited per member; each check fans out to several
    external API calls.

    Raises:
        NotFoundError: No pending verification and no link (404).
        ExpiredError: The code expired (410).
        TransientUpstreamError: External API unreachable (503).
    """
    result = await workflow.check(server_id, subject_id, body.display_name)
    return DataResponse(
        data=CheckVerificationResponse(
            outcome=result.outcome.value,
            link=VerifiedLinkResponse.from_link(result.link) if result.link else None,
            pending=(
                PendingVerificationResponse.from_pending(result.pending)
                if result.pending
                else None
            ),
            completion=(
                CompletionResponse.from_report(result.report) if result.report else None
            ),
        )
    )


@router.post("/{server_id}/verifications/{subject_id}/update")
async def update_verification(
    _auth: DispatcherAuth,
    workflow: Workflow,
    server_id: ServerId,
    subject_id: SubjectId,
    body: MemberActionRequest,
) -> DataResponse[StartVerificationResponse]:
    """Start reverification for a linked member.

    Raises:
        NotFoundError: The member is not verified (404).
    """
    result = await workflow.update(server_id, subject_id, body.display_name)
    return DataResponse(data=_start_response(result))


@router.get("/{server_id}/verifications/{subject_id}")
async def get_verification_status(
    _auth: DispatcherAuth,
    workflow: Workflow,
    server_id: ServerId,
    subject_id: SubjectId,
) -> DataResponse[VerificationStatusResponse]:
    """Read a member's verification state."""
    view = await workflow.status(server_id, subject_id)
    return DataResponse(
        data=VerificationStatusResponse(
            verified=view.link is not None,
            link=VerifiedLinkResponse.from_link(view.link) if view.link else None,
            pending=(
                PendingVerificationResponse.from_pending(view.pending)
                if view.pending
                else None
            ),
            pending_expired=view.pending_expired,
        )
    )


@router.delete(
    "/{server_id}/verifications/{subject_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def reset_verification(
    _auth: ManagerAuth,
    workflow: Workflow,
    server_id: ServerId,
    subject_id: SubjectId,
    actor: Annotated[str, Query(min_length=1, max_length=100)],
    display_name: Annotated[str, Query(max_length=100)] = "",
) -> Response:
    """Force a member to verify again.

    Raises:
        NotFoundError: The member has nothing to reset (404).
    """
    await workflow.reset(server_id, subject_id, display_name or subject_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
