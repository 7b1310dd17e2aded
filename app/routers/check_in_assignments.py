"""
FastAPI router for check-in assignment endpoints.

Series management (allocate, pause, unpause, delete) and the per-assignment
transitions (submit, mark missed, open, reopen request, extension).
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from common.utils import success_response
from app.dependencies import (
    require_auth,
    require_client,
    require_client_or_admin,
    require_coach,
    get_identity_resolver,
    get_assignment_service,
    get_pause_service,
    get_reopen_service,
    get_series_service,
)
from app.services.checkin.assignment_service import AssignmentService
from app.services.checkin.client_identity import ClientIdentityResolver
from app.services.checkin.pause_service import PauseService
from app.services.checkin.reopen_service import ReopenService
from app.services.checkin.series_service import SeriesService
from app.schemas.checkin import (
    AllocateSeriesRequest,
    DeleteSeriesRequest,
    ExtensionRequest,
    MarkMissedRequest,
    PauseSeriesRequest,
    SeriesRequest,
    SubmitResponseRequest,
)
from app.pipelines import checkin as pipelines

router = APIRouter(prefix="/check-in-assignments", tags=["check-in-assignments"])


# ─────────────────────────────────────────────────────────────────
# Series
# ─────────────────────────────────────────────────────────────────

@router.post("")
async def allocate_series(
    body: AllocateSeriesRequest,
    user: Annotated[dict, Depends(require_coach)],
    identity_resolver: Annotated[ClientIdentityResolver, Depends(get_identity_resolver)],
    series_service: Annotated[SeriesService, Depends(get_series_service)],
):
    """
    Assign a recurring check-in form to a client.

    Creates one assignment per week; existing weeks are left untouched.
    """
    result = await pipelines.allocate_series_pipeline(
        identity_resolver=identity_resolver,
        series_service=series_service,
        actor=user,
        client_id=body.clientId,
        form_id=body.formId,
        form_title=body.formTitle,
        first_due_date=body.firstDueDate,
        total_weeks=body.totalWeeks,
        due_time=body.dueTime,
        window=body.checkInWindow.model_dump() if body.checkInWindow else None,
        coach_id=body.coachId,
    )
    return success_response(result, message=f"Created {result['createdCount']} check-in(s)")


@router.post("/series/pause")
async def pause_series(
    body: PauseSeriesRequest,
    user: Annotated[dict, Depends(require_coach)],
    pause_service: Annotated[PauseService, Depends(get_pause_service)],
):
    """Push every future check-in of a series out by pauseWeeks weeks."""
    result = await pipelines.pause_series_pipeline(
        pause_service=pause_service,
        actor=user,
        client_id=body.clientId,
        form_id=body.formId,
        pause_weeks=body.pauseWeeks,
    )
    return success_response(result, message=result["message"])


@router.post("/series/unpause")
async def unpause_series(
    body: SeriesRequest,
    user: Annotated[dict, Depends(require_coach)],
    pause_service: Annotated[PauseService, Depends(get_pause_service)],
):
    """Undo the most recent pause of a series."""
    result = await pipelines.unpause_series_pipeline(
        pause_service=pause_service,
        actor=user,
        client_id=body.clientId,
        form_id=body.formId,
    )
    return success_response(result, message=result["message"])


@router.delete("/series")
async def delete_series(
    body: DeleteSeriesRequest,
    user: Annotated[dict, Depends(require_coach)],
    series_service: Annotated[SeriesService, Depends(get_series_service)],
):
    """
    Delete a client's series for a form.

    Completed check-ins are preserved unless preserveHistory is false.
    """
    result = await pipelines.delete_series_pipeline(
        series_service=series_service,
        actor=user,
        client_id=body.clientId,
        form_id=body.formId,
        preserve_history=body.preserveHistory,
    )
    return success_response(result, message=result["message"])


# ─────────────────────────────────────────────────────────────────
# Single assignment
# ─────────────────────────────────────────────────────────────────

@router.get("/{assignment_id}")
async def get_assignment(
    assignment_id: str,
    user: Annotated[dict, Depends(require_auth)],
    identity_resolver: Annotated[ClientIdentityResolver, Depends(get_identity_resolver)],
    assignment_service: Annotated[AssignmentService, Depends(get_assignment_service)],
):
    """Get one assignment with its display status and window state."""
    result = await pipelines.get_assignment_pipeline(
        identity_resolver=identity_resolver,
        assignment_service=assignment_service,
        actor=user,
        assignment_id=assignment_id,
    )
    return success_response(result)


@router.post("/{assignment_id}/submit")
async def submit_response(
    assignment_id: str,
    body: SubmitResponseRequest,
    user: Annotated[dict, Depends(require_client_or_admin)],
    assignment_service: Annotated[AssignmentService, Depends(get_assignment_service)],
):
    """
    Record a submitted response.

    Rejected when the check-in is already completed or its window is
    closed without an extension.
    """
    result = await pipelines.submit_response_pipeline(
        assignment_service=assignment_service,
        actor=user,
        assignment_id=assignment_id,
        response_id=body.responseId,
        score=body.score,
    )
    return success_response(result, message="Check-in completed")


@router.post("/{assignment_id}/mark-missed")
async def mark_missed(
    assignment_id: str,
    body: MarkMissedRequest,
    user: Annotated[dict, Depends(require_client)],
    assignment_service: Annotated[AssignmentService, Depends(get_assignment_service)],
):
    """Mark an overdue check-in as missed, with a reason."""
    result = await pipelines.mark_missed_pipeline(
        assignment_service=assignment_service,
        actor=user,
        assignment_id=assignment_id,
        reason=body.reason,
        comment=body.comment,
    )
    return success_response(result, message="Check-in marked as missed")


@router.post("/{assignment_id}/open-for-check-in")
async def open_for_check_in(
    assignment_id: str,
    user: Annotated[dict, Depends(require_coach)],
    reopen_service: Annotated[ReopenService, Depends(get_reopen_service)],
):
    """Coach grants an extension so the client can submit again."""
    result = await pipelines.open_for_checkin_pipeline(
        reopen_service=reopen_service,
        actor=user,
        assignment_id=assignment_id,
    )
    return success_response(result, message="Check-in opened for the client")


@router.post("/{assignment_id}/request-reopen")
async def request_reopen(
    assignment_id: str,
    user: Annotated[dict, Depends(require_client)],
    reopen_service: Annotated[ReopenService, Depends(get_reopen_service)],
):
    """Ask the coach, by message, to reopen a missed check-in."""
    result = await pipelines.request_reopen_pipeline(
        reopen_service=reopen_service,
        actor=user,
        assignment_id=assignment_id,
    )
    return success_response(result, message="Your coach has been asked to reopen this check-in")


@router.post("/{assignment_id}/extension")
async def request_extension(
    assignment_id: str,
    body: ExtensionRequest,
    user: Annotated[dict, Depends(require_client)],
    reopen_service: Annotated[ReopenService, Depends(get_reopen_service)],
):
    """Request more time for a check-in; granted automatically."""
    result = await pipelines.request_extension_pipeline(
        reopen_service=reopen_service,
        actor=user,
        assignment_id=assignment_id,
        reason=body.reason,
    )
    return success_response(result, message="Extension granted")
