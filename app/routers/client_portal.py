"""
FastAPI router for the client portal check-in endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from common.utils import success_response
from app.dependencies import (
    require_auth,
    get_identity_resolver,
    get_assignment_service,
    get_recurrence_resolver,
)
from app.services.checkin.assignment_service import AssignmentService
from app.services.checkin.client_identity import ClientIdentityResolver
from app.services.checkin.recurrence_resolver import RecurrenceResolver
from app.schemas.checkin import ResolveCheckInRequest
from app.pipelines import checkin as pipelines

router = APIRouter(prefix="/client-portal", tags=["client-portal"])


@router.get("/check-ins")
async def list_check_ins(
    user: Annotated[dict, Depends(require_auth)],
    identity_resolver: Annotated[ClientIdentityResolver, Depends(get_identity_resolver)],
    assignment_service: Annotated[AssignmentService, Depends(get_assignment_service)],
    clientId: str = Query(..., min_length=1),
):
    """
    List a client's check-ins.

    Every assignment carries a derived displayStatus and the current
    window state; summary counts are included.
    """
    result = await pipelines.list_client_checkins_pipeline(
        identity_resolver=identity_resolver,
        assignment_service=assignment_service,
        actor=user,
        client_id=clientId,
    )
    return success_response(result)


@router.get("/check-ins/next")
async def next_check_in(
    user: Annotated[dict, Depends(require_auth)],
    identity_resolver: Annotated[ClientIdentityResolver, Depends(get_identity_resolver)],
    resolver: Annotated[RecurrenceResolver, Depends(get_recurrence_resolver)],
    assignment_service: Annotated[AssignmentService, Depends(get_assignment_service)],
    clientId: str = Query(..., min_length=1),
    formId: str = Query(..., min_length=1),
):
    """Next open check-in of a series."""
    result = await pipelines.next_checkin_pipeline(
        identity_resolver=identity_resolver,
        resolver=resolver,
        assignment_service=assignment_service,
        actor=user,
        client_id=clientId,
        form_id=formId,
    )
    return success_response(result)


@router.post("/check-in-resolve")
async def resolve_check_in(
    body: ResolveCheckInRequest,
    user: Annotated[dict, Depends(require_auth)],
    identity_resolver: Annotated[ClientIdentityResolver, Depends(get_identity_resolver)],
    resolver: Annotated[RecurrenceResolver, Depends(get_recurrence_resolver)],
):
    """
    Resolve (client, form, week start) to an assignment id.

    Creates the week's assignment on first access.
    """
    result = await pipelines.resolve_checkin_pipeline(
        identity_resolver=identity_resolver,
        resolver=resolver,
        actor=user,
        client_id=body.clientId,
        form_id=body.formId,
        week_start=body.weekStart,
    )
    return success_response(result)
