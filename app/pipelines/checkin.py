"""
Check-in assignment pipeline functions.

Stateless orchestration between the routers and the check-in services:
access checks, service calls, and conversion of stored documents into
JSON-ready dicts.
"""

import logging
from datetime import date, datetime
from typing import Optional, Dict, Any

from bson import ObjectId

from common.utils.exceptions import ForbiddenException
from app.pipelines.access import ensure_client_access, is_admin
from app.services.checkin.assignment_service import AssignmentService
from app.services.checkin.client_identity import ClientIdentityResolver
from app.services.checkin.pause_service import PauseService
from app.services.checkin.recurrence_resolver import RecurrenceResolver
from app.services.checkin.reopen_service import ReopenService
from app.services.checkin.series_service import SeriesService

logger = logging.getLogger(__name__)


def serialize_document(value: Any) -> Any:
    """Recursively convert ObjectIds and datetimes into JSON-friendly values."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: serialize_document(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_document(item) for item in value]
    return value


def format_assignment(assignment: Dict[str, Any]) -> Dict[str, Any]:
    """Format an (annotated) assignment document for API responses."""
    data = serialize_document(assignment)
    data["id"] = data.pop("_id", None)
    return data


# ─────────────────────────────────────────────────────────────────
# Client portal
# ─────────────────────────────────────────────────────────────────

async def list_client_checkins_pipeline(
    identity_resolver: ClientIdentityResolver,
    assignment_service: AssignmentService,
    actor: Dict[str, Any],
    client_id: str,
) -> Dict[str, Any]:
    """
    List a client's check-ins with display status and window state.

    Args:
        identity_resolver: For access checks
        assignment_service: For assignment reads
        actor: Acting user
        client_id: Client document id or auth uid

    Returns:
        Dict with formatted assignments and summary counts
    """
    await ensure_client_access(identity_resolver, actor, client_id)
    result = await assignment_service.list_assignments(client_id)

    return {
        "assignments": [format_assignment(a) for a in result["assignments"]],
        "summary": result["summary"],
    }


async def resolve_checkin_pipeline(
    identity_resolver: ClientIdentityResolver,
    resolver: RecurrenceResolver,
    actor: Dict[str, Any],
    client_id: str,
    form_id: str,
    week_start: str,
) -> Dict[str, Any]:
    """Map (client, form, week start) to an assignment id, creating it if needed."""
    await ensure_client_access(identity_resolver, actor, client_id)
    assignment = await resolver.resolve_week(client_id, form_id, week_start)

    return {
        "assignmentId": str(assignment["_id"]),
        "title": assignment.get("formTitle", ""),
    }


async def next_checkin_pipeline(
    identity_resolver: ClientIdentityResolver,
    resolver: RecurrenceResolver,
    assignment_service: AssignmentService,
    actor: Dict[str, Any],
    client_id: str,
    form_id: str,
) -> Dict[str, Any]:
    """The client's next open check-in of a series, if any."""
    await ensure_client_access(identity_resolver, actor, client_id)
    assignment = await resolver.next_occurrence(client_id, form_id)

    if assignment is None:
        return {"assignment": None}

    annotated = await assignment_service.get_assignment(str(assignment["_id"]))
    return {"assignment": format_assignment(annotated)}


# ─────────────────────────────────────────────────────────────────
# Single assignment
# ─────────────────────────────────────────────────────────────────

async def get_assignment_pipeline(
    identity_resolver: ClientIdentityResolver,
    assignment_service: AssignmentService,
    actor: Dict[str, Any],
    assignment_id: str,
) -> Dict[str, Any]:
    assignment = await assignment_service.get_assignment(assignment_id)
    await ensure_client_access(identity_resolver, actor, assignment.get("clientId"))
    return format_assignment(assignment)


async def submit_response_pipeline(
    assignment_service: AssignmentService,
    actor: Dict[str, Any],
    assignment_id: str,
    response_id: str,
    score: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Record a client's submitted response.

    Admins may submit on a client's behalf; everyone else must own the
    assignment.
    """
    client_id = None if is_admin(actor) else actor["id"]

    assignment = await assignment_service.submit_response(
        assignment_id=assignment_id,
        response_id=response_id,
        score=score,
        client_id=client_id,
    )
    return format_assignment(assignment)


async def mark_missed_pipeline(
    assignment_service: AssignmentService,
    actor: Dict[str, Any],
    assignment_id: str,
    reason: str,
    comment: Optional[str] = None,
) -> Dict[str, Any]:
    assignment = await assignment_service.mark_missed(
        assignment_id=assignment_id,
        client_id=actor["id"],
        reason=reason,
        comment=comment,
    )
    return format_assignment(assignment)


async def open_for_checkin_pipeline(
    reopen_service: ReopenService,
    actor: Dict[str, Any],
    assignment_id: str,
) -> Dict[str, Any]:
    assignment = await reopen_service.open_for_check_in(
        assignment_id=assignment_id,
        acting_user_id=actor["id"],
        is_admin=is_admin(actor),
    )
    return format_assignment(assignment)


async def request_reopen_pipeline(
    reopen_service: ReopenService,
    actor: Dict[str, Any],
    assignment_id: str,
) -> Dict[str, Any]:
    result = await reopen_service.request_reopen(assignment_id, actor["id"])
    return serialize_document(result)


async def request_extension_pipeline(
    reopen_service: ReopenService,
    actor: Dict[str, Any],
    assignment_id: str,
    reason: str,
) -> Dict[str, Any]:
    return await reopen_service.request_extension(assignment_id, actor["id"], reason)


# ─────────────────────────────────────────────────────────────────
# Series management
# ─────────────────────────────────────────────────────────────────

async def allocate_series_pipeline(
    identity_resolver: ClientIdentityResolver,
    series_service: SeriesService,
    actor: Dict[str, Any],
    client_id: str,
    form_id: str,
    form_title: str,
    first_due_date: date,
    total_weeks: Optional[int] = None,
    due_time: str = "09:00",
    window: Optional[Dict[str, Any]] = None,
    coach_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Assign a recurring check-in form to a client.

    Coaches allocate for their own clients; admins may name the coach.
    """
    identity = await ensure_client_access(identity_resolver, actor, client_id)

    if coach_id and coach_id != actor["id"] and not is_admin(actor):
        raise ForbiddenException(
            message="You can only assign check-ins as yourself",
            code="PERMISSION_DENIED",
        )

    if is_admin(actor):
        coach_id = coach_id or identity.coach_id
    else:
        coach_id = actor["id"]

    return await series_service.allocate_series(
        client_id=identity.canonical_id,
        coach_id=coach_id,
        form_id=form_id,
        form_title=form_title,
        first_due_date=first_due_date,
        total_weeks=total_weeks,
        due_time=due_time,
        window=window,
    )


async def pause_series_pipeline(
    pause_service: PauseService,
    actor: Dict[str, Any],
    client_id: str,
    form_id: str,
    pause_weeks: int,
) -> Dict[str, Any]:
    result = await pause_service.pause_series(
        client_id=client_id,
        form_id=form_id,
        pause_weeks=pause_weeks,
        acting_coach_id=actor["id"],
        is_admin=is_admin(actor),
    )
    return serialize_document(result)


async def unpause_series_pipeline(
    pause_service: PauseService,
    actor: Dict[str, Any],
    client_id: str,
    form_id: str,
) -> Dict[str, Any]:
    return await pause_service.unpause_series(
        client_id=client_id,
        form_id=form_id,
        acting_coach_id=actor["id"],
        is_admin=is_admin(actor),
    )


async def delete_series_pipeline(
    series_service: SeriesService,
    actor: Dict[str, Any],
    client_id: str,
    form_id: str,
    preserve_history: bool = True,
) -> Dict[str, Any]:
    return await series_service.delete_series(
        client_id=client_id,
        form_id=form_id,
        acting_coach_id=actor["id"],
        preserve_history=preserve_history,
        is_admin=is_admin(actor),
    )


async def cleanup_precreated_pipeline(
    series_service: SeriesService,
    dry_run: bool = False,
) -> Dict[str, Any]:
    summary = await series_service.cleanup_precreated(dry_run=dry_run)
    logger.info(f"Pre-created check-in cleanup finished (dryRun={dry_run}): {summary['deleted']} deleted")
    return summary
