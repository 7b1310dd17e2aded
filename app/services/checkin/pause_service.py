"""
Pause and resume of a check-in series.

A pause pushes every future, not-yet-completed occurrence of a series out
by N weeks and records the pause on the series' base assignment
(``pauseHistory``, used as a stack). Unpause pops the most recent pause
and shifts the same occurrences back.

Planning is pure (``plan_pause`` / ``plan_unpause``); the service applies a
plan as a single bulk write inside a transaction so a series is never left
half-shifted.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any, Sequence

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import UpdateOne

from common.database import transaction
from common.utils.exceptions import (
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from app.services.checkin.assignment_status import base_assignment, is_completed
from app.services.checkin.client_identity import ClientIdentityResolver
from app.services.checkin.window_evaluator import as_utc

logger = logging.getLogger(__name__)


@dataclass
class SeriesPlan:
    """Per-assignment update documents plus what the caller reports back."""

    updates: Dict[Any, Dict[str, Dict[str, Any]]] = field(default_factory=dict)
    shifted_count: int = 0
    pause_end: Optional[datetime] = None

    def _section(self, assignment_id: Any, operator: str) -> Dict[str, Any]:
        return self.updates.setdefault(assignment_id, {}).setdefault(operator, {})

    def set(self, assignment_id: Any, **fields: Any) -> None:
        self._section(assignment_id, "$set").update(fields)

    def push(self, assignment_id: Any, **fields: Any) -> None:
        self._section(assignment_id, "$push").update(fields)

    def pop_last(self, assignment_id: Any, field_name: str) -> None:
        self._section(assignment_id, "$pop")[field_name] = 1

    def to_operations(self) -> List[UpdateOne]:
        return [
            UpdateOne({"_id": assignment_id}, update)
            for assignment_id, update in self.updates.items()
        ]


def pause_base(series: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """
    The assignment holding the series' pause stack.

    Pause rewrites due dates, so the base is never picked by due date: the
    document already carrying pauseHistory wins, else week 1 in creation order.
    """
    for assignment in series:
        if assignment.get("pauseHistory"):
            return assignment
    return base_assignment(sorted(series, key=lambda doc: doc["_id"]))


def _shiftable(series: Sequence[Dict[str, Any]], now: datetime) -> List[Dict[str, Any]]:
    """Occurrences a pause or unpause moves: not completed and due at or after ``now``."""
    movable = []
    for assignment in series:
        due_date = as_utc(assignment.get("dueDate"))
        if due_date is None or due_date < now or is_completed(assignment):
            continue
        movable.append(assignment)
    return movable


def plan_pause(series: Sequence[Dict[str, Any]], pause_weeks: int, now: datetime) -> SeriesPlan:
    """
    Plan a pause of ``pause_weeks`` weeks starting at ``now``.

    Args:
        series: Every assignment of the series
        pause_weeks: Weeks to pause, at least 1
        now: Pause start

    Returns:
        SeriesPlan with shifted due dates and the new pause record
    """
    base = pause_base(series)
    shift = timedelta(weeks=pause_weeks)
    pause_end = now + shift

    plan = SeriesPlan(pause_end=pause_end)
    for assignment in _shiftable(series, now):
        plan.set(
            assignment["_id"],
            dueDate=as_utc(assignment["dueDate"]) + shift,
            pausedUntil=pause_end,
            updatedAt=now,
        )
        plan.shifted_count += 1

    plan.push(
        base["_id"],
        pauseHistory={
            "pauseStartDate": now,
            "pauseEndDate": pause_end,
            "pauseWeeks": pause_weeks,
            "pausedAt": now,
        },
    )
    plan.set(base["_id"], pausedUntil=pause_end, updatedAt=now)
    return plan


def plan_unpause(series: Sequence[Dict[str, Any]], now: datetime) -> SeriesPlan:
    """
    Plan undoing the most recent pause.

    Raises:
        InvalidStateException: The series has no active pause
    """
    base = pause_base(series)
    history = base.get("pauseHistory") or []

    if not history or not base.get("pausedUntil"):
        raise InvalidStateException(
            message="No active pause found for this series",
            code="NO_ACTIVE_PAUSE",
        )

    last_pause = history[-1]
    shift = timedelta(weeks=last_pause.get("pauseWeeks", 0))

    plan = SeriesPlan()
    for assignment in _shiftable(series, now):
        plan.set(
            assignment["_id"],
            dueDate=as_utc(assignment["dueDate"]) - shift,
            pausedUntil=None,
            updatedAt=now,
        )
        plan.shifted_count += 1

    previous_end = history[-2].get("pauseEndDate") if len(history) > 1 else None
    plan.pop_last(base["_id"], "pauseHistory")
    plan.set(base["_id"], pausedUntil=previous_end, updatedAt=now)
    return plan


class PauseService:
    """Applies pause and unpause plans to a client's series."""

    def __init__(self, db: AsyncIOMotorDatabase, identity_resolver: ClientIdentityResolver):
        """
        Initialize PauseService.

        Args:
            db: MongoDB database connection
            identity_resolver: Resolves client id aliases
        """
        self._db = db
        self._assignments_collection = db["check_in_assignments"]
        self._identity_resolver = identity_resolver

    async def _load_owned_series(
        self,
        client_id: str,
        form_id: str,
        acting_coach_id: str,
        is_admin: bool,
    ) -> List[Dict[str, Any]]:
        client = await self._identity_resolver.resolve(client_id)
        cursor = self._assignments_collection.find(
            {"clientId": {"$in": list(client.aliases)}, "formId": form_id}
        ).sort("dueDate", 1)
        series = await cursor.to_list(length=None)

        if not series:
            raise NotFoundException(
                message="No check-in assignments found for this client and form",
                code="SERIES_NOT_FOUND",
            )

        if not is_admin and any(doc.get("coachId") != acting_coach_id for doc in series):
            raise ForbiddenException(
                message="You can only manage check-ins for your own clients",
                code="PERMISSION_DENIED",
            )

        return series

    async def _apply(self, plan: SeriesPlan) -> None:
        operations = plan.to_operations()
        async with transaction(self._db) as session:
            await self._assignments_collection.bulk_write(operations, ordered=True, session=session)

    async def pause_series(
        self,
        client_id: str,
        form_id: str,
        pause_weeks: int,
        acting_coach_id: str,
        is_admin: bool = False,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Pause a series for ``pause_weeks`` weeks.

        Returns:
            Dict with updatedCount, pauseEndDate and a summary message

        Raises:
            ValidationException: pause_weeks < 1
            NotFoundException: No assignments for this client and form
            ForbiddenException: Series belongs to another coach
        """
        if isinstance(pause_weeks, bool) or not isinstance(pause_weeks, int) or pause_weeks < 1:
            raise ValidationException(
                message="pauseWeeks must be a whole number of at least 1",
                code="INVALID_PAUSE_WEEKS",
            )

        now = now or datetime.now(timezone.utc)
        series = await self._load_owned_series(client_id, form_id, acting_coach_id, is_admin)

        plan = plan_pause(series, pause_weeks, now)
        await self._apply(plan)

        logger.info(
            f"Paused series {form_id} for client {client_id} by {pause_weeks} week(s), "
            f"{plan.shifted_count} assignment(s) shifted"
        )
        return {
            "updatedCount": plan.shifted_count,
            "pauseEndDate": plan.pause_end,
            "message": (
                f"Successfully paused check-in series for {pause_weeks} week(s). "
                f"{plan.shifted_count} future check-in(s) have been extended."
            ),
        }

    async def unpause_series(
        self,
        client_id: str,
        form_id: str,
        acting_coach_id: str,
        is_admin: bool = False,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Undo the most recent pause of a series.

        Raises:
            NotFoundException: No assignments for this client and form
            ForbiddenException: Series belongs to another coach
            InvalidStateException: No active pause
        """
        now = now or datetime.now(timezone.utc)
        series = await self._load_owned_series(client_id, form_id, acting_coach_id, is_admin)

        plan = plan_unpause(series, now)
        await self._apply(plan)

        logger.info(
            f"Unpaused series {form_id} for client {client_id}, "
            f"{plan.shifted_count} assignment(s) shifted back"
        )
        return {
            "updatedCount": plan.shifted_count,
            "message": (
                f"Successfully resumed check-in series. "
                f"{plan.shifted_count} future check-in(s) have been moved back."
            ),
        }
