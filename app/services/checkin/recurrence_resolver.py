"""
Recurrence resolution.

Maps "(client, form, which week)" to exactly one assignment, creating the
occurrence on first access. An occurrence is identified either by the
Monday of the reflected-on week (week-start keyed) or by its 1-based week
number in the series (due-date keyed). The two never share documents:
week-start keyed documents carry ``reflectionWeekStart`` and are ignored by
week-number lookups.

Lookups always search across every id the client is known by before
creating anything. The unique ``(clientId, formId, recurrenceKey)`` index
catches the remaining race between two concurrent first accesses.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, List, Dict, Any, Sequence, Union

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from common.utils.exceptions import ConflictException, NotFoundException, ValidationException
from app.services.checkin.assignment_status import (
    MISSED,
    PENDING,
    base_assignment,
    is_completed,
    stored_status,
)
from app.services.checkin.client_identity import ClientIdentityResolver
from app.services.checkin.window_evaluator import WindowPolicy, as_utc

logger = logging.getLogger(__name__)

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class WeekStartKeyed:
    """Occurrence for the week starting on ``monday``."""

    monday: date

    @property
    def key(self) -> str:
        return f"weekStart:{self.monday.isoformat()}"


@dataclass(frozen=True)
class DueDateKeyed:
    """Occurrence number ``week`` (1-based) of the series."""

    week: int

    @property
    def key(self) -> str:
        return f"week:{self.week}"


RecurrenceIdentity = Union[WeekStartKeyed, DueDateKeyed]


def parse_week_start(value: Optional[str]) -> date:
    """
    Parse a ``YYYY-MM-DD`` week start, which must be a Monday.

    Raises:
        ValidationException: Missing, malformed or not a Monday
    """
    try:
        parsed = date.fromisoformat((value or "")[:10])
    except ValueError:
        raise ValidationException(
            message="weekStart must be a date in YYYY-MM-DD format",
            code="INVALID_WEEK_START",
        )

    if parsed.weekday() != 0:
        raise ValidationException(
            message="weekStart must be a Monday",
            code="INVALID_WEEK_START",
        )
    return parsed


def _reflection_week(assignment: Dict[str, Any]) -> Optional[str]:
    value = assignment.get("reflectionWeekStart")
    if not value:
        return None
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    return str(value)[:10]


def match_occurrence(
    series: Sequence[Dict[str, Any]],
    identity: RecurrenceIdentity,
) -> Optional[Dict[str, Any]]:
    """The assignment in ``series`` that represents ``identity``, if any."""
    if isinstance(identity, WeekStartKeyed):
        wanted = identity.monday.isoformat()
        for assignment in series:
            if _reflection_week(assignment) == wanted:
                return assignment
        return None

    for assignment in series:
        if _reflection_week(assignment) is None and assignment.get("recurringWeek", 1) == identity.week:
            return assignment
    return None


class RecurrenceResolver:
    """Finds or creates the assignment for one week of a client's series."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        identity_resolver: ClientIdentityResolver,
        policy: WindowPolicy,
        week_due_hour: int = 9,
    ):
        """
        Initialize RecurrenceResolver.

        Args:
            db: MongoDB database connection
            identity_resolver: Resolves client id aliases
            policy: Supplies the local timezone for generated due dates
            week_due_hour: Local hour at which week-start keyed check-ins are due
        """
        self._db = db
        self._assignments_collection = db["check_in_assignments"]
        self._identity_resolver = identity_resolver
        self._policy = policy
        self._week_due_hour = week_due_hour

    async def _load_series(self, aliases: Sequence[str], form_id: str) -> List[Dict[str, Any]]:
        """Every assignment of the series under any alias, deduplicated, by due date."""
        cursor = self._assignments_collection.find(
            {"clientId": {"$in": list(aliases)}, "formId": form_id}
        )
        documents = await cursor.to_list(length=None)

        unique: Dict[str, Dict[str, Any]] = {}
        for doc in documents:
            unique.setdefault(str(doc["_id"]), doc)

        return sorted(
            unique.values(),
            key=lambda doc: as_utc(doc.get("dueDate")) or _FAR_FUTURE,
        )

    def _build_week_start(
        self,
        series: List[Dict[str, Any]],
        identity: WeekStartKeyed,
        now: datetime,
    ) -> Dict[str, Any]:
        template = series[0]
        due_date = self._policy.localize(
            identity.monday + timedelta(weeks=1),
            time(self._week_due_hour),
        )
        return {
            "formId": template.get("formId"),
            "formTitle": template.get("formTitle", ""),
            "clientId": template.get("clientId"),
            "coachId": template.get("coachId"),
            "reflectionWeekStart": identity.monday.isoformat(),
            "recurrenceKey": identity.key,
            "dueDate": due_date,
            "dueTime": f"{self._week_due_hour:02d}:00",
            "checkInWindow": None,
            "status": PENDING,
            "isRecurring": template.get("isRecurring", True),
            "recurringWeek": 1,
            "totalWeeks": template.get("totalWeeks", 1),
            "completedAt": None,
            "responseId": None,
            "assignedAt": now,
            "createdAt": now,
            "updatedAt": now,
        }

    def _build_due_date(
        self,
        series: List[Dict[str, Any]],
        identity: DueDateKeyed,
        now: datetime,
    ) -> Dict[str, Any]:
        base = base_assignment([doc for doc in series if _reflection_week(doc) is None])
        if base is None or as_utc(base.get("dueDate")) is None:
            raise NotFoundException(
                message="No check-in assigned for this type. Ask your coach to assign this form.",
                code="SERIES_NOT_FOUND",
            )

        total_weeks = base.get("totalWeeks") or 1
        if identity.week < 1 or identity.week > total_weeks:
            raise ValidationException(
                message=f"Week must be between 1 and {total_weeks}",
                code="WEEK_OUT_OF_RANGE",
            )

        base_week = base.get("recurringWeek", 1)
        due_date = as_utc(base["dueDate"]) + timedelta(weeks=identity.week - base_week)
        return {
            "formId": base.get("formId"),
            "formTitle": base.get("formTitle", ""),
            "clientId": base.get("clientId"),
            "coachId": base.get("coachId"),
            "recurrenceKey": identity.key,
            "dueDate": due_date,
            "dueTime": base.get("dueTime"),
            "checkInWindow": base.get("checkInWindow"),
            "status": PENDING,
            "isRecurring": True,
            "recurringWeek": identity.week,
            "totalWeeks": total_weeks,
            "completedAt": None,
            "responseId": None,
            "assignedAt": now,
            "createdAt": now,
            "updatedAt": now,
        }

    async def resolve(
        self,
        client_id: str,
        form_id: str,
        identity: RecurrenceIdentity,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Find or create the assignment for ``identity``.

        Calling this twice with the same arguments returns the same document.

        Raises:
            NotFoundException: Client has no assignment for the form at all
            ConflictException: Concurrent creation left no readable winner
        """
        now = now or datetime.now(timezone.utc)
        client = await self._identity_resolver.resolve(client_id)

        series = await self._load_series(client.aliases, form_id)
        if not series:
            raise NotFoundException(
                message="No check-in assigned for this type. Ask your coach to assign this form.",
                code="SERIES_NOT_FOUND",
            )

        existing = match_occurrence(series, identity)
        if existing:
            logger.debug(f"Resolved {identity.key} for client {client.canonical_id} to {existing['_id']}")
            return existing

        if isinstance(identity, WeekStartKeyed):
            new_doc = self._build_week_start(series, identity, now)
        else:
            new_doc = self._build_due_date(series, identity, now)

        try:
            result = await self._assignments_collection.insert_one(new_doc)
        except DuplicateKeyError:
            logger.warning(
                f"Concurrent creation of {identity.key} for client {client.canonical_id}, re-reading"
            )
            existing = match_occurrence(await self._load_series(client.aliases, form_id), identity)
            if existing:
                return existing
            raise ConflictException(
                message="Check-in was created concurrently, please retry",
                code="ASSIGNMENT_CONFLICT",
            )

        new_doc["_id"] = result.inserted_id
        logger.info(
            f"Created check-in assignment {result.inserted_id} ({identity.key}) "
            f"for client {client.canonical_id}, form {form_id}"
        )
        return new_doc

    async def resolve_week(
        self,
        client_id: str,
        form_id: str,
        week_start: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Find or create the assignment reflecting on the week starting ``week_start``."""
        monday = parse_week_start(week_start)
        return await self.resolve(client_id, form_id, WeekStartKeyed(monday), now)

    async def next_occurrence(
        self,
        client_id: str,
        form_id: str,
        now: Optional[datetime] = None,
    ) -> Optional[Dict[str, Any]]:
        """The open assignment with the nearest due date at or after ``now``."""
        now = now or datetime.now(timezone.utc)
        client = await self._identity_resolver.resolve(client_id)
        series = await self._load_series(client.aliases, form_id)

        for assignment in series:
            due_date = as_utc(assignment.get("dueDate"))
            if due_date is None or due_date < now:
                continue
            if is_completed(assignment) or stored_status(assignment) == MISSED:
                continue
            return assignment
        return None
