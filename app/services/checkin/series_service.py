"""
Check-in series management.

Coach-side lifecycle of a whole (client, form) series: allocation of the
weekly occurrences, deletion of a series, and the admin cleanup that
removes pre-created placeholder occurrences now that the recurrence
resolver creates weeks on demand.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional, List, Dict, Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import BulkWriteError

from common.database import transaction
from common.utils.exceptions import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from app.services.checkin.assignment_status import PENDING, is_completed
from app.services.checkin.client_identity import ClientIdentityResolver
from app.services.checkin.recurrence_resolver import DueDateKeyed, match_occurrence
from app.services.checkin.window_evaluator import (
    DEFAULT_CHECK_IN_WINDOW,
    CheckInWindow,
    WindowPolicy,
    as_utc,
    parse_time,
)

logger = logging.getLogger(__name__)

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class SeriesService:
    """Allocates, deletes and cleans up check-in series."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        identity_resolver: ClientIdentityResolver,
        policy: WindowPolicy,
        default_total_weeks: int = 52,
        cleanup_batch_size: int = 500,
    ):
        """
        Initialize SeriesService.

        Args:
            db: MongoDB database connection
            identity_resolver: Resolves client id aliases
            policy: Supplies the local timezone for due dates
            default_total_weeks: Series length when none is given
            cleanup_batch_size: Deletes per round trip during cleanup
        """
        self._db = db
        self._assignments_collection = db["check_in_assignments"]
        self._responses_collection = db["formResponses"]
        self._identity_resolver = identity_resolver
        self._policy = policy
        self._default_total_weeks = default_total_weeks
        self._cleanup_batch_size = cleanup_batch_size

    async def _find_series(self, aliases, form_id: str) -> List[Dict[str, Any]]:
        cursor = self._assignments_collection.find(
            {"clientId": {"$in": list(aliases)}, "formId": form_id}
        )
        return await cursor.to_list(length=None)

    async def allocate_series(
        self,
        client_id: str,
        coach_id: str,
        form_id: str,
        form_title: str,
        first_due_date: date,
        total_weeks: Optional[int] = None,
        due_time: str = "09:00",
        window: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Assign a weekly check-in form to a client.

        Creates weeks 1..total_weeks, seven days apart, skipping any week
        that already exists for the client under any of their ids.

        Returns:
            Dict with createdCount, skippedCount and the created assignment ids

        Raises:
            ValidationException: Bad week count, due time or window
        """
        now = now or datetime.now(timezone.utc)
        total_weeks = total_weeks or self._default_total_weeks

        if total_weeks < 1:
            raise ValidationException(
                message="totalWeeks must be at least 1",
                code="INVALID_TOTAL_WEEKS",
            )

        try:
            due_at = parse_time(due_time)
        except ValueError as e:
            raise ValidationException(message=str(e), code="INVALID_DUE_TIME")

        check_in_window = DEFAULT_CHECK_IN_WINDOW
        if window is not None:
            check_in_window = CheckInWindow(
                enabled=bool(window.get("enabled", True)),
                start_day=str(window.get("startDay", DEFAULT_CHECK_IN_WINDOW.start_day)).lower(),
                start_time=str(window.get("startTime", DEFAULT_CHECK_IN_WINDOW.start_time)),
                end_day=str(window.get("endDay", DEFAULT_CHECK_IN_WINDOW.end_day)).lower(),
                end_time=str(window.get("endTime", DEFAULT_CHECK_IN_WINDOW.end_time)),
            )
            is_valid, error = check_in_window.validate()
            if not is_valid:
                raise ValidationException(message=error, code="INVALID_CHECK_IN_WINDOW")

        client = await self._identity_resolver.resolve(client_id)
        existing = await self._find_series(client.aliases, form_id)

        new_docs = []
        for week in range(1, total_weeks + 1):
            identity = DueDateKeyed(week)
            if match_occurrence(existing, identity):
                continue
            new_docs.append({
                "formId": form_id,
                "formTitle": form_title,
                "clientId": client.canonical_id,
                "coachId": coach_id,
                "recurrenceKey": identity.key,
                "dueDate": self._policy.localize(first_due_date + timedelta(weeks=week - 1), due_at),
                "dueTime": due_time,
                "checkInWindow": check_in_window.to_document(),
                "status": PENDING,
                "isRecurring": total_weeks > 1,
                "recurringWeek": week,
                "totalWeeks": total_weeks,
                "completedAt": None,
                "responseId": None,
                "assignedAt": now,
                "createdAt": now,
                "updatedAt": now,
            })

        inserted_ids: List[str] = []
        if new_docs:
            try:
                result = await self._assignments_collection.insert_many(new_docs, ordered=False)
                inserted_ids = [str(inserted_id) for inserted_id in result.inserted_ids]
            except BulkWriteError as e:
                # Weeks created concurrently by the resolver are already present.
                failed = {error["index"] for error in e.details.get("writeErrors", [])}
                logger.warning(
                    f"Allocation for client {client.canonical_id}, form {form_id} "
                    f"skipped {len(failed)} existing week(s)"
                )
                inserted_ids = [
                    str(doc["_id"]) for index, doc in enumerate(new_docs) if index not in failed
                ]

        logger.info(
            f"Allocated form {form_id} to client {client.canonical_id}: "
            f"{len(inserted_ids)} week(s) created"
        )
        return {
            "createdCount": len(inserted_ids),
            "skippedCount": total_weeks - len(new_docs),
            "assignmentIds": inserted_ids,
        }

    async def delete_series(
        self,
        client_id: str,
        form_id: str,
        acting_coach_id: str,
        preserve_history: bool = True,
        is_admin: bool = False,
    ) -> Dict[str, Any]:
        """
        Delete a client's series for a form.

        With ``preserve_history`` completed occurrences are kept. Without
        it, everything goes, including the stored form responses.

        Raises:
            NotFoundException: No assignments for this client and form
            ForbiddenException: Some assignments belong to another coach
        """
        client = await self._identity_resolver.resolve(client_id)
        series = await self._find_series(client.aliases, form_id)

        if not series:
            raise NotFoundException(
                message="No check-in assignments found for this client and form",
                code="SERIES_NOT_FOUND",
            )

        if not is_admin and any(doc.get("coachId") != acting_coach_id for doc in series):
            raise ForbiddenException(
                message=(
                    "You do not have permission to delete these check-in assignments. "
                    "Some assignments belong to a different coach."
                ),
                code="PERMISSION_DENIED",
            )

        to_delete = []
        response_ids = []
        preserved = 0
        for doc in series:
            if is_completed(doc):
                if preserve_history:
                    preserved += 1
                    continue
                if doc.get("responseId"):
                    response_id = doc["responseId"]
                    response_ids.append(ObjectId(response_id) if ObjectId.is_valid(response_id) else response_id)
            to_delete.append(doc["_id"])

        deleted_responses = 0
        async with transaction(self._db) as session:
            if to_delete:
                await self._assignments_collection.delete_many(
                    {"_id": {"$in": to_delete}}, session=session
                )
            if response_ids:
                result = await self._responses_collection.delete_many(
                    {"_id": {"$in": response_ids}}, session=session
                )
                deleted_responses = result.deleted_count

        logger.info(
            f"Deleted series {form_id} for client {client.canonical_id}: "
            f"{len(to_delete)} assignment(s), {deleted_responses} response(s), {preserved} preserved"
        )

        if preserve_history:
            message = (
                f"Successfully deleted {len(to_delete)} pending check-ins while preserving "
                f"{preserved} completed check-ins and their history"
            )
        else:
            message = (
                f"Successfully deleted {len(to_delete)} check-in assignments and "
                f"{deleted_responses} responses (entire series including history)"
            )

        return {
            "deletedAssignments": len(to_delete),
            "deletedResponses": deleted_responses,
            "preservedAssignments": preserved,
            "preserveHistory": preserve_history,
            "message": message,
        }

    async def cleanup_precreated(self, dry_run: bool = False) -> Dict[str, Any]:
        """
        Remove pre-created placeholder occurrences.

        Per (client, form) keeps every completed assignment and the earliest
        incomplete one; everything else is deleted in batches.

        Args:
            dry_run: Only report what would be deleted

        Returns:
            Summary with scanned, kept and deleted counts
        """
        cursor = self._assignments_collection.find(
            {},
            {"clientId": 1, "formId": 1, "dueDate": 1, "status": 1, "responseId": 1, "completedAt": 1},
        )
        documents = await cursor.to_list(length=None)

        groups: Dict[tuple, List[Dict[str, Any]]] = {}
        for doc in documents:
            if not doc.get("clientId") or not doc.get("formId"):
                continue
            groups.setdefault((doc["clientId"], doc["formId"]), []).append(doc)

        to_delete = []
        completed_kept = 0
        template_kept = 0
        for entries in groups.values():
            incomplete = [doc for doc in entries if not is_completed(doc)]
            completed_kept += len(entries) - len(incomplete)
            if not incomplete:
                continue
            incomplete.sort(key=lambda doc: as_utc(doc.get("dueDate")) or _EPOCH)
            template_kept += 1
            to_delete.extend(doc["_id"] for doc in incomplete[1:])

        if not dry_run:
            for start in range(0, len(to_delete), self._cleanup_batch_size):
                batch = to_delete[start:start + self._cleanup_batch_size]
                await self._assignments_collection.delete_many({"_id": {"$in": batch}})

        deleted = len(to_delete)
        if dry_run:
            message = f"Would delete {deleted} pre-created incomplete assignment(s). No changes made."
        else:
            message = (
                f"Deleted {deleted} pre-created incomplete assignment(s). "
                f"Completed and one template per (client, form) kept."
            )
            logger.info(message)

        return {
            "dryRun": dry_run,
            "totalAssignmentsScanned": len(documents),
            "completedKept": completed_kept,
            "templateKept": template_kept,
            "deleted": deleted,
            "message": message,
        }
