"""
Check-in assignment service.

Reads assignments with their derived display status and drives the
client-side forward transitions: submission (pending -> completed) and
marking an overdue check-in as missed (pending -> missed).
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.utils.exceptions import (
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from app.services.checkin.assignment_status import (
    COMPLETED,
    MISSED,
    MISSED_REASONS,
    OVERDUE,
    PENDING,
    days_past_due,
    derive_display_status,
    evaluate_assignment_window,
    is_completed,
    stored_status,
    submission_block_reason,
    window_for,
)
from app.services.checkin.client_identity import ClientIdentity, ClientIdentityResolver
from app.services.checkin.scoring import classify_score
from app.services.checkin.scoring_config_service import ScoringConfigService
from app.services.checkin.window_evaluator import WindowPolicy, as_utc, describe_window
from app.services.notifications.notification_service import NotificationService

logger = logging.getLogger(__name__)

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


class AssignmentService:
    """
    Assignment reads and client-driven transitions.

    Completion is terminal: a completed assignment is never modified here
    again, and the submission update is conditional so two concurrent
    submissions cannot both succeed.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        identity_resolver: ClientIdentityResolver,
        policy: WindowPolicy,
        scoring_config: ScoringConfigService,
        notifications: NotificationService,
        missed_min_days_overdue: int = 3,
    ):
        """
        Initialize AssignmentService.

        Args:
            db: MongoDB database connection
            identity_resolver: Resolves client id aliases
            policy: Window timezone and anchor configuration
            scoring_config: Per-client scoring thresholds
            notifications: Coach notification sender
            missed_min_days_overdue: Whole days past due before mark-missed is allowed
        """
        self._db = db
        self._assignments_collection = db["check_in_assignments"]
        self._identity_resolver = identity_resolver
        self._policy = policy
        self._scoring_config = scoring_config
        self._notifications = notifications
        self._missed_min_days_overdue = missed_min_days_overdue

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    async def find_assignment(self, assignment_id: str) -> Dict[str, Any]:
        """
        Load an assignment by id.

        Raises:
            NotFoundException: Unknown or malformed id
        """
        if not ObjectId.is_valid(assignment_id):
            raise NotFoundException(
                message="Check-in assignment not found",
                code="ASSIGNMENT_NOT_FOUND",
            )

        assignment = await self._assignments_collection.find_one({"_id": ObjectId(assignment_id)})
        if not assignment:
            raise NotFoundException(
                message="Check-in assignment not found",
                code="ASSIGNMENT_NOT_FOUND",
            )
        return assignment

    def annotate(self, assignment: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        """Copy of ``assignment`` with displayStatus and window state attached."""
        annotated = dict(assignment)
        annotated["status"] = stored_status(assignment)
        annotated["displayStatus"] = derive_display_status(assignment, now, self._policy)

        evaluation = evaluate_assignment_window(assignment, now, self._policy)
        annotated["window"] = evaluation.to_dict() if evaluation else None
        annotated["windowDescription"] = describe_window(window_for(assignment))
        return annotated

    async def get_assignment(self, assignment_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        assignment = await self.find_assignment(assignment_id)
        return self.annotate(assignment, now)

    async def list_assignments(
        self,
        client_id: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        All assignments of a client, across every id the client is known by.

        Args:
            client_id: Client document id or auth uid
            now: Evaluation instant (defaults to the current time)

        Returns:
            Dict with annotated ``assignments`` sorted by due date and
            ``summary`` counts per display status
        """
        now = now or datetime.now(timezone.utc)
        identity = await self._identity_resolver.resolve(client_id)

        cursor = self._assignments_collection.find({"clientId": {"$in": list(identity.aliases)}})
        documents = await cursor.to_list(length=None)

        unique: Dict[str, Dict[str, Any]] = {}
        for doc in documents:
            unique.setdefault(str(doc["_id"]), doc)

        ordered = sorted(
            unique.values(),
            key=lambda doc: as_utc(doc.get("dueDate")) or _FAR_FUTURE,
        )
        assignments = [self.annotate(doc, now) for doc in ordered]

        summary = {"total": len(assignments), PENDING: 0, COMPLETED: 0, OVERDUE: 0, MISSED: 0}
        for assignment in assignments:
            summary[assignment["displayStatus"]] += 1

        logger.debug(f"Listed {len(assignments)} check-in assignments for client {identity.canonical_id}")
        return {"assignments": assignments, "summary": summary}

    # ─────────────────────────────────────────────────────────────────
    # Transitions
    # ─────────────────────────────────────────────────────────────────

    async def _require_owner(self, assignment: Dict[str, Any], client_id: str) -> ClientIdentity:
        identity = await self._identity_resolver.resolve(client_id)
        if not identity.matches(assignment.get("clientId")):
            raise ForbiddenException(
                message="This check-in does not belong to you",
                code="PERMISSION_DENIED",
            )
        return identity

    async def submit_response(
        self,
        assignment_id: str,
        response_id: str,
        score: Optional[float] = None,
        client_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Record a submitted response and close the assignment.

        Args:
            assignment_id: Assignment being answered
            response_id: Id of the stored form response
            score: Optional 0-100 percentage score
            client_id: Submitting client, checked against the assignment
            now: Submission instant

        Returns:
            Updated, annotated assignment

        Raises:
            ForbiddenException: Assignment belongs to a different client
            InvalidStateException: Already completed, or window closed
        """
        now = now or datetime.now(timezone.utc)
        assignment = await self.find_assignment(assignment_id)

        if client_id is not None:
            identity = await self._require_owner(assignment, client_id)
        else:
            identity = await self._identity_resolver.resolve(assignment.get("clientId"))

        if is_completed(assignment):
            raise InvalidStateException(
                message="This check-in has already been completed",
                code="ALREADY_COMPLETED",
            )

        block_reason = submission_block_reason(assignment, now, self._policy)
        if block_reason:
            raise InvalidStateException(message=block_reason, code="WINDOW_CLOSED")

        update: Dict[str, Any] = {
            "status": COMPLETED,
            "completedAt": now,
            "responseId": response_id,
            "updatedAt": now,
        }
        if score is not None:
            thresholds = await self._scoring_config.get_thresholds(identity.aliases)
            update["score"] = score
            update["trafficLight"] = classify_score(score, thresholds)

        result = await self._assignments_collection.update_one(
            {
                "_id": assignment["_id"],
                "status": {"$ne": COMPLETED},
                "completedAt": None,
                "responseId": None,
            },
            {"$set": update},
        )
        if result.modified_count == 0:
            raise InvalidStateException(
                message="This check-in has already been completed",
                code="ALREADY_COMPLETED",
            )

        logger.info(f"Check-in assignment {assignment_id} completed with response {response_id}")

        coach_id = assignment.get("coachId")
        if coach_id:
            await self._notifications.notify_check_in_completed(
                coach_id=coach_id,
                client_id=identity.canonical_id,
                client_name=identity.display_name,
                assignment=assignment,
                response_id=response_id,
                score=score,
            )

        assignment.update(update)
        return self.annotate(assignment, now)

    async def mark_missed(
        self,
        assignment_id: str,
        client_id: str,
        reason: str,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Let a client record why an overdue check-in was not done.

        Raises:
            ForbiddenException: Assignment belongs to a different client
            ValidationException: Unknown reason, or "other" without a comment
            InvalidStateException: Completed, already missed, or not overdue enough
        """
        now = now or datetime.now(timezone.utc)
        assignment = await self.find_assignment(assignment_id)
        await self._require_owner(assignment, client_id)

        if reason not in MISSED_REASONS:
            raise ValidationException(
                message=f"Reason must be one of: {', '.join(MISSED_REASONS)}",
                code="INVALID_REASON",
            )

        comment = comment.strip() if comment else None
        if reason == "other" and not comment:
            raise ValidationException(
                message="A comment is required when the reason is 'other'",
                code="COMMENT_REQUIRED",
            )

        if is_completed(assignment):
            raise InvalidStateException(
                message="Cannot mark a completed check-in as missed",
                code="ALREADY_COMPLETED",
            )

        if stored_status(assignment) == MISSED:
            raise InvalidStateException(
                message="Check-in is already marked as missed",
                code="ALREADY_MISSED",
            )

        due_date = as_utc(assignment.get("dueDate"))
        if due_date is None or days_past_due(due_date, now) < self._missed_min_days_overdue:
            raise InvalidStateException(
                message=f"Check-in must be at least {self._missed_min_days_overdue} days overdue to mark as missed",
                code="NOT_OVERDUE",
            )

        update: Dict[str, Any] = {
            "status": MISSED,
            "missedAt": now,
            "missedReason": reason,
            "updatedAt": now,
        }
        if comment:
            update["missedComment"] = comment

        result = await self._assignments_collection.update_one(
            {"_id": assignment["_id"], "status": {"$nin": [COMPLETED, MISSED]}},
            {"$set": update},
        )
        if result.modified_count == 0:
            raise InvalidStateException(
                message="This check-in was completed or marked missed in the meantime",
                code="INVALID_STATE",
            )

        logger.info(f"Check-in assignment {assignment_id} marked missed ({reason})")

        assignment.update(update)
        return self.annotate(assignment, now)
