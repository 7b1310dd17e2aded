"""
Extension and reopen workflow.

Missed and overdue check-ins become submittable again only through an
extension grant: a coach opening the check-in, or a client asking for an
extension (auto-granted). A client can also ask their coach, by message,
to reopen a check-in. Grants never change the stored status; they set
``extensionGranted``, which bypasses the window and makes the display
status pending.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from common.utils.exceptions import (
    ForbiddenException,
    InvalidStateException,
    ValidationException,
)
from app.services.checkin.assignment_service import AssignmentService
from app.services.checkin.assignment_status import MISSED, is_completed, stored_status
from app.services.checkin.client_identity import ClientIdentityResolver
from app.services.checkin.window_evaluator import as_utc
from app.services.messaging.message_service import MessageService

logger = logging.getLogger(__name__)

GRANTED = "granted"


class ReopenService:
    """Coach grants, client extension requests and reopen requests."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        assignments: AssignmentService,
        identity_resolver: ClientIdentityResolver,
        messages: MessageService,
        min_reason_length: int = 10,
    ):
        """
        Initialize ReopenService.

        Args:
            db: MongoDB database connection
            assignments: Assignment reads
            identity_resolver: Resolves client id aliases
            messages: Client to coach messaging
            min_reason_length: Minimum characters of an extension reason
        """
        self._db = db
        self._assignments_collection = db["check_in_assignments"]
        self._extensions_collection = db["check_in_extensions"]
        self._assignments = assignments
        self._identity_resolver = identity_resolver
        self._messages = messages
        self._min_reason_length = min_reason_length

    async def _grant(
        self,
        assignment: Dict[str, Any],
        requested_by: str,
        granted_by: str,
        reason: str,
        now: datetime,
    ) -> Dict[str, Any]:
        """Record a granted extension and flag the assignment."""
        extension_doc = {
            "assignmentId": str(assignment["_id"]),
            "assignmentClientId": assignment.get("clientId"),
            "assignmentCoachId": assignment.get("coachId"),
            "clientId": requested_by,
            "reason": reason,
            "status": GRANTED,
            "requestedAt": now,
            "grantedAt": now,
            "grantedBy": granted_by,
            "expiresAt": None,
        }
        result = await self._extensions_collection.insert_one(extension_doc)
        extension_doc["_id"] = result.inserted_id

        update = {
            "extensionGranted": True,
            "extensionRequestedAt": now,
            "extensionReason": reason,
            "updatedAt": now,
        }
        await self._assignments_collection.update_one({"_id": assignment["_id"]}, {"$set": update})
        assignment.update(update)
        return extension_doc

    async def open_for_check_in(
        self,
        assignment_id: str,
        acting_user_id: str,
        is_admin: bool = False,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Coach (or admin) grants an extension so the client can submit again.

        Raises:
            NotFoundException: Unknown assignment
            InvalidStateException: Assignment already completed
            ForbiddenException: Caller does not coach this client
        """
        now = now or datetime.now(timezone.utc)
        assignment = await self._assignments.find_assignment(assignment_id)

        if is_completed(assignment):
            raise InvalidStateException(
                message="Cannot open a completed check-in",
                code="ALREADY_COMPLETED",
            )

        client = await self._identity_resolver.resolve(assignment.get("clientId"))
        if not is_admin:
            coach_id = client.coach_id or assignment.get("coachId")
            if coach_id != acting_user_id:
                raise ForbiddenException(
                    message="You can only open check-ins for your own clients",
                    code="PERMISSION_DENIED",
                )

        await self._grant(
            assignment,
            requested_by=client.canonical_id,
            granted_by=acting_user_id,
            reason="Opened by coach for check-in",
            now=now,
        )

        logger.info(f"Check-in assignment {assignment_id} opened by {acting_user_id}")
        return self._assignments.annotate(assignment, now)

    async def request_extension(
        self,
        assignment_id: str,
        client_id: str,
        reason: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Client asks for more time; the request is granted automatically.

        Returns:
            Dict with extensionGranted and whether a grant already existed

        Raises:
            ValidationException: Reason too short
            ForbiddenException: Assignment belongs to a different client
            InvalidStateException: Assignment already completed
        """
        now = now or datetime.now(timezone.utc)
        reason = reason.strip() if reason else ""
        if len(reason) < self._min_reason_length:
            raise ValidationException(
                message=f"Please provide a reason of at least {self._min_reason_length} characters",
                code="REASON_TOO_SHORT",
            )

        assignment = await self._assignments.find_assignment(assignment_id)
        client = await self._identity_resolver.resolve(client_id)
        if not client.matches(assignment.get("clientId")):
            raise ForbiddenException(
                message="This check-in does not belong to you",
                code="PERMISSION_DENIED",
            )

        if is_completed(assignment):
            raise InvalidStateException(
                message="This check-in is already completed",
                code="ALREADY_COMPLETED",
            )

        existing = await self._extensions_collection.find_one(
            {"assignmentId": str(assignment["_id"]), "status": GRANTED}
        )
        if existing or assignment.get("extensionGranted"):
            logger.debug(f"Extension already granted for assignment {assignment_id}")
            return {"extensionGranted": True, "alreadyGranted": True}

        extension = await self._grant(
            assignment,
            requested_by=client.canonical_id,
            granted_by="system",
            reason=reason,
            now=now,
        )

        logger.info(f"Extension auto-granted for check-in assignment {assignment_id}")
        return {
            "extensionGranted": True,
            "alreadyGranted": False,
            "extensionId": str(extension["_id"]),
        }

    async def request_reopen(
        self,
        assignment_id: str,
        client_id: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Client asks their coach to reopen a missed or overdue check-in.

        Sends a message to the coach and stamps ``reopenRequestedAt``; the
        coach then decides whether to open it.

        Raises:
            ForbiddenException: Assignment belongs to a different client
            InvalidStateException: Completed, still open, or no coach assigned
        """
        now = now or datetime.now(timezone.utc)
        assignment = await self._assignments.find_assignment(assignment_id)

        client = await self._identity_resolver.resolve(client_id)
        if not client.matches(assignment.get("clientId")):
            raise ForbiddenException(
                message="This check-in does not belong to you",
                code="PERMISSION_DENIED",
            )

        if is_completed(assignment):
            raise InvalidStateException(
                message="This check-in is already completed",
                code="ALREADY_COMPLETED",
            )

        due_date = as_utc(assignment.get("dueDate"))
        reopenable = (
            stored_status(assignment) == MISSED
            or assignment.get("extensionGranted")
            or (due_date is not None and due_date < now)
        )
        if not reopenable:
            raise InvalidStateException(
                message="This check-in is still open. You can complete it from My Check-ins.",
                code="STILL_OPEN",
            )

        if not client.coach_id:
            raise InvalidStateException(
                message="No coach assigned. Please contact support.",
                code="NO_COACH",
            )

        week = assignment.get("recurringWeek") or 1
        title = assignment.get("formTitle") or "Check-in"
        message = await self._messages.send_to_coach(
            client_id=client.canonical_id,
            coach_id=client.coach_id,
            sender_name=client.display_name,
            content=f"I'd like to complete my missed check-in: Week {week}: {title}. Could you reopen it for me?",
            extra={
                "reopenRequestAssignmentId": str(assignment["_id"]),
                "reopenRequestAt": now,
            },
        )

        await self._assignments_collection.update_one(
            {"_id": assignment["_id"]},
            {"$set": {"reopenRequestedAt": now, "updatedAt": now}},
        )

        logger.info(f"Reopen requested for check-in assignment {assignment_id} by client {client.canonical_id}")
        return {"messageId": str(message["_id"]), "reopenRequestedAt": now}
