"""
Notification service for in-app notifications.

Coaches receive a notification whenever one of their clients completes a
check-in.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Handles in-app notification creation.

    Notification types:
    - check_in_completed: A client completed a check-in assignment
    """

    NOTIFICATION_TYPES = ["check_in_completed"]

    def __init__(self, db: AsyncIOMotorDatabase):
        """
        Initialize NotificationService.

        Args:
            db: MongoDB database connection
        """
        self._db = db
        self._collection = db["notifications"]

    async def create_notification(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        action_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a new notification for a user.

        Args:
            user_id: Target user ID (coach id or auth uid)
            notification_type: One of NOTIFICATION_TYPES
            title: Short notification title
            message: Full notification message
            metadata: Optional metadata (clientId, assignmentId, score, etc.)
            action_url: Optional link opened from the notification

        Returns:
            Created notification document
        """
        now = datetime.now(timezone.utc)

        notification_doc = {
            "userId": user_id,
            "type": notification_type,
            "title": title,
            "message": message,
            "actionUrl": action_url,
            "metadata": metadata or {},
            "read": False,
            "readAt": None,
            "createdAt": now,
            "updatedAt": now,
        }

        result = await self._collection.insert_one(notification_doc)
        notification_doc["_id"] = result.inserted_id

        logger.info(f"Created notification for user {user_id}: {notification_type}")
        return notification_doc

    async def notify_check_in_completed(
        self,
        coach_id: str,
        client_id: str,
        client_name: str,
        assignment: Dict[str, Any],
        response_id: str,
        score: Optional[float] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Tell the coach a client completed a check-in.

        Failures are logged and swallowed: the submission has already been
        recorded and must not be reported as failed because of a notification.
        """
        form_title = assignment.get("formTitle") or "Check-in"
        if score is not None:
            message = f'{client_name} completed "{form_title}" with {score:g}% score'
        else:
            message = f'{client_name} completed "{form_title}"'

        try:
            return await self.create_notification(
                user_id=coach_id,
                notification_type="check_in_completed",
                title="New Check-in Completed",
                message=message,
                action_url=f"/responses/{response_id}",
                metadata={
                    "clientId": client_id,
                    "assignmentId": str(assignment["_id"]),
                    "formId": assignment.get("formId"),
                    "responseId": response_id,
                    "score": score,
                },
            )
        except Exception as e:
            logger.warning(f"Failed to notify coach {coach_id} of completed check-in: {e}")
            return None
