"""
Client to coach message service.

Messages live in the ``messages`` collection, one document per message,
grouped by a ``conversationId`` of ``<clientId>_<coachId>``.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from motor.motor_asyncio import AsyncIOMotorDatabase

from common.utils.exceptions import ValidationException

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


def conversation_id(client_id: str, coach_id: str) -> str:
    return f"{client_id}_{coach_id}"


class MessageService:
    """Stores direct messages between a client and their coach."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db
        self._collection = db["messages"]

    async def send_to_coach(
        self,
        client_id: str,
        coach_id: str,
        sender_name: str,
        content: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Create a text message from a client to their coach."""
        content = content.strip() if content else ""

        if not content:
            raise ValidationException(
                message="Message content cannot be empty",
                code="EMPTY_MESSAGE",
            )

        if len(content) > MAX_MESSAGE_LENGTH:
            raise ValidationException(
                message=f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters",
                code="MESSAGE_TOO_LONG",
            )

        now = datetime.now(timezone.utc)

        message_doc = {
            "senderId": client_id,
            "senderName": sender_name,
            "content": content,
            "type": "text",
            "timestamp": now,
            "isRead": False,
            "participants": [client_id, coach_id],
            "conversationId": conversation_id(client_id, coach_id),
        }
        if extra:
            message_doc.update(extra)

        result = await self._collection.insert_one(message_doc)
        message_doc["_id"] = result.inserted_id

        logger.info(f"Message sent from client {client_id} to coach {coach_id}")
        return message_doc
