"""
Collection indexes for the check-in engine.

Created at startup. ``create_indexes`` is a no-op for indexes that already
exist with the same definition.
"""

import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, IndexModel

logger = logging.getLogger(__name__)


ASSIGNMENT_INDEXES = [
    IndexModel([("clientId", ASCENDING), ("formId", ASCENDING)], name="client_form"),
    IndexModel([("clientId", ASCENDING), ("dueDate", ASCENDING)], name="client_due_date"),
    IndexModel([("coachId", ASCENDING)], name="coach"),
    # One occurrence per recurrence identity. Legacy documents without a key are exempt.
    IndexModel(
        [("clientId", ASCENDING), ("formId", ASCENDING), ("recurrenceKey", ASCENDING)],
        name="client_form_recurrence_unique",
        unique=True,
        partialFilterExpression={"recurrenceKey": {"$exists": True}},
    ),
]

INDEXES = {
    "check_in_assignments": ASSIGNMENT_INDEXES,
    "check_in_extensions": [
        IndexModel([("assignmentId", ASCENDING), ("status", ASCENDING)], name="assignment_status"),
    ],
    "clients": [
        IndexModel([("authUid", ASCENDING)], name="auth_uid"),
    ],
    "clientScoring": [
        IndexModel([("clientId", ASCENDING)], name="client", unique=True),
    ],
    "messages": [
        IndexModel([("conversationId", ASCENDING), ("timestamp", ASCENDING)], name="conversation_time"),
    ],
    "notifications": [
        IndexModel([("userId", ASCENDING), ("createdAt", ASCENDING)], name="user_created"),
    ],
}


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create every index the services rely on."""
    for collection_name, indexes in INDEXES.items():
        names = await db[collection_name].create_indexes(indexes)
        logger.info(f"Ensured indexes on {collection_name}: {', '.join(names)}")
