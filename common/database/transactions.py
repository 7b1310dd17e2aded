"""
Multi-document transaction helper.

Bulk scheduling operations (pause, unpause, series deletion) must be
all-or-nothing. Motor exposes transactions through client sessions; this
wraps the two nested context managers into one.

Example:
    from common.database import transaction

    async with transaction(db) as session:
        await collection.bulk_write(operations, session=session)
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase

logger = logging.getLogger(__name__)


@asynccontextmanager
async def transaction(db: AsyncIOMotorDatabase) -> AsyncIterator[AsyncIOMotorClientSession]:
    """
    Run the enclosed block inside a MongoDB transaction.

    Commits when the block exits normally and aborts when it raises.
    Requires a replica set or sharded cluster.

    Args:
        db: Database whose client starts the session

    Yields:
        The client session to pass to every write in the block
    """
    async with await db.client.start_session() as session:
        async with session.start_transaction():
            logger.debug("Transaction started")
            yield session
        logger.debug("Transaction committed")
