"""
Database module - Generic async MongoDB connection using Motor.

Usage:
    from common.database import MongoDB, transaction

    db = MongoDB()
    await db.connect(uri, database_name)

    async with transaction(db.db) as session:
        await db.db["check_in_assignments"].bulk_write(operations, session=session)
"""

from common.database.mongodb import MongoDB
from common.database.transactions import transaction

__all__ = [
    "MongoDB",
    # Transactions
    "transaction",
]
