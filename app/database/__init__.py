"""
Check-in database setup.

Index definitions applied at application startup.
"""

from app.database.indexes import ensure_indexes

__all__ = ["ensure_indexes"]
