"""
Check-in platform application settings.

Extends the base settings with scheduling-specific configuration.
"""

from typing import Optional
from common.config import BaseAppSettings


class Settings(BaseAppSettings):
    """Check-in platform settings."""

    # ==========================================================================
    # Check-in Window Settings
    # ==========================================================================
    # Local timezone that window days/times and weekly due dates are read in
    CHECKIN_TIMEZONE: str = "UTC"

    # Week offsets pinning the window bounds relative to the due date's week.
    # Unset = start falls at or before the due date, end is the first end
    # day/time after the start.
    CHECKIN_WINDOW_START_WEEK_OFFSET: Optional[int] = None
    CHECKIN_WINDOW_END_WEEK_OFFSET: Optional[int] = None

    # ==========================================================================
    # Assignment Lifecycle Settings
    # ==========================================================================
    # Days past due before a client may mark a check-in as missed
    MISSED_MIN_DAYS_OVERDUE: int = 3

    # Hour (local) at which on-demand weekly assignments fall due
    WEEK_DUE_HOUR: int = 9

    # Minimum length of a client's extension reason
    EXTENSION_MIN_REASON_LENGTH: int = 10

    # Default series length when allocating a program
    DEFAULT_TOTAL_WEEKS: int = 52

    # Deletes per batch in the pre-created assignment cleanup
    CLEANUP_BATCH_SIZE: int = 500

    # ==========================================================================
    # Scoring Settings
    # ==========================================================================
    DEFAULT_SCORING_PROFILE: str = "lifestyle"


# Global settings instance
settings = Settings()
