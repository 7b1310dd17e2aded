"""
Pydantic models for check-in assignment request validation.
"""

from datetime import date
from typing import Literal, Optional
from pydantic import BaseModel, Field


TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# =============================================================================
# Shared
# =============================================================================

class CheckInWindowSchema(BaseModel):
    """Weekly submission window; days are weekday names, times HH:MM local."""
    enabled: bool = True
    startDay: str = "friday"
    startTime: str = Field("10:00", pattern=TIME_PATTERN)
    endDay: str = "monday"
    endTime: str = Field("22:00", pattern=TIME_PATTERN)


# =============================================================================
# Client portal
# =============================================================================

class ResolveCheckInRequest(BaseModel):
    """POST /api/client-portal/check-in-resolve"""
    clientId: str = Field(..., min_length=1)
    formId: str = Field(..., min_length=1)
    weekStart: str = Field(..., description="YYYY-MM-DD Monday of the reflected week")


# =============================================================================
# Assignment transitions
# =============================================================================

class AllocateSeriesRequest(BaseModel):
    """POST /api/check-in-assignments"""
    clientId: str = Field(..., min_length=1)
    formId: str = Field(..., min_length=1)
    formTitle: str = Field(..., min_length=1, max_length=200)
    firstDueDate: date
    totalWeeks: Optional[int] = Field(None, ge=1, le=520)
    dueTime: str = Field("09:00", pattern=TIME_PATTERN)
    checkInWindow: Optional[CheckInWindowSchema] = None
    coachId: Optional[str] = Field(None, description="Admins only: allocate on behalf of a coach")


class SubmitResponseRequest(BaseModel):
    """POST /api/check-in-assignments/{id}/submit"""
    responseId: str = Field(..., min_length=1)
    score: Optional[float] = Field(None, ge=0, le=100)


class MarkMissedRequest(BaseModel):
    """POST /api/check-in-assignments/{id}/mark-missed"""
    reason: Literal["sick", "traveling", "personal_emergency", "other"]
    comment: Optional[str] = Field(None, max_length=1000)


class ExtensionRequest(BaseModel):
    """POST /api/check-in-assignments/{id}/extension"""
    reason: str = Field(..., max_length=1000)


# =============================================================================
# Series management
# =============================================================================

class SeriesRequest(BaseModel):
    """POST /api/check-in-assignments/series/unpause"""
    clientId: str = Field(..., min_length=1)
    formId: str = Field(..., min_length=1)


class PauseSeriesRequest(SeriesRequest):
    """POST /api/check-in-assignments/series/pause"""
    pauseWeeks: int = Field(..., ge=1, le=52)


class DeleteSeriesRequest(SeriesRequest):
    """DELETE /api/check-in-assignments/series"""
    preserveHistory: bool = True


class CleanupRequest(BaseModel):
    """POST /api/admin/cleanup-precreated-checkins"""
    dryRun: bool = False
