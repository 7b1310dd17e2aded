"""
Pydantic models for scoring configuration.
"""

from typing import Optional
from pydantic import BaseModel, Field


class ThresholdsSchema(BaseModel):
    """Inclusive upper bounds of the red and orange zones."""
    redMax: float = Field(..., ge=0, le=100)
    orangeMax: float = Field(..., ge=0, le=100)


class ScoringConfigRequest(BaseModel):
    """POST /api/clients/{id}/scoring"""
    scoringProfile: str = Field("lifestyle", description="lifestyle, moderate, high-performance or custom")
    thresholds: Optional[ThresholdsSchema] = None


class ClassifyScoreRequest(BaseModel):
    """POST /api/scoring/classify"""
    score: float = Field(..., ge=0, le=100)
    clientId: Optional[str] = None
    thresholds: Optional[ThresholdsSchema] = None
