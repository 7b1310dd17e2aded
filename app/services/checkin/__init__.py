"""
Check-in scheduling services.

Pure rules (window evaluation, scoring, status derivation, pause planning)
and the motor-backed services built on them.
"""

from app.services.checkin.assignment_service import AssignmentService
from app.services.checkin.client_identity import ClientIdentity, ClientIdentityResolver
from app.services.checkin.pause_service import PauseService, plan_pause, plan_unpause
from app.services.checkin.recurrence_resolver import (
    DueDateKeyed,
    RecurrenceResolver,
    WeekStartKeyed,
)
from app.services.checkin.reopen_service import ReopenService
from app.services.checkin.scoring import ScoringThresholds, classify_score
from app.services.checkin.scoring_config_service import ScoringConfigService
from app.services.checkin.series_service import SeriesService
from app.services.checkin.window_evaluator import (
    CheckInWindow,
    WindowAnchor,
    WindowPolicy,
    evaluate_window,
)

__all__ = [
    "AssignmentService",
    "CheckInWindow",
    "ClientIdentity",
    "ClientIdentityResolver",
    "DueDateKeyed",
    "PauseService",
    "RecurrenceResolver",
    "ReopenService",
    "ScoringConfigService",
    "ScoringThresholds",
    "SeriesService",
    "WeekStartKeyed",
    "WindowAnchor",
    "WindowPolicy",
    "classify_score",
    "evaluate_window",
    "plan_pause",
    "plan_unpause",
]
