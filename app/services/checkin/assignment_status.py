"""
Assignment status rules.

Stored status is one of pending / completed / missed. "Overdue" and
"open" are never written to the database; they are derived here on every
read from the stored timestamps, the check-in window and the wall clock.
Nothing in this module mutates a document.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.services.checkin.window_evaluator import (
    CheckInWindow,
    WindowEvaluation,
    WindowPolicy,
    as_utc,
)

PENDING = "pending"
COMPLETED = "completed"
MISSED = "missed"
OVERDUE = "overdue"

STORED_STATUSES = (PENDING, COMPLETED, MISSED)

MISSED_REASONS = ("sick", "traveling", "personal_emergency", "other")

SECONDS_PER_DAY = 24 * 60 * 60


def is_completed(assignment: Dict[str, Any]) -> bool:
    """An assignment is completed once it has a response or a completion time."""
    return (
        assignment.get("status") == COMPLETED
        or bool(assignment.get("completedAt"))
        or bool(assignment.get("responseId"))
    )


def stored_status(assignment: Dict[str, Any]) -> str:
    """Normalized stored status; legacy values (``active``, ``inactive``) read as pending."""
    status = assignment.get("status")
    if status in STORED_STATUSES:
        return status
    return PENDING


def days_past_due(due_date: datetime, now: datetime) -> int:
    """Whole days elapsed since the due date (floor; negative when not yet due)."""
    elapsed = (as_utc(now) - as_utc(due_date)).total_seconds()
    return math.floor(elapsed / SECONDS_PER_DAY)


def window_for(assignment: Dict[str, Any]) -> CheckInWindow:
    return CheckInWindow.from_document(assignment.get("checkInWindow"))


def evaluate_assignment_window(
    assignment: Dict[str, Any],
    now: datetime,
    policy: WindowPolicy,
) -> Optional[WindowEvaluation]:
    """Window evaluation for an assignment, or None when it has no due date."""
    due_date = as_utc(assignment.get("dueDate"))
    if due_date is None:
        return None
    return policy.evaluate(window_for(assignment), due_date, now)


def derive_display_status(
    assignment: Dict[str, Any],
    now: datetime,
    policy: WindowPolicy,
) -> str:
    """
    Status shown to clients and coaches.

    completed beats everything; a granted extension reopens missed and
    overdue items; missed is reported as stored; overdue means the window
    closed and the due date passed without completion.
    """
    if is_completed(assignment):
        return COMPLETED

    if assignment.get("extensionGranted"):
        return PENDING

    if stored_status(assignment) == MISSED:
        return MISSED

    due_date = as_utc(assignment.get("dueDate"))
    if due_date is None:
        return PENDING

    if policy.is_overdue(window_for(assignment), due_date, now):
        return OVERDUE

    return PENDING


def submission_block_reason(
    assignment: Dict[str, Any],
    now: datetime,
    policy: WindowPolicy,
) -> Optional[str]:
    """
    Why a submission would be refused right now, or None if it is allowed.

    Completion is checked separately by the caller. A granted extension
    bypasses the window entirely.
    """
    if assignment.get("extensionGranted"):
        return None

    evaluation = evaluate_assignment_window(assignment, now, policy)
    if evaluation is None or evaluation.is_open:
        return None

    return evaluation.message


def base_assignment(series: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Week 1 of a series, or its first assignment when week 1 is gone.

    Week-start documents all carry recurringWeek 1, so a due-date keyed
    week 1 wins over them.
    """
    if not series:
        return None
    week_one = [doc for doc in series if doc.get("recurringWeek") == 1]
    for assignment in week_one:
        if not assignment.get("reflectionWeekStart"):
            return assignment
    if week_one:
        return week_one[0]
    return series[0]
