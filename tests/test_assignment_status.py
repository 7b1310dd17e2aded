"""Tests for derived assignment status rules."""

from datetime import datetime, timezone

from app.services.checkin.assignment_status import (
    COMPLETED,
    MISSED,
    OVERDUE,
    PENDING,
    base_assignment,
    days_past_due,
    derive_display_status,
    is_completed,
    stored_status,
    submission_block_reason,
)
from app.services.checkin.window_evaluator import WindowPolicy


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


POLICY = WindowPolicy("UTC")
DUE_MONDAY = utc(2026, 1, 5, 9, 0)


# ─────────────────────────────────────────────────────────────────
# Stored state
# ─────────────────────────────────────────────────────────────────

class TestStoredState:
    def test_completed_by_status_or_timestamps(self):
        assert is_completed({"status": "completed"})
        assert is_completed({"status": "pending", "completedAt": DUE_MONDAY})
        assert is_completed({"status": "pending", "responseId": "r1"})
        assert not is_completed({"status": "pending"})

    def test_legacy_statuses_read_as_pending(self):
        assert stored_status({"status": "active"}) == PENDING
        assert stored_status({}) == PENDING
        assert stored_status({"status": "missed"}) == MISSED


class TestDaysPastDue:
    def test_floor_below_boundary(self):
        assert days_past_due(DUE_MONDAY, utc(2026, 1, 8, 8, 59)) == 2

    def test_exact_boundary(self):
        assert days_past_due(DUE_MONDAY, utc(2026, 1, 8, 9, 0)) == 3

    def test_not_yet_due_is_negative(self):
        assert days_past_due(DUE_MONDAY, utc(2026, 1, 5, 8, 0)) == -1


# ─────────────────────────────────────────────────────────────────
# Display status
# ─────────────────────────────────────────────────────────────────

class TestDeriveDisplayStatus:
    def test_pending_while_window_open(self, make_assignment):
        assert derive_display_status(make_assignment(), utc(2026, 1, 3, 12, 0), POLICY) == PENDING

    def test_overdue_after_window_closes(self, make_assignment):
        assert derive_display_status(make_assignment(), utc(2026, 1, 6, 8, 0), POLICY) == OVERDUE

    def test_completed_wins(self, make_assignment):
        doc = make_assignment(responseId="r1", status="pending")
        assert derive_display_status(doc, utc(2026, 2, 1), POLICY) == COMPLETED

    def test_missed_is_reported(self, make_assignment):
        doc = make_assignment(status="missed")
        assert derive_display_status(doc, utc(2026, 2, 1), POLICY) == MISSED

    def test_extension_reopens_missed_and_overdue(self, make_assignment):
        assert derive_display_status(
            make_assignment(status="missed", extensionGranted=True), utc(2026, 2, 1), POLICY
        ) == PENDING
        assert derive_display_status(
            make_assignment(extensionGranted=True), utc(2026, 2, 1), POLICY
        ) == PENDING

    def test_no_due_date_is_pending(self, make_assignment):
        assert derive_display_status(make_assignment(dueDate=None), utc(2026, 2, 1), POLICY) == PENDING

    def test_disabled_window_overdue_right_after_due(self, make_assignment):
        doc = make_assignment(checkInWindow={
            "enabled": False, "startDay": "friday", "startTime": "10:00",
            "endDay": "monday", "endTime": "22:00",
        })
        assert derive_display_status(doc, utc(2026, 1, 5, 9, 30), POLICY) == OVERDUE


class TestSubmissionBlockReason:
    def test_open_window_allows(self, make_assignment):
        assert submission_block_reason(make_assignment(), utc(2026, 1, 4, 12, 0), POLICY) is None

    def test_closed_window_blocks(self, make_assignment):
        reason = submission_block_reason(make_assignment(), utc(2026, 1, 6, 8, 0), POLICY)
        assert reason == "Check-in window closed Monday at 10:00 PM"

    def test_not_yet_open_blocks(self, make_assignment):
        reason = submission_block_reason(make_assignment(), utc(2026, 1, 1, 8, 0), POLICY)
        assert reason == "Check-in window opens Friday at 10:00 AM"

    def test_extension_bypasses_window(self, make_assignment):
        doc = make_assignment(extensionGranted=True)
        assert submission_block_reason(doc, utc(2026, 3, 1), POLICY) is None

    def test_no_due_date_allows(self, make_assignment):
        assert submission_block_reason(make_assignment(dueDate=None), utc(2026, 3, 1), POLICY) is None


class TestBaseAssignment:
    def test_prefers_week_one(self):
        series = [{"recurringWeek": 2}, {"recurringWeek": 1}]
        assert base_assignment(series) == {"recurringWeek": 1}

    def test_week_start_documents_do_not_count_as_week_one(self):
        reflection = {"recurringWeek": 1, "reflectionWeekStart": "2026-01-05"}
        week_one = {"recurringWeek": 1}
        assert base_assignment([reflection, week_one]) is week_one

    def test_only_week_start_documents(self):
        reflection = {"recurringWeek": 1, "reflectionWeekStart": "2026-01-05"}
        assert base_assignment([{"recurringWeek": 2}, reflection]) is reflection

    def test_falls_back_to_first(self):
        series = [{"recurringWeek": 3}, {"recurringWeek": 4}]
        assert base_assignment(series) == {"recurringWeek": 3}

    def test_empty(self):
        assert base_assignment([]) is None
