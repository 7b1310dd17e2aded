"""Tests for check-in window evaluation."""

import pytest
from datetime import date, datetime, time, timezone

import pytz

from app.services.checkin.window_evaluator import (
    CheckInWindow,
    DEFAULT_CHECK_IN_WINDOW,
    WindowAnchor,
    WindowPolicy,
    as_utc,
    describe_window,
    evaluate_window,
    format_time,
    is_window_overdue,
    parse_time,
    resolve_window_bounds,
    weekday_index,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


DUE_MONDAY = utc(2026, 1, 5, 9, 0)


# ─────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────

class TestHelpers:
    def test_weekday_index_is_monday_based(self):
        assert weekday_index("Monday") == 0
        assert weekday_index(" sunday ") == 6

    def test_weekday_index_unknown(self):
        with pytest.raises(ValueError):
            weekday_index("funday")

    def test_parse_time(self):
        assert parse_time("09:30") == time(9, 30)

    def test_parse_time_invalid(self):
        with pytest.raises(ValueError):
            parse_time("9.30")

    @pytest.mark.parametrize("value,expected", [
        ("00:30", "12:30 AM"),
        ("09:05", "9:05 AM"),
        ("12:00", "12:00 PM"),
        ("22:00", "10:00 PM"),
    ])
    def test_format_time(self, value, expected):
        assert format_time(value) == expected

    def test_as_utc_naive_is_treated_as_utc(self):
        assert as_utc(datetime(2026, 1, 5, 9, 0)) == DUE_MONDAY

    def test_as_utc_iso_string(self):
        assert as_utc("2026-01-05T09:00:00Z") == DUE_MONDAY

    def test_as_utc_date_is_midnight(self):
        assert as_utc(date(2026, 1, 5)) == utc(2026, 1, 5, 0, 0)

    def test_as_utc_converts_offsets(self):
        stockholm = pytz.timezone("Europe/Stockholm").localize(datetime(2026, 1, 5, 10, 0))
        assert as_utc(stockholm) == DUE_MONDAY

    def test_as_utc_missing(self):
        assert as_utc(None) is None
        assert as_utc("") is None


# ─────────────────────────────────────────────────────────────────
# Window documents
# ─────────────────────────────────────────────────────────────────

class TestCheckInWindow:
    def test_missing_document_uses_default(self):
        assert CheckInWindow.from_document(None) is DEFAULT_CHECK_IN_WINDOW

    def test_partial_document_uses_default(self):
        assert CheckInWindow.from_document({"enabled": True}) is DEFAULT_CHECK_IN_WINDOW

    def test_invalid_day_uses_default(self):
        window = CheckInWindow.from_document({
            "enabled": True, "startDay": "someday", "startTime": "10:00",
        })
        assert window is DEFAULT_CHECK_IN_WINDOW

    def test_missing_end_falls_back_to_default_end(self):
        window = CheckInWindow.from_document({
            "enabled": False, "startDay": "Saturday", "startTime": "08:00",
        })
        assert window.enabled is False
        assert window.start_day == "saturday"
        assert window.end_day == "monday"
        assert window.end_time == "22:00"

    def test_document_round_trip(self):
        window = CheckInWindow(True, "thursday", "08:00", "sunday", "20:00")
        assert CheckInWindow.from_document(window.to_document()) == window

    def test_validate_rejects_bad_time(self):
        is_valid, error = CheckInWindow(end_time="25:99").validate()
        assert is_valid is False
        assert "endTime" in error


# ─────────────────────────────────────────────────────────────────
# Bounds
# ─────────────────────────────────────────────────────────────────

class TestResolveWindowBounds:
    def test_start_is_pulled_back_before_monday_due_date(self):
        start, end = resolve_window_bounds(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY)
        assert start == utc(2026, 1, 2, 10, 0)
        assert end == utc(2026, 1, 5, 22, 0)

    def test_midweek_due_date_uses_previous_friday(self):
        start, end = resolve_window_bounds(DEFAULT_CHECK_IN_WINDOW, utc(2026, 1, 7, 9, 0))
        assert start == utc(2026, 1, 2, 10, 0)
        assert end == utc(2026, 1, 5, 22, 0)

    def test_start_not_pulled_back_when_before_due_date(self):
        window = CheckInWindow(True, "monday", "06:00", "tuesday", "18:00")
        start, end = resolve_window_bounds(window, DUE_MONDAY)
        assert start == utc(2026, 1, 5, 6, 0)
        assert end == utc(2026, 1, 6, 18, 0)

    def test_local_timezone(self):
        # 09:00 UTC is 10:00 in Stockholm in winter
        tz = pytz.timezone("Europe/Stockholm")
        start, end = resolve_window_bounds(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY, tz)
        assert start == utc(2026, 1, 2, 9, 0)
        assert end == utc(2026, 1, 5, 21, 0)

    def test_explicit_week_offsets(self):
        anchor = WindowAnchor(start_week_offset=0, end_week_offset=1)
        start, end = resolve_window_bounds(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY, anchor=anchor)
        assert start == utc(2026, 1, 9, 10, 0)
        assert end == utc(2026, 1, 12, 22, 0)

    def test_previous_week_offset_matches_automatic_rule(self):
        anchor = WindowAnchor(start_week_offset=-1, end_week_offset=0)
        assert resolve_window_bounds(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY, anchor=anchor) == \
            resolve_window_bounds(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY)


# ─────────────────────────────────────────────────────────────────
# Evaluation
# ─────────────────────────────────────────────────────────────────

class TestEvaluateWindow:
    def test_open_inside_window(self):
        result = evaluate_window(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY, utc(2026, 1, 2, 12, 0))
        assert result.is_open is True
        assert result.message == "Check-in window is open"
        assert result.opens_at == utc(2026, 1, 2, 10, 0)
        assert result.closes_at == utc(2026, 1, 5, 22, 0)

    def test_bounds_are_inclusive(self):
        assert evaluate_window(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY, utc(2026, 1, 2, 10, 0)).is_open
        assert evaluate_window(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY, utc(2026, 1, 5, 22, 0)).is_open

    def test_before_window(self):
        result = evaluate_window(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY, utc(2026, 1, 1, 12, 0))
        assert result.is_open is False
        assert result.message == "Check-in window opens Friday at 10:00 AM"

    def test_after_window(self):
        result = evaluate_window(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY, utc(2026, 1, 6, 8, 0))
        assert result.is_open is False
        assert result.message == "Check-in window closed Monday at 10:00 PM"

    def test_disabled_window_is_always_open(self):
        window = CheckInWindow(enabled=False)
        result = evaluate_window(window, DUE_MONDAY, utc(2027, 1, 1, 0, 0))
        assert result.is_open is True
        assert result.opens_at is None
        assert result.to_dict()["closesAt"] is None

    def test_to_dict(self):
        result = evaluate_window(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY, utc(2026, 1, 2, 12, 0))
        data = result.to_dict()
        assert data["isOpen"] is True
        assert data["opensAt"] == "2026-01-02T10:00:00+00:00"


class TestIsWindowOverdue:
    def test_not_overdue_while_open(self):
        assert is_window_overdue(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY, utc(2026, 1, 5, 12, 0)) is False

    def test_overdue_after_close(self):
        assert is_window_overdue(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY, utc(2026, 1, 6, 8, 0)) is True

    def test_closed_window_before_due_date_is_not_overdue(self):
        # Wednesday due date: window closed Monday but due date still ahead
        due = utc(2026, 1, 7, 9, 0)
        assert is_window_overdue(DEFAULT_CHECK_IN_WINDOW, due, utc(2026, 1, 6, 8, 0)) is False

    def test_disabled_window_uses_due_date(self):
        window = CheckInWindow(enabled=False)
        assert is_window_overdue(window, DUE_MONDAY, utc(2026, 1, 5, 8, 0)) is False
        assert is_window_overdue(window, DUE_MONDAY, utc(2026, 1, 5, 10, 0)) is True


class TestDescribeWindow:
    def test_default(self):
        assert describe_window(DEFAULT_CHECK_IN_WINDOW) == "Friday 10:00 AM - Monday 10:00 PM"

    def test_disabled(self):
        assert describe_window(CheckInWindow(enabled=False)) == "Check-ins available anytime"
        assert describe_window(None) == "Check-ins available anytime"


class TestWindowPolicy:
    def test_localize(self):
        policy = WindowPolicy("Europe/Stockholm")
        assert policy.localize(date(2026, 1, 5), time(10, 0)) == DUE_MONDAY

    def test_policy_delegates_with_anchor(self):
        policy = WindowPolicy("UTC", WindowAnchor(start_week_offset=0, end_week_offset=1))
        assert policy.bounds(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY)[0] == utc(2026, 1, 9, 10, 0)
        assert policy.evaluate(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY, utc(2026, 1, 3, 0, 0)).is_open is False
        assert policy.is_overdue(DEFAULT_CHECK_IN_WINDOW, DUE_MONDAY, utc(2026, 1, 13, 0, 0)) is True
