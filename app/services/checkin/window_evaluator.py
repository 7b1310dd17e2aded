"""
Check-in window evaluation.

Answers "may the client submit right now?" for a due date and a weekly
submission window. Everything here is a pure function of its inputs:
no database access, and ``now`` is always passed in by the caller.

Window bounds are anchored to the local week (Monday 00:00) that contains
the due date. With the default anchor rule the window start is pulled back
a week when it would otherwise fall after the due date (Friday before a
Monday due date), and the window end is the first end day/time at or after
the start.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import pytz

logger = logging.getLogger(__name__)

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def weekday_index(day_name: str) -> int:
    """Monday-based weekday index (monday=0 ... sunday=6)."""
    try:
        return WEEKDAYS.index(day_name.strip().lower())
    except ValueError:
        raise ValueError(f"Unknown weekday: {day_name!r}")


def parse_time(value: str) -> time:
    """Parse an ``HH:MM`` wall-clock string."""
    try:
        hours_str, minutes_str = value.strip().split(":")
        return time(int(hours_str), int(minutes_str))
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid time (expected HH:MM): {value!r}")


def format_time(value: str) -> str:
    """Format ``HH:MM`` for display, e.g. ``22:00`` -> ``10:00 PM``."""
    parsed = parse_time(value)
    period = "PM" if parsed.hour >= 12 else "AM"
    display_hours = parsed.hour - 12 if parsed.hour > 12 else (12 if parsed.hour == 0 else parsed.hour)
    return f"{display_hours}:{parsed.minute:02d} {period}"


def as_utc(value: Any) -> Optional[datetime]:
    """
    Coerce a stored timestamp to an aware UTC datetime.

    Accepts aware or naive datetimes (naive values are UTC, as Motor
    returns them without ``tz_aware``) and ISO-8601 strings written by
    older clients. Returns None for missing values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time())
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def week_monday(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


@dataclass(frozen=True)
class CheckInWindow:
    """Recurring weekly interval during which a due check-in may be submitted."""

    enabled: bool = True
    start_day: str = "friday"
    start_time: str = "10:00"
    end_day: str = "monday"
    end_time: str = "22:00"

    @classmethod
    def from_document(cls, data: Optional[Dict[str, Any]]) -> "CheckInWindow":
        """
        Build a window from its stored camelCase form.

        Missing windows use the default. Malformed ones are logged and
        replaced by the default so a bad document never breaks a listing.
        """
        if not data:
            return DEFAULT_CHECK_IN_WINDOW

        if (
            not isinstance(data, dict)
            or data.get("enabled") is None
            or not data.get("startDay")
            or not data.get("startTime")
        ):
            logger.warning(f"Malformed check-in window {data!r}, using default")
            return DEFAULT_CHECK_IN_WINDOW

        window = cls(
            enabled=bool(data["enabled"]),
            start_day=str(data["startDay"]).lower(),
            start_time=str(data["startTime"]),
            end_day=str(data.get("endDay") or DEFAULT_CHECK_IN_WINDOW.end_day).lower(),
            end_time=str(data.get("endTime") or DEFAULT_CHECK_IN_WINDOW.end_time),
        )

        is_valid, error = window.validate()
        if not is_valid:
            logger.warning(f"Invalid check-in window ({error}), using default")
            return DEFAULT_CHECK_IN_WINDOW

        return window

    def to_document(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "startDay": self.start_day,
            "startTime": self.start_time,
            "endDay": self.end_day,
            "endTime": self.end_time,
        }

    def validate(self) -> Tuple[bool, Optional[str]]:
        """
        Check day names and times.

        Returns:
            (is_valid, error_message) tuple
        """
        for label, day in (("startDay", self.start_day), ("endDay", self.end_day)):
            if day.lower() not in WEEKDAYS:
                return False, f"{label} must be a weekday name, got '{day}'"

        for label, value in (("startTime", self.start_time), ("endTime", self.end_time)):
            try:
                parse_time(value)
            except ValueError:
                return False, f"{label} must be HH:MM, got '{value}'"

        return True, None


DEFAULT_CHECK_IN_WINDOW = CheckInWindow()


@dataclass(frozen=True)
class WindowAnchor:
    """
    Week offsets of the window bounds relative to the due date's week.

    None selects the automatic rule; an integer pins the bound that many
    weeks from the anchor week (-1 = the week before the due date).
    """

    start_week_offset: Optional[int] = None
    end_week_offset: Optional[int] = None


@dataclass(frozen=True)
class WindowEvaluation:
    """Result of evaluating a window at a point in time."""

    is_open: bool
    message: str
    opens_at: Optional[datetime] = None
    closes_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isOpen": self.is_open,
            "message": self.message,
            "opensAt": self.opens_at.isoformat() if self.opens_at else None,
            "closesAt": self.closes_at.isoformat() if self.closes_at else None,
        }


def _localize(tz, day: date, at: time) -> datetime:
    return tz.localize(datetime.combine(day, at)).astimezone(timezone.utc)


def resolve_window_bounds(
    window: CheckInWindow,
    due_date: datetime,
    tz=pytz.utc,
    anchor: Optional[WindowAnchor] = None,
) -> Tuple[datetime, datetime]:
    """
    Resolve the window's start and end into UTC instants for one due date.

    Args:
        window: Window definition (days/times are local to ``tz``)
        due_date: The assignment's due date
        tz: pytz timezone the window is expressed in
        anchor: Week offset configuration

    Returns:
        (start, end) tuple of aware UTC datetimes, start <= end
    """
    anchor = anchor or WindowAnchor()
    due_utc = as_utc(due_date)
    monday = week_monday(due_utc.astimezone(tz).date())

    start_idx = weekday_index(window.start_day)
    end_idx = weekday_index(window.end_day)
    start_at = parse_time(window.start_time)
    end_at = parse_time(window.end_time)

    start_day = monday + timedelta(days=start_idx)
    if anchor.start_week_offset is None:
        start = _localize(tz, start_day, start_at)
        if start > due_utc:
            start_day -= timedelta(weeks=1)
            start = _localize(tz, start_day, start_at)
    else:
        start_day += timedelta(weeks=anchor.start_week_offset)
        start = _localize(tz, start_day, start_at)

    if anchor.end_week_offset is None:
        end_day = start_day + timedelta(days=(end_idx - start_idx) % 7)
        end = _localize(tz, end_day, end_at)
        if end < start:
            end = _localize(tz, end_day + timedelta(weeks=1), end_at)
    else:
        end_day = monday + timedelta(days=end_idx, weeks=anchor.end_week_offset)
        end = _localize(tz, end_day, end_at)

    return start, end


def evaluate_window(
    window: CheckInWindow,
    due_date: datetime,
    now: datetime,
    tz=pytz.utc,
    anchor: Optional[WindowAnchor] = None,
) -> WindowEvaluation:
    """
    Decide whether ``now`` is inside the submission window for ``due_date``.

    Args:
        window: Window definition
        due_date: The assignment's due date
        now: Current instant
        tz: pytz timezone the window is expressed in
        anchor: Week offset configuration

    Returns:
        WindowEvaluation with is_open and a user-facing message
    """
    if not window.enabled:
        return WindowEvaluation(is_open=True, message="Check-ins are always available")

    start, end = resolve_window_bounds(window, due_date, tz, anchor)
    now_utc = as_utc(now)

    if now_utc < start:
        day_name = start.astimezone(tz).strftime("%A")
        return WindowEvaluation(
            is_open=False,
            message=f"Check-in window opens {day_name} at {format_time(window.start_time)}",
            opens_at=start,
            closes_at=end,
        )

    if now_utc > end:
        day_name = end.astimezone(tz).strftime("%A")
        return WindowEvaluation(
            is_open=False,
            message=f"Check-in window closed {day_name} at {format_time(window.end_time)}",
            opens_at=start,
            closes_at=end,
        )

    return WindowEvaluation(
        is_open=True,
        message="Check-in window is open",
        opens_at=start,
        closes_at=end,
    )


def is_window_overdue(
    window: CheckInWindow,
    due_date: datetime,
    now: datetime,
    tz=pytz.utc,
    anchor: Optional[WindowAnchor] = None,
) -> bool:
    """
    Overdue = the window has closed and the nominal due date has passed.

    A disabled window never closes, so only the due date counts.
    """
    due_utc = as_utc(due_date)
    now_utc = as_utc(now)

    if not window.enabled:
        return due_utc < now_utc

    _, end = resolve_window_bounds(window, due_utc, tz, anchor)
    return now_utc > end and due_utc < now_utc


def describe_window(window: Optional[CheckInWindow]) -> str:
    """Human-readable window, e.g. ``Friday 10:00 AM - Monday 10:00 PM``."""
    if not window or not window.enabled:
        return "Check-ins available anytime"

    return (
        f"{window.start_day.capitalize()} {format_time(window.start_time)} - "
        f"{window.end_day.capitalize()} {format_time(window.end_time)}"
    )


class WindowPolicy:
    """
    Timezone and anchor configuration shared by every window evaluation.

    Services hold one policy built from settings so the anchor rule is a
    configuration parameter rather than a constant scattered through code.
    """

    def __init__(self, tz_name: str = "UTC", anchor: Optional[WindowAnchor] = None):
        self.tz = pytz.timezone(tz_name)
        self.anchor = anchor or WindowAnchor()

    def evaluate(self, window: CheckInWindow, due_date: datetime, now: datetime) -> WindowEvaluation:
        return evaluate_window(window, due_date, now, self.tz, self.anchor)

    def is_overdue(self, window: CheckInWindow, due_date: datetime, now: datetime) -> bool:
        return is_window_overdue(window, due_date, now, self.tz, self.anchor)

    def bounds(self, window: CheckInWindow, due_date: datetime) -> Tuple[datetime, datetime]:
        return resolve_window_bounds(window, due_date, self.tz, self.anchor)

    def localize(self, day: date, at: time) -> datetime:
        """Local wall-clock ``day at`` as an aware UTC datetime."""
        return _localize(self.tz, day, at)
