"""Tests for recurrence resolution (find-or-create per week)."""

import pytest
from datetime import date, datetime, timezone
from unittest.mock import MagicMock
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from common.utils.exceptions import ConflictException, NotFoundException, ValidationException
from app.services.checkin.recurrence_resolver import (
    DueDateKeyed,
    RecurrenceResolver,
    WeekStartKeyed,
    match_occurrence,
    parse_week_start,
)
from app.services.checkin.window_evaluator import WindowPolicy

from conftest import CLIENT_ID, AUTH_UID, FORM_ID, make_cursor


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


NOW = utc(2026, 1, 10, 12, 0)


@pytest.fixture
def assignments(mock_collections):
    return mock_collections["check_in_assignments"]


@pytest.fixture
def resolver(mock_db, identity_resolver, policy):
    return RecurrenceResolver(db=mock_db, identity_resolver=identity_resolver, policy=policy)


# ─────────────────────────────────────────────────────────────────
# Identities
# ─────────────────────────────────────────────────────────────────

class TestParseWeekStart:
    def test_monday(self):
        assert parse_week_start("2026-01-05") == date(2026, 1, 5)

    def test_accepts_timestamp_suffix(self):
        assert parse_week_start("2026-01-05T00:00:00Z") == date(2026, 1, 5)

    @pytest.mark.parametrize("value", [None, "", "05/01/2026", "2026-01-06"])
    def test_invalid(self, value):
        with pytest.raises(ValidationException) as exc_info:
            parse_week_start(value)
        assert exc_info.value.code == "INVALID_WEEK_START"


class TestMatchOccurrence:
    def test_keys(self):
        assert WeekStartKeyed(date(2026, 1, 5)).key == "weekStart:2026-01-05"
        assert DueDateKeyed(3).key == "week:3"

    def test_week_start_match(self, make_assignment):
        doc = make_assignment(reflectionWeekStart="2026-01-05")
        assert match_occurrence([doc], WeekStartKeyed(date(2026, 1, 5))) is doc
        assert match_occurrence([doc], WeekStartKeyed(date(2026, 1, 12))) is None

    def test_week_start_match_on_stored_datetime(self, make_assignment):
        doc = make_assignment(reflectionWeekStart=utc(2026, 1, 5))
        assert match_occurrence([doc], WeekStartKeyed(date(2026, 1, 5))) is doc

    def test_due_date_keyed_ignores_week_start_documents(self, make_assignment):
        week_start_doc = make_assignment(reflectionWeekStart="2026-01-05", recurringWeek=1)
        assert match_occurrence([week_start_doc], DueDateKeyed(1)) is None

        plain = make_assignment(recurringWeek=1)
        assert match_occurrence([week_start_doc, plain], DueDateKeyed(1)) is plain


# ─────────────────────────────────────────────────────────────────
# Week-start keyed
# ─────────────────────────────────────────────────────────────────

class TestResolveWeekStart:
    @pytest.mark.asyncio
    async def test_returns_existing(self, resolver, assignments, make_assignment):
        existing = make_assignment(reflectionWeekStart="2026-01-05")
        assignments.find.return_value = make_cursor([make_assignment(), existing])

        result = await resolver.resolve_week(CLIENT_ID, FORM_ID, "2026-01-05", now=NOW)

        assert result is existing
        assignments.insert_one.assert_not_called()
        assignments.find.assert_called_once_with(
            {"clientId": {"$in": [CLIENT_ID, AUTH_UID]}, "formId": FORM_ID}
        )

    @pytest.mark.asyncio
    async def test_existing_under_other_alias_is_reused(self, resolver, assignments, make_assignment):
        existing = make_assignment(clientId=AUTH_UID, reflectionWeekStart="2026-01-05")
        assignments.find.return_value = make_cursor([existing])

        result = await resolver.resolve_week(AUTH_UID, FORM_ID, "2026-01-05", now=NOW)

        assert result is existing
        assignments.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_creates_from_template(self, resolver, assignments, make_assignment):
        template = make_assignment(formTitle="Weekly Reflection")
        assignments.find.return_value = make_cursor([template])
        new_id = ObjectId()
        assignments.insert_one.return_value = MagicMock(inserted_id=new_id)

        result = await resolver.resolve_week(CLIENT_ID, FORM_ID, "2026-01-05", now=NOW)

        created = assignments.insert_one.call_args[0][0]
        assert created["reflectionWeekStart"] == "2026-01-05"
        assert created["recurrenceKey"] == "weekStart:2026-01-05"
        assert created["dueDate"] == utc(2026, 1, 12, 9, 0)
        assert created["status"] == "pending"
        assert created["checkInWindow"] is None
        assert created["clientId"] == CLIENT_ID
        assert created["formTitle"] == "Weekly Reflection"
        assert result["_id"] == new_id

    @pytest.mark.asyncio
    async def test_due_date_uses_local_timezone(self, mock_db, identity_resolver, assignments, make_assignment):
        resolver = RecurrenceResolver(
            db=mock_db,
            identity_resolver=identity_resolver,
            policy=WindowPolicy("Europe/Stockholm"),
        )
        assignments.find.return_value = make_cursor([make_assignment()])

        await resolver.resolve_week(CLIENT_ID, FORM_ID, "2026-01-05", now=NOW)

        created = assignments.insert_one.call_args[0][0]
        assert created["dueDate"] == utc(2026, 1, 12, 8, 0)

    @pytest.mark.asyncio
    async def test_no_series(self, resolver, assignments):
        assignments.find.return_value = make_cursor([])

        with pytest.raises(NotFoundException) as exc_info:
            await resolver.resolve_week(CLIENT_ID, FORM_ID, "2026-01-05", now=NOW)

        assert exc_info.value.code == "SERIES_NOT_FOUND"
        assert "Ask your coach" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_duplicate_key_rereads_winner(self, resolver, assignments, make_assignment):
        template = make_assignment()
        winner = make_assignment(reflectionWeekStart="2026-01-05")
        assignments.find.side_effect = [make_cursor([template]), make_cursor([template, winner])]
        assignments.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

        result = await resolver.resolve_week(CLIENT_ID, FORM_ID, "2026-01-05", now=NOW)

        assert result is winner

    @pytest.mark.asyncio
    async def test_duplicate_key_without_winner_conflicts(self, resolver, assignments, make_assignment):
        template = make_assignment()
        assignments.find.side_effect = [make_cursor([template]), make_cursor([template])]
        assignments.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

        with pytest.raises(ConflictException) as exc_info:
            await resolver.resolve_week(CLIENT_ID, FORM_ID, "2026-01-05", now=NOW)

        assert exc_info.value.code == "ASSIGNMENT_CONFLICT"


# ─────────────────────────────────────────────────────────────────
# Due-date keyed
# ─────────────────────────────────────────────────────────────────

class TestResolveDueDateKeyed:
    @pytest.mark.asyncio
    async def test_creates_week_from_base(self, resolver, assignments, make_assignment):
        window = {"enabled": True, "startDay": "friday", "startTime": "10:00",
                  "endDay": "monday", "endTime": "22:00"}
        base = make_assignment(recurringWeek=1, checkInWindow=window, totalWeeks=12)
        assignments.find.return_value = make_cursor([base])

        await resolver.resolve(CLIENT_ID, FORM_ID, DueDateKeyed(4), now=NOW)

        created = assignments.insert_one.call_args[0][0]
        assert created["recurringWeek"] == 4
        assert created["recurrenceKey"] == "week:4"
        assert created["dueDate"] == utc(2026, 1, 26, 9, 0)
        assert created["checkInWindow"] == window
        assert "reflectionWeekStart" not in created

    @pytest.mark.asyncio
    async def test_returns_existing_week(self, resolver, assignments, make_assignment):
        week2 = make_assignment(recurringWeek=2, dueDate=utc(2026, 1, 12, 9, 0))
        assignments.find.return_value = make_cursor([make_assignment(), week2])

        result = await resolver.resolve(CLIENT_ID, FORM_ID, DueDateKeyed(2), now=NOW)

        assert result is week2
        assignments.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_week_out_of_range(self, resolver, assignments, make_assignment):
        assignments.find.return_value = make_cursor([make_assignment(totalWeeks=4)])

        with pytest.raises(ValidationException) as exc_info:
            await resolver.resolve(CLIENT_ID, FORM_ID, DueDateKeyed(5), now=NOW)

        assert exc_info.value.code == "WEEK_OUT_OF_RANGE"

    @pytest.mark.asyncio
    async def test_only_week_start_documents(self, resolver, assignments, make_assignment):
        assignments.find.return_value = make_cursor([make_assignment(reflectionWeekStart="2026-01-05")])

        with pytest.raises(NotFoundException):
            await resolver.resolve(CLIENT_ID, FORM_ID, DueDateKeyed(2), now=NOW)


class TestNextOccurrence:
    @pytest.mark.asyncio
    async def test_skips_past_completed_and_missed(self, resolver, assignments, make_assignment):
        docs = [
            make_assignment(recurringWeek=1, dueDate=utc(2026, 1, 5, 9, 0)),
            make_assignment(recurringWeek=2, dueDate=utc(2026, 1, 12, 9, 0), status="completed", responseId="r"),
            make_assignment(recurringWeek=3, dueDate=utc(2026, 1, 19, 9, 0), status="missed"),
            make_assignment(recurringWeek=4, dueDate=utc(2026, 1, 26, 9, 0)),
        ]
        assignments.find.return_value = make_cursor(docs)

        result = await resolver.next_occurrence(CLIENT_ID, FORM_ID, now=NOW)

        assert result["recurringWeek"] == 4

    @pytest.mark.asyncio
    async def test_none_left(self, resolver, assignments, make_assignment):
        assignments.find.return_value = make_cursor([make_assignment()])

        assert await resolver.next_occurrence(CLIENT_ID, FORM_ID, now=NOW) is None
