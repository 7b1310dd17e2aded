"""Shared test fixtures for check-in engine tests."""

import pytest
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from bson import ObjectId

from app.services.checkin.client_identity import ClientIdentity
from app.services.checkin.window_evaluator import WindowPolicy


CLIENT_ID = "65a000000000000000000001"
AUTH_UID = "auth-uid-123"
COACH_ID = "coach-1"
FORM_ID = "form-weekly"

# Monday 2026-01-05 09:00 UTC; default window is Fri 2026-01-02 10:00 to Mon 22:00
DUE_MONDAY = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def make_cursor(docs):
    """Motor-style cursor: chainable sort/skip/limit, awaitable to_list."""
    cursor = MagicMock()
    cursor.sort = MagicMock(return_value=cursor)
    cursor.skip = MagicMock(return_value=cursor)
    cursor.limit = MagicMock(return_value=cursor)
    cursor.to_list = AsyncMock(return_value=list(docs))
    return cursor


@asynccontextmanager
async def _no_transaction(db):
    yield "session"


@pytest.fixture
def no_transaction():
    """Replace MongoDB transactions with a no-op context manager."""
    with patch("app.services.checkin.pause_service.transaction", _no_transaction), \
            patch("app.services.checkin.series_service.transaction", _no_transaction):
        yield


@pytest.fixture
def mock_collections():
    collections = {}
    for name in (
        "check_in_assignments",
        "check_in_extensions",
        "clients",
        "clientScoring",
        "formResponses",
        "messages",
        "notifications",
    ):
        collection = AsyncMock()
        # Motor's find() returns a cursor synchronously (not a coroutine),
        # so use MagicMock for it. Async methods like find_one, insert_one,
        # update_one etc. stay as AsyncMock.
        collection.find = MagicMock(return_value=make_cursor([]))
        collection.update_one.return_value = MagicMock(modified_count=1)
        collection.insert_one.return_value = MagicMock(inserted_id=ObjectId())
        collections[name] = collection
    return collections


@pytest.fixture
def mock_db(mock_collections):
    db = MagicMock()
    db.__getitem__ = MagicMock(side_effect=lambda key: mock_collections.get(key, AsyncMock()))
    return db


@pytest.fixture
def policy():
    return WindowPolicy("UTC")


@pytest.fixture
def client_doc():
    return {
        "_id": ObjectId(CLIENT_ID),
        "authUid": AUTH_UID,
        "coachId": COACH_ID,
        "firstName": "Jane",
        "lastName": "Doe",
    }


@pytest.fixture
def client_identity(client_doc):
    return ClientIdentity(
        canonical_id=CLIENT_ID,
        aliases=(CLIENT_ID, AUTH_UID),
        coach_id=COACH_ID,
        document=client_doc,
    )


@pytest.fixture
def identity_resolver(client_identity):
    resolver = MagicMock()
    resolver.resolve = AsyncMock(return_value=client_identity)
    return resolver


@pytest.fixture
def make_assignment():
    """Factory for assignment documents with sensible defaults."""

    def _make(**overrides):
        doc = {
            "_id": ObjectId(),
            "clientId": CLIENT_ID,
            "coachId": COACH_ID,
            "formId": FORM_ID,
            "formTitle": "Weekly Reflection",
            "dueDate": DUE_MONDAY,
            "dueTime": "09:00",
            "checkInWindow": None,
            "status": "pending",
            "recurringWeek": 1,
            "totalWeeks": 12,
            "isRecurring": True,
            "completedAt": None,
            "responseId": None,
        }
        doc.update(overrides)
        return doc

    return _make
