"""Tests for client id alias resolution."""

import pytest
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId

from app.services.checkin.client_identity import ClientIdentity, ClientIdentityResolver


CLIENT_OID = ObjectId("65a000000000000000000001")


def _make_resolver(by_id=None, by_uid=None):
    collection = AsyncMock()

    async def find_one(query):
        if "_id" in query:
            return by_id
        return by_uid

    collection.find_one = AsyncMock(side_effect=find_one)
    db = MagicMock()
    db.__getitem__ = MagicMock(return_value=collection)
    return ClientIdentityResolver(db=db), collection


class TestClientIdentityResolver:
    @pytest.mark.asyncio
    async def test_resolves_document_id(self):
        client = {"_id": CLIENT_OID, "authUid": "uid-1", "coachId": "coach-1"}
        resolver, _ = _make_resolver(by_id=client)

        identity = await resolver.resolve(str(CLIENT_OID))

        assert identity.canonical_id == str(CLIENT_OID)
        assert identity.aliases == (str(CLIENT_OID), "uid-1")
        assert identity.coach_id == "coach-1"

    @pytest.mark.asyncio
    async def test_resolves_auth_uid_to_document_id(self):
        client = {"_id": CLIENT_OID, "authUid": "uid-1", "coachId": "coach-1"}
        resolver, collection = _make_resolver(by_uid=client)

        identity = await resolver.resolve("uid-1")

        assert identity.canonical_id == str(CLIENT_OID)
        assert identity.aliases == (str(CLIENT_OID), "uid-1")
        # "uid-1" is not an ObjectId, so only the authUid lookup runs
        collection.find_one.assert_called_once_with({"authUid": "uid-1"})

    @pytest.mark.asyncio
    async def test_unknown_id_resolves_to_itself(self):
        resolver, _ = _make_resolver()

        identity = await resolver.resolve("stranger")

        assert identity.canonical_id == "stranger"
        assert identity.aliases == ("stranger",)
        assert identity.coach_id is None

    @pytest.mark.asyncio
    async def test_client_without_auth_uid(self):
        resolver, _ = _make_resolver(by_id={"_id": CLIENT_OID})

        identity = await resolver.resolve(str(CLIENT_OID))

        assert identity.aliases == (str(CLIENT_OID),)


class TestClientIdentity:
    def test_matches_any_alias(self):
        identity = ClientIdentity(canonical_id="c1", aliases=("c1", "uid-1"))
        assert identity.matches("uid-1")
        assert not identity.matches("other")
        assert not identity.matches(None)

    def test_display_name(self):
        identity = ClientIdentity("c1", ("c1",), document={"firstName": "Jane", "lastName": "Doe"})
        assert identity.display_name == "Jane Doe"

    def test_display_name_fallback(self):
        assert ClientIdentity("c1", ("c1",)).display_name == "Client"
