"""
Client identity resolution.

The same client can be referenced by the client document id or by the
auth-provider uid, depending on which part of the product is calling.
Operations resolve the full alias set once, up front, and use it for every
query that follows.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientIdentity:
    """Every id a single client is known by."""

    canonical_id: str
    aliases: Tuple[str, ...]
    coach_id: Optional[str] = None
    document: Optional[Dict[str, Any]] = field(default=None, compare=False)

    def matches(self, client_id: Optional[str]) -> bool:
        return client_id is not None and client_id in self.aliases

    @property
    def display_name(self) -> str:
        doc = self.document or {}
        name = " ".join(part for part in (doc.get("firstName"), doc.get("lastName")) if part).strip()
        return name or "Client"


def _unique(ids: List[Optional[str]]) -> Tuple[str, ...]:
    seen: List[str] = []
    for value in ids:
        if value and value not in seen:
            seen.append(value)
    return tuple(seen)


class ClientIdentityResolver:
    """Looks up a client by document id or auth uid and returns all aliases."""

    def __init__(self, db: AsyncIOMotorDatabase):
        """
        Initialize ClientIdentityResolver.

        Args:
            db: MongoDB database connection
        """
        self._db = db
        self._clients_collection = db["clients"]

    async def resolve(self, client_id: str) -> ClientIdentity:
        """
        Resolve ``client_id`` to the client's alias set.

        Unknown ids resolve to themselves so callers can still match
        assignments stored under an id with no client document.

        Args:
            client_id: Client document id or auth uid

        Returns:
            ClientIdentity with the canonical id first in ``aliases``
        """
        client = None
        if ObjectId.is_valid(client_id):
            client = await self._clients_collection.find_one({"_id": ObjectId(client_id)})

        if client:
            aliases = _unique([client_id, client.get("authUid")])
            return ClientIdentity(
                canonical_id=client_id,
                aliases=aliases,
                coach_id=client.get("coachId"),
                document=client,
            )

        client = await self._clients_collection.find_one({"authUid": client_id})
        if client:
            canonical_id = str(client["_id"])
            aliases = _unique([canonical_id, client_id, client.get("authUid")])
            logger.debug(f"Resolved auth uid to client {canonical_id}")
            return ClientIdentity(
                canonical_id=canonical_id,
                aliases=aliases,
                coach_id=client.get("coachId"),
                document=client,
            )

        logger.debug(f"No client document for {client_id}, using id as-is")
        return ClientIdentity(canonical_id=client_id, aliases=(client_id,))
