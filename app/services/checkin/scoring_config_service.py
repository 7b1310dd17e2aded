"""
Per-client scoring configuration.

Stored in ``clientScoring`` as ``{clientId, scoringProfile, thresholds?}``.
Thresholds are validated here, on write. Reads always resolve to a usable
set of thresholds.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Sequence

from motor.motor_asyncio import AsyncIOMotorDatabase

from common.utils.exceptions import ValidationException
from app.services.checkin.scoring import (
    DEFAULT_PROFILE,
    SCORING_PROFILES,
    ScoringThresholds,
    describe_score_ranges,
    get_default_thresholds,
    resolve_thresholds,
    validate_thresholds,
)

logger = logging.getLogger(__name__)


class ScoringConfigService:
    """Reads and writes client scoring profiles and threshold overrides."""

    def __init__(self, db: AsyncIOMotorDatabase, default_profile: str = DEFAULT_PROFILE):
        """
        Initialize ScoringConfigService.

        Args:
            db: MongoDB database connection
            default_profile: Profile used when a client has no configuration
        """
        self._db = db
        self._collection = db["clientScoring"]
        self._default_profile = default_profile

    async def _find_config(self, client_ids: Sequence[str]) -> Optional[Dict[str, Any]]:
        return await self._collection.find_one({"clientId": {"$in": list(client_ids)}})

    def default_thresholds(self) -> ScoringThresholds:
        return get_default_thresholds(self._default_profile)

    async def get_thresholds(self, client_ids: Sequence[str]) -> ScoringThresholds:
        """
        Effective thresholds for a client known by any of ``client_ids``.

        Args:
            client_ids: Every alias of the client

        Returns:
            ScoringThresholds (override, then profile, then default profile)
        """
        config = await self._find_config(client_ids)
        return resolve_thresholds(config, self._default_profile)

    async def get_config(self, client_ids: Sequence[str]) -> Dict[str, Any]:
        """Stored configuration merged with the resolved thresholds."""
        config = await self._find_config(client_ids)
        thresholds = resolve_thresholds(config, self._default_profile)
        profile = (config or {}).get("scoringProfile") or self._default_profile

        return {
            "clientId": client_ids[0],
            "scoringProfile": profile,
            "thresholds": thresholds.to_document(),
            "isCustom": bool(config and config.get("thresholds")),
            "ranges": describe_score_ranges(thresholds),
        }

    async def save_config(
        self,
        client_id: str,
        scoring_profile: str,
        thresholds: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Save a client's scoring profile and optional threshold override.

        Raises:
            ValidationException: Unknown profile or invalid thresholds
        """
        if scoring_profile not in SCORING_PROFILES:
            raise ValidationException(
                message=f"Unknown scoring profile '{scoring_profile}'",
                code="INVALID_SCORING_PROFILE",
            )

        update: Dict[str, Any] = {
            "clientId": client_id,
            "scoringProfile": scoring_profile,
            "updatedAt": datetime.now(timezone.utc),
        }
        unset: Dict[str, Any] = {}

        if thresholds is not None:
            red_max = thresholds.get("redMax")
            orange_max = thresholds.get("orangeMax")
            is_valid, error = validate_thresholds(red_max, orange_max)
            if not is_valid:
                raise ValidationException(message=error, code="INVALID_THRESHOLDS")
            update["thresholds"] = ScoringThresholds(red_max, orange_max).to_document()
        else:
            unset["thresholds"] = ""

        operation: Dict[str, Any] = {"$set": update}
        if unset:
            operation["$unset"] = unset

        await self._collection.update_one({"clientId": client_id}, operation, upsert=True)

        logger.info(f"Saved scoring profile '{scoring_profile}' for client {client_id}")
        return await self.get_config([client_id])
