"""
Scoring pipeline functions.
"""

from typing import Optional, Dict, Any

from common.utils.exceptions import ValidationException
from app.pipelines.access import ensure_client_access
from app.services.checkin.client_identity import ClientIdentityResolver
from app.services.checkin.scoring import (
    TRAFFIC_LIGHT_LABELS,
    TRAFFIC_LIGHT_MESSAGES,
    ScoringThresholds,
    classify_score,
    validate_thresholds,
)
from app.services.checkin.scoring_config_service import ScoringConfigService


async def get_scoring_config_pipeline(
    identity_resolver: ClientIdentityResolver,
    scoring_config: ScoringConfigService,
    actor: Dict[str, Any],
    client_id: str,
) -> Dict[str, Any]:
    identity = await ensure_client_access(identity_resolver, actor, client_id)
    return await scoring_config.get_config(identity.aliases)


async def save_scoring_config_pipeline(
    identity_resolver: ClientIdentityResolver,
    scoring_config: ScoringConfigService,
    actor: Dict[str, Any],
    client_id: str,
    scoring_profile: str,
    thresholds: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    identity = await ensure_client_access(identity_resolver, actor, client_id)
    return await scoring_config.save_config(identity.canonical_id, scoring_profile, thresholds)


async def classify_score_pipeline(
    identity_resolver: ClientIdentityResolver,
    scoring_config: ScoringConfigService,
    actor: Dict[str, Any],
    score: float,
    client_id: Optional[str] = None,
    thresholds: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Classify a score with explicit thresholds or a client's configured ones.

    Explicit thresholds are validated like a stored configuration would be.
    """
    if thresholds is not None:
        is_valid, error = validate_thresholds(thresholds.get("redMax"), thresholds.get("orangeMax"))
        if not is_valid:
            raise ValidationException(message=error, code="INVALID_THRESHOLDS")
        resolved = ScoringThresholds.from_document(thresholds)
    elif client_id:
        identity = await ensure_client_access(identity_resolver, actor, client_id)
        resolved = await scoring_config.get_thresholds(identity.aliases)
    else:
        resolved = scoring_config.default_thresholds()

    traffic_light = classify_score(score, resolved)
    return {
        "score": score,
        "trafficLight": traffic_light,
        "label": TRAFFIC_LIGHT_LABELS[traffic_light],
        "message": TRAFFIC_LIGHT_MESSAGES[traffic_light],
        "thresholds": resolved.to_document(),
    }
