"""
FastAPI router for traffic-light scoring endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from common.utils import success_response
from app.dependencies import (
    require_auth,
    require_coach,
    get_identity_resolver,
    get_scoring_config_service,
)
from app.services.checkin.client_identity import ClientIdentityResolver
from app.services.checkin.scoring_config_service import ScoringConfigService
from app.schemas.scoring import ClassifyScoreRequest, ScoringConfigRequest
from app.pipelines import scoring as pipelines

router = APIRouter(tags=["scoring"])


@router.get("/clients/{client_id}/scoring")
async def get_scoring_config(
    client_id: str,
    user: Annotated[dict, Depends(require_auth)],
    identity_resolver: Annotated[ClientIdentityResolver, Depends(get_identity_resolver)],
    scoring_config: Annotated[ScoringConfigService, Depends(get_scoring_config_service)],
):
    """Get a client's scoring profile and effective thresholds."""
    result = await pipelines.get_scoring_config_pipeline(
        identity_resolver=identity_resolver,
        scoring_config=scoring_config,
        actor=user,
        client_id=client_id,
    )
    return success_response(result)


@router.post("/clients/{client_id}/scoring")
async def save_scoring_config(
    client_id: str,
    body: ScoringConfigRequest,
    user: Annotated[dict, Depends(require_coach)],
    identity_resolver: Annotated[ClientIdentityResolver, Depends(get_identity_resolver)],
    scoring_config: Annotated[ScoringConfigService, Depends(get_scoring_config_service)],
):
    """Set a client's scoring profile, optionally with custom thresholds."""
    result = await pipelines.save_scoring_config_pipeline(
        identity_resolver=identity_resolver,
        scoring_config=scoring_config,
        actor=user,
        client_id=client_id,
        scoring_profile=body.scoringProfile,
        thresholds=body.thresholds.model_dump() if body.thresholds else None,
    )
    return success_response(result, message="Scoring configuration saved")


@router.post("/scoring/classify")
async def classify_score(
    body: ClassifyScoreRequest,
    user: Annotated[dict, Depends(require_auth)],
    identity_resolver: Annotated[ClientIdentityResolver, Depends(get_identity_resolver)],
    scoring_config: Annotated[ScoringConfigService, Depends(get_scoring_config_service)],
):
    """Classify a 0-100 score as red, orange or green."""
    result = await pipelines.classify_score_pipeline(
        identity_resolver=identity_resolver,
        scoring_config=scoring_config,
        actor=user,
        score=body.score,
        client_id=body.clientId,
        thresholds=body.thresholds.model_dump() if body.thresholds else None,
    )
    return success_response(result)
