"""
FastAPI router for admin maintenance endpoints.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends

from common.utils import success_response
from app.dependencies import require_admin, get_series_service
from app.services.checkin.series_service import SeriesService
from app.schemas.checkin import CleanupRequest
from app.pipelines import checkin as pipelines

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/cleanup-precreated-checkins")
async def cleanup_precreated_checkins(
    user: Annotated[dict, Depends(require_admin)],
    series_service: Annotated[SeriesService, Depends(get_series_service)],
    body: Optional[CleanupRequest] = None,
):
    """
    Remove pre-created incomplete check-in assignments.

    Keeps all completed assignments and one template per (client, form).
    With dryRun only reports what would be deleted.
    """
    dry_run = body.dryRun if body else False

    logger.info(f"Admin {user['id']} started pre-created check-in cleanup (dryRun={dry_run})")
    summary = await pipelines.cleanup_precreated_pipeline(
        series_service=series_service,
        dry_run=dry_run,
    )
    return success_response({"dryRun": dry_run, "summary": summary}, message=summary["message"])
