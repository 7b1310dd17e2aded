"""
FastAPI dependencies for the check-in platform.

Provides dependency injection for authentication and every check-in service.
Services are created once at startup by ``init_checkin_services``.
"""

from functools import lru_cache
from typing import Annotated, Any, Dict, Optional

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.auth import AuthProvider, JWTAuth, create_auth_dependency
from common.utils.exceptions import ForbiddenException, UnauthorizedException

from app.config import Settings, settings
from app.pipelines.access import ROLES

# Check-in services
from app.services.checkin.assignment_service import AssignmentService
from app.services.checkin.client_identity import ClientIdentityResolver
from app.services.checkin.pause_service import PauseService
from app.services.checkin.recurrence_resolver import RecurrenceResolver
from app.services.checkin.reopen_service import ReopenService
from app.services.checkin.scoring_config_service import ScoringConfigService
from app.services.checkin.series_service import SeriesService
from app.services.checkin.window_evaluator import WindowAnchor, WindowPolicy

# Outbound collaborators
from app.services.messaging.message_service import MessageService
from app.services.notifications.notification_service import NotificationService


# ─────────────────────────────────────────────────────────────────
# Service singletons
# ─────────────────────────────────────────────────────────────────

_identity_resolver: Optional[ClientIdentityResolver] = None
_assignment_service: Optional[AssignmentService] = None
_recurrence_resolver: Optional[RecurrenceResolver] = None
_pause_service: Optional[PauseService] = None
_reopen_service: Optional[ReopenService] = None
_series_service: Optional[SeriesService] = None
_scoring_config_service: Optional[ScoringConfigService] = None


def build_window_policy(app_settings: Settings) -> WindowPolicy:
    """Window timezone and anchor rule from settings."""
    return WindowPolicy(
        tz_name=app_settings.CHECKIN_TIMEZONE,
        anchor=WindowAnchor(
            start_week_offset=app_settings.CHECKIN_WINDOW_START_WEEK_OFFSET,
            end_week_offset=app_settings.CHECKIN_WINDOW_END_WEEK_OFFSET,
        ),
    )


def init_checkin_services(db: AsyncIOMotorDatabase, app_settings: Settings = settings) -> None:
    """
    Initialize check-in services with database connection.

    Called once at application startup.

    Args:
        db: MongoDB database connection
        app_settings: Settings to configure the services with
    """
    global _identity_resolver, _assignment_service, _recurrence_resolver
    global _pause_service, _reopen_service, _series_service, _scoring_config_service

    policy = build_window_policy(app_settings)

    _identity_resolver = ClientIdentityResolver(db=db)
    _scoring_config_service = ScoringConfigService(
        db=db,
        default_profile=app_settings.DEFAULT_SCORING_PROFILE,
    )
    _assignment_service = AssignmentService(
        db=db,
        identity_resolver=_identity_resolver,
        policy=policy,
        scoring_config=_scoring_config_service,
        notifications=NotificationService(db=db),
        missed_min_days_overdue=app_settings.MISSED_MIN_DAYS_OVERDUE,
    )
    _recurrence_resolver = RecurrenceResolver(
        db=db,
        identity_resolver=_identity_resolver,
        policy=policy,
        week_due_hour=app_settings.WEEK_DUE_HOUR,
    )
    _pause_service = PauseService(db=db, identity_resolver=_identity_resolver)
    _reopen_service = ReopenService(
        db=db,
        assignments=_assignment_service,
        identity_resolver=_identity_resolver,
        messages=MessageService(db=db),
        min_reason_length=app_settings.EXTENSION_MIN_REASON_LENGTH,
    )
    _series_service = SeriesService(
        db=db,
        identity_resolver=_identity_resolver,
        policy=policy,
        default_total_weeks=app_settings.DEFAULT_TOTAL_WEEKS,
        cleanup_batch_size=app_settings.CLEANUP_BATCH_SIZE,
    )


def _require(service):
    if service is None:
        raise RuntimeError("Check-in services not initialized. Call init_checkin_services first.")
    return service


def get_identity_resolver() -> ClientIdentityResolver:
    """Get client identity resolver instance."""
    return _require(_identity_resolver)


def get_assignment_service() -> AssignmentService:
    """Get assignment service instance."""
    return _require(_assignment_service)


def get_recurrence_resolver() -> RecurrenceResolver:
    """Get recurrence resolver instance."""
    return _require(_recurrence_resolver)


def get_pause_service() -> PauseService:
    """Get pause service instance."""
    return _require(_pause_service)


def get_reopen_service() -> ReopenService:
    """Get reopen service instance."""
    return _require(_reopen_service)


def get_series_service() -> SeriesService:
    """Get series service instance."""
    return _require(_series_service)


def get_scoring_config_service() -> ScoringConfigService:
    """Get scoring config service instance."""
    return _require(_scoring_config_service)


# ─────────────────────────────────────────────────────────────────
# Authentication
# ─────────────────────────────────────────────────────────────────

@lru_cache()
def get_auth_provider() -> AuthProvider:
    """
    Get the bearer token verifier.

    Token issuance happens elsewhere; this service only verifies.
    """
    if not settings.JWT_SECRET:
        raise ValueError("JWT_SECRET is required for JWT auth")

    return JWTAuth(secret=settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


get_current_claims = create_auth_dependency(get_auth_provider)


async def require_auth(
    claims: Annotated[Dict[str, Any], Depends(get_current_claims)],
) -> Dict[str, Any]:
    """
    Dependency that requires authentication.

    Returns:
        Acting user as ``{"id", "role"}``
    """
    user_id = claims.get("sub")
    if not user_id:
        raise UnauthorizedException(message="Token has no subject", code="INVALID_TOKEN")

    role = claims.get("role", "client")
    if role not in ROLES:
        raise ForbiddenException(message=f"Unknown role '{role}'")

    return {"id": str(user_id), "role": role}


def require_roles(*roles: str):
    """Dependency factory restricting an endpoint to the given roles."""

    async def dependency(
        user: Annotated[Dict[str, Any], Depends(require_auth)],
    ) -> Dict[str, Any]:
        if user["role"] not in roles:
            raise ForbiddenException(message=f"This action requires role: {', '.join(roles)}")
        return user

    return dependency


require_client = require_roles("client")
require_client_or_admin = require_roles("client", "admin")
require_coach = require_roles("coach", "admin")
require_admin = require_roles("admin")
