"""
Check-in platform API routers.

All routers are imported here for easy access.
"""

from app.routers.admin import router as admin_router
from app.routers.check_in_assignments import router as check_in_assignments_router
from app.routers.client_portal import router as client_portal_router
from app.routers.scoring import router as scoring_router

__all__ = [
    "admin_router",
    "check_in_assignments_router",
    "client_portal_router",
    "scoring_router",
]
