"""
Check-in Platform FastAPI Application

Main entry point for the check-in scheduling and window-gating API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Common library imports
from common.database import MongoDB
from common.utils import APIException, error_response, success_response

# App-specific imports
from app.config import settings
from app.database import ensure_indexes

# Import routers
from app.routers import (
    admin_router,
    check_in_assignments_router,
    client_portal_router,
    scoring_router,
)

# Import service initialization
from app.dependencies import init_checkin_services

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


# =============================================================================
# Database Instance
# =============================================================================
main_db = MongoDB()


# =============================================================================
# Application Lifespan
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Connects to the database, ensures indexes and initializes services on
    startup; disconnects on shutdown.
    """
    logger.info("Starting check-in API...")

    try:
        settings.validate_required()
    except ValueError as e:
        if settings.is_production():
            raise
        logger.warning(str(e))

    await main_db.connect(
        uri=settings.MONGODB_URI,
        database_name=settings.MONGODB_DATABASE,
    )

    await ensure_indexes(main_db.db)

    init_checkin_services(db=main_db.db, app_settings=settings)
    logger.info(f"Check-in services initialized (timezone {settings.CHECKIN_TIMEZONE})")

    yield

    logger.info("Shutting down check-in API...")
    await main_db.disconnect()


# =============================================================================
# FastAPI Application
# =============================================================================
app = FastAPI(
    title="Check-in API",
    description="Recurring coach/client check-in scheduling and window gating",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.is_development() else None,
    redoc_url="/redoc" if settings.is_development() else None,
)

# =============================================================================
# CORS Middleware
# =============================================================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Error Responses
# =============================================================================
@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    """Render service errors in the standard error envelope."""
    details = exc.detail.get("details") if isinstance(exc.detail, dict) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.message, code=exc.code, details=details),
        headers=exc.headers,
    )


# =============================================================================
# Include Routers (all under /api prefix)
# =============================================================================
API_PREFIX = "/api"

app.include_router(client_portal_router, prefix=API_PREFIX, tags=["Client Portal"])
app.include_router(check_in_assignments_router, prefix=API_PREFIX, tags=["Check-in Assignments"])
app.include_router(scoring_router, prefix=API_PREFIX, tags=["Scoring"])
app.include_router(admin_router, prefix=API_PREFIX, tags=["Admin"])


# =============================================================================
# Health Check Endpoint
# =============================================================================
@app.get("/health", tags=["Health"])
async def health():
    """
    Health check endpoint.

    Returns the status of the API and database connection.
    """
    return success_response({
        "status": "ok",
        "version": API_VERSION,
        "database": main_db.is_connected,
    })


# =============================================================================
# Run with Uvicorn
# =============================================================================
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development(),
    )
