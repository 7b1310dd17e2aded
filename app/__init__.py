"""
Check-in platform application code.

This package contains the check-in scheduling and window-gating engine:
- services: Window evaluation, scoring, assignment lifecycle, recurrence,
  pause/resume and missed/extension/reopen workflows
- pipelines: Stateless orchestration used by the routers
- routers: FastAPI endpoints
- schemas: Request/response models
- config: Application settings

Uses generic infrastructure from the common/ package.
"""

from app.config import settings

__all__ = ["settings"]
