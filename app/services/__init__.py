"""
Check-in platform services.

All service classes organized by feature.
"""

# Check-in services
from app.services.checkin import (
    AssignmentService,
    ClientIdentityResolver,
    PauseService,
    RecurrenceResolver,
    ReopenService,
    ScoringConfigService,
    SeriesService,
)

# Outbound collaborators
from app.services.messaging import MessageService
from app.services.notifications import NotificationService
