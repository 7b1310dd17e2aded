"""
Notification services.

Handles in-app notification creation for coaches.
"""

from app.services.notifications.notification_service import NotificationService

__all__ = ["NotificationService"]
