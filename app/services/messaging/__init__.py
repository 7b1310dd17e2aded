from app.services.messaging.message_service import MessageService, conversation_id

__all__ = ["MessageService", "conversation_id"]
