"""Chat message models."""
from datetime import datetime

from pydantic import Field

from sparkcall.core.config import settings
from sparkcall.services.call_session.models import CamelModel


class NewChatMessage(CamelModel):
    """Message as submitted by a sender."""

    sender_id: str = Field(min_length=1)
    receiver_id: str = Field(min_length=1)
    content: str = Field(min_length=1, max_length=settings.chat_message_max_length)
    chat_id: str = Field(min_length=1)


class ChatMessageRecord(CamelModel):
    """Stored chat message."""

    id: str
    sender_id: str
    receiver_id: str
    content: str
    timestamp: datetime
    chat_id: str
