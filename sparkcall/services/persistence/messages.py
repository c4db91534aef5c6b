"""Chat message persistence."""
import logging
from datetime import datetime
from typing import Callable, List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sparkcall.core.exceptions import RecordStoreError
from sparkcall.db.models import ChatMessage
from sparkcall.services.call_session.models import as_utc, utcnow
from sparkcall.services.chat.models import ChatMessageRecord, NewChatMessage

logger = logging.getLogger(__name__)


def to_message_record(message: ChatMessage) -> ChatMessageRecord:
    return ChatMessageRecord(
        id=f"msg_{message.id}",
        sender_id=message.sender_id,
        receiver_id=message.receiver_id,
        content=message.content,
        timestamp=as_utc(message.timestamp),
        chat_id=message.chat_id,
    )


class MessageStore:
    """Service for persisting chat messages."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    async def send(self, new_message: NewChatMessage) -> ChatMessageRecord:
        """Store a message and stamp it with the current time."""
        message = ChatMessage(
            chat_id=new_message.chat_id,
            sender_id=new_message.sender_id,
            receiver_id=new_message.receiver_id,
            content=new_message.content,
            timestamp=self.clock(),
        )
        self.db.add(message)
        try:
            await self.db.commit()
            await self.db.refresh(message)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise RecordStoreError("Failed to send message", details=str(e)) from e
        return to_message_record(message)

    async def list(self, chat_id: str) -> List[ChatMessageRecord]:
        """Messages in a chat, oldest first."""
        try:
            result = await self.db.execute(
                select(ChatMessage)
                .where(ChatMessage.chat_id == chat_id)
                .order_by(ChatMessage.timestamp, ChatMessage.id)
            )
        except SQLAlchemyError as e:
            raise RecordStoreError("Failed to fetch messages", details=str(e)) from e
        return [to_message_record(message) for message in result.scalars().all()]
