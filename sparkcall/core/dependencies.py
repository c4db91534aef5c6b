"""FastAPI dependencies."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from sparkcall.db.database import get_db
from sparkcall.services.persistence.base import CallRecordStore
from sparkcall.services.persistence.calls import SqlCallRecordStore
from sparkcall.services.persistence.messages import MessageStore


def get_call_record_store(db: AsyncSession = Depends(get_db)) -> CallRecordStore:
    """Get call record store instance."""
    return SqlCallRecordStore(db)


def get_message_store(db: AsyncSession = Depends(get_db)) -> MessageStore:
    """Get chat message store instance."""
    return MessageStore(db)
