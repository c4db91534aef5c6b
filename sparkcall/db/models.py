"""Database models."""
from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Call(Base):
    """Call record model."""

    __tablename__ = "calls"

    id = Column(Integer, primary_key=True, index=True)
    caller_id = Column(String, index=True, nullable=False)
    receiver_id = Column(String, index=True, nullable=False)
    status = Column(String, default="initiated", nullable=False)  # initiated, ongoing, ended, missed
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    duration = Column(Integer, nullable=True)  # whole minutes


class ChatMessage(Base):
    """Chat message model."""

    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(String, index=True, nullable=False)
    sender_id = Column(String, nullable=False)
    receiver_id = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
