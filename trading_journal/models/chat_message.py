"""Stored chat turns. One row per side: the user's message and the assistant's reply."""

from sqlalchemy import Column, Integer, String, DateTime, Text

from trading_journal.models.database import Base, utcnow


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    message = Column(Text, nullable=False)
    response = Column(Text, nullable=True)
    message_type = Column(String, nullable=False)  # user, ai
    created_at = Column(DateTime, default=utcnow, index=True)
