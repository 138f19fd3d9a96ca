"""Persistence of assistant conversations.

Like TradeStore, methods only flush; committing is left to the caller.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trading_journal.models.chat_message import ChatMessage

logger = logging.getLogger(__name__)


class ChatStore:
    async def add_message(
        self, db_session: AsyncSession, user_id: str, message: str, message_type: str
    ) -> ChatMessage:
        entry = ChatMessage(user_id=user_id, message=message, message_type=message_type)
        db_session.add(entry)
        await db_session.flush()
        await db_session.refresh(entry)
        return entry

    async def save_turn(
        self, db_session: AsyncSession, user_id: str, user_message: str, ai_message: str
    ) -> tuple[ChatMessage, ChatMessage]:
        """Stage both sides of a turn, user first. The caller commits."""
        user_entry = ChatMessage(user_id=user_id, message=user_message, message_type="user")
        db_session.add(user_entry)
        await db_session.flush()

        ai_entry = ChatMessage(user_id=user_id, message=ai_message, message_type="ai")
        db_session.add(ai_entry)
        await db_session.flush()
        return user_entry, ai_entry

    async def get_history(self, db_session: AsyncSession, user_id: str, limit: int = 20) -> list[ChatMessage]:
        """Most recent messages, newest first."""
        result = await db_session.execute(
            select(ChatMessage)
            .where(ChatMessage.user_id == user_id)
            .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
