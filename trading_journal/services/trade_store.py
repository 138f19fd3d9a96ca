"""CRUD over trading sessions and their trades.

Every read is scoped to the owning user; trades are reached through their
parent session. Mutations flush but leave the commit to the caller so that a
trade write and its capital update land together.
"""

import logging

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from trading_journal.models.database import utcnow
from trading_journal.models.trade import Trade
from trading_journal.models.trading_session import TradingSession, SessionType

logger = logging.getLogger(__name__)


class TradeStore:
    async def list_sessions(self, db_session: AsyncSession, user_id: str) -> list[TradingSession]:
        result = await db_session.execute(
            select(TradingSession)
            .where(TradingSession.user_id == user_id)
            .order_by(TradingSession.created_at.desc())
        )
        return list(result.scalars().all())

    async def create_session(
        self,
        db_session: AsyncSession,
        user_id: str,
        name: str,
        initial_capital: float,
        session_type: str = SessionType.FOREX.value,
    ) -> TradingSession:
        session = TradingSession(
            user_id=user_id,
            name=name,
            initial_capital=initial_capital,
            current_capital=initial_capital,
            session_type=SessionType(session_type),
        )
        db_session.add(session)
        await db_session.flush()
        logger.info("Created %s session %s for user %s", session.session_type.value, session.id, user_id)
        return session

    async def get_session(self, db_session: AsyncSession, user_id: str, session_id: str) -> TradingSession | None:
        result = await db_session.execute(
            select(TradingSession).where(
                TradingSession.id == session_id,
                TradingSession.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def delete_session(self, db_session: AsyncSession, user_id: str, session_id: str) -> bool:
        """Delete a session and all of its trades. False when nothing matched."""
        session = await self.get_session(db_session, user_id, session_id)
        if session is None:
            return False

        await db_session.execute(delete(Trade).where(Trade.session_id == session.id))
        await db_session.delete(session)
        await db_session.flush()
        logger.info("Deleted session %s for user %s", session_id, user_id)
        return True

    async def list_trades(self, db_session: AsyncSession, session_id: str) -> list[Trade]:
        result = await db_session.execute(
            select(Trade)
            .where(Trade.session_id == session_id)
            .order_by(Trade.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_user_trades(self, db_session: AsyncSession, user_id: str) -> list[Trade]:
        """All of a user's trades, grouped by session (newest session first)."""
        result = await db_session.execute(
            select(Trade)
            .join(TradingSession, Trade.session_id == TradingSession.id)
            .where(TradingSession.user_id == user_id)
            .order_by(TradingSession.created_at.desc(), Trade.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_trade(self, db_session: AsyncSession, user_id: str, trade_id: str) -> Trade | None:
        result = await db_session.execute(
            select(Trade)
            .join(TradingSession, Trade.session_id == TradingSession.id)
            .where(Trade.id == trade_id, TradingSession.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def add_trade(self, db_session: AsyncSession, session_id: str, fields: dict) -> Trade:
        trade = Trade(session_id=session_id, **fields)
        db_session.add(trade)
        await db_session.flush()
        logger.info("Added trade %s to session %s (P/L %.2f)", trade.id, session_id, trade.profit_loss)
        return trade

    async def update_trade(self, db_session: AsyncSession, trade: Trade, fields: dict) -> Trade:
        """Partial update: only the keys present in `fields` are written."""
        for key, value in fields.items():
            setattr(trade, key, value)
        await db_session.flush()
        logger.info("Updated trade %s (%s)", trade.id, ", ".join(sorted(fields)) or "no fields")
        return trade

    async def delete_trade(self, db_session: AsyncSession, trade: Trade) -> None:
        await db_session.delete(trade)
        await db_session.flush()
        logger.info("Deleted trade %s", trade.id)

    async def update_session_capital(
        self, db_session: AsyncSession, session: TradingSession, new_capital: float
    ) -> TradingSession:
        session.current_capital = new_capital
        session.updated_at = utcnow()
        await db_session.flush()
        return session
