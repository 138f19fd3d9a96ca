import enum

from sqlalchemy import Column, String, Float, DateTime, Enum as SAEnum

from trading_journal.models.database import Base, new_id, utcnow


class SessionType(str, enum.Enum):
    FOREX = "Forex"
    CRYPTO = "Crypto"


class TradingSession(Base):
    __tablename__ = "trading_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    initial_capital = Column(Float, nullable=False, default=0.0)
    current_capital = Column(Float, nullable=False, default=0.0)
    session_type = Column(
        SAEnum(SessionType, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SessionType.FOREX,
    )
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow)
