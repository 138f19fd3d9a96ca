import enum

from sqlalchemy import Column, String, Float, DateTime, Text, ForeignKey

from trading_journal.models.database import Base, new_id, utcnow


class EntrySide(str, enum.Enum):
    LONG = "Long"
    SHORT = "Short"


class PositionState(str, enum.Enum):
    OPEN = "Open"
    CLOSED = "Closed"


class CloseReason(str, enum.Enum):
    TP = "TP"
    SL = "SL"
    EARLY_CLOSE = "Early Close"
    OTHER = "Other"


FOREX_FIELDS = (
    "symbol", "volume_lot", "open_price", "close_price", "tp", "sl",
    "position", "open_time", "close_time", "reason", "leverage", "contract_size",
)

CRYPTO_FIELDS = (
    "futures_symbol", "margin_mode", "avg_entry_price", "avg_close_price", "direction",
    "margin_adjustment_history", "closing_quantity", "realized_pnl",
    "open_time", "close_time", "position", "reason",
)


class Trade(Base):
    __tablename__ = "trades"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(
        String(36),
        ForeignKey("trading_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    margin = Column(Float, nullable=False)
    roi = Column(Float, nullable=False)
    entry_side = Column(String, nullable=False)  # Long, Short
    profit_loss = Column(Float, nullable=False)
    comments = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    # Shared descriptive fields
    symbol = Column(String, nullable=True)
    volume_lot = Column(Float, nullable=True)
    open_price = Column(Float, nullable=True)
    close_price = Column(Float, nullable=True)
    tp = Column(Float, nullable=True)
    sl = Column(Float, nullable=True)
    position = Column(String, nullable=True)  # Open, Closed
    open_time = Column(DateTime, nullable=True)
    close_time = Column(DateTime, nullable=True)
    reason = Column(String, nullable=True)  # TP, SL, Early Close, Other

    # Forex
    leverage = Column(Float, nullable=True)
    contract_size = Column(Float, nullable=True)

    # Crypto futures
    futures_symbol = Column(String, nullable=True)
    margin_mode = Column(String, nullable=True)  # Cross, Isolated
    avg_entry_price = Column(Float, nullable=True)
    avg_close_price = Column(Float, nullable=True)
    direction = Column(String, nullable=True)  # Long, Short
    margin_adjustment_history = Column(Text, nullable=True)
    closing_quantity = Column(Float, nullable=True)
    realized_pnl = Column(Float, nullable=True)
