"""Row to response-model conversion shared by the session and trade routes."""

from trading_journal.models.schemas import (
    CryptoTradeDetails,
    ForexTradeDetails,
    SessionResponse,
    TradeResponse,
)
from trading_journal.models.trade import CRYPTO_FIELDS, FOREX_FIELDS, Trade
from trading_journal.models.trading_session import SessionType, TradingSession


def session_type_of(session: TradingSession) -> str:
    return SessionType(session.session_type).value


def session_response(session: TradingSession) -> SessionResponse:
    return SessionResponse(
        id=session.id,
        user_id=session.user_id,
        name=session.name,
        initial_capital=session.initial_capital,
        current_capital=session.current_capital,
        session_type=session_type_of(session),
        created_at=session.created_at,
        updated_at=session.updated_at,
    )


def trade_response(trade: Trade, session_type: str) -> TradeResponse:
    if session_type == SessionType.CRYPTO.value:
        details = CryptoTradeDetails(kind="Crypto", **{f: getattr(trade, f) for f in CRYPTO_FIELDS})
    else:
        details = ForexTradeDetails(kind="Forex", **{f: getattr(trade, f) for f in FOREX_FIELDS})

    return TradeResponse(
        id=trade.id,
        session_id=trade.session_id,
        margin=trade.margin,
        roi=trade.roi,
        entry_side=trade.entry_side,
        profit_loss=trade.profit_loss,
        comments=trade.comments,
        created_at=trade.created_at,
        details=details,
    )
