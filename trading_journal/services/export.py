"""Session export (JSON, spreadsheet) and JSON import."""

import io
import logging

import pandas as pd
from openpyxl.utils import get_column_letter
from sqlalchemy.ext.asyncio import AsyncSession

from trading_journal.models.schemas import ExportedSession, ExportedTrade, SessionExport
from trading_journal.models.trade import Trade
from trading_journal.models.trading_session import TradingSession
from trading_journal.services.analytics import calculate_session_stats
from trading_journal.services.trade_store import TradeStore

logger = logging.getLogger(__name__)

# (header, width) for the detailed trades sheet
TRADE_COLUMNS = [
    ("Date", 12),
    ("Symbol", 15),
    ("Type", 8),
    ("Volume (Lot)", 12),
    ("Open Price", 12),
    ("Close Price", 12),
    ("Leverage", 10),
    ("Take Profit (TP)", 12),
    ("Stop Loss (SL)", 12),
    ("Position", 10),
    ("Close Reason", 12),
    ("Open Time", 18),
    ("Close Time", 18),
    ("P&L (USD)", 12),
    ("Margin (USD)", 12),
    ("Entry Side", 12),
    ("ROI %", 10),
    ("Comments", 30),
    ("Futures Symbol", 15),
    ("Margin Mode", 12),
    ("Avg Entry Price", 15),
    ("Avg Close Price", 15),
    ("Direction", 10),
    ("Closing Quantity", 15),
    ("Realized PNL", 12),
    ("Margin Adjustment History", 25),
]


def _session_type(session: TradingSession) -> str:
    return getattr(session.session_type, "value", session.session_type) or "Forex"


def _blank(value):
    return "" if value is None else value


def _first(*values):
    for v in values:
        if v is not None:
            return v
    return None


def _fmt_datetime(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else ""


class ExportService:
    def __init__(self, trade_store: TradeStore):
        self.trade_store = trade_store

    def build_export(self, session: TradingSession, trades: list[Trade]) -> dict:
        document = SessionExport(
            session=ExportedSession(
                name=session.name,
                session_type=_session_type(session),
                initial_capital=session.initial_capital,
                current_capital=session.current_capital,
                created_at=session.created_at,
            ),
            trades=[ExportedTrade.model_validate(t, from_attributes=True) for t in trades],
            statistics=calculate_session_stats(session, trades),
        )
        return document.model_dump(mode="json", exclude_none=True)

    async def import_session(
        self, db_session: AsyncSession, user_id: str, document: SessionExport
    ) -> tuple[TradingSession, int]:
        """Recreate an exported session and its trades under `user_id`.

        The caller commits; nothing is written if any trade fails.
        """
        exported = document.session
        session = await self.trade_store.create_session(
            db_session,
            user_id=user_id,
            name=exported.name,
            initial_capital=exported.initial_capital,
            session_type=exported.session_type,
        )

        for trade in document.trades:
            await self.trade_store.add_trade(db_session, session.id, trade.model_dump(exclude_none=True))

        await self.trade_store.update_session_capital(db_session, session, exported.current_capital)
        logger.info("Imported session %r with %d trades for user %s", exported.name, len(document.trades), user_id)
        return session, len(document.trades)

    def build_workbook(self, session: TradingSession, trades: list[Trade]) -> bytes:
        stats = calculate_session_stats(session, trades)
        summary = pd.DataFrame([
            ("Session Name", session.name),
            ("Session Type", _session_type(session)),
            ("Initial Capital", session.initial_capital),
            ("Current Capital", session.current_capital),
            ("Net P/L", stats["net_profit_loss"]),
            ("Net P/L %", stats["net_profit_loss_percentage"]),
            ("Total Trades", stats["total_trades"]),
            ("Win Rate %", stats["win_rate"]),
            ("Winning Trades", stats["winning_trades"]),
            ("Losing Trades", stats["losing_trades"]),
            ("Total Margin Used", stats["total_margin_used"]),
            ("Average ROI %", stats["average_roi"]),
        ])

        rows = [self._trade_row(t) for t in trades]
        detailed = pd.DataFrame(rows, columns=[name for name, _ in TRADE_COLUMNS])

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            summary.to_excel(writer, sheet_name="Summary", header=False, index=False)
            detailed.to_excel(writer, sheet_name="Detailed Trades", index=False)
            sheet = writer.sheets["Detailed Trades"]
            for idx, (_, width) in enumerate(TRADE_COLUMNS, start=1):
                sheet.column_dimensions[get_column_letter(idx)].width = width

        return buffer.getvalue()

    @staticmethod
    def _trade_row(t: Trade) -> list:
        side_type = {"Long": "Buy", "Short": "Sell"}.get(t.entry_side or t.direction or "", "")
        return [
            t.created_at.strftime("%Y-%m-%d") if t.created_at else "",
            t.symbol or t.futures_symbol or "",
            side_type,
            _blank(_first(t.volume_lot, t.closing_quantity)),
            _blank(_first(t.open_price, t.avg_entry_price)),
            _blank(_first(t.close_price, t.avg_close_price)),
            _blank(t.leverage),
            _blank(t.tp),
            _blank(t.sl),
            t.position or "",
            t.reason or "",
            _fmt_datetime(t.open_time),
            _fmt_datetime(t.close_time),
            _blank(_first(t.profit_loss, t.realized_pnl)),
            _blank(t.margin),
            t.entry_side or t.direction or "",
            _blank(t.roi),
            t.comments or "",
            t.futures_symbol or "",
            t.margin_mode or "",
            _blank(t.avg_entry_price),
            _blank(t.avg_close_price),
            t.direction or "",
            _blank(t.closing_quantity),
            _blank(t.realized_pnl),
            t.margin_adjustment_history or "",
        ]
