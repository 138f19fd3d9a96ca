"""Performance analytics over a user's sessions and trades.

Pure and synchronous: callers load the rows, this module only aggregates.
Trades are walked in the order given (storage order, newest first), which
matters for drawdown and streaks.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

import numpy as np

logger = logging.getLogger(__name__)

# Reported when there are winners but no losers
PROFIT_FACTOR_CAP = 999.0


def _value(x) -> float:
    return float(x) if x is not None else 0.0


def _side(trade) -> str | None:
    # Crypto rows may carry the side only as `direction`
    return getattr(trade, "entry_side", None) or getattr(trade, "direction", None)


def _to_datetime(value) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class TradeAnalytics:
    """User-level metrics for the analytics page."""

    def calculate(self, sessions: Sequence, trades: Sequence) -> dict:
        active_capital = sum(_value(s.current_capital) for s in sessions)

        if not trades:
            return self._empty_result(active_capital)

        total = len(trades)
        pnls = [_value(t.profit_loss) for t in trades]
        wins = [p for p in pnls if p > 0]
        losses = [p for p in pnls if p < 0]

        success_rate = len(wins) / total * 100

        # Profit factor = gross_profit / gross_loss
        gross_profit = sum(wins)
        gross_loss = abs(sum(losses))
        if gross_loss > 0:
            profit_factor = gross_profit / gross_loss
        elif gross_profit > 0:
            profit_factor = PROFIT_FACTOR_CAP
        else:
            profit_factor = 0.0

        long_trades = sum(1 for t in trades if _side(t) == "Long")
        short_trades = sum(1 for t in trades if _side(t) == "Short")

        average_r = self._calculate_r_multiple(trades)
        dd_amount, dd_percentage = self._calculate_max_drawdown(pnls)
        best_streak, worst_streak = self._calculate_streaks(pnls)
        sharpe = self._calculate_sharpe([_value(t.roi) for t in trades])
        avg_hold = self._calculate_avg_hold_hours(trades)

        margins = [_value(t.margin) for t in trades]

        return {
            "total_trades": total,
            "winning_trades": len(wins),
            "losing_trades": len(losses),
            "success_rate": success_rate,
            "overall_performance": sum(pnls),
            "profit_factor": profit_factor,
            "trade_distribution": {
                "long_trades": long_trades,
                "short_trades": short_trades,
                "long_percentage": long_trades / total * 100,
                "short_percentage": short_trades / total * 100,
            },
            "average_r_multiple": average_r,
            "max_drawdown": {"amount": dd_amount, "percentage": dd_percentage},
            "streaks": {"best_streak": best_streak, "worst_streak": worst_streak},
            "sharpe_ratio": sharpe,
            "time_analysis": {
                "avg_hold_time": avg_hold,
                "best_time": f"{avg_hold:.1f} hours" if avg_hold > 0 else "N/A",
            },
            "risk_metrics": {
                "avg_risk_per_trade": sum(margins) / total,
                "max_risk": max(margins),
            },
            "active_capital": active_capital,
            "risk_level": self._risk_level(dd_percentage, average_r),
        }

    def _calculate_r_multiple(self, trades: Sequence) -> float:
        """Mean P/L in units of initial risk. Trades without a usable stop are left out."""
        r_multiples = []
        for t in trades:
            if not (t.sl and t.open_price):
                continue
            if _side(t) == "Long":
                risk = t.open_price - t.sl
            else:
                risk = t.sl - t.open_price
            if risk > 0:
                r_multiples.append(_value(t.profit_loss) / risk)

        return sum(r_multiples) / len(r_multiples) if r_multiples else 0.0

    def _calculate_max_drawdown(self, pnls: list[float]) -> tuple[float, float]:
        """Largest fall of cumulative P/L below its running peak (peak starts at 0)."""
        running_total = 0.0
        peak = 0.0
        max_dd = 0.0

        for pnl in pnls:
            running_total += pnl
            if running_total > peak:
                peak = running_total
            dd = peak - running_total
            if dd > max_dd:
                max_dd = dd

        percentage = max_dd / peak * 100 if peak > 0 else 0.0
        return max_dd, percentage

    def _calculate_streaks(self, pnls: list[float]) -> tuple[int, int]:
        """Best winning run and worst losing run.

        A win resets the losing tracker; a non-win (including breakeven)
        extends it. Reproduces the journal's historical numbers.
        """
        current = 0
        best = 0
        worst = 0
        losing_run = 0

        for pnl in pnls:
            if pnl > 0:
                current = current + 1 if current > 0 else 1
                best = max(best, current)
                losing_run = 0
            else:
                current = current - 1 if current < 0 else -1
                losing_run = losing_run - 1 if losing_run < 0 else -1
                worst = min(worst, losing_run)

        return best, abs(worst)

    def _calculate_sharpe(self, returns: list[float]) -> float:
        """Mean ROI over its population std. No risk-free rate, no annualization."""
        arr = np.asarray(returns, dtype=float)
        std = float(np.std(arr))
        if std == 0:
            return 0.0
        return float(np.mean(arr)) / std

    def _calculate_avg_hold_hours(self, trades: Sequence) -> float:
        durations = []
        for t in trades:
            opened = _to_datetime(getattr(t, "open_time", None))
            closed = _to_datetime(getattr(t, "close_time", None))
            if opened is None or closed is None:
                continue
            durations.append((closed - opened).total_seconds() / 3600)

        return sum(durations) / len(durations) if durations else 0.0

    def _risk_level(self, drawdown_pct: float, average_r: float) -> str:
        if drawdown_pct > 20 or average_r < -1:
            return "High"
        if drawdown_pct > 10 or average_r < 0:
            return "Moderate"
        return "Low"

    def _empty_result(self, active_capital: float = 0.0) -> dict:
        return {
            "total_trades": 0,
            "winning_trades": 0,
            "losing_trades": 0,
            "success_rate": 0.0,
            "overall_performance": 0.0,
            "profit_factor": 0.0,
            "trade_distribution": {
                "long_trades": 0,
                "short_trades": 0,
                "long_percentage": 0.0,
                "short_percentage": 0.0,
            },
            "average_r_multiple": 0.0,
            "max_drawdown": {"amount": 0.0, "percentage": 0.0},
            "streaks": {"best_streak": 0, "worst_streak": 0},
            "sharpe_ratio": 0.0,
            "time_analysis": {"avg_hold_time": 0.0, "best_time": "N/A"},
            "risk_metrics": {"avg_risk_per_trade": 0.0, "max_risk": 0.0},
            "active_capital": active_capital,
            "risk_level": "Low",
        }


def calculate_session_stats(session, trades: Sequence) -> dict:
    """Per-session summary shown on the session dashboard and in exports."""
    total = len(trades)
    pnls = [_value(t.profit_loss) for t in trades]
    winning = sum(1 for p in pnls if p > 0)
    losing = sum(1 for p in pnls if p < 0)
    net = sum(pnls)
    initial = _value(session.initial_capital)

    return {
        "total_trades": total,
        "winning_trades": winning,
        "losing_trades": losing,
        "win_rate": winning / total * 100 if total else 0.0,
        "current_capital": _value(session.current_capital),
        "net_profit_loss": net,
        "net_profit_loss_percentage": net / initial * 100 if initial else 0.0,
        "total_margin_used": sum(_value(t.margin) for t in trades),
        "average_roi": sum(_value(t.roi) for t in trades) / total if total else 0.0,
    }
