"""P&L helpers shared by ingestion and reconciliation."""

from typing import Iterable, Optional

from tradejournal.models import DayStats, Trade, TradeInput


def calculate_trade_pnl(trade_input: TradeInput) -> tuple[Optional[float], Optional[float]]:
    """Calculate gross and net P&L of a submitted trade.

    A broker supplied ``net_pnl`` is kept as is. Otherwise P&L is derived
    from the exit: points gained times quantity times the contract
    multiplier, less fees.

    Returns:
        ``(gross_pnl, net_pnl)``; both None for an open trade without a
        supplied net P&L.
    """
    if trade_input.exit_price is None:
        return None, trade_input.net_pnl

    if trade_input.side == "LONG":
        points = trade_input.exit_price - trade_input.entry_price
    else:
        points = trade_input.entry_price - trade_input.exit_price

    gross_pnl = points * trade_input.quantity * trade_input.multiplier
    if trade_input.net_pnl is not None:
        return gross_pnl, trade_input.net_pnl
    return gross_pnl, gross_pnl - trade_input.fees


def calculate_day_stats(trades: Iterable[Trade]) -> DayStats:
    """Recompute the derived calendar fields for one day's trades.

    ``daily_pnl`` sums net P&L over every trade (missing values count as
    zero). Wins, losses and the win rate only consider closed trades.
    """
    trades = list(trades)
    if not trades:
        return DayStats.empty()

    daily_pnl = sum(t.net_pnl or 0.0 for t in trades)
    closed = [t for t in trades if t.is_closed]
    winning = sum(1 for t in closed if (t.net_pnl or 0.0) > 0)
    losing = sum(1 for t in closed if (t.net_pnl or 0.0) < 0)
    win_rate = (winning / len(closed) * 100) if closed else 0.0

    return DayStats(
        trades_count=len(trades),
        daily_pnl=round(daily_pnl, 2),
        winning_trades=winning,
        losing_trades=losing,
        win_rate=round(win_rate, 2),
    )
