"""Backtest statistics — pure functions for trade-series analysis."""

import math
from typing import Optional

import numpy as np

from tradecaller.backtest.models import BacktestMetrics, EquityPoint, Trade
from tradecaller.config import DEFAULT_CONFIG, Config
from tradecaller.risk.sl_tp import risk_reward_ratio


def calculate_metrics(
    trades: list[Trade],
    equity: list[EquityPoint],
    initial_capital: float,
    final_capital: float,
    settings: Optional[Config] = None,
) -> BacktestMetrics:
    """Compute summary statistics from closed backtest trades.

    Args:
        trades: Closed trades in the order they were closed.
        equity: Equity curve, one point per candle.
        initial_capital: Starting capital.
        final_capital: Capital after the last trade closed.
        settings: Supplies the Sharpe basis (``trade`` or ``period``) and
            annualization factor.

    Returns:
        ``BacktestMetrics``.  Every field is a finite number except
        ``profit_factor``, which is ``inf`` when there are wins and no
        losses.  No trades yields all zeros.
    """
    settings = settings or DEFAULT_CONFIG

    winners = [t for t in trades if t.status == "CLOSED_WIN"]
    losers = [t for t in trades if t.status == "CLOSED_LOSS"]
    breakeven = [t for t in trades if t.status == "CLOSED_BREAKEVEN"]
    total = len(trades)

    gross_profit = sum(t.pnl for t in winners)
    gross_loss = abs(sum(t.pnl for t in losers))

    if gross_loss > 0:
        profit_factor = gross_profit / gross_loss
    elif gross_profit > 0:
        profit_factor = math.inf
    else:
        profit_factor = 0.0

    total_return = final_capital - initial_capital

    if settings.sharpe_basis == "period":
        returns = _period_returns(equity)
    else:
        returns = np.array([t.pnl_percent for t in trades], dtype=float)
    sharpe = _sharpe(returns, settings.sharpe_annualization)

    durations = [
        (t.exit_time - t.entry_time) / 3600.0
        for t in trades
        if t.exit_time is not None
    ]
    ratios = [
        rr for rr in (
            risk_reward_ratio(t.entry_price, t.initial_stop_loss, t.take_profit)
            for t in trades
        )
        if rr is not None
    ]

    return BacktestMetrics(
        total_trades=total,
        winning_trades=len(winners),
        losing_trades=len(losers),
        breakeven_trades=len(breakeven),
        win_rate=len(winners) / total * 100 if total else 0.0,
        avg_win=gross_profit / len(winners) if winners else 0.0,
        avg_loss=gross_loss / len(losers) if losers else 0.0,
        largest_win=max((t.pnl for t in winners), default=0.0),
        largest_loss=min((t.pnl for t in losers), default=0.0),
        profit_factor=profit_factor,
        total_return=total_return,
        total_return_percent=total_return / initial_capital * 100,
        sharpe_ratio=sharpe,
        max_drawdown=max((p.drawdown for p in equity), default=0.0),
        max_drawdown_percent=max((p.drawdown_percent for p in equity), default=0.0),
        avg_trade_duration_hours=sum(durations) / len(durations) if durations else 0.0,
        avg_risk_reward_ratio=sum(ratios) / len(ratios) if ratios else 0.0,
    )


# ── Helpers ──────────────────────────────────────────────────────────────


def _period_returns(equity: list[EquityPoint]) -> np.ndarray:
    """Simple returns between consecutive equity points."""
    values = np.array([p.equity for p in equity], dtype=float)
    if len(values) < 2:
        return np.array([], dtype=float)
    prev = values[:-1]
    mask = prev != 0
    return np.diff(values)[mask] / prev[mask]


def _sharpe(returns: np.ndarray, annualization: int) -> float:
    """Annualised Sharpe ratio from a return series.

    Uses sample standard deviation (n − 1).  Returns 0.0 when the series
    has fewer than 2 observations or zero variance.
    """
    if len(returns) < 2:
        return 0.0
    std = float(np.std(returns, ddof=1))
    if std == 0 or not math.isfinite(std):
        return 0.0
    return float(np.mean(returns)) / std * math.sqrt(annualization)
