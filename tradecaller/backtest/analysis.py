"""Post-run strategy analysis — where did the strategy work, and where not."""

import numpy as np

from tradecaller.backtest.models import (
    BacktestMetrics,
    BucketStats,
    RSILevelStats,
    StrategyAnalysis,
    TimeframeStats,
    Trade,
)


def _rsi_level(rsi: float) -> str:
    if rsi < 30:
        return "Oversold (<30)"
    if rsi > 70:
        return "Overbought (>70)"
    return "Neutral (30-70)"


def _bucket(trades: list[Trade]) -> BucketStats:
    if not trades:
        return BucketStats()
    wins = sum(1 for t in trades if t.status == "CLOSED_WIN")
    return BucketStats(trades=len(trades), win_rate=wins / len(trades) * 100)


def _rsi_levels(trades: list[Trade]) -> tuple[RSILevelStats, ...]:
    groups: dict[str, list[Trade]] = {}
    for trade in trades:
        groups.setdefault(_rsi_level(trade.indicators.rsi), []).append(trade)

    stats = [
        RSILevelStats(
            level=level,
            trades=len(group),
            win_rate=_bucket(group).win_rate,
            avg_return=sum(t.pnl_percent for t in group) / len(group),
        )
        for level, group in groups.items()
    ]
    stats.sort(key=lambda s: s.win_rate, reverse=True)
    return tuple(stats)


def _volume_split(trades: list[Trade]) -> tuple[BucketStats, BucketStats]:
    """Split trades at the median entry volume ratio (ties go high)."""
    if not trades:
        return BucketStats(), BucketStats()
    ratios = np.array([t.indicators.volume_ratio for t in trades], dtype=float)
    median = float(np.median(ratios))
    high = [t for t in trades if t.indicators.volume_ratio >= median]
    low = [t for t in trades if t.indicators.volume_ratio < median]
    return _bucket(high), _bucket(low)


def analyze_strategy(
    trades: list[Trade],
    metrics: BacktestMetrics,
    timeframe: str,
) -> StrategyAnalysis:
    """Break results down by entry RSI, trend alignment and volume.

    Recommendations fire when:
        - win rate is below 50 %,
        - profit factor is below 1.5,
        - with-trend trades beat against-trend trades by more than 10
          points,
        - the best RSI bucket wins more than 60 % of the time.
    """
    with_trend = [
        t for t in trades
        if (t.side, t.indicators.trend) in (("LONG", "UP"), ("SHORT", "DOWN"))
    ]
    against_trend = [
        t for t in trades
        if (t.side, t.indicators.trend) in (("LONG", "DOWN"), ("SHORT", "UP"))
    ]
    with_stats = _bucket(with_trend)
    against_stats = _bucket(against_trend)
    rsi_levels = _rsi_levels(trades)
    high_volume, low_volume = _volume_split(trades)

    recommendations: list[str] = []
    if metrics.win_rate < 50:
        recommendations.append(
            "Consider tightening entry criteria or adjusting stop-loss levels"
        )
    if metrics.profit_factor < 1.5:
        recommendations.append("Profit factor is low - review risk/reward ratio")
    if with_stats.win_rate > against_stats.win_rate + 10:
        recommendations.append(
            "Trading with the trend shows significantly better results"
        )
    if rsi_levels and rsi_levels[0].win_rate > 60:
        recommendations.append(
            f"{rsi_levels[0].level} RSI levels show best performance"
        )

    return StrategyAnalysis(
        best_timeframes=(TimeframeStats(timeframe=timeframe, win_rate=metrics.win_rate),),
        best_rsi_levels=rsi_levels,
        with_trend=with_stats,
        against_trend=against_stats,
        high_volume=high_volume,
        low_volume=low_volume,
        recommendations=tuple(recommendations),
    )
