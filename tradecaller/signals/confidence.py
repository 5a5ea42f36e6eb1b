"""Confidence scoring — transparent, factor-by-factor breakdown.

Every rule that fires adds a ``ConfidenceFactor`` with a fixed weight; the
total is ``50 + Σ contribution`` clamped to [25, 95].  Identical inputs
always produce the identical factor list and total.

Historical win rates are injected through ``HistoricalWinRateProvider`` so
the scorer never reaches for a database on its own.
"""

import math
from typing import Iterable, Optional, Protocol, runtime_checkable

from tradecaller.backtest.models import Trade
from tradecaller.signals.models import (
    ConfidenceBreakdown,
    ConfidenceFactor,
    HistoricalStats,
)
from tradecaller.technical.models import TechnicalAnalysis


BASE_CONFIDENCE = 50
MIN_CONFIDENCE = 25
MAX_CONFIDENCE = 95
MIN_HISTORICAL_SAMPLE = 10


def _clamp(value: float, low: float, high: float) -> float:
    if math.isnan(value):
        return 0.0
    return max(low, min(high, value))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ── Factor rules ─────────────────────────────────────────────────────────


def _rsi_factors(a4h: TechnicalAnalysis, a1d: TechnicalAnalysis) -> list[ConfidenceFactor]:
    factors: list[ConfidenceFactor] = []
    rsi = a4h.rsi

    if rsi.value <= 20:
        factors.append(ConfidenceFactor(
            name="Extreme Oversold RSI",
            category="TECHNICAL",
            weight=20,
            value=100,
            contribution=20,
            description=f"RSI(4H) = {rsi.value:.1f} - extreme oversold bounce zone",
        ))
    elif rsi.value >= 80:
        factors.append(ConfidenceFactor(
            name="Extreme Overbought RSI",
            category="TECHNICAL",
            weight=20,
            value=100,
            contribution=20,
            description=f"RSI(4H) = {rsi.value:.1f} - extreme overbought reversal zone",
        ))
    elif rsi.signal in ("OVERSOLD", "OVERBOUGHT"):
        factors.append(ConfidenceFactor(
            name=f"{rsi.signal.capitalize()} RSI",
            category="TECHNICAL",
            weight=10,
            value=75,
            contribution=7.5,
            description=f"RSI(4H) = {rsi.value:.1f} - {rsi.signal.lower()} territory",
        ))

    if rsi.signal != "NEUTRAL" and rsi.signal == a1d.rsi.signal:
        factors.append(ConfidenceFactor(
            name="RSI Alignment",
            category="TECHNICAL",
            weight=15,
            value=100,
            contribution=15,
            description=f"Both 4H and 1D RSI showing {rsi.signal.lower()}",
        ))
    elif (rsi.signal == "OVERSOLD" and a1d.rsi.value < 40) or (
        rsi.signal == "OVERBOUGHT" and a1d.rsi.value > 60
    ):
        factors.append(ConfidenceFactor(
            name="Partial RSI Alignment",
            category="TECHNICAL",
            weight=5,
            value=50,
            contribution=2.5,
            description=f"4H RSI {rsi.signal.lower()}, 1D supportive",
        ))

    return factors


def _macd_factors(a4h: TechnicalAnalysis, a1d: TechnicalAnalysis) -> list[ConfidenceFactor]:
    factors: list[ConfidenceFactor] = []

    if a4h.macd.crossover is not None:
        factors.append(ConfidenceFactor(
            name="MACD Crossover",
            category="TECHNICAL",
            weight=10,
            value=80,
            contribution=8,
            description=f"{a4h.macd.crossover} on 4H chart",
        ))

    if a4h.macd.trend != "NEUTRAL" and a4h.macd.trend == a1d.macd.trend:
        factors.append(ConfidenceFactor(
            name="MACD Alignment",
            category="TECHNICAL",
            weight=10,
            value=75,
            contribution=7.5,
            description=f"Both timeframes showing {a4h.macd.trend.lower()} MACD",
        ))

    return factors


def _trend_factors(a4h: TechnicalAnalysis, a1d: TechnicalAnalysis) -> list[ConfidenceFactor]:
    factors: list[ConfidenceFactor] = []
    trend = a4h.trend

    if trend.direction != "SIDEWAYS" and trend.direction == a1d.trend.direction:
        factors.append(ConfidenceFactor(
            name="Trend Alignment",
            category="TECHNICAL",
            weight=15,
            value=85,
            contribution=12.75,
            description=f"{trend.direction.capitalize()} trend on both timeframes",
        ))

    strength = _clamp(trend.strength, 0, 100)
    if strength > 60:
        factors.append(ConfidenceFactor(
            name="Strong Trend",
            category="TECHNICAL",
            weight=8,
            value=strength,
            contribution=strength / 100 * 8,
            description=f"Trend strength: {strength:.0f}%",
        ))

    return factors


# ── Public API ───────────────────────────────────────────────────────────


def calculate_confidence_breakdown(
    analysis_4h: TechnicalAnalysis,
    analysis_1d: TechnicalAnalysis,
    sentiment: float,
    fundamental_score: float = 0,
    historical: Optional[HistoricalStats] = None,
) -> ConfidenceBreakdown:
    """Score a setup from two timeframes plus optional context.

    Args:
        analysis_4h: Primary (4H) technical analysis.
        analysis_1d: Confirming (1D) technical analysis.
        sentiment: Technical sentiment, clamped to [-100, 100].
        fundamental_score: Optional fundamental score, clamped to
            [-100, 100]; zero means "no opinion".
        historical: Optional win-rate statistics for similar setups,
            used only when ``sample_size >= 10``.

    Returns:
        ``ConfidenceBreakdown`` with factors sorted by contribution
        (descending, stable) and ``total_confidence`` in [25, 95].
    """
    sentiment = _clamp(sentiment, -100, 100)
    fundamental_score = _clamp(fundamental_score, -100, 100)

    factors: list[ConfidenceFactor] = []
    factors += _rsi_factors(analysis_4h, analysis_1d)
    factors += _macd_factors(analysis_4h, analysis_1d)
    factors += _trend_factors(analysis_4h, analysis_1d)

    if abs(sentiment) > 20:
        value = min(100.0, abs(sentiment) * 2)
        factors.append(ConfidenceFactor(
            name="Market Sentiment",
            category="SENTIMENT",
            weight=10,
            value=value,
            contribution=value / 100 * 10,
            description=(
                f"{'Bullish' if sentiment > 0 else 'Bearish'} sentiment ({sentiment:.0f})"
            ),
        ))

    if fundamental_score != 0:
        value = abs(fundamental_score)
        factors.append(ConfidenceFactor(
            name="Fundamental Analysis",
            category="FUNDAMENTAL",
            weight=15,
            value=value,
            contribution=value / 100 * 15,
            description=(
                f"Positive fundamentals (+{fundamental_score:.0f})"
                if fundamental_score > 0
                else f"Negative fundamentals ({fundamental_score:.0f})"
            ),
        ))

    win_rate = 0.0
    sample_size = 0
    if historical is not None:
        win_rate = _clamp(historical.win_rate, 0, 100)
        sample_size = max(0, historical.sample_size)
        if sample_size >= MIN_HISTORICAL_SAMPLE:
            factors.append(ConfidenceFactor(
                name="Historical Win Rate",
                category="HISTORICAL",
                weight=12,
                value=win_rate,
                contribution=win_rate / 100 * 12,
                description=(
                    f"Similar setups: {win_rate:.0f}% win rate ({sample_size} trades)"
                ),
            ))

    ranked = sorted(factors, key=lambda f: f.contribution, reverse=True)
    raw = BASE_CONFIDENCE + sum(f.contribution for f in ranked)
    total = _round_half_up(_clamp(raw, MIN_CONFIDENCE, MAX_CONFIDENCE))

    if ranked:
        top = ", ".join(f.name for f in ranked[:3])
        reasoning = f"Confidence based on: {top}. Total {len(ranked)} factors analyzed."
    else:
        reasoning = "No confidence factors triggered; base confidence applies."

    return ConfidenceBreakdown(
        total_confidence=total,
        factors=tuple(ranked),
        historical_win_rate=win_rate,
        similar_setups=sample_size,
        reasoning=reasoning,
    )


# ── Historical win-rate providers ────────────────────────────────────────


@runtime_checkable
class HistoricalWinRateProvider(Protocol):
    """Source of win-rate statistics for setups similar to the current one."""

    def lookup(
        self,
        action: str,
        rsi_value: float,
        trend_direction: str,
        timeframe: str,
    ) -> Optional[HistoricalStats]:
        """Return stats for the setup, or ``None`` when nothing is known."""
        ...


def rsi_bucket(action: str, rsi_value: float) -> str:
    """Name the RSI bucket a setup falls into for its side."""
    if action == "LONG":
        if rsi_value <= 20:
            return "extreme"
        if rsi_value <= 30:
            return "strong"
        if rsi_value <= 40:
            return "mild"
        return "none"
    if rsi_value >= 80:
        return "extreme"
    if rsi_value >= 70:
        return "strong"
    if rsi_value >= 60:
        return "mild"
    return "none"


def _trend_aligned(action: str, trend_direction: str) -> bool:
    return (action, trend_direction) in (("LONG", "UP"), ("SHORT", "DOWN"))


class SetupWinRateTable:
    """Fixed base rates per RSI bucket, +8 points when trend-aligned.

    Deterministic stand-in for a trade-history store: every lookup reports
    the same *sample_size*.
    """

    BASE_RATES: dict[tuple[str, str], float] = {
        ("LONG", "extreme"): 72,
        ("LONG", "strong"): 64,
        ("LONG", "mild"): 56,
        ("SHORT", "extreme"): 68,
        ("SHORT", "strong"): 61,
        ("SHORT", "mild"): 54,
    }
    TREND_BONUS = 8

    def __init__(self, sample_size: int = 50) -> None:
        self._sample_size = sample_size

    def lookup(
        self,
        action: str,
        rsi_value: float,
        trend_direction: str,
        timeframe: str,
    ) -> Optional[HistoricalStats]:
        if action not in ("LONG", "SHORT"):
            return None
        rate = self.BASE_RATES.get((action, rsi_bucket(action, rsi_value)), 50)
        if _trend_aligned(action, trend_direction):
            rate += self.TREND_BONUS
        return HistoricalStats(
            win_rate=_clamp(rate, 40, 85),
            sample_size=self._sample_size,
        )


class TradeHistoryWinRateProvider:
    """Win rates mined from closed backtest trades.

    A trade is "similar" when it was taken on the same side, its entry RSI
    falls in the same bucket, and its entry trend had the same alignment
    with the side.

    Args:
        trades: Closed trades, typically ``BacktestResult.trades``.
        timeframe: Timeframe the trades were produced on; lookups for any
            other timeframe return ``None``.
    """

    def __init__(self, trades: Iterable[Trade], timeframe: str = "4H") -> None:
        self._trades = [t for t in trades if t.status != "OPEN"]
        self._timeframe = timeframe

    def lookup(
        self,
        action: str,
        rsi_value: float,
        trend_direction: str,
        timeframe: str,
    ) -> Optional[HistoricalStats]:
        if timeframe != self._timeframe:
            return None

        bucket = rsi_bucket(action, rsi_value)
        aligned = _trend_aligned(action, trend_direction)
        similar = [
            t for t in self._trades
            if t.side == action
            and rsi_bucket(action, t.indicators.rsi) == bucket
            and _trend_aligned(action, t.indicators.trend) == aligned
        ]
        if not similar:
            return None

        wins = sum(1 for t in similar if t.status == "CLOSED_WIN")
        return HistoricalStats(
            win_rate=wins / len(similar) * 100,
            sample_size=len(similar),
        )
