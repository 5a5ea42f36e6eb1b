"""Technical analysis aggregator.

Runs every indicator over one candle series and folds the results into a
single ``TechnicalAnalysis`` snapshot plus a readable summary.
"""

from typing import Optional

from tradecaller.technical.indicators import (
    calculate_macd_from_candles,
    calculate_rsi_from_candles,
    detect_rsi_divergence,
)
from tradecaller.technical.models import (
    AnalysisReport,
    Candle,
    MACDResult,
    MACDSnapshot,
    Momentum,
    RSIResult,
    RSISnapshot,
    TechnicalAnalysis,
    TrendSnapshot,
)
from tradecaller.technical.sr_levels import (
    calculate_support_resistance,
    describe_support_resistance,
)
from tradecaller.technical.trend import describe_trend, detect_trend


# ── Descriptions ─────────────────────────────────────────────────────────


def describe_rsi(rsi: RSIResult, divergence: Optional[str] = None) -> str:
    if rsi.signal == "OVERSOLD":
        text = f"RSI at {rsi.value} indicates oversold conditions"
        if divergence == "BULLISH":
            return text + " with bullish divergence forming, a potential reversal signal"
        return text + ". Watch for a bounce or continued weakness"

    if rsi.signal == "OVERBOUGHT":
        text = f"RSI at {rsi.value} indicates overbought conditions"
        if divergence == "BEARISH":
            return text + " with bearish divergence forming, a potential reversal signal"
        return text + ". Watch for a pullback or momentum continuation"

    text = f"RSI at {rsi.value} is neutral"
    if rsi.value > 50:
        text += " with slight bullish bias"
    elif rsi.value < 50:
        text += " with slight bearish bias"
    return text


def describe_macd(macd: MACDResult) -> str:
    if macd.crossover == "BULLISH_CROSS":
        return "MACD bullish crossover detected, a potential buy signal"
    if macd.crossover == "BEARISH_CROSS":
        return "MACD bearish crossover detected, a potential sell signal"
    if macd.trend == "BULLISH":
        return f"MACD bullish with histogram at {macd.histogram}, momentum increasing"
    if macd.trend == "BEARISH":
        return f"MACD bearish with histogram at {macd.histogram}, momentum decreasing"
    return "MACD neutral, no clear momentum direction"


# ── Aggregation ──────────────────────────────────────────────────────────


def run_technical_analysis(candles: list[Candle]) -> AnalysisReport:
    """Run RSI, MACD, trend and support/resistance over *candles*.

    Short series are fine: each indicator degrades to its neutral sentinel.
    The summary is ordered RSI, trend, MACD (only when a crossover fired),
    then support/resistance, joined with ``". "``.

    Returns:
        ``AnalysisReport(analysis, summary)``.
    """
    closes = [c.close for c in candles]

    rsi = calculate_rsi_from_candles(candles)
    divergence = detect_rsi_divergence(closes, list(rsi.values))
    macd = calculate_macd_from_candles(candles)
    trend = detect_trend(candles)
    levels = calculate_support_resistance(candles)

    analysis = TechnicalAnalysis(
        rsi=RSISnapshot(value=rsi.value, signal=rsi.signal),
        macd=MACDSnapshot(
            macd=macd.macd,
            signal=macd.signal,
            histogram=macd.histogram,
            trend=macd.trend,
            crossover=macd.crossover,
        ),
        trend=TrendSnapshot(
            direction=trend.direction,
            strength=trend.strength,
            ema20=trend.ema20,
            ema50=trend.ema50,
            ema200=trend.ema200,
        ),
        support=levels.support,
        resistance=levels.resistance,
        momentum=Momentum(value=macd.histogram, increasing=macd.histogram > 0),
    )

    parts = [describe_rsi(rsi, divergence), describe_trend(trend)]
    if macd.crossover is not None:
        parts.append(describe_macd(macd))
    parts.append(describe_support_resistance(levels))

    return AnalysisReport(analysis=analysis, summary=". ".join(parts))


def get_technical_sentiment(analysis: TechnicalAnalysis) -> int:
    """Bounded sentiment score from -100 (very bearish) to +100 (very bullish).

    Components:
        - RSI signal: OVERSOLD +20, OVERBOUGHT -20, plus ``(rsi - 50) × 0.2``.
        - MACD trend: ±20, plus the histogram ×100 clamped to ±10.
        - Trend: ``± strength × 0.4`` for UP/DOWN.
    """
    score = 0.0

    if analysis.rsi.signal == "OVERSOLD":
        score += 20
    elif analysis.rsi.signal == "OVERBOUGHT":
        score -= 20
    score += (analysis.rsi.value - 50) * 0.2

    if analysis.macd.trend == "BULLISH":
        score += 20
    elif analysis.macd.trend == "BEARISH":
        score -= 20
    score += max(-10.0, min(10.0, analysis.macd.histogram * 100))

    if analysis.trend.direction == "UP":
        score += analysis.trend.strength * 0.4
    elif analysis.trend.direction == "DOWN":
        score -= analysis.trend.strength * 0.4

    return max(-100, min(100, round(score)))
