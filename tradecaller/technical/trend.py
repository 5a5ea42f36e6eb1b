"""Trend detection — EMA alignment plus a volatility-scaled direction test.

Direction compares the 20-candle price change against twice the standard
deviation of single-step returns over the same window, so a quiet market
needs a smaller move to register as trending than a volatile one.
"""

import math

from tradecaller.technical.indicators import ema_value
from tradecaller.technical.models import Candle, TrendResult


_FLAT = TrendResult(
    direction="SIDEWAYS",
    strength=0,
    ema20=0.0,
    ema50=0.0,
    ema200=0.0,
    above20=False,
    above50=False,
    above200=False,
    ema_alignment="MIXED",
)


def detect_trend(candles: list[Candle], window: int = 20) -> TrendResult:
    """Classify trend direction and strength.

    Args:
        candles: Candle history, oldest-first.
        window: Number of recent candles used for the direction test.

    Returns:
        ``TrendResult``.  Fewer than *window* candles yields SIDEWAYS with
        zero strength and zeroed EMAs.

    Rules:
        - **EMA alignment**: BULLISH if EMA20 > EMA50 > EMA200, BEARISH if
          reversed, else MIXED.  EMAs fall back to a simple average when
          history is shorter than the period.
        - **Direction**: UP/DOWN when |price change| over *window* candles
          exceeds ``2 × volatility``, else SIDEWAYS.
        - **Strength**: ``min(100, |change| × 500)``, +20 when direction
          matches alignment, +15 when price sits on the same side of all
          three EMAs.  SIDEWAYS is always 0.
    """
    if len(candles) < window:
        return _FLAT

    closes = [c.close for c in candles]
    return classify_trend(
        closes[-window:],
        ema_value(closes, 20),
        ema_value(closes, 50),
        ema_value(closes, 200),
    )


def classify_trend(
    recent: list[float], ema20: float, ema50: float, ema200: float
) -> TrendResult:
    """Apply the direction/strength rules to precomputed EMAs.

    *recent* is the direction-test window of closes, oldest-first; its last
    element is the current price.
    """
    price = recent[-1]

    above20 = price > ema20
    above50 = price > ema50
    above200 = price > ema200

    if ema20 > ema50 > ema200:
        alignment = "BULLISH"
    elif ema20 < ema50 < ema200:
        alignment = "BEARISH"
    else:
        alignment = "MIXED"

    if recent[0] == 0:
        return _FLAT
    price_change = (recent[-1] - recent[0]) / recent[0]

    returns = [
        (recent[i] - recent[i - 1]) / recent[i - 1]
        for i in range(1, len(recent))
        if recent[i - 1] != 0
    ]
    if returns:
        mean = sum(returns) / len(returns)
        volatility = math.sqrt(sum((r - mean) ** 2 for r in returns) / len(returns))
    else:
        volatility = 0.0

    threshold = volatility * 2
    if price_change > threshold:
        direction = "UP"
    elif price_change < -threshold:
        direction = "DOWN"
    else:
        direction = "SIDEWAYS"

    if direction == "SIDEWAYS":
        strength = 0
    else:
        strength = min(100, round(abs(price_change) * 500))
        if (direction, alignment) in (("UP", "BULLISH"), ("DOWN", "BEARISH")):
            strength = min(100, strength + 20)
        if (direction == "UP" and above20 and above50 and above200) or (
            direction == "DOWN" and not (above20 or above50 or above200)
        ):
            strength = min(100, strength + 15)

    return TrendResult(
        direction=direction,
        strength=strength,
        ema20=ema20,
        ema50=ema50,
        ema200=ema200,
        above20=above20,
        above50=above50,
        above200=above200,
        ema_alignment=alignment,
    )


def describe_trend(trend: TrendResult) -> str:
    """Human-readable trend description."""
    if trend.direction == "UP":
        text = f"Uptrend detected (strength {trend.strength}/100)"
    elif trend.direction == "DOWN":
        text = f"Downtrend detected (strength {trend.strength}/100)"
    else:
        text = "Sideways/consolidation phase"

    if trend.ema_alignment == "BULLISH":
        text += ". EMAs bullishly aligned (20 > 50 > 200)"
    elif trend.ema_alignment == "BEARISH":
        text += ". EMAs bearishly aligned (20 < 50 < 200)"

    above = sum((trend.above20, trend.above50, trend.above200))
    return f"{text}. Price above {above}/3 key EMAs"
