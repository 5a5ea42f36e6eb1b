"""Fibonacci retracement and extension levels over the recent swing."""

from typing import Optional

from tradecaller.technical.models import Candle, FibonacciLevels


RETRACEMENT_RATIOS = (
    ("23.6", 0.236),
    ("38.2", 0.382),
    ("50", 0.5),
    ("61.8", 0.618),
    ("78.6", 0.786),
)
EXTENSION_RATIOS = (
    ("127.2", 1.272),
    ("141.4", 1.414),
    ("161.8", 1.618),
)


def calculate_fibonacci_levels(
    candles: list[Candle], lookback: int = 50
) -> Optional[FibonacciLevels]:
    """Compute Fibonacci levels from the high/low of the last *lookback* candles.

    Retracements are measured down from the swing high
    (``high − range × ratio``); extensions project above it
    (``high + range × (ratio − 1)``).

    The nearest level is searched over retracements, extensions, then the
    swing high (``0%``) and swing low (``100%``), in that order; the first
    level at the smallest absolute distance wins.

    Returns ``None`` when fewer than *lookback* candles are available.
    """
    if len(candles) < lookback:
        return None

    recent = candles[-lookback:]
    high = max(c.high for c in recent)
    low = min(c.low for c in recent)
    swing_range = high - low
    price = candles[-1].close

    retracement = {name: high - swing_range * ratio for name, ratio in RETRACEMENT_RATIOS}
    extension = {name: high + swing_range * (ratio - 1) for name, ratio in EXTENSION_RATIOS}

    candidates: list[tuple[str, float]] = [
        *((f"{name}%", level) for name, level in retracement.items()),
        *((f"{name}%", level) for name, level in extension.items()),
        ("0%", high),
        ("100%", low),
    ]

    nearest_name, nearest_level = candidates[0]
    min_distance = abs(price - nearest_level)
    for name, level in candidates[1:]:
        distance = abs(price - level)
        if distance < min_distance:
            min_distance = distance
            nearest_name, nearest_level = name, level

    distance_pct = (
        (price - nearest_level) / nearest_level * 100 if nearest_level != 0 else 0.0
    )

    return FibonacciLevels(
        swing_high=high,
        swing_low=low,
        swing_range=swing_range,
        retracement=retracement,
        extension=extension,
        current_price=price,
        nearest_level=nearest_level,
        nearest_level_name=nearest_name,
        distance_percent=distance_pct,
    )


def is_near_fib_level(levels: FibonacciLevels, threshold_pct: float = 2.0) -> bool:
    """``True`` when price sits within *threshold_pct* of its nearest level."""
    return abs(levels.distance_percent) <= threshold_pct


def describe_fibonacci(levels: FibonacciLevels) -> str:
    """Human-readable position of price within the Fibonacci grid."""
    if is_near_fib_level(levels):
        sign = "+" if levels.distance_percent > 0 else ""
        return (
            f"Near Fib {levels.nearest_level_name} level "
            f"({sign}{levels.distance_percent:.1f}%)"
        )

    price = levels.current_price
    r = levels.retracement
    if price >= r["23.6"]:
        return "Above Fib 23.6% retracement - strong uptrend"
    if price >= r["38.2"]:
        return "Between Fib 23.6-38.2% - healthy pullback"
    if price >= r["50"]:
        return "At Fib 50% retracement - key decision zone"
    if price >= r["61.8"]:
        return "At Fib 61.8% golden ratio - critical support"
    return "Below Fib 61.8% - deep retracement"
