"""Typed condition interpreter and per-candle indicator snapshots.

``build_snapshots`` computes, for every candle, the indicator values a
strategy would see if the series ended at that candle.  The recursive
indicators (RSI, MACD, EMAs) are evaluated once over the full series and
indexed, which yields exactly the values a prefix recomputation would.
"""

from tradecaller.backtest.models import (
    Condition,
    IndicatorSnapshot,
    MACDCross,
    MACDVersusSignal,
    RSIThreshold,
    StrategyDefinitionError,
    TrendIs,
    VolumeRatioAbove,
)
from tradecaller.technical.indicators import (
    calculate_ema,
    calculate_macd,
    calculate_rsi,
    macd_state,
)
from tradecaller.technical.models import Candle
from tradecaller.technical.trend import classify_trend
from tradecaller.technical.volume import analyze_volume


RSI_PERIOD = 14
MACD_FAST, MACD_SLOW, MACD_SIGNAL = 12, 26, 9
TREND_WINDOW = 20
VOLUME_LOOKBACK = 20


def evaluate_condition(condition: Condition, snapshot: IndicatorSnapshot) -> bool:
    """Return ``True`` when *condition* holds for *snapshot*.

    Raises ``StrategyDefinitionError`` for an unknown condition type.
    """
    if isinstance(condition, RSIThreshold):
        if condition.comparator == "<":
            return snapshot.rsi < condition.threshold
        return snapshot.rsi > condition.threshold

    if isinstance(condition, MACDVersusSignal):
        if condition.comparator == ">":
            return snapshot.macd > snapshot.macd_signal
        return snapshot.macd < snapshot.macd_signal

    if isinstance(condition, MACDCross):
        expected = "BULLISH_CROSS" if condition.direction == "ABOVE" else "BEARISH_CROSS"
        return snapshot.macd_crossover == expected

    if isinstance(condition, TrendIs):
        return snapshot.trend == condition.direction

    if isinstance(condition, VolumeRatioAbove):
        return snapshot.volume_ratio >= condition.ratio

    raise StrategyDefinitionError(f"Unsupported condition {condition!r}")


def _prefix_emas(closes: list[float], period: int) -> list[float]:
    """EMA value for every prefix of *closes*.

    Prefixes shorter than *period* fall back to their simple mean, like
    ``ema_value`` does.
    """
    series = calculate_ema(closes, period)
    values: list[float] = []
    running = 0.0
    for i, price in enumerate(closes):
        running += price
        if i < period - 1:
            values.append(running / (i + 1))
        else:
            values.append(series[i - period + 1])
    return values


def build_snapshots(candles: list[Candle]) -> list[IndicatorSnapshot]:
    """One ``IndicatorSnapshot`` per candle, using only data up to that candle.

    Candles with too little history carry the neutral sentinels (RSI 50,
    zero MACD, SIDEWAYS trend), which fail every entry condition.
    """
    if not candles:
        return []

    closes = [c.close for c in candles]

    rsi_values = calculate_rsi(closes, RSI_PERIOD).values
    macd = calculate_macd(closes, MACD_FAST, MACD_SLOW, MACD_SIGNAL)
    ema20 = _prefix_emas(closes, 20)
    ema50 = _prefix_emas(closes, 50)
    ema200 = _prefix_emas(closes, 200)

    macd_start = MACD_SLOW + MACD_SIGNAL - 1
    snapshots: list[IndicatorSnapshot] = []

    for i, candle in enumerate(candles):
        rsi = round(rsi_values[i - RSI_PERIOD], 2) if i >= RSI_PERIOD else 50.0

        macd_value = signal_value = hist_value = 0.0
        crossover = None
        if i >= macd_start and macd.histogram_line:
            j = i - (MACD_SLOW - 1)
            k = j - (MACD_SIGNAL - 1)
            macd_value = round(macd.macd_line[j], 4)
            signal_value = round(macd.signal_line[k], 4)
            hist_value = round(macd.histogram_line[k], 4)
            _, crossover = macd_state(macd.histogram_line, k)

        trend_direction = "SIDEWAYS"
        trend_strength = 0
        if i >= TREND_WINDOW - 1:
            trend = classify_trend(
                closes[i - TREND_WINDOW + 1 : i + 1], ema20[i], ema50[i], ema200[i]
            )
            trend_direction = trend.direction
            trend_strength = trend.strength

        window = candles[max(0, i - VOLUME_LOOKBACK + 1) : i + 1]
        volume = analyze_volume(window, VOLUME_LOOKBACK)

        snapshots.append(IndicatorSnapshot(
            close=candle.close,
            rsi=rsi,
            macd=macd_value,
            macd_signal=signal_value,
            macd_histogram=hist_value,
            macd_crossover=crossover,
            trend=trend_direction,
            trend_strength=trend_strength,
            volume=candle.volume,
            volume_ratio=volume.volume_ratio,
        ))

    return snapshots
