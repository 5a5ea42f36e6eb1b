"""Technical indicators — SMA, EMA, ATR, RSI, MACD. Pure functions, no I/O.

Insufficient history never raises (except ATR, see below): RSI and MACD
return neutral sentinel results so a scan over short series degrades to
"no opinion".
"""

from typing import Optional, Sequence

from tradecaller.technical.models import Candle, MACDResult, RSIResult


# ── Moving averages ──────────────────────────────────────────────────────


def calculate_sma(prices: list[float], period: int) -> float:
    """Simple average of the last *period* prices.

    Falls back to the mean of all prices when fewer than *period* are
    available, and to ``0.0`` for an empty list.
    """
    if not prices:
        return 0.0
    if len(prices) < period:
        return sum(prices) / len(prices)
    window = prices[-period:]
    return sum(window) / period


def calculate_ema(prices: list[float], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series.

    Uses the standard EMA formula:
        ``EMA_today = (price - EMA_yesterday) × k + EMA_yesterday``
    where ``k = 2 / (period + 1)``.

    The first value is seeded with the SMA of the first *period* prices,
    so the returned list has ``len(prices) - period + 1`` entries (the
    first aligned with ``prices[period - 1]``).  With fewer than *period*
    prices the seed is the mean of what is available and the list has a
    single entry.  An empty input returns an empty list.
    """
    if not prices:
        return []

    k = 2.0 / (period + 1)
    ema: list[float] = [calculate_sma(prices[:period], period)]

    for price in prices[period:]:
        ema.append((price - ema[-1]) * k + ema[-1])

    return ema


def ema_value(prices: list[float], period: int) -> float:
    """Latest EMA value, or the simple average when history is short."""
    if not prices:
        return 0.0
    return calculate_ema(prices, period)[-1]


# ── ATR ──────────────────────────────────────────────────────────────────


def calculate_atr(candles: list[Candle], period: int = 14) -> float:
    """Calculate the Average True Range over *period* candles.

    Uses the standard True Range definition:
        TR = max(high - low, |high - prev_close|, |low - prev_close|)

    Requires at least ``period + 1`` candles (need a previous close for TR).
    Returns the simple average of the last *period* true ranges.

    Raises ``ValueError`` if insufficient data.
    """
    if len(candles) < period + 1:
        raise ValueError(
            f"Need at least {period + 1} candles for ATR({period}), "
            f"got {len(candles)}"
        )

    true_ranges: list[float] = []
    for i in range(1, len(candles)):
        high = candles[i].high
        low = candles[i].low
        prev_close = candles[i - 1].close
        tr = max(
            high - low,
            abs(high - prev_close),
            abs(low - prev_close),
        )
        true_ranges.append(tr)

    return calculate_sma(true_ranges, period)


# ── RSI ──────────────────────────────────────────────────────────────────


def _rsi_from_avgs(avg_gain: float, avg_loss: float) -> float:
    # No losses: RS is pinned at 100 instead of dividing by zero.
    rs = 100.0 if avg_loss == 0 else avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def _rsi_signal(value: float) -> str:
    if value <= 30:
        return "OVERSOLD"
    if value >= 70:
        return "OVERBOUGHT"
    return "NEUTRAL"


def calculate_rsi(prices: list[float], period: int = 14) -> RSIResult:
    """Calculate Wilder's Relative Strength Index.

    Algorithm (Wilder-smoothed):
        1. delta = price[i] - price[i-1]
        2. Separate gains (positive) and losses (|negative|).
        3. Seed average gain/loss = SMA of first *period* deltas.
        4. Subsequent: avg = (prev_avg × (period-1) + current) / period
        5. RS = avg_gain / avg_loss  (100 when avg_loss is 0)
        6. RSI = 100 - 100 / (1 + RS)

    Returns ``RSIResult(50.0, "NEUTRAL")`` when fewer than ``period + 1``
    prices are available.  ``values`` holds the full RSI history, one
    entry per price from index *period* onwards; ``value`` is the latest
    entry rounded to 2 dp.
    """
    if len(prices) < period + 1:
        return RSIResult(value=50.0, signal="NEUTRAL", values=())

    deltas = [prices[i] - prices[i - 1] for i in range(1, len(prices))]
    gains = [max(d, 0.0) for d in deltas]
    losses = [abs(min(d, 0.0)) for d in deltas]

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period

    values: list[float] = [_rsi_from_avgs(avg_gain, avg_loss)]
    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        values.append(_rsi_from_avgs(avg_gain, avg_loss))

    current = values[-1]
    return RSIResult(
        value=round(current, 2),
        signal=_rsi_signal(current),
        values=tuple(values),
    )


def calculate_rsi_from_candles(candles: list[Candle], period: int = 14) -> RSIResult:
    """RSI over candle closes."""
    return calculate_rsi([c.close for c in candles], period)


def detect_rsi_divergence(
    prices: list[float],
    rsi_values: list[float],
    lookback: int = 10,
) -> Optional[str]:
    """Detect a bullish or bearish RSI divergence.

    The last *lookback* points of both series are split into two halves:

    * **BULLISH** — price makes a lower low in the second half while RSI
      makes a higher low, and the second-half RSI low is below 40.
    * **BEARISH** — price makes a higher high while RSI makes a lower high,
      and the second-half RSI high is above 60.

    Returns ``"BULLISH"``, ``"BEARISH"``, or ``None``.
    """
    if len(prices) < lookback or len(rsi_values) < lookback or lookback < 2:
        return None

    recent_prices = prices[-lookback:]
    recent_rsi = list(rsi_values[-lookback:])
    half = lookback // 2

    price_low1, price_low2 = min(recent_prices[:half]), min(recent_prices[half:])
    rsi_low1, rsi_low2 = min(recent_rsi[:half]), min(recent_rsi[half:])
    price_high1, price_high2 = max(recent_prices[:half]), max(recent_prices[half:])
    rsi_high1, rsi_high2 = max(recent_rsi[:half]), max(recent_rsi[half:])

    if price_low2 < price_low1 and rsi_low2 > rsi_low1 and rsi_low2 < 40:
        return "BULLISH"
    if price_high2 > price_high1 and rsi_high2 < rsi_high1 and rsi_high2 > 60:
        return "BEARISH"
    return None


# ── MACD ─────────────────────────────────────────────────────────────────


def macd_state(histogram: Sequence[float], index: int) -> tuple[str, Optional[str]]:
    """Trend and crossover for the histogram point at *index*.

    Only points up to *index* are considered, so the result matches what
    :func:`calculate_macd` reports for a series ending there.
    """
    current = histogram[index]
    prev = histogram[index - 1] if index >= 1 else 0.0

    if current > 0 and current > prev:
        trend = "BULLISH"
    elif current < 0 and current < prev:
        trend = "BEARISH"
    else:
        trend = "NEUTRAL"

    crossover = None
    if index >= 1:
        if prev < 0 < current:
            crossover = "BULLISH_CROSS"
        elif prev > 0 > current:
            crossover = "BEARISH_CROSS"

    return trend, crossover


_MACD_SENTINEL = MACDResult(
    macd=0.0,
    signal=0.0,
    histogram=0.0,
    trend="NEUTRAL",
    crossover=None,
)


def calculate_macd(
    prices: list[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> MACDResult:
    """Calculate MACD, its signal line, and histogram.

    MACD line   = EMA(fast) − EMA(slow)
    Signal line = EMA(signal) of the MACD line
    Histogram   = MACD − signal

    Trend is **BULLISH** when the histogram is positive and rising versus
    the previous point, **BEARISH** when negative and falling, else
    **NEUTRAL**.  A crossover is reported only for the transition between
    the last two histogram points (negative → positive is
    ``BULLISH_CROSS``, positive → negative is ``BEARISH_CROSS``).

    Fewer than ``slow_period + signal_period`` prices yields an all-zero
    NEUTRAL sentinel.
    """
    if len(prices) < slow_period + signal_period:
        return _MACD_SENTINEL

    fast_ema = calculate_ema(prices, fast_period)
    slow_ema = calculate_ema(prices, slow_period)

    # Both series end at the last price; align fast onto slow.
    offset = slow_period - fast_period
    macd_line = [fast_ema[i + offset] - slow_ema[i] for i in range(len(slow_ema))]

    signal_line = calculate_ema(macd_line, signal_period)
    signal_offset = len(macd_line) - len(signal_line)
    histogram = [
        macd_line[i + signal_offset] - signal_line[i]
        for i in range(len(signal_line))
    ]

    trend, crossover = macd_state(histogram, len(histogram) - 1)

    return MACDResult(
        macd=round(macd_line[-1], 4),
        signal=round(signal_line[-1], 4),
        histogram=round(histogram[-1], 4),
        trend=trend,
        crossover=crossover,
        macd_line=tuple(macd_line),
        signal_line=tuple(signal_line),
        histogram_line=tuple(histogram),
    )


def calculate_macd_from_candles(
    candles: list[Candle],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> MACDResult:
    """MACD over candle closes."""
    return calculate_macd(
        [c.close for c in candles], fast_period, slow_period, signal_period
    )
