"""Support/Resistance level detection — pure functions."""

from tradecaller.technical.models import Candle, SupportResistanceResult


NEAR_LEVEL_PCT = 0.02
MAX_LEVELS = 5


def _find_pivot_highs(candles: list[Candle], window: int = 5) -> list[float]:
    """Identify pivot high prices.

    A pivot high is a candle whose high is strictly higher than the highs
    of the *window* candles on each side.
    """
    highs: list[float] = []
    for i in range(window, len(candles) - window):
        high = candles[i].high
        is_pivot = True
        for j in range(1, window + 1):
            if candles[i - j].high >= high or candles[i + j].high >= high:
                is_pivot = False
                break
        if is_pivot:
            highs.append(high)
    return highs


def _find_pivot_lows(candles: list[Candle], window: int = 5) -> list[float]:
    """Identify pivot low prices.

    A pivot low is a candle whose low is strictly lower than the lows of
    the *window* candles on each side.
    """
    lows: list[float] = []
    for i in range(window, len(candles) - window):
        low = candles[i].low
        is_pivot = True
        for j in range(1, window + 1):
            if candles[i - j].low <= low or candles[i + j].low <= low:
                is_pivot = False
                break
        if is_pivot:
            lows.append(low)
    return lows


def _cluster_levels(levels: list[float], threshold: float = 0.02) -> list[float]:
    """Cluster nearby price levels.

    Sorted levels are grouped while each level sits within *threshold*
    (relative) of the previous member of the cluster.  Returns the average
    of each cluster, ascending.
    """
    if not levels:
        return []

    sorted_levels = sorted(levels)
    clusters: list[list[float]] = []
    current: list[float] = [sorted_levels[0]]

    for level in sorted_levels[1:]:
        prev = current[-1]
        if prev > 0 and (level - prev) / prev <= threshold:
            current.append(level)
        else:
            clusters.append(current)
            current = [level]
    clusters.append(current)

    return [sum(c) / len(c) for c in clusters]


def calculate_support_resistance(
    candles: list[Candle],
    lookback: int = 5,
    cluster_threshold: float = 0.02,
    anchor_window: int = 20,
) -> SupportResistanceResult:
    """Detect clustered support and resistance levels.

    Args:
        candles: Candle history, oldest-first.
        lookback: Half-window for pivot detection.
        cluster_threshold: Relative distance under which levels merge.
        anchor_window: The high/low of this many recent candles is always
            added as a candidate level.

    Returns:
        ``SupportResistanceResult`` with up to five supports below and five
        resistances above the current close, both ascending.  Fewer than
        ``2 × lookback + 1`` candles yields empty levels and MID_RANGE.
    """
    current_price = candles[-1].close if candles else 0.0

    if len(candles) < lookback * 2 + 1:
        return SupportResistanceResult(
            support=(),
            resistance=(),
            nearest_support=None,
            nearest_resistance=None,
            current_price=current_price,
            price_position="MID_RANGE",
        )

    highs = _find_pivot_highs(candles, lookback)
    lows = _find_pivot_lows(candles, lookback)

    recent = candles[-anchor_window:]
    highs.append(max(c.high for c in recent))
    lows.append(min(c.low for c in recent))

    levels = _cluster_levels(highs + lows, cluster_threshold)
    support = [lvl for lvl in levels if lvl < current_price]
    resistance = [lvl for lvl in levels if lvl > current_price]

    nearest_support = support[-1] if support else None
    nearest_resistance = resistance[0] if resistance else None

    position = "MID_RANGE"
    if current_price > 0:
        if (
            nearest_support is not None
            and (current_price - nearest_support) / current_price < NEAR_LEVEL_PCT
        ):
            position = "NEAR_SUPPORT"
        elif (
            nearest_resistance is not None
            and (nearest_resistance - current_price) / current_price < NEAR_LEVEL_PCT
        ):
            position = "NEAR_RESISTANCE"

    return SupportResistanceResult(
        support=tuple(support[-MAX_LEVELS:]),
        resistance=tuple(resistance[:MAX_LEVELS]),
        nearest_support=nearest_support,
        nearest_resistance=nearest_resistance,
        current_price=current_price,
        price_position=position,
    )


def _fmt(price: float) -> str:
    return f"${price:,.6g}"


def describe_support_resistance(levels: SupportResistanceResult) -> str:
    """Human-readable description of where price sits between levels."""
    price = _fmt(levels.current_price)

    if levels.price_position == "NEAR_SUPPORT":
        text = f"Price at {price} is near support at {_fmt(levels.nearest_support)}"
        if levels.nearest_resistance is not None:
            text += f", resistance at {_fmt(levels.nearest_resistance)}"
        return text

    if levels.price_position == "NEAR_RESISTANCE":
        text = f"Price at {price} is near resistance at {_fmt(levels.nearest_resistance)}"
        if levels.nearest_support is not None:
            text += f", support at {_fmt(levels.nearest_support)}"
        return text

    text = f"Price at {price} is mid-range"
    if levels.nearest_support is not None and levels.nearest_resistance is not None:
        text += (
            f" between support {_fmt(levels.nearest_support)}"
            f" and resistance {_fmt(levels.nearest_resistance)}"
        )
    return text
