"""Volume confirmation — does volume back the latest price move?"""

from typing import Literal

from tradecaller.technical.models import Candle, VolumeAnalysis


def _volume_trend(volumes: list[float]) -> str:
    """Compare the last five volumes with the five before them."""
    recent = volumes[-5:]
    older = volumes[-10:-5]
    if not recent or not older:
        return "STABLE"

    recent_avg = sum(recent) / len(recent)
    older_avg = sum(older) / len(older)
    if recent_avg > older_avg * 1.2:
        return "INCREASING"
    if recent_avg < older_avg * 0.8:
        return "DECREASING"
    return "STABLE"


def analyze_volume(candles: list[Candle], lookback: int = 20) -> VolumeAnalysis:
    """Classify how well volume confirms the last candle's price change.

    The volume ratio compares the current volume with the average of the
    preceding ``lookback - 1`` candles (the current candle is excluded).

    ========== ============ ==========================================
    Price      Ratio        Confirmation
    ========== ============ ==========================================
    up/down    > 1.5        STRONG
    up/down    (1, 1.5]     MODERATE
    up         <= 1         DIVERGENCE (rally on fading volume)
    down/flat  <= 1         WEAK
    ========== ============ ==========================================

    Fewer than two candles yields ratio 1.0, STABLE, WEAK.
    """
    if len(candles) < 2:
        return VolumeAnalysis(
            avg_volume=0.0,
            current_volume=0.0,
            volume_ratio=1.0,
            trend="STABLE",
            confirmation="WEAK",
            description="Insufficient data",
        )

    volumes = [c.volume for c in candles[-lookback:]]
    current = volumes[-1]
    history = volumes[:-1]
    avg = sum(history) / len(history)
    ratio = current / avg if avg > 0 else 1.0

    trend = _volume_trend(volumes)

    prev_close = candles[-2].close
    price_up = prev_close > 0 and candles[-1].close > prev_close
    volume_up = ratio > 1

    if volume_up:
        side = "bullish" if price_up else "bearish"
        if ratio > 2:
            confirmation = "STRONG"
            description = f"Strong {side} confirmation - volume spike {ratio:.1f}x average"
        elif ratio > 1.5:
            confirmation = "STRONG"
            description = f"{side.capitalize()} confirmation - volume {ratio:.1f}x average"
        else:
            confirmation = "MODERATE"
            description = f"Moderate {side} confirmation - volume slightly elevated"
    elif price_up:
        confirmation = "DIVERGENCE"
        description = "Bearish divergence - price up but volume declining"
    else:
        confirmation = "WEAK"
        description = "Weak signal - low volume decline"

    return VolumeAnalysis(
        avg_volume=avg,
        current_volume=current,
        volume_ratio=ratio,
        trend=trend,
        confirmation=confirmation,
        description=description,
    )


_CONFIRMATION_SCORES = {
    "STRONG": 15,
    "MODERATE": 8,
    "WEAK": 2,
    "DIVERGENCE": -10,
}


def calculate_volume_score(
    volume: VolumeAnalysis, action: Literal["LONG", "SHORT"]
) -> int:
    """Confidence adjustment in ``[-20, 20]`` from a volume analysis.

    Base score by confirmation, ±5 for a ratio above 2 / below 0.5, and +3
    when the volume trend agrees with *action* (INCREASING for LONG,
    DECREASING for SHORT).
    """
    score = _CONFIRMATION_SCORES[volume.confirmation]

    if volume.volume_ratio > 2:
        score += 5
    elif volume.volume_ratio < 0.5:
        score -= 5

    if (volume.trend, action) in (("INCREASING", "LONG"), ("DECREASING", "SHORT")):
        score += 3

    return max(-20, min(20, score))
