"""Technical analysis data models — typed representations for indicator outputs."""

from dataclasses import dataclass, field
from typing import Literal, Optional


RSISignal = Literal["OVERSOLD", "OVERBOUGHT", "NEUTRAL"]
MACDTrend = Literal["BULLISH", "BEARISH", "NEUTRAL"]
MACDCrossover = Literal["BULLISH_CROSS", "BEARISH_CROSS"]
TrendDirection = Literal["UP", "DOWN", "SIDEWAYS"]
EMAAlignment = Literal["BULLISH", "BEARISH", "MIXED"]
PricePosition = Literal["NEAR_SUPPORT", "NEAR_RESISTANCE", "MID_RANGE"]
VolumeConfirmation = Literal["STRONG", "MODERATE", "WEAK", "DIVERGENCE"]
VolumeTrend = Literal["INCREASING", "DECREASING", "STABLE"]


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar.  ``timestamp`` is unix seconds (UTC)."""

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class Token:
    """Identity of a tradable token."""

    symbol: str
    address: str
    name: str
    decimals: Optional[int] = None


# ── Indicator results ────────────────────────────────────────────────────


@dataclass(frozen=True)
class RSIResult:
    value: float
    signal: RSISignal
    values: tuple[float, ...] = ()


@dataclass(frozen=True)
class MACDResult:
    macd: float
    signal: float
    histogram: float
    trend: MACDTrend
    crossover: Optional[MACDCrossover]
    macd_line: tuple[float, ...] = ()
    signal_line: tuple[float, ...] = ()
    histogram_line: tuple[float, ...] = ()


@dataclass(frozen=True)
class TrendResult:
    direction: TrendDirection
    strength: int
    ema20: float
    ema50: float
    ema200: float
    above20: bool
    above50: bool
    above200: bool
    ema_alignment: EMAAlignment


@dataclass(frozen=True)
class SupportResistanceResult:
    support: tuple[float, ...]
    resistance: tuple[float, ...]
    nearest_support: Optional[float]
    nearest_resistance: Optional[float]
    current_price: float
    price_position: PricePosition


@dataclass(frozen=True)
class FibonacciLevels:
    """Swing-based retracement and extension levels.

    ``retracement`` and ``extension`` map a level label (``"23.6"``,
    ``"127.2"`` ...) to its price, in ascending ratio order.
    """

    swing_high: float
    swing_low: float
    swing_range: float
    retracement: dict[str, float]
    extension: dict[str, float]
    current_price: float
    nearest_level: float
    nearest_level_name: str
    distance_percent: float


@dataclass(frozen=True)
class VolumeAnalysis:
    avg_volume: float
    current_volume: float
    volume_ratio: float
    trend: VolumeTrend
    confirmation: VolumeConfirmation
    description: str


# ── Aggregated analysis ──────────────────────────────────────────────────


@dataclass(frozen=True)
class RSISnapshot:
    value: float = 50.0
    signal: RSISignal = "NEUTRAL"


@dataclass(frozen=True)
class MACDSnapshot:
    macd: float = 0.0
    signal: float = 0.0
    histogram: float = 0.0
    trend: MACDTrend = "NEUTRAL"
    crossover: Optional[MACDCrossover] = None


@dataclass(frozen=True)
class TrendSnapshot:
    direction: TrendDirection = "SIDEWAYS"
    strength: float = 0.0
    ema20: float = 0.0
    ema50: float = 0.0
    ema200: float = 0.0


@dataclass(frozen=True)
class Momentum:
    value: float = 0.0
    increasing: bool = False


@dataclass(frozen=True)
class TechnicalAnalysis:
    """Structured snapshot of every indicator for one candle series.

    ``support`` and ``resistance`` are ascending and hold at most five
    levels each.
    """

    rsi: RSISnapshot = field(default_factory=RSISnapshot)
    macd: MACDSnapshot = field(default_factory=MACDSnapshot)
    trend: TrendSnapshot = field(default_factory=TrendSnapshot)
    support: tuple[float, ...] = ()
    resistance: tuple[float, ...] = ()
    momentum: Momentum = field(default_factory=Momentum)


@dataclass(frozen=True)
class AnalysisReport:
    """Result of :func:`run_technical_analysis`."""

    analysis: TechnicalAnalysis
    summary: str
