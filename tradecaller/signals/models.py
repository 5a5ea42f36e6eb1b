"""Signal data models — confidence factors, breakdowns, and trading signals."""

from dataclasses import dataclass, field
from typing import Literal, Optional, Union

from tradecaller.technical.models import TechnicalAnalysis, Token


SignalAction = Literal["LONG", "SHORT", "HOLD", "AVOID"]
Timeframe = Literal["1H", "4H", "1D", "1W"]
RiskLevel = Literal["LOW", "MEDIUM", "HIGH"]
FactorCategory = Literal["TECHNICAL", "FUNDAMENTAL", "SENTIMENT", "HISTORICAL"]


@dataclass(frozen=True)
class ConfidenceFactor:
    """One weighted input to the confidence score.

    ``value`` is on a 0–100 scale; ``contribution`` is the number of points
    the factor adds on top of the 50-point base.
    """

    name: str
    category: FactorCategory
    weight: float
    value: float
    contribution: float
    description: str


@dataclass(frozen=True)
class ConfidenceBreakdown:
    total_confidence: int
    factors: tuple[ConfidenceFactor, ...]
    historical_win_rate: float
    similar_setups: int
    reasoning: str


@dataclass(frozen=True)
class HistoricalStats:
    """Win rate (percent) observed over *sample_size* comparable setups."""

    win_rate: float
    sample_size: int


@dataclass(frozen=True)
class SignalReasoning:
    technical: str
    fundamental: str
    sentiment: str


@dataclass(frozen=True)
class TradingSignal:
    """An actionable LONG/SHORT call.

    ``targets`` holds three tiers ordered by increasing distance from
    ``entry``.  ``timestamp`` is ISO-8601 UTC.
    """

    id: str
    timestamp: str
    token: Token
    action: Literal["LONG", "SHORT"]
    entry: float
    targets: tuple[float, ...]
    stop_loss: float
    confidence: int
    timeframe: Timeframe
    reasoning: SignalReasoning
    risk_level: RiskLevel
    technical_analysis: Optional[TechnicalAnalysis] = None
    indicators: dict[str, Union[float, str]] = field(default_factory=dict)
    confidence_factors: tuple[ConfidenceFactor, ...] = ()


@dataclass(frozen=True)
class SignalDecision:
    """Outcome of evaluating one token.

    Always produced, including for HOLD and AVOID, so callers can see why
    no signal was issued.  ``signal`` is set only for LONG/SHORT.
    """

    action: SignalAction
    reason: str
    breakdown: Optional[ConfidenceBreakdown] = None
    signal: Optional[TradingSignal] = None
