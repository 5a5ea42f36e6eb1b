"""Backtest data models — strategy schema, trades, equity, and results.

Strategies are declarative and validated on construction.  Conditions are
small tagged types rather than free-text expressions, so a malformed rule
fails when the strategy is defined instead of silently never matching.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Union

from tradecaller.technical.models import Candle


Side = Literal["LONG", "SHORT"]
RuleAction = Literal["LONG", "SHORT", "EXIT"]
RuleType = Literal["RSI", "MACD", "TREND", "SUPPORT_RESISTANCE", "VOLUME", "COMBINED"]
TradeStatus = Literal["OPEN", "CLOSED_WIN", "CLOSED_LOSS", "CLOSED_BREAKEVEN"]
ExitReason = Literal["STOP_LOSS", "TAKE_PROFIT", "SIGNAL", "END_OF_PERIOD"]
StopLossType = Literal["FIXED_PERCENT", "ATR", "SUPPORT_LEVEL"]
TakeProfitType = Literal["FIXED_PERCENT", "RISK_REWARD", "TRAILING"]

_RULE_TYPES = ("RSI", "MACD", "TREND", "SUPPORT_RESISTANCE", "VOLUME", "COMBINED")
_RULE_ACTIONS = ("LONG", "SHORT", "EXIT")
_COMPARATORS = ("<", ">")
_STOP_TYPES = ("FIXED_PERCENT", "ATR", "SUPPORT_LEVEL")
_TP_TYPES = ("FIXED_PERCENT", "RISK_REWARD", "TRAILING")


class StrategyDefinitionError(ValueError):
    """A strategy, rule, or condition is malformed."""


class BacktestConfigError(ValueError):
    """A backtest configuration value is out of range."""


# ── Conditions ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RSIThreshold:
    """``RSI < threshold`` or ``RSI > threshold``."""

    comparator: str
    threshold: float

    def __post_init__(self) -> None:
        if self.comparator not in _COMPARATORS:
            raise StrategyDefinitionError(
                f"RSI comparator must be '<' or '>', got '{self.comparator}'"
            )
        if not 0 <= self.threshold <= 100:
            raise StrategyDefinitionError(
                f"RSI threshold must be in [0, 100], got {self.threshold}"
            )


@dataclass(frozen=True)
class MACDVersusSignal:
    """MACD line above (``>``) or below (``<``) its signal line."""

    comparator: str

    def __post_init__(self) -> None:
        if self.comparator not in _COMPARATORS:
            raise StrategyDefinitionError(
                f"MACD comparator must be '<' or '>', got '{self.comparator}'"
            )


@dataclass(frozen=True)
class MACDCross:
    """MACD crossed ``ABOVE`` or ``BELOW`` its signal line on this candle."""

    direction: str

    def __post_init__(self) -> None:
        if self.direction not in ("ABOVE", "BELOW"):
            raise StrategyDefinitionError(
                f"MACD cross direction must be ABOVE or BELOW, got '{self.direction}'"
            )


@dataclass(frozen=True)
class TrendIs:
    direction: str

    def __post_init__(self) -> None:
        if self.direction not in ("UP", "DOWN", "SIDEWAYS"):
            raise StrategyDefinitionError(
                f"Trend direction must be UP, DOWN or SIDEWAYS, got '{self.direction}'"
            )


@dataclass(frozen=True)
class VolumeRatioAbove:
    """Current volume at least *ratio* × its trailing average."""

    ratio: float

    def __post_init__(self) -> None:
        if self.ratio <= 0:
            raise StrategyDefinitionError(
                f"Volume ratio must be positive, got {self.ratio}"
            )


Condition = Union[RSIThreshold, MACDVersusSignal, MACDCross, TrendIs, VolumeRatioAbove]
CONDITION_TYPES = (RSIThreshold, MACDVersusSignal, MACDCross, TrendIs, VolumeRatioAbove)


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Indicator values observed at one candle close."""

    close: float = 0.0
    rsi: float = 50.0
    macd: float = 0.0
    macd_signal: float = 0.0
    macd_histogram: float = 0.0
    macd_crossover: Optional[str] = None
    trend: str = "SIDEWAYS"
    trend_strength: float = 0.0
    volume: float = 0.0
    volume_ratio: float = 1.0


# ── Strategy schema ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class SignalRule:
    type: RuleType
    action: RuleAction
    condition: Condition
    weight: float

    def __post_init__(self) -> None:
        if self.type not in _RULE_TYPES:
            raise StrategyDefinitionError(f"Unknown rule type '{self.type}'")
        if self.action not in _RULE_ACTIONS:
            raise StrategyDefinitionError(
                f"Rule action must be LONG, SHORT or EXIT, got '{self.action}'"
            )
        if not isinstance(self.condition, CONDITION_TYPES):
            raise StrategyDefinitionError(
                f"Unsupported condition {self.condition!r}"
            )
        if self.weight <= 0:
            raise StrategyDefinitionError(
                f"Rule weight must be positive, got {self.weight}"
            )


@dataclass(frozen=True)
class StopLossRule:
    """``value`` is a percent for FIXED_PERCENT / SUPPORT_LEVEL, an ATR
    multiple for ATR."""

    type: StopLossType = "FIXED_PERCENT"
    value: float = 5.0

    def __post_init__(self) -> None:
        if self.type not in _STOP_TYPES:
            raise StrategyDefinitionError(f"Unknown stop-loss type '{self.type}'")
        if self.value <= 0:
            raise StrategyDefinitionError(
                f"Stop-loss value must be positive, got {self.value}"
            )


@dataclass(frozen=True)
class TakeProfitRule:
    """``value`` is a percent for FIXED_PERCENT, an R multiple for
    RISK_REWARD, and a trail distance in percent for TRAILING."""

    type: TakeProfitType = "FIXED_PERCENT"
    value: float = 10.0

    def __post_init__(self) -> None:
        if self.type not in _TP_TYPES:
            raise StrategyDefinitionError(f"Unknown take-profit type '{self.type}'")
        if self.value <= 0:
            raise StrategyDefinitionError(
                f"Take-profit value must be positive, got {self.value}"
            )


@dataclass(frozen=True)
class Strategy:
    name: str
    description: str
    signals: tuple[SignalRule, ...]
    stop_loss: StopLossRule = field(default_factory=StopLossRule)
    take_profit: TakeProfitRule = field(default_factory=TakeProfitRule)
    entry_threshold: float = 50.0

    def __post_init__(self) -> None:
        if not self.name:
            raise StrategyDefinitionError("Strategy name is required")
        object.__setattr__(self, "signals", tuple(self.signals))
        if not self.signals:
            raise StrategyDefinitionError(f"Strategy '{self.name}' has no signal rules")
        for rule in self.signals:
            if not isinstance(rule, SignalRule):
                raise StrategyDefinitionError(
                    f"Strategy '{self.name}' has an invalid rule {rule!r}"
                )
        if not any(r.action != "EXIT" for r in self.signals):
            raise StrategyDefinitionError(
                f"Strategy '{self.name}' has no entry rules"
            )
        if self.entry_threshold <= 0:
            raise StrategyDefinitionError(
                f"Entry threshold must be positive, got {self.entry_threshold}"
            )

    @property
    def entry_rules(self) -> tuple[SignalRule, ...]:
        return tuple(r for r in self.signals if r.action != "EXIT")

    @property
    def exit_rules(self) -> tuple[SignalRule, ...]:
        return tuple(r for r in self.signals if r.action == "EXIT")


# ── Trades & equity ──────────────────────────────────────────────────────


@dataclass
class Trade:
    """A simulated position.

    Created OPEN; :meth:`close` performs the single terminal transition.
    ``take_profit`` is ``None`` for trailing-stop exits.
    """

    id: str
    entry_time: int
    entry_price: float
    side: Side
    size: float
    capital: float
    stop_loss: float
    take_profit: Optional[float]
    indicators: IndicatorSnapshot = field(default_factory=IndicatorSnapshot)
    initial_stop_loss: Optional[float] = None
    exit_time: Optional[int] = None
    exit_price: Optional[float] = None
    status: TradeStatus = "OPEN"
    pnl: float = 0.0
    pnl_percent: float = 0.0
    exit_reason: Optional[ExitReason] = None

    def __post_init__(self) -> None:
        if self.initial_stop_loss is None:
            self.initial_stop_loss = self.stop_loss

    @property
    def is_open(self) -> bool:
        return self.status == "OPEN"

    def unrealized_pnl(self, price: float) -> float:
        if self.side == "LONG":
            return (price - self.entry_price) * self.size
        return (self.entry_price - price) * self.size

    def close(
        self,
        exit_time: int,
        exit_price: float,
        reason: ExitReason,
        breakeven_threshold_pct: float = 0.1,
    ) -> float:
        """Close the trade and return its realised P&L.

        Raises ``ValueError`` if the trade is already closed.
        """
        if not self.is_open:
            raise ValueError(f"Trade {self.id} is already {self.status}")

        pnl = self.unrealized_pnl(exit_price)
        pnl_percent = pnl / self.capital * 100 if self.capital else 0.0

        if abs(pnl_percent) < breakeven_threshold_pct:
            status = "CLOSED_BREAKEVEN"
        elif pnl > 0:
            status = "CLOSED_WIN"
        else:
            status = "CLOSED_LOSS"

        self.exit_time = exit_time
        self.exit_price = exit_price
        self.exit_reason = reason
        self.pnl = pnl
        self.pnl_percent = pnl_percent
        self.status = status
        return pnl


@dataclass(frozen=True)
class EquityPoint:
    """Equity at one candle close; ``drawdown = max(0, peak - equity)``."""

    timestamp: int
    equity: float
    peak: float
    drawdown: float
    drawdown_percent: float


# ── Config, metrics, results ─────────────────────────────────────────────


@dataclass(frozen=True)
class BacktestConfig:
    symbol: str
    candles: tuple[Candle, ...]
    strategy: Strategy
    timeframe: str = "4H"
    initial_capital: float = 10_000.0
    position_size_pct: float = 10.0
    address: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "candles", tuple(self.candles))
        if self.initial_capital <= 0:
            raise BacktestConfigError(
                f"initial_capital must be positive, got {self.initial_capital}"
            )
        if not 0 < self.position_size_pct <= 100:
            raise BacktestConfigError(
                f"position_size_pct must be in (0, 100], got {self.position_size_pct}"
            )
        if not isinstance(self.strategy, Strategy):
            raise BacktestConfigError(f"strategy must be a Strategy, got {self.strategy!r}")


@dataclass(frozen=True)
class BacktestMetrics:
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    breakeven_trades: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    profit_factor: float = 0.0
    total_return: float = 0.0
    total_return_percent: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_percent: float = 0.0
    avg_trade_duration_hours: float = 0.0
    avg_risk_reward_ratio: float = 0.0


@dataclass(frozen=True)
class RSILevelStats:
    level: str
    trades: int
    win_rate: float
    avg_return: float


@dataclass(frozen=True)
class BucketStats:
    trades: int = 0
    win_rate: float = 0.0


@dataclass(frozen=True)
class TimeframeStats:
    timeframe: str
    win_rate: float


@dataclass(frozen=True)
class StrategyAnalysis:
    best_timeframes: tuple[TimeframeStats, ...] = ()
    best_rsi_levels: tuple[RSILevelStats, ...] = ()
    with_trend: BucketStats = field(default_factory=BucketStats)
    against_trend: BucketStats = field(default_factory=BucketStats)
    high_volume: BucketStats = field(default_factory=BucketStats)
    low_volume: BucketStats = field(default_factory=BucketStats)
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True)
class BacktestResult:
    config: BacktestConfig
    trades: tuple[Trade, ...]
    metrics: BacktestMetrics
    equity: tuple[EquityPoint, ...]
    analysis: StrategyAnalysis
    timestamp: str
