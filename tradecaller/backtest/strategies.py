"""Strategy catalog — predefined declarative strategies for backtesting.

Looked up by display name via :func:`get_strategy`.
"""

from tradecaller.backtest.models import (
    MACDCross,
    MACDVersusSignal,
    RSIThreshold,
    SignalRule,
    StopLossRule,
    Strategy,
    TakeProfitRule,
    TrendIs,
)


def _rsi_exit(threshold: float, comparator: str = ">") -> SignalRule:
    return SignalRule("RSI", "EXIT", RSIThreshold(comparator, threshold), 50)


RSI_OVERSOLD_LONG = Strategy(
    name="RSI Oversold Long",
    description="Buy when RSI drops below 30, sell when RSI exceeds 70 or the stop is hit",
    signals=(
        SignalRule("RSI", "LONG", RSIThreshold("<", 30), 60),
        _rsi_exit(70),
    ),
    stop_loss=StopLossRule("FIXED_PERCENT", 5),
    take_profit=TakeProfitRule("FIXED_PERCENT", 10),
)

RSI_EXTREME_OVERSOLD = Strategy(
    name="RSI Extreme Oversold",
    description="Buy only when RSI drops below 25",
    signals=(
        SignalRule("RSI", "LONG", RSIThreshold("<", 25), 70),
        _rsi_exit(65),
    ),
    stop_loss=StopLossRule("FIXED_PERCENT", 7),
    take_profit=TakeProfitRule("FIXED_PERCENT", 15),
)

RSI_OVERBOUGHT_SHORT = Strategy(
    name="RSI Overbought Short",
    description="Short when RSI exceeds 70, cover when RSI drops below 30",
    signals=(
        SignalRule("RSI", "SHORT", RSIThreshold(">", 70), 60),
        _rsi_exit(30, "<"),
    ),
    stop_loss=StopLossRule("FIXED_PERCENT", 5),
    take_profit=TakeProfitRule("FIXED_PERCENT", 10),
)

RSI_TREND_ALIGNED = Strategy(
    name="RSI + Trend Alignment",
    description="Buy oversold RSI only when the trend is up",
    signals=(
        SignalRule("RSI", "LONG", RSIThreshold("<", 35), 40),
        SignalRule("TREND", "LONG", TrendIs("UP"), 30),
        _rsi_exit(65),
    ),
    stop_loss=StopLossRule("FIXED_PERCENT", 4),
    take_profit=TakeProfitRule("FIXED_PERCENT", 12),
)

MACD_CROSSOVER = Strategy(
    name="MACD Crossover",
    description="Buy when MACD crosses above its signal line, sell on the bearish cross",
    signals=(
        SignalRule("MACD", "LONG", MACDCross("ABOVE"), 60),
        SignalRule("MACD", "EXIT", MACDCross("BELOW"), 50),
    ),
    stop_loss=StopLossRule("FIXED_PERCENT", 6),
    take_profit=TakeProfitRule("FIXED_PERCENT", 12),
)

RSI_MACD_COMBO = Strategy(
    name="RSI + MACD Combined",
    description="Buy when RSI is oversold and MACD is above its signal line",
    signals=(
        SignalRule("RSI", "LONG", RSIThreshold("<", 35), 35),
        SignalRule("MACD", "LONG", MACDVersusSignal(">"), 35),
        _rsi_exit(70),
    ),
    stop_loss=StopLossRule("FIXED_PERCENT", 5),
    take_profit=TakeProfitRule("FIXED_PERCENT", 15),
)

RSI_CONSERVATIVE = Strategy(
    name="Conservative RSI",
    description="Tight stops and modest targets for a higher win rate",
    signals=(
        SignalRule("RSI", "LONG", RSIThreshold("<", 30), 60),
        _rsi_exit(55),
    ),
    stop_loss=StopLossRule("FIXED_PERCENT", 3),
    take_profit=TakeProfitRule("FIXED_PERCENT", 6),
)

RSI_AGGRESSIVE = Strategy(
    name="Aggressive RSI",
    description="Wide stops and large targets for maximum profit potential",
    signals=(
        SignalRule("RSI", "LONG", RSIThreshold("<", 30), 60),
        _rsi_exit(75),
    ),
    stop_loss=StopLossRule("FIXED_PERCENT", 8),
    take_profit=TakeProfitRule("FIXED_PERCENT", 20),
)


ALL_STRATEGIES: tuple[Strategy, ...] = (
    RSI_OVERSOLD_LONG,
    RSI_EXTREME_OVERSOLD,
    RSI_OVERBOUGHT_SHORT,
    RSI_TREND_ALIGNED,
    MACD_CROSSOVER,
    RSI_MACD_COMBO,
    RSI_CONSERVATIVE,
    RSI_AGGRESSIVE,
)

STRATEGY_REGISTRY: dict[str, Strategy] = {s.name: s for s in ALL_STRATEGIES}


def list_strategies() -> list[str]:
    return list(STRATEGY_REGISTRY)


def get_strategy(name: str) -> Strategy:
    """Look up a catalog strategy by name.

    Raises ``KeyError`` if the strategy name is not registered.
    """
    if name not in STRATEGY_REGISTRY:
        raise KeyError(
            f"Unknown strategy '{name}'. "
            f"Available: {', '.join(STRATEGY_REGISTRY.keys())}"
        )
    return STRATEGY_REGISTRY[name]
