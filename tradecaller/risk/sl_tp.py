"""Stop-loss and take-profit calculation — pure math, no I/O.

Stop-loss rules:
    FIXED_PERCENT  stop sits ``value`` percent from entry.
    ATR            stop sits ``value × ATR(14)`` from entry.
    SUPPORT_LEVEL  stop sits ``value`` percent beyond the nearest support
                   (LONG) or resistance (SHORT), and never closer than the
                   5 % floor distance from entry.

Take-profit rules:
    FIXED_PERCENT  target ``value`` percent from entry.
    RISK_REWARD    target ``value × risk`` from entry.
    TRAILING       no fixed target; a trailing stop manages the exit.
"""

from typing import Optional

from tradecaller.backtest.models import StopLossRule, TakeProfitRule
from tradecaller.technical.indicators import calculate_atr
from tradecaller.technical.models import Candle, FibonacciLevels


STOP_FLOOR_PCT = 5.0
TARGET_MULTIPLES = (1.5, 2.5, 4.0)


def _check_side(side: str) -> None:
    if side not in ("LONG", "SHORT"):
        raise ValueError(f"side must be 'LONG' or 'SHORT', got '{side}'")


def calculate_stop_loss(
    entry_price: float,
    side: str,
    rule: StopLossRule,
    candles: Optional[list[Candle]] = None,
    nearest_support: Optional[float] = None,
    nearest_resistance: Optional[float] = None,
) -> float:
    """Compute the initial stop-loss price for a new position.

    Args:
        entry_price: Planned entry price.
        side: ``"LONG"`` or ``"SHORT"``.
        rule: Stop-loss rule to apply.
        candles: History ending at the entry candle (ATR only).
        nearest_support: Nearest support below price (SUPPORT_LEVEL).
        nearest_resistance: Nearest resistance above price (SUPPORT_LEVEL).

    Returns:
        Stop-loss price.

    Raises:
        ValueError: If *side* is invalid, or the ATR rule has fewer than
            15 candles to work with.
    """
    _check_side(side)
    sign = -1 if side == "LONG" else 1

    if rule.type == "FIXED_PERCENT":
        return entry_price * (1 + sign * rule.value / 100)

    if rule.type == "ATR":
        atr = calculate_atr(list(candles or []))
        return entry_price + sign * rule.value * atr

    floor = entry_price * (1 + sign * STOP_FLOOR_PCT / 100)
    if side == "LONG":
        support = nearest_support if nearest_support else floor
        return min(support * (1 - rule.value / 100), floor)
    resistance = nearest_resistance if nearest_resistance else floor
    return max(resistance * (1 + rule.value / 100), floor)


def tighten_to_fibonacci(
    stop_loss: float,
    entry_price: float,
    side: str,
    fib: Optional[FibonacciLevels],
) -> float:
    """Pull the stop in to the first retracement level between stop and entry.

    The stop is placed 1 % beyond that level.  Returns *stop_loss*
    unchanged when no retracement sits in between.
    """
    _check_side(side)
    if fib is None:
        return stop_loss

    for level in fib.retracement.values():
        if side == "LONG" and stop_loss < level < entry_price:
            return level * 0.99
        if side == "SHORT" and entry_price < level < stop_loss:
            return level * 1.01
    return stop_loss


def calculate_take_profit(
    entry_price: float,
    side: str,
    stop_loss: float,
    rule: TakeProfitRule,
) -> Optional[float]:
    """Compute the take-profit price, or ``None`` for TRAILING rules."""
    _check_side(side)
    sign = 1 if side == "LONG" else -1

    if rule.type == "FIXED_PERCENT":
        return entry_price * (1 + sign * rule.value / 100)
    if rule.type == "RISK_REWARD":
        risk = abs(entry_price - stop_loss)
        return entry_price + sign * rule.value * risk
    return None


def calculate_targets(
    entry_price: float,
    side: str,
    stop_loss: float,
    multiples: tuple[float, ...] = TARGET_MULTIPLES,
) -> tuple[float, ...]:
    """Tiered targets at R-multiples of the stop distance.

    Ordered by increasing distance from entry.
    """
    _check_side(side)
    risk = abs(entry_price - stop_loss)
    sign = 1 if side == "LONG" else -1
    return tuple(entry_price + sign * risk * m for m in sorted(multiples))


def risk_reward_ratio(
    entry_price: float, stop_loss: float, take_profit: Optional[float]
) -> Optional[float]:
    """Planned reward divided by planned risk.

    ``None`` when there is no fixed target or the risk is zero.
    """
    if take_profit is None:
        return None
    risk = abs(entry_price - stop_loss)
    if risk == 0:
        return None
    return abs(take_profit - entry_price) / risk
