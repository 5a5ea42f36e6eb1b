"""Trailing stop — percentage trail behind the best price since entry.

Used for TRAILING take-profit rules: the stop only ever moves in the
position's favour.
"""


class TrailingStop:
    """Tracks and updates the stop for a single position.

    Args:
        entry_price: Original entry price.
        initial_sl: Original stop-loss price.
        side: ``"LONG"`` or ``"SHORT"``.
        trail_pct: Distance of the stop behind the best price, in percent.
    """

    def __init__(
        self,
        entry_price: float,
        initial_sl: float,
        side: str,
        trail_pct: float,
    ) -> None:
        if side not in ("LONG", "SHORT"):
            raise ValueError(f"side must be 'LONG' or 'SHORT', got '{side}'")
        if trail_pct <= 0:
            raise ValueError(f"trail_pct must be positive, got {trail_pct}")
        self.entry_price = entry_price
        self.side = side
        self.current_sl = initial_sl
        self.best_price = entry_price
        self._trail = trail_pct / 100.0

    def update(self, high: float, low: float) -> float | None:
        """Feed one candle's range and return the new stop if it moved.

        Returns:
            New SL price if the stop should be adjusted, ``None`` if no change.
        """
        if self.side == "LONG":
            self.best_price = max(self.best_price, high)
            new_sl = self.best_price * (1 - self._trail)
            if new_sl > self.current_sl:
                self.current_sl = new_sl
                return new_sl
        else:
            self.best_price = min(self.best_price, low)
            new_sl = self.best_price * (1 + self._trail)
            if new_sl < self.current_sl:
                self.current_sl = new_sl
                return new_sl
        return None

    @property
    def in_profit(self) -> bool:
        """``True`` once the stop has moved beyond the entry price."""
        if self.side == "LONG":
            return self.current_sl > self.entry_price
        return self.current_sl < self.entry_price
