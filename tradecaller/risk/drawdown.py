"""Drawdown tracking — pure math, no I/O.

Tracks the running equity peak and the drawdown from it.  The peak starts
at the initial equity and never decreases.
"""


class DrawdownTracker:
    """Tracks equity peaks and computes drawdown metrics.

    Args:
        initial_equity: Starting account equity.
    """

    def __init__(self, initial_equity: float) -> None:
        if initial_equity <= 0:
            raise ValueError(
                f"initial_equity must be positive, got {initial_equity}"
            )
        self._peak_equity: float = initial_equity
        self._current_equity: float = initial_equity
        self._max_drawdown: float = 0.0
        self._max_drawdown_pct: float = 0.0

    # ── Mutation ─────────────────────────────────────────────────────────

    def update(self, equity: float) -> None:
        """Update with the latest equity value.

        If *equity* exceeds the current peak, the peak is raised.
        """
        self._current_equity = equity
        if equity > self._peak_equity:
            self._peak_equity = equity
        self._max_drawdown = max(self._max_drawdown, self.drawdown)
        self._max_drawdown_pct = max(self._max_drawdown_pct, self.drawdown_pct)

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def peak_equity(self) -> float:
        """Highest equity recorded."""
        return self._peak_equity

    @property
    def current_equity(self) -> float:
        """Most recently recorded equity."""
        return self._current_equity

    @property
    def drawdown(self) -> float:
        """Current drawdown in currency units, never negative."""
        return max(0.0, self._peak_equity - self._current_equity)

    @property
    def drawdown_pct(self) -> float:
        """Current drawdown as a percentage of peak equity."""
        if self._peak_equity <= 0:
            return 0.0
        return self.drawdown / self._peak_equity * 100.0

    @property
    def max_drawdown(self) -> float:
        """Largest drawdown seen so far."""
        return self._max_drawdown

    @property
    def max_drawdown_pct(self) -> float:
        """Largest percentage drawdown seen so far."""
        return self._max_drawdown_pct
