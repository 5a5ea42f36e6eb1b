"""In-memory TTL cache for per-timeframe analysis reports.

Entries are keyed by ``(symbol, timeframe)`` and stamped with a fingerprint
of the candle series they were computed from: the candle count, the first
and last timestamps and the last close.  A new, backfilled or corrected
series invalidates an entry before its TTL runs out.  The clock is
injectable for tests.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from tradecaller.technical.models import AnalysisReport, Candle

logger = logging.getLogger("tradecaller.cache")

SeriesFingerprint = tuple[int, int, int, float]


def series_fingerprint(candles: Sequence[Candle]) -> SeriesFingerprint:
    """Identify a candle series by count, first/last timestamp and last close."""
    if not candles:
        return (0, 0, 0, 0.0)
    return (len(candles), candles[0].timestamp, candles[-1].timestamp, candles[-1].close)


@dataclass(frozen=True)
class _Entry:
    report: AnalysisReport
    fingerprint: SeriesFingerprint
    stored_at: float


class AnalysisCache:
    """TTL cache of ``AnalysisReport`` objects.

    Args:
        ttl_seconds: Lifetime of an entry.  ``0`` disables caching.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must not be negative, got {ttl_seconds}")
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, str], _Entry] = {}
        self.hits = 0
        self.misses = 0

    def get(
        self, symbol: str, timeframe: str, candles: Sequence[Candle]
    ) -> Optional[AnalysisReport]:
        """Return the cached report if it is fresh and from the same series."""
        key = (symbol, timeframe)
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        expired = self._clock() - entry.stored_at >= self._ttl
        if expired or entry.fingerprint != series_fingerprint(candles):
            del self._entries[key]
            self.misses += 1
            return None

        self.hits += 1
        logger.debug("Cache hit for %s %s", symbol, timeframe)
        return entry.report

    def put(
        self,
        symbol: str,
        timeframe: str,
        candles: Sequence[Candle],
        report: AnalysisReport,
    ) -> None:
        if self._ttl == 0:
            return
        self._entries[(symbol, timeframe)] = _Entry(
            report=report,
            fingerprint=series_fingerprint(candles),
            stored_at=self._clock(),
        )

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
