"""Trade Caller — application configuration.

Loads .env variables into a typed config object.
Every variable is optional; invalid values are rejected on load.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


_SHARPE_BASES = ("trade", "period")


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    initial_capital: float = 10_000.0
    position_size_pct: float = 10.0
    sharpe_annualization: int = 252
    sharpe_basis: str = "trade"  # "trade" or "period"
    breakeven_threshold_pct: float = 0.1
    min_long_confidence: int = 50
    min_short_confidence: int = 80
    analysis_cache_ttl_seconds: float = 300.0
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.initial_capital <= 0:
            raise ValueError(
                f"INITIAL_CAPITAL must be positive, got {self.initial_capital}"
            )
        if not 0 < self.position_size_pct <= 100:
            raise ValueError(
                f"POSITION_SIZE_PCT must be in (0, 100], got {self.position_size_pct}"
            )
        if self.sharpe_annualization <= 0:
            raise ValueError(
                f"SHARPE_ANNUALIZATION must be positive, got {self.sharpe_annualization}"
            )
        if self.sharpe_basis not in _SHARPE_BASES:
            raise ValueError(
                f"SHARPE_BASIS must be one of {', '.join(_SHARPE_BASES)}, "
                f"got '{self.sharpe_basis}'"
            )
        if self.analysis_cache_ttl_seconds < 0:
            raise ValueError(
                "ANALYSIS_CACHE_TTL_SECONDS must not be negative, "
                f"got {self.analysis_cache_ttl_seconds}"
            )


DEFAULT_CONFIG = Config()


def _read(name: str, default: str, cast):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(
            f"Invalid value for environment variable {name}: '{raw}'"
        ) from None


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the variable when a value
    cannot be parsed or is out of range.
    """
    load_dotenv(dotenv_path=env_path)

    return Config(
        initial_capital=_read("INITIAL_CAPITAL", "10000", float),
        position_size_pct=_read("POSITION_SIZE_PCT", "10", float),
        sharpe_annualization=_read("SHARPE_ANNUALIZATION", "252", int),
        sharpe_basis=os.environ.get("SHARPE_BASIS", "trade").lower(),
        breakeven_threshold_pct=_read("BREAKEVEN_THRESHOLD_PCT", "0.1", float),
        min_long_confidence=_read("MIN_LONG_CONFIDENCE", "50", int),
        min_short_confidence=_read("MIN_SHORT_CONFIDENCE", "80", int),
        analysis_cache_ttl_seconds=_read("ANALYSIS_CACHE_TTL_SECONDS", "300", float),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )
