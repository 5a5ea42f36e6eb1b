"""Versioned serialization of backtest results.

Results are encoded as UTF-8 JSON bytes carrying ``schema_version``.  The
encoded record is a plain dict decoupled from the in-memory dataclasses:
decoding returns that dict, not a ``BacktestResult``, so a stored record
never depends on the current class layout.

Non-finite floats are written as the strings ``"inf"``, ``"-inf"`` and
``"nan"`` so the output stays strict JSON.
"""

import json
import math
from dataclasses import asdict
from typing import Any

from tradecaller.backtest.models import BacktestResult

SCHEMA_VERSION = 1

_NON_FINITE = {"inf": math.inf, "-inf": -math.inf, "nan": math.nan}


class SchemaVersionError(ValueError):
    """The encoded record was written with an unsupported schema version."""


def _encode_float(value: float) -> Any:
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return value


def result_to_record(result: BacktestResult) -> dict:
    """Flatten a result into the versioned record layout."""
    config = result.config
    strategy = config.strategy
    metrics = asdict(result.metrics)
    metrics["profit_factor"] = _encode_float(result.metrics.profit_factor)

    return {
        "schema_version": SCHEMA_VERSION,
        "timestamp": result.timestamp,
        "config": {
            "symbol": config.symbol,
            "address": config.address,
            "timeframe": config.timeframe,
            "initial_capital": config.initial_capital,
            "position_size_pct": config.position_size_pct,
            "candle_count": len(config.candles),
            "start": config.candles[0].timestamp if config.candles else None,
            "end": config.candles[-1].timestamp if config.candles else None,
            "strategy": strategy.name,
            "strategy_description": strategy.description,
            "stop_loss": asdict(strategy.stop_loss),
            "take_profit": asdict(strategy.take_profit),
            "entry_threshold": strategy.entry_threshold,
        },
        "metrics": metrics,
        "trades": [asdict(t) for t in result.trades],
        "equity": [asdict(p) for p in result.equity],
        "analysis": asdict(result.analysis),
    }


def encode_result(result: BacktestResult) -> bytes:
    """Encode *result* as versioned JSON bytes."""
    return json.dumps(result_to_record(result), allow_nan=False).encode("utf-8")


def decode_result(data: bytes) -> dict:
    """Decode bytes produced by :func:`encode_result`.

    Returns:
        The record dict, with ``metrics.profit_factor`` restored to a float.

    Raises:
        SchemaVersionError: If ``schema_version`` is missing or unsupported.
        ValueError: If *data* is not valid JSON.
    """
    record = json.loads(data.decode("utf-8"))
    if not isinstance(record, dict):
        raise ValueError("Encoded result must be a JSON object")

    version = record.get("schema_version")
    if version != SCHEMA_VERSION:
        raise SchemaVersionError(
            f"Unsupported schema_version {version!r} (expected {SCHEMA_VERSION})"
        )

    metrics = record.get("metrics", {})
    pf = metrics.get("profit_factor")
    if isinstance(pf, str):
        if pf not in _NON_FINITE:
            raise ValueError(f"Invalid profit_factor {pf!r}")
        metrics["profit_factor"] = _NON_FINITE[pf]
    return record
