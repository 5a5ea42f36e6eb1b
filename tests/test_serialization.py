"""Tests for versioned backtest result encoding."""

import json
import math

import pytest

from tradecaller.backtest.engine import run_backtest
from tradecaller.backtest.models import BacktestConfig
from tradecaller.backtest.serialization import (
    SCHEMA_VERSION,
    SchemaVersionError,
    decode_result,
    encode_result,
)
from tradecaller.backtest.strategies import RSI_OVERSOLD_LONG
from tradecaller.technical.models import Candle


def _make_candle(i, o, h, l, c, vol=1000):
    return Candle(timestamp=i * 14_400, open=o, high=h, low=l, close=c, volume=vol)


def _winning_result():
    candles = [
        _make_candle(i, 100 - i + 0.5, 100 - i + 0.5, 100 - i - 0.5, 100 - i)
        for i in range(15)
    ]
    candles.append(_make_candle(15, 86, 95, 85, 94))
    return run_backtest(BacktestConfig(symbol="SOL", candles=candles, strategy=RSI_OVERSOLD_LONG))


class TestEncode:
    def test_record_layout(self):
        record = json.loads(encode_result(_winning_result()))
        assert record["schema_version"] == SCHEMA_VERSION == 1
        assert record["config"]["symbol"] == "SOL"
        assert record["config"]["strategy"] == "RSI Oversold Long"
        assert record["config"]["candle_count"] == 16
        assert record["config"]["start"] == 0
        assert record["config"]["end"] == 15 * 14_400
        assert record["config"]["stop_loss"] == {"type": "FIXED_PERCENT", "value": 5}
        assert len(record["trades"]) == 1
        assert record["trades"][0]["indicators"]["rsi"] == 0.0
        assert len(record["equity"]) == 16

    def test_infinite_profit_factor_is_strict_json(self):
        data = encode_result(_winning_result())
        assert b"Infinity" not in data
        assert json.loads(data)["metrics"]["profit_factor"] == "inf"

    def test_empty_result(self):
        result = run_backtest(BacktestConfig(symbol="SOL", candles=(), strategy=RSI_OVERSOLD_LONG))
        record = json.loads(encode_result(result))
        assert record["config"]["start"] is None
        assert record["trades"] == []
        assert record["metrics"]["profit_factor"] == 0.0


class TestDecode:
    def test_restores_profit_factor(self):
        record = decode_result(encode_result(_winning_result()))
        assert math.isinf(record["metrics"]["profit_factor"])
        assert record["metrics"]["total_trades"] == 1
        assert record["trades"][0]["exit_reason"] == "TAKE_PROFIT"

    def test_wrong_version(self):
        with pytest.raises(SchemaVersionError, match="Unsupported schema_version 2"):
            decode_result(json.dumps({"schema_version": 2}).encode())

    def test_missing_version(self):
        with pytest.raises(SchemaVersionError):
            decode_result(b"{}")

    def test_not_an_object(self):
        with pytest.raises(ValueError, match="JSON object"):
            decode_result(b"[1, 2, 3]")

    def test_invalid_json(self):
        with pytest.raises(ValueError):
            decode_result(b"not json")

    def test_unknown_non_finite_marker(self):
        data = json.dumps({"schema_version": 1, "metrics": {"profit_factor": "huge"}}).encode()
        with pytest.raises(ValueError, match="Invalid profit_factor"):
            decode_result(data)
