"""Tests for the strategy schema, condition interpreter and catalog."""

import math

import pytest

from tradecaller.backtest.conditions import build_snapshots, evaluate_condition
from tradecaller.backtest.models import (
    IndicatorSnapshot,
    MACDCross,
    MACDVersusSignal,
    RSIThreshold,
    SignalRule,
    StopLossRule,
    Strategy,
    StrategyDefinitionError,
    TakeProfitRule,
    TrendIs,
    VolumeRatioAbove,
)
from tradecaller.backtest.strategies import (
    ALL_STRATEGIES,
    get_strategy,
    list_strategies,
)
from tradecaller.technical.indicators import calculate_macd, calculate_rsi
from tradecaller.technical.models import Candle
from tradecaller.technical.trend import detect_trend


def _make_candle(ts, o, h, l, c, vol=1000):
    return Candle(timestamp=ts, open=o, high=h, low=l, close=c, volume=vol)


def _wave_candles(n):
    candles = []
    for i in range(n):
        c = 100 + 12 * math.sin(2 * math.pi * i / 23) + 0.1 * i
        candles.append(_make_candle(i * 14_400, c, c + 1, c - 1, c, 1000 + 50 * (i % 7)))
    return candles


# ── Conditions ───────────────────────────────────────────────────────────


class TestConditions:
    def test_rsi_threshold(self):
        snap = IndicatorSnapshot(rsi=25)
        assert evaluate_condition(RSIThreshold("<", 30), snap)
        assert not evaluate_condition(RSIThreshold(">", 30), snap)

    def test_macd_versus_signal(self):
        snap = IndicatorSnapshot(macd=0.5, macd_signal=0.2)
        assert evaluate_condition(MACDVersusSignal(">"), snap)
        assert not evaluate_condition(MACDVersusSignal("<"), snap)

    def test_macd_cross(self):
        snap = IndicatorSnapshot(macd_crossover="BULLISH_CROSS")
        assert evaluate_condition(MACDCross("ABOVE"), snap)
        assert not evaluate_condition(MACDCross("BELOW"), snap)
        assert not evaluate_condition(MACDCross("ABOVE"), IndicatorSnapshot())

    def test_trend_and_volume(self):
        snap = IndicatorSnapshot(trend="UP", volume_ratio=1.6)
        assert evaluate_condition(TrendIs("UP"), snap)
        assert not evaluate_condition(TrendIs("DOWN"), snap)
        assert evaluate_condition(VolumeRatioAbove(1.5), snap)

    def test_sentinel_snapshot_fails_entry_conditions(self):
        snap = IndicatorSnapshot()
        assert not evaluate_condition(RSIThreshold("<", 30), snap)
        assert not evaluate_condition(RSIThreshold(">", 70), snap)
        assert not evaluate_condition(MACDVersusSignal(">"), snap)

    def test_unknown_condition(self):
        with pytest.raises(StrategyDefinitionError, match="Unsupported condition"):
            evaluate_condition(object(), IndicatorSnapshot())

    @pytest.mark.parametrize("factory", [
        lambda: RSIThreshold("=", 30),
        lambda: RSIThreshold("<", 150),
        lambda: MACDVersusSignal("above"),
        lambda: MACDCross("UP"),
        lambda: TrendIs("LEFT"),
        lambda: VolumeRatioAbove(0),
    ])
    def test_malformed_conditions_rejected(self, factory):
        with pytest.raises(StrategyDefinitionError):
            factory()


# ── Snapshots ────────────────────────────────────────────────────────────


class TestBuildSnapshots:
    def test_empty(self):
        assert build_snapshots([]) == []

    def test_warmup_sentinels(self):
        snaps = build_snapshots(_wave_candles(40))
        assert len(snaps) == 40
        assert all(s.rsi == 50.0 for s in snaps[:14])
        assert all(s.macd == 0.0 and s.macd_crossover is None for s in snaps[:34])
        assert all(s.trend == "SIDEWAYS" for s in snaps[:19])

    def test_matches_prefix_recomputation(self):
        candles = _wave_candles(90)
        closes = [c.close for c in candles]
        snaps = build_snapshots(candles)

        for i in range(len(candles)):
            prefix = closes[: i + 1]
            assert snaps[i].close == closes[i]
            assert snaps[i].rsi == calculate_rsi(prefix).value
            macd = calculate_macd(prefix)
            assert snaps[i].macd == macd.macd
            assert snaps[i].macd_signal == macd.signal
            assert snaps[i].macd_histogram == macd.histogram
            assert snaps[i].macd_crossover == macd.crossover
            trend = detect_trend(candles[: i + 1])
            assert snaps[i].trend == trend.direction
            assert snaps[i].trend_strength == trend.strength


# ── Strategy schema ──────────────────────────────────────────────────────


class TestStrategySchema:
    def test_requires_entry_rule(self):
        with pytest.raises(StrategyDefinitionError, match="no entry rules"):
            Strategy(
                name="Exit only",
                description="",
                signals=(SignalRule("RSI", "EXIT", RSIThreshold(">", 70), 50),),
            )

    def test_requires_rules(self):
        with pytest.raises(StrategyDefinitionError, match="no signal rules"):
            Strategy(name="Empty", description="", signals=())

    def test_rule_validation(self):
        with pytest.raises(StrategyDefinitionError, match="weight"):
            SignalRule("RSI", "LONG", RSIThreshold("<", 30), 0)
        with pytest.raises(StrategyDefinitionError, match="action"):
            SignalRule("RSI", "BUY", RSIThreshold("<", 30), 50)
        with pytest.raises(StrategyDefinitionError, match="condition"):
            SignalRule("RSI", "LONG", "RSI < 30", 50)

    def test_risk_rule_validation(self):
        with pytest.raises(StrategyDefinitionError):
            StopLossRule("PERCENT", 5)
        with pytest.raises(StrategyDefinitionError):
            TakeProfitRule("FIXED_PERCENT", -1)

    def test_signals_list_becomes_tuple(self):
        strategy = Strategy(
            name="List",
            description="",
            signals=[SignalRule("RSI", "LONG", RSIThreshold("<", 30), 60)],
        )
        assert isinstance(strategy.signals, tuple)
        assert strategy.exit_rules == ()


# ── Catalog ──────────────────────────────────────────────────────────────


class TestCatalog:
    def test_eight_strategies(self):
        assert len(ALL_STRATEGIES) == 8
        assert list_strategies() == [
            "RSI Oversold Long",
            "RSI Extreme Oversold",
            "RSI Overbought Short",
            "RSI + Trend Alignment",
            "MACD Crossover",
            "RSI + MACD Combined",
            "Conservative RSI",
            "Aggressive RSI",
        ]

    def test_every_strategy_can_enter_and_exit(self):
        for strategy in ALL_STRATEGIES:
            assert strategy.entry_rules
            assert strategy.exit_rules

    def test_lookup(self):
        strategy = get_strategy("RSI Oversold Long")
        assert strategy.stop_loss == StopLossRule("FIXED_PERCENT", 5)
        assert strategy.take_profit == TakeProfitRule("FIXED_PERCENT", 10)
        assert strategy.entry_threshold == 50

    def test_unknown_strategy(self):
        with pytest.raises(KeyError, match="Available: RSI Oversold Long"):
            get_strategy("Moon Shot")

    def test_trend_aligned_needs_both_rules(self):
        strategy = get_strategy("RSI + Trend Alignment")
        weights = sum(r.weight for r in strategy.entry_rules)
        assert max(r.weight for r in strategy.entry_rules) < strategy.entry_threshold
        assert weights >= strategy.entry_threshold
