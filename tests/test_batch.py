"""Tests for the batch runner and its report aggregations."""

import logging
import math

from tradecaller.backtest.batch import BatchFailure, BatchReport, run_batch
from tradecaller.backtest.engine import BacktestEngine
from tradecaller.backtest.models import (
    BacktestConfig,
    BacktestMetrics,
    BacktestResult,
    StrategyAnalysis,
)
from tradecaller.backtest.strategies import MACD_CROSSOVER, RSI_OVERSOLD_LONG
from tradecaller.config import Config
from tradecaller.technical.models import Candle


def _make_candle(ts, o, h, l, c, vol=1000):
    return Candle(timestamp=ts, open=o, high=h, low=l, close=c, volume=vol)


def _wave_candles(n, phase=0.0):
    candles = []
    for i in range(n):
        c = 100 + 10 * math.sin(2 * math.pi * i / 25 + phase)
        candles.append(_make_candle(i * 14_400, c, c * 1.01, c * 0.99, c))
    return candles


def _result(symbol, strategy, win_rate, total_return):
    return BacktestResult(
        config=BacktestConfig(symbol=symbol, candles=(), strategy=strategy),
        trades=(),
        metrics=BacktestMetrics(win_rate=win_rate, total_return=total_return),
        equity=(),
        analysis=StrategyAnalysis(),
        timestamp="",
    )


# ── Runner ───────────────────────────────────────────────────────────────


class TestRunBatch:
    def test_every_pair_runs(self):
        report = run_batch(
            {"SOL": _wave_candles(120), "BONK": _wave_candles(120, phase=1.0)},
            strategies=[RSI_OVERSOLD_LONG, MACD_CROSSOVER],
        )
        assert report.total_runs == 4
        assert report.failures == []
        pairs = {(r.config.symbol, r.config.strategy.name) for r in report.results}
        assert pairs == {
            ("SOL", "RSI Oversold Long"), ("SOL", "MACD Crossover"),
            ("BONK", "RSI Oversold Long"), ("BONK", "MACD Crossover"),
        }

    def test_defaults_to_full_catalog(self):
        report = run_batch({"SOL": _wave_candles(60)})
        assert len(report.results) == 8

    def test_failure_is_isolated(self, monkeypatch, caplog):
        original = BacktestEngine.run

        def flaky(self, config, snapshots=None):
            if config.symbol == "BAD":
                raise RuntimeError("boom")
            return original(self, config, snapshots)

        monkeypatch.setattr(BacktestEngine, "run", flaky)

        with caplog.at_level(logging.ERROR, logger="tradecaller.batch"):
            report = run_batch(
                {"BAD": _wave_candles(60), "SOL": _wave_candles(60)},
                strategies=[RSI_OVERSOLD_LONG, MACD_CROSSOVER],
            )

        assert len(report.results) == 2
        assert report.failures == [
            BatchFailure("BAD", "RSI Oversold Long", "boom"),
            BatchFailure("BAD", "MACD Crossover", "boom"),
        ]
        assert "Backtest BAD / RSI Oversold Long failed: boom" in caplog.text

    def test_bad_candles_fail_every_strategy(self):
        report = run_batch({"BAD": [None]}, strategies=[RSI_OVERSOLD_LONG, MACD_CROSSOVER])
        assert report.results == []
        assert [f.strategy for f in report.failures] == ["RSI Oversold Long", "MACD Crossover"]

    def test_settings_flow_into_configs(self):
        report = run_batch(
            {"SOL": _wave_candles(40)},
            strategies=[RSI_OVERSOLD_LONG],
            timeframe="1D",
            settings=Config(initial_capital=5_000, position_size_pct=20),
        )
        cfg = report.results[0].config
        assert cfg.timeframe == "1D"
        assert cfg.initial_capital == 5_000
        assert cfg.position_size_pct == 20


# ── Report ───────────────────────────────────────────────────────────────


class TestBatchReport:
    def _report(self):
        return BatchReport(results=[
            _result("SOL", RSI_OVERSOLD_LONG, 60, 100),
            _result("SOL", MACD_CROSSOVER, 40, 300),
            _result("BONK", RSI_OVERSOLD_LONG, 60, -50),
            _result("BONK", MACD_CROSSOVER, 70, 20),
        ])

    def test_leaderboards(self):
        report = self._report()
        top = report.top_by_win_rate(2)
        assert [(r.config.symbol, r.metrics.win_rate) for r in top] == [("BONK", 70), ("SOL", 60)]
        assert report.top_by_return(1)[0].metrics.total_return == 300

    def test_best_per_token(self):
        best = self._report().best_per_token()
        assert best["SOL"].config.strategy.name == "RSI Oversold Long"
        assert best["BONK"].config.strategy.name == "MACD Crossover"

    def test_strategy_averages(self):
        averages = self._report().strategy_averages()
        assert [a.name for a in averages] == ["RSI Oversold Long", "MACD Crossover"]
        assert averages[0].avg_win_rate == 60
        assert averages[0].avg_return == 25
        assert averages[1].avg_return == 160
        assert averages[1].runs == 2

    def test_empty(self):
        report = BatchReport()
        assert report.total_runs == 0
        assert report.top_by_win_rate() == []
        assert report.strategy_averages() == []
