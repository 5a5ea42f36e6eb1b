"""Tests for the backtest engine — replay, exits, equity curve and metrics.

Scenarios use a 15-candle decline (RSI pinned at 0 on the 15th close) so
RSI Oversold Long enters at a known price, followed by hand-built candles
that hit the stop or the target.
"""

import math

import pytest

from tradecaller.backtest.conditions import build_snapshots
from tradecaller.backtest.engine import BacktestEngine, run_backtest
from tradecaller.backtest.models import (
    BacktestConfig,
    BacktestConfigError,
    BacktestMetrics,
    RSIThreshold,
    SignalRule,
    StopLossRule,
    Strategy,
    TakeProfitRule,
)
from tradecaller.backtest.strategies import ALL_STRATEGIES, RSI_OVERSOLD_LONG
from tradecaller.config import Config
from tradecaller.technical.models import Candle


# ── Helpers ──────────────────────────────────────────────────────────────

H4 = 14_400


def _make_candle(i, o, h, l, c, vol=1000):
    return Candle(timestamp=i * H4, open=o, high=h, low=l, close=c, volume=vol)


def _decline():
    """Closes 100, 99, ... 86: every delta is a loss, RSI(14) = 0 at index 14."""
    return [
        _make_candle(i, 100 - i + 0.5, 100 - i + 0.5, 100 - i - 0.5, 100 - i)
        for i in range(15)
    ]


def _config(candles, strategy=RSI_OVERSOLD_LONG, **kwargs):
    return BacktestConfig(symbol="SOL", candles=tuple(candles), strategy=strategy, **kwargs)


def _wave_candles(n):
    candles = []
    for i in range(n):
        c = 100 + 15 * math.sin(2 * math.pi * i / 29) + 4 * math.sin(i / 3.0)
        candles.append(_make_candle(i, c, c * 1.02, c * 0.98, c, 1000 + 40 * (i % 5)))
    return candles


# ── Scenarios ────────────────────────────────────────────────────────────


class TestOversoldLongScenarios:
    def test_take_profit(self):
        # Entry at 86; target 94.6, stop 81.7
        candles = _decline() + [_make_candle(15, 86, 95, 85, 94)]
        result = run_backtest(_config(candles))

        assert len(result.trades) == 1
        trade = result.trades[0]
        assert trade.entry_price == 86
        assert trade.entry_time == 14 * H4
        assert trade.indicators.rsi == 0.0
        assert trade.exit_reason == "TAKE_PROFIT"
        assert trade.exit_price == pytest.approx(94.6)
        assert trade.status == "CLOSED_WIN"
        assert trade.pnl == pytest.approx(100.0)
        assert trade.pnl_percent == pytest.approx(10.0)

        m = result.metrics
        assert m.total_trades == 1
        assert m.win_rate == 100.0
        assert m.total_return == pytest.approx(100.0)
        assert m.total_return_percent == pytest.approx(1.0)
        assert math.isinf(m.profit_factor)
        assert m.avg_trade_duration_hours == pytest.approx(4.0)
        assert m.avg_risk_reward_ratio == pytest.approx(2.0)

    def test_stop_loss_then_reentry(self):
        candles = _decline() + [_make_candle(15, 86, 87, 80, 81)]
        result = run_backtest(_config(candles))

        first = result.trades[0]
        assert first.exit_reason == "STOP_LOSS"
        assert first.exit_price == pytest.approx(81.7)
        assert first.status == "CLOSED_LOSS"
        assert first.pnl == pytest.approx(-50.0)

        # RSI is still 0 at the same close, so a new trade opens and is
        # closed flat at the end of the data.
        second = result.trades[1]
        assert second.entry_time == 15 * H4
        assert second.capital == pytest.approx(995.0)
        assert second.exit_reason == "END_OF_PERIOD"
        assert second.status == "CLOSED_BREAKEVEN"
        assert result.metrics.breakeven_trades == 1

    def test_stop_wins_when_both_breached(self):
        candles = _decline() + [_make_candle(15, 86, 95, 80, 94)]
        result = run_backtest(_config(candles))
        assert result.trades[0].exit_reason == "STOP_LOSS"
        assert result.trades[0].exit_price == pytest.approx(81.7)

    def test_exit_signal_at_close(self):
        # Rebound lifts RSI to ~27.8, past the EXIT rule's 20
        strategy = Strategy(
            name="Wide target",
            description="",
            signals=(
                SignalRule("RSI", "LONG", RSIThreshold("<", 30), 60),
                SignalRule("RSI", "EXIT", RSIThreshold(">", 20), 50),
            ),
            stop_loss=StopLossRule("FIXED_PERCENT", 20),
            take_profit=TakeProfitRule("FIXED_PERCENT", 50),
        )
        candles = _decline() + [_make_candle(15, 86, 92, 85, 91)]
        result = run_backtest(_config(candles, strategy))
        assert result.trades[0].exit_reason == "SIGNAL"
        assert result.trades[0].exit_price == 91

    def test_trailing_take_profit(self):
        strategy = Strategy(
            name="Trailing",
            description="",
            signals=(SignalRule("RSI", "LONG", RSIThreshold("<", 30), 60),),
            stop_loss=StopLossRule("FIXED_PERCENT", 5),
            take_profit=TakeProfitRule("TRAILING", 3),
        )
        candles = _decline() + [
            _make_candle(15, 86, 100, 86, 99),
            _make_candle(16, 99, 99.5, 95, 96),
        ]
        result = run_backtest(_config(candles, strategy))
        trade = result.trades[0]
        assert trade.take_profit is None
        assert trade.initial_stop_loss == pytest.approx(81.7)
        # Stop trails to 97 after the 100 high, then the next candle hits it
        assert trade.exit_reason == "TAKE_PROFIT"
        assert trade.exit_price == pytest.approx(97.0)
        assert trade.status == "CLOSED_WIN"


# ── Invariants ───────────────────────────────────────────────────────────


class TestEquityCurve:
    @pytest.mark.parametrize("strategy", ALL_STRATEGIES, ids=lambda s: s.name)
    def test_drawdown_invariant(self, strategy):
        result = run_backtest(_config(_wave_candles(150), strategy))
        assert len(result.equity) == 150

        prev_peak = 10_000.0
        for point in result.equity:
            assert point.peak >= prev_peak
            assert point.drawdown == pytest.approx(max(0.0, point.peak - point.equity))
            assert point.drawdown >= 0
            prev_peak = point.peak

    def test_closed_trades_only(self):
        result = run_backtest(_config(_wave_candles(150)))
        assert all(not t.is_open for t in result.trades)
        assert [t.id for t in result.trades] == [
            f"trade_{n}" for n in range(1, len(result.trades) + 1)
        ]

    def test_final_equity_matches_return(self):
        result = run_backtest(_config(_wave_candles(150)))
        assert result.metrics.total_return == pytest.approx(
            sum(t.pnl for t in result.trades)
        )


class TestEdgeCases:
    def test_zero_trades(self):
        candles = [_make_candle(i, 100, 101, 99, 100) for i in range(60)]
        result = run_backtest(_config(candles))
        assert result.trades == ()
        assert len(result.equity) == 60
        assert result.metrics == BacktestMetrics()
        assert not any(
            math.isnan(v) for v in vars(result.metrics).values() if isinstance(v, float)
        )

    def test_empty_candles(self):
        result = run_backtest(_config([]))
        assert result.trades == ()
        assert result.equity == ()
        assert result.metrics.total_trades == 0
        assert result.metrics.sharpe_ratio == 0.0

    def test_snapshot_length_mismatch(self):
        candles = _decline()
        with pytest.raises(ValueError, match="snapshots"):
            BacktestEngine().run(_config(candles), build_snapshots(candles[:-1]))

    def test_invalid_config(self):
        with pytest.raises(BacktestConfigError, match="initial_capital"):
            _config(_decline(), initial_capital=0)
        with pytest.raises(BacktestConfigError, match="position_size_pct"):
            _config(_decline(), position_size_pct=120)

    def test_idempotent(self):
        config = _config(_wave_candles(120))
        engine = BacktestEngine()
        first, second = engine.run(config), engine.run(config)
        assert first.metrics == second.metrics
        assert first.trades == second.trades
        assert first.equity == second.equity

    def test_breakeven_threshold_from_settings(self):
        candles = _decline() + [_make_candle(15, 86, 87, 85.5, 86.5)]
        # +0.58 % on the position: a win by default, breakeven at a 1 % threshold
        default = run_backtest(_config(candles))
        wide = run_backtest(_config(candles), Config(breakeven_threshold_pct=1.0))
        assert default.trades[0].status == "CLOSED_WIN"
        assert wide.trades[0].status == "CLOSED_BREAKEVEN"
