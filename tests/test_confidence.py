"""Tests for tradecaller.signals.confidence — factor scoring and win-rate providers."""

import math

import pytest

from tradecaller.backtest.models import IndicatorSnapshot, Trade
from tradecaller.signals.confidence import (
    HistoricalWinRateProvider,
    SetupWinRateTable,
    TradeHistoryWinRateProvider,
    calculate_confidence_breakdown,
    rsi_bucket,
)
from tradecaller.signals.models import HistoricalStats
from tradecaller.technical.models import (
    MACDSnapshot,
    RSISnapshot,
    TechnicalAnalysis,
    TrendSnapshot,
)


NEUTRAL = TechnicalAnalysis()


def _names(breakdown):
    return [f.name for f in breakdown.factors]


# ── Breakdown ────────────────────────────────────────────────────────────


class TestConfidenceBreakdown:
    def test_no_factors_gives_base(self):
        b = calculate_confidence_breakdown(NEUTRAL, NEUTRAL, 0)
        assert b.total_confidence == 50
        assert b.factors == ()
        assert b.reasoning == "No confidence factors triggered; base confidence applies."

    def test_extreme_oversold_with_alignment(self):
        a4h = TechnicalAnalysis(rsi=RSISnapshot(18, "OVERSOLD"))
        a1d = TechnicalAnalysis(rsi=RSISnapshot(32, "OVERSOLD"))
        b = calculate_confidence_breakdown(a4h, a1d, 0)
        assert _names(b) == ["Extreme Oversold RSI", "RSI Alignment"]
        assert b.total_confidence == 85
        assert b.reasoning == (
            "Confidence based on: Extreme Oversold RSI, RSI Alignment. "
            "Total 2 factors analyzed."
        )

    def test_neutral_daily_rsi_below_40_is_partial_alignment(self):
        a4h = TechnicalAnalysis(rsi=RSISnapshot(18, "OVERSOLD"))
        a1d = TechnicalAnalysis(rsi=RSISnapshot(32, "NEUTRAL"))
        b = calculate_confidence_breakdown(a4h, a1d, 0)
        assert _names(b) == ["Extreme Oversold RSI", "Partial RSI Alignment"]
        assert [f.contribution for f in b.factors] == [20, 2.5]
        assert b.total_confidence == 73

    def test_clamped_to_maximum(self):
        trend = TrendSnapshot(direction="UP", strength=90)
        macd = MACDSnapshot(histogram=1, trend="BULLISH", crossover="BULLISH_CROSS")
        a4h = TechnicalAnalysis(rsi=RSISnapshot(15, "OVERSOLD"), macd=macd, trend=trend)
        a1d = TechnicalAnalysis(rsi=RSISnapshot(25, "OVERSOLD"), macd=macd, trend=trend)
        b = calculate_confidence_breakdown(
            a4h, a1d, 80,
            fundamental_score=60,
            historical=HistoricalStats(win_rate=70, sample_size=40),
        )
        assert b.total_confidence == 95

    def test_factors_sorted_by_contribution(self):
        a4h = TechnicalAnalysis(
            rsi=RSISnapshot(28, "OVERSOLD"),
            macd=MACDSnapshot(trend="BEARISH", crossover="BEARISH_CROSS"),
            trend=TrendSnapshot(direction="DOWN", strength=70),
        )
        a1d = TechnicalAnalysis(
            macd=MACDSnapshot(trend="BEARISH"),
            trend=TrendSnapshot(direction="DOWN", strength=50),
        )
        b = calculate_confidence_breakdown(a4h, a1d, -40)
        contributions = [f.contribution for f in b.factors]
        assert contributions == sorted(contributions, reverse=True)
        assert _names(b)[0] == "Trend Alignment"

    def test_rounds_half_up(self):
        a4h = TechnicalAnalysis(trend=TrendSnapshot(direction="SIDEWAYS", strength=81.25))
        b = calculate_confidence_breakdown(a4h, NEUTRAL, 0)
        # Strong Trend: 81.25 % of 8 = 6.5 → 56.5 rounds to 57
        assert _names(b) == ["Strong Trend"]
        assert b.total_confidence == 57

    def test_partial_rsi_alignment(self):
        a4h = TechnicalAnalysis(rsi=RSISnapshot(28, "OVERSOLD"))
        a1d = TechnicalAnalysis(rsi=RSISnapshot(38, "NEUTRAL"))
        b = calculate_confidence_breakdown(a4h, a1d, 0)
        assert _names(b) == ["Oversold RSI", "Partial RSI Alignment"]
        assert b.total_confidence == 60

    def test_sentiment_factor(self):
        b = calculate_confidence_breakdown(NEUTRAL, NEUTRAL, -30)
        assert _names(b) == ["Market Sentiment"]
        assert b.factors[0].category == "SENTIMENT"
        assert b.factors[0].contribution == pytest.approx(6.0)
        assert "Bearish" in b.factors[0].description

    def test_weak_sentiment_ignored(self):
        assert calculate_confidence_breakdown(NEUTRAL, NEUTRAL, 20).factors == ()

    def test_negative_fundamentals_still_add_weight(self):
        b = calculate_confidence_breakdown(NEUTRAL, NEUTRAL, 0, fundamental_score=-40)
        assert _names(b) == ["Fundamental Analysis"]
        assert b.factors[0].contribution == pytest.approx(6.0)
        assert b.factors[0].description == "Negative fundamentals (-40)"

    def test_historical_requires_sample_of_ten(self):
        small = calculate_confidence_breakdown(
            NEUTRAL, NEUTRAL, 0, historical=HistoricalStats(80, 9),
        )
        assert small.factors == ()
        assert small.similar_setups == 9
        assert small.historical_win_rate == 80

        enough = calculate_confidence_breakdown(
            NEUTRAL, NEUTRAL, 0, historical=HistoricalStats(50, 10),
        )
        assert _names(enough) == ["Historical Win Rate"]
        assert enough.total_confidence == 56

    def test_out_of_range_inputs_are_clamped(self):
        b = calculate_confidence_breakdown(
            NEUTRAL, NEUTRAL, 500,
            fundamental_score=-1000,
            historical=HistoricalStats(250, 100),
        )
        assert 25 <= b.total_confidence <= 95
        for f in b.factors:
            assert 0 <= f.value <= 100

    def test_nan_sentiment_is_ignored(self):
        b = calculate_confidence_breakdown(NEUTRAL, NEUTRAL, math.nan)
        assert b.total_confidence == 50

    def test_deterministic(self):
        a4h = TechnicalAnalysis(rsi=RSISnapshot(18, "OVERSOLD"))
        first = calculate_confidence_breakdown(a4h, NEUTRAL, -25, fundamental_score=12)
        second = calculate_confidence_breakdown(a4h, NEUTRAL, -25, fundamental_score=12)
        assert first == second


# ── Win-rate providers ───────────────────────────────────────────────────


def _closed_trade(n, side, rsi, trend, win):
    trade = Trade(
        id=f"trade_{n}",
        entry_time=0,
        entry_price=100.0,
        side=side,
        size=10.0,
        capital=1000.0,
        stop_loss=95.0 if side == "LONG" else 105.0,
        take_profit=110.0 if side == "LONG" else 90.0,
        indicators=IndicatorSnapshot(rsi=rsi, trend=trend),
    )
    move = 10 if win else -5
    exit_price = 100 + move if side == "LONG" else 100 - move
    trade.close(3600, exit_price, "TAKE_PROFIT" if win else "STOP_LOSS")
    return trade


class TestWinRateProviders:
    def test_rsi_buckets(self):
        assert rsi_bucket("LONG", 18) == "extreme"
        assert rsi_bucket("LONG", 28) == "strong"
        assert rsi_bucket("LONG", 38) == "mild"
        assert rsi_bucket("LONG", 55) == "none"
        assert rsi_bucket("SHORT", 85) == "extreme"
        assert rsi_bucket("SHORT", 62) == "mild"

    def test_setup_table(self):
        table = SetupWinRateTable()
        assert isinstance(table, HistoricalWinRateProvider)

        stats = table.lookup("LONG", 18, "UP", "4H")
        assert stats == HistoricalStats(win_rate=80, sample_size=50)
        assert table.lookup("SHORT", 50, "UP", "4H").win_rate == 50
        assert table.lookup("HOLD", 50, "UP", "4H") is None

    def test_trade_history(self):
        trades = [
            _closed_trade(1, "LONG", 25, "UP", True),
            _closed_trade(2, "LONG", 28, "UP", True),
            _closed_trade(3, "LONG", 22, "SIDEWAYS", False),
            _closed_trade(4, "LONG", 26, "DOWN", False),
            _closed_trade(5, "SHORT", 75, "DOWN", True),
        ]
        provider = TradeHistoryWinRateProvider(trades)
        assert isinstance(provider, HistoricalWinRateProvider)

        aligned = provider.lookup("LONG", 27, "UP", "4H")
        assert aligned == HistoricalStats(win_rate=100.0, sample_size=2)

        unaligned = provider.lookup("LONG", 29, "DOWN", "4H")
        assert unaligned == HistoricalStats(win_rate=0.0, sample_size=2)

    def test_trade_history_misses(self):
        provider = TradeHistoryWinRateProvider(
            [_closed_trade(1, "LONG", 25, "UP", True)], timeframe="4H",
        )
        assert provider.lookup("LONG", 25, "UP", "1D") is None
        assert provider.lookup("SHORT", 75, "DOWN", "4H") is None
