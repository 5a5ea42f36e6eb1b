"""Backtest engine — replays historical candles through a declarative strategy.

Iterates candle data chronologically, evaluating entry/exit rules and
simulating trades with virtual capital.  No real orders are placed.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from tradecaller.backtest.analysis import analyze_strategy
from tradecaller.backtest.conditions import build_snapshots, evaluate_condition
from tradecaller.backtest.models import (
    BacktestConfig,
    BacktestResult,
    EquityPoint,
    ExitReason,
    IndicatorSnapshot,
    Strategy,
    Trade,
)
from tradecaller.backtest.stats import calculate_metrics
from tradecaller.config import DEFAULT_CONFIG, Config
from tradecaller.risk.drawdown import DrawdownTracker
from tradecaller.risk.position_sizer import calculate_position
from tradecaller.risk.sl_tp import calculate_stop_loss, calculate_take_profit
from tradecaller.risk.trailing_stop import TrailingStop
from tradecaller.technical.models import Candle
from tradecaller.technical.sr_levels import calculate_support_resistance

logger = logging.getLogger("tradecaller.backtest")


class BacktestEngine:
    """Simulates a strategy on historical candle data.

    Args:
        settings: Application configuration (breakeven threshold, Sharpe
            basis and annualization).
    """

    def __init__(self, settings: Optional[Config] = None) -> None:
        self._settings = settings or DEFAULT_CONFIG

    # ── Public API ───────────────────────────────────────────────────────

    def run(
        self,
        config: BacktestConfig,
        snapshots: Optional[list[IndicatorSnapshot]] = None,
    ) -> BacktestResult:
        """Execute a full backtest.

        Per candle: an open trade is first checked against the stop and
        target using the candle's high/low, then against the exit rules at
        the close.  With no trade open, entry rules are scored at the close.
        Finally an equity point (capital plus unrealised P&L) is recorded.

        Args:
            config: Symbol, candles, strategy and sizing.
            snapshots: Precomputed per-candle indicators for
                ``config.candles``; computed here when omitted.

        Returns:
            ``BacktestResult``.  Zero trades and empty candle lists are
            valid results.
        """
        candles = list(config.candles)
        strategy = config.strategy
        if snapshots is None:
            snapshots = build_snapshots(candles)
        if len(snapshots) != len(candles):
            raise ValueError(
                f"Expected {len(candles)} snapshots, got {len(snapshots)}"
            )

        capital = config.initial_capital
        tracker = DrawdownTracker(capital)
        open_trade: Optional[Trade] = None
        trail: Optional[TrailingStop] = None
        closed_trades: list[Trade] = []
        equity_curve: list[EquityPoint] = []

        for i, candle in enumerate(candles):
            snapshot = snapshots[i]

            # 1. Manage the open trade
            if open_trade is not None:
                exit_ = self._check_exit(open_trade, candle, trail)
                if exit_ is None and self._exit_signal(strategy, snapshot):
                    exit_ = (candle.close, "SIGNAL")

                if exit_ is not None:
                    price, reason = exit_
                    capital += open_trade.close(
                        candle.timestamp, price, reason,
                        self._settings.breakeven_threshold_pct,
                    )
                    closed_trades.append(open_trade)
                    open_trade = None
                    trail = None
                elif trail is not None:
                    trail.update(candle.high, candle.low)
                    open_trade.stop_loss = trail.current_sl

            # 2. Look for a new entry
            if open_trade is None:
                open_trade = self._try_entry(
                    config, candles, i, snapshot, capital, len(closed_trades),
                )
                if open_trade is not None and strategy.take_profit.type == "TRAILING":
                    trail = TrailingStop(
                        open_trade.entry_price,
                        open_trade.stop_loss,
                        open_trade.side,
                        strategy.take_profit.value,
                    )

            # 3. Record equity
            equity = capital
            if open_trade is not None:
                equity += open_trade.unrealized_pnl(candle.close)
            tracker.update(equity)
            equity_curve.append(EquityPoint(
                timestamp=candle.timestamp,
                equity=equity,
                peak=tracker.peak_equity,
                drawdown=tracker.drawdown,
                drawdown_percent=tracker.drawdown_pct,
            ))

        # Close any remaining position at last candle close
        if open_trade is not None:
            last = candles[-1]
            capital += open_trade.close(
                last.timestamp, last.close, "END_OF_PERIOD",
                self._settings.breakeven_threshold_pct,
            )
            closed_trades.append(open_trade)

        metrics = calculate_metrics(
            closed_trades,
            equity_curve,
            initial_capital=config.initial_capital,
            final_capital=capital,
            settings=self._settings,
        )
        analysis = analyze_strategy(closed_trades, metrics, config.timeframe)

        logger.info(
            "Backtest %s / %s: %d trades, win rate %.1f%%, return %.2f%%",
            config.symbol,
            strategy.name,
            metrics.total_trades,
            metrics.win_rate,
            metrics.total_return_percent,
        )

        return BacktestResult(
            config=config,
            trades=tuple(closed_trades),
            metrics=metrics,
            equity=tuple(equity_curve),
            analysis=analysis,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _check_exit(
        trade: Trade,
        candle: Candle,
        trail: Optional[TrailingStop],
    ) -> Optional[tuple[float, ExitReason]]:
        """Check if *candle* triggers a stop or target exit.

        Returns ``(exit_price, reason)`` or ``None``.  When both are hit in
        the same candle, the stop is assumed first (conservative).  A
        trailing stop that has locked in profit exits as TAKE_PROFIT.
        """
        if trade.side == "LONG":
            sl_hit = candle.low <= trade.stop_loss
            tp_hit = trade.take_profit is not None and candle.high >= trade.take_profit
        else:
            sl_hit = candle.high >= trade.stop_loss
            tp_hit = trade.take_profit is not None and candle.low <= trade.take_profit

        if sl_hit:
            if trail is not None and trail.in_profit:
                return trade.stop_loss, "TAKE_PROFIT"
            return trade.stop_loss, "STOP_LOSS"
        if tp_hit:
            return trade.take_profit, "TAKE_PROFIT"
        return None

    @staticmethod
    def _exit_signal(strategy: Strategy, snapshot: IndicatorSnapshot) -> bool:
        return any(
            evaluate_condition(rule.condition, snapshot)
            for rule in strategy.exit_rules
        )

    @staticmethod
    def _score_entry(strategy: Strategy, snapshot: IndicatorSnapshot) -> Optional[str]:
        """Return the side whose matched rule weights reach the threshold.

        Scores are summed per side; a tie between sides opens nothing.
        """
        scores = {"LONG": 0.0, "SHORT": 0.0}
        for rule in strategy.entry_rules:
            if evaluate_condition(rule.condition, snapshot):
                scores[rule.action] += rule.weight

        long_score, short_score = scores["LONG"], scores["SHORT"]
        best = max(long_score, short_score)
        if best < strategy.entry_threshold or long_score == short_score:
            return None
        return "LONG" if long_score > short_score else "SHORT"

    def _try_entry(
        self,
        config: BacktestConfig,
        candles: list[Candle],
        index: int,
        snapshot: IndicatorSnapshot,
        capital: float,
        trade_count: int,
    ) -> Optional[Trade]:
        strategy = config.strategy
        side = self._score_entry(strategy, snapshot)
        if side is None:
            return None

        candle = candles[index]
        entry_price = candle.close
        if entry_price <= 0 or capital <= 0:
            return None

        history = candles[: index + 1]
        levels = None
        if strategy.stop_loss.type == "SUPPORT_LEVEL":
            levels = calculate_support_resistance(history)
        try:
            stop_loss = calculate_stop_loss(
                entry_price,
                side,
                strategy.stop_loss,
                candles=history,
                nearest_support=levels.nearest_support if levels else None,
                nearest_resistance=levels.nearest_resistance if levels else None,
            )
        except ValueError as exc:
            logger.debug("Skipping entry at %d: %s", candle.timestamp, exc)
            return None

        take_profit = calculate_take_profit(
            entry_price, side, stop_loss, strategy.take_profit,
        )
        allocated, units = calculate_position(
            capital, config.position_size_pct, entry_price,
        )

        return Trade(
            id=f"trade_{trade_count + 1}",
            entry_time=candle.timestamp,
            entry_price=entry_price,
            side=side,
            size=units,
            capital=allocated,
            stop_loss=stop_loss,
            take_profit=take_profit,
            indicators=snapshot,
        )


def run_backtest(
    config: BacktestConfig, settings: Optional[Config] = None
) -> BacktestResult:
    """Convenience wrapper: ``BacktestEngine(settings).run(config)``."""
    return BacktestEngine(settings).run(config)
