"""Batch runner — every strategy against every token, one isolated run each.

A failing (token, strategy) pair is logged and recorded as a
``BatchFailure``; the remaining pairs still run.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from tradecaller.backtest.conditions import build_snapshots
from tradecaller.backtest.engine import BacktestEngine
from tradecaller.backtest.models import BacktestConfig, BacktestResult, Strategy
from tradecaller.backtest.strategies import ALL_STRATEGIES
from tradecaller.config import DEFAULT_CONFIG, Config
from tradecaller.technical.models import Candle

logger = logging.getLogger("tradecaller.batch")


@dataclass(frozen=True)
class BatchFailure:
    symbol: str
    strategy: str
    error: str


@dataclass(frozen=True)
class StrategyAverage:
    name: str
    avg_win_rate: float
    avg_return: float
    runs: int


@dataclass
class BatchReport:
    """Collected results of a batch run."""

    results: list[BacktestResult] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)

    @property
    def total_runs(self) -> int:
        return len(self.results) + len(self.failures)

    def top_by_win_rate(self, n: int = 5) -> list[BacktestResult]:
        return sorted(
            self.results, key=lambda r: r.metrics.win_rate, reverse=True
        )[:n]

    def top_by_return(self, n: int = 5) -> list[BacktestResult]:
        return sorted(
            self.results, key=lambda r: r.metrics.total_return, reverse=True
        )[:n]

    def best_per_token(self) -> dict[str, BacktestResult]:
        """Highest win-rate result per symbol; the first run wins a tie."""
        best: dict[str, BacktestResult] = {}
        for result in self.results:
            symbol = result.config.symbol
            current = best.get(symbol)
            if current is None or result.metrics.win_rate > current.metrics.win_rate:
                best[symbol] = result
        return best

    def strategy_averages(self) -> list[StrategyAverage]:
        """Mean win rate and return per strategy, best win rate first."""
        grouped: dict[str, list[BacktestResult]] = {}
        for result in self.results:
            grouped.setdefault(result.config.strategy.name, []).append(result)

        averages = [
            StrategyAverage(
                name=name,
                avg_win_rate=sum(r.metrics.win_rate for r in runs) / len(runs),
                avg_return=sum(r.metrics.total_return for r in runs) / len(runs),
                runs=len(runs),
            )
            for name, runs in grouped.items()
        ]
        averages.sort(key=lambda a: a.avg_win_rate, reverse=True)
        return averages


def run_batch(
    candles_by_symbol: dict[str, list[Candle]],
    strategies: Optional[Iterable[Strategy]] = None,
    timeframe: str = "4H",
    settings: Optional[Config] = None,
) -> BatchReport:
    """Backtest each strategy on each symbol's candles.

    Indicator snapshots are computed once per symbol and shared by every
    strategy run on it.

    Args:
        candles_by_symbol: Candle series keyed by symbol.
        strategies: Strategies to run; defaults to the full catalog.
        timeframe: Timeframe label recorded on each config.
        settings: Capital, sizing and metric settings.

    Returns:
        ``BatchReport`` with one result or failure per pair.
    """
    settings = settings or DEFAULT_CONFIG
    strategies = list(strategies) if strategies is not None else list(ALL_STRATEGIES)
    engine = BacktestEngine(settings)
    report = BatchReport()

    for symbol, candles in candles_by_symbol.items():
        try:
            snapshots = build_snapshots(candles)
        except Exception as exc:
            logger.error("Indicator build failed for %s: %s", symbol, exc)
            for strategy in strategies:
                report.failures.append(BatchFailure(symbol, strategy.name, str(exc)))
            continue

        for strategy in strategies:
            try:
                config = BacktestConfig(
                    symbol=symbol,
                    candles=tuple(candles),
                    strategy=strategy,
                    timeframe=timeframe,
                    initial_capital=settings.initial_capital,
                    position_size_pct=settings.position_size_pct,
                )
                report.results.append(engine.run(config, snapshots))
            except Exception as exc:
                logger.error("Backtest %s / %s failed: %s", symbol, strategy.name, exc)
                report.failures.append(BatchFailure(symbol, strategy.name, str(exc)))

    logger.info(
        "Batch complete: %d runs, %d succeeded, %d failed",
        report.total_runs, len(report.results), len(report.failures),
    )
    return report
