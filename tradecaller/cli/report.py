"""CLI report — prints analyses, signals, backtest summaries and batch leaderboards."""

import math

from tradecaller.backtest.batch import BatchReport
from tradecaller.backtest.models import BacktestResult
from tradecaller.signals.models import SignalDecision
from tradecaller.technical.models import AnalysisReport

_RULE = "─" * 56


def _pf(value: float) -> str:
    return "inf" if math.isinf(value) else f"{value:.2f}"


def print_backtest(result: BacktestResult) -> str:
    """Format and print one backtest result.

    Returns:
        The formatted string (also printed to stdout).
    """
    m = result.metrics
    cfg = result.config

    lines = [
        f"──────────────── Backtest: {cfg.symbol} ────────────────",
        f"  Strategy:        {cfg.strategy.name}",
        f"  Timeframe:       {cfg.timeframe}",
        f"  Candles:         {len(cfg.candles)}",
        f"  Trades:          {m.total_trades} "
        f"({m.winning_trades}W / {m.losing_trades}L / {m.breakeven_trades}BE)",
        f"  Win Rate:        {m.win_rate:.1f}%",
        f"  Total Return:    ${m.total_return:,.2f} ({m.total_return_percent:.2f}%)",
        f"  Profit Factor:   {_pf(m.profit_factor)}",
        f"  Sharpe Ratio:    {m.sharpe_ratio:.2f}",
        f"  Max Drawdown:    ${m.max_drawdown:,.2f} ({m.max_drawdown_percent:.2f}%)",
        f"  Avg Duration:    {m.avg_trade_duration_hours:.1f}h",
        f"  Avg R:R:         {m.avg_risk_reward_ratio:.2f}",
    ]
    if result.analysis.recommendations:
        lines.append("  Recommendations:")
        lines.extend(f"    - {r}" for r in result.analysis.recommendations)
    lines.append(_RULE)

    output = "\n".join(lines)
    print(output)
    return output


def print_analysis(symbol: str, report: AnalysisReport, sentiment: int) -> str:
    a = report.analysis
    lines = [
        f"──────────────── Analysis: {symbol} ────────────────",
        f"  RSI:             {a.rsi.value:.2f} ({a.rsi.signal})",
        f"  MACD:            {a.macd.trend} (hist {a.macd.histogram:.4f})",
        f"  Trend:           {a.trend.direction} (strength {a.trend.strength:.0f})",
        f"  Sentiment:       {sentiment:+d}",
        f"  Summary:         {report.summary}",
        _RULE,
    ]
    output = "\n".join(lines)
    print(output)
    return output


def print_signal(symbol: str, decision: SignalDecision) -> str:
    lines = [
        f"──────────────── Signal: {symbol} ────────────────",
        f"  Action:          {decision.action}",
        f"  Reason:          {decision.reason}",
    ]
    if decision.breakdown is not None:
        lines.append(f"  Confidence:      {decision.breakdown.total_confidence}")
        lines.extend(
            f"    + {f.contribution:5.2f}  {f.name}: {f.description}"
            for f in decision.breakdown.factors
        )

    signal = decision.signal
    if signal is not None:
        targets = " / ".join(f"{t:.4f}" for t in signal.targets)
        lines += [
            f"  Entry:           {signal.entry:.4f}",
            f"  Stop Loss:       {signal.stop_loss:.4f}",
            f"  Targets:         {targets}",
            f"  Timeframe:       {signal.timeframe}",
            f"  Risk:            {signal.risk_level}",
        ]
    lines.append(_RULE)

    output = "\n".join(lines)
    print(output)
    return output


def print_batch(report: BatchReport, top_n: int = 5) -> str:
    """Format and print batch leaderboards."""
    lines = [
        "──────────────── Batch Results ────────────────",
        f"  Total Runs:      {report.total_runs}",
        f"  Successful:      {len(report.results)}",
        f"  Failed:          {len(report.failures)}",
        "",
        f"  Top {top_n} by win rate:",
    ]
    for i, r in enumerate(report.top_by_win_rate(top_n), 1):
        lines.append(
            f"    {i}. {r.config.strategy.name} ({r.config.symbol}): "
            f"{r.metrics.win_rate:.1f}% | ${r.metrics.total_return:,.0f} "
            f"| PF {_pf(r.metrics.profit_factor)}"
        )

    lines += ["", f"  Top {top_n} by total return:"]
    for i, r in enumerate(report.top_by_return(top_n), 1):
        lines.append(
            f"    {i}. {r.config.strategy.name} ({r.config.symbol}): "
            f"${r.metrics.total_return:,.0f} | {r.metrics.win_rate:.1f}% "
            f"| {r.metrics.total_trades} trades"
        )

    lines += ["", "  Best strategy per token:"]
    for symbol, r in report.best_per_token().items():
        lines.append(
            f"    {symbol}: {r.config.strategy.name} "
            f"({r.metrics.win_rate:.1f}%, ${r.metrics.total_return:,.0f})"
        )

    lines += ["", "  Strategy averages:"]
    for avg in report.strategy_averages():
        lines.append(
            f"    {avg.name}: {avg.avg_win_rate:.1f}% | "
            f"${avg.avg_return:,.0f} | {avg.runs} runs"
        )

    if report.failures:
        lines += ["", "  Failures:"]
        lines.extend(
            f"    {f.symbol} / {f.strategy}: {f.error}" for f in report.failures
        )
    lines.append(_RULE)

    output = "\n".join(lines)
    print(output)
    return output
