"""Trade Caller — command-line entry point.

Usage:
    python -m tradecaller.main strategies
    python -m tradecaller.main analyze --candles SOL_4H.json
    python -m tradecaller.main signal --candles-4h SOL_4H.json --candles-1d SOL_1D.json --symbol SOL
    python -m tradecaller.main backtest --candles SOL_4H.json --strategy "RSI Oversold Long"
    python -m tradecaller.main batch --candles-dir data/

Candle files are JSON arrays of ``{timestamp, open, high, low, close, volume}``
objects.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from tradecaller.backtest.batch import run_batch
from tradecaller.backtest.engine import BacktestEngine
from tradecaller.backtest.models import BacktestConfig
from tradecaller.backtest.serialization import encode_result
from tradecaller.backtest.strategies import get_strategy, list_strategies
from tradecaller.cli.report import (
    print_analysis,
    print_backtest,
    print_batch,
    print_signal,
)
from tradecaller.config import Config, load_config
from tradecaller.signals.confidence import SetupWinRateTable
from tradecaller.signals.generator import SignalGenerator
from tradecaller.technical.analysis import get_technical_sentiment, run_technical_analysis
from tradecaller.technical.models import Candle, Token

logger = logging.getLogger("tradecaller")


class CandleFileError(ValueError):
    """A candle file is unreadable or a row is malformed."""


_CANDLE_FIELDS = ("timestamp", "open", "high", "low", "close")


def _parse_candle(row: dict) -> Candle:
    missing = [f for f in _CANDLE_FIELDS if f not in row]
    if missing:
        raise ValueError(f"missing {', '.join(missing)}")
    return Candle(
        timestamp=int(row["timestamp"]),
        open=float(row["open"]),
        high=float(row["high"]),
        low=float(row["low"]),
        close=float(row["close"]),
        volume=float(row.get("volume", 0)),
    )


def load_candles(path: str | Path) -> list[Candle]:
    """Read a JSON candle file, sorted by timestamp.

    Raises:
        CandleFileError: The file is not valid JSON or a row is malformed.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise CandleFileError(f"{path}: invalid JSON ({exc})") from exc
    if not isinstance(raw, list):
        raise CandleFileError(f"{path}: expected a JSON array of candles")

    candles = []
    for i, row in enumerate(raw):
        try:
            candles.append(_parse_candle(row))
        except (TypeError, ValueError) as exc:
            raise CandleFileError(f"{path}: candle {i}: {exc}") from exc
    candles.sort(key=lambda c: c.timestamp)
    return candles


def load_candle_dir(directory: str | Path) -> dict[str, list[Candle]]:
    """Load every ``*.json`` file in *directory*, keyed by file stem."""
    series: dict[str, list[Candle]] = {}
    for path in sorted(Path(directory).glob("*.json")):
        try:
            series[path.stem] = load_candles(path)
        except (OSError, CandleFileError) as exc:
            logger.error("Skipping %s: %s", path.name, exc)
    return series


# ── Commands ─────────────────────────────────────────────────────────────


def _cmd_strategies(args: argparse.Namespace, config: Config) -> int:
    for name in list_strategies():
        print(name)
    return 0


def _cmd_analyze(args: argparse.Namespace, config: Config) -> int:
    candles = load_candles(args.candles)
    report = run_technical_analysis(candles)
    symbol = args.symbol or Path(args.candles).stem
    print_analysis(symbol, report, get_technical_sentiment(report.analysis))
    return 0


def _cmd_signal(args: argparse.Namespace, config: Config) -> int:
    candles = {"4H": load_candles(args.candles_4h), "1D": load_candles(args.candles_1d)}
    if args.candles_1h:
        candles["1H"] = load_candles(args.candles_1h)
    token = Token(symbol=args.symbol, address=args.address, name=args.symbol)

    generator = SignalGenerator(
        config=config,
        win_rates=SetupWinRateTable() if args.setup_win_rates else None,
    )
    print_signal(args.symbol, generator.evaluate(token, candles))
    return 0


def _cmd_backtest(args: argparse.Namespace, config: Config) -> int:
    try:
        strategy = get_strategy(args.strategy)
    except KeyError as exc:
        logger.error("%s", exc.args[0])
        return 2

    candles = load_candles(args.candles)
    backtest_config = BacktestConfig(
        symbol=args.symbol or Path(args.candles).stem,
        candles=tuple(candles),
        strategy=strategy,
        timeframe=args.timeframe,
        initial_capital=args.capital or config.initial_capital,
        position_size_pct=args.position_size or config.position_size_pct,
    )
    result = BacktestEngine(config).run(backtest_config)
    print_backtest(result)

    if args.output:
        Path(args.output).write_bytes(encode_result(result))
        logger.info("Result written to %s", args.output)
    return 0


def _cmd_batch(args: argparse.Namespace, config: Config) -> int:
    series = load_candle_dir(args.candles_dir)
    if not series:
        logger.error("No candle files found in %s", args.candles_dir)
        return 1
    try:
        strategies = [get_strategy(n) for n in args.strategy] if args.strategy else None
    except KeyError as exc:
        logger.error("%s", exc.args[0])
        return 2
    report = run_batch(series, strategies, timeframe=args.timeframe, settings=config)
    print_batch(report, top_n=args.top)
    return 0 if report.results else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Trade Caller signal and backtest tools")
    parser.add_argument("--env", help="Path to a .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("strategies", help="List the strategy catalog")

    analyze = sub.add_parser("analyze", help="Run technical analysis on a candle file")
    analyze.add_argument("--candles", required=True)
    analyze.add_argument("--symbol")

    signal = sub.add_parser("signal", help="Evaluate one token for a trading signal")
    signal.add_argument("--candles-4h", required=True)
    signal.add_argument("--candles-1d", required=True)
    signal.add_argument("--candles-1h")
    signal.add_argument("--symbol", required=True)
    signal.add_argument("--address", default="")
    signal.add_argument(
        "--setup-win-rates", action="store_true",
        help="Score the historical factor from the built-in setup table",
    )

    backtest = sub.add_parser("backtest", help="Backtest one strategy on a candle file")
    backtest.add_argument("--candles", required=True)
    backtest.add_argument("--strategy", required=True)
    backtest.add_argument("--symbol")
    backtest.add_argument("--timeframe", default="4H")
    backtest.add_argument("--capital", type=float)
    backtest.add_argument("--position-size", type=float)
    backtest.add_argument("--output", help="Write the versioned result to this file")

    batch = sub.add_parser("batch", help="Backtest strategies on every candle file in a directory")
    batch.add_argument("--candles-dir", required=True)
    batch.add_argument(
        "--strategy", action="append",
        help="Strategy to include (repeatable, default: all)",
    )
    batch.add_argument("--timeframe", default="4H")
    batch.add_argument("--top", type=int, default=5)

    return parser


_COMMANDS = {
    "strategies": _cmd_strategies,
    "analyze": _cmd_analyze,
    "signal": _cmd_signal,
    "backtest": _cmd_backtest,
    "batch": _cmd_batch,
}


def main(argv: list[str] | None = None) -> int:
    """Parse CLI arguments and dispatch to the selected command."""
    args = build_parser().parse_args(argv)
    config = load_config(args.env)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        return _COMMANDS[args.command](args, config)
    except CandleFileError as exc:
        logger.error("Bad candle file: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
