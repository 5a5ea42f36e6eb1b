"""Run the full strategy catalog over a directory of candle files.

Usage (from the project root):
    python -m scripts.run_backtests --candles-dir data/4h --output-dir results/
"""

import argparse
import logging
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from tradecaller.backtest.batch import run_batch
from tradecaller.backtest.serialization import encode_result
from tradecaller.cli.report import print_batch
from tradecaller.config import load_config
from tradecaller.main import load_candle_dir


def _slug(name: str) -> str:
    return "".join(ch.lower() if ch.isalnum() else "_" for ch in name).strip("_")


def _main(candles_dir: str, output_dir: str | None, timeframe: str) -> int:
    config = load_config()
    series = load_candle_dir(candles_dir)
    report = run_batch(series, timeframe=timeframe, settings=config)
    print_batch(report)

    if output_dir:
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        for result in report.results:
            name = f"{result.config.symbol}_{_slug(result.config.strategy.name)}.json"
            (out / name).write_bytes(encode_result(result))
        logging.getLogger(__name__).info(
            "Wrote %d results → %s", len(report.results), out,
        )
    return 0 if report.results else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Backtest every strategy on every token")
    parser.add_argument("--candles-dir", required=True)
    parser.add_argument("--output-dir")
    parser.add_argument("--timeframe", default="4H")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    sys.exit(_main(args.candles_dir, args.output_dir, args.timeframe))
