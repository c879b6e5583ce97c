from __future__ import annotations

import argparse
import logging
import sys

from .config import default_config, load_config, validate_config
from .runner import AnalysisRunner


def _setup_logging(level: str) -> None:
    lvl = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Trend Propagation - cross-timeframe signal chains")
    p.add_argument("--config", help="Path to YAML config")
    p.add_argument("--csv", help="CSV file with datetime/open/high/low/close and chain_detected_<tf> columns")
    p.add_argument("--timeframes", help="Comma separated timeframes to include (default: all)")
    p.add_argument("--mode", choices=["dynamic", "forward"], help="Chain tracking mode")
    p.add_argument("--format", choices=["table", "json"], help="Output format")
    p.add_argument("--output", help="Write the report to this path instead of stdout")
    args = p.parse_args(argv)

    try:
        cfg = load_config(args.config) if args.config else default_config()
        if args.csv:
            cfg.source.path = args.csv
        if args.timeframes:
            cfg.analysis.timeframes = [x.strip() for x in args.timeframes.split(",") if x.strip()]
        if args.mode:
            cfg.analysis.chain_mode = args.mode
        if args.format:
            cfg.output.format = args.format
        if args.output:
            cfg.output.path = args.output
        validate_config(cfg)
    except (OSError, TypeError, ValueError) as e:
        _setup_logging("INFO")
        logging.getLogger("main").error("config err=%s", e)
        return 1

    _setup_logging(cfg.app.log_level)

    try:
        report = AnalysisRunner(cfg).run()
    except Exception as e:
        logging.getLogger("main").exception("fatal err=%s", e)
        return 1

    if not cfg.output.path:
        print(report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
