from __future__ import annotations

import argparse
import pprint
from dataclasses import asdict

from trend_propagation.config import load_config
from trend_propagation.timeframes import TimeframeOrder


def main():
    p = argparse.ArgumentParser(description="Print the effective config (after env overrides)")
    p.add_argument("--config", required=True, help="Path to YAML config")
    args = p.parse_args()

    cfg = load_config(args.config)

    print("EFFECTIVE CONFIG:")
    pprint.pprint(asdict(cfg))
    if cfg.analysis.timeframes:
        order = TimeframeOrder.build(cfg.analysis.timeframes)
        print("\nTIMEFRAME ORDER (fastest first):")
        pprint.pprint([(tf, order.seconds[tf]) for tf in order.timeframes])


if __name__ == "__main__":
    main()
