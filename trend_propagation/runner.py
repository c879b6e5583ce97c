from __future__ import annotations

import logging
import time
from typing import List, Optional

from .config import Config
from .engine import extract_trend_indicators, window_signals
from .formatters import format_analysis
from .models import NeutralGap, Signal, TrendAnalysis
from .providers.csv_file import CsvDataset, load_csv
from .signal_filters import neutral_gaps

log = logging.getLogger("runner")


class AnalysisRunner:
    def __init__(self, cfg: Config):
        self.cfg = cfg
        self.dataset: Optional[CsvDataset] = None
        self.analysis: Optional[TrendAnalysis] = None
        self.gaps: List[NeutralGap] = []

    def load(self) -> CsvDataset:
        path = self.cfg.source.path
        if not path:
            raise ValueError("No source path configured.")
        self.dataset = load_csv(path, source_id=self.cfg.source.source_id or None)
        if self.dataset.skipped_timeframes:
            log.warning(
                "source_timeframes_skipped source=%s tfs=%s",
                self.dataset.source_id,
                self.dataset.skipped_timeframes,
            )
        return self.dataset

    def analyze(self, dataset: Optional[CsvDataset] = None) -> TrendAnalysis:
        ds = dataset or self.dataset or self.load()
        self.dataset = ds
        a = self.cfg.analysis
        wanted = list(a.timeframes or [])
        missing = [tf for tf in wanted if tf not in ds.signals]
        if missing:
            log.warning("timeframes_not_in_source source=%s tfs=%s", ds.source_id, missing)

        start, end = a.start_ts(), a.end_ts()
        t0 = time.perf_counter()
        self.analysis = extract_trend_indicators(
            ds.signals,
            ds.candles,
            wanted or None,
            chain_mode=a.chain_mode,
            price_tolerance_s=a.price_tolerance_s,
            start=start,
            end=end,
        )
        if self.cfg.output.include_gaps:
            participating: List[Signal] = []
            for tf in self.analysis.timeframes:
                participating.extend(window_signals(ds.signals.get(tf, []), start, end))
            self.gaps = neutral_gaps(participating, min_bars=a.gap_min_bars)
        elapsed_ms = (time.perf_counter() - t0) * 1000.0
        log.info(
            "analysis source=%s mode=%s candles=%d indicators=%d propagations=%d gaps=%d elapsed_ms=%.1f",
            ds.source_id,
            a.chain_mode,
            len(ds.candles),
            len(self.analysis.initial_indicators),
            len(self.analysis.propagations),
            len(self.gaps),
            elapsed_ms,
        )
        return self.analysis

    def render(self) -> str:
        if self.analysis is None:
            self.analyze()
        title = f"{self.cfg.app.name}: {self.dataset.source_id}" if self.dataset else self.cfg.app.name
        return format_analysis(self.analysis, self.cfg.output, title=title, gaps=self.gaps)

    def run(self) -> str:
        report = self.render()
        out_path = self.cfg.output.path
        if out_path:
            with open(out_path, "w", encoding="utf-8") as f:
                f.write(report)
                f.write("\n")
            log.info("report_written path=%s bytes=%d", out_path, len(report))
        return report
