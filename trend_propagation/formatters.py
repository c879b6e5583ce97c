from __future__ import annotations

import json
from typing import Dict, List, Optional, Sequence

from .models import InitialIndicator, NeutralGap, Propagation, TrendAnalysis


def _fmt_price(val: Optional[float]) -> str:
    if val is None:
        return "-"
    return f"{val:g}"


def _fmt_trend(trend: int) -> str:
    return "UP" if trend > 0 else "DOWN"


def _table(headers: Sequence[str], rows: List[List[str]]) -> List[str]:
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))
    line = "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    out = [line.rstrip(), "  ".join("-" * w for w in widths)]
    for row in rows:
        out.append("  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip())
    return out


def filter_propagations(propagations: Sequence[Propagation], max_level: Optional[int]) -> List[Propagation]:
    if max_level is None:
        return list(propagations)
    return [p for p in propagations if p.propagation_level <= max_level]


def format_indicators(indicators: Sequence[InitialIndicator]) -> List[str]:
    rows = [
        [i.datetime, _fmt_trend(i.trend_type), i.timeframe, i.end_datetime or "-", _fmt_price(i.open_price)]
        for i in indicators
    ]
    return _table(["datetime", "trend", "timeframe", "end_datetime", "open"], rows)


def format_propagations(propagations: Sequence[Propagation]) -> List[str]:
    rows = [
        [
            p.propagation_id,
            str(p.propagation_level),
            p.datetime,
            _fmt_trend(p.trend_type),
            f"{p.higher_freq} -> {p.lower_freq}",
            _fmt_price(p.open_price),
            f"{p.directional_change_percent:+.3f}%",
        ]
        for p in propagations
    ]
    return _table(["id", "level", "datetime", "trend", "link", "open", "change"], rows)


def format_gaps(gaps: Sequence[NeutralGap]) -> List[str]:
    rows = [[g.timeframe, g.datetime, g.end_datetime, str(g.bars)] for g in gaps]
    return _table(["timeframe", "datetime", "end_datetime", "bars"], rows)


def format_analysis(
    analysis: TrendAnalysis,
    cfg,
    *,
    title: str = "",
    gaps: Sequence[NeutralGap] = (),
) -> str:
    """Render an analysis as a plain-text report or JSON, per the output config."""
    include_indicators = getattr(cfg, "include_indicators", True)
    include_propagations = getattr(cfg, "include_propagations", True)
    include_gaps = getattr(cfg, "include_gaps", False)
    propagations = filter_propagations(analysis.propagations, getattr(cfg, "max_level", None))

    if (getattr(cfg, "format", "table") or "table").lower() == "json":
        payload: Dict[str, object] = {"timeframes": list(analysis.timeframes)}
        if include_indicators:
            payload["initialIndicators"] = [i.as_record() for i in analysis.initial_indicators]
        if include_propagations:
            payload["propagations"] = [p.as_record() for p in propagations]
        if include_gaps:
            payload["neutralGaps"] = [
                {"timeframe": g.timeframe, "datetime": g.datetime, "end_datetime": g.end_datetime, "bars": g.bars}
                for g in gaps
            ]
        return json.dumps(payload, indent=2)

    lines: List[str] = []
    if title:
        lines.append(title)
    lines.append(f"Timeframes: {', '.join(analysis.timeframes) or '-'}")
    if include_indicators:
        lines.append("")
        lines.append(f"Initial indicators ({len(analysis.initial_indicators)})")
        lines.extend(format_indicators(analysis.initial_indicators))
    if include_propagations:
        lines.append("")
        lines.append(f"Propagations ({len(propagations)})")
        lines.extend(format_propagations(propagations))
    if include_gaps:
        lines.append("")
        lines.append(f"Neutral gaps ({len(gaps)})")
        lines.extend(format_gaps(gaps))
    return "\n".join(lines)
