from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .models import NeutralGap, Signal
from .time_format import format_utc
from .timeframes import timeframe_to_seconds


def _group(signals: Iterable[Signal]) -> Dict[str, List[Signal]]:
    groups: Dict[str, List[Signal]] = {}
    for s in signals:
        groups.setdefault(s.timeframe, []).append(s)
    for tf in groups:
        groups[tf].sort(key=lambda s: s.timestamp)
    return groups


def signal_changes(signals: Iterable[Signal]) -> List[Signal]:
    """Keep only the signals where a timeframe's direction flips.

    Values > 0 count as up and everything else as down; the first signal of a
    timeframe is always kept.
    """
    out: List[Signal] = []
    for tf_signals in _group(signals).values():
        last: Optional[int] = None
        for s in tf_signals:
            current = 1 if s.value > 0 else -1
            if last is None or current != last:
                out.append(s)
                last = current
    return out


def neutral_gaps(signals: Iterable[Signal], min_bars: int = 3) -> List[NeutralGap]:
    """Runs of at least ``min_bars`` consecutive zero signals per timeframe.

    The gap end is the gap start plus ``bars`` timeframe intervals.
    """
    gaps: List[NeutralGap] = []
    for tf, tf_signals in _group(signals).items():
        step = timeframe_to_seconds(tf)
        zeros = 0
        gap_start: Optional[int] = None

        def _close() -> None:
            if gap_start is not None and zeros >= min_bars:
                gaps.append(
                    NeutralGap(
                        timeframe=tf,
                        datetime=format_utc(gap_start),
                        end_datetime=format_utc(gap_start + zeros * step),
                        bars=zeros,
                    )
                )

        for s in tf_signals:
            if s.value == 0:
                zeros += 1
                if gap_start is None:
                    gap_start = s.timestamp
                continue
            _close()
            zeros = 0
            gap_start = None
        _close()
    return gaps
