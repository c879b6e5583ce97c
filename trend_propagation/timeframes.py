from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple
import logging
import re


log = logging.getLogger("timeframes")

_TF_RE = re.compile(r"^(\d+)(mo|s|m|h|d|w)$")

# mo is a fixed 30-day month, not calendar aware.
UNIT_SECONDS: Dict[str, int] = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
    "mo": 2592000,
}


def parse_timeframe(tf: str) -> Optional[Tuple[int, str]]:
    m = _TF_RE.match((tf or "").strip())
    if not m:
        return None
    return int(m.group(1)), m.group(2)


def timeframe_to_seconds(tf: str) -> int:
    """Duration of a ``{integer}{unit}`` timeframe in seconds, 0 if unparseable."""
    parsed = parse_timeframe(tf)
    if parsed is None:
        return 0
    value, unit = parsed
    return value * UNIT_SECONDS[unit]


def sort_timeframes(timeframes: Iterable[str]) -> List[str]:
    # sorted() is stable, so equal durations keep their input order.
    return sorted(timeframes, key=timeframe_to_seconds)


@dataclass(frozen=True)
class TimeframeOrder:
    """Fastest-to-slowest ordering of the timeframes taking part in one analysis."""

    timeframes: Tuple[str, ...]
    seconds: Dict[str, int]
    ranks: Dict[str, int]

    @classmethod
    def build(cls, timeframes: Iterable[str]) -> "TimeframeOrder":
        unique: List[str] = []
        for tf in timeframes:
            if tf not in unique:
                unique.append(tf)
        for tf in unique:
            if parse_timeframe(tf) is None:
                log.warning("timeframe_unparseable tf=%r seconds=0 (sorted first)", tf)
        ordered = sort_timeframes(unique)
        return cls(
            timeframes=tuple(ordered),
            seconds={tf: timeframe_to_seconds(tf) for tf in ordered},
            ranks={tf: idx for idx, tf in enumerate(ordered)},
        )

    def __len__(self) -> int:
        return len(self.timeframes)

    def rank(self, tf: str) -> int:
        return self.ranks[tf]

    @property
    def fastest(self) -> Optional[str]:
        return self.timeframes[0] if self.timeframes else None
