from __future__ import annotations

from bisect import bisect_left
from typing import Dict, Iterable, List, Optional

from .models import Candle


def pct_change(new: float, old: float) -> float:
    if old == 0:
        return 0.0
    return (new - old) / old * 100.0


class PriceLookup:
    """Open price by candle timestamp (epoch seconds).

    Exact matches are a dict hit. With ``tolerance_s > 0`` a miss falls back to
    the nearest candle within the tolerance (earlier candle wins a tie).
    """

    def __init__(self, opens: Dict[int, float], tolerance_s: int = 0) -> None:
        self._opens = dict(opens)
        self.tolerance_s = max(0, int(tolerance_s))
        self._times: List[int] = sorted(self._opens) if self.tolerance_s else []

    @classmethod
    def from_candles(cls, candles: Iterable[Candle], tolerance_s: int = 0) -> "PriceLookup":
        opens: Dict[int, float] = {}
        for c in candles:
            opens[int(c.time)] = float(c.open)  # last write wins
        return cls(opens, tolerance_s=tolerance_s)

    def __len__(self) -> int:
        return len(self._opens)

    def nearest_time(self, ts: int) -> Optional[int]:
        if not self._times:
            return None
        i = bisect_left(self._times, ts)
        best: Optional[int] = None
        for j in (i - 1, i):
            if 0 <= j < len(self._times):
                t = self._times[j]
                if best is None or abs(t - ts) < abs(best - ts):
                    best = t
        if best is None or abs(best - ts) > self.tolerance_s:
            return None
        return best

    def price_at(self, ts: int) -> float:
        ts = int(ts)
        price = self._opens.get(ts)
        if price is not None:
            return price
        if self.tolerance_s:
            near = self.nearest_time(ts)
            if near is not None:
                return self._opens[near]
        return 0.0
