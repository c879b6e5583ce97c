from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import Candle, InitialIndicator, Propagation, Signal, TrendAnalysis, signal_direction
from .price_lookup import PriceLookup, pct_change
from .time_format import format_utc, parse_utc
from .timeframes import TimeframeOrder

log = logging.getLogger("engine")

CHAIN_MODES = ("dynamic", "forward")


def sorted_signals(signals: Iterable[Signal]) -> List[Signal]:
    return sorted(signals, key=lambda s: s.timestamp)


@dataclass
class TrackedSignal:
    """A signal occurrence that belongs to a chain and may parent a slower one."""

    seq: int
    timestamp: int
    timeframe: str
    rank: int
    direction: int
    open_price: float
    level: int
    propagation_id: str
    chain_initial_price: float


class _DirectionTimes:
    """Sorted timestamps of the +1 and -1 signals of one timeframe."""

    def __init__(self, signals: Sequence[Signal]) -> None:
        self.times: Dict[int, List[int]] = {1: [], -1: []}
        for s in signals:
            v = signal_direction(s.value)
            if v:
                self.times[v].append(s.timestamp)

    def any_between(self, direction: int, after: int, upto: int) -> bool:
        """True if a ``direction`` signal lies in ``(after, upto]``."""
        times = self.times[direction]
        i = bisect_right(times, after)
        return i < len(times) and times[i] <= upto

    def first_after(self, direction: int, after: int) -> Optional[int]:
        times = self.times[direction]
        i = bisect_right(times, after)
        return times[i] if i < len(times) else None


class _CandidateIndex:
    """Tracked signals keyed by (direction, rank), each bucket sorted by timestamp."""

    def __init__(self) -> None:
        self._buckets: Dict[Tuple[int, int], Tuple[List[int], List[TrackedSignal]]] = {}

    def add(self, t: TrackedSignal) -> None:
        times, items = self._buckets.setdefault((t.direction, t.rank), ([], []))
        i = bisect_right(times, t.timestamp)
        times.insert(i, t.timestamp)
        items.insert(i, t)

    def candidates(self, direction: int, below_rank: int, at_or_before: int) -> List[TrackedSignal]:
        out: List[TrackedSignal] = []
        for rank in range(below_rank):
            bucket = self._buckets.get((direction, rank))
            if not bucket:
                continue
            times, items = bucket
            out.extend(items[: bisect_right(times, at_or_before)])
        return out


def extract_initial_indicators(
    signals: Sequence[Signal],
    timeframe: str,
    prices: PriceLookup,
) -> List[InitialIndicator]:
    """Direction-change events on the fastest timeframe.

    A non-zero value that differs from the last non-zero value starts a new
    indicator; zeros neither emit nor reset. Each indicator ends at the first
    strictly later opposing signal, or at the last signal of the sequence when
    no opposing signal follows.
    """
    ordered = sorted_signals(signals)
    if not ordered:
        return []

    starts: List[Tuple[int, int]] = []
    last_signal: Optional[int] = None
    for s in ordered:
        v = signal_direction(s.value)
        if v == 0:
            continue
        if last_signal is None or v != last_signal:
            starts.append((s.timestamp, v))
            last_signal = v

    by_direction = _DirectionTimes(ordered)
    last_ts = ordered[-1].timestamp

    indicators: List[InitialIndicator] = []
    for ts, trend in starts:
        end_ts = by_direction.first_after(-trend, ts)
        if end_ts is None:
            end_ts = last_ts
        indicators.append(
            InitialIndicator(
                datetime=format_utc(ts),
                trend_type=trend,
                timeframe=timeframe,
                end_datetime=format_utc(end_ts),
                open_price=prices.price_at(ts),
                directional_change_percent=0.0,
            )
        )
    return indicators


class PropagationChainer:
    """Dynamic chain tracking across timeframes, fastest to slowest.

    State lives on the instance and covers one invocation; nothing is cached at
    module level.
    """

    def __init__(
        self,
        order: TimeframeOrder,
        signals_by_timeframe: Mapping[str, Sequence[Signal]],
        prices: PriceLookup,
    ) -> None:
        self.order = order
        self.prices = prices
        self.signals: Dict[str, List[Signal]] = {}
        self.direction_times: Dict[str, _DirectionTimes] = {}
        for tf in order.timeframes:
            seq = [
                Signal(s.timestamp, signal_direction(s.value), s.timeframe, s.source)
                for s in sorted_signals(signals_by_timeframe.get(tf) or [])
            ]
            self.signals[tf] = seq
            self.direction_times[tf] = _DirectionTimes(seq)

        self._index = _CandidateIndex()
        self._seq = 0
        self.tracked: List[TrackedSignal] = []

    def _track(self, **kwargs) -> TrackedSignal:
        t = TrackedSignal(seq=self._seq, **kwargs)
        self._seq += 1
        self._index.add(t)
        self.tracked.append(t)
        return t

    def seed(self, indicators: Sequence[InitialIndicator], timestamps: Sequence[int]) -> None:
        for n, (ind, ts) in enumerate(zip(indicators, timestamps), start=1):
            self._track(
                timestamp=ts,
                timeframe=ind.timeframe,
                rank=self.order.rank(ind.timeframe),
                direction=ind.trend_type,
                open_price=ind.open_price,
                level=0,
                propagation_id=f"Prop_{n}",
                chain_initial_price=ind.open_price,
            )

    def _valid_parent(self, candidates: List[TrackedSignal], ts: int) -> Optional[TrackedSignal]:
        candidates.sort(key=lambda c: (-c.level, -c.timestamp, c.seq))
        for cand in candidates:
            broken = self.direction_times[cand.timeframe].any_between(-cand.direction, cand.timestamp, ts)
            if not broken:
                return cand
            log.debug(
                "candidate_broken id=%s tf=%s ts=%s confirm_ts=%s",
                cand.propagation_id,
                cand.timeframe,
                cand.timestamp,
                ts,
            )
        return None

    def run(self) -> List[Propagation]:
        propagations: List[Propagation] = []
        for tf in self.order.timeframes[1:]:
            rank = self.order.rank(tf)
            first_seen: Dict[int, int] = {}
            for s in self.signals[tf]:
                if s.value == 0:
                    continue
                prev = first_seen.get(s.value)
                if prev is None:
                    first_seen[s.value] = s.timestamp
                elif prev < s.timestamp:
                    continue  # repeat of a direction this timeframe already showed

                candidates = self._index.candidates(s.value, rank, s.timestamp)
                if not candidates:
                    continue
                parent = self._valid_parent(candidates, s.timestamp)
                if parent is None:
                    continue

                price = self.prices.price_at(s.timestamp)
                level = parent.level + 1
                propagations.append(
                    Propagation(
                        propagation_id=parent.propagation_id,
                        propagation_level=level,
                        datetime=format_utc(s.timestamp),
                        trend_type=s.value,
                        higher_freq=parent.timeframe,
                        lower_freq=tf,
                        open_price=price,
                        directional_change_percent=pct_change(price, parent.chain_initial_price),
                    )
                )
                self._track(
                    timestamp=s.timestamp,
                    timeframe=tf,
                    rank=rank,
                    direction=s.value,
                    open_price=price,
                    level=level,
                    propagation_id=parent.propagation_id,
                    chain_initial_price=parent.chain_initial_price,
                )
        return propagations


def forward_propagations(
    order: TimeframeOrder,
    signals_by_timeframe: Mapping[str, Sequence[Signal]],
    indicators: Sequence[InitialIndicator],
    timestamps: Sequence[int],
    end_timestamps: Sequence[int],
    prices: PriceLookup,
) -> List[Propagation]:
    """Single-indicator walk: follow each indicator down the slower timeframes.

    The chain stops at the first timeframe with no same-direction signal inside
    the indicator's window, whose previous non-zero signal already points the
    same way, or where the fastest timeframe flips before the confirmation.
    """
    signals = {
        tf: [
            Signal(s.timestamp, signal_direction(s.value), s.timeframe, s.source)
            for s in sorted_signals(signals_by_timeframe.get(tf) or [])
        ]
        for tf in order.timeframes
    }
    fastest_times = _DirectionTimes(signals[order.fastest])

    propagations: List[Propagation] = []
    for n, (ind, start_ts, end_ts) in enumerate(zip(indicators, timestamps, end_timestamps), start=1):
        prop_id = f"Prop_{n}"
        trend = ind.trend_type
        chain_ts = start_ts
        chain_rank = order.rank(ind.timeframe)
        level = 0

        for j in range(chain_rank + 1, len(order)):
            lower_tf = order.timeframes[j]
            lower = signals[lower_tf]

            nxt = next((s for s in lower if chain_ts <= s.timestamp <= end_ts and s.value == trend), None)
            if nxt is None:
                break

            previous = [s for s in lower if s.timestamp < chain_ts and s.value != 0]
            if previous and previous[-1].value == trend:
                break

            if fastest_times.any_between(-trend, chain_ts, nxt.timestamp):
                break

            level += 1
            price = prices.price_at(nxt.timestamp)
            propagations.append(
                Propagation(
                    propagation_id=prop_id,
                    propagation_level=level,
                    datetime=format_utc(nxt.timestamp),
                    trend_type=trend,
                    higher_freq=order.timeframes[chain_rank],
                    lower_freq=lower_tf,
                    open_price=price,
                    directional_change_percent=pct_change(price, ind.open_price),
                )
            )
            chain_ts = nxt.timestamp
            chain_rank = j
    return propagations


def window_signals(signals: Sequence[Signal], start: Optional[int], end: Optional[int]) -> List[Signal]:
    return [
        s
        for s in signals
        if (start is None or s.timestamp >= start) and (end is None or s.timestamp <= end)
    ]


def extract_trend_indicators(
    signals_by_timeframe: Mapping[str, Sequence[Signal]],
    candles: Iterable[Candle],
    timeframes: Optional[Iterable[str]] = None,
    *,
    chain_mode: str = "dynamic",
    price_tolerance_s: int = 0,
    start: Optional[int] = None,
    end: Optional[int] = None,
) -> TrendAnalysis:
    """Initial indicators and cross-timeframe propagations for one source.

    ``timeframes`` restricts which timeframes take part (default: every key of
    ``signals_by_timeframe``). ``start``/``end`` are inclusive epoch-second
    bounds applied to the signals. Inputs are never mutated.
    """
    if chain_mode not in CHAIN_MODES:
        raise ValueError(f"Unsupported chain_mode: {chain_mode} (use one of {', '.join(CHAIN_MODES)})")

    available = list(signals_by_timeframe.keys())
    if timeframes:
        wanted = set(timeframes)
        available = [tf for tf in available if tf in wanted]
    if not available:
        return TrendAnalysis()

    order = TimeframeOrder.build(available)
    windowed = {tf: window_signals(signals_by_timeframe.get(tf) or [], start, end) for tf in order.timeframes}
    prices = PriceLookup.from_candles(candles, tolerance_s=price_tolerance_s)

    fastest = order.fastest
    fastest_signals = sorted_signals(windowed[fastest])
    indicators = extract_initial_indicators(fastest_signals, fastest, prices)
    if not indicators:
        log.info("analysis_done mode=%s timeframes=%s indicators=0 propagations=0", chain_mode, list(order.timeframes))
        return TrendAnalysis(timeframes=list(order.timeframes))

    timestamps = [parse_utc(ind.datetime) for ind in indicators]
    if chain_mode == "forward":
        end_timestamps = [parse_utc(ind.end_datetime) for ind in indicators]
        propagations = forward_propagations(order, windowed, indicators, timestamps, end_timestamps, prices)
    else:
        chainer = PropagationChainer(order, windowed, prices)
        chainer.seed(indicators, timestamps)
        propagations = chainer.run()

    log.info(
        "analysis_done mode=%s timeframes=%s indicators=%d propagations=%d",
        chain_mode,
        list(order.timeframes),
        len(indicators),
        len(propagations),
    )
    return TrendAnalysis(
        initial_indicators=indicators,
        propagations=propagations,
        timeframes=list(order.timeframes),
    )
