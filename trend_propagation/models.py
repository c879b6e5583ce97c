from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Candle:
    time: int  # epoch seconds, UTC
    open: float
    high: float
    low: float
    close: float


@dataclass(frozen=True)
class Signal:
    timestamp: int  # epoch seconds, UTC
    value: int  # -1, 0 or 1
    timeframe: str
    source: str = ""


def signal_direction(value) -> int:
    """Reduce a raw signal value to its sign."""
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


@dataclass(frozen=True)
class InitialIndicator:
    datetime: str
    trend_type: int
    timeframe: str
    end_datetime: Optional[str]
    open_price: float
    directional_change_percent: float = 0.0

    def as_record(self) -> Dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class Propagation:
    propagation_id: str
    propagation_level: int
    datetime: str
    trend_type: int
    higher_freq: str
    lower_freq: str
    open_price: float
    directional_change_percent: float

    def as_record(self) -> Dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class NeutralGap:
    timeframe: str
    datetime: str
    end_datetime: str
    bars: int


@dataclass(frozen=True)
class TrendAnalysis:
    initial_indicators: List[InitialIndicator] = field(default_factory=list)
    propagations: List[Propagation] = field(default_factory=list)
    timeframes: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, object]:
        return {
            "timeframes": list(self.timeframes),
            "initialIndicators": [i.as_record() for i in self.initial_indicators],
            "propagations": [p.as_record() for p in self.propagations],
        }
