from __future__ import annotations

from trend_propagation.engine import extract_trend_indicators
from trend_propagation.models import Candle, Signal

T0 = 1_704_067_200


def signal(tf: str, minute: int, value: int) -> Signal:
    return Signal(timestamp=T0 + minute * 60, value=value, timeframe=tf, source="SMOKE")


def candles(opens):
    return [Candle(T0 + m * 60, o, o, o, o) for m, o in sorted(opens.items())]


def interleaved_sequence():
    """Two chains on 1m that overlap on 3m/5m/15m; the modes may disagree here."""
    sigs = [
        signal("1m", 0, 1), signal("1m", 6, -1), signal("1m", 9, 1), signal("1m", 40, 0),
        signal("3m", 3, 1), signal("3m", 12, 1),
        signal("5m", 5, -1), signal("5m", 10, 1),
        signal("15m", 15, 1),
    ]
    out = {}
    for s in sigs:
        out.setdefault(s.timeframe, []).append(s)
    return out


def run_case(name: str, mode: str) -> None:
    res = extract_trend_indicators(
        interleaved_sequence(),
        candles({0: 100.0, 3: 101.0, 5: 99.5, 6: 99.0, 9: 100.5, 10: 101.5, 12: 102.0, 15: 103.0}),
        chain_mode=mode,
    )
    print(f"{name}: indicators={len(res.initial_indicators)} propagations={len(res.propagations)}")
    for p in res.propagations:
        print(
            f"  {p.propagation_id} L{p.propagation_level} {p.datetime} "
            f"{p.higher_freq}->{p.lower_freq} {p.directional_change_percent:+.3f}%"
        )


def main():
    run_case("dynamic", "dynamic")
    run_case("forward", "forward")


if __name__ == "__main__":
    main()
