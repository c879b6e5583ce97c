from trend_propagation.models import Signal
from trend_propagation.signal_filters import neutral_gaps, signal_changes
from trend_propagation.time_format import format_utc

T0 = 1_704_067_200


def _s(tf: str, minute: int, value: int) -> Signal:
    return Signal(timestamp=T0 + minute * 60, value=value, timeframe=tf)


def test_signal_changes_keeps_flips_per_timeframe():
    sigs = [
        _s("1m", 2, 1), _s("1m", 0, 1), _s("1m", 3, -1), _s("1m", 4, 0), _s("1m", 5, 1),
        _s("5m", 5, -1), _s("5m", 10, -1),
    ]
    kept = signal_changes(sigs)
    assert [(s.timeframe, s.timestamp) for s in kept] == [
        ("1m", T0),
        ("1m", T0 + 3 * 60),  # zero counts as down, so 4 is not a flip
        ("1m", T0 + 5 * 60),
        ("5m", T0 + 5 * 60),
    ]


def test_neutral_gaps_interior_and_trailing():
    sigs = [_s("5m", m, 0) for m in (0, 5, 10)] + [_s("5m", 15, 1)] + [_s("5m", m, 0) for m in (20, 25)]
    gaps = neutral_gaps(sigs, min_bars=2)
    assert len(gaps) == 2
    assert gaps[0].datetime == format_utc(T0)
    assert gaps[0].end_datetime == format_utc(T0 + 3 * 300)
    assert gaps[0].bars == 3
    assert gaps[1].datetime == format_utc(T0 + 20 * 60)
    assert gaps[1].bars == 2


def test_neutral_gaps_respect_min_bars():
    sigs = [_s("1m", 0, 1), _s("1m", 1, 0), _s("1m", 2, 0), _s("1m", 3, -1)]
    assert neutral_gaps(sigs) == []
    assert len(neutral_gaps(sigs, min_bars=2)) == 1
