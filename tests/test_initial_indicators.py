from trend_propagation.engine import extract_initial_indicators
from trend_propagation.models import Candle, Signal, signal_direction
from trend_propagation.price_lookup import PriceLookup
from trend_propagation.time_format import format_utc

T0 = 1_704_067_200  # 2024-01-01 00:00:00 UTC


def _t(minute: int) -> int:
    return T0 + minute * 60


def _s(minute: int, value: int, tf: str = "1m") -> Signal:
    return Signal(timestamp=_t(minute), value=value, timeframe=tf, source="TEST")


def _prices(opens):
    return PriceLookup.from_candles(
        [Candle(time=_t(m), open=o, high=o, low=o, close=o) for m, o in opens.items()]
    )


def test_end_datetime_falls_back_to_last_signal():
    inds = extract_initial_indicators([_s(1, 1), _s(2, 1)], "1m", _prices({}))
    assert len(inds) == 1
    assert inds[0].datetime == "2024-01-01 00:01:00"
    assert inds[0].end_datetime == "2024-01-01 00:02:00"


def test_zero_signal_is_skipped():
    inds = extract_initial_indicators([_s(1, 1), _s(2, 0), _s(3, 1)], "1m", _prices({}))
    assert len(inds) == 1
    assert inds[0].datetime == format_utc(_t(1))
    assert inds[0].trend_type == 1


def test_direction_changes_and_opposing_end():
    seq = [_s(0, 1), _s(1, 1), _s(2, -1), _s(3, 0), _s(4, -1), _s(5, 1), _s(6, 0)]
    inds = extract_initial_indicators(seq, "1m", _prices({0: 100.0, 2: 98.0}))

    assert [(i.datetime, i.trend_type) for i in inds] == [
        (format_utc(_t(0)), 1),
        (format_utc(_t(2)), -1),
        (format_utc(_t(5)), 1),
    ]
    assert inds[0].end_datetime == format_utc(_t(2))
    assert inds[1].end_datetime == format_utc(_t(5))
    # no opposing signal after the last one -> last timestamp (a zero here)
    assert inds[2].end_datetime == format_utc(_t(6))

    assert inds[0].open_price == 100.0
    assert inds[1].open_price == 98.0
    assert inds[2].open_price == 0.0
    assert all(i.timeframe == "1m" for i in inds)
    assert all(i.directional_change_percent == 0.0 for i in inds)


def test_unsorted_input_is_sorted_and_not_mutated():
    seq = [_s(3, -1), _s(0, 1), _s(1, 0)]
    before = list(seq)
    inds = extract_initial_indicators(seq, "1m", _prices({}))
    assert seq == before
    assert [i.trend_type for i in inds] == [1, -1]
    assert inds[0].end_datetime == format_utc(_t(3))


def test_all_neutral_and_empty():
    assert extract_initial_indicators([_s(0, 0), _s(1, 0)], "1m", _prices({})) == []
    assert extract_initial_indicators([], "1m", _prices({})) == []


def test_out_of_range_values_reduce_to_sign():
    assert [signal_direction(v) for v in (3, 0.5, 0, -0.25, -7)] == [1, 1, 0, -1, -1]

    inds = extract_initial_indicators([_s(0, 2), _s(1, -5)], "1m", _prices({0: 10.0}))
    assert [i.trend_type for i in inds] == [1, -1]
    assert inds[0].end_datetime == "2024-01-01 00:01:00"
