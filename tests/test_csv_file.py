import pytest

from trend_propagation.providers.csv_file import (
    CsvFormatError,
    detect_datetime_format,
    load_csv,
    parse_csv_text,
    source_id_for,
)
from trend_propagation.time_format import format_utc

SAMPLE = """datetime,open,high,low,close,chain_detected_1m,chain_detected_5m,chain_detected_1d
2024-01-01 00:00:00,100,101,99,100.5,1,0,1
2024-01-01 00:01:00,100.5,102,100,101,0,,0
2024-01-01 00:02:00,101,103,100,102,-2,1,0

"""


def test_parse_sample():
    ds = parse_csv_text(SAMPLE, source_id="BTC")
    assert ds.datetime_format == "YYYY-MM-DD HH:mm:ss"
    assert ds.timeframes == ["1m", "5m"]
    assert ds.skipped_timeframes == ["1d"]
    assert len(ds.candles) == 3
    assert ds.candles[0].open == 100.0
    assert format_utc(ds.candles[2].time) == "2024-01-01 00:02:00"

    assert [s.value for s in ds.signals["1m"]] == [1, 0, -1]  # -2 clamped
    # blank cell skipped
    assert [format_utc(s.timestamp) for s in ds.signals["5m"]] == ["2024-01-01 00:00:00", "2024-01-01 00:02:00"]
    assert all(s.source == "BTC" for s in ds.signals["1m"])
    assert ds.start.hour == 0 and ds.end.minute == 2


def test_header_is_case_insensitive():
    text = "DateTime, Open ,HIGH,low,Close,Chain_Detected_15m\n2024-01-01 00:00:00,1,1,1,1,1\n"
    ds = parse_csv_text(text)
    assert ds.timeframes == ["15m"]


def test_missing_columns():
    with pytest.raises(CsvFormatError) as exc:
        parse_csv_text("datetime,open,high,close\n2024-01-01 00:00:00,1,1,1\n")
    assert "low" in str(exc.value)
    assert exc.value.line == 1


def test_header_only_is_rejected():
    with pytest.raises(CsvFormatError):
        parse_csv_text("datetime,open,high,low,close\n")


def test_bad_datetime_reports_line():
    text = "datetime,open,high,low,close\n2024-01-01 00:00:00,1,1,1,1\n2024-01-01 xx,1,1,1,1\n"
    with pytest.raises(CsvFormatError) as exc:
        parse_csv_text(text)
    assert exc.value.line == 3


def test_bad_number_reports_line():
    text = "datetime,open,high,low,close\n2024-01-01 00:00:00,1,abc,1,1\n"
    with pytest.raises(CsvFormatError) as exc:
        parse_csv_text(text)
    assert exc.value.line == 2


def test_unknown_first_datetime():
    with pytest.raises(CsvFormatError):
        parse_csv_text("datetime,open,high,low,close\n01.01.2024 00:00,1,1,1,1\n")


def test_detect_day_first_slash():
    rows = [["01/02/2024 00:00:00"], ["25/02/2024 00:00:00"]]
    assert detect_datetime_format(rows[0][0], rows) == "DD/MM/YYYY HH:mm:ss"


def test_detect_month_first_dash_and_default():
    rows = [["02-25-2024 00:00:00"]]
    assert detect_datetime_format(rows[0][0], rows) == "MM-DD-YYYY HH:mm:ss"
    rows = [["02-03-2024 00:00:00"]]
    assert detect_datetime_format(rows[0][0], rows) == "MM-DD-YYYY HH:mm:ss"


def test_detect_year_day_month():
    rows = [["2024-01-02 00:00:00"], ["2024-25-02 00:00:00"]]
    assert detect_datetime_format(rows[0][0], rows) == "YYYY-DD-MM HH:mm:ss"
    text = "datetime,open,high,low,close\n2024-01-02 00:00:00,1,1,1,1\n2024-25-02 00:00:00,1,1,1,1\n"
    ds = parse_csv_text(text)
    assert format_utc(ds.candles[0].time) == "2024-02-01 00:00:00"
    assert format_utc(ds.candles[1].time) == "2024-02-25 00:00:00"


def test_day_first_file_parses_as_utc():
    text = "datetime,open,high,low,close\n13/01/2024 10:00:00,1,1,1,1\n"
    ds = parse_csv_text(text)
    assert ds.datetime_format == "DD/MM/YYYY HH:mm:ss"
    assert format_utc(ds.candles[0].time) == "2024-01-13 10:00:00"


def test_load_csv_uses_file_stem(tmp_path):
    p = tmp_path / "spy_etf.CSV"
    p.write_text(SAMPLE, encoding="utf-8")
    ds = load_csv(str(p))
    assert ds.source_id == "spy_etf"
    assert source_id_for("/x/y/appl.csv") == "appl"
