from __future__ import annotations

import csv
import io
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..models import Candle, Signal, signal_direction
from ..time_format import to_epoch_seconds

log = logging.getLogger("csv_file")

REQUIRED_COLUMNS = ("datetime", "open", "high", "low", "close")
SIGNAL_PREFIX = "chain_detected_"
DISAMBIGUATION_ROWS = 50

_SIGNAL_TF_RE = re.compile(r"^\d+[smh]$")
_YMD_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2}) (\d{2}):(\d{2}):(\d{2})$")
_DASH_RE = re.compile(r"^(\d{2})-(\d{2})-(\d{4}) (\d{2}):(\d{2}):(\d{2})$")
_SLASH_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{4}) (\d{2}):(\d{2}):(\d{2})$")

# field order inside the date part -> (year, month, day) positions
_LAYOUTS: Dict[str, Tuple[re.Pattern, Tuple[int, int, int]]] = {
    "YYYY-MM-DD HH:mm:ss": (_YMD_RE, (1, 2, 3)),
    "YYYY-DD-MM HH:mm:ss": (_YMD_RE, (1, 3, 2)),
    "DD-MM-YYYY HH:mm:ss": (_DASH_RE, (3, 2, 1)),
    "MM-DD-YYYY HH:mm:ss": (_DASH_RE, (3, 1, 2)),
    "DD/MM/YYYY HH:mm:ss": (_SLASH_RE, (3, 2, 1)),
    "MM/DD/YYYY HH:mm:ss": (_SLASH_RE, (3, 1, 2)),
}


class CsvFormatError(ValueError):
    def __init__(self, message: str, line: Optional[int] = None) -> None:
        super().__init__(message if line is None else f"{message} (line {line})")
        self.line = line


@dataclass
class CsvDataset:
    source_id: str
    candles: List[Candle]
    signals: Dict[str, List[Signal]]
    timeframes: List[str]
    datetime_format: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    skipped_timeframes: List[str] = field(default_factory=list)


def is_valid_timeframe(tf: str) -> bool:
    return bool(_SIGNAL_TF_RE.match(tf))


def _parser_for(fmt: str) -> Callable[[str], Optional[datetime]]:
    pattern, (yi, mi, di) = _LAYOUTS[fmt]

    def _parse(text: str) -> Optional[datetime]:
        m = pattern.match(text)
        if not m:
            return None
        try:
            return datetime(
                int(m.group(yi)),
                int(m.group(mi)),
                int(m.group(di)),
                int(m.group(4)),
                int(m.group(5)),
                int(m.group(6)),
                tzinfo=timezone.utc,
            )
        except ValueError:
            return None

    return _parse


def _first_fields(rows: Sequence[List[str]], idx: int, pattern: re.Pattern):
    for row in rows[:DISAMBIGUATION_ROWS]:
        if idx >= len(row):
            continue
        m = pattern.match(row[idx])
        if m:
            yield m


def detect_datetime_format(sample: str, rows: Sequence[List[str]] = (), idx: int = 0) -> Optional[str]:
    """Pick the datetime layout for a file from its first value.

    Ambiguous layouts are settled by scanning up to 50 rows for a field that
    can only be a day (> 12). Day/month-first files with no such field default
    to month-first.
    """
    sample = (sample or "").strip()
    if _YMD_RE.match(sample):
        for m in _first_fields(rows, idx, _YMD_RE):
            if int(m.group(2)) > 12:
                return "YYYY-DD-MM HH:mm:ss"
            if int(m.group(3)) > 12:
                return "YYYY-MM-DD HH:mm:ss"
        return "YYYY-MM-DD HH:mm:ss"

    for pattern, sep in ((_DASH_RE, "-"), (_SLASH_RE, "/")):
        if not pattern.match(sample):
            continue
        for m in _first_fields(rows, idx, pattern):
            if int(m.group(1)) > 12:
                return f"DD{sep}MM{sep}YYYY HH:mm:ss"
            if int(m.group(2)) > 12:
                return f"MM{sep}DD{sep}YYYY HH:mm:ss"
        return f"MM{sep}DD{sep}YYYY HH:mm:ss"
    return None


def _float(text: str) -> Optional[float]:
    try:
        return float(text)
    except (TypeError, ValueError):
        return None


def parse_csv_text(text: str, source_id: str = "") -> CsvDataset:
    rows = [[v.strip() for v in row] for row in csv.reader(io.StringIO(text))]
    lines = [(i + 1, row) for i, row in enumerate(rows) if any(v for v in row)]
    if len(lines) < 2:
        raise CsvFormatError("CSV file must contain at least a header row and one data row")

    _, header_row = lines[0]
    headers = [h.lower() for h in header_row]
    missing = [c for c in REQUIRED_COLUMNS if c not in headers]
    if missing:
        raise CsvFormatError(f"Missing required columns: {', '.join(missing)}", 1)
    dt_idx, o_idx, h_idx, l_idx, c_idx = (headers.index(c) for c in REQUIRED_COLUMNS)

    signal_cols: List[Tuple[int, str]] = []
    skipped: List[str] = []
    for idx, header in enumerate(headers):
        if not header.startswith(SIGNAL_PREFIX):
            continue
        tf = header[len(SIGNAL_PREFIX):]
        if is_valid_timeframe(tf):
            signal_cols.append((idx, tf))
        else:
            skipped.append(tf)
            log.warning("csv_timeframe_skipped tf=%r (must be {number}{s|m|h})", tf)

    data = lines[1:]
    data_rows = [row for _, row in data]
    first_line, first_row = data[0]
    first_dt = first_row[dt_idx] if dt_idx < len(first_row) else ""
    fmt = detect_datetime_format(first_dt, data_rows, dt_idx)
    if fmt is None:
        raise CsvFormatError(
            "Invalid datetime format in first data row. Expected YYYY-MM-DD, YYYY-DD-MM, "
            "DD-MM-YYYY, MM-DD-YYYY, DD/MM/YYYY or MM/DD/YYYY followed by HH:mm:ss",
            first_line,
        )
    parse_dt = _parser_for(fmt)

    candles: List[Candle] = []
    signals: Dict[str, List[Signal]] = {tf: [] for _, tf in signal_cols}
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    for line_no, row in data:
        if len(row) < len(REQUIRED_COLUMNS):
            raise CsvFormatError("Insufficient columns", line_no)
        dt_text = row[dt_idx] if dt_idx < len(row) else ""
        dt = parse_dt(dt_text)
        if dt is None:
            raise CsvFormatError(f"Invalid datetime {dt_text!r}", line_no)

        prices = [_float(row[i]) if i < len(row) else None for i in (o_idx, h_idx, l_idx, c_idx)]
        if any(p is None for p in prices):
            raise CsvFormatError("Invalid numeric value", line_no)

        ts = to_epoch_seconds(dt)
        candles.append(Candle(ts, *prices))
        for idx, tf in signal_cols:
            raw = _float(row[idx]) if idx < len(row) else None
            if raw is None:
                continue
            signals[tf].append(Signal(timestamp=ts, value=signal_direction(raw), timeframe=tf, source=source_id))

        start = dt if start is None or dt < start else start
        end = dt if end is None or dt > end else end

    log.info(
        "csv_parsed source=%s rows=%d format=%s timeframes=%s",
        source_id,
        len(candles),
        fmt,
        [tf for _, tf in signal_cols],
    )
    return CsvDataset(
        source_id=source_id,
        candles=candles,
        signals=signals,
        timeframes=[tf for _, tf in signal_cols],
        datetime_format=fmt,
        start=start,
        end=end,
        skipped_timeframes=skipped,
    )


def source_id_for(path: str) -> str:
    return re.sub(r"\.csv$", "", os.path.basename(path), flags=re.IGNORECASE)


def load_csv(path: str, source_id: Optional[str] = None) -> CsvDataset:
    with open(path, "r", encoding="utf-8", newline="") as f:
        text = f.read()
    return parse_csv_text(text, source_id=source_id or source_id_for(path))
