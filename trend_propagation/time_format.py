from datetime import datetime, timezone

DATETIME_FMT = "%Y-%m-%d %H:%M:%S"


def format_utc(ts: int) -> str:
    """Render epoch seconds as the canonical ``YYYY-MM-DD HH:MM:SS`` UTC string.

    Results are compared against input signal timestamps by string equality,
    so no offset and no fractional seconds are ever emitted.
    """
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).strftime(DATETIME_FMT)


def parse_utc(text: str) -> int:
    """Parse a canonical UTC datetime string back to epoch seconds."""
    dt = datetime.strptime(text.strip(), DATETIME_FMT).replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def to_epoch_seconds(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())
