from datetime import datetime, timedelta

import pytz

UTC = pytz.utc


def to_utc(dt: datetime) -> datetime:
    """Return a tz-aware UTC datetime; naive values are taken to already be UTC."""
    if dt.tzinfo is None:
        return UTC.localize(dt)
    return dt.astimezone(UTC)


def now_utc() -> datetime:
    return datetime.now(UTC)


def month_key(dt: datetime) -> str:
    """Calendar month bucket, e.g. '2024-03'."""
    return to_utc(dt).strftime("%Y-%m")


def hours_between(start: datetime, end: datetime) -> float:
    return (to_utc(end) - to_utc(start)) / timedelta(hours=1)


def year_fraction(start: datetime, end: datetime) -> float:
    return (to_utc(end) - to_utc(start)) / timedelta(days=365)
