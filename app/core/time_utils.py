# app/core/time_utils.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """
    Normalize a datetime read back from the database.

    Postgres returns aware timestamps; SQLite drops the offset. All rows
    are written in UTC, so a naive value is UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_day_start(now: datetime | None = None) -> datetime:
    """
    Local midnight of the current day, expressed in UTC.

    Daily order/token counters reset at the restaurant server's local midnight.
    """
    local_now = (now or utcnow()).astimezone()
    midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)
