"""
Timestamp helpers.

All timestamps are produced by this process's local clock and written as
fixed-width ISO-8601 strings, so "today" windows compare correctly as
strings (SQLite) and as timestamps (PostgreSQL).
"""

from datetime import datetime, date, timedelta
from typing import Optional, Tuple, Union


def local_now() -> datetime:
    """Store-server clock."""
    return datetime.now()


def to_db_timestamp(dt: datetime) -> str:
    return dt.isoformat(timespec="microseconds")


def to_db_date(d: date) -> str:
    return d.isoformat()


def day_bounds(now: datetime) -> Tuple[str, str]:
    """Start of the local day and start of the next one, as DB strings."""
    start = datetime.combine(now.date(), datetime.min.time())
    return to_db_timestamp(start), to_db_timestamp(start + timedelta(days=1))


def as_date(value: Union[None, str, date, datetime]) -> Optional[date]:
    """Normalize a DB date/timestamp value (driver-dependent type) to a date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
