"""
Timestamp Helpers
=================

B2Chat sends timestamps as ISO 8601 strings ("2024-01-15T10:30:00Z"),
space-separated strings ("2020-11-09 19:10:23") or unix seconds. Naive
values are UTC.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Optional


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a B2Chat timestamp into an aware UTC datetime, or None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        try:
            return ensure_utc(datetime.fromisoformat(value.strip()))
        except ValueError:
            return None
    return None


def to_iso_date(value: Optional[date]) -> Optional[str]:
    """YYYY-MM-DD (UTC for datetimes), or None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value).date().isoformat()
    return value.isoformat()
