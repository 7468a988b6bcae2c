"""
Business Hours
==============

Office-hours arithmetic in the configured timezone.

Timestamps are handled as aware datetimes (naive ones are taken as UTC)
and converted with pytz, so DST transitions shift the office window with
the local clock.
"""

import math
from datetime import date, datetime, timedelta
from typing import Any, List, Optional

import pytz

from chatpulse.sla.domain.entities import MessageForSLA
from chatpulse.sla.domain.value_objects import OfficeHoursConfig
from chatpulse.shared.domain import ensure_utc


def _local(moment: datetime, config: OfficeHoursConfig) -> datetime:
    return ensure_utc(moment).astimezone(config.tz)


def _office_window(day: date, config: OfficeHoursConfig) -> tuple[datetime, datetime]:
    tz = config.tz
    start = tz.localize(datetime.combine(day, config.start_time))
    end = tz.localize(datetime.combine(day, config.end_time))
    return start.astimezone(pytz.UTC), end.astimezone(pytz.UTC)


def is_within_office_hours(moment: datetime, config: OfficeHoursConfig) -> bool:
    """Whether ``moment`` falls on a working day between start (incl.) and end (excl.)."""
    local = _local(moment, config)
    if local.isoweekday() not in config.working_days:
        return False
    current = local.strftime("%H:%M")
    return config.start <= current < config.end


def get_next_business_hour_start(moment: datetime, config: OfficeHoursConfig) -> datetime:
    """
    The next moment office hours are open, in UTC.

    Returns ``moment`` itself when already within office hours.
    """
    if is_within_office_hours(moment, config):
        return ensure_utc(moment)

    local = _local(moment, config)
    if local.isoweekday() in config.working_days and local.strftime("%H:%M") < config.start:
        return _office_window(local.date(), config)[0]

    for days_ahead in range(1, 8):
        candidate = local.date() + timedelta(days=days_ahead)
        if candidate.isoweekday() in config.working_days:
            return _office_window(candidate, config)[0]

    # No working days configured
    return ensure_utc(moment)


def calculate_business_hours_between(
    start: datetime,
    end: datetime,
    config: OfficeHoursConfig
) -> int:
    """
    Seconds between ``start`` and ``end`` that fall inside office hours.

    Walks the local calendar day by day and sums the overlap with each
    working day's office window.
    """
    start = ensure_utc(start)
    end = ensure_utc(end)
    if start >= end:
        return 0

    total_seconds = 0
    day = _local(start, config).date()
    last_day = _local(end, config).date()

    while day <= last_day:
        if day.isoweekday() in config.working_days:
            window_start, window_end = _office_window(day, config)
            overlap_start = max(start, window_start)
            overlap_end = min(end, window_end)
            if overlap_start < overlap_end:
                total_seconds += math.floor((overlap_end - overlap_start).total_seconds())
        day += timedelta(days=1)

    return total_seconds


def business_seconds_between(
    start: Optional[datetime],
    end: Optional[datetime],
    config: OfficeHoursConfig
) -> Optional[int]:
    """calculate_business_hours_between, or None when either end is missing."""
    if start is None or end is None:
        return None
    return calculate_business_hours_between(start, end, config)


def calculate_avg_response_time_bh(
    messages: List[MessageForSLA],
    config: OfficeHoursConfig
) -> Optional[float]:
    """Average customer-to-agent reply time in business seconds."""
    response_times: List[int] = []
    last_customer_at: Any = None

    for message in messages:
        if message.is_customer:
            last_customer_at = message.created_at
        elif message.is_agent and last_customer_at is not None:
            response_times.append(
                calculate_business_hours_between(last_customer_at, message.created_at, config)
            )
            last_customer_at = None

    if not response_times:
        return None
    return sum(response_times) / len(response_times)
