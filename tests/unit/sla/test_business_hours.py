import pytest

from chatpulse.sla.domain import (
    OfficeHoursConfig,
    calculate_business_hours_between,
    get_next_business_hour_start,
    is_within_office_hours,
)
from chatpulse.sla.domain.business_hours import business_seconds_between
from conftest import utc

# New York, 09:00-17:00, Monday-Friday. 2024-01-15 is a Monday (EST, UTC-5).
NEW_YORK = OfficeHoursConfig()


@pytest.mark.parametrize("moment,expected", [
    (utc(2024, 1, 15, 14, 0), True),
    (utc(2024, 1, 15, 13, 59), False),
    (utc(2024, 1, 15, 21, 59), True),
    (utc(2024, 1, 15, 22, 0), False),
    (utc(2024, 1, 20, 15, 0), False),
    (utc(2024, 1, 21, 15, 0), False),
])
def test_is_within_office_hours(moment, expected):
    assert is_within_office_hours(moment, NEW_YORK) is expected


def test_window_follows_daylight_saving():
    # 2024-03-11 is the first Monday on EDT (UTC-4)
    assert is_within_office_hours(utc(2024, 3, 11, 13, 0), NEW_YORK)
    # The Friday before is still EST
    assert not is_within_office_hours(utc(2024, 3, 8, 13, 0), NEW_YORK)


def test_next_start_when_open_is_now():
    moment = utc(2024, 1, 15, 16, 30)

    assert get_next_business_hour_start(moment, NEW_YORK) == moment


def test_next_start_before_opening_is_same_day():
    assert get_next_business_hour_start(utc(2024, 1, 15, 12, 0), NEW_YORK) == utc(2024, 1, 15, 14, 0)


@pytest.mark.parametrize("moment", [
    utc(2024, 1, 19, 22, 30),
    utc(2024, 1, 20, 15, 0),
    utc(2024, 1, 21, 23, 0),
])
def test_next_start_skips_weekend(moment):
    assert get_next_business_hour_start(moment, NEW_YORK) == utc(2024, 1, 22, 14, 0)


def test_business_seconds_across_weekend():
    # Friday 16:00 local to Monday 10:00 local: one hour each side
    assert calculate_business_hours_between(
        utc(2024, 1, 19, 21, 0), utc(2024, 1, 22, 15, 0), NEW_YORK
    ) == 7200


def test_business_seconds_for_a_full_day():
    assert calculate_business_hours_between(
        utc(2024, 1, 15, 14, 0), utc(2024, 1, 16, 14, 0), NEW_YORK
    ) == 8 * 3600


def test_business_seconds_outside_hours_is_zero():
    assert calculate_business_hours_between(
        utc(2024, 1, 20, 10, 0), utc(2024, 1, 21, 20, 0), NEW_YORK
    ) == 0


def test_business_seconds_with_reversed_bounds_is_zero():
    assert calculate_business_hours_between(
        utc(2024, 1, 15, 16, 0), utc(2024, 1, 15, 15, 0), NEW_YORK
    ) == 0


def test_business_seconds_missing_bound():
    assert business_seconds_between(None, utc(2024, 1, 15, 15, 0), NEW_YORK) is None
    assert business_seconds_between(utc(2024, 1, 15, 15, 0), None, NEW_YORK) is None


def test_no_working_days_never_opens():
    closed = OfficeHoursConfig(working_days=[])
    moment = utc(2024, 1, 15, 15, 0)

    assert not is_within_office_hours(moment, closed)
    assert get_next_business_hour_start(moment, closed) == moment
    assert calculate_business_hours_between(moment, utc(2024, 1, 22, 15, 0), closed) == 0
