from datetime import timedelta, timezone

import pytest

from doodl.services.errors import ValidationError
from doodl.services.timeframes import (
    from_epoch_ms,
    parse_offset,
    resolve_day_range,
    resolve_timezone,
)


def test_fixed_offset_day_bounds_are_exact():
    assert resolve_day_range("2024-03-10", "+0800") == (1710000000000, 1710086400000)
    assert resolve_day_range("2024-03-10", "+08:00") == (1710000000000, 1710086400000)


def test_negative_offset_and_default_zone():
    start, end = resolve_day_range("2024-03-10", "-05:30")
    assert start == 1710028800000 + int(5.5 * 3600 * 1000)
    assert end - start == 86_400_000

    assert resolve_day_range("2024-03-10", None) == (1710028800000, 1710115200000)


def test_iana_zone_follows_dst_transition():
    start, end = resolve_day_range("2024-03-10", "America/New_York")

    assert start == 1710046800000
    assert end == 1710129600000
    assert end - start == 23 * 3600 * 1000


def test_iana_zone_on_regular_day():
    start, end = resolve_day_range("2024-06-01", "Asia/Tokyo")

    assert from_epoch_ms(start).isoformat() == "2024-05-31T15:00:00+00:00"
    assert end - start == 86_400_000


@pytest.mark.parametrize("day", ["2024-02-30", "10/03/2024", "", "2024-3-1"])
def test_invalid_dates_are_rejected(day):
    with pytest.raises(ValidationError):
        resolve_day_range(day, "UTC")


@pytest.mark.parametrize("zone", ["Mars/Olympus", "+15:00", "+08:75"])
def test_invalid_timezones_are_rejected(zone):
    with pytest.raises(ValidationError):
        resolve_timezone(zone)


def test_parse_offset():
    assert parse_offset("-0130") == timezone(-timedelta(hours=1, minutes=30))
    assert parse_offset("Europe/Paris") is None
