from datetime import date, datetime

import pytest

from app.time_utils import as_date, day_bounds, parse_iso_date, parse_iso_datetime, to_utc_z


def test_parse_iso_datetime_normalizes_to_naive_utc():
    assert parse_iso_datetime("2025-01-15T17:30:00+07:00") == datetime(2025, 1, 15, 10, 30)
    assert parse_iso_datetime("2025-01-15T10:30:00Z") == datetime(2025, 1, 15, 10, 30)
    assert parse_iso_datetime("  ") is None


def test_parse_iso_date():
    assert parse_iso_date("2025-01-15") == date(2025, 1, 15)
    assert parse_iso_date("2025-01-15T23:30:00-02:00") == date(2025, 1, 16)
    with pytest.raises(ValueError):
        parse_iso_date("15/01/2025")


def test_day_bounds_are_half_open():
    start, end = day_bounds(date(2025, 1, 15))

    assert start == datetime(2025, 1, 15)
    assert end == datetime(2025, 1, 16)
    assert as_date(datetime(2025, 1, 15, 23, 59)) == date(2025, 1, 15)


def test_to_utc_z():
    assert to_utc_z(datetime(2025, 1, 15, 10, 30, 5, 999)) == "2025-01-15T10:30:05Z"
    assert to_utc_z(None) is None
