from datetime import datetime, timezone

from pseudolite_nav.utils.gps_time import (
    NANOS_IN_WEEK,
    SECONDS_IN_WEEK,
    GpsTime,
    gps_week_and_tow_from_utc,
    leap_seconds_at_utc,
    week_time_difference_s,
    wrap_week,
)


def test_week_and_tow_from_nanos() -> None:
    gps_time = GpsTime.from_gps_epoch_nanos(2300 * NANOS_IN_WEEK + 1_500_000_000)
    assert gps_time.week == 2300
    assert gps_time.nanos_of_week == 1_500_000_000
    assert gps_time.tow_s == 1.5
    assert gps_time.week_start_nanos == 2300 * NANOS_IN_WEEK


def test_from_utc_adds_leap_seconds() -> None:
    week, tow = gps_week_and_tow_from_utc(datetime(2017, 1, 1, tzinfo=timezone.utc))
    assert week == 1930
    assert tow == 18.0
    assert leap_seconds_at_utc(datetime(2016, 12, 31, 23, 59, 59, tzinfo=timezone.utc)) == 17


def test_utc_and_day_of_year_round_trip() -> None:
    utc = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
    gps_time = GpsTime.from_utc(utc)
    assert gps_time.utc == utc
    assert gps_time.day_of_year == 61


def test_wrap_week_moves_week_counter() -> None:
    assert wrap_week(-1.0, 100) == (SECONDS_IN_WEEK - 1.0, 99)
    assert wrap_week(SECONDS_IN_WEEK + 2.0, 100) == (2.0, 101)
    assert wrap_week(float(SECONDS_IN_WEEK), 100) == (0.0, 101)
    assert wrap_week(10.0, 100) == (10.0, 100)


def test_week_time_difference_crosses_boundary() -> None:
    assert week_time_difference_s(1.0, 101, SECONDS_IN_WEEK - 1.0, 100) == 2.0
