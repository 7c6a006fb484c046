"""Unit tests for the calendar helpers."""
import datetime as dt

from parking.dates import (
    days_until, hours_until, is_current_week, is_future_week, week_end, week_start,
    weeks_between,
)

SUNDAY = dt.date(2026, 10, 18)


def test_week_starts_on_sunday():
    assert week_start(SUNDAY) == SUNDAY
    assert week_start(dt.date(2026, 10, 21)) == SUNDAY  # Wednesday
    assert week_start(dt.date(2026, 10, 24)) == SUNDAY  # Saturday
    assert week_start(dt.date(2026, 10, 25)) == dt.date(2026, 10, 25)
    assert week_end(SUNDAY) == dt.date(2026, 10, 24)


def test_weeks_between_counts_calendar_weeks():
    assert weeks_between(SUNDAY, dt.date(2026, 10, 24)) == 0
    assert weeks_between(dt.date(2026, 10, 24), dt.date(2026, 10, 25)) == 1
    assert weeks_between(SUNDAY, dt.date(2026, 11, 7)) == 2


def test_current_and_future_week():
    assert is_current_week(dt.date(2026, 10, 23), SUNDAY)
    assert not is_future_week(dt.date(2026, 10, 23), SUNDAY)
    assert is_future_week(dt.date(2026, 10, 25), SUNDAY)


def test_days_until_rounds_partial_days_up():
    midnight = dt.datetime(2026, 10, 18)
    assert days_until(dt.date(2026, 10, 28), midnight) == 10

    morning = dt.datetime(2026, 10, 18, 9, 0)
    assert days_until(dt.date(2026, 11, 2), morning) == 15
    # today has already started
    assert days_until(SUNDAY, morning) == 0


def test_hours_until_measures_to_midnight():
    assert hours_until(dt.date(2026, 10, 19), dt.datetime(2026, 10, 18, 12, 0)) == 12
    assert hours_until(SUNDAY, dt.datetime(2026, 10, 18, 6, 0)) == -6


def test_aware_datetimes_use_their_own_timezone():
    from zoneinfo import ZoneInfo
    now = dt.datetime(2026, 10, 18, 22, 0, tzinfo=ZoneInfo("America/Toronto"))
    assert hours_until(dt.date(2026, 10, 19), now) == 2
