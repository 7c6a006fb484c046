"""Unit tests for the penalty policy functions."""
import datetime as dt

import pytest

from parking.policy import (
    BOOKING_POLICIES, evaluate_booking_penalty, evaluate_cancellation_penalty,
    evaluate_weekly_booking_penalty, get_booking_policy, is_late_cancellation,
    suspension_due,
)

MIDNIGHT = dt.datetime(2026, 10, 18)


def _days(n):
    return (MIDNIGHT + dt.timedelta(days=n)).date()


@pytest.mark.parametrize("days_ahead", [0, 1, 5, 9, 10])
def test_booking_within_grace_window_is_free(days_ahead):
    decision = evaluate_booking_penalty(_days(days_ahead), MIDNIGHT, multiplier=3)
    assert decision.exempt
    assert decision.points == 0


@pytest.mark.parametrize("days_ahead, periods", [
    (11, 1), (15, 1), (20, 1), (21, 2), (25, 2), (30, 2), (31, 3), (60, 5),
])
def test_booking_charges_per_started_ten_day_period(days_ahead, periods):
    decision = evaluate_booking_penalty(_days(days_ahead), MIDNIGHT, multiplier=1)
    assert not decision.exempt
    assert decision.points == periods


def test_booking_reason_reports_periods():
    one = evaluate_booking_penalty(_days(15), MIDNIGHT, multiplier=1)
    two = evaluate_booking_penalty(_days(25), MIDNIGHT, multiplier=1)
    assert one.reason == "Reserved 1 penalty period in advance"
    assert two.reason == "Reserved 2 penalty periods in advance"


def test_booking_scales_with_multiplier():
    assert evaluate_booking_penalty(_days(25), MIDNIGHT, multiplier=2).points == 4
    assert evaluate_booking_penalty(_days(25), MIDNIGHT, multiplier=0.5).points == 1


def test_partial_day_counts_as_full_day_ahead():
    # 10 days and 1 hour ahead -> 11 days
    now = dt.datetime(2026, 10, 17, 23, 0)
    decision = evaluate_booking_penalty(dt.date(2026, 10, 28), now, multiplier=1)
    assert decision.points == 1


def test_weekly_policy_counts_sunday_weeks():
    sunday = dt.datetime(2026, 10, 18, 9, 0)
    assert evaluate_weekly_booking_penalty(dt.date(2026, 10, 24), sunday, 1).exempt
    assert evaluate_weekly_booking_penalty(dt.date(2026, 10, 25), sunday, 1).points == 1
    decision = evaluate_weekly_booking_penalty(dt.date(2026, 11, 7), sunday, 2)
    assert decision.points == 4
    assert decision.reason == "Reserved 2 weeks in advance"


def test_weekly_and_ten_day_policies_differ():
    saturday = dt.datetime(2026, 10, 24, 9, 0)
    # next day is a new week but well inside the ten-day grace window
    assert evaluate_weekly_booking_penalty(dt.date(2026, 10, 25), saturday, 1).points == 1
    assert evaluate_booking_penalty(dt.date(2026, 10, 25), saturday, 1).points == 0


def test_cancellation_twelve_hours_ahead_is_free():
    decision = evaluate_cancellation_penalty(dt.date(2026, 10, 19), dt.datetime(2026, 10, 18, 12, 0), 5)
    assert decision.exempt
    assert decision.points == 0


@pytest.mark.parametrize("now", [
    dt.datetime(2026, 10, 18, 12, 1),
    dt.datetime(2026, 10, 18, 23, 59),
    dt.datetime(2026, 10, 19, 8, 0),
])
def test_late_cancellation_is_a_flat_charge(now):
    decision = evaluate_cancellation_penalty(dt.date(2026, 10, 19), now, 1.5)
    assert not decision.exempt
    assert decision.points == 1.5
    assert decision.reason == "Cancelled less than 12 hours before reservation"
    assert is_late_cancellation(dt.date(2026, 10, 19), now)


def test_suspension_is_sticky():
    assert suspension_due(False, 90, 90)
    assert not suspension_due(False, 89.5, 90)
    assert suspension_due(True, 0, 90)


def test_policy_lookup():
    assert get_booking_policy("ten_day") is evaluate_booking_penalty
    assert get_booking_policy("weekly") is evaluate_weekly_booking_penalty
    assert set(BOOKING_POLICIES) == {"ten_day", "weekly"}
    with pytest.raises(ValueError):
        get_booking_policy("monthly")
