# ============================================================
# policy.py - Penalty policy engine
# ------------------------------------------------------------
# Pure functions, no I/O: given a reservation date, the current
# instant and a multiplier, decide how many penalty points to
# assess. Settings are looked up by the caller and passed in.
#
#   - booking      : charged for reserving far in advance
#   - cancellation : flat charge for cancelling < 12h before
#
# Two booking variants exist (fixed 10-day buckets, Sunday
# weeks); a deployment picks exactly one via get_booking_policy.
# ============================================================
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict

from parking.dates import days_until, hours_until, weeks_between

GRACE_DAYS = 10
LATE_CANCELLATION_HOURS = 12


@dataclass(frozen=True)
class PenaltyDecision:
    points: float
    reason: str
    exempt: bool

    @classmethod
    def none(cls, reason: str) -> "PenaltyDecision":
        return cls(points=0, reason=reason, exempt=True)


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'s' if n != 1 else ''}"


def evaluate_booking_penalty(reservation_date: date, now: datetime, multiplier: float) -> PenaltyDecision:
    """Ten-day bucket policy.

    The first GRACE_DAYS days ahead are free; every further started
    10-day period costs `multiplier` points (11..20 days -> 1 period,
    21..30 -> 2, ...).
    """
    days_ahead = days_until(reservation_date, now)
    if days_ahead <= GRACE_DAYS:
        return PenaltyDecision.none(f"No penalty for reservations within {GRACE_DAYS} days")

    periods = math.ceil(days_ahead / GRACE_DAYS) - 1
    return PenaltyDecision(
        points=periods * multiplier,
        reason=f"Reserved {_plural(periods, 'penalty period')} in advance",
        exempt=False,
    )


def evaluate_weekly_booking_penalty(reservation_date: date, now: datetime, multiplier: float) -> PenaltyDecision:
    """Week-aligned policy: one charge per calendar week (Sunday start) ahead of the current week."""
    weeks = weeks_between(now.date(), reservation_date)
    if weeks <= 0:
        return PenaltyDecision.none("No penalty for reservations in the current week")

    return PenaltyDecision(
        points=weeks * multiplier,
        reason=f"Reserved {_plural(weeks, 'week')} in advance",
        exempt=False,
    )


def evaluate_cancellation_penalty(reservation_date: date, now: datetime, multiplier: float) -> PenaltyDecision:
    if is_late_cancellation(reservation_date, now):
        return PenaltyDecision(
            points=multiplier,
            reason=f"Cancelled less than {LATE_CANCELLATION_HOURS} hours before reservation",
            exempt=False,
        )
    return PenaltyDecision.none("No penalty for early cancellation")


def is_late_cancellation(reservation_date: date, now: datetime) -> bool:
    return hours_until(reservation_date, now) < LATE_CANCELLATION_HOURS


def suspension_due(suspended: bool, penalty_points: float, threshold: float) -> bool:
    """Suspension is sticky: once set it is only lifted by an admin."""
    return suspended or penalty_points >= threshold


BookingPolicy = Callable[[date, datetime, float], PenaltyDecision]

BOOKING_POLICIES: Dict[str, BookingPolicy] = {
    "ten_day": evaluate_booking_penalty,
    "weekly": evaluate_weekly_booking_penalty,
}


def get_booking_policy(name: str) -> BookingPolicy:
    try:
        return BOOKING_POLICIES[name]
    except KeyError:
        raise ValueError(
            f"unknown booking penalty policy {name!r} (expected one of {', '.join(BOOKING_POLICIES)})"
        ) from None
