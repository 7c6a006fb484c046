# ============================================================
# dates.py - Clock and calendar helpers
# ------------------------------------------------------------
# Reservations carry a date only; they are considered to start
# at midnight in the timezone of the `now` they are compared to.
# Weeks start on Sunday.
# ============================================================
import math
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

DAY = timedelta(days=1)
HOUR = timedelta(hours=1)


def local_clock(tz: ZoneInfo) -> Callable[[], datetime]:
    def now() -> datetime:
        return datetime.now(tz)
    return now


def start_of_day(day: date, tzinfo=None) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tzinfo)


def days_until(day: date, now: datetime) -> int:
    """Whole days from `now` until `day` begins, partial days rounded up."""
    return math.ceil((start_of_day(day, now.tzinfo) - now) / DAY)


def hours_until(day: date, now: datetime) -> float:
    return (start_of_day(day, now.tzinfo) - now) / HOUR


def week_start(day: date) -> date:
    # date.weekday(): Monday=0 ... Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_end(day: date) -> date:
    return week_start(day) + timedelta(days=6)


def weeks_between(start: date, end: date) -> int:
    """Number of Sunday-aligned weeks from `start`'s week to `end`'s week."""
    return (week_start(end) - week_start(start)).days // 7


def is_current_week(day: date, today: date) -> bool:
    return week_start(day) == week_start(today)


def is_future_week(day: date, today: date) -> bool:
    return week_start(day) > week_start(today)


def parse_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    return date.fromisoformat(value)
