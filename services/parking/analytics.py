"""Aggregates for the admin analytics page."""
from datetime import date

from parking.dates import week_end, week_start
from parking.models import (
    PARKING_SLOTS, PENALTY_FUTURE_BOOKING, PENALTY_LATE_CANCELLATION, STATUS_ACTIVE,
)
from parking.repository import Storage

TOP_USERS = 5


def summarize(storage: Storage, today: date) -> dict:
    penalties = storage.list_penalties()
    reservations = storage.list_reservations()
    users = storage.list_users()

    active = [r for r in reservations if r.status == STATUS_ACTIVE]

    # utilization of the current Sunday..Saturday week
    start, end = week_start(today), week_end(today)
    this_week = [r for r in active if start <= r.date <= end]
    utilization = len(this_week) / (len(PARKING_SLOTS) * 7) * 100

    ranked = sorted(users, key=lambda u: u.penalty_points, reverse=True)

    return {
        "total_penalties": sum(p.points for p in penalties),
        "active_reservations": len(active),
        "utilization": round(utilization, 1),
        "suspended_users": sum(1 for u in users if u.suspended),
        "top_penalty_users": [
            {"id": u.id, "username": u.username, "penalty_points": u.penalty_points}
            for u in ranked[:TOP_USERS]
        ],
        "penalty_breakdown": {
            PENALTY_FUTURE_BOOKING: sum(p.points for p in penalties if p.type == PENALTY_FUTURE_BOOKING),
            PENALTY_LATE_CANCELLATION: sum(p.points for p in penalties if p.type == PENALTY_LATE_CANCELLATION),
        },
    }
