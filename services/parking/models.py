# ============================================================
# models.py - SQLModel data models (Parking service)
# ------------------------------------------------------------
# Table models shared by every storage backend:
#   1. User        : account + running penalty total
#   2. Reservation : one slot pinned to one calendar date
#   3. Penalty     : ledger entry explaining penalty points
#   4. Setting     : flat key/value configuration
# followed by the request/response schemas of the HTTP API.
# ============================================================
import datetime as dt
from typing import Optional

from pydantic import FiniteFloat
from sqlalchemy import Index, text
from sqlmodel import SQLModel, Field


PARKING_SLOTS = ("24", "25", "37", "38", "39", "40", "41", "42")

ROLE_ADMIN = "admin"
ROLE_USER = "user"

STATUS_ACTIVE = "active"
STATUS_CANCELLED = "cancelled"
STATUS_COMPLETED = "completed"

PENALTY_FUTURE_BOOKING = "future_booking"
PENALTY_LATE_CANCELLATION = "late_cancellation"

WEEKLY_PENALTY_MULTIPLIER = "WEEKLY_PENALTY_MULTIPLIER"
LATE_CANCELLATION_PENALTY = "LATE_CANCELLATION_PENALTY"
AUTO_SUSPEND_PENALTY_THRESHOLD = "AUTO_SUSPEND_PENALTY_THRESHOLD"

DEFAULT_SETTINGS = {
    WEEKLY_PENALTY_MULTIPLIER: "1",
    LATE_CANCELLATION_PENALTY: "1",
    AUTO_SUSPEND_PENALTY_THRESHOLD: "90",
}


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


# ------------------------------------------------------------
# User
# ------------------------------------------------------------
# penalty_points must always equal the sum of the user's
# Penalty rows; only the ledger writes it (and `suspended`).
# ------------------------------------------------------------
class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    password: str
    role: str = ROLE_USER
    penalty_points: float = 0
    suspended: bool = False
    created_at: dt.datetime = Field(default_factory=utcnow)


# ------------------------------------------------------------
# Reservation
# ------------------------------------------------------------
# Lifecycle: active -> cancelled | completed (both terminal).
# At most one active row per (slot, date); the partial unique
# index backs the ledger's check on SQL databases.
# ------------------------------------------------------------
class Reservation(SQLModel, table=True):
    __table_args__ = (
        Index(
            "ux_reservation_active_slot_date", "slot", "date",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="user.id")
    slot: str
    date: dt.date = Field(index=True)
    status: str = STATUS_ACTIVE
    created_at: dt.datetime = Field(default_factory=utcnow)


class Penalty(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="user.id")
    reservation_id: Optional[int] = Field(default=None, index=True, foreign_key="reservation.id")
    type: str                   # future_booking | late_cancellation
    points: float
    reason: str
    created_at: dt.datetime = Field(default_factory=utcnow)


class Setting(SQLModel, table=True):
    key: str = Field(primary_key=True)
    value: str
    updated_at: dt.datetime = Field(default_factory=utcnow)


# ------------------------------------------------------------
# API schemas
# ------------------------------------------------------------
class UserCreate(SQLModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    role: str = ROLE_USER


class UserRead(SQLModel):
    id: int
    username: str
    role: str
    penalty_points: float
    suspended: bool
    created_at: dt.datetime


class UserRef(SQLModel):
    id: int
    username: str


class LoginRequest(SQLModel):
    username: str
    password: str


class PasswordChange(SQLModel):
    password: str = Field(min_length=1)


class SelfPasswordChange(SQLModel):
    user_id: int
    password: str = Field(min_length=1)


class SuspendRequest(SQLModel):
    suspended: bool


class ReservationCreate(SQLModel):
    user_id: int
    slot: str
    date: dt.date


class CancelRequest(SQLModel):
    # acting user; must own the reservation or be an admin
    user_id: int


class ReservationWithUser(SQLModel):
    id: int
    user_id: int
    slot: str
    date: dt.date
    status: str
    created_at: dt.datetime
    user: Optional[UserRef] = None


class PenaltyWithUser(SQLModel):
    id: int
    user_id: int
    reservation_id: Optional[int] = None
    type: str
    points: float
    reason: str
    created_at: dt.datetime
    user: Optional[UserRef] = None


class PenaltyPreview(SQLModel):
    date: dt.date
    points: float
    reason: str
    exempt: bool


class SlotAvailability(SQLModel):
    slot: str
    available: bool
    reserved_by: Optional[int] = None


class SettingsUpdate(SQLModel):
    # finite, >= 0
    weekly_penalty_multiplier: Optional[FiniteFloat] = Field(default=None, ge=0)
    late_cancellation_penalty: Optional[FiniteFloat] = Field(default=None, ge=0)
    auto_suspend_penalty_threshold: Optional[FiniteFloat] = Field(default=None, ge=0)
