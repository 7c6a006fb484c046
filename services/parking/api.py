# ============================================================
# Parking API Router
# ------------------------------------------------------------
# REST endpoints for login, user administration, reservations,
# penalties, slot availability, analytics and settings.
# Booking and cancellation go through the LedgerManager; plain
# reads go straight to storage. Ledger errors (ParkingError)
# are turned into HTTP responses by the handler in app.py.
# ============================================================
import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from parking import analytics, settings
from parking.errors import Forbidden, InvalidCredentials
from parking.ledger import LedgerManager
from parking.models import (
    PARKING_SLOTS, ROLE_ADMIN, ROLE_USER, CancelRequest, LoginRequest, PasswordChange,
    PenaltyPreview, PenaltyWithUser, Reservation, ReservationCreate, ReservationWithUser,
    SelfPasswordChange, SettingsUpdate, SlotAvailability, SuspendRequest, User, UserCreate,
    UserRead, UserRef,
)
from parking.repository import Storage

router = APIRouter(prefix="/v1")


# FastAPI dependencies: the backend is resolved per request,
# always to the instance chosen at startup.
def get_storage(request: Request) -> Storage:
    return request.app.state.resolver.resolve()


def get_ledger(request: Request) -> LedgerManager:
    return request.app.state.ledger


def _user_ref(storage: Storage, user_id: int) -> Optional[UserRef]:
    user = storage.get_user(user_id)
    return UserRef(id=user.id, username=user.username) if user else None


# ------------------------------------------------------------
# POST /v1/auth/login - plain credential check
# ------------------------------------------------------------
@router.post("/auth/login", response_model=UserRead)
def login(body: LoginRequest, s: Storage = Depends(get_storage)):
    user = s.get_user_by_username(body.username)
    if not user or user.password != body.password:
        raise InvalidCredentials("Invalid credentials")
    return UserRead.model_validate(user)


# ------------------------------------------------------------
# Users
# ------------------------------------------------------------
@router.get("/users", response_model=List[UserRead])
def list_users(s: Storage = Depends(get_storage)):
    return [UserRead.model_validate(u) for u in s.list_users()]


@router.post("/users", response_model=UserRead, status_code=201)
def create_user(body: UserCreate, s: Storage = Depends(get_storage)):
    if body.role not in (ROLE_ADMIN, ROLE_USER):
        raise HTTPException(400, f"role must be '{ROLE_ADMIN}' or '{ROLE_USER}'")
    if s.get_user_by_username(body.username):
        raise HTTPException(400, "Username already exists")
    user = s.create_user(User(username=body.username, password=body.password, role=body.role))
    return UserRead.model_validate(user)


@router.delete("/users/{user_id}")
def delete_user(user_id: int, ledger: LedgerManager = Depends(get_ledger)):
    ledger.delete_user(user_id)
    return {"success": True}


# declared before /users/{user_id}/password so "self" is not parsed as an id
@router.put("/users/self/password")
def change_own_password(body: SelfPasswordChange, s: Storage = Depends(get_storage)):
    if not s.update_user(body.user_id, password=body.password):
        raise HTTPException(404, "User not found")
    return {"success": True}


@router.put("/users/{user_id}/password")
def change_password(user_id: int, body: PasswordChange, s: Storage = Depends(get_storage)):
    if not s.update_user(user_id, password=body.password):
        raise HTTPException(404, "User not found")
    return {"success": True}


@router.put("/users/{user_id}/suspend")
def suspend_user(user_id: int, body: SuspendRequest, ledger: LedgerManager = Depends(get_ledger)):
    user = ledger.set_suspended(user_id, body.suspended)
    return {"success": True, "user": UserRead.model_validate(user)}


# ------------------------------------------------------------
# Reservations
# ------------------------------------------------------------
# GET filters by user_id, else by date (active only), else all.
# Each row carries {id, username} of its owner.
# ------------------------------------------------------------
@router.get("/reservations", response_model=List[ReservationWithUser])
def list_reservations(user_id: Optional[int] = None, date: Optional[dt.date] = None,
                      s: Storage = Depends(get_storage)):
    if user_id is not None:
        rows = s.list_reservations_by_user(user_id)
    elif date is not None:
        rows = s.list_reservations_by_date(date)
    else:
        rows = s.list_reservations()
    return [ReservationWithUser(**r.model_dump(), user=_user_ref(s, r.user_id)) for r in rows]


@router.post("/reservations", response_model=Reservation, status_code=201)
def create_reservation(body: ReservationCreate, ledger: LedgerManager = Depends(get_ledger)):
    return ledger.create_reservation(body.user_id, body.slot, body.date)


@router.post("/reservations/complete")
def complete_reservations(ledger: LedgerManager = Depends(get_ledger)):
    return {"completed": ledger.complete_past_reservations()}


# ------------------------------------------------------------
# POST /v1/reservations/{id}/cancel
# ------------------------------------------------------------
# - acting user is required: must own the reservation or be admin
# - penalties (late fee or refund) are settled by the ledger
# ------------------------------------------------------------
@router.post("/reservations/{reservation_id}/cancel")
def cancel_reservation(reservation_id: int, body: CancelRequest,
                       s: Storage = Depends(get_storage),
                       ledger: LedgerManager = Depends(get_ledger)):
    reservation = s.get_reservation(reservation_id)
    if not reservation:
        raise HTTPException(404, "Reservation not found")
    actor = s.get_user(body.user_id)
    if not actor:
        raise HTTPException(404, "User not found")
    if actor.id != reservation.user_id and actor.role != ROLE_ADMIN:
        raise Forbidden("Only the owner or an admin can cancel this reservation")
    cancelled = ledger.cancel_reservation(reservation_id)
    return {"success": True, "reservation": cancelled}


# ------------------------------------------------------------
# Penalties
# ------------------------------------------------------------
@router.get("/penalties", response_model=List[PenaltyWithUser])
def list_penalties(user_id: Optional[int] = None, s: Storage = Depends(get_storage)):
    rows = s.list_penalties_by_user(user_id) if user_id is not None else s.list_penalties()
    return [PenaltyWithUser(**p.model_dump(), user=_user_ref(s, p.user_id)) for p in rows]


# what booking `date` would cost right now, same policy as the booking path
@router.get("/penalties/preview", response_model=PenaltyPreview)
def preview_penalty(date: dt.date, ledger: LedgerManager = Depends(get_ledger)):
    decision = ledger.preview_booking_penalty(date)
    return PenaltyPreview(date=date, points=decision.points, reason=decision.reason, exempt=decision.exempt)


# ------------------------------------------------------------
# GET /v1/parking-slots?date= - availability grid
# ------------------------------------------------------------
@router.get("/parking-slots", response_model=List[SlotAvailability])
def parking_slots(date: Optional[dt.date] = None, s: Storage = Depends(get_storage)):
    if date is None:
        return [SlotAvailability(slot=slot, available=True) for slot in PARKING_SLOTS]
    taken = {r.slot: r.user_id for r in s.list_reservations_by_date(date)}
    return [
        SlotAvailability(slot=slot, available=slot not in taken, reserved_by=taken.get(slot))
        for slot in PARKING_SLOTS
    ]


@router.get("/analytics")
def get_analytics(s: Storage = Depends(get_storage), ledger: LedgerManager = Depends(get_ledger)):
    return analytics.summarize(s, ledger.clock().date())


# ------------------------------------------------------------
# Settings + backend info
# ------------------------------------------------------------
@router.get("/settings")
def get_settings(s: Storage = Depends(get_storage)):
    return settings.as_dict(s)


@router.put("/settings")
def put_settings(body: SettingsUpdate, s: Storage = Depends(get_storage)):
    return settings.update_settings(s, body)


@router.get("/storage-backend")
def storage_backend(request: Request):
    return {"backend": request.app.state.resolver.name}
