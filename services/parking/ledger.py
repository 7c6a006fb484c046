# ============================================================
# ledger.py - Reservation / penalty ledger
# ------------------------------------------------------------
# Keeps three things consistent:
#   - Reservation.status
#   - the Penalty rows
#   - User.penalty_points (== sum of the user's Penalty rows)
# and flips User.suspended when the running total reaches the
# configured threshold.
#
# The policy functions (policy.py) decide how many points; this
# module persists the outcome. Storage calls are not wrapped in
# a transaction: once a reservation is stored, a failure while
# charging its penalty is logged and the reservation is kept.
# ============================================================
import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime
from typing import Callable, Dict, Hashable, Optional

from parking import settings
from parking.dates import local_clock
from parking.errors import Conflict, Forbidden, NotFound, ValidationError
from parking.models import (
    AUTO_SUSPEND_PENALTY_THRESHOLD, LATE_CANCELLATION_PENALTY, PARKING_SLOTS,
    PENALTY_FUTURE_BOOKING, PENALTY_LATE_CANCELLATION, STATUS_ACTIVE,
    STATUS_CANCELLED, STATUS_COMPLETED, WEEKLY_PENALTY_MULTIPLIER,
    Penalty, Reservation, User,
)
from parking.policy import (
    BookingPolicy, PenaltyDecision, evaluate_booking_penalty,
    evaluate_cancellation_penalty, is_late_cancellation, suspension_due,
)
from parking.publisher import EventPublisher, LogPublisher
from parking.repository import Storage

logger = logging.getLogger(__name__)


class KeyedLocks:
    """One lock per key, created on demand.

    hold() takes several keys at once in a stable order so two callers
    asking for the same keys can never deadlock. A key's lock is
    dropped once no caller holds or waits on it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [lock, number of callers holding or waiting]
        self._locks: Dict[Hashable, list] = {}

    def _checkout(self, key) -> threading.RLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.RLock(), 0]
            entry[1] += 1
            return entry[0]

    def _checkin(self, key) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, *keys):
        ordered = sorted(set(keys), key=repr)
        acquired = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                lock.acquire()
                acquired.append((key, lock))
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._checkin(key)


class LedgerManager:
    def __init__(
        self,
        storage: Storage,
        publisher: EventPublisher = None,
        clock: Callable[[], datetime] = None,
        booking_policy: BookingPolicy = evaluate_booking_penalty,
        locks: KeyedLocks = None,
    ):
        self.storage = storage
        self.publisher = publisher or LogPublisher()
        self.clock = clock or local_clock(None)
        self.booking_policy = booking_policy
        self.locks = locks if locks is not None else KeyedLocks()

    # ------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------
    def create_reservation(self, user_id: int, slot: str, day: date) -> Reservation:
        if slot not in PARKING_SLOTS:
            raise ValidationError(f"Unknown parking slot {slot!r}")
        if day < self.clock().date():
            raise ValidationError("Cannot reserve a date in the past")

        with self.locks.hold(("slot", slot, day), ("user", user_id)):
            user = self.storage.get_user(user_id)
            if not user:
                raise NotFound("User not found")
            if user.suspended:
                raise Forbidden("User is suspended and cannot make reservations")
            if self.storage.find_active_reservation(slot, day):
                raise Conflict("Slot already reserved for this date")

            reservation = self.storage.create_reservation(
                Reservation(user_id=user_id, slot=slot, date=day, status=STATUS_ACTIVE)
            )
            logger.info("reservation %s: user %s booked slot %s on %s", reservation.id, user_id, slot, day)
            self._emit("ReservationCreated", {
                "reservationId": reservation.id,
                "userId": user_id,
                "slot": slot,
                "date": day.isoformat(),
            })

            try:
                self._charge_booking(reservation)
            except Exception:
                logger.exception("could not apply booking penalty for reservation %s", reservation.id)

        return reservation

    def preview_booking_penalty(self, day: date) -> PenaltyDecision:
        multiplier = settings.get_number(self.storage, WEEKLY_PENALTY_MULTIPLIER)
        return self.booking_policy(day, self.clock(), multiplier)

    def _charge_booking(self, reservation: Reservation) -> Optional[Penalty]:
        decision = self.preview_booking_penalty(reservation.date)
        if decision.exempt or decision.points <= 0:
            return None
        return self._charge(reservation, PENALTY_FUTURE_BOOKING, decision)

    # ------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------
    # An on-time cancellation (>= 12h before the reservation day
    # starts) refunds the advance-booking penalty of that
    # reservation; a late one charges the late fee and keeps the
    # booking penalty. Never both.
    # ------------------------------------------------------------
    def cancel_reservation(self, reservation_id: int) -> Reservation:
        reservation = self.storage.get_reservation(reservation_id)
        if not reservation:
            raise NotFound("Reservation not found")

        with self.locks.hold(("reservation", reservation_id), ("user", reservation.user_id)):
            # re-read under the lock, a concurrent cancel may have won
            reservation = self.storage.get_reservation(reservation_id)
            if not reservation:
                raise NotFound("Reservation not found")
            if reservation.status != STATUS_ACTIVE:
                raise Conflict(f"Reservation is already {reservation.status}")
            user = self.storage.get_user(reservation.user_id)
            if not user:
                raise NotFound("User not found")
            if user.suspended:
                raise Forbidden("User is suspended and cannot cancel reservations")

            cancelled = self.storage.update_reservation(reservation_id, status=STATUS_CANCELLED)
            logger.info("reservation %s cancelled by user %s", reservation_id, user.id)
            self._emit("ReservationCancelled", {"reservationId": reservation_id, "userId": user.id})

            try:
                now = self.clock()
                if is_late_cancellation(reservation.date, now):
                    multiplier = settings.get_number(self.storage, LATE_CANCELLATION_PENALTY)
                    decision = evaluate_cancellation_penalty(reservation.date, now, multiplier)
                    if decision.points > 0:
                        self._charge(reservation, PENALTY_LATE_CANCELLATION, decision)
                else:
                    self._refund_booking(reservation)
            except Exception:
                logger.exception("could not settle penalties for cancelled reservation %s", reservation_id)

        return cancelled

    def _refund_booking(self, reservation: Reservation) -> Optional[Penalty]:
        penalty = self.storage.find_penalty_for_reservation(reservation.id, PENALTY_FUTURE_BOOKING)
        if not penalty:
            return None
        # only the caller that actually removed the row gives the points back
        if not self.storage.delete_penalty(penalty.id):
            return None
        self._add_points(reservation.user_id, -penalty.points)
        logger.info(
            "penalty %s reversed: %s point(s) returned to user %s",
            penalty.id, penalty.points, reservation.user_id,
        )
        self._emit("PenaltyReversed", {
            "penaltyId": penalty.id,
            "reservationId": reservation.id,
            "userId": reservation.user_id,
            "points": penalty.points,
        })
        return penalty

    # ------------------------------------------------------------
    # Points + suspension
    # ------------------------------------------------------------
    def _charge(self, reservation: Reservation, penalty_type: str, decision: PenaltyDecision) -> Penalty:
        penalty = self.storage.create_penalty(Penalty(
            user_id=reservation.user_id,
            reservation_id=reservation.id,
            type=penalty_type,
            points=decision.points,
            reason=decision.reason,
        ))
        self._add_points(reservation.user_id, penalty.points)
        logger.info(
            "penalty %s (%s): %s point(s) for user %s, %s",
            penalty.id, penalty_type, penalty.points, reservation.user_id, decision.reason,
        )
        self._emit("PenaltyApplied", {
            "penaltyId": penalty.id,
            "reservationId": reservation.id,
            "userId": reservation.user_id,
            "type": penalty_type,
            "points": penalty.points,
            "reason": decision.reason,
        })
        return penalty

    def _add_points(self, user_id: int, delta: float) -> Optional[User]:
        with self.locks.hold(("user", user_id)):
            user = self.storage.get_user(user_id)
            if not user:
                logger.warning("user %s vanished while adjusting %s point(s)", user_id, delta)
                return None
            total = max(0.0, round(user.penalty_points + delta, 6))
            fields = {"penalty_points": total}

            threshold = settings.get_number(self.storage, AUTO_SUSPEND_PENALTY_THRESHOLD)
            newly_suspended = not user.suspended and suspension_due(user.suspended, total, threshold)
            if newly_suspended:
                fields["suspended"] = True

            updated = self.storage.update_user(user_id, **fields)
            if newly_suspended:
                logger.warning("user %s suspended: %s point(s) >= threshold %s", user_id, total, threshold)
                self._emit("UserSuspended", {"userId": user_id, "penaltyPoints": total, "threshold": threshold})
            return updated

    # ------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------
    def set_suspended(self, user_id: int, suspended: bool) -> User:
        with self.locks.hold(("user", user_id)):
            user = self.storage.update_user(user_id, suspended=suspended)
        if not user:
            raise NotFound("User not found")
        logger.info("user %s %s by admin", user_id, "suspended" if suspended else "unsuspended")
        return user

    def delete_user(self, user_id: int) -> None:
        """Delete a user with their history; refused while they hold active reservations."""
        with self.locks.hold(("user", user_id)):
            if not self.storage.get_user(user_id):
                raise NotFound("User not found")
            reservations = self.storage.list_reservations_by_user(user_id)
            if any(r.status == STATUS_ACTIVE for r in reservations):
                raise Conflict("User has active reservations")

            for penalty in self.storage.list_penalties_by_user(user_id):
                self.storage.delete_penalty(penalty.id)
            for reservation in reservations:
                self.storage.delete_reservation(reservation.id)
            self.storage.delete_user(user_id)
        logger.info("user %s deleted with %d reservation(s)", user_id, len(reservations))

    def complete_past_reservations(self, today: date = None) -> int:
        """Mark active reservations dated before `today` as completed."""
        today = today or self.clock().date()
        count = 0
        for reservation in self.storage.list_reservations():
            if reservation.status != STATUS_ACTIVE or reservation.date >= today:
                continue
            with self.locks.hold(("reservation", reservation.id)):
                current = self.storage.get_reservation(reservation.id)
                if current and current.status == STATUS_ACTIVE:
                    self.storage.update_reservation(reservation.id, status=STATUS_COMPLETED)
                    count += 1
        if count:
            logger.info("%d past reservation(s) marked completed", count)
        return count

    def _emit(self, event_type: str, payload: dict) -> None:
        try:
            self.publisher.publish(event_type, payload)
        except Exception as e:
            logger.warning("could not publish %s: %s", event_type, e)
