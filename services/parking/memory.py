# ============================================================
# memory.py - Dict-backed storage backends
# ------------------------------------------------------------
#   MemoryStorage   : transient, lost on restart
#   JsonFileStorage : same maps, rewritten to a JSON file after
#                     every mutation and reloaded at startup
# Stored objects are copied on the way in and out so callers
# never mutate state behind the storage's back.
# Handlers run in a threadpool: every public method holds the
# storage-wide lock, and the JSON snapshot is written inside it.
# ============================================================
import json
import logging
import os
import tempfile
import threading
from typing import Dict

from parking.errors import Conflict
from parking.models import STATUS_ACTIVE, Penalty, Reservation, Setting, User, utcnow
from parking.repository import Storage

logger = logging.getLogger(__name__)


def _copy(obj, **fields):
    if obj is None:
        return None
    return type(obj).model_validate({**obj.model_dump(), **fields})


class MemoryStorage(Storage):
    name = "memory"

    def __init__(self):
        self._lock = threading.RLock()
        self.users: Dict[int, User] = {}
        self.reservations: Dict[int, Reservation] = {}
        self.penalties: Dict[int, Penalty] = {}
        self.settings: Dict[str, Setting] = {}
        self.next_ids = {"user": 1, "reservation": 1, "penalty": 1}

    def _next_id(self, kind: str) -> int:
        value = self.next_ids[kind]
        self.next_ids[kind] = value + 1
        return value

    def _changed(self):
        """Hook run after every mutation, with the lock held."""

    @staticmethod
    def _patch(table: dict, pk, fields):
        obj = table.get(pk)
        if obj is None:
            return None
        updated = _copy(obj, **fields)
        table[pk] = updated
        return updated

    # users
    def get_user(self, user_id):
        with self._lock:
            return _copy(self.users.get(user_id))

    def get_user_by_username(self, username):
        with self._lock:
            for u in self.users.values():
                if u.username == username:
                    return _copy(u)
            return None

    def create_user(self, user):
        with self._lock:
            user = _copy(user, id=self._next_id("user"))
            self.users[user.id] = user
            self._changed()
            return _copy(user)

    def update_user(self, user_id, **fields):
        with self._lock:
            user = self._patch(self.users, user_id, fields)
            if user is not None:
                self._changed()
            return _copy(user)

    def delete_user(self, user_id):
        with self._lock:
            if self.users.pop(user_id, None) is None:
                return False
            self._changed()
            return True

    def list_users(self):
        with self._lock:
            return [_copy(u) for u in self.users.values()]

    # reservations
    def get_reservation(self, reservation_id):
        with self._lock:
            return _copy(self.reservations.get(reservation_id))

    def list_reservations_by_user(self, user_id):
        with self._lock:
            return [_copy(r) for r in self.reservations.values() if r.user_id == user_id]

    def list_reservations_by_date(self, day):
        with self._lock:
            return [_copy(r) for r in self.reservations.values()
                    if r.date == day and r.status == STATUS_ACTIVE]

    def find_active_reservation(self, slot, day):
        with self._lock:
            for r in self.reservations.values():
                if r.slot == slot and r.date == day and r.status == STATUS_ACTIVE:
                    return _copy(r)
            return None

    def create_reservation(self, reservation):
        with self._lock:
            if reservation.status == STATUS_ACTIVE and self.find_active_reservation(reservation.slot, reservation.date):
                raise Conflict("Slot already reserved for this date")
            reservation = _copy(reservation, id=self._next_id("reservation"))
            self.reservations[reservation.id] = reservation
            self._changed()
            return _copy(reservation)

    def update_reservation(self, reservation_id, **fields):
        with self._lock:
            reservation = self._patch(self.reservations, reservation_id, fields)
            if reservation is not None:
                self._changed()
            return _copy(reservation)

    def delete_reservation(self, reservation_id):
        with self._lock:
            if self.reservations.pop(reservation_id, None) is None:
                return False
            self._changed()
            return True

    def list_reservations(self):
        with self._lock:
            return [_copy(r) for r in self.reservations.values()]

    # penalties
    def get_penalty(self, penalty_id):
        with self._lock:
            return _copy(self.penalties.get(penalty_id))

    def list_penalties_by_user(self, user_id):
        with self._lock:
            return [_copy(p) for p in self.penalties.values() if p.user_id == user_id]

    def create_penalty(self, penalty):
        with self._lock:
            penalty = _copy(penalty, id=self._next_id("penalty"))
            self.penalties[penalty.id] = penalty
            self._changed()
            return _copy(penalty)

    def delete_penalty(self, penalty_id):
        with self._lock:
            if self.penalties.pop(penalty_id, None) is None:
                return False
            self._changed()
            return True

    def list_penalties(self):
        with self._lock:
            return [_copy(p) for p in self.penalties.values()]

    # settings
    def get_setting(self, key):
        with self._lock:
            row = self.settings.get(key)
            return row.value if row else None

    def set_setting(self, key, value):
        with self._lock:
            row = Setting(key=key, value=value, updated_at=utcnow())
            self.settings[key] = row
            self._changed()
            return _copy(row)

    def list_settings(self):
        with self._lock:
            return [_copy(s) for s in self.settings.values()]


# ------------------------------------------------------------
# JsonFileStorage
# ------------------------------------------------------------
# File layout:
#   {"next_ids": {...}, "users": [...], "reservations": [...],
#    "penalties": [...], "settings": [...]}
# Each write goes to its own temp file next to the data file and
# is then renamed over it, so a crash mid-write leaves the
# previous snapshot intact.
# ------------------------------------------------------------
class JsonFileStorage(MemoryStorage):
    name = "json"

    def __init__(self, path: str):
        super().__init__()
        self.path = path
        self._load()

    def _load(self):
        if not os.path.exists(self.path):
            logger.info("no data file at %s, starting empty", self.path)
            return
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        self.users = {u["id"]: User.model_validate(u) for u in data.get("users", [])}
        self.reservations = {r["id"]: Reservation.model_validate(r) for r in data.get("reservations", [])}
        self.penalties = {p["id"]: Penalty.model_validate(p) for p in data.get("penalties", [])}
        self.settings = {s["key"]: Setting.model_validate(s) for s in data.get("settings", [])}
        self.next_ids.update(data.get("next_ids", {}))
        logger.info(
            "loaded %d users, %d reservations, %d penalties from %s",
            len(self.users), len(self.reservations), len(self.penalties), self.path,
        )

    def _changed(self):
        data = {
            "next_ids": self.next_ids,
            "users": [u.model_dump(mode="json") for u in self.users.values()],
            "reservations": [r.model_dump(mode="json") for r in self.reservations.values()],
            "penalties": [p.model_dump(mode="json") for p in self.penalties.values()],
            "settings": [s.model_dump(mode="json") for s in self.settings.values()],
        }
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=directory, prefix=".parking-", suffix=".tmp", delete=False,
        ) as f:
            tmp_path = f.name
            json.dump(data, f, indent=2)
        try:
            os.replace(tmp_path, self.path)
        except OSError:
            os.unlink(tmp_path)
            raise
