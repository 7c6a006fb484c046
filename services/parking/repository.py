# ============================================================
# repository.py - Storage contract + SQL backend
# ------------------------------------------------------------
# Storage is the Repository the ledger and the API talk to.
# Three implementations share it:
#   - MemoryStorage / JsonFileStorage (memory.py)
#   - SqlStorage (below), SQLModel on any SQLAlchemy URL
# Missing rows are reported as None (get/update) or False
# (delete); they are not errors at this layer.
# ============================================================
import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from parking.errors import Conflict
from parking.models import (
    STATUS_ACTIVE, Penalty, Reservation, Setting, User, utcnow,
)

logger = logging.getLogger(__name__)


class Storage(ABC):
    name = "abstract"

    # users
    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, user: User) -> User: ...

    @abstractmethod
    def update_user(self, user_id: int, **fields) -> Optional[User]: ...

    @abstractmethod
    def delete_user(self, user_id: int) -> bool: ...

    @abstractmethod
    def list_users(self) -> List[User]: ...

    # reservations
    @abstractmethod
    def get_reservation(self, reservation_id: int) -> Optional[Reservation]: ...

    @abstractmethod
    def list_reservations_by_user(self, user_id: int) -> List[Reservation]: ...

    @abstractmethod
    def list_reservations_by_date(self, day: date) -> List[Reservation]:
        """Active reservations on `day`."""

    @abstractmethod
    def find_active_reservation(self, slot: str, day: date) -> Optional[Reservation]: ...

    @abstractmethod
    def create_reservation(self, reservation: Reservation) -> Reservation: ...

    @abstractmethod
    def update_reservation(self, reservation_id: int, **fields) -> Optional[Reservation]: ...

    @abstractmethod
    def delete_reservation(self, reservation_id: int) -> bool: ...

    @abstractmethod
    def list_reservations(self) -> List[Reservation]: ...

    # penalties
    @abstractmethod
    def get_penalty(self, penalty_id: int) -> Optional[Penalty]: ...

    @abstractmethod
    def list_penalties_by_user(self, user_id: int) -> List[Penalty]: ...

    @abstractmethod
    def create_penalty(self, penalty: Penalty) -> Penalty: ...

    @abstractmethod
    def delete_penalty(self, penalty_id: int) -> bool: ...

    @abstractmethod
    def list_penalties(self) -> List[Penalty]: ...

    def find_penalty_for_reservation(self, reservation_id: int, penalty_type: str) -> Optional[Penalty]:
        for p in self.list_penalties():
            if p.reservation_id == reservation_id and p.type == penalty_type:
                return p
        return None

    # settings
    @abstractmethod
    def get_setting(self, key: str) -> Optional[str]: ...

    @abstractmethod
    def set_setting(self, key: str, value: str) -> Setting: ...

    @abstractmethod
    def list_settings(self) -> List[Setting]: ...


# ------------------------------------------------------------
# SqlStorage
# ------------------------------------------------------------
# One short-lived Session per call. Objects are refreshed before
# the session closes so they stay readable once detached.
# ------------------------------------------------------------
class SqlStorage(Storage):
    name = "sql"

    def __init__(self, database_url: str = None, engine=None):
        if engine is None:
            engine = make_engine(database_url)
        self.engine = engine
        SQLModel.metadata.create_all(self.engine)

    def _get(self, model, pk):
        with Session(self.engine) as s:
            return s.get(model, pk)

    def _all(self, statement):
        with Session(self.engine) as s:
            return list(s.exec(statement).all())

    def _add(self, obj):
        with Session(self.engine) as s:
            s.add(obj)
            s.commit()
            s.refresh(obj)
            return obj

    def _update(self, model, pk, fields):
        with Session(self.engine) as s:
            obj = s.get(model, pk)
            if not obj:
                return None
            for k, v in fields.items():
                setattr(obj, k, v)
            s.commit()
            s.refresh(obj)
            return obj

    def _delete(self, model, pk) -> bool:
        with Session(self.engine) as s:
            obj = s.get(model, pk)
            if not obj:
                return False
            s.delete(obj)
            s.commit()
            return True

    # users
    def get_user(self, user_id):
        return self._get(User, user_id)

    def get_user_by_username(self, username):
        with Session(self.engine) as s:
            return s.exec(select(User).where(User.username == username)).first()

    def create_user(self, user):
        return self._add(user)

    def update_user(self, user_id, **fields):
        return self._update(User, user_id, fields)

    def delete_user(self, user_id):
        return self._delete(User, user_id)

    def list_users(self):
        return self._all(select(User).order_by(User.id))

    # reservations
    def get_reservation(self, reservation_id):
        return self._get(Reservation, reservation_id)

    def list_reservations_by_user(self, user_id):
        return self._all(select(Reservation).where(Reservation.user_id == user_id).order_by(Reservation.id))

    def list_reservations_by_date(self, day):
        return self._all(select(Reservation).where(
            Reservation.date == day,
            Reservation.status == STATUS_ACTIVE,
        ).order_by(Reservation.id))

    def find_active_reservation(self, slot, day):
        with Session(self.engine) as s:
            return s.exec(select(Reservation).where(
                Reservation.slot == slot,
                Reservation.date == day,
                Reservation.status == STATUS_ACTIVE,
            )).first()

    def create_reservation(self, reservation):
        try:
            return self._add(reservation)
        except IntegrityError:
            # lost the race against another writer on the unique index
            logger.warning("slot %s already taken on %s (unique index)", reservation.slot, reservation.date)
            raise Conflict("Slot already reserved for this date") from None

    def update_reservation(self, reservation_id, **fields):
        return self._update(Reservation, reservation_id, fields)

    def delete_reservation(self, reservation_id):
        return self._delete(Reservation, reservation_id)

    def list_reservations(self):
        return self._all(select(Reservation).order_by(Reservation.id))

    # penalties
    def get_penalty(self, penalty_id):
        return self._get(Penalty, penalty_id)

    def list_penalties_by_user(self, user_id):
        return self._all(select(Penalty).where(Penalty.user_id == user_id).order_by(Penalty.id))

    def find_penalty_for_reservation(self, reservation_id, penalty_type):
        with Session(self.engine) as s:
            return s.exec(select(Penalty).where(
                Penalty.reservation_id == reservation_id,
                Penalty.type == penalty_type,
            )).first()

    def create_penalty(self, penalty):
        return self._add(penalty)

    def delete_penalty(self, penalty_id):
        return self._delete(Penalty, penalty_id)

    def list_penalties(self):
        return self._all(select(Penalty).order_by(Penalty.id))

    # settings
    def get_setting(self, key):
        row = self._get(Setting, key)
        return row.value if row else None

    def set_setting(self, key, value):
        with Session(self.engine) as s:
            row = s.get(Setting, key)
            if row:
                row.value = value
                row.updated_at = utcnow()
            else:
                row = Setting(key=key, value=value)
                s.add(row)
            s.commit()
            s.refresh(row)
            return row

    def list_settings(self):
        return self._all(select(Setting).order_by(Setting.key))


def make_engine(database_url: str):
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty db
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)
