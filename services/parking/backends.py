# ============================================================
# backends.py - Storage backend selection + bootstrap data
# ------------------------------------------------------------
# The backend is chosen once from configuration; every request
# resolves to the same instance. Nothing switches it at runtime.
# ============================================================
import logging

from parking.memory import JsonFileStorage, MemoryStorage
from parking.models import DEFAULT_SETTINGS, ROLE_ADMIN, ROLE_USER, User
from parking.repository import SqlStorage, Storage

logger = logging.getLogger(__name__)

BACKENDS = ("memory", "json", "sql")


def build_storage(backend: str, json_path: str = None, database_url: str = None) -> Storage:
    if backend == "memory":
        return MemoryStorage()
    if backend == "json":
        return JsonFileStorage(json_path)
    if backend == "sql":
        return SqlStorage(database_url)
    raise ValueError(f"unknown storage backend {backend!r} (expected one of {', '.join(BACKENDS)})")


class BackendResolver:
    def __init__(self, storage: Storage):
        self._storage = storage

    @classmethod
    def from_config(cls, backend: str, json_path: str = None, database_url: str = None) -> "BackendResolver":
        storage = build_storage(backend, json_path=json_path, database_url=database_url)
        logger.info("storage backend: %s", storage.name)
        return cls(storage)

    @property
    def name(self) -> str:
        return self._storage.name

    def resolve(self) -> Storage:
        return self._storage


def seed_defaults(storage: Storage, admin_username: str, admin_password: str, demo_user: bool = False) -> None:
    """Create missing settings and bootstrap accounts. Safe to run on every start."""
    for key, value in DEFAULT_SETTINGS.items():
        if storage.get_setting(key) is None:
            storage.set_setting(key, value)
            logger.info("seeded setting %s=%s", key, value)

    accounts = [(admin_username, admin_password, ROLE_ADMIN)]
    if demo_user:
        accounts.append(("user1", "password", ROLE_USER))
    for username, password, role in accounts:
        if storage.get_user_by_username(username) is None:
            storage.create_user(User(username=username, password=password, role=role))
            logger.info("seeded %s account %r", role, username)
