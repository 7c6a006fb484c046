# ============================================================
# config.py - Environment configuration for the parking service
# ------------------------------------------------------------
# Every deployment-level knob is read once from the environment.
# Runtime-tunable penalty parameters live in the settings store
# instead (see DEFAULT_SETTINGS in models.py).
# ============================================================
import os
from zoneinfo import ZoneInfo

STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "memory")
JSON_STORAGE_PATH = os.getenv("JSON_STORAGE_PATH", "data/parking.json")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./parking.db")

# unset -> events are only logged
RABBITMQ_HOST = os.getenv("RABBITMQ_HOST")

LOCAL_TZ = ZoneInfo(os.getenv("LOCAL_TZ", "America/Toronto"))

BOOKING_PENALTY_POLICY = os.getenv("BOOKING_PENALTY_POLICY", "ten_day")

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
SEED_DEMO_USER = os.getenv("SEED_DEMO_USER", "true").lower() == "true"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
