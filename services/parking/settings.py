# ============================================================
# settings.py - Typed access to the key/value settings store
# ------------------------------------------------------------
# Values are stored as strings. Readers always go back to the
# store (no caching) so an admin update applies to the very
# next booking or cancellation.
# ============================================================
import logging
import math
from typing import Dict

from parking.models import (
    AUTO_SUSPEND_PENALTY_THRESHOLD, DEFAULT_SETTINGS, LATE_CANCELLATION_PENALTY,
    WEEKLY_PENALTY_MULTIPLIER, SettingsUpdate,
)
from parking.repository import Storage

logger = logging.getLogger(__name__)

# request field -> settings key
UPDATABLE = {
    "weekly_penalty_multiplier": WEEKLY_PENALTY_MULTIPLIER,
    "late_cancellation_penalty": LATE_CANCELLATION_PENALTY,
    "auto_suspend_penalty_threshold": AUTO_SUSPEND_PENALTY_THRESHOLD,
}


def get_number(storage: Storage, key: str) -> float:
    default = float(DEFAULT_SETTINGS[key])
    raw = storage.get_setting(key)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        value = None
    if value is None or not math.isfinite(value) or value < 0:
        logger.warning("setting %s has invalid value %r, using default %s", key, raw, default)
        return default
    return value


def as_dict(storage: Storage) -> Dict[str, str]:
    values = dict(DEFAULT_SETTINGS)
    values.update({s.key: s.value for s in storage.list_settings()})
    return values


def update_settings(storage: Storage, update: SettingsUpdate) -> Dict[str, str]:
    changes = {
        UPDATABLE[field]: value
        for field, value in update.model_dump(exclude_none=True).items()
    }
    for key, value in changes.items():
        storage.set_setting(key, _format(value))
        logger.info("setting %s updated to %s", key, value)
    return as_dict(storage)


def _format(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
