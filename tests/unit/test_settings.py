"""Unit tests for the runtime settings store."""
import pydantic
import pytest

from conftest import in_days
from parking import settings
from parking.models import (
    AUTO_SUSPEND_PENALTY_THRESHOLD, LATE_CANCELLATION_PENALTY, WEEKLY_PENALTY_MULTIPLIER,
    SettingsUpdate,
)


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf"), -0.5])
def test_update_rejects_non_finite_or_negative(value):
    with pytest.raises(pydantic.ValidationError):
        SettingsUpdate(auto_suspend_penalty_threshold=value)


def test_update_writes_only_given_fields(storage):
    result = settings.update_settings(storage, SettingsUpdate(late_cancellation_penalty=2.5))

    assert result[LATE_CANCELLATION_PENALTY] == "2.5"
    assert result[WEEKLY_PENALTY_MULTIPLIER] == "1"
    assert settings.get_number(storage, LATE_CANCELLATION_PENALTY) == 2.5


@pytest.mark.parametrize("raw", ["nan", "inf", "-3", "lots"])
def test_get_number_falls_back_on_bad_stored_values(storage, raw, caplog):
    storage.set_setting(AUTO_SUSPEND_PENALTY_THRESHOLD, raw)

    assert settings.get_number(storage, AUTO_SUSPEND_PENALTY_THRESHOLD) == 90
    assert "invalid value" in caplog.text


def test_nan_in_the_store_cannot_disable_suspension(ledger, storage, make_user):
    storage.set_setting(AUTO_SUSPEND_PENALTY_THRESHOLD, "nan")
    storage.set_setting(WEEKLY_PENALTY_MULTIPLIER, "nan")
    user = make_user(penalty_points=89)

    ledger.create_reservation(user.id, "24", in_days(15))

    # defaults apply: 1 point, threshold 90
    updated = storage.get_user(user.id)
    assert updated.penalty_points == 90
    assert updated.suspended is True
    assert [p.points for p in storage.list_penalties_by_user(user.id)] == [1]
