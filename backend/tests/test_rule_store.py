"""Tests for the automation rule store."""

import pytest

from automation.models import RuleCreate, VehicleStateTrigger
from automation.store import RULES_KEY, RuleNotFoundError, RuleStore
from services.setup_store import SetupStore


@pytest.fixture
def store_path(tmp_path):
    return str(tmp_path / "setup.json")


def _reload(store_path) -> RuleStore:
    return RuleStore(SetupStore(store_path))


def _new_rule(**overrides) -> RuleCreate:
    data = {
        "name": "Charged",
        "trigger": {"type": "vehicle_state", "condition": "charging_state = Complete"},
        "actions": [{"type": "notification", "message": "Charging complete"}],
    }
    data.update(overrides)
    return RuleCreate.model_validate(data)


class TestSeeding:
    """Built-in rules appear once, on first start."""

    def test_builtins_seeded(self, store_path):
        store = _reload(store_path)
        ids = [r.id for r in store.list()]
        assert ids == ["arrive_home_evening", "departure_preparation", "low_battery_alert"]

        low_battery = store.get("low_battery_alert")
        assert low_battery.enabled is True
        assert low_battery.trigger.condition == "battery_level < 20"
        assert low_battery.trigger.frequency == "once_per_trip"
        assert store.get("arrive_home_evening").enabled is False

    def test_deleted_builtin_stays_deleted(self, store_path):
        _reload(store_path).delete("low_battery_alert")
        assert _reload(store_path).get("low_battery_alert") is None

    def test_deleting_everything_does_not_reseed(self, store_path):
        store = _reload(store_path)
        for rule in store.list():
            store.delete(rule.id)
        assert _reload(store_path).list() == []

    def test_invalid_stored_rule_skipped(self, store_path):
        setup = SetupStore(store_path)
        setup.set(RULES_KEY, [
            {"id": "broken", "name": "Broken", "trigger": {"type": "teleport"}},
            {"id": "ok", "name": "OK", "trigger": {"type": "time", "time": "08:00"}},
        ])
        assert [r.id for r in RuleStore(setup).list()] == ["ok"]


class TestCrud:
    """Mutations persist before returning."""

    def test_create_assigns_custom_id(self, store_path):
        store = _reload(store_path)
        rule = store.create(_new_rule())

        assert rule.id.startswith("custom_")
        assert rule.custom is True
        assert rule.created_at is not None
        assert isinstance(rule.trigger, VehicleStateTrigger)

        reloaded = _reload(store_path).get(rule.id)
        assert reloaded == rule

    def test_ids_are_unique(self, store_path):
        store = _reload(store_path)
        assert store.create(_new_rule()).id != store.create(_new_rule()).id

    def test_update_partial(self, store_path):
        store = _reload(store_path)
        rule = store.create(_new_rule())

        updated = store.update(rule.id, {"name": "Fully charged", "id": "hijack", "custom": False})

        assert updated.id == rule.id
        assert updated.name == "Fully charged"
        assert updated.custom is True
        assert updated.trigger == rule.trigger
        assert _reload(store_path).get(rule.id).name == "Fully charged"

    def test_update_trigger(self, store_path):
        store = _reload(store_path)
        updated = store.update("low_battery_alert", {
            "trigger": {"type": "vehicle_state", "condition": "battery_level < 15", "frequency": "once_per_trip"},
        })
        assert updated.trigger.condition == "battery_level < 15"

    def test_enable_disable(self, store_path):
        store = _reload(store_path)
        store.enable("arrive_home_evening")
        assert _reload(store_path).get("arrive_home_evening").enabled is True

        store.disable("arrive_home_evening")
        assert _reload(store_path).get("arrive_home_evening").enabled is False

    def test_unknown_id(self, store_path):
        store = _reload(store_path)
        with pytest.raises(RuleNotFoundError):
            store.update("nope", {"name": "x"})
        with pytest.raises(RuleNotFoundError):
            store.enable("nope")
        with pytest.raises(RuleNotFoundError):
            store.delete("nope")
        assert store.get("nope") is None

    def test_rules_hidden_from_settings_listing(self, store_path):
        setup = SetupStore(store_path)
        RuleStore(setup)
        assert RULES_KEY not in setup.get_all()


class TestWriteFailure:
    """A failed write leaves the in-memory rules as they were."""

    @pytest.fixture
    def failing(self, store_path, monkeypatch):
        setup = SetupStore(store_path)
        store = RuleStore(setup)

        def refuse(key, value):
            raise OSError("disk full")

        monkeypatch.setattr(setup, "set", refuse)
        return store

    def test_delete_keeps_rule(self, failing, store_path):
        with pytest.raises(OSError):
            failing.delete("low_battery_alert")
        assert failing.get("low_battery_alert") is not None
        assert _reload(store_path).get("low_battery_alert") is not None

    def test_create_adds_nothing(self, failing):
        with pytest.raises(OSError):
            failing.create(_new_rule())
        assert len(failing.list()) == 3

    def test_update_keeps_old_values(self, failing):
        with pytest.raises(OSError):
            failing.update("low_battery_alert", {"name": "Renamed"})
        assert failing.get("low_battery_alert").name == "Low Battery Alert"

    def test_setup_store_unchanged(self, store_path, monkeypatch):
        setup = SetupStore(store_path)
        setup.set("provider", "tessie")

        def refuse(src, dst):
            raise OSError("read-only filesystem")

        monkeypatch.setattr("services.setup_store.os.replace", refuse)
        with pytest.raises(OSError):
            setup.set("provider", "fleet")
        assert setup.get_provider() == "tessie"
