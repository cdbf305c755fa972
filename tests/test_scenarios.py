# -*- coding: utf-8 -*-
"""Tests for the per-module dual-scenario facade.

Test suite covering:
- Scenario isolation and store bridging
- Display mode switching (pure re-render)
- Initialization, persistence restore and reset
- Sync after bulk import

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

import pytest

from teui.exceptions import InvalidScenarioError
from teui.state.config import StateConfig
from teui.state.models import FieldDefinition, Scenario, ValueSource
from teui.state.persistence import InMemoryStorage
from teui.state.scenarios import ModeManager


FIELDS = [
    FieldDefinition(field_id="d_12", default="0"),
    FieldDefinition(field_id="d_129", default="20000", reference_default="25000"),
]


@pytest.fixture
def modes(store, storage, config):
    manager = ModeManager("demo", store, FIELDS, storage=storage, config=config)
    manager.initialize()
    return manager


# ==============================================================================
# Isolation Tests
# ==============================================================================

class TestScenarioIsolation:
    """Tests for Target/Reference separation."""

    def test_initialize_publishes_both_scenarios(self, modes, store):
        """Declared defaults land under both scenario keys."""
        assert store.get("d_129") == "20000"
        assert store.get("ref_d_129") == "25000"
        assert store.get_record("d_12").source is ValueSource.DEFAULT

    def test_initialize_is_quarantined(self, store, storage, config):
        """Seeding does not fire listeners."""
        calls = []
        store.add_listener("d_12", lambda *args: calls.append(args[0]))

        ModeManager("demo", store, FIELDS, storage=storage, config=config).initialize()

        assert calls == []

    def test_writes_route_by_active_mode(self, modes, store):
        """Target edits use the bare key, Reference edits the ref_ key."""
        modes.set_value("d_12", "100")
        modes.switch_mode("reference")
        modes.set_value("d_12", "50")

        assert store.get("d_12") == "100"
        assert store.get("ref_d_12") == "50"
        assert modes.read(Scenario.TARGET, "d_12") == "100"
        assert modes.read(Scenario.REFERENCE, "d_12") == "50"

    def test_reference_write_leaves_target_untouched(self, modes, store):
        modes.publish(Scenario.REFERENCE, "d_129", "30000", ValueSource.USER_MODIFIED)

        assert store.get("d_129") == "20000"
        assert store.get_record("d_129").source is ValueSource.DEFAULT

    def test_get_value_reads_active_scenario_only(self, modes):
        """No fallback to the other scenario's value."""
        modes.publish(Scenario.TARGET, "extra_1", "7")
        modes.switch_mode(Scenario.REFERENCE)

        assert modes.get_value("extra_1") is None
        assert modes.get_value("d_129") == "25000"

    def test_private_map_updated_before_listeners(self, modes, store):
        """Listeners triggered by the bridge see the new private value."""
        seen = []
        store.add_listener(
            "ref_d_12",
            lambda *args: seen.append(modes.read(Scenario.REFERENCE, "d_12")),
        )

        modes.publish(Scenario.REFERENCE, "d_12", "9", ValueSource.USER_MODIFIED)

        assert seen == ["9"]


# ==============================================================================
# Mode Switching Tests
# ==============================================================================

class TestModeSwitching:
    """Tests for display-only mode switching."""

    def test_default_mode_is_target(self, modes):
        assert modes.current_mode is Scenario.TARGET

    def test_switch_is_pure_rerender(self, modes, store):
        """Switching re-renders without writing to the store."""
        renders = []
        writes = []
        modes.add_render_callback(lambda mode, values: renders.append((mode, values["d_129"])))
        store.add_observer(type("W", (), {"on_write": lambda self, *a: writes.append(a)})())

        modes.switch_mode("reference")

        assert renders == [(Scenario.REFERENCE, "25000")]
        assert writes == []

    def test_switch_to_same_mode_is_noop(self, modes):
        renders = []
        modes.add_render_callback(lambda mode, values: renders.append(mode))

        modes.switch_mode("target")

        assert renders == []

    def test_invalid_mode_raises(self, modes):
        with pytest.raises(InvalidScenarioError):
            modes.switch_mode("baseline")

    def test_render_callback_failure_is_logged(self, modes):
        def broken(mode, values):
            raise RuntimeError("render failed")

        modes.add_render_callback(broken)
        modes.switch_mode("reference")

        assert modes.current_mode is Scenario.REFERENCE


# ==============================================================================
# Persistence Tests
# ==============================================================================

class TestFacadePersistence:
    """Tests for per-scenario persistence."""

    def test_user_edit_persists_active_scenario(self, modes, storage):
        modes.switch_mode("reference")
        modes.set_value("d_12", "50")

        assert storage.load("DEMO_REFERENCE_STATE")["d_12"] == "50"
        assert storage.load("DEMO_TARGET_STATE") is None

    def test_calculated_writes_are_not_persisted(self, modes, storage):
        modes.publish(Scenario.TARGET, "d_12", "5", ValueSource.CALCULATED)

        assert storage.load("DEMO_TARGET_STATE") is None

    def test_persist_can_be_disabled(self, store, storage):
        config = StateConfig(persist_user_edits=False)
        manager = ModeManager("demo", store, FIELDS, storage=storage, config=config)
        manager.initialize()
        manager.set_value("d_12", "1")

        assert storage.keys() == []

    def test_restore_marks_user_modified(self, store, storage, config):
        """Persisted values are restored and published as user edits."""
        storage.save("DEMO_TARGET_STATE", {"d_12": "77"})

        manager = ModeManager("demo", store, FIELDS, storage=storage, config=config)
        manager.initialize()

        assert store.get("d_12") == "77"
        assert store.get_record("d_12").source is ValueSource.USER_MODIFIED
        assert store.get("ref_d_12") == "0"

    def test_calculated_outputs_kept_out_of_storage(self, modes, storage):
        modes.publish(Scenario.TARGET, "x_1", "9", ValueSource.CALCULATED)
        modes.set_value("d_12", "100")

        assert storage.load("DEMO_TARGET_STATE") == {"d_12": "100", "d_129": "20000"}

    def test_restore_ignores_undeclared_keys(self, store, storage, config):
        storage.save("DEMO_TARGET_STATE", {"d_12": "77", "x_1": "5"})

        manager = ModeManager("demo", store, FIELDS, storage=storage, config=config)
        manager.initialize()

        assert store.get("d_12") == "77"
        assert store.get("x_1") is None
        assert manager.read(Scenario.TARGET, "x_1") is None

    def test_reset_restores_defaults_and_persists(self, modes, store, storage):
        modes.set_value("d_12", "100")
        calls = []
        store.add_listener("d_12", lambda *args: calls.append(args[0]))

        modes.reset()

        assert store.get("d_12") == "0"
        assert storage.load("DEMO_TARGET_STATE")["d_12"] == "0"
        assert storage.load("DEMO_REFERENCE_STATE")["d_129"] == "25000"
        assert calls == ["0"]

    def test_storage_failure_keeps_memory_value(self, store, config):
        """A failing backend is logged; the edit still applies."""
        from teui.exceptions import StorageError

        class FailingStorage(InMemoryStorage):
            def save(self, key, values):
                raise StorageError("disk full", storage_key=key)

        manager = ModeManager("demo", store, FIELDS, storage=FailingStorage(), config=config)
        manager.initialize()
        manager.set_value("d_12", "3")

        assert store.get("d_12") == "3"


# ==============================================================================
# Sync Tests
# ==============================================================================

class TestSyncFromStore:
    """Tests for pulling bulk-imported values into private maps."""

    def test_each_scenario_reads_its_own_key(self, modes, store):
        store.import_state({"d_12": "120", "ref_d_12": "100"})

        pulled = modes.sync_from_store()

        assert pulled == 4
        assert modes.read(Scenario.TARGET, "d_12") == "120"
        assert modes.read(Scenario.REFERENCE, "d_12") == "100"

    def test_restricted_sync(self, modes, store):
        store.import_state({"d_12": "120", "ref_d_12": "100"})

        modes.sync_from_store(["d_12"], scenarios=["reference"])

        assert modes.read(Scenario.TARGET, "d_12") == "0"
        assert modes.read(Scenario.REFERENCE, "d_12") == "100"
