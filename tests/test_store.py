# -*- coding: utf-8 -*-
"""Tests for the shared field store.

Test suite covering:
- get/set contract and provenance
- Listener ordering, identical-value dispatch and error isolation
- Import quarantine and revert
- Documentation-only dirty tracking
- Observers

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

import pytest

from teui.exceptions import ListenerError
from teui.state.config import StateConfig
from teui.state.models import FieldKey, Scenario, ValueSource
from teui.state.store import FieldStore


# ==============================================================================
# Core Contract Tests
# ==============================================================================

class TestGetSet:
    """Tests for the keyed value contract."""

    def test_unknown_key_is_none(self, store):
        """Reading a key never written returns None."""
        assert store.get("d_12") is None

    def test_values_are_strings(self, store):
        """Stored values are coerced to strings."""
        store.set("d_12", 100, ValueSource.USER_MODIFIED)
        store.set("d_13", 2.5, "calculated")

        assert store.get("d_12") == "100"
        assert store.get("d_13") == "2.5"

    def test_provenance_is_recorded(self, store):
        """The record keeps the source tag."""
        store.set("d_12", "100", "user-modified")

        record = store.get_record("d_12")
        assert record.source is ValueSource.USER_MODIFIED
        assert record.value == "100"

    def test_none_stores_neutral_value(self, store):
        """None is stored as the neutral value, not the text 'None'."""
        store.set("h_124", None, ValueSource.CALCULATED)
        assert store.get("h_124") == ""

    def test_configured_neutral_value(self, registry):
        """The neutral value is configurable."""
        store = FieldStore(config=StateConfig(neutral_value="0"), registry=registry)
        store.set("h_124", None, ValueSource.CALCULATED)
        assert store.get("h_124") == "0"

    def test_field_keys_serialize_at_boundary(self, store):
        """FieldKey and flat keys address the same slot."""
        store.set(FieldKey("d_12", Scenario.REFERENCE), "50", "user-modified")

        assert store.get("ref_d_12") == "50"
        assert store.get(FieldKey.parse("ref_d_12")) == "50"
        assert store.get("d_12") is None

    def test_snapshot_accessors(self, store):
        store.set("d_12", "1", "default")
        store.set("ref_d_12", "2", "default")

        assert store.get_all_keys() == ["d_12", "ref_d_12"]
        assert store.get_all_values() == {"d_12": "1", "ref_d_12": "2"}
        assert "ref_d_12" in store
        assert len(store) == 2


# ==============================================================================
# Listener Tests
# ==============================================================================

class TestListeners:
    """Tests for synchronous change notification."""

    def test_listeners_run_in_registration_order(self, store):
        """Listeners fire synchronously, in order, before set returns."""
        calls = []
        store.add_listener("m_129", lambda new, old, key, src: calls.append(("a", new)))
        store.add_listener("m_129", lambda new, old, key, src: calls.append(("b", new)))

        store.set("m_129", 10, ValueSource.CALCULATED)

        assert calls == [("a", "10"), ("b", "10")]

    def test_listener_receives_old_value_key_and_source(self, store):
        """Callbacks get the previous value and provenance."""
        seen = []
        store.set("d_12", "1", "default")
        store.add_listener("d_12", lambda new, old, key, src: seen.append((new, old, key, src)))

        store.set("d_12", "2", "user-modified")

        assert seen == [("2", "1", "d_12", ValueSource.USER_MODIFIED)]

    def test_identical_value_still_notifies(self, store):
        """Writes are not deduplicated."""
        calls = []
        store.add_listener("m_129", lambda *args: calls.append(args[0]))

        store.set("m_129", "10", "calculated")
        store.set("m_129", "10", "calculated")

        assert calls == ["10", "10"]

    def test_duplicate_registration_is_noop(self, store):
        """The same callable registered twice fires once."""
        calls = []

        def listener(new, old, key, src):
            calls.append(new)

        store.add_listener("m_129", listener)
        store.add_listener("m_129", listener)
        store.set("m_129", "1", "calculated")

        assert calls == ["1"]
        assert store.listener_count("m_129") == 1

    def test_listeners_are_per_key(self, store):
        """A Target listener does not fire for the Reference key."""
        calls = []
        store.add_listener("m_129", lambda *args: calls.append(args[2]))

        store.set("ref_m_129", "5", "calculated")

        assert calls == []

    def test_failing_listener_is_isolated(self, store):
        """A raising listener is logged; the others still run."""
        calls = []

        def broken(new, old, key, src):
            raise RuntimeError("boom")

        store.add_listener("m_129", broken)
        store.add_listener("m_129", lambda *args: calls.append(args[0]))

        store.set("m_129", "3", "calculated")

        assert store.get("m_129") == "3"
        assert calls == ["3"]
        assert len(store.listener_errors) == 1
        error = store.listener_errors[0]
        assert isinstance(error, ListenerError)
        assert error.context["key"] == "m_129"
        assert error.context["cause_type"] == "RuntimeError"

    def test_remove_listener(self, store):
        calls = []

        def listener(new, old, key, src):
            calls.append(new)

        store.add_listener("d_12", listener)
        store.remove_listener("d_12", listener)
        store.set("d_12", "1", "default")

        assert calls == []

    def test_listener_may_write_other_keys(self, store):
        """Cascades happen inside the outer set call."""
        store.add_listener(
            "h_124",
            lambda new, old, key, src: store.set("m_129", float(new) * 2, "calculated"),
        )
        store.set("h_124", "21", "calculated")

        assert store.get("m_129") == "42"


# ==============================================================================
# Import Tests
# ==============================================================================

class TestImport:
    """Tests for quarantined bulk import and revert."""

    def test_import_is_quarantined(self, store):
        """Listeners are muted during import."""
        calls = []
        store.add_listener("d_12", lambda *args: calls.append(args[0]))

        count = store.import_state({"d_12": "120", "ref_d_12": "100"})

        assert count == 2
        assert calls == []
        assert store.get_record("d_12").source is ValueSource.IMPORTED
        assert not store.listeners_muted

    def test_import_without_quarantine_dispatches(self, store):
        calls = []
        store.add_listener("d_12", lambda *args: calls.append(args[0]))

        store.import_state({"d_12": "120"}, quarantine=False)

        assert calls == ["120"]

    def test_revert_to_last_imported(self, store):
        """Revert restores the imported snapshot and notifies listeners."""
        store.import_state({"d_12": "120"})
        store.set("d_12", "999", "user-modified")
        calls = []
        store.add_listener("d_12", lambda *args: calls.append(args[0]))

        restored = store.revert_to_last_imported()

        assert restored == 1
        assert store.get("d_12") == "120"
        assert calls == ["120"]

    def test_revert_without_import(self, store):
        assert store.revert_to_last_imported() == 0

    def test_quarantine_nests(self, store):
        """Nested quarantines unmute only at the outermost exit."""
        with store.quarantine():
            with store.quarantine():
                pass
            assert store.listeners_muted
        assert not store.listeners_muted


# ==============================================================================
# Dirty Tracking Tests
# ==============================================================================

class TestDirtyTracking:
    """Tests for documentation-only dirty tracking."""

    def test_user_write_marks_dependents(self, store):
        """Non-calculated writes mark transitive dependents dirty."""
        store.register_dependency("h_124", "m_129")
        store.register_dependency("m_129", "m_124")

        store.set("h_124", "5", "user-modified")

        assert store.get_dirty_fields() == ["m_124", "m_129"]

    def test_calculated_write_does_not_mark(self, store):
        store.register_dependency("h_124", "m_129")
        store.set("h_124", "5", ValueSource.CALCULATED)

        assert store.get_dirty_fields() == []

    def test_clear_dirty(self, store):
        store.register_dependency("h_124", "m_129")
        store.set("h_124", "5", "imported")
        store.clear_dirty(["m_129"])

        assert store.get_dirty_fields() == []


# ==============================================================================
# Observer Tests
# ==============================================================================

class TestObservers:
    """Tests for read/write observers."""

    def test_observer_sees_reads_and_writes(self, store):
        events = []

        class Recorder:
            def on_read(self, key, value):
                events.append(("read", key, value))

            def on_write(self, key, value, source):
                events.append(("write", key, value))

        store.add_observer(Recorder())
        store.set("d_12", "1", "default")
        store.get("d_12")

        assert events == [("write", "d_12", "1"), ("read", "d_12", "1")]

    def test_failing_observer_does_not_break_store(self, store):
        class Broken:
            def on_write(self, key, value, source):
                raise RuntimeError("observer down")

        store.add_observer(Broken())
        store.set("d_12", "1", "default")

        assert store.get("d_12") == "1"
