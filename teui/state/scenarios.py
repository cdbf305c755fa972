# -*- coding: utf-8 -*-
"""
Dual-Scenario Facade - TEUI Calculator State Layer

Every calculation module owns one ``ModeManager``: two private flat maps
(Target and Reference) plus a display-only current mode. Writes go to a
private map first and are then bridged into the shared store under the
scenario's key (``d_12`` for Target, ``ref_d_12`` for Reference). Reads of
the active scenario never fall back to the other scenario.

Switching the display mode is a pure read: it re-renders the newly active
map through registered render callbacks and never triggers a calculation.
Both scenarios are always computed by the owning module.

Each scenario map is persisted separately (``<MODULE>_TARGET_STATE``,
``<MODULE>_REFERENCE_STATE``), only on user-modified writes and resets.

Example:
    >>> from teui.state.store import FieldStore
    >>> from teui.state.models import FieldDefinition
    >>> from teui.state.scenarios import ModeManager
    >>> store = FieldStore()
    >>> modes = ModeManager("demo", store, [FieldDefinition(field_id="d_12", default="0")])
    >>> modes.initialize()
    >>> modes.set_value("d_12", "100")
    >>> modes.switch_mode("reference")
    >>> modes.set_value("d_12", "50")
    >>> store.get("d_12"), store.get("ref_d_12")
    ('100', '50')

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from teui.exceptions import StorageError
from teui.state.config import StateConfig, get_config
from teui.state.metrics import record_mode_switch
from teui.state.models import (
    FieldDefinition,
    FieldKey,
    Scenario,
    ValueSource,
    parse_scenario,
)
from teui.state.numeric import to_store_string
from teui.state.persistence import InMemoryStorage, StorageBackend, storage_key
from teui.state.store import FieldStore

logger = logging.getLogger(__name__)

# cb(mode, values_of_active_scenario)
RenderCallback = Callable[[Scenario, Dict[str, str]], None]


# ===================================================================
# ScenarioState
# ===================================================================


class ScenarioState:
    """One private scenario map of a module, with its own persistence.

    Attributes:
        module_id: Owning module.
        scenario: Scenario this map holds.
        values: Current field values (strings).
    """

    def __init__(
        self,
        module_id: str,
        scenario: Scenario,
        fields: Dict[str, FieldDefinition],
        storage: StorageBackend,
        neutral: str = "",
    ) -> None:
        self.module_id = module_id
        self.scenario = scenario
        self.values: Dict[str, str] = {}
        self._fields = fields
        self._storage = storage
        self._neutral = neutral

    @property
    def storage_key(self) -> str:
        return storage_key(self.module_id, self.scenario)

    def set_defaults(self) -> None:
        self.values = {
            fid: to_store_string(f.default_for(self.scenario), self._neutral)
            for fid, f in self._fields.items()
        }

    def initialize(self) -> List[str]:
        """Seed declared defaults, then overlay the persisted map.

        Only declared fields are restored; any other stored key is ignored.

        Returns:
            Field ids whose value came from persistence.
        """
        self.set_defaults()
        persisted = self.load()
        if not persisted:
            return []
        restored = [fid for fid in persisted if fid in self._fields]
        for fid in restored:
            self.values[fid] = persisted[fid]
        logger.debug(
            "Restored %d %s values for %s",
            len(restored), self.scenario.value, self.module_id,
        )
        return restored

    def get(self, field_id: str) -> Optional[str]:
        """Value from this map, else this scenario's declared default."""
        if field_id in self.values:
            return self.values[field_id]
        definition = self._fields.get(field_id)
        if definition is None:
            return None
        return to_store_string(definition.default_for(self.scenario), self._neutral)

    def set(self, field_id: str, value: str) -> None:
        self.values[field_id] = value

    def snapshot(self) -> Dict[str, str]:
        return dict(self.values)

    def inputs(self) -> Dict[str, str]:
        """Declared fields only; calculated outputs are never persisted."""
        return {fid: self.get(fid) for fid in self._fields}

    def load(self) -> Optional[Dict[str, str]]:
        try:
            return self._storage.load(self.storage_key)
        except StorageError as exc:
            logger.warning(
                "Could not load %s, using defaults: %s", self.storage_key, exc,
            )
            return None

    def save(self) -> bool:
        try:
            self._storage.save(self.storage_key, self.inputs())
            return True
        except StorageError as exc:
            logger.error("Could not persist %s: %s", self.storage_key, exc)
            return False


# ===================================================================
# ModeManager facade
# ===================================================================


class ModeManager:
    """Per-module dual-scenario facade over the shared field store.

    Attributes:
        module_id: Owning module identifier.
        store: Shared FieldStore.
        fields: Declared fields keyed by id.
    """

    def __init__(
        self,
        module_id: str,
        store: FieldStore,
        fields: Iterable[FieldDefinition] = (),
        storage: Optional[StorageBackend] = None,
        config: Optional[StateConfig] = None,
    ) -> None:
        self.module_id = module_id
        self.store = store
        self.config = config or store.config or get_config()
        self.fields: Dict[str, FieldDefinition] = {f.field_id: f for f in fields}
        self.storage = storage if storage is not None else InMemoryStorage()
        self._current_mode = parse_scenario(self.config.default_mode)
        self._states: Dict[Scenario, ScenarioState] = {
            scenario: ScenarioState(
                module_id, scenario, self.fields, self.storage,
                neutral=self.config.neutral_value,
            )
            for scenario in Scenario
        }
        self._render_callbacks: List[RenderCallback] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Seed both scenario maps and publish them to the store.

        Values restored from persistence are published as user-modified,
        everything else as default. Listeners are muted while publishing.
        """
        with self.store.quarantine():
            for scenario, state in self._states.items():
                restored = set(state.initialize())
                for fid, value in list(state.values.items()):
                    source = (
                        ValueSource.USER_MODIFIED if fid in restored
                        else ValueSource.DEFAULT
                    )
                    self.store.set(FieldKey(fid, scenario), value, source)
        logger.info(
            "%s scenarios initialized with %d fields", self.module_id, len(self.fields),
        )

    def reset(self) -> None:
        """Restore declared defaults in both scenarios, persist and republish.

        Calculated outputs are dropped from the private maps; listeners
        fired by the republish recompute them.
        """
        for scenario, state in self._states.items():
            state.set_defaults()
            state.save()
            defaults = state.inputs()
            for fid in self.fields:
                self.store.set(FieldKey(fid, scenario), defaults[fid], ValueSource.DEFAULT)
        logger.info("%s scenarios reset to defaults", self.module_id)

    # ------------------------------------------------------------------
    # Active-scenario API
    # ------------------------------------------------------------------

    @property
    def current_mode(self) -> Scenario:
        return self._current_mode

    def get_current_state(self) -> ScenarioState:
        return self._states[self._current_mode]

    def state(self, scenario: Union[Scenario, str]) -> ScenarioState:
        return self._states[parse_scenario(scenario)]

    def set_value(
        self,
        field_id: str,
        value: Any,
        source: Union[ValueSource, str] = ValueSource.USER_MODIFIED,
    ) -> None:
        """Write to the active scenario and bridge into the store.

        Target writes land on ``field_id``; Reference writes on
        ``ref_<field_id>``. User-modified writes persist the active map.
        """
        self._write(self._current_mode, field_id, value, ValueSource(source))

    def get_value(self, field_id: str) -> Optional[str]:
        """Read from the active scenario only."""
        return self.get_current_state().get(field_id)

    def switch_mode(self, mode: Union[Scenario, str]) -> None:
        """Change the displayed scenario. Never recalculates.

        Raises:
            InvalidScenarioError: If ``mode`` names no scenario.
        """
        scenario = parse_scenario(mode)
        if scenario is self._current_mode:
            return
        self._current_mode = scenario
        record_mode_switch(self.module_id, scenario.value)
        logger.debug("%s display switched to %s", self.module_id, scenario.value)
        self.refresh_display()

    def add_render_callback(self, cb: RenderCallback) -> None:
        if cb not in self._render_callbacks:
            self._render_callbacks.append(cb)

    def refresh_display(self) -> None:
        """Hand the active scenario's values to every render callback."""
        snapshot = self.get_current_state().snapshot()
        for cb in list(self._render_callbacks):
            try:
                cb(self._current_mode, dict(snapshot))
            except Exception:
                logger.exception("Render callback failed for %s", self.module_id)

    # ------------------------------------------------------------------
    # Explicit-scenario API (dual-engine calculation)
    # ------------------------------------------------------------------

    def read(self, scenario: Union[Scenario, str], field_id: str) -> Optional[str]:
        """Read ``field_id`` from one scenario's private map."""
        return self._states[parse_scenario(scenario)].get(field_id)

    def read_external(
        self, scenario: Union[Scenario, str], base_id: str,
    ) -> Optional[str]:
        """Read a published store value under this scenario's key."""
        return self.store.get(FieldKey(base_id, parse_scenario(scenario)))

    def publish(
        self,
        scenario: Union[Scenario, str],
        field_id: str,
        value: Any,
        source: Union[ValueSource, str] = ValueSource.CALCULATED,
    ) -> str:
        """Write a result into one scenario's map and its store key.

        Returns:
            The string form that was stored.
        """
        return self._write(parse_scenario(scenario), field_id, value, ValueSource(source))

    def sync_from_store(
        self,
        field_ids: Optional[Iterable[str]] = None,
        scenarios: Iterable[Union[Scenario, str]] = tuple(Scenario),
    ) -> int:
        """Pull store values (e.g. after a bulk import) into the private maps.

        Each scenario reads only its own key. Missing keys are left alone.

        Returns:
            Number of values pulled.
        """
        ids = list(field_ids) if field_ids is not None else list(self.fields)
        pulled = 0
        for scenario in scenarios:
            scenario = parse_scenario(scenario)
            state = self._states[scenario]
            for fid in ids:
                value = self.store.get(FieldKey(fid, scenario))
                if value is not None:
                    state.set(fid, value)
                    pulled += 1
        if pulled:
            logger.debug("%s synced %d values from store", self.module_id, pulled)
        return pulled

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _write(
        self,
        scenario: Scenario,
        field_id: str,
        value: Any,
        source: ValueSource,
    ) -> str:
        key = FieldKey(field_id, scenario)
        text = to_store_string(value, neutral=self.config.neutral_value)
        state = self._states[scenario]
        # Private map first, so listeners fired by the bridge see the new value.
        state.set(field_id, text)
        if source is ValueSource.USER_MODIFIED and self.config.persist_user_edits:
            state.save()
        self.store.set(key, text, source)
        return text


__all__ = [
    "ScenarioState",
    "ModeManager",
    "RenderCallback",
]
