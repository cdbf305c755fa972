# -*- coding: utf-8 -*-
"""
Calculation Modules and Staged Orchestration - TEUI Calculator State Layer

Base classes for pluggable calculation modules.

``CalculationModule`` owns a dual-scenario facade, reacts to its inputs
through store listeners and, on every run, computes the requested
scenario through the shared cascade scheduler. ``calculate_all`` always
computes Target and Reference back to back.

``StagedCalculation`` breaks a cycle between two modules A and B, where B
needs an early output of A and A needs B's output:

1. Stage 1 computes everything A can produce without B and publishes it.
2. B consumes Stage 1 outputs like any other store value and publishes.
3. A listener on B's output key runs Stage 2, which re-reads Stage 1's
   outputs fresh from the store together with B's value.
4. A gate can disable the dependent feature; Stage 2 then publishes the
   neutral output without reading B's key.
5. The scheduler's per-pass visited set keeps a stage from running again
   inside the cascade its own writes started.

Inputs are re-read on every run. Results are never cached between runs;
within a cascade another key may not be updated yet, and a fresh read is
what keeps that harmless.

Example:
    >>> class Doubler(CalculationModule):
    ...     module_id = "doubler"
    ...     fields = [FieldDefinition(field_id="a_1", default="2")]
    ...     inputs = ("a_1",)
    ...     outputs = ("b_1",)
    ...     def compute(self, scenario):
    ...         return {"b_1": self.number(scenario, "a_1") * 2}

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import time
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from teui.state.config import StateConfig
from teui.state.metrics import record_stage_run
from teui.state.models import (
    FieldDefinition,
    FieldKey,
    Scenario,
    StagePhase,
    StageSignal,
    StageTransition,
    ValueSource,
    parse_scenario,
)
from teui.state.numeric import parse_numeric
from teui.state.persistence import StorageBackend
from teui.state.scenarios import ModeManager
from teui.state.scheduler import CascadeScheduler
from teui.state.signals import SignalBus
from teui.state.store import FieldStore

logger = logging.getLogger(__name__)

_MAX_TRANSITIONS = 1000


def _is_unset(value: Optional[str]) -> bool:
    return value is None or value == ""


# ===================================================================
# CalculationModule
# ===================================================================


class CalculationModule:
    """Single-stage module computing both scenarios from store inputs.

    Subclasses declare:
        module_id: Identifier used in task ids, signals and storage keys.
        fields: Facade field declarations (own inputs).
        inputs: Own field ids whose change triggers a run.
        external_inputs: Other modules' base ids whose change triggers a run.
        outputs: Base ids published by ``compute``.

    and implement ``compute(scenario) -> {base_id: value}``.
    """

    module_id: ClassVar[str] = ""
    fields: ClassVar[Sequence[FieldDefinition]] = ()
    inputs: ClassVar[Tuple[str, ...]] = ()
    external_inputs: ClassVar[Tuple[str, ...]] = ()
    outputs: ClassVar[Tuple[str, ...]] = ()

    def __init__(
        self,
        store: FieldStore,
        scheduler: Optional[CascadeScheduler] = None,
        signals: Optional[SignalBus] = None,
        storage: Optional[StorageBackend] = None,
        config: Optional[StateConfig] = None,
    ) -> None:
        if not self.module_id:
            raise ValueError(f"{type(self).__name__} must define module_id")
        self.store = store
        self.scheduler = scheduler or CascadeScheduler()
        self.signals = signals or SignalBus()
        self.modes = ModeManager(
            self.module_id, store, self.fields, storage=storage,
            config=config or store.config,
        )
        self.run_counts: Dict[Tuple[str, Scenario], int] = {}
        self._subscriptions: List[Tuple[str, Callable[..., None]]] = []
        self._initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Seed scenario state, declare dependencies and wire listeners.

        Safe to call multiple times.
        """
        if self._initialized:
            return
        self.modes.initialize()
        self.register_dependencies()
        self.store.registry.set_owner(
            self.module_id,
            [FieldKey(k, s) for k in self.published_keys() for s in Scenario],
        )
        self.wire()
        self._initialized = True
        logger.info("%s initialized", self.module_id)

    def detach(self) -> None:
        """Remove every listener this module registered."""
        for key, cb in self._subscriptions:
            self.store.remove_listener(key, cb)
        self._subscriptions.clear()
        self._initialized = False

    def register_dependencies(self) -> None:
        """Declare documentation edges from inputs to outputs."""
        for precedent in self.inputs + self.external_inputs:
            for output in self.outputs:
                self.store.registry.register_both(precedent, output)

    def wire(self) -> None:
        for base_id in self.inputs:
            self._listen_own_input(base_id, self.run)
        for base_id in self.external_inputs:
            self._listen_per_scenario(base_id, self.run)

    def published_keys(self) -> Tuple[str, ...]:
        return self.outputs

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def compute(self, scenario: Scenario) -> Dict[str, Any]:
        raise NotImplementedError

    def run(self, scenario: Union[Scenario, str]) -> bool:
        """Run ``compute`` for one scenario through the scheduler.

        Returns:
            ``False`` if suppressed by the per-pass visited set.
        """
        scenario = parse_scenario(scenario)
        return self.scheduler.submit(
            (self.module_id, "calculate", scenario.value),
            lambda: self._run_body(scenario),
        )

    def calculate_all(self) -> None:
        """Compute Target then Reference, regardless of displayed mode."""
        for scenario in (Scenario.TARGET, Scenario.REFERENCE):
            self.run(scenario)

    def _run_body(self, scenario: Scenario) -> None:
        started = time.perf_counter()
        self._count("calculate", scenario)
        try:
            values = self.compute(scenario)
        except Exception:
            record_stage_run(self.module_id, "calculate", "error", time.perf_counter() - started)
            raise
        self.publish_outputs("calculate", scenario, values)
        record_stage_run(self.module_id, "calculate", "success", time.perf_counter() - started)

    # ------------------------------------------------------------------
    # Reading helpers (always fresh)
    # ------------------------------------------------------------------

    def number(self, scenario: Scenario, field_id: str, default: Optional[float] = None) -> float:
        """Own input from the scenario's private map, parsed to float."""
        if default is None:
            definition = self.modes.fields.get(field_id)
            default = (
                parse_numeric(definition.default_for(scenario))
                if definition is not None else 0.0
            )
        return parse_numeric(self.modes.read(scenario, field_id), default)

    def text(self, scenario: Scenario, field_id: str) -> str:
        value = self.modes.read(scenario, field_id)
        return "" if value is None else value

    def external_number(self, scenario: Scenario, base_id: str, default: float = 0.0) -> float:
        """Another module's published value under this scenario's key."""
        return parse_numeric(self.modes.read_external(scenario, base_id), default)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish_outputs(
        self,
        stage: str,
        scenario: Scenario,
        values: Dict[str, Any],
    ) -> Dict[str, str]:
        """Publish results and emit ``<module>-<stage>``.

        Returns:
            Mapping of store key to stored value.
        """
        published: Dict[str, str] = {}
        for base_id, value in values.items():
            text = self.modes.publish(scenario, base_id, value, ValueSource.CALCULATED)
            published[FieldKey(base_id, scenario).to_store_key()] = text
        self.signals.emit(StageSignal(
            module_id=self.module_id, stage=stage, scenario=scenario, values=published,
        ))
        return published

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _count(self, stage: str, scenario: Scenario) -> None:
        key = (stage, scenario)
        self.run_counts[key] = self.run_counts.get(key, 0) + 1

    def _subscribe(self, key: FieldKey, cb: Callable[..., None]) -> None:
        store_key = key.to_store_key()
        self.store.add_listener(store_key, cb)
        self._subscriptions.append((store_key, cb))

    def _listen_per_scenario(
        self, base_id: str, action: Callable[[Scenario], Any],
    ) -> None:
        for scenario in Scenario:
            def _on_change(new, old, key, source, _scenario=scenario):
                action(_scenario)
            self._subscribe(FieldKey(base_id, scenario), _on_change)

    def _listen_own_input(
        self, field_id: str, action: Callable[[Scenario], Any],
    ) -> None:
        # Writes that bypassed the facade (bulk import) are pulled into the
        # private map before the module reacts.
        for scenario in Scenario:
            def _on_change(new, old, key, source, _scenario=scenario, _fid=field_id):
                if self.modes.read(_scenario, _fid) != new:
                    self.modes.sync_from_store([_fid], scenarios=[_scenario])
                action(_scenario)
            self._subscribe(FieldKey(field_id, scenario), _on_change)


# ===================================================================
# StagedCalculation
# ===================================================================


class StagedCalculation(CalculationModule):
    """Module A of a cycle, split into Stage 1 and Stage 2.

    Subclasses declare:
        stage1_outputs: Base ids published by Stage 1.
        stage2_outputs: Base ids published by Stage 2.
        stage2_requires: Stage 1 outputs that must be set before Stage 2
            runs (defaults to ``stage1_outputs``).
        trigger_key: Base id of module B's output; a write to it (under
            either scenario's key) runs Stage 2 for that scenario.
        stage2_inputs: Own field ids (e.g. the gate) that run Stage 2.

    and implement ``compute_stage1`` / ``compute_stage2``. Override
    ``is_gated`` to disable Stage 2.
    """

    stage1_outputs: ClassVar[Tuple[str, ...]] = ()
    stage2_outputs: ClassVar[Tuple[str, ...]] = ()
    stage2_requires: ClassVar[Optional[Tuple[str, ...]]] = None
    trigger_key: ClassVar[str] = ""
    stage2_inputs: ClassVar[Tuple[str, ...]] = ()

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._phases: Dict[Scenario, StagePhase] = {s: StagePhase.IDLE for s in Scenario}
        self.transitions: List[StageTransition] = []

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def published_keys(self) -> Tuple[str, ...]:
        return self.stage1_outputs + self.stage2_outputs

    def register_dependencies(self) -> None:
        registry = self.store.registry
        for precedent in self.inputs + self.external_inputs:
            for output in self.stage1_outputs:
                registry.register_both(precedent, output)
        for precedent in self.required_stage1() + (self.trigger_key,) + self.stage2_inputs:
            for output in self.stage2_outputs:
                registry.register_both(precedent, output)

    def wire(self) -> None:
        for base_id in self.inputs:
            self._listen_own_input(base_id, self.run_stage1)
        for base_id in self.external_inputs:
            self._listen_per_scenario(base_id, self.run_stage1)
        for base_id in self.stage2_inputs:
            self._listen_own_input(base_id, self.run_stage2)
        if self.trigger_key:
            self._listen_per_scenario(self.trigger_key, self.run_stage2)

    def required_stage1(self) -> Tuple[str, ...]:
        if self.stage2_requires is not None:
            return self.stage2_requires
        return self.stage1_outputs

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def compute_stage1(self, scenario: Scenario) -> Dict[str, Any]:
        raise NotImplementedError

    def compute_stage2(self, scenario: Scenario) -> Dict[str, Any]:
        raise NotImplementedError

    def is_gated(self, scenario: Scenario) -> bool:
        """True when the dependent feature is disabled for ``scenario``."""
        return False

    def neutral_stage2(self, scenario: Scenario) -> Dict[str, Any]:
        return {base_id: "0" for base_id in self.stage2_outputs}

    def compute(self, scenario: Scenario) -> Dict[str, Any]:
        raise NotImplementedError("Staged modules run through run_stage1/run_stage2")

    def run(self, scenario: Union[Scenario, str]) -> bool:
        return self.run_stage1(scenario)

    def run_stage1(self, scenario: Union[Scenario, str]) -> bool:
        scenario = parse_scenario(scenario)
        return self.scheduler.submit(
            (self.module_id, "stage1", scenario.value),
            lambda: self._stage1_body(scenario),
        )

    def run_stage2(self, scenario: Union[Scenario, str]) -> bool:
        scenario = parse_scenario(scenario)
        return self.scheduler.submit(
            (self.module_id, "stage2", scenario.value),
            lambda: self._stage2_body(scenario),
        )

    def calculate_all(self) -> None:
        """Stage 1 then Stage 2, for Target then Reference."""
        for scenario in (Scenario.TARGET, Scenario.REFERENCE):
            self.run_stage1(scenario)
        for scenario in (Scenario.TARGET, Scenario.REFERENCE):
            self.run_stage2(scenario)

    def phase(self, scenario: Union[Scenario, str]) -> StagePhase:
        return self._phases[parse_scenario(scenario)]

    # ------------------------------------------------------------------
    # Stage bodies
    # ------------------------------------------------------------------

    def _stage1_body(self, scenario: Scenario) -> None:
        started = time.perf_counter()
        self._transition(scenario, StagePhase.STAGE1_RUNNING)
        self._count("stage1", scenario)
        logger.debug("%s stage1 (%s) started", self.module_id, scenario.value)
        try:
            values = self.compute_stage1(scenario)
        except Exception:
            self._transition(scenario, StagePhase.IDLE)
            record_stage_run(self.module_id, "stage1", "error", time.perf_counter() - started)
            raise
        self.publish_outputs("stage1", scenario, values)
        self._transition(scenario, StagePhase.STAGE1_COMPLETE)
        record_stage_run(self.module_id, "stage1", "success", time.perf_counter() - started)

    def _stage2_body(self, scenario: Scenario) -> None:
        started = time.perf_counter()

        if self.is_gated(scenario):
            self._transition(scenario, StagePhase.STAGE2_RUNNING)
            self._count("stage2", scenario)
            logger.debug("%s stage2 (%s) gated; publishing neutral output",
                         self.module_id, scenario.value)
            self.publish_outputs("stage2", scenario, self.neutral_stage2(scenario))
            self._finish_stage2(scenario)
            record_stage_run(self.module_id, "stage2", "gated", time.perf_counter() - started)
            return

        missing = [
            base_id for base_id in self.required_stage1()
            if _is_unset(self.store.get(FieldKey(base_id, scenario)))
        ]
        if missing:
            logger.info(
                "%s stage2 (%s) skipped; stage1 outputs not yet published: %s",
                self.module_id, scenario.value, ", ".join(missing),
            )
            record_stage_run(self.module_id, "stage2", "skipped", time.perf_counter() - started)
            return

        self._transition(scenario, StagePhase.STAGE2_RUNNING)
        self._count("stage2", scenario)
        try:
            values = self.compute_stage2(scenario)
        except Exception:
            self._transition(scenario, StagePhase.IDLE)
            record_stage_run(self.module_id, "stage2", "error", time.perf_counter() - started)
            raise
        self.publish_outputs("stage2", scenario, values)
        self._finish_stage2(scenario)
        record_stage_run(self.module_id, "stage2", "success", time.perf_counter() - started)

    def _finish_stage2(self, scenario: Scenario) -> None:
        self._transition(scenario, StagePhase.STAGE2_COMPLETE)
        self._transition(scenario, StagePhase.IDLE)

    def _transition(self, scenario: Scenario, phase: StagePhase) -> None:
        previous = self._phases[scenario]
        self._phases[scenario] = phase
        self.transitions.append(StageTransition(
            scenario=scenario, from_phase=previous, to_phase=phase,
        ))
        if len(self.transitions) > _MAX_TRANSITIONS:
            del self.transitions[: len(self.transitions) - _MAX_TRANSITIONS]


__all__ = [
    "CalculationModule",
    "StagedCalculation",
]
