# -*- coding: utf-8 -*-
"""
TEUI State Layer
================

The reactive substrate underneath every calculation module:

- FieldStore: keyed string values with provenance and synchronous,
  ordered change listeners
- ModeManager: per-module Target/Reference facade bridged into the store
- CalculationModule / StagedCalculation: dual-engine modules and the
  two-stage cycle breaker
- CascadeScheduler: run-to-quiescence task queue with per-pass visited set
- DependencyRegistry: documentation-only dependency graph and dirty set
- QCMonitor: read/write observer reporting scenario invariant violations
- StateConfig with TEUI_STATE_ env prefix and Prometheus metrics

The service facade lives in ``teui.state.setup`` and is imported from
there directly, since it pulls in the calculation modules.

Example:
    >>> from teui.state import FieldStore, FieldKey, Scenario
    >>> store = FieldStore()
    >>> store.set(FieldKey("d_12", Scenario.REFERENCE), 50, "user-modified")
    >>> store.get("ref_d_12")
    '50'
"""

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from teui.state.config import (
    StateConfig,
    get_config,
    set_config,
    reset_config,
)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
from teui.state.models import (
    REFERENCE_PREFIX,
    # Enumerations
    Scenario,
    ValueSource,
    StagePhase,
    GraphMode,
    ViolationType,
    ViolationSeverity,
    # Keys
    FieldKey,
    parse_scenario,
    is_cell_id,
    store_key,
    # Records
    FieldRecord,
    FieldDefinition,
    StageSignal,
    StageTransition,
    DependencyNode,
    Violation,
)

# ---------------------------------------------------------------------------
# Core engines
# ---------------------------------------------------------------------------
from teui.state.numeric import parse_numeric, to_store_string, safe_divide
from teui.state.dependencies import DependencyRegistry
from teui.state.store import FieldStore
from teui.state.persistence import (
    InMemoryStorage,
    JsonFileStorage,
    StorageBackend,
    create_storage,
)
from teui.state.scenarios import ModeManager, ScenarioState
from teui.state.scheduler import CascadeScheduler
from teui.state.signals import SignalBus
from teui.state.orchestrator import CalculationModule, StagedCalculation
from teui.state.monitor import QCMonitor

# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------
from teui.state.metrics import PROMETHEUS_AVAILABLE

__all__ = [
    # Configuration
    "StateConfig",
    "get_config",
    "set_config",
    "reset_config",
    # Models
    "REFERENCE_PREFIX",
    "Scenario",
    "ValueSource",
    "StagePhase",
    "GraphMode",
    "ViolationType",
    "ViolationSeverity",
    "FieldKey",
    "parse_scenario",
    "is_cell_id",
    "store_key",
    "FieldRecord",
    "FieldDefinition",
    "StageSignal",
    "StageTransition",
    "DependencyNode",
    "Violation",
    # Core engines
    "parse_numeric",
    "to_store_string",
    "safe_divide",
    "DependencyRegistry",
    "FieldStore",
    "InMemoryStorage",
    "JsonFileStorage",
    "StorageBackend",
    "create_storage",
    "ModeManager",
    "ScenarioState",
    "CascadeScheduler",
    "SignalBus",
    "CalculationModule",
    "StagedCalculation",
    "QCMonitor",
    # Metrics
    "PROMETHEUS_AVAILABLE",
]
