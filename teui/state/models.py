# -*- coding: utf-8 -*-
"""
Field State Data Models - TEUI Calculator State Layer

Pydantic v2 data models for the field store, scenario facades, staged
orchestration and diagnostics.

Models:
    - Enums: Scenario, ValueSource, StagePhase, GraphMode,
             ViolationType, ViolationSeverity
    - Keys: FieldKey
    - Store: FieldRecord
    - Facade: FieldDefinition
    - Orchestration: StageSignal, StageTransition
    - Graph: DependencyNode
    - Diagnostics: Violation

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from teui.exceptions import InvalidFieldKeyError, InvalidScenarioError

# Fixed store-key prefix for Reference-scenario values.
REFERENCE_PREFIX = "ref_"

_CELL_ID_RE = re.compile(r"^[a-z]{1,3}_\d+$")


# =============================================================================
# Enumerations
# =============================================================================


class Scenario(str, Enum):
    """The two parallel scenarios every module computes."""
    TARGET = "target"
    REFERENCE = "reference"

    @property
    def other(self) -> Scenario:
        return Scenario.REFERENCE if self is Scenario.TARGET else Scenario.TARGET


class ValueSource(str, Enum):
    """Provenance tag stored with every field value."""
    DEFAULT = "default"
    USER_MODIFIED = "user-modified"
    CALCULATED = "calculated"
    IMPORTED = "imported"


class StagePhase(str, Enum):
    """Coordination state of a staged calculation, per scenario."""
    IDLE = "idle"
    STAGE1_RUNNING = "stage1_running"
    STAGE1_COMPLETE = "stage1_complete"
    STAGE2_RUNNING = "stage2_running"
    STAGE2_COMPLETE = "stage2_complete"


class GraphMode(str, Enum):
    """Which scenario's keys a dependency graph export covers."""
    TARGET = "target"
    REFERENCE = "reference"
    BOTH = "both"


class ViolationType(str, Enum):
    """Invariant violations reported by the QC observer."""
    MISSING_REFERENCE_VALUE = "missing_reference_value"
    MISSING_VALUE = "missing_value"
    POTENTIAL_STATE_CONTAMINATION = "potential_state_contamination"
    BASELINE_DIVERGENCE = "baseline_divergence"


class ViolationSeverity(str, Enum):
    """Severity levels for QC violations."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


# =============================================================================
# Helpers
# =============================================================================


def _utcnow() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def parse_scenario(value: Union[Scenario, str]) -> Scenario:
    """Coerce a mode name to a Scenario.

    Args:
        value: Scenario member or its case-insensitive name.

    Returns:
        The matching Scenario.

    Raises:
        InvalidScenarioError: If the value names no scenario.
    """
    if isinstance(value, Scenario):
        return value
    try:
        return Scenario(str(value).strip().lower())
    except ValueError:
        raise InvalidScenarioError(
            message=f"Unknown scenario {value!r}", mode=value,
        ) from None


def is_cell_id(base_id: str) -> bool:
    """Check the ``<col>_<row>`` id convention (e.g. ``d_12``, ``h_124``)."""
    return bool(_CELL_ID_RE.match(base_id))


# =============================================================================
# Keys
# =============================================================================


class FieldKey(BaseModel):
    """A field id under one scenario.

    Serialized to a flat string only at the store boundary: the base id for
    Target, ``ref_`` + base id for Reference.

    Example:
        >>> FieldKey("d_12", Scenario.REFERENCE).to_store_key()
        'ref_d_12'
        >>> FieldKey.parse("ref_d_12").scenario
        <Scenario.REFERENCE: 'reference'>
    """
    base_id: str = Field(..., description="Unprefixed field id")
    scenario: Scenario = Field(default=Scenario.TARGET, description="Scenario")

    model_config = {"extra": "forbid", "frozen": True}

    def __init__(
        self,
        base_id: str,
        scenario: Union[Scenario, str] = Scenario.TARGET,
        **data: Any,
    ) -> None:
        if not isinstance(base_id, str) or not base_id:
            raise InvalidFieldKeyError(
                message="Field base id must be a non-empty string", key=base_id,
            )
        if base_id.startswith(REFERENCE_PREFIX):
            raise InvalidFieldKeyError(
                message=(
                    f"Base id {base_id!r} already carries the reference "
                    f"prefix; use FieldKey.parse for store keys"
                ),
                key=base_id,
            )
        super().__init__(base_id=base_id, scenario=parse_scenario(scenario), **data)

    @classmethod
    def parse(cls, store_key: str) -> FieldKey:
        """Build a FieldKey from a flat store key."""
        if not isinstance(store_key, str) or not store_key:
            raise InvalidFieldKeyError(
                message="Store key must be a non-empty string", key=store_key,
            )
        if store_key.startswith(REFERENCE_PREFIX):
            return cls(store_key[len(REFERENCE_PREFIX):], Scenario.REFERENCE)
        return cls(store_key, Scenario.TARGET)

    def to_store_key(self) -> str:
        if self.scenario is Scenario.REFERENCE:
            return f"{REFERENCE_PREFIX}{self.base_id}"
        return self.base_id

    def counterpart(self) -> FieldKey:
        """Same base id under the other scenario."""
        return FieldKey(self.base_id, self.scenario.other)

    def __str__(self) -> str:
        return self.to_store_key()


def store_key(base_id: str, scenario: Union[Scenario, str]) -> str:
    """Shorthand for ``FieldKey(base_id, scenario).to_store_key()``."""
    return FieldKey(base_id, scenario).to_store_key()


# =============================================================================
# Store
# =============================================================================


class FieldRecord(BaseModel):
    """Current value of one store key. The store keeps no history."""
    key: str = Field(..., description="Flat store key")
    value: str = Field(..., description="Stored string value")
    source: ValueSource = Field(..., description="Provenance of the value")
    updated_at: datetime = Field(default_factory=_utcnow, description="Write time")

    model_config = {"extra": "forbid"}


# =============================================================================
# Facade
# =============================================================================


class FieldDefinition(BaseModel):
    """Declared field owned by a module's scenario facade."""
    field_id: str = Field(..., description="Unprefixed field id")
    default: Any = Field(default="", description="Target (and Reference) default")
    reference_default: Optional[Any] = Field(
        None, description="Reference default when it differs from Target",
    )
    description: str = Field(default="", description="Human-readable description")
    unit: Optional[str] = Field(None, description="Unit of measurement")
    user_editable: bool = Field(default=True, description="Whether users edit it")

    model_config = {"extra": "forbid"}

    def default_for(self, scenario: Scenario) -> Any:
        if scenario is Scenario.REFERENCE and self.reference_default is not None:
            return self.reference_default
        return self.default


# =============================================================================
# Orchestration
# =============================================================================


class StageSignal(BaseModel):
    """Broadcast emitted when a module stage publishes its outputs."""
    module_id: str = Field(..., description="Emitting module")
    stage: str = Field(..., description="Stage name (stage1, stage2)")
    scenario: Scenario = Field(..., description="Scenario that was computed")
    values: Dict[str, str] = Field(
        default_factory=dict, description="Published store keys and values",
    )
    emitted_at: datetime = Field(default_factory=_utcnow, description="Emit time")

    model_config = {"extra": "forbid"}

    @property
    def name(self) -> str:
        return f"{self.module_id}-{self.stage}"


class StageTransition(BaseModel):
    """One recorded phase change of a staged calculation."""
    scenario: Scenario
    from_phase: StagePhase
    to_phase: StagePhase

    model_config = {"extra": "forbid"}


# =============================================================================
# Graph
# =============================================================================


class DependencyNode(BaseModel):
    """Node in the documentation dependency graph."""
    key: str = Field(..., description="Flat store key")
    precedents: List[str] = Field(
        default_factory=list, description="Keys this one is computed from",
    )
    dependents: List[str] = Field(
        default_factory=list, description="Keys computed from this one",
    )

    model_config = {"extra": "forbid"}


# =============================================================================
# Diagnostics
# =============================================================================


class Violation(BaseModel):
    """Invariant violation recorded by the QC observer."""
    violation_type: ViolationType = Field(..., description="Violation kind")
    severity: ViolationSeverity = Field(..., description="Severity")
    key: str = Field(..., description="Store key involved")
    message: str = Field(..., description="Human-readable explanation")
    details: Dict[str, Any] = Field(default_factory=dict, description="Extra data")
    detected_at: datetime = Field(default_factory=_utcnow, description="Detection time")

    model_config = {"extra": "forbid"}


__all__ = [
    "REFERENCE_PREFIX",
    "Scenario",
    "ValueSource",
    "StagePhase",
    "GraphMode",
    "ViolationType",
    "ViolationSeverity",
    "parse_scenario",
    "is_cell_id",
    "FieldKey",
    "store_key",
    "FieldRecord",
    "FieldDefinition",
    "StageSignal",
    "StageTransition",
    "DependencyNode",
    "Violation",
]
