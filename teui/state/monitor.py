# -*- coding: utf-8 -*-
"""
QC Monitor - TEUI Calculator State Layer

A pure observer attached to the field store. It counts reads and writes
and reports dual-scenario invariant violations without altering values
or ordering:

- MISSING_VALUE: a cell id read while it has no value.
- MISSING_REFERENCE_VALUE: a Target key exists but its ``ref_`` key does not.
- POTENTIAL_STATE_CONTAMINATION: watched Target and Reference values are
  identical.
- BASELINE_DIVERGENCE: in mirror-target mode, a mirrored key differs
  between scenarios.

Example:
    >>> from teui.state.store import FieldStore
    >>> from teui.state.monitor import QCMonitor
    >>> store = FieldStore()
    >>> monitor = QCMonitor(store).attach()
    >>> store.set("d_21", "120", "imported")
    >>> [v.violation_type.value for v in monitor.check()]
    ['missing_reference_value']

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from teui.state.config import StateConfig
from teui.state.metrics import record_qc_violation
from teui.state.models import (
    REFERENCE_PREFIX,
    FieldKey,
    Scenario,
    ValueSource,
    Violation,
    ViolationSeverity,
    ViolationType,
    is_cell_id,
)
from teui.state.store import FieldStore

logger = logging.getLogger(__name__)

# Keys expected to be identical in both scenarios when Reference mirrors
# Target (same building geometry, climate and occupancy).
DEFAULT_MIRROR_FIELDS = (
    "h_15", "d_12", "d_20", "d_21", "d_23", "d_24", "d_63", "d_105",
)

_SEVERITY_ORDER = {
    ViolationSeverity.ERROR: 3,
    ViolationSeverity.WARNING: 2,
    ViolationSeverity.INFO: 1,
}


class QCMonitor:
    """Diagnostic observer over a FieldStore.

    Attributes:
        store: Observed store.
        reads: Read count per key.
        writes: Write count per (key, source).
        violations: Recorded violations, in detection order.
    """

    def __init__(
        self,
        store: FieldStore,
        config: Optional[StateConfig] = None,
        watch_fields: Optional[Iterable[str]] = None,
        reference_fields: Optional[Iterable[str]] = None,
        mirror_fields: Iterable[str] = DEFAULT_MIRROR_FIELDS,
        mirror_target: Optional[bool] = None,
    ) -> None:
        self.store = store
        self.config = config or store.config
        self.watch_fields: List[str] = list(
            watch_fields if watch_fields is not None else self.config.qc_watch_fields
        )
        self.reference_fields = list(reference_fields) if reference_fields is not None else None
        self.mirror_fields: Set[str] = set(mirror_fields)
        self.mirror_target = (
            self.config.qc_mirror_target if mirror_target is None else mirror_target
        )
        self.reads: Counter = Counter()
        self.writes: Counter = Counter()
        self.violations: List[Violation] = []
        self._seen: Set[Tuple[str, str, str]] = set()
        self._attached = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self) -> QCMonitor:
        self.store.add_observer(self)
        self._attached = True
        logger.info("QCMonitor attached (mirror_target=%s)", self.mirror_target)
        return self

    def detach(self) -> None:
        self.store.remove_observer(self)
        self._attached = False

    @property
    def active(self) -> bool:
        return self._attached

    # ------------------------------------------------------------------
    # Observer hooks
    # ------------------------------------------------------------------

    def on_read(self, key: str, value: Optional[str]) -> None:
        self.reads[key] += 1
        if value is None and is_cell_id(key.replace(REFERENCE_PREFIX, "", 1)):
            self._record(Violation(
                violation_type=ViolationType.MISSING_VALUE,
                severity=ViolationSeverity.WARNING,
                key=key,
                message=f"{key} was read before any value was written",
            ))

    def on_write(self, key: str, value: str, source: ValueSource) -> None:
        self.writes[(key, ValueSource(source).value)] += 1
        if self.mirror_target:
            self._check_mirror(key, value)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def detect_missing_reference_values(self) -> List[Violation]:
        found = []
        for base_id in self._reference_candidates():
            target = self._peek(base_id)
            reference = self._peek(f"{REFERENCE_PREFIX}{base_id}")
            if target and not reference:
                found.append(Violation(
                    violation_type=ViolationType.MISSING_REFERENCE_VALUE,
                    severity=ViolationSeverity.ERROR,
                    key=f"{REFERENCE_PREFIX}{base_id}",
                    message=f"Target {base_id} exists but {REFERENCE_PREFIX}{base_id} is missing",
                    details={"target_value": target},
                ))
        return found

    def detect_state_contamination(self) -> List[Violation]:
        found = []
        for base_id in self.watch_fields:
            target = self._peek(base_id)
            reference = self._peek(f"{REFERENCE_PREFIX}{base_id}")
            if target and reference and target == reference:
                found.append(Violation(
                    violation_type=ViolationType.POTENTIAL_STATE_CONTAMINATION,
                    severity=ViolationSeverity.WARNING,
                    key=base_id,
                    message=f"Target and Reference values are identical: {target}",
                    details={"target": target, "reference": reference},
                ))
        return found

    def detect_baseline_divergence(self) -> List[Violation]:
        if not self.mirror_target:
            return []
        found = []
        for base_id in sorted(self.mirror_fields):
            target = self._peek(base_id)
            reference = self._peek(f"{REFERENCE_PREFIX}{base_id}")
            if target is not None and reference is not None and target != reference:
                found.append(self._divergence(base_id, target, reference))
        return found

    def check(self) -> List[Violation]:
        """Run every structural check and record what it finds.

        Returns:
            Violations found by this run (recorded or not before).
        """
        found = (
            self.detect_missing_reference_values()
            + self.detect_state_contamination()
            + self.detect_baseline_divergence()
        )
        for violation in found:
            self._record(violation)
        return found

    def generate_report(self) -> Dict[str, Any]:
        """Summarize recorded violations, most severe first."""
        self.check()
        by_type = Counter(v.violation_type.value for v in self.violations)
        by_severity = Counter(v.severity.value for v in self.violations)
        ordered = sorted(
            self.violations,
            key=lambda v: _SEVERITY_ORDER[v.severity],
            reverse=True,
        )
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "monitoring": {
                "active": self.active,
                "mirror_target": self.mirror_target,
                "reads": sum(self.reads.values()),
                "writes": sum(self.writes.values()),
            },
            "summary": {
                "total": len(self.violations),
                "by_type": dict(by_type),
                "by_severity": dict(by_severity),
            },
            "violations": [v.model_dump(mode="json") for v in ordered],
        }

    def clear(self) -> None:
        self.reads.clear()
        self.writes.clear()
        self.violations.clear()
        self._seen.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _peek(self, key: str) -> Optional[str]:
        # Bypasses get() so checks do not count as reads.
        record = self.store.get_record(key)
        return record.value if record is not None else None

    def _reference_candidates(self) -> List[str]:
        if self.reference_fields is not None:
            return self.reference_fields
        return sorted(
            k for k in self.store.get_all_keys() if not k.startswith(REFERENCE_PREFIX)
        )

    def _check_mirror(self, key: str, value: str) -> None:
        field_key = FieldKey.parse(key)
        if field_key.base_id not in self.mirror_fields:
            return
        other = self._peek(field_key.counterpart().to_store_key())
        if other is None or other == value:
            return
        if field_key.scenario is Scenario.TARGET:
            self._record(self._divergence(field_key.base_id, value, other))
        else:
            self._record(self._divergence(field_key.base_id, other, value))

    def _divergence(self, base_id: str, target: str, reference: str) -> Violation:
        return Violation(
            violation_type=ViolationType.BASELINE_DIVERGENCE,
            severity=ViolationSeverity.ERROR,
            key=base_id,
            message=(
                f"{base_id} diverged: Target={target!r}, "
                f"Reference={reference!r}"
            ),
            details={"target": target, "reference": reference},
        )

    def _record(self, violation: Violation) -> None:
        marker = (violation.violation_type.value, violation.key, violation.message)
        if marker in self._seen:
            return
        self._seen.add(marker)
        self.violations.append(violation)
        record_qc_violation(violation.violation_type.value)
        if violation.severity is ViolationSeverity.ERROR:
            logger.error("QC %s: %s", violation.violation_type.value, violation.message)
        else:
            logger.debug("QC %s: %s", violation.violation_type.value, violation.message)


__all__ = [
    "QCMonitor",
    "DEFAULT_MIRROR_FIELDS",
]
