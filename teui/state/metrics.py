# -*- coding: utf-8 -*-
"""
Prometheus Metrics - TEUI Calculator State Layer

Prometheus metrics for the field store, staged orchestration and QC
observer, with graceful fallback when prometheus_client is not installed.

Metrics:
    1. teui_store_writes_total (Counter)
    2. teui_listener_errors_total (Counter)
    3. teui_stage_runs_total (Counter)
    4. teui_stage_duration_seconds (Histogram)
    5. teui_reentries_suppressed_total (Counter)
    6. teui_cascade_queue_depth (Histogram)
    7. teui_qc_violations_total (Counter)
    8. teui_mode_switches_total (Counter)
    9. teui_store_keys (Gauge)
    10. teui_dependency_depth (Histogram)

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Graceful prometheus_client import
# ---------------------------------------------------------------------------

try:
    from prometheus_client import Counter, Gauge, Histogram
    PROMETHEUS_AVAILABLE = True
except ImportError:
    PROMETHEUS_AVAILABLE = False
    logger.info("prometheus_client not installed; TEUI state metrics disabled")


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

if PROMETHEUS_AVAILABLE:
    # 1. Store writes by provenance
    teui_store_writes_total = Counter(
        "teui_store_writes_total",
        "Total field store writes",
        labelnames=["source"],
    )

    # 2. Listener failures caught at dispatch
    teui_listener_errors_total = Counter(
        "teui_listener_errors_total",
        "Total listener callbacks that raised during dispatch",
    )

    # 3. Stage runs
    teui_stage_runs_total = Counter(
        "teui_stage_runs_total",
        "Total staged calculation runs",
        labelnames=["module", "stage", "result"],
    )

    # 4. Stage duration
    teui_stage_duration_seconds = Histogram(
        "teui_stage_duration_seconds",
        "Staged calculation duration in seconds",
        labelnames=["module", "stage"],
        buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25),
    )

    # 5. Suppressed reentries
    teui_reentries_suppressed_total = Counter(
        "teui_reentries_suppressed_total",
        "Total task submissions skipped because they already ran in the pass",
    )

    # 6. Cascade queue depth
    teui_cascade_queue_depth = Histogram(
        "teui_cascade_queue_depth",
        "Largest task queue size reached in a cascade pass",
        buckets=(0, 1, 2, 3, 5, 8, 13, 21, 34),
    )

    # 7. QC violations
    teui_qc_violations_total = Counter(
        "teui_qc_violations_total",
        "Total QC invariant violations recorded",
        labelnames=["violation_type"],
    )

    # 8. Mode switches
    teui_mode_switches_total = Counter(
        "teui_mode_switches_total",
        "Total display mode switches",
        labelnames=["module", "mode"],
    )

    # 9. Store size
    teui_store_keys = Gauge(
        "teui_store_keys",
        "Current number of keys held by the field store",
    )

    # 10. Dependency depth
    teui_dependency_depth = Histogram(
        "teui_dependency_depth",
        "Depth of documented dependency chains",
        buckets=(1, 2, 3, 4, 5, 7, 10, 15, 20),
    )

else:
    # No-op placeholders
    teui_store_writes_total = None  # type: ignore[assignment]
    teui_listener_errors_total = None  # type: ignore[assignment]
    teui_stage_runs_total = None  # type: ignore[assignment]
    teui_stage_duration_seconds = None  # type: ignore[assignment]
    teui_reentries_suppressed_total = None  # type: ignore[assignment]
    teui_cascade_queue_depth = None  # type: ignore[assignment]
    teui_qc_violations_total = None  # type: ignore[assignment]
    teui_mode_switches_total = None  # type: ignore[assignment]
    teui_store_keys = None  # type: ignore[assignment]
    teui_dependency_depth = None  # type: ignore[assignment]


# ---------------------------------------------------------------------------
# Helper functions (safe to call even without prometheus_client)
# ---------------------------------------------------------------------------


def record_store_write(source: str) -> None:
    """Record a store write.

    Args:
        source: Provenance tag of the write.
    """
    if not PROMETHEUS_AVAILABLE:
        return
    teui_store_writes_total.labels(source=source).inc()


def record_listener_error() -> None:
    """Record a listener failure caught at dispatch."""
    if not PROMETHEUS_AVAILABLE:
        return
    teui_listener_errors_total.inc()


def record_stage_run(
    module: str, stage: str, result: str, duration_seconds: float,
) -> None:
    """Record a staged calculation run.

    Args:
        module: Module identifier.
        stage: Stage name.
        result: ``success``, ``gated``, ``skipped`` or ``error``.
        duration_seconds: Stage duration in seconds.
    """
    if not PROMETHEUS_AVAILABLE:
        return
    teui_stage_runs_total.labels(module=module, stage=stage, result=result).inc()
    teui_stage_duration_seconds.labels(module=module, stage=stage).observe(
        duration_seconds,
    )


def record_reentry_suppressed() -> None:
    """Record a task submission skipped by the per-pass visited set."""
    if not PROMETHEUS_AVAILABLE:
        return
    teui_reentries_suppressed_total.inc()


def record_queue_depth(depth: int) -> None:
    """Record the largest queue size of a cascade pass."""
    if not PROMETHEUS_AVAILABLE:
        return
    teui_cascade_queue_depth.observe(depth)


def record_qc_violation(violation_type: str) -> None:
    """Record a QC violation.

    Args:
        violation_type: Violation kind.
    """
    if not PROMETHEUS_AVAILABLE:
        return
    teui_qc_violations_total.labels(violation_type=violation_type).inc()


def record_mode_switch(module: str, mode: str) -> None:
    """Record a display mode switch."""
    if not PROMETHEUS_AVAILABLE:
        return
    teui_mode_switches_total.labels(module=module, mode=mode).inc()


def update_store_size(count: int) -> None:
    """Set the store size gauge."""
    if not PROMETHEUS_AVAILABLE:
        return
    teui_store_keys.set(count)


def record_dependency_depth(depth: int) -> None:
    """Record a dependency chain depth measurement."""
    if not PROMETHEUS_AVAILABLE:
        return
    teui_dependency_depth.observe(depth)


__all__ = [
    "PROMETHEUS_AVAILABLE",
    # Metric objects
    "teui_store_writes_total",
    "teui_listener_errors_total",
    "teui_stage_runs_total",
    "teui_stage_duration_seconds",
    "teui_reentries_suppressed_total",
    "teui_cascade_queue_depth",
    "teui_qc_violations_total",
    "teui_mode_switches_total",
    "teui_store_keys",
    "teui_dependency_depth",
    # Helper functions
    "record_store_write",
    "record_listener_error",
    "record_stage_run",
    "record_reentry_suppressed",
    "record_queue_depth",
    "record_qc_violation",
    "record_mode_switch",
    "update_store_size",
    "record_dependency_depth",
]
