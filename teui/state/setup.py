# -*- coding: utf-8 -*-
"""
Calculator Service Setup - TEUI Calculator State Layer

Wires the reactive calculation substrate into one ``CalculatorService``:
field store, dependency registry, scenario storage, cascade scheduler,
stage signal bus, optional QC monitor, the cooling and mechanical loads
modules and the hand-sequenced calculator.

Also exposes ``get_calculator_service()`` / ``reset_calculator_service()``
for a process-wide instance.

Usage:
    >>> from teui.state.setup import CalculatorService
    >>> service = CalculatorService()
    >>> service.startup()
    >>> service.snapshot()["m_129"]
    '20000'

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Union

from teui.calculations.calculator import Calculator
from teui.calculations.cooling import CoolingCalculation
from teui.calculations.mechanical import MechanicalLoadsCalculation
from teui.state.config import StateConfig, get_config
from teui.state.dependencies import DependencyRegistry
from teui.state.metrics import PROMETHEUS_AVAILABLE
from teui.state.models import GraphMode, Scenario, ValueSource, parse_scenario
from teui.state.monitor import QCMonitor
from teui.state.orchestrator import CalculationModule
from teui.state.persistence import StorageBackend, create_storage
from teui.state.scheduler import CascadeScheduler
from teui.state.signals import SignalBus
from teui.state.store import FieldStore

logger = logging.getLogger(__name__)


# ===================================================================
# CalculatorService facade
# ===================================================================

_singleton_lock = threading.Lock()
_singleton_instance: Optional["CalculatorService"] = None


class CalculatorService:
    """Unified facade over the calculation substrate.

    Attributes:
        config: StateConfig in effect.
        registry: Documentation dependency registry.
        store: Shared field store.
        storage: Scenario persistence backend.
        scheduler: Shared cascade scheduler.
        signals: Stage signal bus.
        monitor: QC observer, when enabled.
        cooling: Staged cooling module.
        mechanical: Mechanical loads module.
        calculator: Hand-sequenced full-pass coordinator.
    """

    def __init__(
        self,
        config: Optional[StateConfig] = None,
        storage: Optional[StorageBackend] = None,
    ) -> None:
        self.config = config or get_config()
        self.registry = DependencyRegistry()
        self.store = FieldStore(config=self.config, registry=self.registry)
        self.storage = storage if storage is not None else create_storage(self.config)
        self.scheduler = CascadeScheduler()
        self.signals = SignalBus()
        self.monitor: Optional[QCMonitor] = (
            QCMonitor(self.store, self.config) if self.config.qc_enabled else None
        )

        module_kwargs = dict(
            scheduler=self.scheduler,
            signals=self.signals,
            storage=self.storage,
            config=self.config,
        )
        self.cooling = CoolingCalculation(self.store, **module_kwargs)
        self.mechanical = MechanicalLoadsCalculation(self.store, **module_kwargs)
        self.calculator = Calculator([self.cooling, self.mechanical])
        self._started = False

        logger.info("CalculatorService facade created")

    @property
    def modules(self) -> List[CalculationModule]:
        return list(self.calculator.modules)

    def get_module(self, module_id: str) -> CalculationModule:
        module = self.calculator.get_module(module_id)
        if module is None:
            raise KeyError(f"Unknown module {module_id!r}")
        return module

    def field_owner(self, field_id: str) -> CalculationModule:
        """Module whose facade declares ``field_id``."""
        for module in self.calculator.modules:
            if field_id in module.modes.fields:
                return module
        raise KeyError(f"No module declares field {field_id!r}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def startup(self) -> None:
        """Initialize every module and run the first full pass.

        Safe to call multiple times.
        """
        if self._started:
            logger.debug("CalculatorService already started; skipping")
            return

        logger.info("CalculatorService starting up...")
        if self.monitor is not None:
            self.monitor.attach()
        for module in self.calculator.modules:
            module.initialize()
        self.calculator.calculate_all()
        self._started = True
        logger.info("CalculatorService startup complete")

    def shutdown(self) -> None:
        """Detach listeners and observers."""
        if not self._started:
            return
        for module in self.calculator.modules:
            module.detach()
        if self.monitor is not None:
            self.monitor.detach()
        self._started = False
        logger.info("CalculatorService shut down")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def import_values(self, values: Mapping[str, Any]) -> int:
        """Bulk import, sync every facade, then recalculate.

        Reference values must use their ``ref_`` keys.

        Returns:
            Number of values imported.
        """
        count = self.store.import_state(values)
        for module in self.calculator.modules:
            module.modes.sync_from_store()
        self.calculator.calculate_all()
        return count

    def revert_import(self) -> int:
        """Restore the last imported values and recalculate."""
        with self.store.quarantine():
            count = self.store.revert_to_last_imported()
        if count:
            for module in self.calculator.modules:
                module.modes.sync_from_store()
            self.calculator.calculate_all()
        return count

    def set_input(
        self,
        module_id: str,
        field_id: str,
        value: Any,
        scenario: Optional[Union[Scenario, str]] = None,
    ) -> None:
        """Apply a user edit through the module's facade.

        Without ``scenario`` the edit goes to the module's displayed mode.
        """
        modes = self.get_module(module_id).modes
        if scenario is None:
            modes.set_value(field_id, value, ValueSource.USER_MODIFIED)
        else:
            modes.publish(parse_scenario(scenario), field_id, value, ValueSource.USER_MODIFIED)

    def switch_mode(self, mode: Union[Scenario, str]) -> None:
        """Switch the displayed scenario of every module."""
        for module in self.calculator.modules:
            module.modes.switch_mode(mode)

    def recalculate(self) -> bool:
        return self.calculator.calculate_all()

    def reset(self) -> None:
        """Reset every module's scenarios to declared defaults."""
        for module in self.calculator.modules:
            module.modes.reset()
        self.calculator.calculate_all()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, str]:
        return self.store.get_all_values()

    def dependency_graph(self, mode: Union[GraphMode, str] = GraphMode.BOTH) -> Dict[str, Any]:
        return self.registry.export_graph(mode)

    def qc_report(self) -> Dict[str, Any]:
        """QC report; attaches a temporary monitor when none is configured."""
        if self.monitor is not None:
            return self.monitor.generate_report()
        monitor = QCMonitor(self.store, self.config)
        return monitor.generate_report()

    def get_metrics(self) -> Dict[str, Any]:
        """Get service metric summaries."""
        stats = self.scheduler.stats
        return {
            "prometheus_available": PROMETHEUS_AVAILABLE,
            "started": self._started,
            "store_keys": len(self.store),
            "dependency_nodes": self.registry.count,
            "listener_errors": len(self.store.listener_errors),
            "cascade_passes": stats.passes,
            "tasks_executed": stats.executed,
            "reentries_suppressed": stats.suppressed,
            "task_failures": stats.failed,
            "max_queue_depth": stats.max_depth,
            "calculation_errors": len(self.calculator.errors),
            "qc_violations": len(self.monitor.violations) if self.monitor else 0,
        }


# ===================================================================
# Thread-safe singleton access
# ===================================================================


def get_calculator_service() -> CalculatorService:
    """Get or create the process-wide CalculatorService (started).

    Returns:
        The singleton CalculatorService.
    """
    global _singleton_instance
    if _singleton_instance is None:
        with _singleton_lock:
            if _singleton_instance is None:
                service = CalculatorService()
                service.startup()
                _singleton_instance = service
    return _singleton_instance


def reset_calculator_service() -> None:
    """Shut down and drop the singleton (primarily for test teardown)."""
    global _singleton_instance
    with _singleton_lock:
        if _singleton_instance is not None:
            _singleton_instance.shutdown()
        _singleton_instance = None


__all__ = [
    "CalculatorService",
    "get_calculator_service",
    "reset_calculator_service",
]
