# -*- coding: utf-8 -*-
"""
Calculator - TEUI Calculator

Runs a full recalculation pass over registered modules in a fixed,
hand-sequenced order. The order is declared, not derived from the
dependency registry. A module or stage that fails is logged and recorded
as a ``StageError``; the pass continues with the next module.

Example:
    >>> calculator = Calculator([cooling, mechanical])
    >>> calculator.calculate_all()
    True

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from teui.exceptions import StageError
from teui.state.orchestrator import CalculationModule

logger = logging.getLogger(__name__)


class Calculator:
    """Hand-sequenced full-pass coordinator.

    Attributes:
        modules: Modules in calculation order.
        errors: Failures recorded by the most recent pass.
    """

    def __init__(self, modules: Optional[Iterable[CalculationModule]] = None) -> None:
        self.modules: List[CalculationModule] = list(modules or [])
        self.errors: List[StageError] = []
        self.passes = 0

    def register(self, module: CalculationModule) -> None:
        """Append ``module`` to the calculation order."""
        if any(m.module_id == module.module_id for m in self.modules):
            raise ValueError(f"Module {module.module_id!r} already registered")
        self.modules.append(module)

    def get_module(self, module_id: str) -> Optional[CalculationModule]:
        for module in self.modules:
            if module.module_id == module_id:
                return module
        return None

    @property
    def order(self) -> List[str]:
        return [m.module_id for m in self.modules]

    def calculate_all(self) -> bool:
        """Run every module for both scenarios.

        Returns:
            ``True`` if no module failed.
        """
        self.errors = []
        self.passes += 1
        for module in self.modules:
            failed_before = module.scheduler.stats.failed
            try:
                module.calculate_all()
            except Exception as exc:
                self.errors.append(StageError(
                    message=f"Calculation failed in {module.module_id}",
                    module_id=module.module_id,
                    stage="calculate_all",
                    cause=exc,
                ))
                logger.exception("Module %s failed during calculate_all", module.module_id)
                continue
            # Stage failures are caught by the scheduler; surface them here.
            for task_id, exc in module.scheduler.failures_since(failed_before):
                owner, stage, scenario = task_id
                self.errors.append(StageError(
                    message=f"Stage {stage} failed in {owner}",
                    module_id=owner,
                    stage=stage,
                    scenario=scenario,
                    cause=exc,
                ))
        logger.info(
            "Calculation pass %d complete (%d modules, %d errors)",
            self.passes, len(self.modules), len(self.errors),
        )
        return not self.errors

    def summary(self) -> Dict[str, object]:
        return {
            "passes": self.passes,
            "order": self.order,
            "errors": [e.to_dict() for e in self.errors],
        }


__all__ = [
    "Calculator",
]
