# -*- coding: utf-8 -*-
"""
Mechanical Loads - TEUI Calculator

Mitigated cooling energy demand, the consumer side of the cooling cycle:

    ``m_129 = max(0, d_129 - h_124 - d_123)``

where ``d_129`` is the unmitigated cooling demand, ``h_124`` the free
cooling capacity published by cooling Stage 1 and ``d_123`` the cooling
energy recovered by ventilation. Publishing ``m_129`` triggers cooling
Stage 2 through its listener.

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

from typing import Any, Dict

from teui.state.models import FieldDefinition, Scenario
from teui.state.orchestrator import CalculationModule


def mitigated_cooling_load(
    unmitigated_kwh: float, free_cooling_kwh: float, recovered_kwh: float,
) -> float:
    return max(0.0, unmitigated_kwh - free_cooling_kwh - recovered_kwh)


class MechanicalLoadsCalculation(CalculationModule):
    """Computes ``m_129`` for both scenarios."""

    module_id = "mechanical"
    fields = (
        FieldDefinition(field_id="d_129", default="20000", reference_default="25000",
                        unit="kWh/yr", description="Unmitigated cooling demand"),
        FieldDefinition(field_id="d_123", default="0", unit="kWh/yr",
                        description="Cooling energy recovered by ventilation"),
    )
    inputs = ("d_129", "d_123")
    external_inputs = ("h_124",)
    outputs = ("m_129",)

    def compute(self, scenario: Scenario) -> Dict[str, Any]:
        return {
            "m_129": mitigated_cooling_load(
                self.number(scenario, "d_129"),
                self.external_number(scenario, "h_124"),
                self.number(scenario, "d_123"),
            ),
        }


__all__ = [
    "MechanicalLoadsCalculation",
    "mitigated_cooling_load",
]
