# -*- coding: utf-8 -*-
"""
TEUI Calculation Modules
========================

Pluggable modules that consume and publish store values:

- cooling: staged free cooling / days of active cooling
- mechanical: mitigated cooling demand (m_129)
- calculator: hand-sequenced full recalculation pass
"""

from teui.calculations.calculator import Calculator
from teui.calculations.cooling import CoolingCalculation, days_active_cooling
from teui.calculations.mechanical import (
    MechanicalLoadsCalculation,
    mitigated_cooling_load,
)

__all__ = [
    "Calculator",
    "CoolingCalculation",
    "days_active_cooling",
    "MechanicalLoadsCalculation",
    "mitigated_cooling_load",
]
