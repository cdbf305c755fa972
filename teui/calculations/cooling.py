# -*- coding: utf-8 -*-
"""
Cooling Calculations - TEUI Calculator

Staged cooling module. It forms a cycle with the mechanical loads module:
mechanical loads need the free cooling capacity (``h_124``) to compute
the mitigated cooling load (``m_129``), and the days of active cooling
(``m_124``) need ``m_129``.

Stage 1 (ventilation and free cooling, no dependency on ``m_129``):
    wet bulb temperature -> saturation/partial pressures -> humidity
    ratios -> latent load factor, and the free cooling capacity
    ``h_124 = massflow * cp * max(T_set - T_night, 0) * 0.024 * m_19``.

Stage 2 (runs when ``m_129`` is published, gated by ``d_116``):
    ``daily_free = h_124 / m_19``
    ``load = m_129 if d_21 > 0 else 0``
    ``m_124 = (load - daily_free * d_21) / (m_19 * 24)``
    ``d_124 = h_124 / d_129 * 100``

Negative ``m_124`` is kept: it indicates more free cooling than needed.

Example:
    >>> from teui.state.store import FieldStore
    >>> from teui.calculations.cooling import CoolingCalculation
    >>> cooling = CoolingCalculation(FieldStore())
    >>> cooling.initialize()
    >>> cooling.run_stage1("target")
    True

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict

from teui.state.models import FieldDefinition, Scenario
from teui.state.numeric import safe_divide
from teui.state.orchestrator import StagedCalculation

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Physical constants
# ---------------------------------------------------------------------------

NIGHT_TIME_TEMP_C = 20.43
COOLING_SEASON_MEAN_RH = 0.5585
OUTDOOR_SEASONAL_RH = 0.7
AIR_DENSITY_KG_M3 = 1.204
SPECIFIC_HEAT_J_KG_K = 1005.0
LATENT_HEAT_J_KG = 2501000.0
SEA_LEVEL_PRESSURE_PA = 101325.0
# (J/s) * 86400 s/day / 3.6e6 J/kWh
WATTS_TO_KWH_PER_DAY = 0.024

NO_COOLING = "No Cooling"


def wet_bulb_temperature(dry_bulb_c: float, rh_fraction: float) -> float:
    """Average of the linear and dewpoint-corrected wet bulb estimates."""
    rh = rh_fraction * 100
    spread = dry_bulb_c - (dry_bulb_c - (100 - rh) / 5)
    simple = dry_bulb_c - spread * (0.1 + 0.9 * (rh / 100))
    corrected = dry_bulb_c - spread * (0.3 + 0.7 * (rh / 100))
    return (simple + corrected) / 2


def saturation_pressure(temp_c: float) -> float:
    """Tetens saturation vapour pressure in Pa."""
    return 610.94 * math.exp((17.625 * temp_c) / (temp_c + 243.04))


def humidity_ratio(partial_pressure_pa: float) -> float:
    return 0.62198 * partial_pressure_pa / (SEA_LEVEL_PRESSURE_PA - partial_pressure_pa)


def days_active_cooling(
    free_cooling_kwh: float,
    mitigated_load_kwh: float,
    cooling_degree_days: float = 120.0,
    cooling_season_days: float = 120.0,
) -> float:
    """Days of active cooling still required after free cooling.

    Args:
        free_cooling_kwh: Seasonal free cooling capacity (``h_124``).
        mitigated_load_kwh: Mitigated cooling load (``m_129``).
        cooling_degree_days: ``d_21``.
        cooling_season_days: ``m_19``.

    Returns:
        ``m_124``; 0 when the cooling season length is not positive.
    """
    if cooling_season_days <= 0:
        return 0.0
    daily_free = free_cooling_kwh / cooling_season_days
    daily_load = mitigated_load_kwh / cooling_degree_days if cooling_degree_days > 0 else 0.0
    seasonal_load = daily_load * cooling_degree_days
    seasonal_free = daily_free * cooling_degree_days
    return (seasonal_load - seasonal_free) / (cooling_season_days * 24)


class CoolingCalculation(StagedCalculation):
    """Free cooling capacity and days of active cooling, both scenarios."""

    module_id = "cooling"
    fields = (
        FieldDefinition(field_id="d_116", default="Cooling",
                        description="Cooling system (or 'No Cooling')"),
        FieldDefinition(field_id="h_24", default="24", unit="C",
                        description="Indoor cooling setpoint"),
        FieldDefinition(field_id="i_59", default="45", unit="%",
                        description="Indoor relative humidity"),
        FieldDefinition(field_id="h_120", default="0", unit="m3/hr",
                        description="Ventilation rate"),
        FieldDefinition(field_id="d_21", default="120",
                        description="Cooling degree days"),
        FieldDefinition(field_id="m_19", default="120", unit="days",
                        description="Cooling season length"),
        FieldDefinition(field_id="l_22", default="80", unit="m",
                        description="Project elevation"),
    )
    inputs = ("h_24", "i_59", "h_120", "m_19", "l_22")
    stage2_inputs = ("d_116", "d_21")
    stage1_outputs = (
        "h_124",
        "cooling_latent_load_factor",
        "cooling_wet_bulb_temperature",
        "cooling_atmospheric_pressure",
        "cooling_partial_pressure",
        "cooling_humidity_ratio",
    )
    stage2_outputs = ("m_124", "d_124")
    stage2_requires = ("h_124",)
    trigger_key = "m_129"

    # ------------------------------------------------------------------
    # Stage 1
    # ------------------------------------------------------------------

    def compute_stage1(self, scenario: Scenario) -> Dict[str, Any]:
        setpoint = self.number(scenario, "h_24")
        indoor_rh_pct = self.number(scenario, "i_59")
        indoor_rh = indoor_rh_pct / 100 if indoor_rh_pct else 0.45
        elevation = self.number(scenario, "l_22")

        wet_bulb = wet_bulb_temperature(NIGHT_TIME_TEMP_C, COOLING_SEASON_MEAN_RH)
        partial_pressure = saturation_pressure(wet_bulb) * OUTDOOR_SEASONAL_RH
        partial_pressure_indoor = saturation_pressure(setpoint) * indoor_rh
        ratio_difference = (
            humidity_ratio(partial_pressure) - humidity_ratio(partial_pressure_indoor)
        )
        atm_pressure = SEA_LEVEL_PRESSURE_PA * math.exp(-elevation / 8434)

        latent_load_factor = 1 + safe_divide(
            LATENT_HEAT_J_KG * ratio_difference,
            SPECIFIC_HEAT_J_KG_K * (NIGHT_TIME_TEMP_C - setpoint),
            fallback=0.0,
            label=f"{self.module_id} latent load factor ({scenario.value})",
        )

        return {
            "h_124": self.free_cooling_capacity(scenario, setpoint),
            "cooling_latent_load_factor": latent_load_factor,
            "cooling_wet_bulb_temperature": wet_bulb,
            "cooling_atmospheric_pressure": atm_pressure,
            "cooling_partial_pressure": partial_pressure,
            "cooling_humidity_ratio": ratio_difference,
        }

    def free_cooling_capacity(self, scenario: Scenario, setpoint: float) -> float:
        """Seasonal free cooling limit in kWh/yr (``h_124``)."""
        flow_m3s = self.number(scenario, "h_120") / 3600
        mass_flow = flow_m3s * AIR_DENSITY_KG_M3
        season_days = self.number(scenario, "m_19")
        temp_diff = max(setpoint - NIGHT_TIME_TEMP_C, 0.0)
        daily_kwh = mass_flow * SPECIFIC_HEAT_J_KG_K * temp_diff * WATTS_TO_KWH_PER_DAY
        return daily_kwh * season_days

    # ------------------------------------------------------------------
    # Stage 2
    # ------------------------------------------------------------------

    def is_gated(self, scenario: Scenario) -> bool:
        return self.text(scenario, "d_116").strip() == NO_COOLING

    def compute_stage2(self, scenario: Scenario) -> Dict[str, Any]:
        free_cooling = self.external_number(scenario, "h_124")
        mitigated_load = self.external_number(scenario, "m_129")
        cooling_load = self.external_number(scenario, "d_129")

        m_124 = days_active_cooling(
            free_cooling,
            mitigated_load,
            cooling_degree_days=self.number(scenario, "d_21"),
            cooling_season_days=self.number(scenario, "m_19"),
        )
        d_124 = safe_divide(
            free_cooling * 100, cooling_load, fallback=0.0,
            label=f"{self.module_id} free cooling % ({scenario.value})",
        )
        logger.debug(
            "cooling stage2 (%s): h_124=%s m_129=%s -> m_124=%s",
            scenario.value, free_cooling, mitigated_load, m_124,
        )
        return {"m_124": m_124, "d_124": d_124}


__all__ = [
    "CoolingCalculation",
    "days_active_cooling",
    "wet_bulb_temperature",
    "saturation_pressure",
    "humidity_ratio",
    "NO_COOLING",
]
