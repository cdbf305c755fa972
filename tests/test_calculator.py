# -*- coding: utf-8 -*-
"""Tests for the hand-sequenced calculator.

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

import pytest

from teui.calculations.calculator import Calculator
from teui.calculations.cooling import CoolingCalculation
from teui.calculations.mechanical import MechanicalLoadsCalculation
from teui.exceptions import StageError
from teui.state.models import FieldDefinition
from teui.state.orchestrator import CalculationModule


class Failing(CalculationModule):
    module_id = "failing"
    fields = (FieldDefinition(field_id="z_1", default="1"),)
    outputs = ("z_2",)

    def compute(self, scenario):
        raise ValueError("no data")


@pytest.fixture
def modules(store, module_kwargs):
    cooling = CoolingCalculation(store, **module_kwargs)
    mechanical = MechanicalLoadsCalculation(store, **module_kwargs)
    for module in (cooling, mechanical):
        module.initialize()
    return cooling, mechanical


# ==============================================================================
# Calculator Tests
# ==============================================================================

class TestCalculator:
    """Tests for full calculation passes."""

    def test_order_is_declared(self, modules):
        calculator = Calculator(modules)

        assert calculator.order == ["cooling", "mechanical"]
        assert calculator.get_module("mechanical") is modules[1]
        assert calculator.get_module("missing") is None

    def test_duplicate_registration_rejected(self, modules):
        calculator = Calculator(modules)

        with pytest.raises(ValueError):
            calculator.register(modules[0])

    def test_full_pass_resolves_the_cycle(self, modules, store):
        """After one pass both scenarios are consistent."""
        assert Calculator(modules).calculate_all() is True

        assert store.get("m_129") == "20000"
        assert store.get("ref_m_129") == "25000"
        assert float(store.get("m_124")) == pytest.approx(20000 / 2880)
        assert float(store.get("ref_m_124")) == pytest.approx(25000 / 2880)

    def test_failure_is_recorded_and_pass_continues(self, modules, store, module_kwargs):
        failing = Failing(store, **module_kwargs)
        failing.initialize()
        calculator = Calculator([failing, *modules])

        assert calculator.calculate_all() is False

        assert store.get("m_129") == "20000"
        assert len(calculator.errors) == 2
        error = calculator.errors[0]
        assert isinstance(error, StageError)
        assert error.module_id == "failing"
        assert error.context["stage"] == "calculate"
        assert error.context["scenario"] == "target"

    def test_errors_reset_each_pass(self, modules, store, module_kwargs):
        failing = Failing(store, **module_kwargs)
        calculator = Calculator([failing, *modules])
        calculator.calculate_all()
        calculator.modules.remove(failing)

        assert calculator.calculate_all() is True
        assert calculator.errors == []

    def test_summary(self, modules):
        calculator = Calculator(modules)
        calculator.calculate_all()

        summary = calculator.summary()
        assert summary["passes"] == 1
        assert summary["order"] == ["cooling", "mechanical"]
        assert summary["errors"] == []
