# -*- coding: utf-8 -*-
"""Tests for the documentation dependency registry.

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

import pytest

from teui.state.dependencies import DependencyRegistry
from teui.state.models import FieldKey, GraphMode, Scenario


@pytest.fixture
def cooling_graph(registry):
    """The cooling/mechanical cycle, documented for both scenarios."""
    registry.register_both("h_120", "h_124")
    registry.register_both("h_124", "m_129")
    registry.register_both("m_129", "m_124")
    registry.register_both("h_124", "m_124")
    registry.set_owner("cooling", [FieldKey("h_124"), FieldKey("m_124")])
    registry.set_owner("mechanical", [FieldKey("m_129")])
    return registry


# ==============================================================================
# Registration Tests
# ==============================================================================

class TestRegistration:
    """Tests for edge registration."""

    def test_register_is_idempotent(self, registry):
        registry.register("h_124", "m_129")
        registry.register("h_124", "m_129")

        assert registry.dependents("h_124") == ["m_129"]
        assert registry.precedents("m_129") == ["h_124"]
        assert registry.count == 2

    def test_register_both_uses_scenario_keys(self, registry):
        registry.register_both("h_124", "m_129")

        assert registry.dependents("ref_h_124") == ["ref_m_129"]
        assert registry.dependents(FieldKey("h_124", Scenario.REFERENCE)) == ["ref_m_129"]

    def test_unknown_key(self, registry):
        assert registry.dependents("x_1") == []
        assert registry.get_node("x_1") is None


# ==============================================================================
# Traversal Tests
# ==============================================================================

class TestTraversal:
    """Tests for impact analysis, cycles and ordering."""

    def test_get_impact(self, cooling_graph):
        impact = cooling_graph.get_impact("h_120")

        assert impact["affected"] == ["h_124", "m_124", "m_129"]
        assert impact["total_affected"] == 3
        assert impact["max_depth"] == 3

    def test_no_cycles_in_documented_graph(self, cooling_graph):
        assert cooling_graph.detect_cycles() == []

    def test_detects_cycle(self, registry):
        registry.register("m_129", "m_124")
        registry.register("m_124", "m_129")

        cycles = registry.detect_cycles()

        assert len(cycles) == 1
        assert cycles[0][0] == cycles[0][-1]

    def test_calculation_order(self, cooling_graph):
        order = cooling_graph.calculation_order(["h_120"])

        assert order[0] == "h_120"
        assert order.index("h_124") < order.index("m_129") < order.index("m_124")

    def test_calculation_order_terminates_on_cycle(self, registry):
        registry.register("a_1", "a_2")
        registry.register("a_2", "a_1")

        assert sorted(registry.calculation_order(["a_1"])) == ["a_1", "a_2"]

    def test_calculation_order_defaults_to_dirty(self, cooling_graph):
        cooling_graph.mark_dependents_dirty("m_129")

        assert cooling_graph.calculation_order() == ["m_124"]


# ==============================================================================
# Dirty Tracking Tests
# ==============================================================================

class TestDirty:
    """Tests for the documentation-only dirty set."""

    def test_mark_returns_newly_marked(self, cooling_graph):
        first = cooling_graph.mark_dependents_dirty("h_124")
        second = cooling_graph.mark_dependents_dirty("h_124")

        assert first == {"m_129", "m_124"}
        assert second == set()

    def test_scenarios_marked_independently(self, cooling_graph):
        cooling_graph.mark_dependents_dirty("ref_m_129")

        assert cooling_graph.get_dirty_fields() == ["ref_m_124"]


# ==============================================================================
# Export Tests
# ==============================================================================

class TestExport:
    """Tests for graph export and dual-state analysis."""

    def test_export_target(self, cooling_graph):
        graph = cooling_graph.export_graph(GraphMode.TARGET)
        ids = [n["id"] for n in graph["nodes"]]

        assert graph["mode"] == "target"
        assert ids == ["h_120", "h_124", "m_124", "m_129"]
        assert {"source": "h_124", "target": "m_129"} in graph["links"]
        groups = {n["id"]: n["group"] for n in graph["nodes"]}
        assert groups["m_129"] == "mechanical"
        assert groups["h_120"] == "unassigned"

    def test_export_reference(self, cooling_graph):
        graph = cooling_graph.export_graph("reference")

        assert all(n["id"].startswith("ref_") for n in graph["nodes"])
        assert all(n["scenario"] == "reference" for n in graph["nodes"])
        assert len(graph["links"]) == 4

    def test_export_both(self, cooling_graph):
        graph = cooling_graph.export_graph(GraphMode.BOTH)

        assert len(graph["nodes"]) == 8
        assert len(graph["links"]) == 8

    def test_dual_state_analysis(self, cooling_graph):
        analysis = cooling_graph.dual_state_analysis()

        assert analysis["coverage_ratio"] == 1.0
        assert analysis["dual_state_compliant"] is True
        assert analysis["combined"]["node_count"] == 8

    def test_empty_registry_analysis(self):
        analysis = DependencyRegistry().dual_state_analysis()

        assert analysis["coverage_ratio"] == 0.0
        assert analysis["dual_state_compliant"] is False
