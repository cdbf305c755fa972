# -*- coding: utf-8 -*-
"""Tests for stage-completion signals.

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from teui.state.models import Scenario, StageSignal
from teui.state.signals import ALL_SIGNALS, SignalBus


def _signal(stage="stage1", scenario=Scenario.TARGET):
    return StageSignal(module_id="cooling", stage=stage, scenario=scenario,
                       values={"h_124": "0"})


# ==============================================================================
# SignalBus Tests
# ==============================================================================

class TestSignalBus:
    """Tests for named fire-and-forget broadcasts."""

    def test_named_subscribers_receive_signal(self, signals):
        received = []
        signals.subscribe("cooling-stage1", received.append)
        signals.subscribe("cooling-stage2", lambda s: received.append("wrong"))

        signals.emit(_signal())

        assert [s.name for s in received] == ["cooling-stage1"]

    def test_wildcard_subscribers(self, signals):
        received = []
        signals.subscribe(ALL_SIGNALS, received.append)

        signals.emit(_signal("stage1"))
        signals.emit(_signal("stage2"))

        assert [s.name for s in received] == ["cooling-stage1", "cooling-stage2"]

    def test_handler_failure_is_isolated(self, signals):
        received = []

        def broken(signal):
            raise RuntimeError("renderer down")

        signals.subscribe("cooling-stage1", broken)
        signals.subscribe("cooling-stage1", received.append)
        signals.emit(_signal())

        assert len(received) == 1

    def test_unsubscribe(self, signals):
        received = []
        signals.subscribe("cooling-stage1", received.append)
        signals.unsubscribe("cooling-stage1", received.append)

        signals.emit(_signal())

        assert received == []

    def test_history_is_bounded(self):
        bus = SignalBus(max_history=2)
        for scenario in (Scenario.TARGET, Scenario.REFERENCE, Scenario.TARGET):
            bus.emit(_signal(scenario=scenario))

        history = bus.history_for("cooling-stage1")
        assert [s.scenario for s in history] == [Scenario.REFERENCE, Scenario.TARGET]
        assert bus.history_for("cooling-stage2") == []
