# -*- coding: utf-8 -*-
"""Tests for the run-to-quiescence cascade scheduler.

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from teui.state.scheduler import CascadeScheduler


# ==============================================================================
# Pass Tests
# ==============================================================================

class TestCascadeScheduler:
    """Tests for queueing, suppression and failure isolation."""

    def test_top_level_submit_runs_immediately(self, scheduler):
        ran = []

        assert scheduler.submit("a", lambda: ran.append("a")) is True
        assert ran == ["a"]
        assert scheduler.stats.passes == 1
        assert not scheduler.in_pass

    def test_nested_submits_run_fifo_after_current_task(self, scheduler):
        """Tasks submitted during a pass are queued, not run inline."""
        ran = []

        def outer():
            ran.append("outer:start")
            scheduler.submit("b", lambda: ran.append("b"))
            scheduler.submit("c", lambda: ran.append("c"))
            ran.append("outer:end")

        scheduler.submit("a", outer)

        assert ran == ["outer:start", "outer:end", "b", "c"]
        assert scheduler.stats.passes == 1
        assert scheduler.stats.executed == 3

    def test_reentry_suppressed_within_pass(self, scheduler):
        """A task id runs at most once per pass."""
        ran = []

        def task():
            ran.append("a")
            assert scheduler.submit("a", task) is False

        scheduler.submit("a", task)

        assert ran == ["a"]
        assert scheduler.stats.suppressed == 1

    def test_cycle_terminates(self, scheduler):
        """Mutually triggering tasks stop after one run each."""
        ran = []

        def ping():
            ran.append("ping")
            scheduler.submit("pong", pong)

        def pong():
            ran.append("pong")
            scheduler.submit("ping", ping)

        scheduler.submit("ping", ping)

        assert ran == ["ping", "pong"]

    def test_new_pass_clears_visited(self, scheduler):
        """The same task id runs again in a later pass."""
        ran = []
        scheduler.submit("a", lambda: ran.append(1))
        scheduler.submit("a", lambda: ran.append(2))

        assert ran == [1, 2]
        assert scheduler.stats.passes == 2

    def test_failing_task_does_not_stop_the_pass(self, scheduler):
        ran = []

        def outer():
            scheduler.submit("bad", lambda: 1 / 0)
            scheduler.submit("good", lambda: ran.append("good"))

        scheduler.submit("outer", outer)

        assert ran == ["good"]
        assert scheduler.stats.failed == 1
        task_id, exc = scheduler.failures[-1]
        assert task_id == "bad"
        assert isinstance(exc, ZeroDivisionError)
        assert not scheduler.in_pass

    def test_failures_since(self, scheduler):
        scheduler.submit("bad1", lambda: 1 / 0)
        before = scheduler.stats.failed
        scheduler.submit("bad2", lambda: [][0])

        recent = scheduler.failures_since(before)

        assert [task_id for task_id, _ in recent] == ["bad2"]
        assert scheduler.failures_since(scheduler.stats.failed) == []

    def test_max_depth_tracked(self):
        scheduler = CascadeScheduler()

        def fan_out():
            for i in range(3):
                scheduler.submit(("leaf", i), lambda: None)

        scheduler.submit("root", fan_out)

        assert scheduler.stats.max_depth == 3
