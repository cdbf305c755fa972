# -*- coding: utf-8 -*-
"""
Cascade Scheduler - TEUI Calculator State Layer

Runs calculation tasks to quiescence. A task submitted from outside any
pass opens a new pass and executes immediately; tasks submitted while a
pass is running are queued FIFO and drained before the outer call
returns. Each pass keeps a visited set of task ids: a task that already
ran (or is queued) in the current pass is skipped. This replaces ad hoc
per-stage boolean guards and bounds every cascade structurally, since a
pass can execute each task id at most once.

Example:
    >>> from teui.state.scheduler import CascadeScheduler
    >>> scheduler = CascadeScheduler()
    >>> ran = []
    >>> def outer():
    ...     ran.append("outer")
    ...     scheduler.submit("outer", outer)   # suppressed
    >>> scheduler.submit("outer", outer)
    True
    >>> ran
    ['outer']

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Hashable, List, Set, Tuple

from teui.state.metrics import record_queue_depth, record_reentry_suppressed

logger = logging.getLogger(__name__)

Task = Callable[[], None]


@dataclass
class SchedulerStats:
    """Counters accumulated across all passes."""
    passes: int = 0
    executed: int = 0
    suppressed: int = 0
    failed: int = 0
    max_depth: int = 0


class CascadeScheduler:
    """Single-threaded run-to-quiescence task queue with per-pass visited set."""

    def __init__(self) -> None:
        self.stats = SchedulerStats()
        # Most recent failures, oldest first.
        self.failures: Deque[Tuple[Hashable, Exception]] = deque(maxlen=100)
        self._queue: Deque[Tuple[Hashable, Task]] = deque()
        self._visited: Set[Hashable] = set()
        self._running = False
        self._pass_depth = 0

    @property
    def in_pass(self) -> bool:
        return self._running

    def failures_since(self, failed_before: int) -> List[Tuple[Hashable, Exception]]:
        """Failures recorded after ``stats.failed`` was ``failed_before``."""
        count = min(self.stats.failed - failed_before, len(self.failures))
        if count <= 0:
            return []
        return list(self.failures)[-count:]

    def submit(self, task_id: Hashable, fn: Task) -> bool:
        """Run or enqueue a task.

        Args:
            task_id: Identity used by the per-pass visited set.
            fn: Zero-argument callable.

        Returns:
            ``True`` if the task ran or was queued, ``False`` if it was
            suppressed because it already ran or is queued in this pass.
        """
        if task_id in self._visited:
            self.stats.suppressed += 1
            record_reentry_suppressed()
            logger.debug("Task %s already scheduled in this pass; skipped", task_id)
            return False

        self._visited.add(task_id)
        self._queue.append((task_id, fn))
        self._pass_depth = max(self._pass_depth, len(self._queue))

        if not self._running:
            self._drain()
        return True

    def _drain(self) -> None:
        self._running = True
        self.stats.passes += 1
        try:
            while self._queue:
                task_id, fn = self._queue.popleft()
                try:
                    fn()
                    self.stats.executed += 1
                except Exception as exc:
                    self.stats.failed += 1
                    self.failures.append((task_id, exc))
                    logger.exception("Cascade task %s failed", task_id)
        finally:
            self.stats.max_depth = max(self.stats.max_depth, self._pass_depth)
            record_queue_depth(self._pass_depth)
            self._pass_depth = 0
            self._visited.clear()
            self._running = False


__all__ = [
    "CascadeScheduler",
    "SchedulerStats",
]
