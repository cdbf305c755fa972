# -*- coding: utf-8 -*-
"""
Stage Signals - TEUI Calculator State Layer

Named fire-and-forget broadcasts emitted when a module stage publishes
its outputs (``cooling-stage1``, ``cooling-stage2``). Signals carry a
snapshot of the published keys for external collaborators (rendering,
diagnostics). The staged orchestrator itself never waits on a signal;
Stage 2 is triggered by a listener on a concrete store key.

Example:
    >>> from teui.state.signals import SignalBus
    >>> bus = SignalBus()
    >>> bus.subscribe("cooling-stage1", lambda sig: print(sig.values))
    >>> bus.history_for("cooling-stage1")
    []

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from teui.state.models import StageSignal

logger = logging.getLogger(__name__)

SignalHandler = Callable[[StageSignal], None]

# Subscribe under this name to receive every signal.
ALL_SIGNALS = "*"


class SignalBus:
    """Synchronous publish/subscribe bus for stage-completion signals.

    Attributes:
        max_history: Number of emitted signals retained for inspection.
    """

    def __init__(self, max_history: int = 256) -> None:
        self.max_history = max_history
        self._handlers: Dict[str, List[SignalHandler]] = {}
        self._history: List[StageSignal] = []

    def subscribe(self, name: str, handler: SignalHandler) -> None:
        handlers = self._handlers.setdefault(name, [])
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, name: str, handler: SignalHandler) -> None:
        handlers = self._handlers.get(name)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, signal: StageSignal) -> None:
        """Deliver ``signal`` to its named subscribers, then to ``*`` subscribers.

        Handler failures are logged and do not reach the emitting stage.
        """
        self._history.append(signal)
        if len(self._history) > self.max_history:
            del self._history[: len(self._history) - self.max_history]

        handlers = list(self._handlers.get(signal.name, ()))
        handlers += [h for h in self._handlers.get(ALL_SIGNALS, ()) if h not in handlers]
        for handler in handlers:
            try:
                handler(signal)
            except Exception:
                logger.exception("Signal handler failed for %s", signal.name)

        logger.debug(
            "Emitted %s (%s) with %d values",
            signal.name, signal.scenario.value, len(signal.values),
        )

    def history_for(self, name: Optional[str] = None) -> List[StageSignal]:
        if name is None:
            return list(self._history)
        return [s for s in self._history if s.name == name]

    def clear(self) -> None:
        self._handlers.clear()
        self._history.clear()


__all__ = [
    "ALL_SIGNALS",
    "SignalBus",
    "SignalHandler",
]
