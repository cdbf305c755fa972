# -*- coding: utf-8 -*-
"""
Field Store - TEUI Calculator State Layer

The keyed value store every calculation module reads from and publishes
to. One current string value (plus provenance) per key, no history.
Writes synchronously notify the listeners registered on the key, in
registration order, on every write including writes of an identical
value. A listener that raises is logged and recorded; it never stops the
remaining listeners or unwinds the triggering ``set``.

The store is an explicit instance passed to every module. Reference
scenario values live under ``ref_``-prefixed keys; callers build them with
``FieldKey`` and the store serializes at the boundary.

Also provides:
    - Import quarantine (listeners muted during bulk import)
    - Revert to the last imported snapshot
    - Documentation-only dirty tracking through the DependencyRegistry
    - Read/write observers for diagnostics

Example:
    >>> from teui.state.store import FieldStore
    >>> store = FieldStore()
    >>> seen = []
    >>> store.add_listener("m_129", lambda new, old, key, src: seen.append(new))
    >>> store.set("m_129", 10.0, "calculated")
    >>> store.get("m_129"), seen
    ('10', ['10'])

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

from teui.exceptions import ListenerError
from teui.state.config import StateConfig, get_config
from teui.state.dependencies import DependencyRegistry
from teui.state.metrics import (
    record_listener_error,
    record_store_write,
    update_store_size,
)
from teui.state.models import FieldKey, FieldRecord, ValueSource
from teui.state.numeric import to_store_string

logger = logging.getLogger(__name__)

KeyLike = Union[str, FieldKey]

# cb(new_value, old_value, key, source)
Listener = Callable[[str, Optional[str], str, ValueSource], None]


def _key(key: KeyLike) -> str:
    return key.to_store_key() if isinstance(key, FieldKey) else key


def _callable_name(cb: Any) -> str:
    return getattr(cb, "__qualname__", None) or repr(cb)


class FieldStore:
    """Shared keyed value store with synchronous change notification.

    Attributes:
        config: StateConfig in effect (neutral value, error logging).
        registry: DependencyRegistry receiving documentation edges.
        listener_errors: ListenerError records for failed callbacks.
    """

    def __init__(
        self,
        config: Optional[StateConfig] = None,
        registry: Optional[DependencyRegistry] = None,
    ) -> None:
        self.config = config or get_config()
        self.registry = registry or DependencyRegistry()
        self.listener_errors: List[ListenerError] = []
        self._records: Dict[str, FieldRecord] = {}
        self._listeners: Dict[str, List[Listener]] = {}
        self._observers: List[Any] = []
        self._mute_depth = 0
        self._last_imported: Dict[str, str] = {}
        logger.debug("FieldStore created")

    # ------------------------------------------------------------------
    # Core contract
    # ------------------------------------------------------------------

    def get(self, key: KeyLike) -> Optional[str]:
        """Return the value for ``key``, or ``None`` for an unknown key."""
        k = _key(key)
        record = self._records.get(k)
        value = record.value if record is not None else None
        self._notify_observers("on_read", k, value)
        return value

    def get_record(self, key: KeyLike) -> Optional[FieldRecord]:
        return self._records.get(_key(key))

    def set(
        self,
        key: KeyLike,
        value: Any,
        source: Union[ValueSource, str],
    ) -> None:
        """Store a value with its provenance, then notify listeners.

        ``None`` is stored as the configured neutral value. Listeners run
        even when the value is unchanged.

        Args:
            key: Flat store key or FieldKey.
            value: Value to store; converted to its string form.
            source: Provenance tag.
        """
        k = _key(key)
        source = ValueSource(source)
        text = to_store_string(value, neutral=self.config.neutral_value)

        previous = self._records.get(k)
        old_value = previous.value if previous is not None else None
        self._records[k] = FieldRecord(key=k, value=text, source=source)

        record_store_write(source.value)
        if previous is None:
            update_store_size(len(self._records))

        if source is not ValueSource.CALCULATED:
            self.registry.mark_dependents_dirty(k)

        self._notify_observers("on_write", k, text, source)

        if self._mute_depth:
            logger.debug("Listeners muted; %s=%r stored without dispatch", k, text)
            return
        self._dispatch(k, text, old_value, source)

    def add_listener(self, key: KeyLike, cb: Listener) -> None:
        """Register ``cb`` on ``key``. Re-registering the same callable is a no-op."""
        listeners = self._listeners.setdefault(_key(key), [])
        if cb not in listeners:
            listeners.append(cb)

    def remove_listener(self, key: KeyLike, cb: Listener) -> None:
        listeners = self._listeners.get(_key(key))
        if listeners and cb in listeners:
            listeners.remove(cb)

    def register_dependency(self, precedent: KeyLike, dependent: KeyLike) -> None:
        """Record a documentation edge. Does not gate execution."""
        self.registry.register(precedent, dependent)

    def get_all_keys(self) -> List[str]:
        return list(self._records)

    def get_all_values(self) -> Dict[str, str]:
        return {k: r.value for k, r in self._records.items()}

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def mute_listeners(self) -> None:
        self._mute_depth += 1

    def unmute_listeners(self) -> None:
        if self._mute_depth:
            self._mute_depth -= 1

    @property
    def listeners_muted(self) -> bool:
        return self._mute_depth > 0

    @contextmanager
    def quarantine(self) -> Iterator[FieldStore]:
        """Suppress listener dispatch for the duration of the block."""
        self.mute_listeners()
        try:
            yield self
        finally:
            self.unmute_listeners()

    def import_state(
        self,
        values: Mapping[str, Any],
        quarantine: bool = True,
    ) -> int:
        """Bulk-write ``values`` as ``imported`` and remember them.

        Reference values must be supplied under their prefixed keys.

        Args:
            values: Mapping of store key to value.
            quarantine: Mute listeners while writing.

        Returns:
            Number of keys written.
        """
        if quarantine:
            self.mute_listeners()
        try:
            for key, value in values.items():
                self.set(key, value, ValueSource.IMPORTED)
        finally:
            if quarantine:
                self.unmute_listeners()

        self._last_imported = {
            _key(k): to_store_string(v, neutral=self.config.neutral_value)
            for k, v in values.items()
        }
        logger.info("Imported %d values into the field store", len(values))
        return len(values)

    def revert_to_last_imported(self) -> int:
        """Re-apply the last imported snapshot.

        Returns:
            Number of keys restored; 0 when nothing was imported.
        """
        if not self._last_imported:
            logger.info("No imported snapshot to revert to")
            return 0
        for key, value in self._last_imported.items():
            self.set(key, value, ValueSource.IMPORTED)
        logger.info("Reverted %d values to last import", len(self._last_imported))
        return len(self._last_imported)

    def export_state(self) -> Dict[str, str]:
        return self.get_all_values()

    # ------------------------------------------------------------------
    # Dirty tracking (documentation only)
    # ------------------------------------------------------------------

    def get_dirty_fields(self) -> List[str]:
        return self.registry.get_dirty_fields()

    def clear_dirty(self, keys: Optional[List[KeyLike]] = None) -> None:
        self.registry.clear_dirty(keys)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def add_observer(self, observer: Any) -> None:
        """Attach an observer exposing ``on_read`` and/or ``on_write``."""
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_observer(self, observer: Any) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def listener_count(self, key: KeyLike) -> int:
        return len(self._listeners.get(_key(key), ()))

    def __contains__(self, key: object) -> bool:
        if isinstance(key, (str, FieldKey)):
            return _key(key) in self._records
        return False

    def __len__(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        """Drop values, listeners, snapshot and dirty set."""
        self._records.clear()
        self._listeners.clear()
        self._last_imported.clear()
        self.listener_errors.clear()
        self.registry.clear_dirty()
        update_store_size(0)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _dispatch(
        self,
        key: str,
        value: str,
        old_value: Optional[str],
        source: ValueSource,
    ) -> None:
        # Snapshot so callbacks may add/remove listeners mid-dispatch.
        for cb in list(self._listeners.get(key, ())):
            try:
                cb(value, old_value, key, source)
            except Exception as exc:
                error = ListenerError(
                    message=f"Listener failed for key {key!r}",
                    key=key,
                    listener=_callable_name(cb),
                    cause=exc,
                )
                error.__cause__ = exc
                self.listener_errors.append(error)
                record_listener_error()
                if self.config.log_listener_errors:
                    logger.exception("Listener %s failed for %s", _callable_name(cb), key)
                else:
                    logger.error("Listener %s failed for %s: %s", _callable_name(cb), key, exc)

    def _notify_observers(self, hook: str, *args: Any) -> None:
        for observer in self._observers:
            method = getattr(observer, hook, None)
            if method is None:
                continue
            try:
                method(*args)
            except Exception:
                logger.exception("Store observer %r failed in %s", observer, hook)


__all__ = [
    "FieldStore",
    "Listener",
]
