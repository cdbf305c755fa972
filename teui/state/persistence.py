# -*- coding: utf-8 -*-
"""
Scenario Persistence - TEUI Calculator State Layer

Durable storage for per-module scenario maps. Each module persists its
Target and Reference maps separately under module-scoped keys
(``COOLING_TARGET_STATE``, ``COOLING_REFERENCE_STATE``). Backends raise
``StorageError`` on I/O failure; the scenario facade decides how to
recover.

Backends:
    - InMemoryStorage: process-local dict, the default
    - JsonFileStorage: one JSON document per storage key in a directory

Example:
    >>> from teui.state.persistence import InMemoryStorage, storage_key
    >>> storage = InMemoryStorage()
    >>> storage.save(storage_key("cooling", "target"), {"d_116": "Cooling"})
    >>> storage.load("COOLING_TARGET_STATE")
    {'d_116': 'Cooling'}

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

from teui.exceptions import StorageError
from teui.state.config import StateConfig, get_config
from teui.state.models import Scenario, parse_scenario

logger = logging.getLogger(__name__)

_SAFE_KEY_RE = re.compile(r"^[A-Z0-9_]+$")


def storage_key(module_id: str, scenario: Union[Scenario, str]) -> str:
    """Build the persisted key for one module scenario map."""
    scenario = parse_scenario(scenario)
    return f"{module_id.upper()}_{scenario.value.upper()}_STATE"


class StorageBackend(Protocol):
    """Interface implemented by scenario storage backends."""

    def load(self, key: str) -> Optional[Dict[str, str]]:
        ...

    def save(self, key: str, values: Dict[str, str]) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self) -> List[str]:
        ...


class InMemoryStorage:
    """Process-local storage; payloads are copied on the way in and out."""

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, str]] = {}

    def load(self, key: str) -> Optional[Dict[str, str]]:
        payload = self._data.get(key)
        return dict(payload) if payload is not None else None

    def save(self, key: str, values: Dict[str, str]) -> None:
        self._data[key] = dict(values)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return sorted(self._data)


class JsonFileStorage:
    """One ``<KEY>.json`` file per storage key under ``directory``.

    Writes go to a temporary file in the same directory and are moved into
    place, so a crash never leaves a half-written document.
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY_RE.match(key):
            raise StorageError(
                message=f"Unsafe storage key {key!r}", storage_key=key,
            )
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Optional[Dict[str, str]]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except (OSError, ValueError) as exc:
            raise StorageError(
                message=f"Failed to read {path}", storage_key=key, cause=exc,
            ) from exc
        if not isinstance(payload, dict):
            raise StorageError(
                message=f"Stored payload for {key} is not an object",
                storage_key=key,
            )
        return {str(k): "" if v is None else str(v) for k, v in payload.items()}

    def save(self, key: str, values: Dict[str, str]) -> None:
        path = self._path(key)
        tmp = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(values, fh, indent=2, sort_keys=True)
            os.replace(tmp, path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp is not None and os.path.exists(tmp):
                os.remove(tmp)
            raise StorageError(
                message=f"Failed to write {path}", storage_key=key, cause=exc,
            ) from exc

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to delete {path}", storage_key=key, cause=exc,
            ) from exc

    def keys(self) -> List[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))


def create_storage(config: Optional[StateConfig] = None) -> StorageBackend:
    """Build the backend selected by ``config.storage_backend``."""
    config = config or get_config()
    if config.storage_backend == "json":
        logger.info("Using JSON scenario storage at %s", config.storage_dir)
        return JsonFileStorage(config.storage_dir)
    return InMemoryStorage()


__all__ = [
    "storage_key",
    "StorageBackend",
    "InMemoryStorage",
    "JsonFileStorage",
    "create_storage",
]
