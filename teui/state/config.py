# -*- coding: utf-8 -*-
"""
Field State Configuration - TEUI Calculator State Layer

Centralized configuration for the field store and scenario facades
covering:
- Neutral value written when a null value is stored
- Scenario persistence backend and location
- Initial display mode for new facades
- Diagnostic (QC) observer toggles and watched keys
- Listener error logging

All settings can be overridden via environment variables with the
``TEUI_STATE_`` prefix (e.g. ``TEUI_STATE_STORAGE_BACKEND=json``).

Example:
    >>> from teui.state.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.storage_backend, cfg.default_mode)

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "TEUI_STATE_"

_VALID_BACKENDS = ("memory", "json")
_VALID_MODES = ("target", "reference")


# ---------------------------------------------------------------------------
# StateConfig
# ---------------------------------------------------------------------------


@dataclass
class StateConfig:
    """Configuration for the TEUI field store and scenario facades.

    Attributes:
        neutral_value: String stored when ``set`` receives ``None``.
        storage_backend: Scenario persistence backend (``memory`` or ``json``).
        storage_dir: Directory used by the ``json`` backend.
        persist_user_edits: Whether user-modified facade writes are persisted.
        default_mode: Scenario displayed by a new facade.
        qc_enabled: Whether the service attaches the QC observer.
        qc_mirror_target: Whether Reference is expected to mirror Target.
        qc_watch_fields: Base ids checked for Target/Reference contamination.
        log_listener_errors: Whether listener failures are logged with traceback.
    """

    # -- Store ---------------------------------------------------------------
    neutral_value: str = ""

    # -- Persistence ---------------------------------------------------------
    storage_backend: str = "memory"
    storage_dir: str = ".teui_state"
    persist_user_edits: bool = True

    # -- Scenarios -----------------------------------------------------------
    default_mode: str = "target"

    # -- Diagnostics ---------------------------------------------------------
    qc_enabled: bool = False
    qc_mirror_target: bool = False
    qc_watch_fields: List[str] = field(default_factory=list)

    # -- Logging -------------------------------------------------------------
    log_listener_errors: bool = True

    def __post_init__(self) -> None:
        if self.storage_backend not in _VALID_BACKENDS:
            logger.warning(
                "Unknown storage backend %r, falling back to 'memory'",
                self.storage_backend,
            )
            self.storage_backend = "memory"
        if self.default_mode not in _VALID_MODES:
            logger.warning(
                "Unknown default mode %r, falling back to 'target'",
                self.default_mode,
            )
            self.default_mode = "target"

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> StateConfig:
        """Build a StateConfig from environment variables.

        Every field can be overridden via ``TEUI_STATE_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive). List
        values are comma separated.

        Returns:
            Populated StateConfig instance.
        """
        prefix = _ENV_PREFIX

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def _str(name: str, default: str) -> str:
            val = _env(name)
            if val is None:
                return default
            return val

        def _list(name: str) -> List[str]:
            val = _env(name)
            if not val:
                return []
            return [item.strip() for item in val.split(",") if item.strip()]

        config = cls(
            neutral_value=_str("NEUTRAL_VALUE", cls.neutral_value),
            storage_backend=_str("STORAGE_BACKEND", cls.storage_backend).lower(),
            storage_dir=_str("STORAGE_DIR", cls.storage_dir),
            persist_user_edits=_bool(
                "PERSIST_USER_EDITS", cls.persist_user_edits,
            ),
            default_mode=_str("DEFAULT_MODE", cls.default_mode).lower(),
            qc_enabled=_bool("QC_ENABLED", cls.qc_enabled),
            qc_mirror_target=_bool("QC_MIRROR_TARGET", cls.qc_mirror_target),
            qc_watch_fields=_list("QC_WATCH_FIELDS"),
            log_listener_errors=_bool(
                "LOG_LISTENER_ERRORS", cls.log_listener_errors,
            ),
        )

        logger.info(
            "StateConfig loaded: backend=%s, dir=%s, default_mode=%s, qc=%s",
            config.storage_backend,
            config.storage_dir,
            config.default_mode,
            config.qc_enabled,
        )
        return config


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[StateConfig] = None
_config_lock = threading.Lock()


def get_config() -> StateConfig:
    """Return the singleton StateConfig, creating from env if needed.

    Returns:
        StateConfig singleton instance.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = StateConfig.from_env()
    return _config_instance


def set_config(config: StateConfig) -> None:
    """Replace the singleton StateConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("StateConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "StateConfig",
    "get_config",
    "set_config",
    "reset_config",
]
