# -*- coding: utf-8 -*-
"""TEUI Calculator Exception Hierarchy.

Exception types for the reactive calculation substrate. Almost every
runtime fault in the substrate is recovered locally (defaults, neutral
values, logged fallbacks); these exceptions are raised only for
programming errors at the API boundary, or are raised inside a backend
and caught by the component that owns it.

Exception Hierarchy:
    TEUIException (base)
    ├── StateException
    │   ├── InvalidFieldKeyError
    │   ├── InvalidScenarioError
    │   ├── StorageError
    │   └── ListenerError
    └── CalculationException
        └── StageError

All exceptions include rich context:
- error_code: Unique error identifier
- module_id: Calculation module that raised the error (optional)
- context: Dictionary with error-specific details
- timestamp: When the error occurred

Example:
    >>> from teui.exceptions import InvalidScenarioError
    >>> raise InvalidScenarioError(
    ...     message="Unknown mode 'baseline'",
    ...     module_id="cooling",
    ...     context={"mode": "baseline"},
    ... )

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

import json
import re
import traceback as tb
from datetime import datetime
from typing import Any, Dict, Optional


# ==============================================================================
# Base Exception
# ==============================================================================

class TEUIException(Exception):
    """Base exception for all TEUI calculator errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "TEUI_STATE_STORAGE_ERROR")
        module_id: Calculation module that raised the error (optional)
        context: Dictionary with error-specific details
        timestamp: When the error occurred
        traceback_str: Stack at construction time
    """

    ERROR_PREFIX = "TEUI"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        module_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception with rich context.

        Args:
            message: Human-readable error message
            error_code: Unique error identifier (auto-generated if not provided)
            module_id: Calculation module that raised the error
            context: Dictionary with error-specific details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.module_id = module_id
        self.context = context or {}
        self.timestamp = datetime.now()
        self.traceback_str = "".join(tb.format_stack()[:-1])

    def _generate_error_code(self) -> str:
        """Generate an error code from the exception class name.

        Returns:
            Error code like "TEUI_STATE_INVALID_FIELD_KEY_ERROR"
        """
        error_type = re.sub(r'(?<!^)(?=[A-Z])', '_', self.__class__.__name__).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary with all error details
        """
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "module_id": self.module_id,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "traceback": self.traceback_str,
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        parts = [f"[{self.error_code}]"]
        if self.module_id:
            parts.append(f"Module: {self.module_id}")
        parts.append(self.message)
        return " - ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"module_id='{self.module_id}')"
        )


# ==============================================================================
# State Exceptions
# ==============================================================================

class StateException(TEUIException):
    """Base exception for store, facade and persistence errors."""
    ERROR_PREFIX = "TEUI_STATE"


class InvalidFieldKeyError(StateException):
    """A field key could not be built or parsed.

    Example:
        >>> raise InvalidFieldKeyError(
        ...     message="Base id must not carry the reference prefix",
        ...     key="ref_ref_d_12",
        ... )
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        module_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if key is not None:
            context["key"] = key
        super().__init__(message, module_id=module_id, context=context)


class InvalidScenarioError(StateException):
    """An unknown scenario/mode was requested."""

    def __init__(
        self,
        message: str,
        mode: Any = None,
        module_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if mode is not None:
            context["mode"] = str(mode)
        context.setdefault("valid_modes", ["target", "reference"])
        super().__init__(message, module_id=module_id, context=context)


class StorageError(StateException):
    """Reading or writing a persisted scenario map failed.

    Raised by storage backends; the scenario facade catches it and keeps
    the in-memory value.
    """

    def __init__(
        self,
        message: str,
        storage_key: Optional[str] = None,
        module_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        context = context or {}
        if storage_key:
            context["storage_key"] = storage_key
        if cause:
            context["cause"] = str(cause)
            context["cause_type"] = type(cause).__name__
        super().__init__(message, module_id=module_id, context=context)


class ListenerError(StateException):
    """A listener callback raised during dispatch.

    Never raised out of ``FieldStore.set``; instances are recorded on the
    store so diagnostics can inspect what failed.
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        listener: Optional[str] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if key is not None:
            context["key"] = key
        if listener is not None:
            context["listener"] = listener
        if cause:
            context["cause"] = str(cause)
            context["cause_type"] = type(cause).__name__
        super().__init__(message, context=context)


# ==============================================================================
# Calculation Exceptions
# ==============================================================================

class CalculationException(TEUIException):
    """Base exception for calculation module errors."""
    ERROR_PREFIX = "TEUI_CALC"


class StageError(CalculationException):
    """A calculation stage failed.

    Recorded by the calculator when a module fails during a full pass;
    the pass continues with the next module.
    """

    def __init__(
        self,
        message: str,
        module_id: Optional[str] = None,
        stage: Optional[str] = None,
        scenario: Optional[str] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = context or {}
        if stage:
            context["stage"] = stage
        if scenario:
            context["scenario"] = scenario
        if cause:
            context["cause"] = str(cause)
            context["cause_type"] = type(cause).__name__
        super().__init__(message, module_id=module_id, context=context)


# ==============================================================================
# Exception Utilities
# ==============================================================================

def format_exception_chain(exc: Exception) -> str:
    """Format an exception and its causes for logging/display.

    Args:
        exc: Exception to format

    Returns:
        Formatted string with full exception chain
    """
    lines = []
    current = exc

    while current is not None:
        if isinstance(current, TEUIException):
            lines.append(str(current))
            lines.append(f"  Context: {current.context}")
        else:
            lines.append(f"{type(current).__name__}: {current}")
        current = getattr(current, "__cause__", None)

    return "\n".join(lines)


__all__ = [
    "TEUIException",
    "StateException",
    "InvalidFieldKeyError",
    "InvalidScenarioError",
    "StorageError",
    "ListenerError",
    "CalculationException",
    "StageError",
    "format_exception_chain",
]
