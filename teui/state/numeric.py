# -*- coding: utf-8 -*-
"""
Numeric Reading and Store Coercion - TEUI Calculator State Layer

The store holds strings; numeric parsing is deferred to readers. This
module provides the two conversions every calculation module uses:

- ``parse_numeric``: store string -> float, with a caller default for
  missing or non-numeric values (never NaN).
- ``to_store_string``: Python value -> store string, mapping ``None`` to
  the neutral value.

Example:
    >>> from teui.state.numeric import parse_numeric, to_store_string
    >>> parse_numeric("$1,234.50")
    1234.5
    >>> parse_numeric("N/A", default=120.0)
    120.0
    >>> to_store_string(42.0)
    '42'

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

_CURRENCY_RE = re.compile(r"[$£€¥]")
_LEADING_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def parse_numeric(value: Any, default: float = 0.0) -> float:
    """Parse a store value to a float.

    Currency symbols, thousands separators and surrounding whitespace are
    ignored. A leading numeric prefix is accepted (``"12 kWh"`` -> 12.0).
    ``None``, empty strings, ``"N/A"``, booleans and anything unparseable
    return ``default``. Non-finite results also return ``default``.

    Args:
        value: Raw value (usually the string held by the store).
        default: Value substituted when parsing fails.

    Returns:
        Parsed float or ``default``.
    """
    if value is None or isinstance(value, bool):
        return default

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = _CURRENCY_RE.sub("", value).replace(",", "").strip()
        if not cleaned or cleaned.upper() == "N/A":
            return default
        match = _LEADING_NUMBER_RE.match(cleaned)
        if match is None:
            return default
        number = float(match.group(0))
    else:
        return default

    if not math.isfinite(number):
        return default
    return number


def to_store_string(value: Any, neutral: str = "") -> str:
    """Convert a Python value to the string form held by the store.

    Args:
        value: Value to store.
        neutral: String substituted for ``None``.

    Returns:
        String representation. Integral floats drop their fraction
        (``42.0`` -> ``"42"``); non-finite numbers become ``"0"``.
    """
    if value is None:
        return neutral
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            logger.warning("Non-finite value %r stored as '0'", value)
            return "0"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def safe_divide(
    numerator: float,
    denominator: float,
    fallback: float,
    label: Optional[str] = None,
) -> float:
    """Divide, substituting ``fallback`` when the denominator is zero.

    The substitution is logged at WARNING so derived-ratio fallbacks stay
    visible in the calculation log.
    """
    if denominator == 0:
        logger.warning(
            "Division by zero in %s; using fallback %s",
            label or "derived ratio", fallback,
        )
        return fallback
    return numerator / denominator


__all__ = [
    "parse_numeric",
    "to_store_string",
    "safe_divide",
]
