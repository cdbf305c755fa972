# -*- coding: utf-8 -*-
"""Tests for numeric reading and store coercion.

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

import logging
import math

import pytest

from teui.state.numeric import parse_numeric, safe_divide, to_store_string


# ==============================================================================
# parse_numeric Tests
# ==============================================================================

class TestParseNumeric:
    """Tests for store string -> float parsing."""

    @pytest.mark.parametrize("raw,expected", [
        ("42", 42.0),
        ("-3.5", -3.5),
        ("$1,234.50", 1234.5),
        ("  7 ", 7.0),
        ("12 kWh", 12.0),
        ("1e3", 1000.0),
        (8, 8.0),
        (2.25, 2.25),
    ])
    def test_parses_numbers(self, raw, expected):
        """Numeric text and numbers parse to floats."""
        assert parse_numeric(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", [None, "", "N/A", "n/a", "Cooling", True, float("nan"), "inf"])
    def test_unparseable_returns_default(self, raw):
        """Missing and non-numeric values use the caller default."""
        assert parse_numeric(raw, default=120.0) == 120.0

    def test_default_is_zero(self):
        """The default default is 0.0."""
        assert parse_numeric(None) == 0.0

    def test_never_nan(self):
        """Nothing parses to NaN."""
        assert not math.isnan(parse_numeric("nan"))


# ==============================================================================
# to_store_string Tests
# ==============================================================================

class TestToStoreString:
    """Tests for value -> store string coercion."""

    def test_none_is_neutral(self):
        """None becomes the neutral value."""
        assert to_store_string(None) == ""
        assert to_store_string(None, neutral="0") == "0"

    def test_integral_float_drops_fraction(self):
        """Whole floats are stored without a fraction."""
        assert to_store_string(42.0) == "42"
        assert to_store_string(-0.0) == "0"

    def test_fractional_float(self):
        """Fractions keep full precision."""
        assert to_store_string(0.1) == "0.1"
        assert float(to_store_string(1 / 3)) == 1 / 3

    def test_strings_pass_through(self):
        """Strings are stored as given."""
        assert to_store_string("No Cooling") == "No Cooling"

    def test_bool_and_int(self):
        """Booleans and ints have stable forms."""
        assert to_store_string(True) == "true"
        assert to_store_string(7) == "7"

    def test_non_finite_is_zero(self, caplog):
        """Non-finite numbers are stored as '0' with a warning."""
        with caplog.at_level(logging.WARNING):
            assert to_store_string(float("inf")) == "0"
        assert "Non-finite" in caplog.text


# ==============================================================================
# safe_divide Tests
# ==============================================================================

class TestSafeDivide:
    """Tests for logged division fallback."""

    def test_divides(self):
        assert safe_divide(10, 4, fallback=0.0) == 2.5

    def test_zero_denominator_logs_and_falls_back(self, caplog):
        """A zero denominator substitutes the fallback and warns."""
        with caplog.at_level(logging.WARNING):
            result = safe_divide(10, 0, fallback=0.0, label="free cooling %")

        assert result == 0.0
        assert "free cooling %" in caplog.text
