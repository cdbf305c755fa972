"""
TEUI: Reactive Dual-Scenario Calculation Substrate
===================================================

Shared keyed value store, per-module Target/Reference facades and staged
orchestration for a building energy/carbon calculator.

Packages:
    - teui.state: store, scenario facades, orchestration, diagnostics
    - teui.calculations: pluggable calculation modules
    - teui.cli: command line interface
"""

from ._version import __version__

__author__ = "TEUI Calculator Team"
__license__ = "MIT"

__all__ = ["__version__"]
