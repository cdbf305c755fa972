# -*- coding: utf-8 -*-
"""
TEUI CLI
========

Command line interface for the TEUI calculation substrate.
"""

from teui.cli.main import app

__all__ = ["app"]
