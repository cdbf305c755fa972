#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Setup script for the TEUI calculator

This file is kept for legacy compatibility and pip editable installs.
The main package configuration is in pyproject.toml.
"""

from setuptools import setup

# Main setup configuration is in pyproject.toml
setup()
