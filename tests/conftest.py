# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

import pytest

from teui.state.config import StateConfig, reset_config, set_config
from teui.state.dependencies import DependencyRegistry
from teui.state.persistence import InMemoryStorage
from teui.state.scheduler import CascadeScheduler
from teui.state.signals import SignalBus
from teui.state.store import FieldStore


@pytest.fixture(autouse=True)
def _isolated_config():
    """Install a default in-memory config for every test."""
    set_config(StateConfig())
    yield
    reset_config()


@pytest.fixture
def config():
    return StateConfig()


@pytest.fixture
def registry():
    return DependencyRegistry()


@pytest.fixture
def store(config, registry):
    return FieldStore(config=config, registry=registry)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def scheduler():
    return CascadeScheduler()


@pytest.fixture
def signals():
    return SignalBus()


@pytest.fixture
def module_kwargs(scheduler, signals, storage, config):
    """Shared collaborators for calculation modules under test."""
    return dict(scheduler=scheduler, signals=signals, storage=storage, config=config)


@pytest.fixture
def service(config, storage):
    from teui.state.setup import CalculatorService, reset_calculator_service

    svc = CalculatorService(config=config, storage=storage)
    svc.startup()
    yield svc
    svc.shutdown()
    reset_calculator_service()
