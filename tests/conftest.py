"""Shared fixtures for the gridfn test suite."""

from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _reset_event_sink():
    """Each test starts and ends with structured events discarded."""
    from gridfn.logging import set_log_dir

    set_log_dir(None)
    yield
    set_log_dir(None)


@pytest.fixture(scope="session")
def builtin_registry():
    """The frozen registry of built-in functions (read-only, shared)."""
    from gridfn.loader import build_registry

    return build_registry()


@pytest.fixture
def registry():
    """An empty, unfrozen registry for registration tests."""
    from gridfn.registry import FunctionRegistry

    return FunctionRegistry()
