"""Shared fixtures: an isolated process registry with built-ins and test processes."""
import pytest

from modeler.foundation.registry import ProcessRegistry
from modeler.processes import install_builtins
from tests.foundation.helpers import CountingProcess, FailingProcess


@pytest.fixture
def registry() -> ProcessRegistry:
    r = ProcessRegistry()
    install_builtins(r)
    r.register("counting", CountingProcess)
    r.register("failing", FailingProcess)
    return r
