# tests/conftest.py

from __future__ import annotations

import logging

import pytest

from task_machine.config import MachineConfig, get_settings
from task_machine.core.prop_keys import default_task_prop_keys

from .fakes import ListHandler

_ENV_VARS = (
    "TASK_MACHINE_INTERVAL_MS",
    "TASK_MACHINE_MAX_EXECUTIONS",
    "TASK_MACHINE_ERROR_AS_OBJECT",
    "TASK_MACHINE_WAIT_FOR_COMPLETION",
    "TASK_MACHINE_LOG_ENABLED",
    "TASK_MACHINE_LOG_LEVEL",
    "TASK_MACHINE_PROP_KEY_STYLE",
)


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch):
    """Every test starts from built-in defaults, not from the developer's environment."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def log_handler():
    handler = ListHandler()
    log = logging.getLogger("tests.task_machine")
    log.setLevel(logging.DEBUG)
    log.propagate = False
    log.addHandler(handler)
    yield handler
    log.removeHandler(handler)


@pytest.fixture()
def config(log_handler: ListHandler) -> MachineConfig:
    """
    Fast config: next-tick polling, small safety valve, logs captured.

    We build MachineConfig directly instead of going through Settings,
    to keep engine tests independent of the environment.
    """
    return MachineConfig(
        interval_ms=-1,
        max_executions=20,
        logger=logging.getLogger("tests.task_machine"),
    )


@pytest.fixture()
def model() -> dict:
    return {}


@pytest.fixture()
def keys_a():
    return default_task_prop_keys(None, "a")
