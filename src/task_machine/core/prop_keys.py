# src/task_machine/core/prop_keys.py

"""
Field-name records and the built-in key-naming strategies.

The engine never invents field names itself: it writes through the strings returned here
(or by a caller-supplied function with the same signature).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True, frozen=True)
class MachinePropKeys:
    running: str
    started_at: str
    stopped_at: str


@dataclass(slots=True, frozen=True)
class TaskPropKeys:
    error: str
    executed_at: str
    running: str
    ready: str


def default_machine_prop_keys(machine: Any) -> MachinePropKeys:
    return MachinePropKeys(
        running="machine_running",
        started_at="machine_started_at",
        stopped_at="machine_stopped_at",
    )


def default_task_prop_keys(machine: Any, task_key: str) -> TaskPropKeys:
    return TaskPropKeys(
        error=f"{task_key}_error",
        executed_at=f"{task_key}_executed_at",
        running=f"{task_key}_running",
        ready=f"{task_key}_ready",
    )


def camel_machine_prop_keys(machine: Any) -> MachinePropKeys:
    """Names used by JS-style view-models (machineRunning, ...)."""
    return MachinePropKeys(
        running="machineRunning",
        started_at="machineStartedAt",
        stopped_at="machineStoppedAt",
    )


def camel_task_prop_keys(machine: Any, task_key: str) -> TaskPropKeys:
    return TaskPropKeys(
        error=f"{task_key}Error",
        executed_at=f"{task_key}ExecutedAt",
        running=f"{task_key}Running",
        ready=f"{task_key}Ready",
    )
