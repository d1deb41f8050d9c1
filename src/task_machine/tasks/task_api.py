# src/task_machine/tasks/task_api.py

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..config import MachineConfig
from .machine import Machine
from .task_models import TaskSnapshot

logger = logging.getLogger(__name__)


async def run_tasks(
    model: Any,
    tasks: Mapping[str, Any],
    *,
    config: MachineConfig | None = None,
    **overrides: Any,
) -> dict[str, TaskSnapshot]:
    """
    Convenience helper: build a machine, clear it, run it to quiescence, tear it down.

    Returns the final per-task snapshots. Executions still in flight when the safety
    valve trips are awaited before the machine is destroyed.
    """
    machine = Machine(model, tasks, config, **overrides)
    try:
        await machine.clear().start()
        await machine.join()
        return machine.snapshot()
    finally:
        machine.destroy()


def ready_keys(machine: Machine) -> list[str]:
    return [key for key, snap in machine.snapshot().items() if snap.ready]


def failed_keys(machine: Machine) -> list[str]:
    """Task keys whose last invocation left an error on the model."""
    return [key for key, snap in machine.snapshot().items() if snap.error is not None]
