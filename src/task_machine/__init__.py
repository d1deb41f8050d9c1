"""Cooperative scheduler that drives guarded async tasks against a shared model."""

from .config import MachineConfig, Settings, get_settings
from .core.prop_keys import (
    MachinePropKeys,
    TaskPropKeys,
    camel_machine_prop_keys,
    camel_task_prop_keys,
    default_machine_prop_keys,
    default_task_prop_keys,
)
from .errors import FalsyResultError, MissingExecuteHookError, TaskMachineError
from .logging_setup import setup_logging
from .tasks.machine import Machine
from .tasks.task import Task
from .tasks.task_api import failed_keys, ready_keys, run_tasks
from .tasks.task_models import (
    NEVER_EXECUTED,
    FunctionHooks,
    TaskHelpers,
    TaskHooks,
    TaskOutcome,
    TaskSnapshot,
)

__all__ = [
    "NEVER_EXECUTED",
    "FalsyResultError",
    "FunctionHooks",
    "Machine",
    "MachineConfig",
    "MachinePropKeys",
    "MissingExecuteHookError",
    "Settings",
    "Task",
    "TaskHelpers",
    "TaskHooks",
    "TaskMachineError",
    "TaskOutcome",
    "TaskPropKeys",
    "TaskSnapshot",
    "camel_machine_prop_keys",
    "camel_task_prop_keys",
    "default_machine_prop_keys",
    "default_task_prop_keys",
    "failed_keys",
    "get_settings",
    "ready_keys",
    "run_tasks",
    "setup_logging",
]
