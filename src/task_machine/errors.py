# src/task_machine/errors.py

"""Task-level failures. They are stored on the model, never raised out of Machine.start()."""

from __future__ import annotations


class TaskMachineError(RuntimeError):
    """Base class for errors produced by the engine itself."""


class MissingExecuteHookError(TaskMachineError):
    """The task's hook bundle has no execute hook (configuration error)."""

    def __init__(self, task_key: str) -> None:
        super().__init__(f"Execute hook not defined: {task_key}")
        self.task_key = task_key


class FalsyResultError(TaskMachineError):
    """execute (or after_execute) produced a falsy result."""

    def __init__(self, task_key: str) -> None:
        super().__init__("Result not truthy")
        self.task_key = task_key
