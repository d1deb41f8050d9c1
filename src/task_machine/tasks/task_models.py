# src/task_machine/tasks/task_models.py

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..core.prop_keys import TaskPropKeys

# Far-future epoch milliseconds (the largest JS Date). Means "no execution has occurred".
NEVER_EXECUTED = 8_640_000_000_000_000


def now_ms() -> int:
    return int(time.time() * 1000)


class TaskOutcome(StrEnum):
    """How one Task.start() invocation ended."""

    READY = "ready"
    FAILED = "failed"
    PREEMPTED = "preempted"  # result was stale, discarded
    ABORTED = "aborted"  # task destroyed while in flight


@dataclass(slots=True, frozen=True)
class TaskHelpers:
    """
    Passed to before_execute/execute/after_execute/assign.

    is_current() lets a long-running execute notice that its invocation has been
    superseded (clear() or destroy()) and bail out early; the engine discards the
    result either way.
    """

    task_key: str
    machine_id: int
    keys: TaskPropKeys
    logger: Any
    _is_current: Callable[[], bool] = field(repr=False, default=lambda: True)

    def is_current(self) -> bool:
        return self._is_current()


@dataclass(slots=True, frozen=True)
class TaskSnapshot:
    key: str
    running: bool
    ready: bool
    error: Any
    executed_at: int

    @property
    def never_executed(self) -> bool:
        return self.executed_at == NEVER_EXECUTED


class TaskHooks:
    """
    Base hook bundle. Subclass and override what the task needs.

    Defaults: always runnable, no side effects, result passed through unchanged.
    execute has no default; a bundle without one fails with MissingExecuteHookError
    every time it is started.
    """

    execute: Callable[..., Any] | None = None

    def guard(self, model: Any) -> Any:
        return True

    def before_execute(self, model: Any, helpers: TaskHelpers) -> None:
        return None

    def after_execute(self, model: Any, result: Any, helpers: TaskHelpers) -> Any:
        return result

    def assign(self, model: Any, result: Any, helpers: TaskHelpers) -> None:
        return None

    def clear(self, model: Any) -> None:
        return None


HOOK_NAMES = ("guard", "before_execute", "execute", "after_execute", "assign", "clear")

# camelCase spellings accepted from ported configs.
_HOOK_ALIASES = {
    "beforeExecute": "before_execute",
    "afterExecute": "after_execute",
}


class FunctionHooks(TaskHooks):
    """Hook bundle assembled from plain callables (all optional)."""

    def __init__(
        self,
        *,
        guard: Callable[[Any], Any] | None = None,
        before_execute: Callable[[Any, TaskHelpers], Any] | None = None,
        execute: Callable[[Any, TaskHelpers], Any] | None = None,
        after_execute: Callable[[Any, Any, TaskHelpers], Any] | None = None,
        assign: Callable[[Any, Any, TaskHelpers], Any] | None = None,
        clear: Callable[[Any], Any] | None = None,
    ) -> None:
        self._guard = guard
        self._before_execute = before_execute
        self._after_execute = after_execute
        self._assign = assign
        self._clear = clear
        if execute is not None:
            self.execute = execute

    @classmethod
    def from_mapping(cls, hooks: Mapping[str, Any]) -> FunctionHooks:
        kwargs: dict[str, Any] = {}
        for raw_name, fn in hooks.items():
            name = _HOOK_ALIASES.get(raw_name, raw_name)
            if name not in HOOK_NAMES:
                raise TypeError(f"Unknown task hook: {raw_name!r}")
            if fn is not None and not callable(fn):
                raise TypeError(f"Task hook {raw_name!r} must be callable")
            kwargs[name] = fn
        return cls(**kwargs)

    def guard(self, model: Any) -> Any:
        return True if self._guard is None else self._guard(model)

    def before_execute(self, model: Any, helpers: TaskHelpers) -> None:
        if self._before_execute is not None:
            self._before_execute(model, helpers)

    def after_execute(self, model: Any, result: Any, helpers: TaskHelpers) -> Any:
        if self._after_execute is None:
            return result
        return self._after_execute(model, result, helpers)

    def assign(self, model: Any, result: Any, helpers: TaskHelpers) -> None:
        if self._assign is not None:
            self._assign(model, result, helpers)

    def clear(self, model: Any) -> None:
        if self._clear is not None:
            self._clear(model)


def coerce_hooks(definition: Any) -> TaskHooks:
    """Accept a TaskHooks-like object or a mapping of hook name -> callable."""
    if isinstance(definition, TaskHooks):
        return definition
    if isinstance(definition, Mapping):
        return FunctionHooks.from_mapping(definition)
    raise TypeError(f"Task definition must be TaskHooks or a mapping, got {type(definition).__name__}")
