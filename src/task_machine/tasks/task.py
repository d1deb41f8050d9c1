# src/task_machine/tasks/task.py

from __future__ import annotations

"""
Task: one guarded, hook-driven unit of async work.

Status lives on the caller's model (running / ready / error / executed_at), under the field
names produced by the machine's key-naming function. executed_at doubles as the preemption
token: an invocation only commits its result if the token it wrote is still on the model
when execute resolves.
"""

import inspect
import logging
from typing import Any

from ..core.model import as_model
from ..core.ports import LogSink
from ..core.prop_keys import TaskPropKeys
from ..errors import FalsyResultError, MissingExecuteHookError
from .task_models import (
    NEVER_EXECUTED,
    TaskHelpers,
    TaskOutcome,
    TaskSnapshot,
    coerce_hooks,
    now_ms,
)

logger = logging.getLogger(__name__)


class Task:
    def __init__(
        self,
        key: str,
        hooks: Any,
        *,
        model: Any,
        keys: TaskPropKeys,
        machine_id: int = 0,
        error_as_object: bool = False,
        log: LogSink | None = None,
    ) -> None:
        self.key = key
        self.machine_id = machine_id
        self.error_as_object = bool(error_as_object)
        self.destroyed = False

        self._hooks = coerce_hooks(hooks)
        self._model = model
        self._fields = as_model(model)
        self._keys = keys
        self._log = log if log is not None else logger
        self._last_token = 0

    def __repr__(self) -> str:
        return f"Task(key={self.key!r}, machine_id={self.machine_id}, destroyed={self.destroyed})"

    # ---- status (read back from the model) ----

    @property
    def keys(self) -> TaskPropKeys | None:
        return self._keys

    @property
    def running(self) -> bool:
        if self.destroyed:
            return False
        return bool(self._fields.get(self._keys.running, False))

    @property
    def ready(self) -> bool:
        if self.destroyed:
            return False
        return bool(self._fields.get(self._keys.ready, False))

    @property
    def error(self) -> Any:
        if self.destroyed:
            return None
        return self._fields.get(self._keys.error)

    @property
    def executed_at(self) -> int:
        if self.destroyed:
            return NEVER_EXECUTED
        return self._fields.get(self._keys.executed_at, NEVER_EXECUTED)

    def snapshot(self) -> TaskSnapshot | None:
        if self.destroyed:
            return None
        return TaskSnapshot(
            key=self.key,
            running=self.running,
            ready=self.ready,
            error=self.error,
            executed_at=self.executed_at,
        )

    # ---- scheduling ----

    def is_runnable(self) -> bool:
        """Not running, and the guard (if any) says yes for the current model."""
        if self.destroyed or self.running:
            return False
        try:
            return bool(self._hooks.guard(self._model))
        except Exception:
            # A broken guard must not take the polling loop down; treat it as "not now".
            self._log.exception("Task %s guard raised machine=%s", self.key, self.machine_id)
            return False

    def _next_token(self) -> int:
        # Strictly increasing so two starts within one millisecond stay distinguishable.
        token = max(now_ms(), self._last_token + 1)
        self._last_token = token
        return token

    async def start(self) -> TaskOutcome:
        """
        Execute once.

        Never raises for task-level failures: they end up in the model's error field.
        Returns how the invocation ended (mostly useful for logging and tests).
        """
        if self.destroyed:
            return TaskOutcome.ABORTED

        # destroy() drops these references; keep our own for the whole invocation.
        hooks = self._hooks
        model = self._model
        fields = self._fields
        keys = self._keys
        token: int | None = None

        def is_current() -> bool:
            return not self.destroyed and token is not None and fields.get(keys.executed_at) == token

        helpers = TaskHelpers(
            task_key=self.key,
            machine_id=self.machine_id,
            keys=keys,
            logger=self._log,
            _is_current=is_current,
        )

        fields[keys.running] = True
        fields[keys.error] = None
        fields[keys.ready] = False

        try:
            hooks.before_execute(model, helpers)
            if self.destroyed:
                return TaskOutcome.ABORTED

            execute = hooks.execute
            if not callable(execute):
                raise MissingExecuteHookError(self.key)

            token = self._next_token()
            fields[keys.executed_at] = token

            result = execute(model, helpers)
            if inspect.isawaitable(result):
                result = await result

            if self.destroyed:
                return TaskOutcome.ABORTED
            if fields.get(keys.executed_at) != token:
                return TaskOutcome.PREEMPTED

            result = hooks.after_execute(model, result, helpers)
            if not result:
                raise FalsyResultError(self.key)

            hooks.assign(model, result, helpers)
            if self.destroyed:
                return TaskOutcome.ABORTED

            fields[keys.ready] = True
            fields[keys.running] = False
            return TaskOutcome.READY

        except Exception as err:
            if self.destroyed:
                return TaskOutcome.ABORTED
            if token is not None and fields.get(keys.executed_at) != token:
                return TaskOutcome.PREEMPTED

            self._log.error("Task %s failed machine=%s: %s", self.key, self.machine_id, err)

            fields[keys.error] = err if self.error_as_object else (str(err) or type(err).__name__)
            fields[keys.running] = False
            return TaskOutcome.FAILED

    # ---- lifecycle ----

    def clear(self) -> None:
        """Reset status fields and run the clear hook. Idempotent; no-op once destroyed."""
        if self.destroyed:
            return

        fields = self._fields
        keys = self._keys

        fields[keys.running] = False
        fields[keys.error] = None
        fields[keys.ready] = False
        fields[keys.executed_at] = NEVER_EXECUTED

        self._hooks.clear(self._model)

    def destroy(self) -> None:
        """Terminal. In-flight invocations notice after their await and leave the model alone."""
        if self.destroyed:
            return
        self.destroyed = True
        self._hooks = None
        self._model = None
        self._fields = None
        self._keys = None
