# src/task_machine/tasks/machine.py

from __future__ import annotations

"""
Machine: owns a set of Tasks and polls them against one shared model.

A small polling loop that, every interval:
- asks every task whether it is runnable (not running + guard),
- launches all runnable tasks concurrently (fire-and-forget unless wait_for_completion),
- stops at quiescence (nothing runnable, nothing in flight), on destroy(),
  or when the execution safety valve trips.

Task failures never escape the loop; they are reported through the model.
"""

import asyncio
import itertools
import logging
import time
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from ..config import MachineConfig, get_settings
from ..core.model import as_model
from .task import Task
from .task_models import NEVER_EXECUTED, TaskOutcome, TaskSnapshot, now_ms

logger = logging.getLogger(__name__)

_machine_ids = itertools.count(1)

ClearPredicate = bool | str | Callable[[Task], Any]


class Machine:
    def __init__(
        self,
        model: Any,
        tasks: Mapping[str, Any],
        config: MachineConfig | None = None,
        **overrides: Any,
    ) -> None:
        """
        model: caller-owned mapping or attribute object; only named fields are touched.
        tasks: task key -> TaskHooks instance or mapping of hook callables.
        config: explicit MachineConfig; defaults come from get_settings() when omitted.
        overrides: individual MachineConfig fields (interval_ms=..., max_executions=...).
        """
        if config is None:
            config = MachineConfig.from_settings(get_settings())
        config = config.with_overrides(**overrides).validate()

        self.id = next(_machine_ids)
        self.config: MachineConfig | None = config
        self.interval = config.interval_ms
        self.max_executions = config.max_executions  # approximate upper limit per start()
        self.wait_for_completion = config.wait_for_completion
        self.destroyed = False
        self.total_executions = 0

        self._log = config.effective_logger()
        self._model = model
        self._fields = as_model(model)
        self.prop_keys = config.machine_prop_keys(self)

        self._tasks: dict[str, Task] = {}
        for task_key, definition in tasks.items():
            self._tasks[task_key] = Task(
                task_key,
                definition,
                model=model,
                keys=config.task_prop_keys(self, task_key),
                machine_id=self.id,
                error_as_object=config.error_as_object,
                log=self._log,
            )

        # Strong refs to in-flight executions (asyncio only keeps weak ones).
        self._pending: set[asyncio.Task[TaskOutcome]] = set()
        self._run_started: float | None = None

        self._fields[self.prop_keys.running] = False
        self._fields[self.prop_keys.started_at] = NEVER_EXECUTED
        self._fields[self.prop_keys.stopped_at] = NEVER_EXECUTED

    def __repr__(self) -> str:
        return f"Machine(id={self.id}, tasks={list(self._tasks)}, destroyed={self.destroyed})"

    # ---- read-only state ----

    @property
    def tasks(self) -> Mapping[str, Task]:
        return MappingProxyType(self._tasks)

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    @property
    def is_running(self) -> bool:
        if self.destroyed:
            return False
        return bool(self._fields.get(self.prop_keys.running, False))

    def _set_running(self, running: bool) -> None:
        if not self.destroyed:
            self._fields[self.prop_keys.running] = running
            stamp_key = self.prop_keys.started_at if running else self.prop_keys.stopped_at
            self._fields[stamp_key] = now_ms()

        if running:
            self._run_started = time.monotonic()
        elif self._run_started is not None:
            elapsed_ms = (time.monotonic() - self._run_started) * 1000.0
            self._log.debug("Machine(%s).run took %.1fms", self.id, elapsed_ms)
            self._run_started = None

    def snapshot(self) -> dict[str, TaskSnapshot]:
        out: dict[str, TaskSnapshot] = {}
        for task_key, task in self._tasks.items():
            snap = task.snapshot()
            if snap is not None:
                out[task_key] = snap
        return out

    # ---- polling loop ----

    async def _sleep(self) -> None:
        # Negative interval: just yield to the event loop (next tick).
        if self.interval < 0:
            await asyncio.sleep(0)
        else:
            await asyncio.sleep(self.interval / 1000.0)

    async def _execute(self, task: Task) -> TaskOutcome:
        outcome = await task.start()
        self._log.debug("Machine(%s)#afterExecute task=%s outcome=%s", self.id, task.key, outcome.value)
        return outcome

    def _launch(self, task: Task) -> asyncio.Task[TaskOutcome]:
        self.total_executions += 1
        self._log.debug(
            "Machine(%s)#beforeExecute task=%s in_flight=%s total=%s",
            self.id,
            task.key,
            len(self._pending) + 1,
            self.total_executions,
        )
        job = asyncio.create_task(self._execute(task), name=f"task-machine-{self.id}-{task.key}")
        self._pending.add(job)
        job.add_done_callback(self._pending.discard)
        return job

    async def start(self) -> bool:
        """
        Run the polling loop to completion.

        Returns False immediately (no side effects) when already running or destroyed,
        True after a real run. Never raises for task-level failures.
        """
        if self.destroyed or self.is_running:
            return False

        self._log.info("Machine(%s)#start", self.id)

        self._set_running(True)
        self.total_executions = 0  # the safety valve bounds one start() call

        try:
            while not self.destroyed:
                runnable = [task for task in self._tasks.values() if task.is_runnable()]

                if not runnable and not self._pending:
                    break

                if self.total_executions > self.max_executions:
                    self._log.warning(
                        "Machine(%s)#start: stopping, total=%s exceeds max_executions=%s",
                        self.id,
                        self.total_executions,
                        self.max_executions,
                    )
                    break

                launched = [self._launch(task) for task in runnable]

                if launched and self.wait_for_completion:
                    await asyncio.gather(*launched, return_exceptions=True)

                await self._sleep()
        finally:
            self._log.info("Machine(%s)#start: done total=%s", self.id, self.total_executions)
            self._set_running(False)

        return True

    async def join(self) -> None:
        """Wait for executions still in flight (e.g. after the safety valve tripped)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ---- lifecycle ----

    def clear(self, pred: ClearPredicate = True) -> Machine:
        """
        Clear every task matching pred and return self (so `await machine.clear().start()` works).

        pred: True for all tasks, a task key, or a callable taking the Task.
        """
        if self.destroyed:
            return self

        if callable(pred):
            match = pred
        else:
            def match(task: Task) -> bool:
                return pred is True or task.key == pred

        for task in list(self._tasks.values()):
            if match(task):
                self._log.info("Machine(%s)#clear task=%s", self.id, task.key)
                task.clear()

        return self

    def destroy(self) -> None:
        """Cancel processing cooperatively and drop references. Idempotent."""
        if self.destroyed:
            return

        self._log.info("Machine(%s)#destroy", self.id)

        self.destroyed = True
        for task in self._tasks.values():
            task.destroy()

        self._tasks = {}
        self._model = None
        self._fields = None
        self.config = None
