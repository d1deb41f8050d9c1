# tests/test_machine.py

from __future__ import annotations

import asyncio
import logging

import pytest

from task_machine.core.prop_keys import camel_machine_prop_keys, camel_task_prop_keys
from task_machine.tasks.machine import Machine
from task_machine.tasks.task_api import failed_keys, ready_keys, run_tasks
from task_machine.tasks.task_models import NEVER_EXECUTED, FunctionHooks

from .fakes import RecordingHooks, ViewModel, wait_until


def test_construction_initializes_machine_fields(model, config) -> None:
    machine = Machine(model, {"a": RecordingHooks()}, config)

    assert model == {
        "machine_running": False,
        "machine_started_at": NEVER_EXECUTED,
        "machine_stopped_at": NEVER_EXECUTED,
    }
    assert machine.interval == -1
    assert machine.max_executions == 20
    assert machine.is_running is False
    assert list(machine.tasks) == ["a"]


def test_machine_ids_are_unique(model, config) -> None:
    first = Machine({}, {}, config)
    second = Machine({}, {}, config)
    assert second.id > first.id


def test_overrides_and_validation(model, config) -> None:
    machine = Machine(model, {}, config, max_executions=3, interval_ms=5)
    assert machine.max_executions == 3
    assert machine.interval == 5

    with pytest.raises(ValueError):
        Machine(model, {}, config, max_executions=-1)
    with pytest.raises(TypeError):
        Machine(model, {}, config, no_such_option=True)


@pytest.mark.asyncio
async def test_single_task_end_to_end(model, config, log_handler) -> None:
    after_execute_results = []

    async def execute(m, helpers):
        await asyncio.sleep(0.05)
        return {"some": "data"}

    def after_execute(m, res, helpers):
        after_execute_results.append(res)
        return res

    def assign(m, res, helpers):
        m["value"] = res

    def clear(m):
        m["value"] = None

    tasks = {
        "a": {
            "clear": clear,
            "guard": lambda m: not m.get("value"),
            "execute": execute,
            "after_execute": after_execute,
            "assign": assign,
        }
    }
    machine = Machine(model, tasks, config, interval_ms=20)

    assert await machine.clear().start() is True

    assert model["a_error"] is None
    assert model["a_running"] is False
    assert model["a_ready"] is True
    assert model["value"] == {"some": "data"}
    assert model["machine_running"] is False
    assert model["machine_started_at"] <= model["machine_stopped_at"] < NEVER_EXECUTED
    assert after_execute_results == [{"some": "data"}]
    assert machine.total_executions == 1

    messages = log_handler.messages()
    assert any("#start" in msg for msg in messages)
    assert any("#clear task=a" in msg for msg in messages)
    assert any("done total=1" in msg for msg in messages)


@pytest.mark.asyncio
async def test_camel_case_keys(model, config) -> None:
    hooks = RecordingHooks(result={"some": "data"}, target="value")
    machine = Machine(
        model,
        {"a": hooks},
        config,
        machine_prop_keys=camel_machine_prop_keys,
        task_prop_keys=camel_task_prop_keys,
    )

    await machine.clear().start()

    assert model["aError"] is None
    assert model["aRunning"] is False
    assert model["aReady"] is True
    assert model["machineRunning"] is False
    assert "a_ready" not in model


@pytest.mark.asyncio
async def test_guard_false_never_launches(model, config) -> None:
    hooks = RecordingHooks(guard=lambda m: False)
    machine = Machine(model, {"a": hooks}, config)

    assert await machine.start() is True
    assert hooks.calls == []
    assert machine.total_executions == 0
    assert "a_running" not in model


@pytest.mark.asyncio
async def test_start_is_idempotent_while_running(model, config) -> None:
    gate = asyncio.Event()
    hooks = RecordingHooks(gate=gate, target="value")
    machine = Machine(model, {"a": hooks}, config)

    runner = asyncio.create_task(machine.start())
    await wait_until(lambda: hooks.count("execute") == 1)

    assert machine.is_running is True
    before = dict(model)
    assert await machine.start() is False
    assert model == before

    gate.set()
    assert await runner is True
    assert machine.is_running is False


@pytest.mark.asyncio
async def test_start_on_destroyed_machine_returns_false(model, config, log_handler) -> None:
    machine = Machine(model, {"a": RecordingHooks()}, config)
    machine.destroy()
    before = dict(model)
    log_handler.records.clear()

    assert await machine.start() is False
    assert machine.clear() is machine
    assert machine.is_running is False
    assert model == before
    assert not any("#start" in msg for msg in log_handler.messages())


@pytest.mark.asyncio
async def test_destroy_from_before_execute_writes_no_token(model, config) -> None:
    calls = []
    holder = {}

    def before_execute(m, helpers):
        holder["machine"].destroy()

    tasks = {
        "a": FunctionHooks(
            before_execute=before_execute,
            execute=lambda m, h: calls.append("execute") or 1,
        )
    }
    machine = Machine(model, tasks, config)
    holder["machine"] = machine
    machine.clear()
    cleared_at = model["a_executed_at"]

    assert await machine.start() is True
    await machine.join()

    assert calls == []
    assert model["a_executed_at"] == cleared_at == NEVER_EXECUTED
    assert model["a_ready"] is False


@pytest.mark.asyncio
async def test_safety_valve_stops_always_failing_task(model, config, log_handler) -> None:
    hooks = RecordingHooks(error=RuntimeError("boom"))
    machine = Machine(model, {"a": hooks}, config, max_executions=5)

    assert await machine.start() is True
    await machine.join()

    assert machine.total_executions == 6
    assert hooks.count("execute") == machine.total_executions
    assert model["a_error"] == "boom"
    assert model["a_ready"] is False
    assert model["machine_running"] is False
    assert any("exceeds max_executions=5" in msg for msg in log_handler.messages(logging.WARNING))


@pytest.mark.asyncio
async def test_safety_valve_stops_runaway_guard(model, config) -> None:
    hooks = RecordingHooks(result="ok")  # guard always true, always succeeds
    machine = Machine(model, {"a": hooks}, config, max_executions=10)

    assert await machine.start() is True
    await machine.join()

    assert machine.total_executions == 11
    assert model["a_ready"] is True


@pytest.mark.asyncio
async def test_safety_valve_resets_on_each_start(model, config) -> None:
    hooks = RecordingHooks(error=RuntimeError("boom"))
    machine = Machine(model, {"a": hooks}, config, max_executions=3)

    await machine.start()
    await machine.join()
    await machine.clear().start()
    await machine.join()

    assert machine.total_executions == 4
    assert hooks.count("execute") == 8


@pytest.mark.asyncio
async def test_failed_task_is_retried_on_next_cycle(model, config) -> None:
    attempts = []

    async def execute(m, helpers):
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("first try fails")
        return "data"

    tasks = {
        "a": FunctionHooks(
            guard=lambda m: not m.get("value"),
            execute=execute,
            assign=lambda m, res, h: m.__setitem__("value", res),
        )
    }
    machine = Machine(model, tasks, config)

    await machine.start()

    assert len(attempts) == 2
    assert model["value"] == "data"
    assert model["a_ready"] is True
    assert model["a_error"] is None


@pytest.mark.asyncio
async def test_two_independent_tasks_become_ready(model, config) -> None:
    a = RecordingHooks(result="A", target="a_value", delay=0.01)
    b = RecordingHooks(result="B", target="b_value", delay=0.02)
    machine = Machine(model, {"a": a, "b": b}, config)

    await machine.clear().start()

    assert model["a_ready"] is True
    assert model["b_ready"] is True
    assert model["a_value"] == "A"
    assert model["b_value"] == "B"
    assert ready_keys(machine) == ["a", "b"]
    assert failed_keys(machine) == []


@pytest.mark.asyncio
async def test_dependent_task_waits_for_upstream_result(model, config) -> None:
    tasks = {
        "user": FunctionHooks(
            guard=lambda m: m.get("user") is None,
            execute=lambda m, h: {"id": 7},
            assign=lambda m, res, h: m.__setitem__("user", res),
        ),
        "orders": FunctionHooks(
            guard=lambda m: m.get("user") is not None and m.get("orders") is None,
            execute=lambda m, h: [m["user"]["id"], 8],
            assign=lambda m, res, h: m.__setitem__("orders", res),
        ),
    }
    machine = Machine(model, tasks, config)

    await machine.start()

    assert model["orders"] == [7, 8]
    assert ready_keys(machine) == ["user", "orders"]


@pytest.mark.asyncio
async def test_fire_and_forget_polls_while_tasks_in_flight(model, config) -> None:
    seen_in_flight = []
    holder = {}

    def probe_guard(m):
        seen_in_flight.append(holder["machine"].in_flight)
        return False

    tasks = {
        "slow": RecordingHooks(result="x", target="slow_value", delay=0.02),
        "probe": FunctionHooks(guard=probe_guard, execute=lambda m, h: 1),
    }
    machine = Machine(model, tasks, config)
    holder["machine"] = machine

    await machine.start()

    assert max(seen_in_flight) == 1
    assert model["slow_ready"] is True


@pytest.mark.asyncio
async def test_wait_for_completion_finishes_cycle_before_polling(model, config) -> None:
    seen_in_flight = []
    holder = {}

    def probe_guard(m):
        seen_in_flight.append(holder["machine"].in_flight)
        return False

    tasks = {
        "slow": RecordingHooks(result="x", target="slow_value", delay=0.02),
        "probe": FunctionHooks(guard=probe_guard, execute=lambda m, h: 1),
    }
    machine = Machine(model, tasks, config, wait_for_completion=True)
    holder["machine"] = machine

    await machine.start()

    assert seen_in_flight == [0, 0]
    assert model["slow_ready"] is True


@pytest.mark.asyncio
async def test_clear_while_in_flight_relaunches_and_discards_stale_result(model, config) -> None:
    gate = asyncio.Event()
    hooks = RecordingHooks(result="fresh", gate=gate, target="value")
    machine = Machine(model, {"a": hooks}, config)

    runner = asyncio.create_task(machine.start())
    await wait_until(lambda: hooks.count("execute") == 1)

    machine.clear("a")
    await wait_until(lambda: hooks.count("execute") == 2)
    gate.set()

    assert await runner is True
    assert hooks.assigned == ["fresh"]
    assert hooks.count("after_execute") == 1
    assert model["a_ready"] is True
    assert model["value"] == "fresh"


@pytest.mark.asyncio
async def test_destroy_while_running_stops_loop_without_writes(model, config) -> None:
    gate = asyncio.Event()
    hooks = RecordingHooks(gate=gate, target="value")
    machine = Machine(model, {"a": hooks}, config)

    runner = asyncio.create_task(machine.start())
    await wait_until(lambda: hooks.count("execute") == 1)

    machine.destroy()
    machine.destroy()
    before = dict(model)
    gate.set()

    assert await runner is True
    await machine.join()
    assert model == before
    assert "assign" not in hooks.calls
    assert machine.is_running is False
    assert machine.tasks == {}
    assert machine.snapshot() == {}


def test_clear_predicates(model, config) -> None:
    hooks = {key: RecordingHooks(target=f"{key}_value") for key in ("a", "b", "c")}
    machine = Machine(model, hooks, config)

    assert machine.clear("b") is machine
    assert [k for k, h in hooks.items() if h.count("clear")] == ["b"]

    machine.clear(lambda task: task.key != "b")
    assert [h.count("clear") for h in hooks.values()] == [1, 1, 1]

    machine.clear()
    assert [h.count("clear") for h in hooks.values()] == [2, 2, 2]
    assert model["c_executed_at"] == NEVER_EXECUTED

    machine.clear("missing")
    assert [h.count("clear") for h in hooks.values()] == [2, 2, 2]


@pytest.mark.asyncio
async def test_attribute_model_machine(config) -> None:
    vm = ViewModel()
    tasks = {
        "a": FunctionHooks(
            guard=lambda m: m.value is None,
            execute=lambda m, h: "loaded",
            assign=lambda m, res, h: setattr(m, "value", res),
        )
    }
    machine = Machine(vm, tasks, config)

    await machine.start()

    assert vm.value == "loaded"
    assert vm.a_ready is True
    assert vm.machine_running is False


@pytest.mark.asyncio
async def test_run_tasks_helper(model, config) -> None:
    snapshots = await run_tasks(
        model,
        {
            "ok": RecordingHooks(result="x", target="ok_value"),
            "bad": RecordingHooks(error=RuntimeError("nope")),
        },
        config=config,
        max_executions=4,
    )

    assert snapshots["ok"].ready is True
    assert snapshots["bad"].ready is False
    assert snapshots["bad"].error == "nope"
    assert model["ok_value"] == "x"
