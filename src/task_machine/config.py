# src/task_machine/config.py

"""Settings loaded from environment variables (+ optional .env), and the per-machine config.

Design goals:
- One Settings object per process, built once by get_settings().
- Each Machine receives an explicit MachineConfig instead of reading mutable module globals.
- Per-machine overrides never leak into other machines.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Any

from dotenv import find_dotenv, load_dotenv

from .core.ports import LogSink, MachinePropKeysFn, TaskPropKeysFn
from .core.prop_keys import (
    camel_machine_prop_keys,
    camel_task_prop_keys,
    default_machine_prop_keys,
    default_task_prop_keys,
)

ENV_PREFIX = "TASK_MACHINE"

DEFAULT_INTERVAL_MS = 500
DEFAULT_MAX_EXECUTIONS = 200


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- Polling ----
    interval_ms: int
    max_executions: int

    # ---- Behaviour switches ----
    error_as_object: bool
    wait_for_completion: bool

    # ---- Logging ----
    log_enabled: bool
    log_level: str

    # ---- Model field naming: "snake" or "camel" ----
    prop_key_style: str

    @staticmethod
    def from_env() -> "Settings":
        prop_key_style = _env(_k("PROP_KEY_STYLE"), "snake").strip().lower()
        if prop_key_style not in ("snake", "camel"):
            prop_key_style = "snake"

        return Settings(
            interval_ms=_env_int(_k("INTERVAL_MS"), DEFAULT_INTERVAL_MS),
            max_executions=_env_int(_k("MAX_EXECUTIONS"), DEFAULT_MAX_EXECUTIONS),
            error_as_object=_env_bool(_k("ERROR_AS_OBJECT"), False),
            wait_for_completion=_env_bool(_k("WAIT_FOR_COMPLETION"), False),
            log_enabled=_env_bool(_k("LOG_ENABLED"), False),
            log_level=_env(_k("LOG_LEVEL"), "INFO").strip().upper() or "INFO",
            prop_key_style=prop_key_style,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load process-wide defaults once.

    Reads a .env found from the working directory upwards (real environment variables
    win), then the TASK_MACHINE_* variables. Call get_settings.cache_clear() to re-read.
    """
    load_dotenv(find_dotenv(usecwd=True), override=False)
    return Settings.from_env()


def _silent_logger() -> logging.Logger:
    silent = logging.getLogger("task_machine.silent")
    if not silent.handlers:
        silent.addHandler(logging.NullHandler())
    silent.propagate = False
    return silent


def resolve_logger(settings: Settings) -> logging.Logger:
    """Package logger when logging is enabled, otherwise a logger that never emits."""
    if not settings.log_enabled:
        return _silent_logger()
    pkg_logger = logging.getLogger("task_machine")
    pkg_logger.setLevel(getattr(logging, settings.log_level, logging.INFO))
    return pkg_logger


@dataclass(frozen=True, slots=True)
class MachineConfig:
    """Everything a Machine needs to know, fixed at construction time."""

    interval_ms: int = DEFAULT_INTERVAL_MS
    max_executions: int = DEFAULT_MAX_EXECUTIONS
    machine_prop_keys: MachinePropKeysFn = default_machine_prop_keys
    task_prop_keys: TaskPropKeysFn = default_task_prop_keys
    error_as_object: bool = False
    wait_for_completion: bool = False
    logger: LogSink | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> MachineConfig:
        if settings.prop_key_style == "camel":
            machine_keys, task_keys = camel_machine_prop_keys, camel_task_prop_keys
        else:
            machine_keys, task_keys = default_machine_prop_keys, default_task_prop_keys

        return cls(
            interval_ms=settings.interval_ms,
            max_executions=settings.max_executions,
            machine_prop_keys=machine_keys,
            task_prop_keys=task_keys,
            error_as_object=settings.error_as_object,
            wait_for_completion=settings.wait_for_completion,
            logger=resolve_logger(settings),
        )

    def with_overrides(self, **overrides: Any) -> MachineConfig:
        """Return a copy with the given fields replaced (unknown names raise TypeError)."""
        if not overrides:
            return self
        return replace(self, **overrides)

    def validate(self) -> MachineConfig:
        if isinstance(self.interval_ms, bool) or not isinstance(self.interval_ms, (int, float)):
            raise ValueError(f"interval_ms must be a number, got {self.interval_ms!r}")
        if isinstance(self.max_executions, bool) or not isinstance(self.max_executions, int):
            raise ValueError(f"max_executions must be an int, got {self.max_executions!r}")
        if self.max_executions < 0:
            raise ValueError("max_executions must be >= 0")
        if not callable(self.machine_prop_keys):
            raise ValueError("machine_prop_keys must be callable")
        if not callable(self.task_prop_keys):
            raise ValueError("task_prop_keys must be callable")
        return self

    def effective_logger(self) -> LogSink:
        return self.logger if self.logger is not None else _silent_logger()
