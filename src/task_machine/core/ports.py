# src/task_machine/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the engine.

The engine depends on Protocols instead of concrete implementations.
The key-naming strategy and the log sink are supplied by the caller.
"""

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .prop_keys import MachinePropKeys, TaskPropKeys


class MachineLike(Protocol):
    """What key-naming functions may look at on the owning machine."""

    @property
    def id(self) -> int: ...


class MachinePropKeysFn(Protocol):
    """Pure function: machine -> field names for machine-level status."""
    def __call__(self, machine: MachineLike) -> MachinePropKeys: ...


class TaskPropKeysFn(Protocol):
    """Pure function: (machine, task key) -> field names for one task's status."""
    def __call__(self, machine: MachineLike, task_key: str) -> TaskPropKeys: ...


class LogSink(Protocol):
    """Subset of logging.Logger the engine uses. LoggerAdapter fits too."""
    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
