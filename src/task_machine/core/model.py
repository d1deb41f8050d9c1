# src/task_machine/core/model.py

"""
Model access.

The caller owns the model. It is either a MutableMapping (dict, ChainMap, ...) or a plain
object with attributes (a view-model). The engine only ever needs get/set by field name,
so attribute objects are wrapped in a thin MutableMapping view.
"""

from __future__ import annotations

from collections.abc import Iterator, MutableMapping
from typing import Any


class AttributeModel(MutableMapping[str, Any]):
    """MutableMapping view over an object's attributes."""

    __slots__ = ("_target",)

    def __init__(self, target: Any) -> None:
        self._target = target

    @property
    def target(self) -> Any:
        return self._target

    def __getitem__(self, name: str) -> Any:
        try:
            return getattr(self._target, name)
        except AttributeError:
            raise KeyError(name) from None

    def __setitem__(self, name: str, value: Any) -> None:
        setattr(self._target, name, value)

    def __delitem__(self, name: str) -> None:
        try:
            delattr(self._target, name)
        except AttributeError:
            raise KeyError(name) from None

    def __iter__(self) -> Iterator[str]:
        return iter(getattr(self._target, "__dict__", {}))

    def __len__(self) -> int:
        return len(getattr(self._target, "__dict__", {}))

    def __repr__(self) -> str:
        return f"AttributeModel({self._target!r})"


def as_model(obj: Any) -> MutableMapping[str, Any]:
    """Return a field-addressable view of obj (obj itself when it already is a mapping)."""
    if obj is None:
        raise ValueError("model is required")
    if isinstance(obj, MutableMapping):
        return obj
    return AttributeModel(obj)
