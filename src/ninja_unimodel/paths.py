"""Dot-separated field path lookup on records."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any


class _Missing:
    """Sentinel for a path that does not resolve to a value."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def get_path(record: Any, path: str) -> Any:
    """Return the value at *path* in *record*, or :data:`MISSING`.

    ``"foo.bar"`` addresses field ``bar`` of the mapping stored under ``foo``.
    Numeric segments index into lists. Documents are unwrapped through
    ``get_data()``. Any missing intermediate segment resolves to ``MISSING``.
    """
    current = _unwrap(record)
    for segment in path.split("."):
        current = _unwrap(current)
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            if not segment.isdigit() or int(segment) >= len(current):
                return MISSING
            current = current[int(segment)]
        else:
            return MISSING
    return current


def is_absent(value: Any) -> bool:
    """True for ``None`` and :data:`MISSING`."""
    return value is None or value is MISSING


def set_path(data: dict[str, Any], path: str, value: Any) -> None:
    """Set *value* at *path*, creating intermediate mappings as needed."""
    *parents, leaf = path.split(".")
    current = data
    for segment in parents:
        child = current.get(segment)
        if not isinstance(child, dict):
            child = {}
            current[segment] = child
        current = child
    current[leaf] = value


def unset_path(data: dict[str, Any], path: str) -> None:
    """Remove the value at *path* if present."""
    *parents, leaf = path.split(".")
    current: Any = data
    for segment in parents:
        current = current.get(segment) if isinstance(current, dict) else None
        if current is None:
            return
    if isinstance(current, dict):
        current.pop(leaf, None)


def _unwrap(value: Any) -> Any:
    get_data = getattr(value, "get_data", None)
    if callable(get_data):
        return get_data()
    return value


def sort_by_paths(
    items: list[Any],
    paths: Sequence[str],
    getter: Callable[[Any, str], Any] = get_path,
) -> list[Any]:
    """Sort *items* by field paths; ``-path`` sorts descending.

    Items where a path is null or absent sort after the rest for that key.
    Stable sorts run from the last path to the first to give a multi-key order.

    Raises:
        TypeError: If values under one path are not mutually comparable.
    """
    for spec in reversed(paths):
        descending = spec.startswith("-")
        path = spec[1:] if descending else spec
        present = [item for item in items if not is_absent(getter(item, path))]
        missing = [item for item in items if is_absent(getter(item, path))]
        present.sort(key=lambda item: getter(item, path), reverse=descending)
        items = present + missing
    return items
