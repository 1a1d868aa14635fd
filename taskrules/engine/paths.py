"""Dotted field path resolution against an evaluation scope."""

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel

from taskrules.models.task import Task


class _Missing:
    """Marker for a path that did not resolve."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def is_missing(value: Any) -> bool:
    """Check whether a resolved value is the MISSING marker."""
    return value is MISSING


def build_scope(task: Task | Mapping[str, Any], context: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Build the lookup scope for conditions and templates.

    The scope exposes ``task`` and ``context`` and mirrors every context
    field at the top level, so ``context.days_overdue`` and ``days_overdue``
    resolve to the same value.

    Args:
        task: Task snapshot
        context: Trigger context mapping

    Returns:
        Scope mapping
    """
    context = dict(context or {})
    task_data = task.as_scope() if isinstance(task, Task) else dict(task)
    return {**context, "task": task_data, "context": context}


def resolve(path: str, scope: Any) -> Any:
    """Resolve a dotted path, returning MISSING on any absent segment.

    Args:
        path: Dotted path such as ``task.status``
        scope: Mapping (or model) to walk

    Returns:
        Resolved value or MISSING
    """
    if not path:
        return MISSING

    current = scope
    for segment in path.split("."):
        current = _step(current, segment)
        if current is MISSING:
            return MISSING
    return current


def _step(current: Any, segment: str) -> Any:
    if isinstance(current, Mapping):
        return current[segment] if segment in current else MISSING
    if isinstance(current, BaseModel):
        return getattr(current, segment, MISSING)
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
        try:
            return current[int(segment)]
        except (ValueError, IndexError):
            return MISSING
    return MISSING
