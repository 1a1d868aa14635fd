"""Trace ID propagation for logs."""

import uuid
from contextvars import ContextVar
from typing import Any

import structlog

_trace_id: ContextVar[str] = ContextVar("trace_id", default="")


def generate_trace_id() -> str:
    """Generate a new trace ID."""
    return uuid.uuid4().hex[:16]


def get_trace_id() -> str:
    """Get current trace ID, or an empty string outside a trace."""
    return _trace_id.get()


def set_trace_id(trace_id: str) -> None:
    """Set current trace ID and bind it to the log context."""
    _trace_id.set(trace_id)
    structlog.contextvars.bind_contextvars(trace_id=trace_id)


def clear_trace_id() -> None:
    _trace_id.set("")
    structlog.contextvars.unbind_contextvars("trace_id")


class TraceContext:
    """Context manager scoping a trace ID to one trigger or scan."""

    def __init__(self, trace_id: str | None = None):
        self._trace_id = trace_id or generate_trace_id()
        self._previous_id: str = ""

    def __enter__(self) -> str:
        self._previous_id = get_trace_id()
        set_trace_id(self._trace_id)
        return self._trace_id

    def __exit__(self, *args: Any) -> None:
        if self._previous_id:
            set_trace_id(self._previous_id)
        else:
            clear_trace_id()
