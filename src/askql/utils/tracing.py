import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

import structlog

# Context variable to store trace ID across async operations
trace_id_var: ContextVar[Optional[str]] = ContextVar('trace_id', default=None)


def generate_trace_id() -> str:
    """Generate a new trace ID."""
    return str(uuid.uuid4())


def set_trace_id(trace_id: str) -> None:
    """Set the trace ID for the current context."""
    trace_id_var.set(trace_id)


def current_trace_id() -> Optional[str]:
    """Get the current trace ID."""
    return trace_id_var.get()


def get_trace_id() -> str:
    """Get existing trace ID or create a new one."""
    trace_id = current_trace_id()
    if trace_id is None:
        trace_id = generate_trace_id()
        set_trace_id(trace_id)
    return trace_id


@contextmanager
def trace_context(**fields: Any) -> Iterator[str]:
    """
    Bind the current trace ID plus extra fields into structlog's context.

    Every log line emitted inside the block carries trace_id and the given
    fields (e.g. session_id). Bindings are restored on exit, so concurrent
    runs in separate tasks never see each other's values.

    Yields:
        The trace ID bound for the block
    """
    trace_id = get_trace_id()
    bound = {key: value for key, value in fields.items() if value is not None}
    with structlog.contextvars.bound_contextvars(trace_id=trace_id, **bound):
        yield trace_id
