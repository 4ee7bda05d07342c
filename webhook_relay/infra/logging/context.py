"""Context management for structured logging.

Provides automatic context injection into log records using contextvars,
so that every record emitted while a worker processes a job carries the
job, route and payload identifiers without passing them explicitly.

Each asyncio task gets its own copy of the context, so concurrent workers
never see each other's fields.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
import logging
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Example:
        ```python
        set_log_context(job_id="42", attempt=2)
        logger.info("Delivering")  # Includes job_id and attempt
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Get a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Clear all logging context for the current task."""
    _log_context.set({})


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Temporarily extend the logging context.

    The previous context is restored on exit, even if the block raises.
    """
    token = _log_context.set({**_log_context.get(), **kwargs})
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextInjectingFilter(logging.Filter):
    """Logging filter that injects the contextvars log context into records.

    Attached to the root QueueHandler so records from every logger get it.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            # Explicit extra= fields win over ambient context
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
