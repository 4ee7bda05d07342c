"""Logging infrastructure.

Provides structured logging with:
- JSONL format for log aggregation
- Automatic context injection (job_id, route_id, attempt, ...)
- QueueHandler + QueueListener for non-blocking I/O
- Lazy evaluation for expensive debug messages

Basic usage:
    import logging

    from webhook_relay.infra.logging import log_context

    logger = logging.getLogger(__name__)

    with log_context(job_id="42", route_id="abc"):
        logger.info("Delivering")  # Includes job_id and route_id

    # Lazy evaluation for expensive operations
    from webhook_relay.infra.logging import get_lazy_logger

    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"Payload: {payload.model_dump_json()}")
"""

from webhook_relay.infra.logging.config import configure_logging, setup_logging, shutdown
from webhook_relay.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    log_context,
    set_log_context,
)
from webhook_relay.infra.logging.formatters import JSONFormatter
from webhook_relay.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
