"""CLI utilities for running async operations and formatting output."""

from webhook_relay.cli.utils.async_runner import coro
from webhook_relay.cli.utils.formatters import (
    error,
    header,
    info,
    success,
    warning,
)

__all__ = [
    "coro",
    "error",
    "header",
    "info",
    "success",
    "warning",
]
