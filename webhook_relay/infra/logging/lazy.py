"""Lazy evaluation support for logging.

Expensive debug messages are passed as callables and only evaluated when
the level is enabled.
"""

from __future__ import annotations

import logging
from typing import Any


class LazyLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that evaluates callable messages and args on demand.

    Example:
        ```python
        logger = get_lazy_logger(__name__)
        logger.debug(lambda: f"Matched routes: {[r.name for r in routes]}")
        ```
    """

    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        if not self.isEnabledFor(level):
            return

        if callable(msg):
            msg = msg()

        if args:
            args = tuple(arg() if callable(arg) else arg for arg in args)

        super().log(level, msg, *args, **kwargs)


def get_lazy_logger(name: str) -> LazyLoggerAdapter:
    """Get a logger that supports lambda messages."""
    return LazyLoggerAdapter(logging.getLogger(name), {})
