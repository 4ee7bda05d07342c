"""Application lifespan management.

Startup order:
1. Logging
2. Settings validation (cross-domain checks are fatal)
3. Relay service: queue connection, then the worker pool

Shutdown runs in reverse.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from webhook_relay.core.exceptions import ConfigurationError
from webhook_relay.core.settings import get_settings
from webhook_relay.features.relay.service import create_relay_service
from webhook_relay.infra.logging.config import setup_logging
from webhook_relay.infra.logging.config import shutdown as shutdown_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the relay service for the lifetime of the app.

    Raises:
        ConfigurationError: Settings are invalid; the server does not start.
    """
    settings = get_settings()
    setup_logging(log_settings=settings.logging, force=True)
    logger.info(
        "Application starting",
        extra={
            "service": settings.app.service_name,
            "environment": settings.app.environment,
            "queue_backend": settings.relay.queue_backend,
        },
    )

    problems = settings.validate_all()
    if problems:
        for problem in problems:
            logger.error("Invalid configuration", extra={"problem": problem})
        raise ConfigurationError("; ".join(problems))

    service = create_relay_service(settings.relay, settings.redis)
    await service.start()
    app.state.relay_service = service

    try:
        yield
    finally:
        logger.info("Application shutting down")
        app.state.relay_service = None
        await service.close()
        shutdown_logging()
