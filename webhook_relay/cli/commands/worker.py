"""Worker-only command: consume the queue without serving HTTP."""

import asyncio
import contextlib
import logging
import signal
import sys

import click

from webhook_relay.cli.utils import coro, error, info, success
from webhook_relay.core.exceptions import ConfigurationError, QueueError
from webhook_relay.core.settings import get_settings
from webhook_relay.features.relay.service import create_relay_service
from webhook_relay.infra.logging.config import setup_logging

logger = logging.getLogger(__name__)


@click.command(name="worker")
@click.option(
    "--concurrency",
    default=None,
    type=click.IntRange(1, 1000),
    help="Simultaneous jobs (default: RELAY_CONCURRENCY)",
)
@coro
async def worker(concurrency: int | None) -> None:
    """Run the delivery worker pool until SIGINT/SIGTERM.

    Routes come from configuration (RELAY_ROUTES or conf/relay.yaml); routes
    added through another process's HTTP API are not visible here.
    """
    try:
        settings = get_settings()
    except ConfigurationError as e:
        error(str(e))
        sys.exit(1)

    setup_logging(log_settings=settings.logging, force=True)
    problems = settings.validate_all()
    if problems:
        for problem in problems:
            error(problem)
        sys.exit(1)

    service = create_relay_service(settings.relay, settings.redis)
    if concurrency is not None:
        service.concurrency = concurrency

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    try:
        await service.start()
    except QueueError as e:
        error(str(e))
        await service.close()
        sys.exit(1)

    success(
        f"Worker running: backend={settings.relay.queue_backend} "
        f"concurrency={service.concurrency} routes={len(service.get_routes())}"
    )
    try:
        await stop.wait()
    finally:
        info("Stopping workers...")
        await service.close()
