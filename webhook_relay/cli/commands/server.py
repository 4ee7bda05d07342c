"""HTTP server command."""

import sys

import click

from webhook_relay.cli.utils import error, info
from webhook_relay.core.exceptions import ConfigurationError
from webhook_relay.core.settings import get_app_settings, get_logging_settings


@click.command(name="serve")
@click.option("--host", default=None, help="Host to bind (default: APP_HOST)")
@click.option("--port", default=None, type=int, help="Port to bind (default: APP_PORT, 3000)")
@click.option("--reload/--no-reload", default=False, help="Enable auto-reload on code changes")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Run the HTTP front door together with the worker pool."""
    import uvicorn

    try:
        settings = get_app_settings()
        log_settings = get_logging_settings()
    except ConfigurationError as e:
        error(str(e))
        sys.exit(1)

    host = host or settings.host
    port = port or settings.port
    info(f"Server will run at: http://{host}:{port}")
    info(f"Environment: {settings.environment}")

    uvicorn.run(
        "webhook_relay.app.main:app",
        host=host,
        port=port,
        reload=reload,
        access_log=settings.debug,
        log_level=log_settings.level.lower(),
    )
