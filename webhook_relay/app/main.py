"""FastAPI application factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI

from webhook_relay.app.exception_handlers import configure_exception_handlers
from webhook_relay.app.lifespan import lifespan
from webhook_relay.app.router import setup_routers
from webhook_relay.core.settings import get_app_settings

if TYPE_CHECKING:
    from webhook_relay.core.settings import AppSettings


def create_app(app_settings: AppSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    The relay service itself is created by the lifespan and stored on
    ``app.state.relay_service``.
    """
    app_settings = app_settings or get_app_settings()

    app = FastAPI(
        title=app_settings.title,
        description=app_settings.description,
        version=app_settings.version,
        docs_url=app_settings.get_docs_url(),
        redoc_url=None,
        openapi_url=app_settings.get_openapi_url(),
        debug=app_settings.debug,
        lifespan=lifespan,
    )

    configure_exception_handlers(app)
    setup_routers(app, app_settings)

    return app


# Application instance for uvicorn
app = create_app()
