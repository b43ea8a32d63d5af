"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from push_notifier.app.exception_handlers import configure_exception_handlers
from push_notifier.app.lifespan import lifespan
from push_notifier.app.router import setup_routers
from push_notifier.core.settings import get_app_settings


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_app_settings()

    app = FastAPI(
        title=settings.title,
        description=settings.description,
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    configure_exception_handlers(app)
    setup_routers(app, settings)

    return app


# Application instance for uvicorn
app = create_app()
