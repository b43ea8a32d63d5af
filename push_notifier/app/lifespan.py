"""Application lifespan management.

Startup Order:
1. Core (logging) - always runs first
2. Host client, subscriber store and delta stream
3. Dispatch engine - built from notifier settings, then login and start

A failed login leaves the application serving requests with an idle
engine: no stream subscriptions and ``/status`` reports ``unknown``.

Shutdown Order: Reverse of startup
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from push_notifier.core.exceptions import AuthenticationError
from push_notifier.core.settings import (
    get_app_settings,
    get_logging_settings,
    get_notifier_settings,
    get_signalk_settings,
)
from push_notifier.features.notifications.engine import DispatchEngine, build_engine_context
from push_notifier.infra.logging.config import setup_logging, shutdown
from push_notifier.infra.signalk import ResourceSubscriberStore, SignalKClient, SignalKStream

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


async def _startup_core() -> None:
    """Initialize logging."""
    app = get_app_settings()
    setup_logging(log_settings=get_logging_settings(), force=True)
    logger.info(
        "Application starting",
        extra={"service": app.service_name, "environment": app.environment},
    )


async def _startup_engine(app: FastAPI) -> None:
    """Build the dispatch engine, log in to the host and start listening."""
    notifier = get_notifier_settings()
    signalk = get_signalk_settings()

    client = SignalKClient(signalk)
    store = ResourceSubscriberStore.from_settings(client, notifier.subscriber_database)
    stream = SignalKStream(signalk, client)
    engine = DispatchEngine(build_engine_context(notifier, store, stream, fetcher=client))

    app.state.signalk_client = client
    app.state.stream = stream
    app.state.engine = engine

    try:
        await client.login(notifier.credentials.get_secret_value())
        await engine.start()
    except AuthenticationError as exc:
        logger.error("Dispatch engine not started: %s", exc)
        return

    if engine.running:
        await stream.start()


async def _shutdown_engine(app: FastAPI) -> None:
    """Stop the engine, close the stream and release the host client."""
    engine: DispatchEngine | None = getattr(app.state, "engine", None)
    if engine is not None:
        await engine.stop()

    stream: SignalKStream | None = getattr(app.state, "stream", None)
    if stream is not None:
        await stream.close()

    client: SignalKClient | None = getattr(app.state, "signalk_client", None)
    if client is not None:
        await client.close()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    await _startup_core()
    await _startup_engine(app)

    app_settings = get_app_settings()
    logger.info(
        "Application startup complete - listening on %s:%s",
        app_settings.host,
        app_settings.port,
        extra={"service": app_settings.service_name, "api_prefix": app_settings.api_prefix},
    )

    yield

    logger.info("Application shutting down")
    await _shutdown_engine(app)
    logger.info("Application shutdown complete")
    shutdown()
