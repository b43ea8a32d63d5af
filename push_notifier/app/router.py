"""Router registration for the application."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from push_notifier.features.metrics.router import router as metrics_router
from push_notifier.features.notifications.router import router as notifier_router

if TYPE_CHECKING:
    from fastapi import FastAPI

    from push_notifier.core.settings.app import AppSettings

logger = logging.getLogger(__name__)


def setup_routers(app: FastAPI, settings: AppSettings) -> None:
    """Include every feature router.

    Args:
        app: FastAPI application instance.
        settings: Application settings (API prefix, metrics toggle).
    """
    if settings.metrics_enabled:
        app.include_router(metrics_router, tags=["observability"])

    app.include_router(notifier_router, prefix=settings.api_prefix, tags=["notifier"])

    logger.info("Routers configured", extra={"api_prefix": settings.api_prefix})
