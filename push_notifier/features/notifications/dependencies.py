"""FastAPI dependencies for the notifier routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from push_notifier.core.exceptions import ServiceUnavailableException
from push_notifier.features.notifications.engine import DispatchEngine


def get_engine(request: Request) -> DispatchEngine:
    """Return the dispatch engine created by the application lifespan."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise ServiceUnavailableException()
    return engine


EngineDep = Annotated[DispatchEngine, Depends(get_engine)]
