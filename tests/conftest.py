"""Pytest configuration and shared fixtures.

Organization:
    - Environment: keep tests away from real config files and hosts
    - Settings Fixtures: notifier settings builders
    - Engine Fixtures: in-memory store and stream, recording channels
    - Application Fixtures: FastAPI app and HTTP client
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Sequence
import os
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

# Ensure tests never read conf/*.yaml or reach a Signal K server
os.environ.setdefault("APP_CONFIG_DIR", "/nonexistent/push-notifier-tests")
os.environ.setdefault("SIGNALK_CONFIG_DIR", "/nonexistent/push-notifier-tests")
os.environ.setdefault("NOTIFIER_CONFIG_DIR", "/nonexistent/push-notifier-tests")
os.environ.setdefault("LOG_CONFIG_DIR", "/nonexistent/push-notifier-tests")
os.environ.setdefault("SIGNALK_BASE_URL", "http://signalk.test")

from push_notifier.core.settings import NotifierSettings, clear_all_caches  # noqa: E402
from push_notifier.features.notifications.engine import (  # noqa: E402
    DispatchEngine,
    EngineContext,
    build_engine_context,
)
from push_notifier.features.notifications.store import InMemorySubscriberStore  # noqa: E402
from push_notifier.features.notifications.stream import InMemoryNotificationStream  # noqa: E402

from tests.doubles import RecordingMailChannel, RecordingPushChannel  # noqa: E402


# ============================================================================
# Environment
# ============================================================================


@pytest.fixture(autouse=True)
def _clear_settings_caches():
    """Reload settings for every test."""
    clear_all_caches()
    yield
    clear_all_caches()


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def make_settings() -> Callable[..., NotifierSettings]:
    """Build notifier settings with both services enabled by default.

    Example:
        def test_something(make_settings):
            settings = make_settings(paths=["engines.overTemp"])
    """

    def _make(
        paths: Sequence[str] = ("engines.overTemp",),
        mail_states: Sequence[str] | None = ("alarm", "emergency"),
        push_states: Sequence[str] | None = ("alarm", "emergency"),
        send_failure_limit: int = 5,
        **overrides: Any,
    ) -> NotifierSettings:
        services: dict[str, Any] = {}
        if mail_states is not None:
            services["mail"] = {
                "trigger_states": list(mail_states),
                "transport_options": {"host": "smtp.test"},
            }
        if push_states is not None:
            services["push"] = {
                "trigger_states": list(push_states),
                "send_failure_limit": send_failure_limit,
                "transport_options": {"vapid": {"privateKey": "private", "publicKey": "public"}},
            }
        return NotifierSettings(paths=list(paths), services=services, **overrides)

    return _make


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def store() -> InMemorySubscriberStore:
    return InMemorySubscriberStore()


@pytest.fixture
def stream() -> InMemoryNotificationStream:
    return InMemoryNotificationStream()


@pytest.fixture
def mail_channel() -> RecordingMailChannel:
    return RecordingMailChannel()


@pytest.fixture
def push_channel() -> RecordingPushChannel:
    return RecordingPushChannel()


@pytest.fixture
def make_context(make_settings, store, stream, mail_channel, push_channel) -> Callable[..., EngineContext]:
    """Build an engine context wired to the in-memory store and stream."""

    def _make(settings: NotifierSettings | None = None, fetcher: Any = None, **channels: Any) -> EngineContext:
        channels.setdefault("mail", mail_channel)
        channels.setdefault("push", push_channel)
        return build_engine_context(settings or make_settings(), store, stream, fetcher, **channels)

    return _make


@pytest.fixture
async def engine(make_context) -> AsyncGenerator[DispatchEngine]:
    """Started engine watching ``engines.overTemp``."""
    dispatch_engine = DispatchEngine(make_context())
    await dispatch_engine.start()
    try:
        yield dispatch_engine
    finally:
        await dispatch_engine.stop()


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def app(engine: DispatchEngine):
    """FastAPI application with a started in-memory engine.

    The lifespan is not run; the engine is attached to ``app.state`` directly.
    """
    from push_notifier.app.main import create_app

    application = create_app()
    application.state.engine = engine
    return application


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client for the test application."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
