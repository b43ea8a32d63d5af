"""Notification stream contract.

The engine subscribes a handler per watched path and gets back a callable
that cancels the subscription. ``SignalKStream`` in ``infra.signalk.stream``
implements it over the host websocket; ``InMemoryNotificationStream``
serves development and tests.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

NotificationHandler = Callable[[Any], Awaitable[None]]
Unsubscribe = Callable[[], None]


class NotificationStream(Protocol):
    def subscribe(self, path: str, handler: NotificationHandler) -> Unsubscribe:
        """Invoke ``handler(value)`` for every value delivered on ``path``."""
        ...


class InMemoryNotificationStream:
    """Stream fed by ``publish``; handlers are awaited in registration order."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[NotificationHandler]] = defaultdict(list)

    def subscribe(self, path: str, handler: NotificationHandler) -> Unsubscribe:
        self._handlers[path].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(path, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._handlers.pop(path, None)

        return unsubscribe

    @property
    def paths(self) -> set[str]:
        """Paths with at least one live subscription."""
        return set(self._handlers)

    async def publish(self, path: str, value: Any) -> None:
        handlers = list(self._handlers.get(path, []))
        if handlers:
            await asyncio.gather(*(handler(value) for handler in handlers))
