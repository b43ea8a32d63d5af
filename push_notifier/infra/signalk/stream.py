"""Signal K delta stream over a websocket.

Connects with ``subscribe=none`` and then subscribes to exactly the paths
that have handlers. Delta messages look like:

    {
        "context": "vessels.urn:mrn:imo:mmsi:123456789",
        "updates": [
            {"values": [{"path": "notifications.engine.overTemp", "value": {...}}]}
        ]
    }

Each value is handed to every handler registered on its path. Values on
one path are handled one at a time and in arrival order; different paths
run concurrently. A dropped connection is re-established after
``reconnect_delay`` seconds and every live subscription is sent again.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
import contextlib
import json
import logging
import ssl
from typing import Any

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import WebSocketException

from push_notifier.core.settings.signalk import SignalKSettings
from push_notifier.features.notifications.stream import NotificationHandler, Unsubscribe
from push_notifier.infra.signalk.client import SignalKClient

logger = logging.getLogger(__name__)


def decode_delta(raw: str | bytes) -> list[tuple[str, Any]]:
    """Extract ``(path, value)`` pairs from one delta message.

    Messages that are not deltas (the server hello, malformed JSON) yield
    nothing.
    """
    try:
        message = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug("Ignoring undecodable stream message")
        return []
    if not isinstance(message, dict):
        return []

    pairs: list[tuple[str, Any]] = []
    for update in message.get("updates") or []:
        if not isinstance(update, dict):
            continue
        for item in update.get("values") or []:
            if isinstance(item, dict) and isinstance(item.get("path"), str):
                pairs.append((item["path"], item.get("value")))
    return pairs


class SignalKStream:
    """``NotificationStream`` backed by the Signal K websocket."""

    def __init__(
        self,
        settings: SignalKSettings,
        client: SignalKClient | None = None,
        connector=connect,
    ) -> None:
        """Initialize the stream.

        Args:
            settings: Host connection settings.
            client: Logged-in client whose token authenticates the socket.
            connector: ``websockets`` connect function.
        """
        self.settings = settings
        self._client = client
        self._connector = connector
        self._handlers: dict[str, list[NotificationHandler]] = defaultdict(list)
        self._ws: ClientConnection | None = None
        self._task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[Any]] = set()
        self._path_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._closing = False

    @property
    def paths(self) -> set[str]:
        return set(self._handlers)

    def subscribe(self, path: str, handler: NotificationHandler) -> Unsubscribe:
        first = path not in self._handlers
        self._handlers[path].append(handler)
        if first:
            self._send_soon(self.subscribe_message([path]))

        def unsubscribe() -> None:
            handlers = self._handlers.get(path)
            if handlers is None:
                return
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                del self._handlers[path]
                lock = self._path_locks.get(path)
                if lock is not None and not lock.locked():
                    del self._path_locks[path]
                self._send_soon(self.unsubscribe_message([path]))

        return unsubscribe

    def subscribe_message(self, paths: list[str]) -> dict[str, Any]:
        return {
            "context": self.settings.stream_context,
            "subscribe": [{"path": path, "policy": "instant"} for path in paths],
        }

    def unsubscribe_message(self, paths: list[str]) -> dict[str, Any]:
        return {
            "context": self.settings.stream_context,
            "unsubscribe": [{"path": path} for path in paths],
        }

    async def start(self) -> None:
        """Start the connection loop in the background."""
        if self._task is not None:
            return
        self._closing = False
        self._task = asyncio.create_task(self._run())

    async def close(self) -> None:
        """Close the connection and cancel outstanding handler calls."""
        self._closing = True
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()

    def dispatch(self, raw: str | bytes) -> int:
        """Route one stream message to the registered handlers.

        Returns:
            Number of handler calls scheduled.
        """
        scheduled = 0
        for path, value in decode_delta(raw):
            for handler in list(self._handlers.get(path, ())):
                task = asyncio.create_task(self._call(path, handler, value))
                self._pending.add(task)
                task.add_done_callback(self._handler_done)
                scheduled += 1
        return scheduled

    async def _call(self, path: str, handler: NotificationHandler, value: Any) -> None:
        async with self._path_locks[path]:
            await handler(value)

    def _handler_done(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Notification handler failed", exc_info=exc)

    def _send_soon(self, message: dict[str, Any]) -> None:
        # Without a live socket the subscription is sent on (re)connect.
        if self._ws is None:
            return
        task = asyncio.create_task(self._send(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, message: dict[str, Any]) -> None:
        ws = self._ws
        if ws is None:
            return
        try:
            await ws.send(json.dumps(message))
        except WebSocketException as exc:
            logger.warning("Could not send stream subscription update: %s", exc)

    def _connect_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if self._client is not None and self._client.auth_headers:
            kwargs["additional_headers"] = self._client.auth_headers
        if self.settings.stream_url.startswith("wss://"):
            context = ssl.create_default_context()
            if not self.settings.verify_tls:
                context.check_hostname = False
                context.verify_mode = ssl.CERT_NONE
            kwargs["ssl"] = context
        return kwargs

    async def _run(self) -> None:
        """Connect, subscribe and consume until closed."""
        while not self._closing:
            try:
                async with self._connector(self.settings.stream_url, **self._connect_kwargs()) as ws:
                    self._ws = ws
                    logger.info("Connected to delta stream", extra={"url": self.settings.stream_url})
                    if self._handlers:
                        await ws.send(json.dumps(self.subscribe_message(sorted(self._handlers))))
                    async for raw in ws:
                        self.dispatch(raw)
            except (OSError, WebSocketException) as exc:
                logger.warning("Delta stream connection lost: %s", exc)
            finally:
                self._ws = None

            if self._closing:
                break
            await asyncio.sleep(self.settings.reconnect_delay)
