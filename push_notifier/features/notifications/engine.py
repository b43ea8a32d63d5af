"""Notification dispatch engine.

The engine ties the pieces together:

1. ``PathResolver`` turns the configured watch list into watched paths and
   restart directives.
2. Each watched path gets a live subscription on the notification stream.
3. Every notification re-reads the subscriber store, partitions the
   records by channel and sends to each admitted channel concurrently.
4. Push outcomes go to ``FailureTracker``; the mail outcome drives the
   connection state shown by ``/status``.

Usage:
    context = build_engine_context(settings, store, stream, fetcher=client)
    engine = DispatchEngine(context)
    await engine.start()
    ...
    await engine.stop()
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from functools import partial
import logging
from typing import TYPE_CHECKING, Any

from push_notifier.core.exceptions import (
    AuthenticationError,
    ChannelUnavailableError,
    ConfigurationError,
    StoreError,
    SubscriberNotFoundError,
)
from push_notifier.features.notifications.channels import MailChannel, PushChannel
from push_notifier.features.notifications.failures import FailureTracker
from push_notifier.features.notifications.filters import StateFilter
from push_notifier.features.notifications.messages import build_mail_message, build_push_message
from push_notifier.features.notifications.metrics import (
    connection_up,
    notification_deliveries_total,
    notifications_dropped_total,
    notifications_received_total,
)
from push_notifier.features.notifications.models import (
    Channel,
    ConnectionState,
    DeliveryOutcome,
    MailSubscriber,
    NotificationEvent,
    PushSubscriber,
)
from push_notifier.features.notifications.partition import Partition, classify, partition
from push_notifier.features.notifications.paths import PathResolver, ResolvedPaths, stream_path
from push_notifier.infra.logging import get_lazy_logger, set_log_context

if TYPE_CHECKING:
    from collections.abc import Sequence

    from push_notifier.core.settings.notifier import NotifierSettings
    from push_notifier.features.notifications.paths import PathFetcher
    from push_notifier.features.notifications.store import SubscriberStore
    from push_notifier.features.notifications.stream import NotificationStream, Unsubscribe

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

# Names reported by /status, as understood by the notifier web app.
SERVICE_NAMES = {Channel.MAIL: "email", Channel.PUSH: "webpush"}

SECONDS_PER_MINUTE = 60


@dataclass
class EngineContext:
    """Everything the engine needs, built once from frozen settings."""

    settings: NotifierSettings
    store: SubscriberStore
    stream: NotificationStream
    resolver: PathResolver
    tracker: FailureTracker
    state_filter: StateFilter
    mail: MailChannel | None = None
    push: PushChannel | None = None

    @property
    def channels(self) -> dict[Channel, MailChannel | PushChannel]:
        """Configured channels, keyed by channel."""
        configured: dict[Channel, MailChannel | PushChannel] = {}
        if self.mail is not None:
            configured[Channel.MAIL] = self.mail
        if self.push is not None:
            configured[Channel.PUSH] = self.push
        return configured


def build_engine_context(
    settings: NotifierSettings,
    store: SubscriberStore,
    stream: NotificationStream,
    fetcher: PathFetcher | None = None,
    *,
    mail: MailChannel | None = None,
    push: PushChannel | None = None,
) -> EngineContext:
    """Build an engine context, configuring channels from settings.

    A channel whose section is missing stays disabled. A channel whose
    section is present but unusable is logged and skipped; the other
    channel is unaffected.

    Args:
        settings: Notifier settings
        store: Subscriber store
        stream: Notification stream
        fetcher: Expands remote watch-list entries (None when not logged in)
        mail: Pre-built mail channel, bypassing settings
        push: Pre-built push channel, bypassing settings
    """
    services = settings.services

    if mail is None and services.mail is not None:
        try:
            mail = MailChannel.from_settings(services.mail)
            logger.info("Mail service configured")
        except ConfigurationError as exc:
            logger.warning("Mail service not configured: %s", exc)

    if push is None and services.push is not None:
        try:
            push = PushChannel.from_settings(services.push)
            logger.info("Push service configured")
        except ConfigurationError as exc:
            logger.warning("Push service not configured: %s", exc)

    enabled = [channel for channel, adapter in ((Channel.MAIL, mail), (Channel.PUSH, push)) if adapter]
    threshold = services.push.send_failure_limit if services.push is not None else None

    return EngineContext(
        settings=settings,
        store=store,
        stream=stream,
        resolver=PathResolver(fetcher),
        tracker=FailureTracker(store) if threshold is None else FailureTracker(store, threshold),
        state_filter=StateFilter.from_settings(services, enabled),
        mail=mail,
        push=push,
    )


class DispatchEngine:
    """Listens on watched paths and fans notifications out to subscribers.

    Attributes:
        context: Settings, store, stream and channels
    """

    def __init__(self, context: EngineContext) -> None:
        self.context = context

        self._running = False
        # Bumped on every stop; dispatches started under an older
        # generation discard their push outcomes.
        self._generation = 0
        self._unsubscribes: list[Unsubscribe] = []
        self._check_task: asyncio.Task[None] | None = None
        self._restart_task: asyncio.Task[None] | None = None
        self._restart_lock = asyncio.Lock()
        self._resolved = ResolvedPaths()
        self._connection_state = ConnectionState.UNKNOWN
        self._reason: str | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection_state

    @property
    def resolved_paths(self) -> ResolvedPaths:
        """Watch set and restart directives from the last start."""
        return self._resolved

    @property
    def services(self) -> list[str]:
        """Names of the configured delivery services."""
        return [SERVICE_NAMES[channel] for channel in self.context.channels]

    @property
    def reason(self) -> str | None:
        """Why the engine is idle, if it is."""
        return self._reason

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Resolve the watch list and subscribe to every watched path.

        With no configured channel the engine stays idle. Partial watch-list
        expansion is logged and the engine runs on what resolved.

        Raises:
            AuthenticationError: A remote watch-list entry needs a host
                session and none is available. Nothing is subscribed.
        """
        if self._running:
            logger.warning("Dispatch engine already running")
            return

        if not self.context.channels:
            self._reason = "no delivery services are configured"
            logger.warning("Dispatch engine idle: %s", self._reason)
            return

        try:
            resolved = await self.context.resolver.resolve(self.context.settings.paths)
        except AuthenticationError as exc:
            self._reason = str(exc)
            raise

        self._resolved = resolved
        self._reason = None
        self._running = True

        for path in resolved.restart_paths:
            logger.info("Registering restart listener on '%s'", path)
            self._unsubscribes.append(
                self.context.stream.subscribe(path, partial(self._on_restart_event, path))
            )

        for path in resolved.watch_paths:
            self._unsubscribes.append(
                self.context.stream.subscribe(stream_path(path), partial(self.on_notification, path))
            )

        mail_settings = self.context.settings.services.mail
        interval = mail_settings.connection_check_interval_minutes if mail_settings else None
        if self.context.mail is not None and interval:
            self._check_task = asyncio.create_task(self._connection_check_loop(interval))

        logger.info(
            "Listening on %d notification path%s",
            len(resolved.watch_paths),
            "" if len(resolved.watch_paths) == 1 else "s",
            extra={
                "services": self.services,
                "restart_paths": list(resolved.restart_paths),
                "partial": resolved.partial,
            },
        )

    async def stop(self) -> None:
        """Cancel every subscription and background task.

        In-flight dispatches finish, but their push outcomes are discarded.
        """
        self._generation += 1
        await self._cancel_pending_restart()
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes = []

        if self._check_task is not None:
            self._check_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._check_task
            self._check_task = None

        if self._running:
            logger.info("Dispatch engine stopped")
        self._running = False
        self._connection_state = ConnectionState.UNKNOWN

    async def restart(self) -> None:
        """Stop, then start again with the same configuration.

        Concurrent restarts run one after the other, so each path is only
        ever subscribed once.
        """
        async with self._restart_lock:
            await self.stop()
            await self.start()

    async def _on_restart_event(self, path: str, value: Any) -> None:
        if self._restart_task is not None and not self._restart_task.done():
            logger.debug("Restart already pending; ignoring event on '%s'", path)
            return
        logger.info("Restarting because of event on '%s'", path)
        # Restart from a separate task: stop() unsubscribes this handler.
        self._restart_task = asyncio.create_task(self.restart())
        self._restart_task.add_done_callback(self._restart_done)

    def _restart_done(self, task: asyncio.Task[None]) -> None:
        if self._restart_task is task:
            self._restart_task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Restart failed; dispatch engine is idle: %s", exc)

    async def _cancel_pending_restart(self) -> None:
        task = self._restart_task
        # stop() also runs inside the restart task itself.
        if task is None or task is asyncio.current_task():
            return
        self._restart_task = None
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def on_notification(self, path: str, value: Any) -> list[DeliveryOutcome]:
        """Handle one value delivered on a watched path.

        Args:
            path: Watched path the value arrived on
            value: Raw stream value

        Returns:
            Outcomes of every send performed (empty when nothing was sent)
        """
        set_log_context(path=path)
        generation = self._generation

        notification = NotificationEvent.from_value(value, path)
        if notification is None:
            notifications_dropped_total.labels(reason="noise").inc()
            logger.debug("Ignoring non-notification value on '%s'", path)
            return []
        notifications_received_total.labels(state=notification.state.value).inc()

        try:
            records = await self.context.store.list()
        except StoreError as exc:
            notifications_dropped_total.labels(reason="store_error").inc()
            logger.error("Error recovering subscribers: %s", exc)
            return []

        subscribers = partition(records)
        lazy_logger.debug(
            lambda: f"Dispatching {notification.state} on '{path}' to "
            f"{len(subscribers.mail)} mail and {len(subscribers.push)} push subscribers"
        )

        sends = []
        if self._should_send(Channel.MAIL, subscribers, notification):
            sends.append(self._send_mail(build_mail_message(notification, path), subscribers.mail))
        if self._should_send(Channel.PUSH, subscribers, notification):
            sends.append(
                self._send_push(build_push_message(notification, path), subscribers.push, generation)
            )

        results = await asyncio.gather(*sends)
        return [outcome for outcomes in results for outcome in outcomes]

    async def push_to(self, subscriber_id: str, notification: NotificationEvent) -> list[DeliveryOutcome]:
        """Deliver a notification to one subscriber, bypassing state filters.

        The message carries no path. Failures are not counted against the
        subscriber.

        Raises:
            SubscriberNotFoundError: Not exactly one record matches the id
            ChannelUnavailableError: The subscriber's channel is not configured
            StoreError: The store could not be read
        """
        records = await self.context.store.list()
        matches = [key for key in records if key == subscriber_id]
        if len(matches) != 1:
            raise SubscriberNotFoundError(subscriber_id, matches=len(matches))

        subscriber = classify(subscriber_id, records[subscriber_id])
        if isinstance(subscriber, MailSubscriber):
            if self.context.mail is None:
                msg = "mail service is not configured"
                raise ChannelUnavailableError(msg)
            return await self._send_mail(build_mail_message(notification), (subscriber,))

        if self.context.push is None:
            msg = "push service is not configured"
            raise ChannelUnavailableError(msg)
        outcomes = await self.context.push.send(build_push_message(notification), (subscriber,))
        self._count(outcomes)
        return outcomes

    async def resolve_paths(self) -> ResolvedPaths:
        """Resolve the configured watch list without subscribing.

        Raises:
            AuthenticationError: No host session for a remote entry
        """
        return await self.context.resolver.resolve(self.context.settings.paths)

    async def check_connection(self) -> tuple[ConnectionState, str | None]:
        """Verify the mail transport now.

        Returns:
            Connection state and, when down or unknown, the reason
        """
        if self.context.mail is None:
            return ConnectionState.UNKNOWN, "mail transport is not configured"
        if not self._running:
            return ConnectionState.UNKNOWN, self._reason
        try:
            await self.context.mail.verify()
        except ChannelUnavailableError as exc:
            self._set_connection_state(ConnectionState.DOWN)
            return ConnectionState.DOWN, str(exc)
        self._set_connection_state(ConnectionState.UP)
        return ConnectionState.UP, None

    def _should_send(self, channel: Channel, subscribers: Partition, notification: NotificationEvent) -> bool:
        return (
            channel in self.context.channels
            and len(subscribers.for_channel(channel)) > 0
            and self.context.state_filter.admits(channel, notification.state)
        )

    async def _send_mail(self, message: Any, recipients: Sequence[MailSubscriber]) -> list[DeliveryOutcome]:
        mail = self.context.mail
        if mail is None:
            return []
        try:
            outcomes = await mail.send(message, recipients)
        except Exception:
            logger.exception("Unexpected error sending mail")
            return []

        self._count(outcomes)
        if any(outcome.success for outcome in outcomes):
            self._set_connection_state(ConnectionState.UP)
        elif outcomes:
            self._set_connection_state(ConnectionState.DOWN)
        return outcomes

    async def _send_push(
        self,
        message: Any,
        recipients: Sequence[PushSubscriber],
        generation: int,
    ) -> list[DeliveryOutcome]:
        push = self.context.push
        if push is None:
            return []
        try:
            outcomes = await push.send(message, recipients)
        except Exception:
            logger.exception("Unexpected error sending push notifications")
            return []

        self._count(outcomes)
        if not self._running or generation != self._generation:
            logger.debug("Discarding %d push outcomes from a stopped dispatch", len(outcomes))
            return outcomes

        await self.context.tracker.consume(
            outcomes, {subscriber.subscriber_id: subscriber for subscriber in recipients}
        )
        return outcomes

    def _count(self, outcomes: Sequence[DeliveryOutcome]) -> None:
        for outcome in outcomes:
            notification_deliveries_total.labels(
                channel=outcome.channel.value,
                status="delivered" if outcome.success else "failed",
            ).inc()

    def _set_connection_state(self, state: ConnectionState) -> None:
        previous, self._connection_state = self._connection_state, state
        connection_up.set(1 if state is ConnectionState.UP else 0)
        if previous is not state and previous is not ConnectionState.UNKNOWN:
            logger.warning(
                "Mail network connection has %s", "come up" if state is ConnectionState.UP else "gone down"
            )

    async def _connection_check_loop(self, interval_minutes: float) -> None:
        """Periodically verify the mail transport until cancelled."""
        self._connection_state = ConnectionState.UNKNOWN
        while True:
            state, reason = await self.check_connection()
            logger.info(
                "Listening on %d notification paths (connection is '%s')",
                len(self._resolved.watch_paths),
                state.value,
                extra={"reason": reason} if reason else None,
            )
            await asyncio.sleep(interval_minutes * SECONDS_PER_MINUTE)
