"""Failure-driven eviction of push subscribers.

Each push subscriber moves through three states:

    Healthy (count == 0) -> Degraded (0 < count <= limit) -> Evicted

A failed send while the stored count is below the limit adds exactly one
and persists the record. A failed send once the count has reached the
limit deletes the record. Successful sends leave the count untouched, so
the count only grows until eviction.

Overlapping notifications may report failures for the same subscriber
concurrently. No lock is taken and the store's last write wins; the count
only grows and deletes are idempotent.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import StrEnum
import logging

from push_notifier.core.exceptions import NotifierError, SubscriberNotFoundError
from push_notifier.core.settings.notifier import DEFAULT_SEND_FAILURE_LIMIT
from push_notifier.features.notifications.metrics import push_subscribers_evicted_total
from push_notifier.features.notifications.models import DeliveryOutcome, PushSubscriber
from push_notifier.features.notifications.store import SubscriberStore

logger = logging.getLogger(__name__)


class FailureDecision(StrEnum):
    IGNORED = "ignored"
    INCREMENTED = "incremented"
    EVICTED = "evicted"
    ERROR = "error"


class FailureTracker:
    """Applies push delivery outcomes to the subscriber store."""

    def __init__(
        self,
        store: SubscriberStore,
        threshold: int = DEFAULT_SEND_FAILURE_LIMIT,
    ) -> None:
        self._store = store
        self.threshold = threshold

    async def record(self, outcome: DeliveryOutcome, subscriber: PushSubscriber) -> FailureDecision:
        """Apply one outcome.

        Args:
            outcome: Delivery outcome for ``subscriber``.
            subscriber: Subscriber as read at the start of the dispatch.

        Returns:
            What was done.

        Raises:
            StoreError: The set or delete failed.
        """
        if outcome.success:
            return FailureDecision.IGNORED

        count = subscriber.send_failure_count
        if count >= self.threshold:
            logger.info(
                "Deleting push subscriber '%s' (too many send failures)",
                subscriber.subscriber_id,
                extra={"send_failure_count": count, "threshold": self.threshold},
            )
            try:
                await self._store.delete(subscriber.subscriber_id)
            except SubscriberNotFoundError:
                # Already gone (unsubscribed, or evicted by an overlapping dispatch).
                pass
            push_subscribers_evicted_total.inc()
            return FailureDecision.EVICTED

        logger.debug(
            "Bumping send failure count for push subscriber '%s' to %d",
            subscriber.subscriber_id,
            count + 1,
        )
        await self._store.set(subscriber.subscriber_id, subscriber.with_failure_count(count + 1))
        return FailureDecision.INCREMENTED

    async def consume(
        self,
        outcomes: Iterable[DeliveryOutcome],
        subscribers: Mapping[str, PushSubscriber],
    ) -> list[FailureDecision]:
        """Apply a batch of outcomes, isolating each one.

        A store failure for one subscriber is logged and does not stop the
        remaining outcomes from being applied.

        Args:
            outcomes: Outcomes from one push send.
            subscribers: The recipients of that send, keyed by id.
        """
        decisions: list[FailureDecision] = []
        for outcome in outcomes:
            subscriber = subscribers.get(outcome.subscriber_id)
            if subscriber is None:
                logger.warning("Outcome for unknown push subscriber '%s'", outcome.subscriber_id)
                decisions.append(FailureDecision.IGNORED)
                continue
            try:
                decisions.append(await self.record(outcome, subscriber))
            except NotifierError as exc:
                logger.error(
                    "Could not update push subscriber '%s' after failed send: %s",
                    outcome.subscriber_id,
                    exc,
                )
                decisions.append(FailureDecision.ERROR)
        return decisions
