"""Subscriber classification.

A store key containing ``@`` is an email address and names a mail
subscriber; every other key is a push subscriber whose record carries the
push subscription. Classification happens once, at the store-read
boundary.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from push_notifier.features.notifications.models import (
    Channel,
    MailSubscriber,
    PushSubscriber,
    PushSubscription,
    Subscriber,
)

MAIL_MARKER = "@"


@dataclass(frozen=True)
class Partition:
    """Subscribers split by delivery channel."""

    mail: tuple[MailSubscriber, ...] = ()
    push: tuple[PushSubscriber, ...] = ()

    def __len__(self) -> int:
        return len(self.mail) + len(self.push)

    def for_channel(self, channel: Channel) -> tuple[Subscriber, ...]:
        if channel is Channel.MAIL:
            return self.mail
        return self.push


def channel_for(subscriber_id: str) -> Channel:
    """Channel a subscriber id is bound to."""
    return Channel.MAIL if MAIL_MARKER in subscriber_id else Channel.PUSH


def classify(subscriber_id: str, record: Any) -> Subscriber:
    """Build the subscriber variant for one store entry."""
    if channel_for(subscriber_id) is Channel.MAIL:
        return MailSubscriber(subscriber_id=subscriber_id)

    record = record if isinstance(record, Mapping) else {}
    return PushSubscriber(
        subscriber_id=subscriber_id,
        subscription=_parse_subscription(record.get("subscription")),
        send_failure_count=_parse_count(record.get("sendFailureCount")),
        record=dict(record),
    )


def partition(records: Mapping[str, Any]) -> Partition:
    """Split store records into mail and push subscribers.

    Every key lands in exactly one group.
    """
    mail: list[MailSubscriber] = []
    push: list[PushSubscriber] = []
    for subscriber_id, record in records.items():
        subscriber = classify(subscriber_id, record)
        if isinstance(subscriber, MailSubscriber):
            mail.append(subscriber)
        else:
            push.append(subscriber)
    return Partition(mail=tuple(mail), push=tuple(push))


def _parse_subscription(value: Any) -> PushSubscription | None:
    if not isinstance(value, Mapping):
        return None
    try:
        return PushSubscription.model_validate(value)
    except ValidationError:
        return None


def _parse_count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0
