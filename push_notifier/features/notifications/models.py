"""Domain models for notification dispatch.

Notifications arrive from the Signal K stream as plain mappings and are
parsed into an immutable ``NotificationEvent`` at the engine boundary.
Subscriber records are read from the store and turned into one of two
subscriber variants, ``MailSubscriber`` or ``PushSubscriber``, so the rest
of the code matches on type instead of re-inspecting the id.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
import json
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class NotificationState(StrEnum):
    """Signal K notification severity levels, lowest first."""

    NORMAL = "normal"
    ALERT = "alert"
    WARN = "warn"
    ALARM = "alarm"
    EMERGENCY = "emergency"


class Channel(StrEnum):
    """Delivery channels."""

    MAIL = "mail"
    PUSH = "push"


class ConnectionState(StrEnum):
    """Outbound (WAN) connectivity as observed through the mail transport."""

    UP = "up"
    DOWN = "down"
    UNKNOWN = "unknown"


class NotificationEvent(BaseModel):
    """A state-change notification received on a watched path.

    Read-only: one event may fan out to many subscribers.
    """

    model_config = ConfigDict(frozen=True)

    path: str | None = None
    state: NotificationState
    method: frozenset[str] = Field(default_factory=frozenset)
    message: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("method", mode="before")
    @classmethod
    def _coerce_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return frozenset({value})
        return value

    @field_validator("message", mode="before")
    @classmethod
    def _coerce_message(cls, value: Any) -> Any:
        return "" if value is None else value

    @classmethod
    def from_value(cls, value: Any, path: str | None = None) -> NotificationEvent | None:
        """Parse a raw stream value, returning None for noise.

        A value counts as a notification only when it is a mapping with a
        recognised ``state`` and a ``method`` marker.

        Args:
            value: Raw value delivered by the stream (usually a dict).
            path: Path the value was delivered on.

        Returns:
            Parsed event, or None if the value is not a notification.
        """
        if isinstance(value, NotificationEvent):
            return value
        if not isinstance(value, Mapping):
            return None
        if value.get("state") is None or value.get("method") is None:
            return None
        try:
            return cls.model_validate({**value, "path": path or value.get("path")})
        except ValidationError:
            return None


class PushSubscription(BaseModel):
    """Browser push subscription descriptor (PushSubscription.toJSON())."""

    model_config = ConfigDict(frozen=True, extra="allow")

    endpoint: str = Field(min_length=1)
    keys: dict[str, str] = Field(default_factory=dict)

    def to_subscription_info(self) -> dict[str, Any]:
        """Return the dict shape expected by the push transport."""
        return self.model_dump(exclude_none=True)


@dataclass(frozen=True)
class MailSubscriber:
    """Subscriber reached by email; the id is the address."""

    channel: ClassVar[Channel] = Channel.MAIL

    subscriber_id: str

    @property
    def address(self) -> str:
        return self.subscriber_id


@dataclass(frozen=True)
class PushSubscriber:
    """Subscriber reached by web push.

    Attributes:
        subscriber_id: Store key (an opaque tag, not an address).
        subscription: Parsed push descriptor, or None if the stored record
            does not hold a usable one.
        send_failure_count: Failed sends so far; only ever grows.
        record: The stored record as read, written back on updates so
            unknown fields survive.
    """

    channel: ClassVar[Channel] = Channel.PUSH

    subscriber_id: str
    subscription: PushSubscription | None
    send_failure_count: int = 0
    record: Mapping[str, Any] = field(default_factory=dict)

    def with_failure_count(self, count: int) -> dict[str, Any]:
        """Build the record to persist with an updated failure count."""
        return {**self.record, "sendFailureCount": count}


Subscriber = MailSubscriber | PushSubscriber


@dataclass(frozen=True)
class ChannelConfig:
    """Static per-channel delivery policy."""

    trigger_states: frozenset[NotificationState] = frozenset()
    enabled: bool = False


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of delivering one message to one subscriber."""

    subscriber_id: str
    channel: Channel
    success: bool
    error_detail: str | None = None
    status_code: int | None = None


@dataclass(frozen=True)
class MailMessage:
    """Email content; recipients are supplied by the channel at send time."""

    subject: str
    text: str


@dataclass(frozen=True)
class PushMessage:
    """Web push payload, shaped for the browser service worker's showNotification()."""

    title: str
    options: Mapping[str, Any] = field(default_factory=dict)

    def to_payload(self) -> str:
        """Serialize to the JSON string sent to the push service."""
        return json.dumps({"title": self.title, "options": dict(self.options)})


def new_subscriber_record(subscription: Mapping[str, Any]) -> dict[str, Any]:
    """Build the store record written by a subscribe request."""
    return {"subscription": dict(subscription), "sendFailureCount": 0}
