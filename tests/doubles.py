"""Test doubles shared across the unit tests."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from push_notifier.core.exceptions import ChannelUnavailableError
from push_notifier.features.notifications.models import (
    Channel,
    DeliveryOutcome,
    MailMessage,
    PushMessage,
)

PUSH_SUBSCRIPTION = {
    "endpoint": "https://push.example.com/send/abc",
    "keys": {"p256dh": "BPublicKey", "auth": "authsecret"},
}


class RecordingMailChannel:
    """Mail channel double recording every send.

    Attributes:
        calls: (message, addresses) per send.
        succeed: Outcome reported for every recipient.
        reachable: Result of ``verify``.
    """

    channel = Channel.MAIL

    def __init__(self, succeed: bool = True, reachable: bool = True) -> None:
        self.calls: list[tuple[MailMessage, list[str]]] = []
        self.succeed = succeed
        self.reachable = reachable

    async def send(self, message: MailMessage, recipients: Sequence[Any]) -> list[DeliveryOutcome]:
        addresses = [r.address for r in recipients]
        self.calls.append((message, addresses))
        return [
            DeliveryOutcome(
                subscriber_id=address,
                channel=self.channel,
                success=self.succeed,
                error_detail=None if self.succeed else "connection refused",
            )
            for address in addresses
        ]

    async def verify(self) -> None:
        if not self.reachable:
            raise ChannelUnavailableError("connection refused")


class RecordingPushChannel:
    """Push channel double; ``status`` maps subscriber id to the push service answer."""

    channel = Channel.PUSH

    def __init__(self, status: dict[str, int] | None = None, default_status: int = 201) -> None:
        self.calls: list[tuple[PushMessage, list[str]]] = []
        self.status = status or {}
        self.default_status = default_status

    async def send(self, message: PushMessage, recipients: Sequence[Any]) -> list[DeliveryOutcome]:
        self.calls.append((message, [r.subscriber_id for r in recipients]))
        outcomes = []
        for recipient in recipients:
            code = self.status.get(recipient.subscriber_id, self.default_status)
            outcomes.append(
                DeliveryOutcome(
                    subscriber_id=recipient.subscriber_id,
                    channel=self.channel,
                    success=code == 201,
                    status_code=code,
                )
            )
        return outcomes


