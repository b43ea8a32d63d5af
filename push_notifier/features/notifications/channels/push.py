"""Web push channel using pywebpush with VAPID.

``pywebpush.webpush`` is blocking (it posts with requests), so every send
runs in a worker thread. Recipients are independent: one failing endpoint
never affects another.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
import os
from typing import TYPE_CHECKING, Any

from pywebpush import WebPushException, webpush

from push_notifier.core.exceptions import ConfigurationError
from push_notifier.features.notifications.channels.base import load_options
from push_notifier.features.notifications.models import (
    Channel,
    DeliveryOutcome,
    PushMessage,
    PushSubscriber,
)
from push_notifier.infra.logging import get_logger, set_log_context

if TYPE_CHECKING:
    from push_notifier.core.settings.notifier import PushServiceSettings

logger = get_logger(__name__, channel="push")

# Push services answer 201 Created for an accepted message.
SUCCESS_STATUS = 201

VAPID_ENV = {
    "private_key": "VAPID_PRIVATE_KEY",
    "public_key": "VAPID_PUBLIC_KEY",
    "subject": "VAPID_SUBJECT",
}


@dataclass(frozen=True)
class VapidDetails:
    """VAPID identity used to sign push requests.

    Attributes:
        private_key: Application server private key
        public_key: Application server public key, handed to browsers
        subject: Contact URI (``mailto:`` or ``https:``)
    """

    private_key: str
    public_key: str | None = None
    subject: str | None = None

    @classmethod
    def resolve(
        cls,
        transport_options: Mapping[str, Any],
        env: Mapping[str, str] | None = None,
    ) -> VapidDetails:
        """Read VAPID details from transport options, falling back to the environment.

        Raises:
            ConfigurationError: No private key is available
        """
        env = os.environ if env is None else env
        vapid = transport_options.get("vapid") or {}
        values = {
            "private_key": vapid.get("privateKey") or env.get(VAPID_ENV["private_key"]),
            "public_key": vapid.get("publicKey") or env.get(VAPID_ENV["public_key"]),
            "subject": vapid.get("subject") or env.get(VAPID_ENV["subject"]),
        }
        if not values["private_key"]:
            msg = "push channel needs a VAPID private key"
            raise ConfigurationError(msg)
        return cls(**values)


class PushChannel:
    """Sends one web push request per push subscriber."""

    channel = Channel.PUSH

    def __init__(
        self,
        vapid: VapidDetails,
        ttl: int = 10000,
        sender: Callable[..., Any] = webpush,
    ) -> None:
        """Initialize push channel.

        Args:
            vapid: VAPID signing identity
            ttl: Seconds the push service may hold an undelivered message
            sender: Blocking push function with the ``pywebpush.webpush`` signature
        """
        self._vapid = vapid
        self._ttl = ttl
        self._sender = sender

    @classmethod
    def from_settings(
        cls,
        settings: PushServiceSettings,
        env: Mapping[str, str] | None = None,
    ) -> PushChannel:
        """Build from the push service section.

        Raises:
            ConfigurationError: Options are malformed or no VAPID key is set
        """
        options = load_options(settings.transport_options, "push transport options")
        return cls(vapid=VapidDetails.resolve(options, env), ttl=settings.ttl)

    @property
    def vapid(self) -> VapidDetails:
        return self._vapid

    async def send(
        self,
        message: PushMessage,
        recipients: Sequence[PushSubscriber],
    ) -> list[DeliveryOutcome]:
        """Send ``message`` to every recipient concurrently.

        Returns:
            One outcome per recipient, in recipient order
        """
        payload = message.to_payload()
        return list(await asyncio.gather(*(self._send_one(payload, r) for r in recipients)))

    async def _send_one(self, payload: str, subscriber: PushSubscriber) -> DeliveryOutcome:
        set_log_context(subscriber_id=subscriber.subscriber_id)
        if subscriber.subscription is None:
            return self._failed(subscriber, "no valid push subscription")

        try:
            response = await asyncio.to_thread(
                self._sender,
                subscription_info=subscriber.subscription.to_subscription_info(),
                data=payload,
                vapid_private_key=self._vapid.private_key,
                # webpush adds aud/exp to the claims it is given
                vapid_claims={"sub": self._vapid.subject} if self._vapid.subject else {},
                ttl=self._ttl,
            )
        except WebPushException as exc:
            status = getattr(exc.response, "status_code", None)
            logger.debug("Push to '%s' rejected: %s", subscriber.subscriber_id, exc)
            return self._failed(subscriber, str(exc), status)
        except Exception as exc:
            logger.debug("Push to '%s' failed: %s", subscriber.subscriber_id, exc)
            return self._failed(subscriber, str(exc) or type(exc).__name__)

        status = getattr(response, "status_code", None)
        if status != SUCCESS_STATUS:
            return self._failed(subscriber, f"push service answered {status}", status)
        return DeliveryOutcome(
            subscriber_id=subscriber.subscriber_id,
            channel=self.channel,
            success=True,
            status_code=status,
        )

    def _failed(
        self,
        subscriber: PushSubscriber,
        detail: str,
        status: int | None = None,
    ) -> DeliveryOutcome:
        return DeliveryOutcome(
            subscriber_id=subscriber.subscriber_id,
            channel=self.channel,
            success=False,
            error_detail=detail,
            status_code=status,
        )
