"""Base protocol and helpers for channel adapters."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import json
from typing import TYPE_CHECKING, Any, Protocol

from push_notifier.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from push_notifier.features.notifications.models import (
        Channel,
        DeliveryOutcome,
        Subscriber,
    )


class ChannelAdapter(Protocol):
    """Protocol for channel-specific senders.

    Each channel (mail, push) implements this protocol so the dispatch
    engine can fan out without knowing the transport. ``send`` never
    raises for a delivery problem; it reports one outcome per recipient.
    """

    channel: Channel

    async def send(self, message: Any, recipients: Sequence[Subscriber]) -> list[DeliveryOutcome]:
        """Deliver ``message`` to every recipient.

        Args:
            message: Channel-specific message (MailMessage or PushMessage)
            recipients: Subscribers bound to this channel

        Returns:
            One DeliveryOutcome per recipient, in recipient order
        """
        ...


def load_options(value: Mapping[str, Any] | str | None, name: str) -> dict[str, Any]:
    """Normalize transport or message options.

    Options may be configured as a mapping or as a JSON document string.

    Args:
        value: Configured value
        name: Option name used in error messages

    Returns:
        Options as a new dict (empty when unset)

    Raises:
        ConfigurationError: The string is not JSON or not a JSON object
    """
    if value is None or value == "":
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError) as exc:
        msg = f"{name} is not valid JSON: {exc}"
        raise ConfigurationError(msg) from exc
    if not isinstance(parsed, dict):
        msg = f"{name} must be a JSON object"
        raise ConfigurationError(msg)
    return parsed
