"""Mail channel using aiosmtplib.

Transport options use the camel-case keys of the plugin configuration:

    {
        "host": "smtp.example.com",
        "port": 587,
        "secure": false,              # implicit TLS (port 465)
        "requireTLS": true,           # STARTTLS
        "auth": {"user": "...", "pass": "..."},
        "tls": {"rejectUnauthorized": false},
        "connectionTimeout": 30000    # milliseconds
    }

Message options are merged into every message; ``from`` is required by
most servers, ``replyTo``, ``cc`` and ``bcc`` are honoured.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from email.message import EmailMessage
from typing import TYPE_CHECKING, Any

import aiosmtplib

from push_notifier.core.exceptions import ChannelUnavailableError, ConfigurationError
from push_notifier.features.notifications.channels.base import load_options
from push_notifier.features.notifications.models import (
    Channel,
    DeliveryOutcome,
    MailMessage,
    MailSubscriber,
)
from push_notifier.infra.logging import get_logger

if TYPE_CHECKING:
    from push_notifier.core.settings.notifier import MailServiceSettings

logger = get_logger(__name__, channel="mail")

DEFAULT_TIMEOUT = 30.0

# Message option keys mapped to message headers.
HEADER_OPTIONS = {
    "from": "From",
    "replyTo": "Reply-To",
    "cc": "Cc",
    "bcc": "Bcc",
    "sender": "Sender",
}


def smtp_kwargs(transport_options: Mapping[str, Any]) -> dict[str, Any]:
    """Translate transport options into ``aiosmtplib.SMTP`` keyword arguments.

    Raises:
        ConfigurationError: No host configured.
    """
    host = transport_options.get("host")
    if not host:
        msg = "mail transport options need a host"
        raise ConfigurationError(msg)

    secure = bool(transport_options.get("secure", False))
    kwargs: dict[str, Any] = {
        "hostname": host,
        "use_tls": secure,
        "timeout": float(transport_options.get("connectionTimeout", DEFAULT_TIMEOUT * 1000)) / 1000,
    }
    if transport_options.get("port") is not None:
        kwargs["port"] = int(transport_options["port"])
    if transport_options.get("ignoreTLS"):
        kwargs["start_tls"] = False
    elif transport_options.get("requireTLS"):
        kwargs["start_tls"] = True

    tls = transport_options.get("tls") or {}
    if tls.get("rejectUnauthorized") is False:
        kwargs["validate_certs"] = False
    return kwargs


def _credentials(transport_options: Mapping[str, Any]) -> tuple[str, str] | None:
    auth = transport_options.get("auth") or {}
    user, password = auth.get("user"), auth.get("pass")
    if user and password:
        return str(user), str(password)
    return None


class MailChannel:
    """Sends one SMTP message per batch of mail subscribers.

    Example:
        channel = MailChannel(
            transport_options={"host": "smtp.example.com", "port": 587},
            message_options={"from": "boat@example.com"},
        )
        outcomes = await channel.send(message, recipients)
    """

    channel = Channel.MAIL

    def __init__(
        self,
        transport_options: Mapping[str, Any],
        message_options: Mapping[str, Any] | None = None,
        smtp_factory: Callable[..., aiosmtplib.SMTP] = aiosmtplib.SMTP,
    ) -> None:
        """Initialize mail channel.

        Args:
            transport_options: SMTP transport options
            message_options: Defaults merged into every message
            smtp_factory: Builds the SMTP client from keyword arguments

        Raises:
            ConfigurationError: Transport options are incomplete
        """
        self._smtp_kwargs = smtp_kwargs(transport_options)
        self._credentials = _credentials(transport_options)
        self._message_options = dict(message_options or {})
        self._smtp_factory = smtp_factory

        logger.info(
            "Mail channel initialized",
            extra={
                "host": self._smtp_kwargs["hostname"],
                "port": self._smtp_kwargs.get("port"),
                "use_tls": self._smtp_kwargs["use_tls"],
            },
        )

    @classmethod
    def from_settings(cls, settings: MailServiceSettings) -> MailChannel:
        """Build from the mail service section.

        Raises:
            ConfigurationError: Options are malformed or incomplete
        """
        return cls(
            transport_options=load_options(settings.transport_options, "mail transport options"),
            message_options=load_options(settings.message_options, "mail message options"),
        )

    def build_email(self, message: MailMessage, addresses: Sequence[str]) -> EmailMessage:
        """Build the MIME message for a batch of addresses."""
        email = EmailMessage()
        for key, header in HEADER_OPTIONS.items():
            value = self._message_options.get(key)
            if value:
                email[header] = ", ".join(value) if isinstance(value, list | tuple) else str(value)
        email["To"] = ", ".join(addresses)
        email["Subject"] = message.subject
        email.set_content(message.text)
        return email

    async def send(
        self,
        message: MailMessage,
        recipients: Sequence[MailSubscriber],
    ) -> list[DeliveryOutcome]:
        """Send ``message`` to all recipients in one SMTP transaction.

        A connection, authentication or protocol failure fails every
        recipient. Recipients refused individually by the server fail on
        their own.
        """
        addresses = [r.address for r in recipients]
        if not addresses:
            return []

        try:
            errors = await self._transmit(self.build_email(message, addresses))
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.warning("Mail delivery failed: %s", exc, extra={"recipients": len(addresses)})
            return [self._failed(address, str(exc), getattr(exc, "code", None)) for address in addresses]

        outcomes = []
        for address in addresses:
            refused = errors.get(address)
            if refused is None:
                outcomes.append(DeliveryOutcome(subscriber_id=address, channel=self.channel, success=True))
            else:
                code, text = refused.code, refused.message
                outcomes.append(self._failed(address, text, code))
        if errors:
            logger.warning("Some mail recipients refused", extra={"refused": sorted(errors)})
        return outcomes

    async def verify(self) -> None:
        """Open and close an SMTP session to check connectivity.

        Raises:
            ChannelUnavailableError: The server could not be reached or
                refused the login
        """
        try:
            smtp = self._smtp_factory(**self._smtp_kwargs)
            async with smtp:
                if self._credentials:
                    await smtp.login(*self._credentials)
                await smtp.noop()
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.debug("Mail connection check failed: %s", exc)
            raise ChannelUnavailableError(str(exc) or type(exc).__name__) from exc

    async def _transmit(self, email: EmailMessage) -> dict[str, Any]:
        smtp = self._smtp_factory(**self._smtp_kwargs)
        async with smtp:
            if self._credentials:
                await smtp.login(*self._credentials)
            errors, _response = await smtp.send_message(email)
        return dict(errors or {})

    def _failed(self, address: str, detail: str, code: int | None = None) -> DeliveryOutcome:
        return DeliveryOutcome(
            subscriber_id=address,
            channel=self.channel,
            success=False,
            error_detail=detail,
            status_code=code,
        )
