"""Unit tests for the mail channel."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import aiosmtplib
import pytest

from push_notifier.core.exceptions import ChannelUnavailableError, ConfigurationError
from push_notifier.core.settings.notifier import MailServiceSettings
from push_notifier.features.notifications.channels.mail import MailChannel, smtp_kwargs
from push_notifier.features.notifications.models import MailMessage, MailSubscriber

TRANSPORT = {
    "host": "smtp.example.com",
    "port": 587,
    "requireTLS": True,
    "auth": {"user": "boat", "pass": "secret"},
}


def smtp_factory(errors: dict | None = None, fail: Exception | None = None) -> MagicMock:
    """Build an aiosmtplib.SMTP stand-in usable as ``async with``."""
    smtp = MagicMock()
    smtp.__aenter__ = AsyncMock(return_value=smtp)
    smtp.__aexit__ = AsyncMock(return_value=None)
    smtp.login = AsyncMock()
    smtp.noop = AsyncMock()
    smtp.send_message = AsyncMock(return_value=(errors or {}, "OK"))
    if fail is not None:
        smtp.__aenter__.side_effect = fail
    return MagicMock(return_value=smtp)


def recipients(*addresses: str) -> list[MailSubscriber]:
    return [MailSubscriber(address) for address in addresses]


@pytest.mark.unit
class TestSmtpKwargs:
    """Transport option translation."""

    def test_translates_camel_case_option_names(self):
        kwargs = smtp_kwargs({**TRANSPORT, "tls": {"rejectUnauthorized": False}, "connectionTimeout": 5000})

        assert kwargs == {
            "hostname": "smtp.example.com",
            "port": 587,
            "use_tls": False,
            "start_tls": True,
            "timeout": 5.0,
            "validate_certs": False,
        }

    def test_secure_means_implicit_tls(self):
        assert smtp_kwargs({"host": "h", "secure": True})["use_tls"] is True

    def test_host_is_required(self):
        with pytest.raises(ConfigurationError):
            smtp_kwargs({"port": 25})


@pytest.mark.unit
class TestMailChannel:
    """Test suite for MailChannel.send and verify."""

    @pytest.mark.asyncio
    async def test_send_one_message_to_all_recipients(self):
        factory = smtp_factory()
        channel = MailChannel(TRANSPORT, {"from": "boat@example.com"}, smtp_factory=factory)

        outcomes = await channel.send(MailMessage("ALARM notification", "hot"), recipients("a@b.com", "c@d.com"))

        smtp = factory.return_value
        smtp.login.assert_awaited_once_with("boat", "secret")
        email = smtp.send_message.await_args.args[0]
        assert email["To"] == "a@b.com, c@d.com"
        assert email["From"] == "boat@example.com"
        assert email["Subject"] == "ALARM notification"
        assert email.get_content().strip() == "hot"
        assert [o.success for o in outcomes] == [True, True]

    @pytest.mark.asyncio
    async def test_connection_failure_fails_every_recipient(self):
        factory = smtp_factory(fail=aiosmtplib.SMTPConnectError("refused"))
        channel = MailChannel(TRANSPORT, smtp_factory=factory)

        outcomes = await channel.send(MailMessage("s", "t"), recipients("a@b.com", "c@d.com"))

        assert [o.success for o in outcomes] == [False, False]
        assert all("refused" in o.error_detail for o in outcomes)

    @pytest.mark.asyncio
    async def test_refused_recipient_fails_alone(self):
        errors = {"c@d.com": aiosmtplib.SMTPResponse(550, "no such user")}
        channel = MailChannel(TRANSPORT, smtp_factory=smtp_factory(errors=errors))

        outcomes = await channel.send(MailMessage("s", "t"), recipients("a@b.com", "c@d.com"))

        assert [o.success for o in outcomes] == [True, False]
        assert outcomes[1].status_code == 550

    @pytest.mark.asyncio
    async def test_no_recipients_sends_nothing(self):
        factory = smtp_factory()
        channel = MailChannel(TRANSPORT, smtp_factory=factory)

        assert await channel.send(MailMessage("s", "t"), []) == []
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_verify(self):
        factory = smtp_factory()
        channel = MailChannel(TRANSPORT, smtp_factory=factory)

        await channel.verify()

        factory.return_value.noop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_verify_failure(self):
        channel = MailChannel(TRANSPORT, smtp_factory=smtp_factory(fail=OSError("unreachable")))

        with pytest.raises(ChannelUnavailableError, match="unreachable"):
            await channel.verify()


@pytest.mark.unit
class TestMailChannelSettings:
    def test_from_settings_accepts_json_strings(self):
        settings = MailServiceSettings(
            transport_options='{"host": "smtp.example.com"}',
            message_options='{"from": "boat@example.com"}',
        )

        channel = MailChannel.from_settings(settings)

        assert channel.build_email(MailMessage("s", "t"), ["a@b.com"])["From"] == "boat@example.com"

    def test_from_settings_rejects_bad_json(self):
        with pytest.raises(ConfigurationError):
            MailChannel.from_settings(MailServiceSettings(transport_options="{not json"))

    def test_from_settings_requires_transport(self):
        with pytest.raises(ConfigurationError):
            MailChannel.from_settings(MailServiceSettings())
