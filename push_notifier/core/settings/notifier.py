"""Notifier settings: watch list, subscriber database and delivery services.

Environment variables use NOTIFIER_ prefix with ``__`` as the nested
delimiter, e.g. ``NOTIFIER_CREDENTIALS=push-notifier:secret`` or
``NOTIFIER_SERVICES__PUSH__SEND_FAILURE_LIMIT=10``. The watch list and
service sections normally come from ``conf/notifier.yaml``.

Camel-case keys from existing plugin configuration files (``email``/``webpush``,
``states``, ``triggerStates``, ``transportOptions``...) are accepted as
aliases so an existing configuration file loads unchanged.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_notifier_yaml_source

NotificationStateName = Literal["normal", "alert", "warn", "alarm", "emergency"]

DEFAULT_TRIGGER_STATES: tuple[NotificationStateName, ...] = ("alarm", "emergency")
DEFAULT_SEND_FAILURE_LIMIT = 5

# Transport and message options may be a mapping or a JSON document string.
OptionsValue = dict[str, Any] | str | None


class _FrozenSection(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class SubscriberDatabaseSettings(_FrozenSection):
    """Host resource used to persist subscribers."""

    resource_type: str = Field(
        default="push-notifier",
        validation_alias=AliasChoices("resource_type", "resourceType"),
    )
    resource_provider_id: str = Field(
        default="resources-provider",
        validation_alias=AliasChoices("resource_provider_id", "resourceProviderId"),
    )


class MailServiceSettings(_FrozenSection):
    """Email delivery over SMTP."""

    trigger_states: tuple[NotificationStateName, ...] = Field(
        default=DEFAULT_TRIGGER_STATES,
        validation_alias=AliasChoices("trigger_states", "triggerStates", "states"),
    )
    transport_options: OptionsValue = Field(
        default=None,
        validation_alias=AliasChoices("transport_options", "transportOptions"),
        description="SMTP transport options (host, port, secure, auth.user, auth.pass)",
    )
    message_options: OptionsValue = Field(
        default=None,
        validation_alias=AliasChoices("message_options", "messageOptions"),
        description="Defaults merged into every message (from, replyTo...)",
    )
    connection_check_interval_minutes: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices(
            "connection_check_interval_minutes",
            "connectionCheckIntervalMinutes",
            "connectionCheckInterval",
        ),
    )


class PushServiceSettings(_FrozenSection):
    """Web push delivery with VAPID."""

    trigger_states: tuple[NotificationStateName, ...] = Field(
        default=DEFAULT_TRIGGER_STATES,
        validation_alias=AliasChoices("trigger_states", "triggerStates", "states"),
    )
    transport_options: OptionsValue = Field(
        default=None,
        validation_alias=AliasChoices("transport_options", "transportOptions"),
        description="Push transport options; vapid.{privateKey,publicKey,subject}",
    )
    send_failure_limit: int = Field(
        default=DEFAULT_SEND_FAILURE_LIMIT,
        ge=0,
        validation_alias=AliasChoices("send_failure_limit", "sendFailureLimit"),
        description="Failed sends tolerated before a subscriber is evicted",
    )
    ttl: int = Field(default=10000, ge=0, description="Push message time-to-live in seconds")


class ServicesSettings(_FrozenSection):
    """Delivery channels. A missing section disables that channel."""

    mail: MailServiceSettings | None = Field(
        default=None,
        validation_alias=AliasChoices("mail", "email"),
    )
    push: PushServiceSettings | None = Field(
        default=None,
        validation_alias=AliasChoices("push", "webpush"),
    )


class NotifierSettings(BaseSettings):
    """Notification dispatch configuration."""

    credentials: SecretStr = Field(
        default=SecretStr("push-notifier:"),
        description="'username:password' used to log in to Signal K",
    )
    paths: tuple[str, ...] = Field(
        default=(),
        description="Watch list: literal paths, API URLs and restart:<path> directives",
    )
    subscriber_database: SubscriberDatabaseSettings = Field(
        default_factory=SubscriberDatabaseSettings,
        validation_alias=AliasChoices("subscriber_database", "subscriberDatabase"),
    )
    services: ServicesSettings = Field(default_factory=ServicesSettings)

    model_config = SettingsConfigDict(
        env_prefix="NOTIFIER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings source precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_notifier_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
