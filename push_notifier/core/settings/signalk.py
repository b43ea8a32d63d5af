"""Signal K host connection settings.

Environment variables use SIGNALK_ prefix.
Example: SIGNALK_BASE_URL=https://localhost:3443, SIGNALK_VERIFY_TLS=false
"""

from __future__ import annotations

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_signalk_yaml_source


class SignalKSettings(BaseSettings):
    """Where and how to reach the Signal K server.

    The server usually runs on the same machine with a self-signed
    certificate, so TLS verification is off by default.
    """

    base_url: str = Field(
        default="https://localhost:3443",
        description="Base URL of the Signal K server",
    )
    verify_tls: bool = Field(
        default=False,
        description="Validate the server certificate",
    )
    timeout: float = Field(
        default=10.0,
        ge=0.5,
        le=120.0,
        description="HTTP request timeout in seconds",
    )
    login_path: str = Field(default="/signalk/v1/auth/login")
    stream_path: str = Field(default="/signalk/v1/stream")
    resources_path: str = Field(default="/signalk/v2/api/resources")
    stream_context: str = Field(
        default="vessels.self",
        description="Delta context the notification subscriptions apply to",
    )
    reconnect_delay: float = Field(
        default=5.0,
        ge=0.1,
        le=300.0,
        description="Seconds to wait before reconnecting a dropped stream",
    )

    @computed_field
    @property
    def stream_url(self) -> str:
        """Websocket URL of the delta stream (no initial subscriptions)."""
        base = self.base_url.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base.removeprefix("https://")
        elif base.startswith("http://"):
            base = "ws://" + base.removeprefix("http://")
        return f"{base}{self.stream_path}?subscribe=none"

    model_config = SettingsConfigDict(
        env_prefix="SIGNALK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings source precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_signalk_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
