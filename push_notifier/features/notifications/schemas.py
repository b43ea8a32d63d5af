"""Pydantic schemas for the notifier HTTP surface."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from push_notifier.features.notifications.models import ConnectionState, NotificationState


class StatusResponse(BaseModel):
    """Connection state and configured services."""

    connection: ConnectionState = Field(description="Outbound connectivity via the mail transport")
    services: list[str] = Field(default_factory=list, description="Configured delivery services")
    reason: str | None = Field(default=None, description="Why the connection is down or unknown")


class VapidResponse(BaseModel):
    """VAPID identity a browser needs to create a push subscription."""

    model_config = ConfigDict(populate_by_name=True)

    public_key: str = Field(alias="publicKey", serialization_alias="publicKey")
    subject: str


class PushRequest(BaseModel):
    """Notification to push to a single subscriber."""

    state: NotificationState
    method: str | list[str] = Field(description="Notification method marker (e.g. visual, sound)")
    message: str = Field(min_length=1)
