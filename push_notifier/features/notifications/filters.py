"""Per-channel trigger-state filtering."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from push_notifier.core.settings.notifier import ServicesSettings
from push_notifier.features.notifications.models import Channel, ChannelConfig, NotificationState


class StateFilter:
    """Decides whether a notification state warrants delivery on a channel.

    Fail-closed: a channel that is missing, disabled or has no trigger
    states admits nothing.
    """

    def __init__(self, configs: Mapping[Channel, ChannelConfig] | None = None) -> None:
        self._configs = dict(configs or {})

    @classmethod
    def from_settings(
        cls,
        services: ServicesSettings,
        enabled: Iterable[Channel],
    ) -> StateFilter:
        """Build from service settings.

        Args:
            services: Configured service sections.
            enabled: Channels whose adapter was successfully configured.
        """
        enabled = set(enabled)
        sections = {Channel.MAIL: services.mail, Channel.PUSH: services.push}
        configs = {
            channel: ChannelConfig(
                trigger_states=frozenset(NotificationState(s) for s in section.trigger_states),
                enabled=channel in enabled,
            )
            for channel, section in sections.items()
            if section is not None
        }
        return cls(configs)

    def config(self, channel: Channel) -> ChannelConfig:
        return self._configs.get(channel, ChannelConfig())

    def admits(self, channel: Channel, state: NotificationState | str) -> bool:
        """True if ``state`` is in the channel's trigger set."""
        config = self._configs.get(channel)
        if config is None or not config.enabled or not config.trigger_states:
            return False
        try:
            return NotificationState(state) in config.trigger_states
        except ValueError:
            return False
