"""Signal K host integration: login, path lookup, subscriber resources and the delta stream."""

from push_notifier.infra.signalk.client import SignalKClient
from push_notifier.infra.signalk.resources import ResourceSubscriberStore
from push_notifier.infra.signalk.stream import SignalKStream, decode_delta

__all__ = [
    "ResourceSubscriberStore",
    "SignalKClient",
    "SignalKStream",
    "decode_delta",
]
