"""Delivery channel adapters."""

from __future__ import annotations

from .base import ChannelAdapter, load_options
from .mail import MailChannel
from .push import PushChannel, VapidDetails

__all__ = [
    "ChannelAdapter",
    "MailChannel",
    "PushChannel",
    "VapidDetails",
    "load_options",
]
