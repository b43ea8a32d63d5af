"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process. In tests, call ``clear_all_caches()`` to force a reload, or build
settings objects directly with keyword overrides.
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .logs import LoggingSettings
from .notifier import NotifierSettings
from .signalk import SignalKSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings."""
    return AppSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings."""
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_notifier_settings() -> NotifierSettings:
    """Get cached notifier settings.

    Returns:
        Validated and frozen NotifierSettings instance.
    """
    return NotifierSettings()


@lru_cache(maxsize=1)
def get_signalk_settings() -> SignalKSettings:
    """Get cached Signal K host settings."""
    return SignalKSettings()


def clear_all_caches() -> None:
    """Clear every cached settings instance."""
    get_app_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_notifier_settings.cache_clear()
    get_signalk_settings.cache_clear()
