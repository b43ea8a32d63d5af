"""Modular Pydantic Settings v2 configuration.

Each domain has its own frozen settings model and cached loader:

    from push_notifier.core.settings import get_notifier_settings

    settings = get_notifier_settings()
    print(settings.paths)

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. YAML/conf.d files (conf/<domain>.yaml, conf/<domain>.d/*.yaml)
    3. Environment variables
    4. .env file
    5. secrets_dir
"""

from __future__ import annotations

from .app import AppSettings
from .loader import (
    clear_all_caches,
    get_app_settings,
    get_logging_settings,
    get_notifier_settings,
    get_signalk_settings,
)
from .logs import LoggingSettings
from .notifier import (
    MailServiceSettings,
    NotifierSettings,
    PushServiceSettings,
    ServicesSettings,
    SubscriberDatabaseSettings,
)
from .signalk import SignalKSettings

__all__ = [
    "AppSettings",
    "LoggingSettings",
    "MailServiceSettings",
    "NotifierSettings",
    "PushServiceSettings",
    "ServicesSettings",
    "SignalKSettings",
    "SubscriberDatabaseSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_logging_settings",
    "get_notifier_settings",
    "get_signalk_settings",
]
