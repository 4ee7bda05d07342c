"""Modular Pydantic Settings v2 configuration.

Settings are split by domain (app / redis / relay / logging), each with its
own env prefix and optional YAML/conf.d source:

    from webhook_relay.core.settings import get_relay_settings

    settings = get_relay_settings()
    print(settings.concurrency)

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
    clear_settings_cache,
    get_app_settings,
    get_logging_settings,
    get_redis_settings,
    get_relay_settings,
    load_settings,
)
from .logs import LoggingSettings
from .redis import RedisSettings
from .relay import RelaySettings
from .unified import Settings, get_settings

__all__ = [
    "AppSettings",
    "LoggingSettings",
    "RedisSettings",
    "RelaySettings",
    "Settings",
    "clear_settings_cache",
    "get_app_settings",
    "get_logging_settings",
    "get_redis_settings",
    "get_relay_settings",
    "get_settings",
    "load_settings",
]
