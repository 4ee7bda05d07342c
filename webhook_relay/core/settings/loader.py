"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the process.
Invalid configuration surfaces as ConfigurationError so that entrypoints can
refuse to start.

Testing:
    In tests, clear the cache to force reload:
    get_relay_settings.cache_clear()

    Or build settings explicitly:
    settings = RelaySettings(queue_backend="memory")
"""

from __future__ import annotations

from functools import lru_cache
from typing import TypeVar

from pydantic import ValidationError
from pydantic_settings import BaseSettings

from webhook_relay.core.exceptions import ConfigurationError

from .app import AppSettings
from .logs import LoggingSettings
from .redis import RedisSettings
from .relay import RelaySettings

_SettingsT = TypeVar("_SettingsT", bound=BaseSettings)


def load_settings(settings_cls: type[_SettingsT]) -> _SettingsT:
    """Instantiate a settings class, converting validation failures.

    Raises:
        ConfigurationError: If any source provides an invalid value.
    """
    try:
        return settings_cls()
    except ValidationError as e:
        msg = f"Invalid {settings_cls.__name__} configuration: {e}"
        raise ConfigurationError(msg) from e


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings."""
    return load_settings(AppSettings)


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings."""
    return load_settings(LoggingSettings)


@lru_cache(maxsize=1)
def get_redis_settings() -> RedisSettings:
    """Get cached Redis settings."""
    return load_settings(RedisSettings)


@lru_cache(maxsize=1)
def get_relay_settings() -> RelaySettings:
    """Get cached relay engine settings (queue, workers, delivery, routes)."""
    return load_settings(RelaySettings)


def clear_settings_cache() -> None:
    """Drop every cached settings instance (tests, config reload)."""
    get_app_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_redis_settings.cache_clear()
    get_relay_settings.cache_clear()

    from .unified import get_settings

    get_settings.cache_clear()
