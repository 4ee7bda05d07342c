"""Unified settings composition for convenient access.

Usage:
    from webhook_relay.core.settings import get_settings

    settings = get_settings()
    print(settings.app.port)
    print(settings.relay.concurrency)

Each nested settings object is produced by its cached loader, so it keeps
its own env prefix and YAML source.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from .app import AppSettings
from .loader import (
    get_app_settings,
    get_logging_settings,
    get_redis_settings,
    get_relay_settings,
)
from .logs import LoggingSettings
from .redis import RedisSettings
from .relay import RelaySettings


@dataclass(frozen=True)
class Settings:
    """All settings domains in one object."""

    app: AppSettings
    logging: LoggingSettings
    redis: RedisSettings
    relay: RelaySettings

    def validate_all(self) -> list[str]:
        """Return cross-domain configuration problems (empty when valid)."""
        problems: list[str] = []
        if (
            self.relay.queue_backend == "redis"
            and self.redis.max_connections <= self.relay.concurrency
        ):
            problems.append(
                f"REDIS_MAX_CONNECTIONS ({self.redis.max_connections}) must exceed "
                f"RELAY_CONCURRENCY ({self.relay.concurrency}): each consumer holds a blocking connection",
            )
        if (
            self.relay.queue_backend == "redis"
            and self.relay.poll_interval_seconds >= self.redis.socket_timeout
        ):
            problems.append(
                "RELAY_POLL_INTERVAL_SECONDS must be shorter than REDIS_SOCKET_TIMEOUT",
            )
        return problems


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached unified settings."""
    return Settings(
        app=get_app_settings(),
        logging=get_logging_settings(),
        redis=get_redis_settings(),
        relay=get_relay_settings(),
    )
