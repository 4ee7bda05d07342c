"""Relay engine configuration settings.

Controls the queue backend, worker concurrency, delivery timeout, backoff
ceiling and the initial route table.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from webhook_relay.features.relay.schemas import Route

from ._sanitizers import sanitize_inline_numeric
from .yaml_sources import create_relay_yaml_source

QueueBackend = Literal["redis", "memory"]


class RelaySettings(BaseSettings):
    """Configuration for the relay engine and its worker pool.

    Environment variables use RELAY_ prefix.
    Example: RELAY_CONCURRENCY=20, RELAY_QUEUE_BACKEND=memory

    Initial routes are usually declared in conf/relay.yaml:

        routes:
          - id: 6f1c...
            name: github pushes
            sourceEvent: "github:push"
            destinationUrl: https://ci.example.com/hooks
            retryConfig: {maxAttempts: 5, delayMs: 1000}
    """

    # Queue
    queue_backend: QueueBackend = Field(
        default="redis",
        description="Job queue backend: redis (durable) or memory (single process, tests/dev)",
    )
    queue_name: str = Field(
        default="webhook-relay",
        min_length=1,
        max_length=100,
        pattern=r"^[a-zA-Z0-9_.:-]+$",
        description="Queue name, used as the Redis key prefix",
    )
    poll_interval_seconds: float = Field(
        default=1.0,
        gt=0.0,
        le=30.0,
        description="How long an idle consumer blocks waiting for an eligible job",
    )
    failure_history_size: int = Field(
        default=100,
        ge=0,
        le=10_000,
        description="Number of terminal failure records retained for inspection",
    )

    # Worker pool
    concurrency: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Maximum number of jobs processed simultaneously",
    )

    # Delivery
    delivery_timeout_ms: int = Field(
        default=30_000,
        ge=100,
        le=600_000,
        description="Timeout for a single outbound delivery (milliseconds)",
    )
    max_retry_delay_ms: int | None = Field(
        default=None,
        ge=100,
        description="Optional ceiling for exponential backoff. None keeps backoff unbounded",
    )
    send_idempotency_key: bool = Field(
        default=False,
        description="Send the payload id as an Idempotency-Key header on delivery",
    )

    # Routes loaded at startup
    routes: list[Route] = Field(
        default_factory=list,
        description="Initial route table",
    )

    @field_validator(
        "concurrency",
        "delivery_timeout_ms",
        "max_retry_delay_ms",
        "failure_history_size",
        mode="before",
    )
    @classmethod
    def _normalize_numeric(cls, value: Any) -> Any:
        """Allow numeric env vars with inline comments."""
        return sanitize_inline_numeric(value)

    @field_validator("routes")
    @classmethod
    def _check_unique_route_ids(cls, routes: list[Route]) -> list[Route]:
        """Reject duplicate route ids in the initial table."""
        seen: set[str] = set()
        for route in routes:
            key = str(route.id)
            if key in seen:
                msg = f"Duplicate route id in configuration: {key}"
                raise ValueError(msg)
            seen.add(key)
        return routes

    @property
    def delivery_timeout_seconds(self) -> float:
        return self.delivery_timeout_ms / 1000

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
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
            create_relay_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )


__all__ = ["QueueBackend", "RelaySettings"]
