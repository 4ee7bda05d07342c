"""Pydantic schemas for the relay feature.

Wire format uses camelCase keys (``sourceEvent``, ``destinationUrl``,
``retryConfig``...) while Python code uses snake_case attributes.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

_http_url = TypeAdapter(HttpUrl)


class RelayModel(BaseModel):
    """Base model: camelCase aliases, immutable instances."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class JobState(str, Enum):
    """Worker state machine for a single relay job."""

    RECEIVED = "received"
    TRANSFORMING = "transforming"
    DELIVERING = "delivering"
    DELIVERED = "delivered"
    RETRY_SCHEDULED = "retry_scheduled"
    FAILED = "failed"


class RetryConfig(RelayModel):
    """Per-route retry policy."""

    max_attempts: int = Field(default=3, ge=1, le=10, description="Total delivery attempts allowed")
    delay_ms: int = Field(default=1000, ge=100, description="Base backoff delay in milliseconds")


class Route(RelayModel):
    """A configured rule mapping an event pattern to a destination."""

    id: UUID
    name: str = Field(..., min_length=1, description="Human-readable route name")
    source_event: str = Field(
        ...,
        min_length=1,
        description='Pattern such as "github:push", "github:*" or "*"',
    )
    destination_url: str = Field(..., description="Absolute http(s) URL receiving the payload")
    enabled: bool = Field(default=True, description="Disabled routes never match")
    transformation: dict[str, Any] | None = Field(
        default=None, description='Optional payload transformation, e.g. {"mapKeys": {"a": "b"}}'
    )
    retry_config: RetryConfig | None = Field(default=None, description="Retry policy; no retries when absent")

    @field_validator("destination_url")
    @classmethod
    def check_destination_url(cls, v: str) -> str:
        """Validate the destination is a well-formed absolute http(s) URL."""
        _http_url.validate_python(v)
        return v

    @field_validator("transformation")
    @classmethod
    def check_transformation(cls, v: dict[str, Any] | None) -> dict[str, Any] | None:
        """Validate the shape of known transformation kinds."""
        if v is None or "mapKeys" not in v:
            return v
        key_map = v["mapKeys"]
        if not isinstance(key_map, Mapping) or not all(
            isinstance(old, str) and isinstance(new, str) for old, new in key_map.items()
        ):
            msg = "mapKeys must map field names to field names"
            raise ValueError(msg)
        return v


class WebhookPayload(RelayModel):
    """Normalized representation of an inbound webhook event."""

    id: UUID
    source: str = Field(..., min_length=1)
    event: str = Field(..., min_length=1)
    timestamp: datetime
    data: dict[str, Any]
    headers: dict[str, str] | None = None


class RelayJob(RelayModel):
    """One scheduled delivery attempt of a payload to a specific route."""

    route_id: UUID
    payload: WebhookPayload
    attempt_number: int = Field(default=1, ge=1)

    def next_attempt(self) -> RelayJob:
        """Return the follow-up job for a retry."""
        return self.model_copy(update={"attempt_number": self.attempt_number + 1})


# ──────────────────────────────────────────────────────────────
# API responses
# ──────────────────────────────────────────────────────────────


class RelayResponse(RelayModel):
    """Response to an inbound webhook."""

    queued: int = Field(..., ge=0, description="Number of jobs enqueued")
    job_ids: list[str] = Field(default_factory=list, description="Queue job identifiers in route-match order")


class QueueStatsRead(RelayModel):
    """Queue counts read from the backend."""

    waiting: int
    active: int
    completed: int
    delayed: int = 0
    failed: int = 0
    retried: int = 0


class FailureRecordRead(RelayModel):
    """A job that reached the terminal Failed state."""

    job_id: str
    route_id: str | None = None
    payload_id: str | None = None
    attempt_number: int | None = None
    reason: str
    failed_at: datetime


__all__ = [
    "FailureRecordRead",
    "JobState",
    "QueueStatsRead",
    "RelayJob",
    "RelayModel",
    "RelayResponse",
    "RetryConfig",
    "Route",
    "WebhookPayload",
]
