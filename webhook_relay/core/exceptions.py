"""Custom exception classes for the relay service."""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    Exceptions raised at the HTTP boundary inherit from this class and are
    rendered as RFC 7807 Problem Details.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Error type identifier (used in RFC 7807 problem details).
        title: Short, human-readable summary of the problem type.
        instance: URI reference that identifies the specific occurrence of the problem.
        extra: Additional context-specific information about the error.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        """Get default title for HTTP status code."""
        titles = {
            400: "Bad Request",
            404: "Not Found",
            422: "Unprocessable Entity",
            500: "Internal Server Error",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "Error")


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    def __init__(
        self,
        detail: str,
        type: str = "not-found",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=404,
            detail=detail,
            type=type,
            title="Not Found",
            instance=instance,
            extra=extra,
        )


class ValidationException(AppException):
    """Exception raised for malformed routes or payloads at the boundary.

    Example:
            raise ValidationException(
            detail="Webhook body must be a JSON object",
            extra={"field": "data"}
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "validation-error",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=422,
            detail=detail,
            type=type,
            title="Validation Error",
            instance=instance,
            extra=extra,
        )


class ServiceUnavailableException(AppException):
    """Exception raised when the queue backend cannot be reached."""

    def __init__(
        self,
        detail: str,
        type: str = "service-unavailable",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=503,
            detail=detail,
            type=type,
            title="Service Unavailable",
            instance=instance,
            extra=extra,
        )


# ──────────────────────────────────────────────────────────────
# Relay engine errors (never rendered directly to webhook senders)
# ──────────────────────────────────────────────────────────────


class RelayError(Exception):
    """Base class for errors raised inside the relay engine."""


class ConfigurationError(RelayError):
    """Startup configuration is invalid. The process must not start."""


class QueueError(RelayError):
    """The job queue backend rejected or failed an operation."""


class RouteNotFoundError(RelayError):
    """A job references a route that no longer exists.

    Terminal: retrying cannot bring a deleted route back.
    """

    def __init__(self, route_id: str) -> None:
        self.route_id = route_id
        super().__init__(f"Route {route_id} not found")


class DeliveryError(RelayError):
    """Failure to reach a destination or get a 2xx response from it.

    Attributes:
        status_code: HTTP status returned by the destination, if any.
        retry_scheduled: Whether a follow-up attempt was enqueued.
        next_attempt: Attempt number of the follow-up job.
        delay_ms: Delay before the follow-up job becomes eligible.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
    ) -> None:
        self.status_code = status_code
        self.retry_scheduled = False
        self.next_attempt: int | None = None
        self.delay_ms: int | None = None
        super().__init__(message)

    def mark_retry(self, next_attempt: int, delay_ms: int) -> None:
        """Record that the worker re-enqueued the delivery."""
        self.retry_scheduled = True
        self.next_attempt = next_attempt
        self.delay_ms = delay_ms

    @property
    def is_terminal(self) -> bool:
        return not self.retry_scheduled


class TransformationError(DeliveryError):
    """Payload transformation failed. Retried like any other delivery failure."""


__all__ = [
    "AppException",
    "ConfigurationError",
    "DeliveryError",
    "NotFoundException",
    "QueueError",
    "RelayError",
    "RouteNotFoundError",
    "ServiceUnavailableException",
    "TransformationError",
    "ValidationException",
]
