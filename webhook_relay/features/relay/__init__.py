"""Relay feature: routes, transformation, delivery and the worker loop.

Only dependency-free pieces are re-exported here; import the service,
worker and router from their modules.
"""

from .routes import RouteTable, route_matches
from .schemas import RelayJob, RetryConfig, Route, WebhookPayload
from .transform import apply_transformation, register_transformation

__all__ = [
    "RelayJob",
    "RetryConfig",
    "Route",
    "RouteTable",
    "WebhookPayload",
    "apply_transformation",
    "register_transformation",
    "route_matches",
]
