"""Payload transformations applied before delivery.

A route's ``transformation`` is a mapping of transformation kind to options.
Each known kind has a registered function taking and returning the payload
``data``. Unknown kinds are ignored; kinds run in the order they appear.

    register_transformation("dropKeys", lambda data, keys: {...})
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import logging
from typing import Any

from webhook_relay.core.exceptions import TransformationError

from .schemas import WebhookPayload

logger = logging.getLogger(__name__)

TransformFn = Callable[[dict[str, Any], Any], dict[str, Any]]

_TRANSFORMS: dict[str, TransformFn] = {}


def register_transformation(kind: str, fn: TransformFn) -> None:
    """Register (or replace) the function handling ``kind``."""
    _TRANSFORMS[kind] = fn


def registered_transformations() -> list[str]:
    return list(_TRANSFORMS)


def map_keys(data: dict[str, Any], key_map: Mapping[str, str]) -> dict[str, Any]:
    """Rename top-level keys of ``data``; keys absent from ``key_map`` pass through."""
    if not isinstance(key_map, Mapping):
        msg = f"mapKeys expects a mapping, got {type(key_map).__name__}"
        raise TypeError(msg)
    return {key_map.get(key) or key: value for key, value in data.items()}


register_transformation("mapKeys", map_keys)


def apply_transformation(
    payload: WebhookPayload,
    transformation: Mapping[str, Any] | None,
) -> WebhookPayload:
    """Return a payload with its ``data`` reshaped by ``transformation``.

    The input payload is never mutated. With no transformation, or none of a
    known kind, the same payload is returned.

    Raises:
        TransformationError: If a transformation function fails.
    """
    if not transformation:
        return payload

    data = payload.data
    applied = False
    for kind, options in transformation.items():
        fn = _TRANSFORMS.get(kind)
        if fn is None:
            logger.debug("Ignoring unknown transformation", extra={"kind": kind})
            continue
        try:
            data = fn(data, options)
        except Exception as e:
            msg = f"Transformation {kind} failed: {e}"
            raise TransformationError(msg) from e
        applied = True

    if not applied:
        return payload
    return payload.model_copy(update={"data": data})


__all__ = [
    "TransformFn",
    "apply_transformation",
    "map_keys",
    "register_transformation",
    "registered_transformations",
]
