"""In-memory route table shared by the relay engine and the worker pool.

Readers never block: every mutation builds a new dict and swaps it in under
a writer lock, so a reader always iterates a complete, unchanging snapshot.
"""

from __future__ import annotations

from collections.abc import Iterable
import logging
import threading
from uuid import UUID

from .schemas import Route

logger = logging.getLogger(__name__)


def route_matches(route: Route, source: str, event: str) -> bool:
    """Return True if ``route`` should receive ``source``/``event``.

    This is a prefix/suffix heuristic, not a pattern language:

    - source side: ``sourceEvent == "*"`` or ``sourceEvent`` starts with ``source``
    - event side: the segment after the last ``:`` is ``"*"`` or
      ``sourceEvent`` ends with ``event``

    So ``"github:push"`` also matches source ``"git"`` and event ``"sh"``.
    Disabled routes never match.
    """
    if not route.enabled:
        return False
    pattern = route.source_event
    source_ok = pattern == "*" or pattern.startswith(source)
    event_ok = pattern.rsplit(":", 1)[-1] == "*" or pattern.endswith(event)
    return source_ok and event_ok


class RouteTable:
    """Registry of relay routes keyed by id, in insertion order."""

    def __init__(self, routes: Iterable[Route] = ()) -> None:
        self._write_lock = threading.Lock()
        self._routes: dict[str, Route] = {}
        for route in routes:
            self.add(route)

    @staticmethod
    def _key(route_id: UUID | str) -> str:
        return str(route_id).lower()

    def add(self, route: Route) -> Route:
        """Insert or replace a route by id. Replacement keeps the original position."""
        key = self._key(route.id)
        with self._write_lock:
            routes = dict(self._routes)
            replaced = key in routes
            routes[key] = route
            self._routes = routes
        logger.info(
            "Route replaced" if replaced else "Route added",
            extra={"route_id": key, "source_event": route.source_event},
        )
        return route

    def remove(self, route_id: UUID | str) -> bool:
        """Delete a route if present. Returns whether anything was removed."""
        key = self._key(route_id)
        with self._write_lock:
            if key not in self._routes:
                return False
            routes = dict(self._routes)
            del routes[key]
            self._routes = routes
        logger.info("Route removed", extra={"route_id": key})
        return True

    def get(self, route_id: UUID | str) -> Route | None:
        return self._routes.get(self._key(route_id))

    def list(self) -> list[Route]:
        return list(self._routes.values())

    def matching(self, source: str, event: str) -> list[Route]:
        """Enabled routes matching ``source``/``event``, in insertion order."""
        return [route for route in self._routes.values() if route_matches(route, source, event)]

    def __len__(self) -> int:
        return len(self._routes)

    def __contains__(self, route_id: object) -> bool:
        if not isinstance(route_id, UUID | str):
            return False
        return self._key(route_id) in self._routes


__all__ = ["RouteTable", "route_matches"]
