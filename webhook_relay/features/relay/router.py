"""Relay API router.

- POST   /relay/{source}/{event}  queue an inbound webhook
- GET    /routes                  list routes
- POST   /routes                  add or replace a route
- GET    /routes/{route_id}       fetch one route
- DELETE /routes/{route_id}       remove a route
- GET    /stats                   queue counts
- GET    /stats/failures          recent terminal failures
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, Request, Response, status

from webhook_relay.core.exceptions import NotFoundException, ServiceUnavailableException
from webhook_relay.features.relay.schemas import (
    FailureRecordRead,
    QueueStatsRead,
    RelayResponse,
    Route,
)
from webhook_relay.features.relay.service import RelayService

logger = logging.getLogger(__name__)

router = APIRouter()


# ──────────────────────────────────────────────────────────────
# Dependencies
# ──────────────────────────────────────────────────────────────


def get_relay_service(request: Request) -> RelayService:
    """Dependency returning the service created by the lifespan."""
    service = getattr(request.app.state, "relay_service", None)
    if service is None:
        raise ServiceUnavailableException(detail="Relay service is not running")
    return service


RelayServiceDep = Annotated[RelayService, Depends(get_relay_service)]


# ──────────────────────────────────────────────────────────────
# Ingestion
# ──────────────────────────────────────────────────────────────


@router.post(
    "/relay/{source}/{event}",
    response_model=RelayResponse,
    summary="Relay a webhook",
    description="Queue the request body for every enabled route matching source and event.",
    tags=["relay"],
)
async def relay_webhook(
    source: str,
    event: str,
    request: Request,
    service: RelayServiceDep,
    data: Annotated[dict[str, Any] | None, Body(description="Webhook body (JSON object)")] = None,
) -> RelayResponse:
    """Queue a webhook; delivery happens later in the worker pool.

    An empty body is relayed as ``{}``. Request headers are forwarded as the
    payload's ``headers``.
    """
    job_ids = await service.relay(source, event, data or {}, dict(request.headers))
    return RelayResponse(queued=len(job_ids), job_ids=job_ids)


# ──────────────────────────────────────────────────────────────
# Route management
# ──────────────────────────────────────────────────────────────


@router.get(
    "/routes",
    response_model=list[Route],
    summary="List routes",
    tags=["routes"],
)
async def list_routes(service: RelayServiceDep) -> list[Route]:
    return service.get_routes()


@router.post(
    "/routes",
    response_model=Route,
    status_code=status.HTTP_201_CREATED,
    summary="Add or replace a route",
    tags=["routes"],
)
async def add_route(route: Route, service: RelayServiceDep) -> Route:
    """Insert the route, replacing any existing route with the same id."""
    return service.add_route(route)


@router.get(
    "/routes/{route_id}",
    response_model=Route,
    summary="Get a route",
    tags=["routes"],
)
async def get_route(route_id: str, service: RelayServiceDep) -> Route:
    route = service.get_route(route_id)
    if route is None:
        raise NotFoundException(detail=f"Route {route_id} not found", extra={"route_id": route_id})
    return route


@router.delete(
    "/routes/{route_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a route",
    tags=["routes"],
)
async def delete_route(route_id: str, service: RelayServiceDep) -> Response:
    """Remove a route. Removing an unknown id is not an error."""
    service.remove_route(route_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ──────────────────────────────────────────────────────────────
# Statistics
# ──────────────────────────────────────────────────────────────


@router.get(
    "/stats",
    response_model=QueueStatsRead,
    summary="Queue statistics",
    tags=["stats"],
)
async def get_stats(service: RelayServiceDep) -> QueueStatsRead:
    stats = await service.get_stats()
    return QueueStatsRead(**stats.as_dict())


@router.get(
    "/stats/failures",
    response_model=list[FailureRecordRead],
    summary="Recent terminal failures",
    tags=["stats"],
)
async def get_failures(
    service: RelayServiceDep,
    limit: Annotated[int, Query(ge=1, le=1000, description="Maximum records")] = 20,
) -> list[FailureRecordRead]:
    """Jobs that ended in the Failed state, newest first."""
    return await service.recent_failures(limit)
