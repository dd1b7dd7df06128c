"""Collection route endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, status

from ...models.domain import Actor, Coordinates, Frequency, Role, Route, RouteStatus
from ...schemas.routes import (
    AssignRouteRequest,
    CreateRouteRequest,
    RouteResponse,
    RouteStopModel,
    UpdateRouteRequest,
)
from ..dependencies import ServiceContainer, get_actor, get_container
from ..errors import translate_errors

router = APIRouter(prefix="/routes", tags=["routes"])


def _response(container: ServiceContainer, route: Route) -> RouteResponse:
    return RouteResponse.from_domain(route, container.routes.next_scheduled_at(route))


@router.post("", response_model=RouteResponse, status_code=status.HTTP_201_CREATED)
def create_route(
    payload: CreateRouteRequest,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> RouteResponse:
    with translate_errors("create route"):
        route = container.routes.create(payload.to_draft())
    return _response(container, route)


@router.get("", response_model=List[RouteResponse], status_code=status.HTTP_200_OK)
def list_routes(
    status_filter: RouteStatus | None = Query(default=None, alias="status"),
    frequency: Frequency | None = Query(default=None),
    driver_id: str | None = Query(default=None),
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> List[RouteResponse]:
    if actor.role is Role.DRIVER:
        driver_id = actor.user_id
    with translate_errors("list routes"):
        routes = container.routes.list(
            statuses=(status_filter,) if status_filter else (),
            frequency=frequency,
            driver_id=driver_id,
        )
    return [_response(container, route) for route in routes]


@router.get("/scheduled/today", response_model=List[RouteResponse], status_code=status.HTTP_200_OK)
def list_routes_scheduled_today(
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> List[RouteResponse]:
    driver_id = actor.user_id if actor.role is Role.DRIVER else None
    with translate_errors("list routes scheduled today"):
        routes = container.routes.scheduled_today(driver_id=driver_id)
    return [_response(container, route) for route in routes]


@router.get("/near", response_model=List[RouteResponse], status_code=status.HTTP_200_OK)
def list_routes_near(
    longitude: float = Query(..., ge=-180, le=180),
    latitude: float = Query(..., ge=-90, le=90),
    max_distance: float = Query(default=5000, gt=0, description="Meters"),
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> List[RouteResponse]:
    with translate_errors("find routes near location"):
        routes = container.routes.routes_near(Coordinates(longitude=longitude, latitude=latitude), max_distance)
    return [_response(container, route) for route in routes]


@router.get("/{route_id}", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def get_route(
    route_id: str,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> RouteResponse:
    with translate_errors("load route"):
        route = container.routes.get(route_id)
    return _response(container, route)


@router.put("/{route_id}", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def update_route(
    route_id: str,
    payload: UpdateRouteRequest,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> RouteResponse:
    with translate_errors("update route"):
        route = container.routes.update(route_id, payload.to_changes())
    return _response(container, route)


@router.post("/{route_id}/stops", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def add_route_stop(
    route_id: str,
    payload: RouteStopModel,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> RouteResponse:
    with translate_errors("add route stop"):
        route = container.routes.add_stop(route_id, payload.to_domain())
    return _response(container, route)


@router.delete("/{route_id}/stops/{stop_id}", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def remove_route_stop(
    route_id: str,
    stop_id: str,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> RouteResponse:
    with translate_errors("remove route stop"):
        route = container.routes.remove_stop(route_id, stop_id)
    return _response(container, route)


@router.post("/{route_id}/optimize", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def optimize_route(
    route_id: str,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> RouteResponse:
    with translate_errors("optimize route"):
        route = container.routes.optimize_route(route_id)
    return _response(container, route)


@router.post("/{route_id}/assign", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def assign_route(
    route_id: str,
    payload: AssignRouteRequest,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> RouteResponse:
    with translate_errors("assign route"):
        route = container.assignments.assign_driver_to_route(route_id, payload.driver_id)
    return _response(container, route)


@router.post("/{route_id}/unassign", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def unassign_route(
    route_id: str,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> RouteResponse:
    with translate_errors("unassign route"):
        route = container.assignments.unassign_route_driver(route_id)
    return _response(container, route)


@router.post("/{route_id}/start", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def start_route(
    route_id: str,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> RouteResponse:
    with translate_errors("start route"):
        route = container.routes.start(route_id)
    return _response(container, route)


@router.post("/{route_id}/complete", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def complete_route(
    route_id: str,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> RouteResponse:
    with translate_errors("complete route"):
        route = container.routes.complete(route_id)
    return _response(container, route)


@router.delete("/{route_id}", status_code=status.HTTP_200_OK)
def delete_route(
    route_id: str,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> dict:
    with translate_errors("delete route"):
        route = container.routes.delete(route_id)
    return {"success": True, "message": f"Route {route.id} deleted"}
