"""Vehicle endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...models.domain import Actor, Coordinates, Role
from ...schemas.vehicles import AssignVehicleRequest, CreateVehicleRequest, UpdateLocationRequest, VehicleResponse
from ..dependencies import ServiceContainer, get_actor, get_container
from ..errors import translate_errors

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.post("", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
def create_vehicle(
    payload: CreateVehicleRequest,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> VehicleResponse:
    with translate_errors("create vehicle"):
        vehicle = container.vehicles.create(payload.to_draft())
    return VehicleResponse.from_domain(vehicle)


@router.get("", response_model=List[VehicleResponse], status_code=status.HTTP_200_OK)
def list_vehicles(
    available: bool = Query(default=False, description="Only active vehicles without a driver"),
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> List[VehicleResponse]:
    # Drivers only see the vehicle bound to them.
    driver_id = actor.user_id if actor.role is Role.DRIVER else None
    with translate_errors("list vehicles"):
        vehicles = container.vehicles.list(available_only=available, driver_id=driver_id)
        return [
            VehicleResponse.from_domain(vehicle, container.vehicles.assigned_driver(vehicle.id))
            for vehicle in vehicles
        ]


@router.get("/near", response_model=List[VehicleResponse], status_code=status.HTTP_200_OK)
def list_vehicles_near(
    longitude: float = Query(..., ge=-180, le=180),
    latitude: float = Query(..., ge=-90, le=90),
    max_distance: float = Query(default=5000, gt=0, description="Meters"),
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> List[VehicleResponse]:
    with translate_errors("find vehicles near location"):
        vehicles = container.vehicles.vehicles_near(Coordinates(longitude=longitude, latitude=latitude), max_distance)
        return [
            VehicleResponse.from_domain(vehicle, container.vehicles.assigned_driver(vehicle.id))
            for vehicle in vehicles
        ]


@router.get("/{vehicle_id}", response_model=VehicleResponse, status_code=status.HTTP_200_OK)
def get_vehicle(
    vehicle_id: str,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> VehicleResponse:
    with translate_errors("load vehicle"):
        vehicle = container.vehicles.get(vehicle_id)
        return VehicleResponse.from_domain(vehicle, container.vehicles.assigned_driver(vehicle.id))


@router.put("/{vehicle_id}/location", response_model=VehicleResponse, status_code=status.HTTP_200_OK)
def update_vehicle_location(
    vehicle_id: str,
    payload: UpdateLocationRequest,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> VehicleResponse:
    with translate_errors("update vehicle location"):
        assigned_driver = container.vehicles.assigned_driver(vehicle_id)
        if actor.role is Role.DRIVER and assigned_driver != actor.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Drivers can only report the location of their assigned vehicle.",
            )
        vehicle = container.vehicles.update_location(vehicle_id, payload.to_domain())
    return VehicleResponse.from_domain(vehicle, assigned_driver)


@router.post("/{vehicle_id}/assign", response_model=VehicleResponse, status_code=status.HTTP_200_OK)
def assign_vehicle(
    vehicle_id: str,
    payload: AssignVehicleRequest,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> VehicleResponse:
    with translate_errors("assign vehicle"):
        vehicle = container.assignments.assign_vehicle_to_driver(vehicle_id, payload.driver_id)
    return VehicleResponse.from_domain(vehicle, payload.driver_id)


@router.post("/{vehicle_id}/unassign", response_model=VehicleResponse, status_code=status.HTTP_200_OK)
def unassign_vehicle(
    vehicle_id: str,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> VehicleResponse:
    with translate_errors("unassign vehicle"):
        container.assignments.unassign_vehicle(vehicle_id)
        vehicle = container.vehicles.get(vehicle_id, include_deleted=True)
    return VehicleResponse.from_domain(vehicle)


@router.delete("/{vehicle_id}", status_code=status.HTTP_200_OK)
def delete_vehicle(
    vehicle_id: str,
    actor: Actor = Depends(get_actor),
    container: ServiceContainer = Depends(get_container),
) -> dict:
    with translate_errors("delete vehicle"):
        vehicle = container.vehicles.delete(vehicle_id)
    return {"success": True, "message": f"Vehicle {vehicle.plate_number} deleted"}
