"""Conversion between domain objects and JSON-compatible storage rows."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from ..models.domain import (
    Address,
    CollectedWaste,
    CollectionRequest,
    Coordinates,
    Frequency,
    RequestPriority,
    RequestStatus,
    Role,
    Route,
    RouteMetrics,
    RouteSchedule,
    RouteStatus,
    RouteStop,
    StopAddress,
    StopPriority,
    StopWasteType,
    TimeRange,
    TimeSlot,
    UserRef,
    Vehicle,
    VehicleStatus,
    VehicleType,
    WasteCategory,
    WasteItem,
    Weekday,
)


def _iso(value: date | datetime | None) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _point(coordinates: Coordinates) -> dict:
    return {"type": "Point", "coordinates": coordinates.as_pair()}


def _from_point(value: dict) -> Coordinates:
    return Coordinates.from_pair(value["coordinates"])


def request_to_record(request: CollectionRequest) -> dict[str, Any]:
    address = request.address
    return {
        "id": request.id,
        "request_id": request.request_code,
        "customer_id": request.customer_id,
        "requested_date": _iso(request.requested_date),
        "requested_time": request.requested_time.value,
        "preferred_time_range": {
            "start": request.preferred_time_range.start,
            "end": request.preferred_time_range.end,
        },
        "waste_types": [
            {
                "category": item.category.value,
                "estimated_weight": item.estimated_weight,
                "description": item.description,
            }
            for item in request.waste_items
        ],
        # Derived column kept for reporting queries; never read back.
        "total_estimated_weight": request.total_estimated_weight,
        "pickup_location": _point(request.location),
        "address": {
            "street": address.street,
            "apartment": address.apartment,
            "city": address.city,
            "state": address.state,
            "zip_code": address.zip_code,
            "country": address.country,
            "landmark": address.landmark,
            "special_instructions": address.special_instructions,
        },
        "status": request.status.value,
        "priority": request.priority.value,
        "assigned_driver": request.assigned_driver,
        "assigned_vehicle": request.assigned_vehicle,
        "assigned_route": request.assigned_route,
        "actual_collection_time": _iso(request.actual_collection_time),
        "actual_waste_collected": [
            {"category": waste.category, "weight": waste.weight, "notes": waste.notes}
            for waste in request.actual_waste_collected
        ],
        "total_weight_collected": request.total_weight_collected,
        "actual_cost": request.actual_cost,
        "customer_notes": request.customer_notes,
        "driver_notes": request.driver_notes,
        "after_photos": list(request.after_photos),
        "customer_rating": request.customer_rating,
        "customer_feedback": request.customer_feedback,
        "cancellation_reason": request.cancellation_reason,
        "rescheduled_from": request.rescheduled_from,
        "rescheduled_to": request.rescheduled_to,
        "created_at": _iso(request.created_at),
        "updated_at": _iso(request.updated_at),
        "scheduled_at": _iso(request.scheduled_at),
        "confirmed_at": _iso(request.confirmed_at),
        "completed_at": _iso(request.completed_at),
        "cancelled_at": _iso(request.cancelled_at),
        "version": request.version,
    }


def request_from_record(row: dict[str, Any]) -> CollectionRequest:
    address = row.get("address") or {}
    time_range = row.get("preferred_time_range") or {}
    return CollectionRequest(
        id=str(row["id"]),
        request_code=row["request_id"],
        customer_id=str(row["customer_id"]),
        requested_date=_parse_date(row["requested_date"]),
        requested_time=TimeSlot(row["requested_time"]),
        preferred_time_range=TimeRange(start=time_range["start"], end=time_range["end"]),
        waste_items=tuple(
            WasteItem(
                category=WasteCategory(item["category"]),
                estimated_weight=float(item.get("estimated_weight") or 0.0),
                description=item.get("description"),
            )
            for item in row.get("waste_types") or []
        ),
        location=_from_point(row["pickup_location"]),
        address=Address(
            street=address.get("street", ""),
            apartment=address.get("apartment"),
            city=address.get("city", ""),
            state=address.get("state", ""),
            zip_code=address.get("zip_code", ""),
            country=address.get("country") or "Nepal",
            landmark=address.get("landmark"),
            special_instructions=address.get("special_instructions"),
        ),
        status=RequestStatus(row["status"]),
        priority=RequestPriority(row.get("priority") or RequestPriority.NORMAL.value),
        assigned_driver=row.get("assigned_driver"),
        assigned_vehicle=row.get("assigned_vehicle"),
        assigned_route=row.get("assigned_route"),
        actual_collection_time=_parse_datetime(row.get("actual_collection_time")),
        actual_waste_collected=tuple(
            CollectedWaste(
                category=waste.get("category", ""),
                weight=float(waste.get("weight") or 0.0),
                notes=waste.get("notes") or "",
            )
            for waste in row.get("actual_waste_collected") or []
        ),
        total_weight_collected=row.get("total_weight_collected"),
        actual_cost=row.get("actual_cost"),
        customer_notes=row.get("customer_notes"),
        driver_notes=row.get("driver_notes"),
        after_photos=tuple(row.get("after_photos") or ()),
        customer_rating=row.get("customer_rating"),
        customer_feedback=row.get("customer_feedback"),
        cancellation_reason=row.get("cancellation_reason"),
        rescheduled_from=row.get("rescheduled_from"),
        rescheduled_to=row.get("rescheduled_to"),
        created_at=_parse_datetime(row.get("created_at")),
        updated_at=_parse_datetime(row.get("updated_at")),
        scheduled_at=_parse_datetime(row.get("scheduled_at")),
        confirmed_at=_parse_datetime(row.get("confirmed_at")),
        completed_at=_parse_datetime(row.get("completed_at")),
        cancelled_at=_parse_datetime(row.get("cancelled_at")),
        version=int(row.get("version") or 0),
    )


def stop_to_record(stop: RouteStop) -> dict[str, Any]:
    return {
        "stop_id": stop.stop_id,
        "address": {
            "street": stop.address.street,
            "area": stop.address.area,
            "city": stop.address.city,
            "zip_code": stop.address.zip_code,
        },
        "coordinates": _point(stop.coordinates),
        "customer_id": stop.customer_id,
        "waste_types": [waste.value for waste in stop.waste_types],
        "estimated_quantity": stop.estimated_quantity,
        "priority": stop.priority.value,
        "notes": stop.notes,
        "order": stop.order,
    }


def stop_from_record(row: dict[str, Any]) -> RouteStop:
    address = row.get("address") or {}
    return RouteStop(
        stop_id=str(row["stop_id"]),
        address=StopAddress(
            street=address.get("street", ""),
            area=address.get("area", ""),
            city=address.get("city") or "Kathmandu",
            zip_code=address.get("zip_code"),
        ),
        coordinates=_from_point(row["coordinates"]),
        customer_id=row.get("customer_id"),
        waste_types=tuple(StopWasteType(value) for value in row.get("waste_types") or ()),
        estimated_quantity=float(row.get("estimated_quantity") or 10.0),
        priority=StopPriority(row.get("priority") or StopPriority.MEDIUM.value),
        notes=row.get("notes"),
        order=int(row.get("order") or 1),
    )


def route_to_record(route: Route) -> dict[str, Any]:
    return {
        "id": route.id,
        "name": route.name,
        "description": route.description,
        "status": route.status.value,
        "assigned_driver": route.assigned_driver,
        "schedule": {
            "frequency": route.schedule.frequency.value,
            "days": [day.value for day in route.schedule.days],
            "start_time": route.schedule.start_time,
            "estimated_duration": route.schedule.estimated_duration_min,
        },
        "locations": [stop_to_record(stop) for stop in route.stops],
        "metrics": {
            "total_distance": route.metrics.total_distance_km,
            "estimated_fuel_cost": route.metrics.estimated_fuel_cost,
            "co2_emissions": route.metrics.co2_emissions_kg,
        },
        "last_optimized": _iso(route.last_optimized),
        "is_deleted": route.is_deleted,
        "created_at": _iso(route.created_at),
        "updated_at": _iso(route.updated_at),
        "version": route.version,
    }


def route_from_record(row: dict[str, Any]) -> Route:
    schedule = row.get("schedule") or {}
    metrics = row.get("metrics") or {}
    return Route(
        id=str(row["id"]),
        name=row["name"],
        description=row.get("description"),
        status=RouteStatus(row.get("status") or RouteStatus.ACTIVE.value),
        assigned_driver=row.get("assigned_driver"),
        schedule=RouteSchedule(
            frequency=Frequency(schedule.get("frequency") or Frequency.WEEKLY.value),
            days=tuple(Weekday(day) for day in schedule.get("days") or ()),
            start_time=schedule.get("start_time") or "08:00",
            estimated_duration_min=int(schedule.get("estimated_duration") or 240),
        ),
        stops=tuple(stop_from_record(stop) for stop in row.get("locations") or ()),
        metrics=RouteMetrics(
            total_distance_km=float(metrics.get("total_distance") or 0.0),
            estimated_fuel_cost=int(metrics.get("estimated_fuel_cost") or 0),
            co2_emissions_kg=float(metrics.get("co2_emissions") or 0.0),
        ),
        last_optimized=_parse_datetime(row.get("last_optimized")),
        is_deleted=bool(row.get("is_deleted", False)),
        created_at=_parse_datetime(row.get("created_at")),
        updated_at=_parse_datetime(row.get("updated_at")),
        version=int(row.get("version") or 0),
    )


def vehicle_to_record(vehicle: Vehicle) -> dict[str, Any]:
    return {
        "id": vehicle.id,
        "plate_number": vehicle.plate_number,
        "model": vehicle.model,
        "brand": vehicle.brand,
        "year": vehicle.year,
        "type": vehicle.vehicle_type.value,
        "capacity": {"volume": vehicle.capacity_volume_m3, "weight": vehicle.capacity_weight_kg},
        "status": vehicle.status.value,
        "current_location": _point(vehicle.current_location) if vehicle.current_location else None,
        "location_updated_at": _iso(vehicle.location_updated_at),
        "is_deleted": vehicle.is_deleted,
        "created_at": _iso(vehicle.created_at),
        "updated_at": _iso(vehicle.updated_at),
        "version": vehicle.version,
    }


def vehicle_from_record(row: dict[str, Any]) -> Vehicle:
    capacity = row.get("capacity") or {}
    return Vehicle(
        id=str(row["id"]),
        plate_number=row["plate_number"],
        model=row["model"],
        brand=row["brand"],
        year=int(row["year"]),
        vehicle_type=VehicleType(row["type"]),
        capacity_volume_m3=float(capacity.get("volume") or 0.0),
        capacity_weight_kg=float(capacity.get("weight") or 0.0),
        status=VehicleStatus(row.get("status") or VehicleStatus.ACTIVE.value),
        current_location=_from_point(row["current_location"]) if row.get("current_location") else None,
        location_updated_at=_parse_datetime(row.get("location_updated_at")),
        is_deleted=bool(row.get("is_deleted", False)),
        created_at=_parse_datetime(row.get("created_at")),
        updated_at=_parse_datetime(row.get("updated_at")),
        version=int(row.get("version") or 0),
    )


def user_from_record(row: dict[str, Any]) -> UserRef:
    return UserRef(
        id=str(row["id"]),
        role=Role(row["role"]),
        name=row.get("name") or "",
        is_active=(row.get("status") or "active") == "active",
    )
