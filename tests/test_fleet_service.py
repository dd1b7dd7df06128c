from datetime import datetime, timezone

import pytest

from pickup_dispatch.errors import ConstraintViolation, InfrastructureError, NotFound, ValidationError
from pickup_dispatch.models.domain import Coordinates, VehicleStatus, VehicleType
from pickup_dispatch.persistence.memory import InMemoryDriverVehicleBindings, InMemoryVehicleRepository
from pickup_dispatch.services.fleet.service import VehicleDraft, VehicleService, normalize_plate

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _service() -> VehicleService:
    counter = iter(range(1, 1000))
    return VehicleService(
        InMemoryVehicleRepository(),
        InMemoryDriverVehicleBindings(),
        clock=lambda: NOW,
        id_factory=lambda: f"veh-{next(counter)}",
    )


def _draft(**overrides) -> VehicleDraft:
    values = dict(
        plate_number="ba 2 kha 1234",
        model="Dyna",
        brand="Toyota",
        year=2020,
        vehicle_type=VehicleType.TRUCK,
        capacity_volume_m3=8.0,
        capacity_weight_kg=3000.0,
    )
    values.update(overrides)
    return VehicleDraft(**values)


def test_normalize_plate_uppercases() -> None:
    assert normalize_plate("  ba-2 kha 1234 ") == "BA-2 KHA 1234"


@pytest.mark.parametrize("plate", ["", "   ", "BA#12"])
def test_normalize_plate_rejects_bad_format(plate: str) -> None:
    with pytest.raises(ValidationError):
        normalize_plate(plate)


def test_create_registers_vehicle() -> None:
    service = _service()

    vehicle = service.create(_draft())

    assert vehicle.plate_number == "BA 2 KHA 1234"
    assert vehicle.created_at == NOW
    assert service.get(vehicle.id) == vehicle


@pytest.mark.parametrize("year", [1989, 2028])
def test_create_rejects_out_of_range_year(year: int) -> None:
    with pytest.raises(ValidationError):
        _service().create(_draft(year=year))


def test_create_accepts_next_model_year() -> None:
    assert _service().create(_draft(year=2027)).year == 2027


def test_create_rejects_duplicate_plate() -> None:
    service = _service()
    service.create(_draft())

    with pytest.raises(ConstraintViolation):
        service.create(_draft(plate_number="BA 2 KHA 1234"))


def test_available_only_skips_bound_and_inactive_vehicles() -> None:
    service = _service()
    free = service.create(_draft(plate_number="A 1"))
    bound = service.create(_draft(plate_number="A 2"))
    service.create(_draft(plate_number="A 3", status=VehicleStatus.MAINTENANCE))
    service.bindings.bind("drv-1", bound.id)

    assert [vehicle.id for vehicle in service.list(available_only=True)] == [free.id]
    assert [vehicle.id for vehicle in service.list(driver_id="drv-1")] == [bound.id]
    assert service.assigned_driver(bound.id) == "drv-1"


def test_delete_releases_bound_driver() -> None:
    service = _service()
    vehicle = service.create(_draft())
    service.bindings.bind("drv-1", vehicle.id)

    service.delete(vehicle.id)

    assert service.bindings.vehicle_for_driver("drv-1") is None
    with pytest.raises(NotFound):
        service.get(vehicle.id)
    assert service.list() == []


class _UnreachableBindings(InMemoryDriverVehicleBindings):
    def release_vehicle(self, vehicle_id: str) -> str | None:
        raise InfrastructureError("driver_vehicles is unreachable")


def test_delete_keeps_vehicle_when_binding_cannot_be_released() -> None:
    bindings = _UnreachableBindings()
    service = VehicleService(
        InMemoryVehicleRepository(), bindings, clock=lambda: NOW, id_factory=lambda: "veh-1"
    )
    vehicle = service.create(_draft())
    bindings.bind("drv-1", vehicle.id)

    with pytest.raises(InfrastructureError):
        service.delete(vehicle.id)

    assert service.get(vehicle.id).is_deleted is False
    assert bindings.vehicle_for_driver("drv-1") == vehicle.id


def test_delete_releases_binding_made_while_delete_was_saving() -> None:
    bindings = InMemoryDriverVehicleBindings()

    class _BindDuringUpdate(InMemoryVehicleRepository):
        def update(self, vehicle, expected_version):
            if vehicle.is_deleted:
                bindings.bind("drv-1", vehicle.id)
            return super().update(vehicle, expected_version)

    service = VehicleService(_BindDuringUpdate(), bindings, clock=lambda: NOW, id_factory=lambda: "veh-1")
    vehicle = service.create(_draft())

    service.delete(vehicle.id)

    assert bindings.vehicle_for_driver("drv-1") is None


def test_delete_unknown_vehicle_is_not_found() -> None:
    with pytest.raises(NotFound):
        _service().delete("veh-404")


def test_update_location_records_position_and_time() -> None:
    service = _service()
    vehicle = service.create(_draft())

    moved = service.update_location(vehicle.id, Coordinates(longitude=85.32, latitude=27.72))

    assert moved.current_location == Coordinates(longitude=85.32, latitude=27.72)
    assert moved.location_updated_at == NOW
    assert moved.version == vehicle.version + 1
    assert service.get(vehicle.id).current_location == moved.current_location


def test_update_location_of_deleted_vehicle_is_not_found() -> None:
    service = _service()
    vehicle = service.create(_draft())
    service.delete(vehicle.id)

    with pytest.raises(NotFound):
        service.update_location(vehicle.id, Coordinates(longitude=85.32, latitude=27.72))


def test_vehicles_near_orders_by_distance_and_skips_unlocated() -> None:
    service = _service()
    far = service.create(_draft(plate_number="A 1"))
    close = service.create(_draft(plate_number="A 2"))
    service.create(_draft(plate_number="A 3"))
    outside = service.create(_draft(plate_number="A 4"))
    service.update_location(far.id, Coordinates(longitude=85.33, latitude=27.72))
    service.update_location(close.id, Coordinates(longitude=85.321, latitude=27.72))
    service.update_location(outside.id, Coordinates(longitude=85.5, latitude=27.72))

    near = service.vehicles_near(Coordinates(longitude=85.32, latitude=27.72), max_distance_m=2000)

    assert [vehicle.id for vehicle in near] == [close.id, far.id]
