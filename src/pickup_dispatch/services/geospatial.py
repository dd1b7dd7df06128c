"""Geospatial helper functions and route-level travel metrics."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from ..config import settings
from ..models.domain import Coordinates, RouteMetrics

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(origin: Coordinates, destination: Coordinates) -> float:
    return haversine_km(origin.latitude, origin.longitude, destination.latitude, destination.longitude)


def path_distance_km(points: Sequence[Coordinates]) -> float:
    """Sum of great-circle legs between consecutive points; zero for fewer than two."""

    if len(points) < 2:
        return 0.0
    return sum(distance_km(points[i], points[i + 1]) for i in range(len(points) - 1))


def round_half_up(value: float, places: int = 0) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


@dataclass(slots=True, frozen=True)
class FuelProfile:
    efficiency_km_per_liter: float
    price_per_liter: float
    co2_kg_per_liter: float

    @classmethod
    def from_settings(cls) -> "FuelProfile":
        return cls(
            efficiency_km_per_liter=settings.fuel_efficiency_km_per_liter,
            price_per_liter=settings.fuel_price_per_liter,
            co2_kg_per_liter=settings.co2_kg_per_liter,
        )


def compute_route_metrics(points: Sequence[Coordinates], profile: FuelProfile) -> RouteMetrics:
    """Distance, fuel cost and CO2 for an ordered list of stop coordinates.

    Cost and emissions are derived from the unrounded distance; only the
    reported values are rounded (distance and CO2 to 2 places, cost to an
    integer).
    """

    total = path_distance_km(points)
    liters = total / profile.efficiency_km_per_liter
    return RouteMetrics(
        total_distance_km=round_half_up(total, 2),
        estimated_fuel_cost=int(round_half_up(liters * profile.price_per_liter)),
        co2_emissions_kg=round_half_up(liters * profile.co2_kg_per_liter, 2),
    )
