from __future__ import annotations

import math
from typing import Protocol

from toll_pricing.services.types import GeoPoint

EARTH_RADIUS_METERS = 6_371_000.0
METERS_PER_DEGREE = 111_320.0


class DistanceMetric(Protocol):
    def distance(self, a: GeoPoint, b: GeoPoint) -> float: ...

    def radius(self, meters: float) -> float: ...


class PlanarDegreeMetric:
    """Planar distance in degrees; meters are converted at the equator scale.

    Good enough for a single toll plaza. Not valid at high latitudes or over
    long distances.
    """

    def distance(self, a: GeoPoint, b: GeoPoint) -> float:
        return math.hypot(b.latitude - a.latitude, b.longitude - a.longitude)

    def radius(self, meters: float) -> float:
        return meters / METERS_PER_DEGREE


class HaversineMetric:
    def distance(self, a: GeoPoint, b: GeoPoint) -> float:
        return haversine_meters(a.latitude, a.longitude, b.latitude, b.longitude)

    def radius(self, meters: float) -> float:
        return meters


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = (
        math.sin(dlat / 2.0) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2.0) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    if math.isnan(latitude) or math.isnan(longitude):
        return False
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


def bounding_box_margins(radius_meters: float, latitude: float) -> tuple[float, float]:
    """Latitude/longitude half-widths in degrees covering ``radius_meters``."""
    lat_margin = radius_meters / METERS_PER_DEGREE
    lon_scale = max(math.cos(math.radians(latitude)), 0.01)
    return lat_margin, lat_margin / lon_scale
