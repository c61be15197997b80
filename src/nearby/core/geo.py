from __future__ import annotations
from dataclasses import dataclass
from math import atan2, cos, isfinite, radians, sin, sqrt

from nearby.core.errors import InvalidCoordinateError

"""
Geospatial helpers.

Distances are great-circle (haversine) kilometers on a spherical Earth. This is
accurate to well under 1% for search radii, so no GIS dependency is needed.
"""

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float


def check_coordinate(point: Coordinate) -> Coordinate:
    """Return `point` unchanged, or raise InvalidCoordinateError if out of range."""
    lat = point.latitude
    lon = point.longitude
    if not isfinite(lat) or not -90.0 <= lat <= 90.0:
        raise InvalidCoordinateError(f"latitude out of range: {lat!r}")
    if not isfinite(lon) or not -180.0 <= lon <= 180.0:
        raise InvalidCoordinateError(f"longitude out of range: {lon!r}")
    return point


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Compute great-circle distance in kilometers between two points."""
    check_coordinate(a)
    check_coordinate(b)
    if a == b:
        return 0.0

    lat1 = radians(a.latitude)
    lat2 = radians(b.latitude)
    dlat = radians(b.latitude - a.latitude)
    dlon = radians(b.longitude - a.longitude)

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Rounding can push h a hair outside [0, 1] for antipodal points.
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * atan2(sqrt(h), sqrt(1 - h))


def is_within_radius(origin: Coordinate, point: Coordinate, radius_km: float) -> bool:
    return distance_km(origin, point) <= float(radius_km)
