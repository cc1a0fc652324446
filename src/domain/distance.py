"""
Distance calculation using the Haversine formula.

Assumption
----------
We use great-circle (Haversine) distance instead of a real routing engine
(OSRM / Google Maps) to keep the project self-contained and runnable
locally without external API keys.  Pickups around one airport are a few
kilometres apart, where the spherical error is negligible.

Complexity: O(1) per call, O(k) for a centroid of k points.
"""

from __future__ import annotations

import math
from typing import Iterable

from .entities import Location
from .errors import InvalidCoordinateError

EARTH_RADIUS_KM = 6_371.0


def _check_finite(*points: Location) -> None:
    for p in points:
        if not (math.isfinite(p.latitude) and math.isfinite(p.longitude)):
            raise InvalidCoordinateError(f"Non-finite coordinate: {p}")


def haversine_km(a: Location, b: Location) -> float:
    """Return the great-circle distance in **km** between two points."""
    _check_finite(a, b)
    lat1_r, lat2_r = math.radians(a.latitude), math.radians(b.latitude)
    dlat = math.radians(b.latitude - a.latitude)
    dlng = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, h)))


def within_radius(a: Location, b: Location, radius_km: float) -> bool:
    return haversine_km(a, b) <= radius_km


def centroid(points: Iterable[Location]) -> Location:
    """Arithmetic mean of latitudes and of longitudes."""
    points = list(points)
    if not points:
        raise InvalidCoordinateError("Centroid of an empty point set")
    _check_finite(*points)
    n = len(points)
    return Location(
        latitude=sum(p.latitude for p in points) / n,
        longitude=sum(p.longitude for p in points) / n,
    )
