"""Great-circle distance and direction helpers.

Every distance in the package goes through :func:`distance_km`, so track
totals always equal the sum of adjacent haversine distances.
"""

from __future__ import annotations

import math
from typing import Protocol, Sequence

from .utils import hours_between

EARTH_RADIUS_KM = 6371.0

CARDINAL_LABELS = (
    "N",
    "NNE",
    "NE",
    "ENE",
    "E",
    "ESE",
    "SE",
    "SSE",
    "S",
    "SSW",
    "SW",
    "WSW",
    "W",
    "WNW",
    "NW",
    "NNW",
)


class Position(Protocol):
    @property
    def latitude(self) -> float: ...

    @property
    def longitude(self) -> float: ...


class TimedPosition(Position, Protocol):
    @property
    def captured_at_ms(self) -> int: ...


def distance_km(a: Position, b: Position) -> float:
    """Return the haversine distance between two positions in kilometres."""

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push h marginally outside [0, 1] for antipodal points.
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def bearing_degrees(a: Position, b: Position) -> float:
    """Return the initial bearing from ``a`` to ``b`` in ``[0, 360)``."""

    if a.latitude == b.latitude and a.longitude == b.longitude:
        return 0.0
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lon = math.radians(b.longitude - a.longitude)
    x = math.sin(d_lon) * math.cos(lat2)
    y = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(
        lat2
    ) * math.cos(d_lon)
    bearing = (math.degrees(math.atan2(x, y)) + 360.0) % 360.0
    # (-tiny + 360) % 360 can round to exactly 360.0.
    return 0.0 if bearing >= 360.0 else bearing


def cardinal(bearing: float) -> str:
    """Map a bearing to the nearest of the 16 compass labels."""

    index = int(math.floor((bearing % 360.0) / 22.5 + 0.5)) % 16
    return CARDINAL_LABELS[index]


def speed_kmh(a: TimedPosition, b: TimedPosition) -> float:
    """Return the speed between two timed positions, 0 for a zero interval."""

    hours = hours_between(a.captured_at_ms, b.captured_at_ms)
    if hours == 0:
        return 0.0
    return distance_km(a, b) / hours


def total_distance_km(points: Sequence[Position]) -> float:
    total = 0.0
    for prev, curr in zip(points, points[1:]):
        total += distance_km(prev, curr)
    return total


def route_average_speed_kmh(points: Sequence[TimedPosition]) -> float:
    """Average speed across the span from the first to the last capture."""

    if len(points) < 2:
        return 0.0
    hours = hours_between(points[0].captured_at_ms, points[-1].captured_at_ms)
    if hours <= 0:
        return 0.0
    return total_distance_km(points) / hours


__all__ = [
    "EARTH_RADIUS_KM",
    "CARDINAL_LABELS",
    "distance_km",
    "bearing_degrees",
    "cardinal",
    "speed_kmh",
    "total_distance_km",
    "route_average_speed_kmh",
]
