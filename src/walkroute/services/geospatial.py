"""Geospatial helper functions.

Straight-line (great-circle) distances and travel-time estimates. Real road
or sidewalk routing is out of scope; every estimate here is haversine based.
"""

from __future__ import annotations

import math
from typing import Mapping, Optional, Sequence

import numpy as np

EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_MILES = 3959.0

# Average speeds (mph) per travel mode.
TRAVEL_SPEEDS = {
    "walking": 3.0,
    "biking": 12.0,
    "driving": 25.0,
    "transit": 15.0,
}

# Fixed minutes added on top of each estimate (parking, transfers, crossings).
TRAVEL_BUFFERS = {
    "walking": 1,
    "biking": 2,
    "driving": 5,
    "transit": 3,
}
DEFAULT_TRAVEL_BUFFER = 2

Coordinate = Mapping[str, Optional[float]]


def _haversine(lat1: float, lon1: float, lat2: float, lon2: float, radius: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return radius * c


def distance_between(
    lat1: Optional[float],
    lon1: Optional[float],
    lat2: Optional[float],
    lon2: Optional[float],
    unit: str = "miles",
) -> Optional[float]:
    """Great-circle distance rounded to 2 decimals, or ``None`` if a coordinate is missing."""

    if lat1 is None or lon1 is None or lat2 is None or lon2 is None:
        return None
    radius = EARTH_RADIUS_MILES if unit == "miles" else EARTH_RADIUS_KM
    return round(_haversine(float(lat1), float(lon1), float(lat2), float(lon2), radius), 2)


def travel_minutes(distance_miles: float, speed_mph: float = TRAVEL_SPEEDS["walking"]) -> float:
    return distance_miles / speed_mph * 60.0


def estimated_travel_time(
    lat1: Optional[float],
    lon1: Optional[float],
    lat2: Optional[float],
    lon2: Optional[float],
    mode: str = "walking",
) -> Optional[int]:
    """Whole-minute travel estimate for ``mode`` including its fixed buffer."""

    distance = distance_between(lat1, lon1, lat2, lon2, unit="miles")
    if distance is None:
        return None
    speed = TRAVEL_SPEEDS.get(mode, TRAVEL_SPEEDS["walking"])
    base_time = round(travel_minutes(distance, speed))
    return base_time + TRAVEL_BUFFERS.get(mode, DEFAULT_TRAVEL_BUFFER)


def estimated_drive_time(
    lat1: Optional[float], lon1: Optional[float], lat2: Optional[float], lon2: Optional[float]
) -> Optional[int]:
    return estimated_travel_time(lat1, lon1, lat2, lon2, mode="driving")


def distance_matrix(coordinates: Sequence[Coordinate], unit: str = "miles") -> list[list[Optional[float]]]:
    """Pairwise distances; ``matrix[i][j]`` is the distance from location i to j."""

    count = len(coordinates)
    if count == 0:
        return []
    matrix = np.zeros((count, count), dtype=float)
    missing: set[tuple[int, int]] = set()
    for i in range(count):
        for j in range(i + 1, count):
            distance = distance_between(
                coordinates[i].get("lat"),
                coordinates[i].get("lng"),
                coordinates[j].get("lat"),
                coordinates[j].get("lng"),
                unit=unit,
            )
            if distance is None:
                missing.update({(i, j), (j, i)})
                continue
            matrix[i, j] = matrix[j, i] = distance
    rows: list[list[Optional[float]]] = matrix.tolist()
    for i, j in missing:
        rows[i][j] = None
    return rows


def total_route_distance(coordinates: Sequence[Coordinate], unit: str = "miles") -> float:
    if len(coordinates) < 2:
        return 0
    total = 0.0
    for first, second in zip(coordinates, coordinates[1:]):
        distance = distance_between(first.get("lat"), first.get("lng"), second.get("lat"), second.get("lng"), unit=unit)
        if distance is not None:
            total += distance
    return round(total, 2)


def total_route_time(coordinates: Sequence[Coordinate], mode: str = "walking") -> int:
    if len(coordinates) < 2:
        return 0
    total = 0
    for first, second in zip(coordinates, coordinates[1:]):
        minutes = estimated_travel_time(first.get("lat"), first.get("lng"), second.get("lat"), second.get("lng"), mode=mode)
        if minutes is not None:
            total += minutes
    return total


def within_distance(
    lat1: Optional[float],
    lon1: Optional[float],
    lat2: Optional[float],
    lon2: Optional[float],
    threshold_miles: float,
) -> bool:
    distance = distance_between(lat1, lon1, lat2, lon2, unit="miles")
    if distance is None:
        return False
    return distance <= threshold_miles


def locations_within_radius(
    center: Coordinate, locations: Sequence[Coordinate], radius_miles: float
) -> list[Coordinate]:
    """Return the locations (with any extra keys intact) inside ``radius_miles`` of ``center``."""

    return [
        location
        for location in locations
        if within_distance(center.get("lat"), center.get("lng"), location.get("lat"), location.get("lng"), radius_miles)
    ]


def calculate_center(coordinates: Sequence[Coordinate]) -> Optional[dict[str, float]]:
    """Centroid of the given points, or ``None`` for no points."""

    if not coordinates:
        return None
    points = np.array([[float(c["lat"]), float(c["lng"])] for c in coordinates], dtype=float)
    avg_lat, avg_lng = points.mean(axis=0)
    return {"lat": round(float(avg_lat), 6), "lng": round(float(avg_lng), 6)}


def to_coordinate(lat: float, lng: float) -> dict[str, float]:
    return {"lat": float(lat), "lng": float(lng)}
