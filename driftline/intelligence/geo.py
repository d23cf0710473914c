"""
Geodesy primitives
Great-circle distance, initial bearing and altitude-weighted 3D distance.
All trig in radians internally; public API takes and returns degrees.
"""

import math
from dataclasses import dataclass
from typing import Iterable


EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float
    altitude_m: float = 0.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = math.sin(delta_lat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lon = math.radians(lon2 - lon1)

    x = math.sin(delta_lon) * math.cos(lat2_rad)
    y = math.cos(lat1_rad) * math.sin(lat2_rad) - math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(delta_lon)

    bearing = (math.degrees(math.atan2(x, y)) + 360) % 360
    # (-tiny + 360) % 360 rounds to 360.0 in floating point
    return 0.0 if bearing >= 360 else bearing


def distance_km(p1, p2) -> float:
    """Haversine distance between two objects exposing ``lat``/``lon`` in degrees."""
    return haversine_km(p1.lat, p1.lon, p2.lat, p2.lon)


def distance_3d(p1, p2, altitude_weight: float = 0.1) -> float:
    """Horizontal km combined with the altitude gap.

    ``altitude_weight`` is how many horizontal km one vertical km counts as:
    with 0.1, a 10 km altitude difference weighs like 1 km of horizontal travel.
    """
    horizontal = distance_km(p1, p2)
    vertical_km = abs(p1.altitude_m - p2.altitude_m) / 1000
    return math.sqrt(horizontal ** 2 + (vertical_km * altitude_weight) ** 2)


def bearing_deg(p1, p2) -> float:
    return calculate_bearing(p1.lat, p1.lon, p2.lat, p2.lon)


def bearing_difference(b1: float, b2: float) -> float:
    """Smallest angle between two bearings, in [0, 180]."""
    diff = abs(b1 - b2) % 360
    return 360 - diff if diff > 180 else diff


def circular_mean_lon(lons: Iterable[float]) -> float:
    sin_sum = 0.0
    cos_sum = 0.0
    count = 0
    for lon in lons:
        rad = math.radians(lon)
        sin_sum += math.sin(rad)
        cos_sum += math.cos(rad)
        count += 1

    if count == 0:
        return 0.0
    if abs(sin_sum) < 1e-12 and abs(cos_sum) < 1e-12:
        # evenly spread around the globe, no meaningful mean
        return 0.0

    return math.degrees(math.atan2(sin_sum / count, cos_sum / count))
