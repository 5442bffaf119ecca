# geo_utils.py
# Pure mathematical / geographic helper functions.
# No side effects, no imports from other project modules.

import math
from typing import Sequence, Tuple

import numpy as np


EARTH_RADIUS_KM = 6371.0
METERS_PER_MILE = 1609.34


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in kilometres.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Distance in km.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_km_many(lat: float, lon: float, lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """
    Distance in km from one point to every point of an array, same formula
    as haversine_km().
    """
    rlat = math.radians(lat)
    rlats = np.radians(lats)
    d_lat = rlats - rlat
    d_lon = np.radians(lons) - math.radians(lon)
    a = np.sin(d_lat / 2) ** 2 + math.cos(rlat) * np.cos(rlats) * np.sin(d_lon / 2) ** 2
    # rounding can push a a hair above 1 for antipodal points
    a = np.clip(a, 0.0, 1.0)
    return EARTH_RADIUS_KM * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def nearest_point(lat: float, lon: float, lats: np.ndarray, lons: np.ndarray) -> Tuple[int, float]:
    """
    Linear scan for the closest point.

    Returns:
        (index, distance_km). Ties resolve to the lowest index.
    """
    distances = haversine_km_many(lat, lon, lats, lons)
    index = int(np.argmin(distances))
    return index, float(distances[index])


def segment_lengths_km(points: Sequence[Tuple[float, float]]) -> np.ndarray:
    """Lengths of the consecutive segments of a (lat, lon) polyline."""
    return np.array([
        haversine_km(a[0], a[1], b[0], b[1])
        for a, b in zip(points, points[1:])
    ], dtype=float)


def meters_to_miles(meters: float) -> float:
    return meters / METERS_PER_MILE
