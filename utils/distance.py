# utils/distance.py
# Straight-line distance between two GPS coordinates
# Used to estimate delivery prices when the customer gives no price

import math


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate straight-line distance between two GPS points (in km).
    """
    R = 6371  # Earth's radius in km
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return R * c


def approximate_road_distance(
    origin_lat: float,
    origin_lng: float,
    dest_lat: float,
    dest_lng: float,
    road_factor: float = 1.3,
) -> float:
    """Haversine distance scaled by *road_factor* to approximate road km."""
    return haversine_distance(origin_lat, origin_lng, dest_lat, dest_lng) * road_factor
