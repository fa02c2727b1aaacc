"""
services/pricing.py  –  Tiered delivery price estimate

    price = min_fare
          + km in [0, short_max]            * per_km_short
          + km in (short_max, medium_max]   * per_km_medium
          + km beyond medium_max            * per_km_long

e.g. 10 km with defaults: 800 + 8*100 + 2*140 = 1880
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from services.financial import to_decimal
from utils.distance import approximate_road_distance


def tiered_price(distance_km: float, table: dict) -> Decimal:
    km = max(to_decimal(distance_km), Decimal(0))
    short_max = table["short_max_km"]
    medium_max = table["medium_max_km"]

    short_km = min(km, short_max)
    medium_km = min(max(km - short_max, Decimal(0)), medium_max - short_max)
    long_km = max(km - medium_max, Decimal(0))

    total = (
        table["min_fare"]
        + short_km * table["per_km_short"]
        + medium_km * table["per_km_medium"]
        + long_km * table["per_km_long"]
    )
    # Whole currency units
    return total.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def estimate_distance(pickup: dict, dropoff: dict, road_factor: float) -> Optional[float]:
    """Road-distance estimate in km, or None when a coordinate is missing."""
    coords = (pickup.get("lat"), pickup.get("lng"), dropoff.get("lat"), dropoff.get("lng"))
    if any(c is None for c in coords):
        return None
    return round(approximate_road_distance(*coords, road_factor=road_factor), 1)


def estimate_price(pickup: dict, dropoff: dict, table: dict, road_factor: float) -> dict:
    distance_km = estimate_distance(pickup, dropoff, road_factor)
    price = tiered_price(distance_km or 0, table)
    return {
        "distance_km": distance_km,
        "price": price,
        "source": "distance" if distance_km is not None else "minimum_fare",
    }
