"""
Tiered price estimate.
"""
from decimal import Decimal

from services.pricing import estimate_price, tiered_price
from utils.distance import haversine_distance

TABLE = {
    "min_fare": Decimal("800"),
    "per_km_short": Decimal("100"),
    "per_km_medium": Decimal("140"),
    "per_km_long": Decimal("200"),
    "short_max_km": Decimal("8"),
    "medium_max_km": Decimal("15"),
}


def test_tiers():
    assert tiered_price(0, TABLE) == Decimal("800")
    assert tiered_price(5, TABLE) == Decimal("1300")
    assert tiered_price(10, TABLE) == Decimal("1880")
    # 800 + 8*100 + 7*140 + 5*200
    assert tiered_price(20, TABLE) == Decimal("3580")


def test_rounds_to_whole_units():
    assert tiered_price(2.345, TABLE) == Decimal("1035")


def test_missing_coordinates_fall_back_to_minimum_fare():
    result = estimate_price({"address": "A"}, {"address": "B", "lat": 6.5, "lng": 3.3}, TABLE, 1.3)
    assert result == {"distance_km": None, "price": Decimal("800"), "source": "minimum_fare"}


def test_distance_uses_road_factor():
    pickup = {"address": "Yaba", "lat": 6.5095, "lng": 3.3711}
    dropoff = {"address": "Ikeja", "lat": 6.6018, "lng": 3.3515}
    straight = haversine_distance(6.5095, 3.3711, 6.6018, 3.3515)

    result = estimate_price(pickup, dropoff, TABLE, 1.3)
    assert result["source"] == "distance"
    assert abs(result["distance_km"] - round(straight * 1.3, 1)) < 0.05
    assert result["price"] > Decimal("800")
