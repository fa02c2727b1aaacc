"""
Revenue split at delivery time.
"""
from decimal import Decimal

import pytest

from services.financial import compute_financial, round2


def test_ten_percent_of_2000():
    split = compute_financial(2000, 10)
    assert split.gross_amount == Decimal("2000.00")
    assert split.commission_amount == Decimal("200.00")
    assert split.rider_net_amount == Decimal("1800.00")
    assert split.as_dict() == {
        "grossAmount": 2000.0,
        "commissionRatePct": 10.0,
        "commissionAmount": 200.0,
        "riderNetAmount": 1800.0,
    }


def test_commission_rounds_half_up():
    # 1234.5 * 12.5% = 154.3125 -> 154.31 ; 0.05 * 10% = 0.005 -> 0.01
    assert compute_financial("1234.50", "12.5").commission_amount == Decimal("154.31")
    assert compute_financial("0.05", 10).commission_amount == Decimal("0.01")


@pytest.mark.parametrize("gross,rate", [
    ("1999.99", 10),
    ("0", 15),
    ("1550", "7.5"),
    ("333.33", 33),
    ("100", 100),
])
def test_net_plus_commission_equals_gross(gross, rate):
    split = compute_financial(gross, rate)
    assert split.commission_amount + split.rider_net_amount == split.gross_amount
    assert split.rider_net_amount >= 0


def test_zero_rate_gives_rider_everything():
    split = compute_financial(1500, 0)
    assert split.commission_amount == Decimal("0.00")
    assert split.rider_net_amount == Decimal("1500.00")


def test_rejects_bad_inputs():
    with pytest.raises(ValueError):
        compute_financial(-1, 10)
    with pytest.raises(ValueError):
        compute_financial(100, 101)
    with pytest.raises(ValueError):
        compute_financial(100, -5)


def test_round2_is_half_up():
    assert round2("2.345") == Decimal("2.35")
    assert round2(0.1 + 0.2) == Decimal("0.30")
