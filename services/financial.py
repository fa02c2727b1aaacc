"""
services/financial.py  –  Delivery-time revenue split

gross = order price
commission = round2(gross * rate / 100)
rider_net = gross - commission

Rounding is ROUND_HALF_UP to 2 decimal places, applied once per amount.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    # str() first so floats like 0.1 don't drag binary noise along
    return value if isinstance(value, Decimal) else Decimal(str(value))


def round2(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class FinancialSplit:
    gross_amount: Decimal
    commission_rate_pct: Decimal
    commission_amount: Decimal
    rider_net_amount: Decimal

    def as_dict(self) -> dict:
        return {
            "grossAmount": float(self.gross_amount),
            "commissionRatePct": float(self.commission_rate_pct),
            "commissionAmount": float(self.commission_amount),
            "riderNetAmount": float(self.rider_net_amount),
        }


def compute_financial(gross_amount: Number, commission_rate_pct: Number) -> FinancialSplit:
    """Pure function: the rate is passed in, never read from ambient settings."""
    gross = round2(gross_amount)
    rate = to_decimal(commission_rate_pct)
    if gross < 0:
        raise ValueError("gross amount cannot be negative")
    if rate < 0 or rate > 100:
        raise ValueError("commission rate must be between 0 and 100")

    commission = round2(gross * rate / Decimal(100))
    rider_net = round2(gross - commission)
    return FinancialSplit(
        gross_amount=gross,
        commission_rate_pct=rate,
        commission_amount=commission,
        rider_net_amount=rider_net,
    )
