"""
Payout fee calculation for the two payout rails

Stripe (weekly direct deposit): $0.25 + 0.25% of gross
Cash App (same day):            $0.25 + 1.5% of gross
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable


class PayoutRail(str, Enum):
    STRIPE = "stripe"
    CASH_APP = "cash_app"


FLAT_FEE = Decimal("0.25")
PERCENT_FEE = {
    PayoutRail.STRIPE: Decimal("0.0025"),
    PayoutRail.CASH_APP: Decimal("0.015"),
}

CENT = Decimal("0.01")


def _to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PayoutQuote:
    rail: PayoutRail
    gross: Decimal
    fee: Decimal
    net: Decimal
    service_count: int

    @property
    def is_same_day(self) -> bool:
        return self.rail == PayoutRail.CASH_APP


def calculate_fee(gross: Decimal, rail: PayoutRail) -> Decimal:
    return _to_cents(FLAT_FEE + gross * PERCENT_FEE[PayoutRail(rail)])


def calculate_payout(amounts: Iterable[float], rail: PayoutRail) -> PayoutQuote:
    """Sum service earnings and subtract the rail's fee"""
    values = [Decimal(str(a or 0)) for a in amounts]
    gross = _to_cents(sum(values, Decimal("0")))
    fee = calculate_fee(gross, rail)
    return PayoutQuote(
        rail=PayoutRail(rail),
        gross=gross,
        fee=fee,
        net=gross - fee,
        service_count=len(values),
    )
