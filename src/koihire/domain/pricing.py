"""Buyer-side pricing for project escrow.

The client pays the agreed amount plus a 2.5% buyer fee. The fee stays with
the platform; the freelancer is paid the agreed amount. The same breakdown is
shown in the funding modal and charged by the processor, so both must come
from this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from koihire.domain.exceptions import ValidationError

BUYER_FEE_RATE = Decimal("0.025")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class ChargeBreakdown:
    agreed_amount: Decimal
    buyer_fee: Decimal
    total_charged: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "agreedAmount": str(self.agreed_amount),
            "buyerFee": str(self.buyer_fee),
            "totalCharged": str(self.total_charged),
        }


def round_currency(amount: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_charge_breakdown(agreed_amount: Decimal | int | str) -> ChargeBreakdown:
    """Compute what the client is charged for an agreed amount.

    ``buyer_fee`` is rounded to cents so that
    ``total_charged - agreed_amount == buyer_fee`` holds exactly.
    """
    agreed = Decimal(str(agreed_amount))
    if agreed < 0:
        raise ValidationError("Agreed amount must not be negative", field="agreedAmount")

    buyer_fee = round_currency(agreed * BUYER_FEE_RATE)
    return ChargeBreakdown(
        agreed_amount=agreed,
        buyer_fee=buyer_fee,
        total_charged=agreed + buyer_fee,
    )


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to integer cents for the processor."""
    return int(round_currency(amount) * 100)
