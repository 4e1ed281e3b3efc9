"""
Money arithmetic for orders.

Amounts are Decimal currency units everywhere in the app. The payment
gateway speaks integer minor units (cents); `to_minor_units` and
`from_minor_units` are the only place that conversion happens.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

CENTS = Decimal("0.01")
MINOR_UNITS_PER_UNIT = 100

Number = Union[Decimal, int, float, str]


def round2(value: Number) -> Decimal:
    """Round half-up to two decimal places."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Number) -> int:
    return int((Decimal(str(amount)) * MINOR_UNITS_PER_UNIT).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return round2(Decimal(amount) / MINOR_UNITS_PER_UNIT)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal


def compute_order_totals(
    line_totals: Iterable[Number],
    tax_rate: Decimal,
    free_shipping_threshold: Decimal,
    flat_shipping_fee: Decimal,
) -> OrderTotals:
    """
    Fold line totals into an order's subtotal, tax, shipping and total.

    Tax is `tax_rate` of the subtotal rounded to cents. Shipping is waived
    only when the subtotal is strictly above the threshold.
    """
    subtotal = round2(sum((Decimal(str(value)) for value in line_totals), Decimal("0")))
    tax = round2(subtotal * tax_rate)
    shipping = Decimal("0.00") if subtotal > free_shipping_threshold else round2(flat_shipping_fee)

    return OrderTotals(
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        total=subtotal + tax + shipping,
    )
