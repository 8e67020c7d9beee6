from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from .models.quote import QuoteTotals
from .money import round_money


class PricedLine(Protocol):
    quantity: float
    unit_price: float


class Charge(Protocol):
    amount: float
    taxable: bool


@dataclass(frozen=True)
class FlatLine:
    """A priced line that is not a quote item, e.g. the house-type allowance."""

    quantity: float
    unit_price: float


def calculate_totals(
    items: Iterable[PricedLine],
    additional_costs: Iterable[Charge],
    vat_rate_percent: float,
) -> QuoteTotals:
    """Price a quote with VAT charged on items and taxable costs.

    Items are summed as ``unit_price * quantity`` exactly as given; allowance
    zeroing is the caller's job. Negative prices or amounts are summed like
    any other number, rejecting them is also left to the caller.
    """
    if vat_rate_percent < 0:
        raise ValueError("vat_rate_percent must be non-negative")

    items_subtotal = sum(item.unit_price * item.quantity for item in items)

    taxable_additional = 0.0
    non_taxable_additional = 0.0
    for cost in additional_costs:
        if cost.taxable:
            taxable_additional += cost.amount
        else:
            non_taxable_additional += cost.amount

    taxable_total = items_subtotal + taxable_additional
    vat_amount = round_money(taxable_total * vat_rate_percent / 100)

    return QuoteTotals(
        subtotal=round_money(items_subtotal + taxable_additional + non_taxable_additional),
        vat_amount=vat_amount,
        total=round_money(taxable_total + vat_amount + non_taxable_additional),
    )


__all__ = ["PricedLine", "Charge", "FlatLine", "calculate_totals"]
