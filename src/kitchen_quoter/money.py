from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

MONEY_PLACES = 2


def round_to(value: float, places: int) -> float:
    """Round ``value`` to ``places`` decimals, halves away from zero.

    The value is quantised from its shortest repr rather than its binary
    expansion, so ``round_to(1.005, 2)`` gives ``1.01``.
    """
    if places < 0:
        raise ValueError("places must be non-negative")
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP)
    return float(rounded)


def round_money(value: float) -> float:
    return round_to(value, MONEY_PLACES)


__all__ = ["MONEY_PLACES", "round_to", "round_money"]
