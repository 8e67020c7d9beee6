"""List operations on quote items.

Every function takes the current items and returns a new list; the input is
never modified. ``base_price`` is fixed when an item is created and is the
only source ``unit_price`` is ever rebuilt from, so putting an item in and
out of the allowance can be repeated without losing its price.
"""
from __future__ import annotations

import uuid
from typing import Sequence

from .errors import InvalidQuantity, ItemNotFound
from .models.catalog import PriceUnit, Product
from .models.quote import QuoteItem


def new_item_id() -> str:
    return f"item_{uuid.uuid4().hex[:12]}"


def effective_price(base_price: float, is_in_allowance: bool) -> float:
    return 0.0 if is_in_allowance else base_price


def next_sort_order(items: Sequence[QuoteItem]) -> int:
    return max((item.sort_order for item in items), default=-1) + 1


def _check_quantity(quantity: float) -> None:
    if quantity is None or not quantity > 0:
        raise InvalidQuantity(quantity)


def _index_of(items: Sequence[QuoteItem], item_id: str) -> int:
    for index, item in enumerate(items):
        if item.id == item_id:
            return index
    raise ItemNotFound(item_id)


def _replace(items: Sequence[QuoteItem], index: int, item: QuoteItem) -> list[QuoteItem]:
    updated = list(items)
    updated[index] = item
    return updated


def add_item(
    items: Sequence[QuoteItem],
    product: Product,
    quantity: float,
    is_in_allowance: bool = False,
) -> list[QuoteItem]:
    """Add ``quantity`` of a catalog product.

    A row for the same product with the same allowance state absorbs the
    quantity instead of a second row being appended.
    """
    _check_quantity(quantity)

    for index, item in enumerate(items):
        if item.product_id == product.id and item.is_in_allowance == is_in_allowance:
            combined = item.quantity + quantity
            return _replace(
                items,
                index,
                item.model_copy(
                    update={"quantity": combined, "line_total": item.unit_price * combined}
                ),
            )

    unit_price = effective_price(product.base_price, is_in_allowance)
    new_item = QuoteItem(
        id=new_item_id(),
        product_id=product.id,
        product_name=product.name,
        product_sku=product.sku,
        quantity=quantity,
        price_unit=product.price_unit,
        unit_price=unit_price,
        base_price=product.base_price,
        line_total=unit_price * quantity,
        is_in_allowance=is_in_allowance,
        sort_order=next_sort_order(items),
    )
    return [*items, new_item]


def add_manual_item(
    items: Sequence[QuoteItem],
    *,
    name: str,
    unit_price: float,
    quantity: float,
    price_unit: PriceUnit = PriceUnit.unit,
    sku: str | None = None,
    is_in_allowance: bool = False,
    notes: str | None = None,
) -> list[QuoteItem]:
    _check_quantity(quantity)
    price = effective_price(unit_price, is_in_allowance)
    new_item = QuoteItem(
        id=new_item_id(),
        product_name=name,
        product_sku=sku,
        quantity=quantity,
        price_unit=price_unit,
        unit_price=price,
        base_price=unit_price,
        line_total=price * quantity,
        is_in_allowance=is_in_allowance,
        notes=notes,
        sort_order=next_sort_order(items),
    )
    return [*items, new_item]


def update_quantity(items: Sequence[QuoteItem], item_id: str, quantity: float) -> list[QuoteItem]:
    _check_quantity(quantity)
    index = _index_of(items, item_id)
    item = items[index]
    return _replace(
        items,
        index,
        item.model_copy(update={"quantity": quantity, "line_total": item.unit_price * quantity}),
    )


def set_allowance(items: Sequence[QuoteItem], item_id: str, is_in_allowance: bool) -> list[QuoteItem]:
    index = _index_of(items, item_id)
    item = items[index]
    unit_price = effective_price(item.base_price, is_in_allowance)
    return _replace(
        items,
        index,
        item.model_copy(
            update={
                "is_in_allowance": is_in_allowance,
                "unit_price": unit_price,
                "line_total": unit_price * item.quantity,
            }
        ),
    )


def update_item_notes(items: Sequence[QuoteItem], item_id: str, notes: str | None) -> list[QuoteItem]:
    index = _index_of(items, item_id)
    return _replace(items, index, items[index].model_copy(update={"notes": notes or None}))


def remove_item(items: Sequence[QuoteItem], item_id: str) -> list[QuoteItem]:
    # Sort positions are ordering hints; survivors keep theirs.
    index = _index_of(items, item_id)
    return [item for position, item in enumerate(items) if position != index]


def items_subtotal(items: Sequence[QuoteItem]) -> float:
    return sum(item.unit_price * item.quantity for item in items if not item.is_in_allowance)


__all__ = [
    "new_item_id",
    "effective_price",
    "next_sort_order",
    "add_item",
    "add_manual_item",
    "update_quantity",
    "set_allowance",
    "update_item_notes",
    "remove_item",
    "items_subtotal",
]
