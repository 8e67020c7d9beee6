from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable

from . import costs as cost_ops
from . import items as item_ops
from .catalog import HouseTypeDirectory, ProductCatalog
from .config import EngineSettings, PricingMode
from .delivery import QuoteDelivery
from .errors import DeliveryFailure, InvalidQuantity, ItemNotFound
from .models.catalog import PriceUnit, Product
from .models.quote import (
    AdditionalCost,
    CustomerInfo,
    QuoteBreakdown,
    QuoteItem,
    QuoteSnapshot,
)
from .money import round_money
from .pricing import FlatLine, calculate_totals
from .status import (
    QuoteEvent,
    QuoteStatus,
    TransitionContext,
    ensure_editable,
    is_editable,
    next_status,
)

logger = logging.getLogger(__name__)

Listener = Callable[[QuoteSnapshot], None]


def compute_breakdown(snapshot: QuoteSnapshot, settings: EngineSettings) -> QuoteBreakdown:
    """Derive every total of a quote from its snapshot.

    In VAT-inclusive mode the subtotal is already the price paid and VAT is
    reported as zero. In VAT-exclusive mode the allowance and bespoke uplift
    are priced as taxable lines next to the items and VAT is added on top.
    """
    allowance = snapshot.house_type_allowance
    items_subtotal = item_ops.items_subtotal(snapshot.items)
    additional_total = cost_ops.additional_costs_total(snapshot.additional_costs)
    bespoke_total = snapshot.bespoke_uplift_qty * settings.bespoke_unit_price

    if settings.pricing_mode is PricingMode.vat_exclusive:
        lines = [
            FlatLine(quantity=1, unit_price=allowance),
            FlatLine(quantity=snapshot.bespoke_uplift_qty, unit_price=settings.bespoke_unit_price),
            *(item for item in snapshot.items if not item.is_in_allowance),
        ]
        totals = calculate_totals(lines, snapshot.additional_costs, settings.vat_rate_percent)
        return QuoteBreakdown(
            house_type_allowance=allowance,
            items_subtotal=items_subtotal,
            additional_costs_total=additional_total,
            bespoke_uplift_total=bespoke_total,
            vat_rate_percent=settings.vat_rate_percent,
            subtotal=totals.subtotal,
            vat_amount=totals.vat_amount,
            total=totals.total,
        )

    subtotal = round_money(allowance + items_subtotal + additional_total + bespoke_total)
    return QuoteBreakdown(
        house_type_allowance=allowance,
        items_subtotal=items_subtotal,
        additional_costs_total=additional_total,
        bespoke_uplift_total=bespoke_total,
        vat_rate_percent=0.0,
        subtotal=subtotal,
        vat_amount=0.0,
        total=subtotal,
    )


class QuoteEditor:
    """In-memory state of the one quote being edited.

    Each mutation checks the lock and its arguments, builds the next
    snapshot, recomputes the breakdown and swaps both in before any
    listener is told. A rejected mutation leaves the state untouched.
    """

    def __init__(
        self,
        *,
        catalog: ProductCatalog,
        house_types: HouseTypeDirectory,
        settings: EngineSettings | None = None,
        snapshot: QuoteSnapshot | None = None,
        status: QuoteStatus = QuoteStatus.draft,
        quote_id: str | None = None,
    ) -> None:
        self._catalog = catalog
        self._house_types = house_types
        self._settings = settings or EngineSettings()
        self._status = status
        self._quote_id = quote_id
        self._listeners: list[Listener] = []
        self._snapshot = snapshot or QuoteSnapshot()
        self._breakdown = compute_breakdown(self._snapshot, self._settings)

    # -- read side ---------------------------------------------------------

    @property
    def quote_id(self) -> str | None:
        return self._quote_id

    @property
    def status(self) -> QuoteStatus:
        return self._status

    @property
    def is_editable(self) -> bool:
        return is_editable(self._status)

    @property
    def snapshot(self) -> QuoteSnapshot:
        return self._snapshot

    @property
    def breakdown(self) -> QuoteBreakdown:
        return self._breakdown

    @property
    def items(self) -> tuple[QuoteItem, ...]:
        return tuple(self._snapshot.items)

    @property
    def additional_costs(self) -> tuple[AdditionalCost, ...]:
        return tuple(self._snapshot.additional_costs)

    @property
    def customer(self) -> CustomerInfo:
        return self._snapshot.customer

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    def item(self, item_id: str) -> QuoteItem:
        for item in self._snapshot.items:
            if item.id == item_id:
                return item
        raise ItemNotFound(item_id)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for every settled change; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- items -------------------------------------------------------------

    def add_product(self, product_id: str, quantity: float, *, is_in_allowance: bool = False) -> QuoteItem:
        ensure_editable(self._status)
        product = self._catalog.get_product(product_id)
        return self.add_catalog_item(product, quantity, is_in_allowance=is_in_allowance)

    def add_catalog_item(self, product: Product, quantity: float, *, is_in_allowance: bool = False) -> QuoteItem:
        ensure_editable(self._status)
        items = item_ops.add_item(self._snapshot.items, product, quantity, is_in_allowance)
        self._apply(items=items)
        return next(
            item
            for item in self._snapshot.items
            if item.product_id == product.id and item.is_in_allowance == is_in_allowance
        )

    def add_manual_item(
        self,
        *,
        name: str,
        unit_price: float,
        quantity: float,
        price_unit: PriceUnit = PriceUnit.unit,
        sku: str | None = None,
        is_in_allowance: bool = False,
        notes: str | None = None,
    ) -> QuoteItem:
        ensure_editable(self._status)
        items = item_ops.add_manual_item(
            self._snapshot.items,
            name=name,
            unit_price=unit_price,
            quantity=quantity,
            price_unit=price_unit,
            sku=sku,
            is_in_allowance=is_in_allowance,
            notes=notes,
        )
        self._apply(items=items)
        return self._snapshot.items[-1]

    def update_quantity(self, item_id: str, quantity: float) -> None:
        ensure_editable(self._status)
        self._apply(items=item_ops.update_quantity(self._snapshot.items, item_id, quantity))

    def set_allowance(self, item_id: str, is_in_allowance: bool) -> None:
        ensure_editable(self._status)
        self._apply(items=item_ops.set_allowance(self._snapshot.items, item_id, is_in_allowance))

    def update_item_notes(self, item_id: str, notes: str | None) -> None:
        ensure_editable(self._status)
        self._apply(items=item_ops.update_item_notes(self._snapshot.items, item_id, notes))

    def remove_item(self, item_id: str) -> None:
        ensure_editable(self._status)
        self._apply(items=item_ops.remove_item(self._snapshot.items, item_id))

    # -- additional costs --------------------------------------------------

    def add_cost(self, *, description: str, amount: float, taxable: bool = True) -> AdditionalCost:
        ensure_editable(self._status)
        costs = cost_ops.add_cost(
            self._snapshot.additional_costs, description=description, amount=amount, taxable=taxable
        )
        self._apply(additional_costs=costs)
        return self._snapshot.additional_costs[-1]

    def update_cost(
        self,
        cost_id: str,
        *,
        description: str | None = None,
        amount: float | None = None,
        taxable: bool | None = None,
    ) -> None:
        ensure_editable(self._status)
        costs = cost_ops.update_cost(
            self._snapshot.additional_costs,
            cost_id,
            description=description,
            amount=amount,
            taxable=taxable,
        )
        self._apply(additional_costs=costs)

    def remove_cost(self, cost_id: str) -> None:
        ensure_editable(self._status)
        self._apply(additional_costs=cost_ops.remove_cost(self._snapshot.additional_costs, cost_id))

    # -- quote-level fields ------------------------------------------------

    def set_bespoke_uplift_qty(self, quantity: int) -> None:
        ensure_editable(self._status)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise InvalidQuantity(quantity, field="bespoke uplift quantity")
        self._apply(bespoke_uplift_qty=quantity)

    def update_customer(self, **fields: Any) -> CustomerInfo:
        ensure_editable(self._status)
        data = {**self._snapshot.customer.model_dump(), **fields}
        customer = CustomerInfo.model_validate(data)
        self._apply(customer=customer)
        return customer

    def select_house_type(self, house_type_id: str | None) -> float:
        """Switch house type and return the allowance now in effect.

        An unknown id raises ``HouseTypeNotFound`` and keeps the current
        allowance; clearing the selection drops the allowance to zero.
        """
        ensure_editable(self._status)
        if not house_type_id:
            self._apply(house_type_id=None, house_type_allowance=0.0)
            return 0.0
        house_type = self._house_types.get_house_type(house_type_id)
        self._apply(house_type_id=house_type.id, house_type_allowance=house_type.allowance)
        return house_type.allowance

    def set_valid_until(self, valid_until: date | None) -> None:
        ensure_editable(self._status)
        self._apply(valid_until=valid_until)

    # -- lifecycle ---------------------------------------------------------

    def assign_id(self, quote_id: str) -> None:
        if self._quote_id is not None and self._quote_id != quote_id:
            raise ValueError(f"Quote already has id {self._quote_id}")
        self._quote_id = quote_id
        self._notify()

    def finalize(self) -> QuoteStatus:
        return self._transition(QuoteEvent.finalize)

    def save_as_complete(self) -> QuoteStatus:
        return self._transition(QuoteEvent.save_as_complete)

    def archive(self) -> QuoteStatus:
        return self._transition(QuoteEvent.archive)

    def send(self, delivery: QuoteDelivery) -> QuoteStatus:
        """Hand the quote to ``delivery`` and move to SENT once it succeeds."""
        target = next_status(self._status, QuoteEvent.send, self._transition_context())
        if self._quote_id is None:
            raise DeliveryFailure("Quote must be saved before it can be sent")
        try:
            delivery.deliver(quote_id=self._quote_id, snapshot=self._snapshot, totals=self._breakdown)
        except DeliveryFailure:
            raise
        except Exception as exc:
            logger.warning(
                "Quote delivery failed",
                exc_info=True,
                extra={"quote_id": self._quote_id, "error": str(exc)},
            )
            raise DeliveryFailure(str(exc), quote_id=self._quote_id) from exc
        return self._set_status(target)

    # -- internals ---------------------------------------------------------

    def _transition_context(self) -> TransitionContext:
        return TransitionContext(
            item_count=len(self._snapshot.items),
            customer_email=self._snapshot.customer.customer_email,
        )

    def _transition(self, event: QuoteEvent) -> QuoteStatus:
        target = next_status(self._status, event, self._transition_context())
        return self._set_status(target)

    def _set_status(self, status: QuoteStatus) -> QuoteStatus:
        previous = self._status
        self._status = status
        logger.info(
            "Quote status changed",
            extra={"quote_id": self._quote_id, "from": previous.value, "to": status.value},
        )
        self._notify()
        return status

    def _apply(self, **changes: Any) -> None:
        if "items" in changes:
            changes["items"] = tuple(changes["items"])
        if "additional_costs" in changes:
            changes["additional_costs"] = tuple(changes["additional_costs"])
        snapshot = self._snapshot.model_copy(update=changes)
        breakdown = compute_breakdown(snapshot, self._settings)
        self._snapshot, self._breakdown = snapshot, breakdown
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._snapshot)


__all__ = ["QuoteEditor", "compute_breakdown"]
