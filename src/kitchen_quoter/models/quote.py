from __future__ import annotations

from datetime import date
from typing import Sequence

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .catalog import PriceUnit


class CustomerInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    quote_number: str = ""
    customer_name: str = ""
    customer_email: EmailStr | None = None
    customer_phone: str | None = None
    address: str = ""
    postcode: str | None = None
    frontal: str | None = None
    handle: str | None = None
    worktop: str | None = None
    notes: str | None = Field(default=None, description="Shown to the customer")
    internal_notes: str | None = None

    @field_validator("customer_email", mode="before")
    @classmethod
    def _blank_email_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class QuoteItem(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    product_id: str | None = None
    product_name: str
    product_sku: str | None = None
    quantity: float = Field(gt=0)
    price_unit: PriceUnit = PriceUnit.unit
    unit_price: float
    base_price: float
    line_total: float
    is_in_allowance: bool = False
    notes: str | None = None
    sort_order: int = 0


class AdditionalCost(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    description: str
    amount: float
    taxable: bool = True
    sort_order: int = 0


class QuoteSnapshot(BaseModel):
    """Every editable field of one quote; the unit compared and sent by autosave."""

    model_config = ConfigDict(extra="forbid")

    customer: CustomerInfo = Field(default_factory=CustomerInfo)
    house_type_id: str | None = None
    house_type_allowance: float = 0.0
    items: Sequence[QuoteItem] = Field(default_factory=tuple)
    additional_costs: Sequence[AdditionalCost] = Field(default_factory=tuple)
    bespoke_uplift_qty: int = Field(default=0, ge=0)
    valid_until: date | None = None

    def serialize(self) -> str:
        return self.model_dump_json()


class QuoteTotals(BaseModel):
    subtotal: float = 0.0
    vat_amount: float = 0.0
    total: float = 0.0


class QuoteBreakdown(QuoteTotals):
    house_type_allowance: float = 0.0
    items_subtotal: float = 0.0
    additional_costs_total: float = 0.0
    bespoke_uplift_total: float = 0.0
    vat_rate_percent: float = 0.0


__all__ = [
    "CustomerInfo",
    "QuoteItem",
    "AdditionalCost",
    "QuoteSnapshot",
    "QuoteTotals",
    "QuoteBreakdown",
]
