from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PriceUnit(str, Enum):
    unit = "UNIT"
    linear_meter = "LINEAR_METER"
    square_meter = "SQUARE_METER"


class Product(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    sku: str | None = None
    base_price: float
    price_unit: PriceUnit = PriceUnit.unit
    category: str | None = None


class HouseType(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    allowance: float = Field(default=0.0, description="Starting credit seeded into every quote")


__all__ = ["PriceUnit", "Product", "HouseType"]
