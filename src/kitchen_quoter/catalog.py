from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Protocol

from .errors import HouseTypeNotFound, ProductNotFound
from .models.catalog import HouseType, Product


class ProductCatalog(Protocol):
    def get_product(self, product_id: str) -> Product:
        ...


class HouseTypeDirectory(Protocol):
    def get_house_type(self, house_type_id: str) -> HouseType:
        ...


class InMemoryCatalog:
    def __init__(
        self,
        *,
        products: Iterable[Product] = (),
        house_types: Iterable[HouseType] = (),
    ) -> None:
        self._products = {product.id: product for product in products}
        self._house_types = {house_type.id: house_type for house_type in house_types}

    def get_product(self, product_id: str) -> Product:
        try:
            return self._products[product_id]
        except KeyError:
            raise ProductNotFound(product_id) from None

    def get_house_type(self, house_type_id: str) -> HouseType:
        try:
            return self._house_types[house_type_id]
        except KeyError:
            raise HouseTypeNotFound(house_type_id) from None


class LocalCatalog(InMemoryCatalog):
    """Catalog read from ``products.json`` and ``house_types.json`` in ``base_path``."""

    def __init__(self, *, base_path: Path) -> None:
        self._base_path = base_path
        super().__init__(
            products=(Product.model_validate(row) for row in self._load("products.json")),
            house_types=(HouseType.model_validate(row) for row in self._load("house_types.json")),
        )

    def _load(self, name: str) -> list[dict]:
        file_path = self._base_path / name
        if not file_path.exists():
            raise FileNotFoundError(f"Catalog file not found: {file_path}")
        with file_path.open("r", encoding="utf-8") as fp:
            return json.load(fp)


__all__ = ["ProductCatalog", "HouseTypeDirectory", "InMemoryCatalog", "LocalCatalog"]
