"""In-memory catalog with the same contract as ``ProductRepository``.

Used by tests and demo mode; state lives for the lifetime of the object.
"""
import copy
import itertools
from typing import Dict, Iterable, List, Optional

from core.constants import LOW_STOCK_THRESHOLD_DEFAULT
from core.errors import NotFoundError, PosError, Result, ValidationError
from core.models import Product, now_iso
from core.products import EDITABLE_FIELDS, validate_product_fields


class InMemoryProductRepository:
    def __init__(self, products: Iterable[Product] = ()):
        self._products: Dict[str, Product] = {}
        self._ids = itertools.count(1)
        for product in products:
            self._products[str(product.id)] = copy.deepcopy(product)

    def _next_id(self) -> str:
        while True:
            candidate = str(next(self._ids))
            if candidate not in self._products:
                return candidate

    def get_products(self, include_inactive: bool = True) -> List[Product]:
        products = sorted(self._products.values(), key=lambda p: p.name)
        if not include_inactive:
            products = [p for p in products if p.is_active]
        return [copy.deepcopy(p) for p in products]

    def get_product(self, product_id) -> Optional[Product]:
        product = self._products.get(str(product_id))
        return copy.deepcopy(product) if product else None

    def search_products(self, query: str) -> List[Product]:
        needle = (query or "").strip().lower()
        return [
            p
            for p in self.get_products()
            if needle in p.name.lower()
            or needle in (p.description or "").lower()
            or needle in (p.category or "").lower()
            or needle in (p.barcode or "").lower()
        ]

    def get_categories(self) -> List[str]:
        return sorted({p.category for p in self._products.values() if p.category})

    def get_products_by_category(self, category: str) -> List[Product]:
        return [p for p in self.get_products() if p.category == category]

    def get_low_stock_products(self, threshold: int = LOW_STOCK_THRESHOLD_DEFAULT) -> List[Product]:
        low = [p for p in self.get_products() if p.is_active and p.stock <= threshold]
        return sorted(low, key=lambda p: (p.stock, p.name))

    def _barcode_taken(self, barcode: Optional[str], exclude_id: Optional[str] = None) -> bool:
        return bool(barcode) and any(
            p.barcode == barcode and p.id != exclude_id for p in self._products.values()
        )

    def create_product(self, name: str, price: float, **fields) -> Result:
        data = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
        data.update(name=name, price=price)
        try:
            validate_product_fields(data)
            if self._barcode_taken(data.get("barcode")):
                raise ValidationError("Product with this barcode already exists")
        except PosError as e:
            return Result.fail(e)
        now = now_iso()
        product = Product(id=self._next_id(), created_at=now, updated_at=now, **data)
        self._products[product.id] = product
        return Result.ok(copy.deepcopy(product))

    def update_product(self, product_id, **fields) -> Result:
        product = self._products.get(str(product_id))
        updates = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
        try:
            if product is None:
                raise NotFoundError("Product not found")
            validate_product_fields(updates)
            if "barcode" in updates and self._barcode_taken(updates["barcode"], product.id):
                raise ValidationError("Product with this barcode already exists")
        except PosError as e:
            return Result.fail(e)
        for key, value in updates.items():
            setattr(product, key, value)
        product.updated_at = now_iso()
        return Result.ok(copy.deepcopy(product))

    def delete_product(self, product_id) -> Result:
        if self._products.pop(str(product_id), None) is None:
            return Result.fail(NotFoundError("Product not found"))
        return Result.ok()
