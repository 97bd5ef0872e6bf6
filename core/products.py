"""Product catalog repository backed by SQLite."""
import logging
import sqlite3
from typing import List, Optional

import pandas as pd

from core.constants import LOW_STOCK_THRESHOLD_DEFAULT, PRODUCT_CATEGORIES
from core.errors import NotFoundError, PosError, Result, ValidationError
from core.models import Product, now_iso

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "description",
    "price",
    "cost",
    "stock",
    "category",
    "barcode",
    "image",
    "is_active",
)


def row_id(value) -> Optional[int]:
    """Convert an opaque id to the integer key SQLite stores, or None."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_number(fields: dict, key: str, cast, label: str):
    try:
        return cast(fields[key])
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number") from None


def validate_product_fields(fields: dict) -> None:
    """Raise ValidationError for the first invalid field present in ``fields``."""
    if "name" in fields and not (fields["name"] or "").strip():
        raise ValidationError("Product name is required")
    if "price" in fields and (fields["price"] is None or _as_number(fields, "price", float, "Price") <= 0):
        raise ValidationError("Price must be greater than 0")
    if "cost" in fields and fields["cost"] is not None and _as_number(fields, "cost", float, "Cost") < 0:
        raise ValidationError("Cost cannot be negative")
    if "stock" in fields and fields["stock"] is not None and _as_number(fields, "stock", int, "Stock") < 0:
        raise ValidationError("Stock cannot be negative")


def _product_from_row(row: sqlite3.Row) -> Product:
    return Product(
        id=str(row["id"]),
        name=row["name"],
        price=float(row["price"]),
        cost=float(row["cost"] or 0),
        stock=int(row["stock"] or 0),
        category=row["category"] or "Other",
        description=row["description"] or "",
        barcode=row["barcode"],
        image=row["image"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"] or "",
        updated_at=row["updated_at"] or "",
    )


class ProductRepository:
    """CRUD and lookups over the ``products`` table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ------------------------------------------------------------------ reads

    def get_products(self, include_inactive: bool = True) -> List[Product]:
        query = "SELECT * FROM products"
        if not include_inactive:
            query += " WHERE is_active = 1"
        query += " ORDER BY name"
        try:
            rows = self.conn.execute(query).fetchall()
        except sqlite3.Error as e:
            logger.exception("Failed to read products: %s", e)
            return []
        return [_product_from_row(r) for r in rows]

    def get_products_frame(self, include_inactive: bool = True) -> pd.DataFrame:
        """Return products as a pandas DataFrame for table views and exports."""
        query = "SELECT * FROM products"
        if not include_inactive:
            query += " WHERE is_active = 1"
        try:
            return pd.read_sql(query + " ORDER BY name", self.conn)
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            logger.exception("Failed to read products: %s", e)
            return pd.DataFrame()

    def get_product(self, product_id) -> Optional[Product]:
        """Return the product with ``product_id`` or None.

        Always reads the live row; storage errors propagate to the caller.
        """
        key = row_id(product_id)
        if key is None:
            return None
        row = self.conn.execute("SELECT * FROM products WHERE id = ?", (key,)).fetchone()
        return _product_from_row(row) if row else None

    def search_products(self, query: str) -> List[Product]:
        like = f"%{(query or '').strip()}%"
        try:
            rows = self.conn.execute(
                """
                SELECT * FROM products
                WHERE name LIKE ? OR description LIKE ? OR category LIKE ? OR barcode LIKE ?
                ORDER BY name
                """,
                (like, like, like, like),
            ).fetchall()
        except sqlite3.Error as e:
            logger.exception("Failed to search products: %s", e)
            return []
        return [_product_from_row(r) for r in rows]

    def get_categories(self) -> List[str]:
        try:
            rows = self.conn.execute(
                "SELECT DISTINCT category FROM products WHERE category IS NOT NULL ORDER BY category"
            ).fetchall()
        except sqlite3.Error as e:
            logger.exception("Failed to read categories: %s", e)
            return list(PRODUCT_CATEGORIES)
        return [r[0] for r in rows]

    def get_products_by_category(self, category: str) -> List[Product]:
        try:
            rows = self.conn.execute(
                "SELECT * FROM products WHERE category = ? ORDER BY name", (category,)
            ).fetchall()
        except sqlite3.Error as e:
            logger.exception("Failed to read products by category: %s", e)
            return []
        return [_product_from_row(r) for r in rows]

    def get_low_stock_products(self, threshold: int = LOW_STOCK_THRESHOLD_DEFAULT) -> List[Product]:
        try:
            rows = self.conn.execute(
                """
                SELECT * FROM products
                WHERE stock <= ? AND is_active = 1
                ORDER BY stock ASC, name
                """,
                (threshold,),
            ).fetchall()
        except sqlite3.Error as e:
            logger.exception("Failed to read low stock products: %s", e)
            return []
        return [_product_from_row(r) for r in rows]

    # ---------------------------------------------------------------- writes

    def _barcode_taken(self, barcode: Optional[str], exclude_id: Optional[int] = None) -> bool:
        if not barcode:
            return False
        query = "SELECT id FROM products WHERE barcode = ?"
        params: list = [barcode]
        if exclude_id is not None:
            query += " AND id != ?"
            params.append(exclude_id)
        return self.conn.execute(query, params).fetchone() is not None

    def create_product(
        self,
        name: str,
        price: float,
        cost: float = 0.0,
        stock: int = 0,
        category: str = "Other",
        description: str = "",
        barcode: Optional[str] = None,
        image: Optional[str] = None,
        is_active: bool = True,
    ) -> Result:
        """Insert a product and return it in the result."""
        fields = {"name": name, "price": price, "cost": cost, "stock": stock}
        try:
            validate_product_fields(fields)
            barcode = (barcode or "").strip() or None
            if self._barcode_taken(barcode):
                raise ValidationError("Product with this barcode already exists")

            now = now_iso()
            cur = self.conn.cursor()
            cur.execute(
                """
                INSERT INTO products (name, description, price, cost, stock, category,
                                      barcode, image, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    name.strip(),
                    description or "",
                    float(price),
                    float(cost or 0),
                    int(stock or 0),
                    category,
                    barcode,
                    image,
                    1 if is_active else 0,
                    now,
                    now,
                ),
            )
            self.conn.commit()
            return Result.ok(self.get_product(cur.lastrowid))
        except PosError as e:
            return Result.fail(e)
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.exception("Failed to create product: %s", e)
            return Result.failed("Failed to create product")

    def update_product(self, product_id, **fields) -> Result:
        """Apply a partial update; only keys in ``EDITABLE_FIELDS`` are written."""
        updates = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
        key = row_id(product_id)
        try:
            if key is None or self.get_product(key) is None:
                raise NotFoundError("Product not found")
            validate_product_fields(updates)
            if "barcode" in updates:
                updates["barcode"] = (updates["barcode"] or "").strip() or None
                if self._barcode_taken(updates["barcode"], exclude_id=key):
                    raise ValidationError("Product with this barcode already exists")
            if "is_active" in updates:
                updates["is_active"] = 1 if updates["is_active"] else 0
            updates["updated_at"] = now_iso()

            assignments = ", ".join(f"{column} = ?" for column in updates)
            self.conn.execute(
                f"UPDATE products SET {assignments} WHERE id = ?",
                (*updates.values(), key),
            )
            self.conn.commit()
            return Result.ok(self.get_product(key))
        except PosError as e:
            return Result.fail(e)
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.exception("Failed to update product: %s", e)
            return Result.failed("Failed to update product")

    def delete_product(self, product_id) -> Result:
        """Hard delete. Order items keep their name/price snapshot."""
        key = row_id(product_id)
        try:
            if key is None or self.get_product(key) is None:
                raise NotFoundError("Product not found")
            self.conn.execute("DELETE FROM products WHERE id = ?", (key,))
            self.conn.commit()
            return Result.ok()
        except PosError as e:
            return Result.fail(e)
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.exception("Failed to delete product: %s", e)
            return Result.failed("Failed to delete product")
