"""Customer records with soft delete and paginated search."""
import json
import logging
import sqlite3
from typing import List, Optional

from core.errors import NotFoundError, PosError, Result, ValidationError
from core.models import Customer, Page, now_iso
from core.company_settings import EMAIL_RE
from core.products import row_id

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = (
    "first_name",
    "last_name",
    "company_name",
    "email",
    "phone",
    "phone_secondary",
    "address_line1",
    "address_line2",
    "city",
    "state",
    "postal_code",
    "country",
    "customer_type",
    "customer_segment",
    "credit_limit",
    "current_balance",
    "tax_exempt",
    "tax_id",
    "loyalty_points",
    "total_purchases",
    "total_orders",
    "first_purchase_date",
    "last_purchase_date",
    "is_active",
    "notes",
    "tags",
    "custom_fields",
)

SEARCH_WHERE = """
    deleted_at IS NULL
    AND (LOWER(first_name) LIKE ?
         OR LOWER(last_name) LIKE ?
         OR LOWER(company_name) LIKE ?
         OR LOWER(email) LIKE ?
         OR (phone IS NOT NULL AND phone LIKE ?)
         OR (customer_number IS NOT NULL AND customer_number LIKE ?))
"""


def _customer_from_row(row: sqlite3.Row) -> Customer:
    return Customer(
        id=str(row["id"]),
        customer_number=row["customer_number"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        company_name=row["company_name"],
        email=row["email"],
        phone=row["phone"],
        phone_secondary=row["phone_secondary"],
        address_line1=row["address_line1"],
        address_line2=row["address_line2"],
        city=row["city"],
        state=row["state"],
        postal_code=row["postal_code"],
        country=row["country"] or "US",
        customer_type=row["customer_type"] or "individual",
        customer_segment=row["customer_segment"],
        credit_limit=float(row["credit_limit"] or 0),
        current_balance=float(row["current_balance"] or 0),
        tax_exempt=bool(row["tax_exempt"]),
        tax_id=row["tax_id"],
        loyalty_points=int(row["loyalty_points"] or 0),
        total_purchases=float(row["total_purchases"] or 0),
        total_orders=int(row["total_orders"] or 0),
        first_purchase_date=row["first_purchase_date"],
        last_purchase_date=row["last_purchase_date"],
        is_active=bool(row["is_active"]),
        notes=row["notes"],
        tags=json.loads(row["tags"]) if row["tags"] else [],
        custom_fields=json.loads(row["custom_fields"]) if row["custom_fields"] else {},
        created_at=row["created_at"] or "",
        updated_at=row["updated_at"] or "",
        created_by=str(row["created_by"]) if row["created_by"] is not None else None,
        deleted_at=row["deleted_at"],
    )


def _to_column(field: str, value):
    if field in ("tags", "custom_fields"):
        return json.dumps(value) if value else None
    if field in ("tax_exempt", "is_active"):
        return 1 if value else 0
    return value


class CustomerRepository:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def _validate(self, fields: dict, exclude_id: Optional[int] = None) -> None:
        if "first_name" in fields and not (fields["first_name"] or "").strip():
            raise ValidationError("First name is required")
        if "last_name" in fields and not (fields["last_name"] or "").strip():
            raise ValidationError("Last name is required")
        email = (fields.get("email") or "").strip()
        if email:
            if not EMAIL_RE.match(email):
                raise ValidationError("Invalid email format")
            query = "SELECT id FROM customers WHERE LOWER(email) = LOWER(?) AND deleted_at IS NULL"
            params: list = [email]
            if exclude_id is not None:
                query += " AND id != ?"
                params.append(exclude_id)
            if self.conn.execute(query, params).fetchone():
                raise ValidationError("Customer with this email already exists")

    def get_customers(self) -> List[Customer]:
        try:
            rows = self.conn.execute(
                "SELECT * FROM customers WHERE deleted_at IS NULL ORDER BY customer_number DESC"
            ).fetchall()
        except sqlite3.Error as e:
            logger.exception("Failed to read customers: %s", e)
            return []
        return [_customer_from_row(r) for r in rows]

    def get_customers_paginated(self, page: int = 1, limit: int = 10) -> Page:
        offset = (page - 1) * limit
        try:
            total = self.conn.execute(
                "SELECT COUNT(*) FROM customers WHERE deleted_at IS NULL"
            ).fetchone()[0]
            rows = self.conn.execute(
                "SELECT * FROM customers WHERE deleted_at IS NULL ORDER BY customer_number DESC LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
        except sqlite3.Error as e:
            logger.exception("Failed to read customers page: %s", e)
            return Page(items=[], total_count=0, current_page=page, limit=limit)
        return Page(items=[_customer_from_row(r) for r in rows], total_count=total, current_page=page, limit=limit)

    def get_customer(self, customer_id) -> Optional[Customer]:
        key = row_id(customer_id)
        if key is None:
            return None
        row = self.conn.execute(
            "SELECT * FROM customers WHERE id = ? AND deleted_at IS NULL", (key,)
        ).fetchone()
        return _customer_from_row(row) if row else None

    def generate_customer_number(self) -> str:
        """Next ``CUST-00001`` style number, counting soft-deleted rows too."""
        row = self.conn.execute(
            "SELECT MAX(CAST(SUBSTR(customer_number, 6) AS INTEGER)) FROM customers "
            "WHERE customer_number LIKE 'CUST-%'"
        ).fetchone()
        next_number = (row[0] or 0) + 1
        return f"CUST-{next_number:05d}"

    def create_customer(self, first_name: str, last_name: str, created_by=None, **fields) -> Result:
        data = {k: v for k, v in fields.items() if k in CUSTOMER_FIELDS}
        data.update(first_name=first_name, last_name=last_name)
        try:
            self._validate(data)
            data["first_name"] = first_name.strip()
            data["last_name"] = last_name.strip()
            if data.get("email"):
                data["email"] = data["email"].strip()
            now = now_iso()
            columns = ["customer_number", *data.keys(), "created_by", "created_at", "updated_at"]
            values = [
                self.generate_customer_number(),
                *(_to_column(k, v) for k, v in data.items()),
                row_id(created_by),
                now,
                now,
            ]
            cur = self.conn.cursor()
            cur.execute(
                f"INSERT INTO customers ({', '.join(columns)}) VALUES ({', '.join('?' * len(columns))})",
                values,
            )
            self.conn.commit()
            return Result.ok(self.get_customer(cur.lastrowid))
        except PosError as e:
            return Result.fail(e)
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.exception("Failed to create customer: %s", e)
            return Result.failed("Failed to create customer")

    def update_customer(self, customer_id, **fields) -> Result:
        updates = {k: v for k, v in fields.items() if k in CUSTOMER_FIELDS}
        key = row_id(customer_id)
        try:
            if key is None or self.get_customer(key) is None:
                raise NotFoundError("Customer not found")
            self._validate(updates, exclude_id=key)
            values = [_to_column(k, v) for k, v in updates.items()]
            assignments = ", ".join(f"{column} = ?" for column in [*updates.keys(), "updated_at"])
            self.conn.execute(
                f"UPDATE customers SET {assignments} WHERE id = ?",
                (*values, now_iso(), key),
            )
            self.conn.commit()
            return Result.ok(self.get_customer(key))
        except PosError as e:
            return Result.fail(e)
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.exception("Failed to update customer: %s", e)
            return Result.failed("Failed to update customer")

    def delete_customer(self, customer_id) -> Result:
        """Soft delete: the row stays but disappears from every listing."""
        key = row_id(customer_id)
        try:
            if key is None or self.get_customer(key) is None:
                raise NotFoundError("Customer not found")
            now = now_iso()
            self.conn.execute(
                "UPDATE customers SET deleted_at = ?, updated_at = ? WHERE id = ?", (now, now, key)
            )
            self.conn.commit()
            return Result.ok()
        except PosError as e:
            return Result.fail(e)
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.exception("Failed to delete customer: %s", e)
            return Result.failed("Failed to delete customer")

    def _search_params(self, query: str) -> tuple:
        like = f"%{(query or '').strip().lower()}%"
        return (like,) * 6

    def search_customers(self, query: str) -> List[Customer]:
        try:
            rows = self.conn.execute(
                f"SELECT * FROM customers WHERE {SEARCH_WHERE} ORDER BY customer_number DESC",
                self._search_params(query),
            ).fetchall()
        except sqlite3.Error as e:
            logger.exception("Failed to search customers: %s", e)
            return []
        return [_customer_from_row(r) for r in rows]

    def search_customers_paginated(self, query: str, page: int = 1, limit: int = 10) -> Page:
        params = self._search_params(query)
        try:
            total = self.conn.execute(
                f"SELECT COUNT(*) FROM customers WHERE {SEARCH_WHERE}", params
            ).fetchone()[0]
            rows = self.conn.execute(
                f"SELECT * FROM customers WHERE {SEARCH_WHERE} ORDER BY customer_number DESC LIMIT ? OFFSET ?",
                (*params, limit, (page - 1) * limit),
            ).fetchall()
        except sqlite3.Error as e:
            logger.exception("Failed to search customers page: %s", e)
            return Page(items=[], total_count=0, current_page=page, limit=limit)
        return Page(items=[_customer_from_row(r) for r in rows], total_count=total, current_page=page, limit=limit)

    def update_loyalty_points(self, customer_id, points: int) -> Result:
        """Add ``points`` (may be negative) to the customer's balance."""
        key = row_id(customer_id)
        try:
            if key is None or self.get_customer(key) is None:
                raise NotFoundError("Customer not found")
            self.conn.execute(
                "UPDATE customers SET loyalty_points = loyalty_points + ?, updated_at = ? WHERE id = ?",
                (int(points), now_iso(), key),
            )
            self.conn.commit()
            return Result.ok(self.get_customer(key))
        except PosError as e:
            return Result.fail(e)
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.exception("Failed to update loyalty points: %s", e)
            return Result.failed("Failed to update loyalty points")

    def get_top_customers(self, limit: int = 10) -> List[Customer]:
        try:
            rows = self.conn.execute(
                """
                SELECT * FROM customers WHERE deleted_at IS NULL AND is_active = 1
                ORDER BY total_purchases DESC, total_orders DESC LIMIT ?
                """,
                (limit,),
            ).fetchall()
        except sqlite3.Error as e:
            logger.exception("Failed to read top customers: %s", e)
            return []
        return [_customer_from_row(r) for r in rows]
