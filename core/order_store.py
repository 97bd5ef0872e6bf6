"""Storage backends for orders and their line items.

``OrderRepository`` holds the lifecycle rules; a store only persists rows.
Every multi-row write (header plus items) happens as one unit.
"""
import copy
import itertools
import logging
import sqlite3
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List, Optional

from core.constants import STOCK_COMMITTED_STATUSES
from core.models import Order, OrderItem, TopProduct
from core.products import row_id

logger = logging.getLogger(__name__)


class OrderStore(ABC):
    @abstractmethod
    def list_orders(self) -> List[Order]:
        """All orders, newest first."""

    @abstractmethod
    def get(self, order_id) -> Optional[Order]:
        ...

    @abstractmethod
    def list_by_status(self, status: str) -> List[Order]:
        ...

    @abstractmethod
    def list_by_date_range(self, start: str, end: str) -> List[Order]:
        """Orders with ``start <= created_at <= end`` (ISO strings)."""

    @abstractmethod
    def insert(self, order: Order) -> Order:
        """Persist header and items; return the order with its new id."""

    @abstractmethod
    def update_status(
        self,
        order_id,
        status: str,
        updated_at: str,
        completed_at: Optional[str],
        payment_method: Optional[str],
    ) -> None:
        ...

    @abstractmethod
    def replace_items(self, order: Order) -> None:
        """Swap the item set and totals of an existing order."""

    @abstractmethod
    def delete(self, order_id) -> None:
        ...

    @abstractmethod
    def total_sales(self) -> float:
        ...

    @abstractmethod
    def top_selling(self, limit: int) -> List[TopProduct]:
        ...


def _item_from_row(row: sqlite3.Row) -> OrderItem:
    return OrderItem(
        product_id=str(row["product_id"]),
        product_name=row["product_name"],
        quantity=int(row["quantity"]),
        unit_price=float(row["unit_price"]),
        total_price=float(row["total_price"]),
    )


class SqliteOrderStore(OrderStore):
    """``orders`` / ``order_items`` tables, one transaction per write."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def _hydrate(self, rows: List[sqlite3.Row]) -> List[Order]:
        if not rows:
            return []
        ids = [r["id"] for r in rows]
        placeholders = ",".join("?" * len(ids))
        items: Dict[int, List[OrderItem]] = defaultdict(list)
        for item_row in self.conn.execute(
            f"SELECT * FROM order_items WHERE order_id IN ({placeholders}) ORDER BY id",
            ids,
        ):
            items[item_row["order_id"]].append(_item_from_row(item_row))
        return [
            Order(
                id=str(r["id"]),
                items=items[r["id"]],
                subtotal=float(r["subtotal"]),
                tax=float(r["tax"]),
                total=float(r["total"]),
                status=r["status"],
                created_at=r["created_at"],
                updated_at=r["updated_at"],
                user_id=str(r["user_id"]) if r["user_id"] is not None else None,
                payment_method=r["payment_method"],
                notes=r["notes"],
                completed_at=r["completed_at"],
            )
            for r in rows
        ]

    def _select(self, where: str = "", params: tuple = ()) -> List[Order]:
        query = "SELECT * FROM orders"
        if where:
            query += " WHERE " + where
        query += " ORDER BY created_at DESC, id DESC"
        return self._hydrate(self.conn.execute(query, params).fetchall())

    def list_orders(self) -> List[Order]:
        return self._select()

    def get(self, order_id) -> Optional[Order]:
        key = row_id(order_id)
        if key is None:
            return None
        found = self._select("id = ?", (key,))
        return found[0] if found else None

    def list_by_status(self, status: str) -> List[Order]:
        return self._select("status = ?", (status,))

    def list_by_date_range(self, start: str, end: str) -> List[Order]:
        return self._select("created_at >= ? AND created_at <= ?", (start, end))

    def _insert_items(self, cur: sqlite3.Cursor, order_id: int, items: List[OrderItem]) -> None:
        cur.executemany(
            """
            INSERT INTO order_items (order_id, product_id, product_name, quantity, unit_price, total_price)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (order_id, row_id(i.product_id), i.product_name, i.quantity, i.unit_price, i.total_price)
                for i in items
            ],
        )

    def insert(self, order: Order) -> Order:
        cur = self.conn.cursor()
        try:
            cur.execute(
                """
                INSERT INTO orders (user_id, subtotal, tax, total, status, payment_method,
                                    notes, created_at, updated_at, completed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    row_id(order.user_id),
                    order.subtotal,
                    order.tax,
                    order.total,
                    order.status,
                    order.payment_method,
                    order.notes,
                    order.created_at,
                    order.updated_at,
                    order.completed_at,
                ),
            )
            order_id = cur.lastrowid
            self._insert_items(cur, order_id, order.items)
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        return self.get(order_id)

    def update_status(self, order_id, status, updated_at, completed_at, payment_method) -> None:
        try:
            self.conn.execute(
                """
                UPDATE orders SET status = ?, updated_at = ?, completed_at = ?, payment_method = ?
                WHERE id = ?
                """,
                (status, updated_at, completed_at, payment_method, row_id(order_id)),
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def replace_items(self, order: Order) -> None:
        key = row_id(order.id)
        cur = self.conn.cursor()
        try:
            cur.execute(
                """
                UPDATE orders SET subtotal = ?, tax = ?, total = ?, payment_method = ?,
                                  notes = ?, updated_at = ?
                WHERE id = ?
                """,
                (order.subtotal, order.tax, order.total, order.payment_method, order.notes, order.updated_at, key),
            )
            cur.execute("DELETE FROM order_items WHERE order_id = ?", (key,))
            self._insert_items(cur, key, order.items)
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def delete(self, order_id) -> None:
        key = row_id(order_id)
        try:
            # order_items also cascade; delete explicitly for databases created without the FK
            self.conn.execute("DELETE FROM order_items WHERE order_id = ?", (key,))
            self.conn.execute("DELETE FROM orders WHERE id = ?", (key,))
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def total_sales(self) -> float:
        row = self.conn.execute(
            "SELECT COALESCE(SUM(total), 0) FROM orders WHERE status IN ('completed', 'paid')"
        ).fetchone()
        return float(row[0])

    def top_selling(self, limit: int) -> List[TopProduct]:
        rows = self.conn.execute(
            """
            SELECT oi.product_id, oi.product_name,
                   SUM(oi.quantity) AS total_sold,
                   SUM(oi.total_price) AS total_revenue,
                   AVG(oi.unit_price) AS average_price
            FROM order_items oi
            JOIN orders o ON o.id = oi.order_id
            WHERE o.status IN ('completed', 'paid')
            GROUP BY oi.product_id, oi.product_name
            ORDER BY total_sold DESC
            LIMIT ?
            """,
            (limit,),
        ).fetchall()
        return [
            TopProduct(
                product_id=str(r["product_id"]),
                product_name=r["product_name"],
                total_sold=int(r["total_sold"]),
                total_revenue=float(r["total_revenue"]),
                average_price=float(r["average_price"]),
            )
            for r in rows
        ]


class InMemoryOrderStore(OrderStore):
    """Dict-backed store; every read returns copies so callers cannot mutate state."""

    def __init__(self):
        self._orders: Dict[str, Order] = {}
        self._ids = itertools.count(1)

    def _sorted(self, orders) -> List[Order]:
        ordered = sorted(orders, key=lambda o: (o.created_at, int(o.id)), reverse=True)
        return [copy.deepcopy(o) for o in ordered]

    def list_orders(self) -> List[Order]:
        return self._sorted(self._orders.values())

    def get(self, order_id) -> Optional[Order]:
        order = self._orders.get(str(order_id))
        return copy.deepcopy(order) if order else None

    def list_by_status(self, status: str) -> List[Order]:
        return self._sorted(o for o in self._orders.values() if o.status == status)

    def list_by_date_range(self, start: str, end: str) -> List[Order]:
        return self._sorted(o for o in self._orders.values() if start <= o.created_at <= end)

    def insert(self, order: Order) -> Order:
        stored = copy.deepcopy(order)
        stored.id = str(next(self._ids))
        self._orders[stored.id] = stored
        return copy.deepcopy(stored)

    def update_status(self, order_id, status, updated_at, completed_at, payment_method) -> None:
        order = self._orders[str(order_id)]
        order.status = status
        order.updated_at = updated_at
        order.completed_at = completed_at
        order.payment_method = payment_method

    def replace_items(self, order: Order) -> None:
        self._orders[str(order.id)] = copy.deepcopy(order)

    def delete(self, order_id) -> None:
        self._orders.pop(str(order_id), None)

    def _committed(self):
        return [o for o in self._orders.values() if o.status in STOCK_COMMITTED_STATUSES]

    def total_sales(self) -> float:
        return float(sum(o.total for o in self._committed()))

    def top_selling(self, limit: int) -> List[TopProduct]:
        totals: Dict[tuple, tuple] = {}
        for order in self._committed():
            for item in order.items:
                sold, revenue, price_sum, count = totals.get((item.product_id, item.product_name), (0, 0.0, 0.0, 0))
                totals[(item.product_id, item.product_name)] = (
                    sold + item.quantity,
                    revenue + item.total_price,
                    price_sum + item.unit_price,
                    count + 1,
                )
        ranked = sorted(totals.items(), key=lambda kv: kv[1][0], reverse=True)[:limit]
        return [
            TopProduct(
                product_id=product_id,
                product_name=name,
                total_sold=sold,
                total_revenue=revenue,
                average_price=price_sum / count,
            )
            for (product_id, name), (sold, revenue, price_sum, count) in ranked
        ]
