"""Reporting queries for the Analytics and Dashboard pages.

Storage errors never reach the pages from here: they are logged and an empty
or zeroed result is returned instead.
"""
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

import pandas as pd

from core.constants import ORDER_STATUSES, STOCK_COMMITTED_STATUSES
from core.errors import PosError
from core.models import APP_TZ, Order

logger = logging.getLogger(__name__)

LOW_STOCK_LIMIT = 10

# Group keys over the local date prefix of the ISO timestamp
PERIOD_FORMATS = {
    "day": "SUBSTR(created_at, 1, 10)",
    "week": "strftime('%Y-W%W', SUBSTR(created_at, 1, 10))",
    "month": "SUBSTR(created_at, 1, 7)",
}


@dataclass
class OverallMetrics:
    total_sales: int = 0
    total_orders: int = 0
    completed_orders: int = 0
    pending_orders: int = 0
    cancelled_orders: int = 0
    average_order_value: float = 0.0
    total_revenue: float = 0.0


@dataclass
class DashboardStats:
    total_sales: float = 0.0
    orders_today: int = 0
    total_customers: int = 0
    total_revenue: float = 0.0
    average_order_value: float = 0.0
    low_stock_products: int = 0
    pending_orders: int = 0


@dataclass
class InventoryStatus:
    total_products: int = 0
    out_of_stock: int = 0
    low_stock: int = 0
    in_stock: int = 0


@dataclass
class CustomerInsights:
    total_active_customers: int = 0
    total_inactive_customers: int = 0
    average_spent_per_customer: float = 0.0
    total_customer_spending: float = 0.0
    top_customers: List[dict] = field(default_factory=list)


def _range_clause(start: Optional[str], end: Optional[str], column: str = "created_at") -> Tuple[str, list]:
    if start and end:
        return f" AND {column} >= ? AND {column} <= ?", [start, end]
    return "", []


class AnalyticsService:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get_overall_metrics(self, start: Optional[str] = None, end: Optional[str] = None) -> OverallMetrics:
        clause, params = _range_clause(start, end)
        try:
            row = self.conn.execute(
                f"""
                SELECT
                    COUNT(*) AS total_orders,
                    SUM(CASE WHEN status IN ('completed', 'paid') THEN 1 ELSE 0 END) AS completed_orders,
                    SUM(CASE WHEN status = 'pending' THEN 1 ELSE 0 END) AS pending_orders,
                    SUM(CASE WHEN status = 'cancelled' THEN 1 ELSE 0 END) AS cancelled_orders,
                    COALESCE(SUM(CASE WHEN status IN ('completed', 'paid') THEN total ELSE 0 END), 0) AS total_revenue,
                    COALESCE(AVG(CASE WHEN status IN ('completed', 'paid') THEN total END), 0) AS avg_order_value
                FROM orders WHERE 1=1 {clause}
                """,
                params,
            ).fetchone()
        except sqlite3.Error as e:
            logger.exception("Failed to compute overall metrics: %s", e)
            return OverallMetrics()
        completed = int(row["completed_orders"] or 0)
        return OverallMetrics(
            total_sales=completed,
            total_orders=int(row["total_orders"] or 0),
            completed_orders=completed,
            pending_orders=int(row["pending_orders"] or 0),
            cancelled_orders=int(row["cancelled_orders"] or 0),
            average_order_value=float(row["avg_order_value"] or 0),
            total_revenue=float(row["total_revenue"] or 0),
        )

    def get_sales_by_members(self, start: Optional[str] = None, end: Optional[str] = None) -> pd.DataFrame:
        clause, params = _range_clause(start, end, "o.created_at")
        query = f"""
            SELECT
                COALESCE(o.user_id, 1) AS user_id,
                COALESCE(u.name, 'Unknown User') AS user_name,
                COUNT(*) AS total_orders,
                COALESCE(SUM(o.total), 0) AS total_revenue
            FROM orders o
            LEFT JOIN users u ON o.user_id = u.id
            WHERE o.status IN ('completed', 'paid') {clause}
            GROUP BY o.user_id, u.name
            ORDER BY total_revenue DESC
        """
        try:
            return pd.read_sql(query, self.conn, params=params)
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            logger.exception("Failed to compute sales by member: %s", e)
            return pd.DataFrame(columns=["user_id", "user_name", "total_orders", "total_revenue"])

    def get_top_products(
        self, limit: int = 10, start: Optional[str] = None, end: Optional[str] = None
    ) -> pd.DataFrame:
        clause, params = _range_clause(start, end, "o.created_at")
        query = f"""
            SELECT
                oi.product_id,
                oi.product_name,
                SUM(oi.quantity) AS total_sold,
                SUM(oi.total_price) AS total_revenue,
                AVG(oi.unit_price) AS average_price
            FROM order_items oi
            JOIN orders o ON oi.order_id = o.id
            WHERE o.status IN ('completed', 'paid') {clause}
            GROUP BY oi.product_id, oi.product_name
            ORDER BY total_sold DESC
            LIMIT ?
        """
        try:
            return pd.read_sql(query, self.conn, params=[*params, limit])
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            logger.exception("Failed to compute top products: %s", e)
            return pd.DataFrame(
                columns=["product_id", "product_name", "total_sold", "total_revenue", "average_price"]
            )

    def get_sales_by_period(
        self, period: str = "day", start: Optional[str] = None, end: Optional[str] = None
    ) -> pd.DataFrame:
        """Completed/paid sales grouped by ``day``, ``week`` or ``month``."""
        if period not in PERIOD_FORMATS:
            raise ValueError(f"Unknown period: {period}")
        clause, params = _range_clause(start, end)
        query = f"""
            SELECT
                {PERIOD_FORMATS[period]} AS period,
                COUNT(*) AS orders,
                COALESCE(SUM(total), 0) AS revenue
            FROM orders
            WHERE status IN ('completed', 'paid') {clause}
            GROUP BY period
            ORDER BY period
        """
        try:
            return pd.read_sql(query, self.conn, params=params)
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            logger.exception("Failed to compute sales by period: %s", e)
            return pd.DataFrame(columns=["period", "orders", "revenue"])


class DashboardService:
    """Summary figures built from the order, customer and product repositories."""

    def __init__(self, orders, customers, products):
        self.orders = orders
        self.customers = customers
        self.products = products

    def _all_orders(self) -> List[Order]:
        try:
            return self.orders.get_orders()
        except PosError as e:
            logger.warning("Dashboard could not load orders: %s", e)
            return []

    def get_dashboard_stats(self, today: Optional[date] = None) -> DashboardStats:
        orders = self._all_orders()
        committed = [o for o in orders if o.status in STOCK_COMMITTED_STATUSES]
        total_sales = sum(o.total for o in committed)
        today_prefix = (today or datetime.now(APP_TZ).date()).isoformat()
        products = self.products.get_products()
        return DashboardStats(
            total_sales=total_sales,
            orders_today=sum(1 for o in orders if o.created_at.startswith(today_prefix)),
            total_customers=sum(1 for c in self.customers.get_customers() if c.is_active),
            total_revenue=total_sales,
            average_order_value=total_sales / len(committed) if committed else 0.0,
            low_stock_products=sum(1 for p in products if p.is_active and 0 < p.stock < LOW_STOCK_LIMIT),
            pending_orders=sum(1 for o in orders if o.status == "pending"),
        )

    def get_sales_data(self, days: int = 7, today: Optional[date] = None) -> pd.DataFrame:
        """Daily completed/paid totals for the last ``days`` days, zero-filled."""
        today = today or datetime.now(APP_TZ).date()
        amounts: Dict[str, float] = {
            (today - timedelta(days=offset)).isoformat(): 0.0 for offset in range(days - 1, -1, -1)
        }
        for order in self._all_orders():
            day = order.created_at[:10]
            if order.status in STOCK_COMMITTED_STATUSES and day in amounts:
                amounts[day] += order.total
        return pd.DataFrame({"date": list(amounts.keys()), "amount": list(amounts.values())})

    def get_top_products(self, limit: int = 5) -> pd.DataFrame:
        top = self.orders.get_top_selling_products(limit)
        return pd.DataFrame(
            [{"id": p.product_id, "name": p.product_name, "sales": p.total_sold, "revenue": p.total_revenue} for p in top],
            columns=["id", "name", "sales", "revenue"],
        )

    def get_recent_orders(self, limit: int = 5) -> List[Order]:
        orders = sorted(self._all_orders(), key=lambda o: o.created_at, reverse=True)
        return orders[:limit]

    def get_inventory_status(self) -> InventoryStatus:
        active = [p for p in self.products.get_products() if p.is_active]
        return InventoryStatus(
            total_products=len(active),
            out_of_stock=sum(1 for p in active if p.stock == 0),
            low_stock=sum(1 for p in active if 0 < p.stock < LOW_STOCK_LIMIT),
            in_stock=sum(1 for p in active if p.stock >= LOW_STOCK_LIMIT),
        )

    def get_sales_data_by_date_range(self, start: str, end: str) -> pd.DataFrame:
        try:
            orders = self.orders.get_orders_by_date_range(start, end)
        except PosError as e:
            logger.warning("Dashboard could not load orders for range: %s", e)
            orders = []
        amounts: Dict[str, float] = {}
        for order in orders:
            if order.status in STOCK_COMMITTED_STATUSES:
                day = order.created_at[:10]
                amounts[day] = amounts.get(day, 0.0) + order.total
        days = sorted(amounts)
        return pd.DataFrame({"date": days, "amount": [amounts[d] for d in days]})

    def get_order_status_breakdown(self) -> Dict[str, int]:
        orders = self._all_orders()
        breakdown = {status: sum(1 for o in orders if o.status == status) for status in ORDER_STATUSES}
        breakdown["total"] = len(orders)
        return breakdown

    def get_customer_insights(self) -> CustomerInsights:
        customers = self.customers.get_customers()
        active = [c for c in customers if c.is_active]
        total_spent = sum(c.total_purchases for c in active)
        top = sorted((c for c in active if c.total_purchases > 0), key=lambda c: c.total_purchases, reverse=True)[:5]
        return CustomerInsights(
            total_active_customers=len(active),
            total_inactive_customers=len(customers) - len(active),
            average_spent_per_customer=total_spent / len(active) if active else 0.0,
            total_customer_spending=total_spent,
            top_customers=[
                {
                    "id": c.id,
                    "name": c.full_name,
                    "total_spent": c.total_purchases,
                    "loyalty_points": c.loyalty_points,
                    "last_purchase_date": c.last_purchase_date,
                }
                for c in top
            ],
        )
