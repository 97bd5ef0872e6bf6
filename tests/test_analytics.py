"""
Unit tests for AnalyticsService and DashboardService
"""
from datetime import datetime, timedelta

import pytest

from core.analytics import AnalyticsService, DashboardService
from core.models import APP_TZ


@pytest.fixture
def sales(sqlite_orders, seeded_products):
    """
    Provides three orders: 3 coffees paid, 1 muffin pending, 1 coffee cancelled
    """
    coffee, muffin = seeded_products
    paid = sqlite_orders.create_order([{"product_id": coffee.id, "quantity": 3}]).value
    sqlite_orders.update_order_status(paid.id, "paid")
    sqlite_orders.create_order([{"product_id": muffin.id, "quantity": 1}])
    cancelled = sqlite_orders.create_order([{"product_id": coffee.id, "quantity": 1}]).value
    sqlite_orders.update_order_status(cancelled.id, "cancelled")
    return sqlite_orders


class TestAnalyticsService:
    """Test the SQL reporting queries"""

    def test_overall_metrics(self, conn, sales):
        metrics = AnalyticsService(conn).get_overall_metrics()

        assert metrics.total_orders == 3
        assert metrics.completed_orders == 1
        assert metrics.pending_orders == 1
        assert metrics.cancelled_orders == 1
        assert metrics.total_revenue == pytest.approx(8.25)
        assert metrics.average_order_value == pytest.approx(8.25)

    def test_metrics_outside_range_are_empty(self, conn, sales):
        metrics = AnalyticsService(conn).get_overall_metrics("2000-01-01", "2000-01-31")

        assert metrics.total_orders == 0
        assert metrics.total_revenue == 0.0

    def test_top_products_only_count_committed_orders(self, conn, sales):
        top = AnalyticsService(conn).get_top_products()

        assert list(top["product_name"]) == ["Coffee"]
        assert int(top["total_sold"].iloc[0]) == 3

    def test_sales_by_day(self, conn, sales):
        by_day = AnalyticsService(conn).get_sales_by_period("day")

        assert len(by_day) == 1
        assert by_day["revenue"].iloc[0] == pytest.approx(8.25)

    def test_unknown_period(self, conn):
        with pytest.raises(ValueError):
            AnalyticsService(conn).get_sales_by_period("year")

    def test_sales_by_member(self, conn, sales):
        by_member = AnalyticsService(conn).get_sales_by_members()

        assert list(by_member["user_name"]) == ["Admin User"]
        assert by_member["total_revenue"].iloc[0] == pytest.approx(8.25)


class TestDashboardService:
    """Test the dashboard summaries"""

    @pytest.fixture
    def dashboard(self, sales, customers, products):
        return DashboardService(sales, customers, products)

    def test_stats(self, dashboard, customers):
        customers.create_customer("Ada", "Lovelace")
        today = datetime.now(APP_TZ).date()

        stats = dashboard.get_dashboard_stats(today=today)

        assert stats.total_sales == pytest.approx(8.25)
        assert stats.orders_today == 3
        assert stats.pending_orders == 1
        assert stats.total_customers == 1
        # Coffee 7 left, Muffin 2 left
        assert stats.low_stock_products == 2

    def test_sales_data_is_zero_filled(self, dashboard):
        today = datetime.now(APP_TZ).date()

        data = dashboard.get_sales_data(days=7, today=today)

        assert list(data["date"]) == [(today - timedelta(days=n)).isoformat() for n in range(6, -1, -1)]
        assert data["amount"].iloc[-1] == pytest.approx(8.25)
        assert data["amount"].iloc[:-1].sum() == 0

    def test_status_breakdown(self, dashboard):
        breakdown = dashboard.get_order_status_breakdown()

        assert breakdown == {"pending": 1, "paid": 1, "completed": 0, "cancelled": 1, "total": 3}

    def test_recent_orders_newest_first(self, dashboard):
        recent = dashboard.get_recent_orders(limit=2)

        assert len(recent) == 2
        assert recent[0].created_at >= recent[1].created_at

    def test_inventory_status(self, customers, products, seeded_products, sqlite_orders):
        products.create_product(name="Tea", price=2.0, stock=0)
        products.create_product(name="Bagel", price=1.5, stock=25)
        dashboard = DashboardService(sqlite_orders, customers, products)

        status = dashboard.get_inventory_status()

        assert status.total_products == 4
        assert status.out_of_stock == 1
        assert status.low_stock == 1
        assert status.in_stock == 2
