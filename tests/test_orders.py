"""
Unit tests for OrderRepository

Covers order creation, the status state machine and the stock it commits,
pending-order edits and deletion reconciliation, against the in-memory
backends and against SQLite.
"""
import sqlite3
from unittest.mock import patch

import numpy as np
import pandas as pd
import pytest

from core.errors import InfrastructureError, Result
from core.order_store import SqliteOrderStore


def _stock(catalog, product_id):
    return catalog.get_product(product_id).stock


class TestCreateOrder:
    """Test OrderRepository.create_order"""

    def test_example_order_totals_and_untouched_stock(self, orders, catalog):
        """Test 3 x P1 at 2.50 with 10% tax gives 7.50 / 0.75 / 8.25 and leaves stock alone"""
        # Act
        result = orders.create_order([{"product_id": "P1", "quantity": 3}])

        # Assert
        assert result.success
        order = result.value
        assert order.subtotal == 7.50
        assert order.tax == 0.75
        assert order.total == 8.25
        assert order.status == "pending"
        assert order.completed_at is None
        assert _stock(catalog, "P1") == 10

    def test_empty_item_list_fails_and_persists_nothing(self, orders, order_store):
        """Test an order with no items is rejected"""
        result = orders.create_order([])

        assert not result.success
        assert result.kind == "ValidationError"
        assert order_store.list_orders() == []

    def test_insufficient_stock_names_product_and_quantities(self, orders, order_store):
        """Test requesting 5 of a product with 2 in stock fails without creating an order"""
        result = orders.create_order([{"product_id": "P2", "quantity": 5}])

        assert not result.success
        assert result.kind == "InsufficientStockError"
        assert "Muffin" in result.error
        assert "Available: 2, Requested: 5" in result.error
        assert order_store.list_orders() == []

    def test_repeated_lines_are_checked_against_combined_quantity(self, orders):
        """Test two lines of the same product count together against stock"""
        result = orders.create_order(
            [{"product_id": "P2", "quantity": 1}, {"product_id": "P2", "quantity": 2}]
        )

        assert not result.success
        assert "Available: 2, Requested: 3" in result.error

    def test_subtotal_is_exact_sum_of_line_totals(self, orders):
        """Test subtotal equals the sum of unit price times quantity"""
        result = orders.create_order(
            [{"product_id": "P1", "quantity": 4}, {"product_id": "P2", "quantity": 1}]
        )

        assert result.success
        order = result.value
        assert order.subtotal == sum(i.unit_price * i.quantity for i in order.items)
        assert order.subtotal == 13.0
        assert order.tax == 1.3
        assert order.total == 14.3

    def test_items_snapshot_name_and_price(self, orders, catalog):
        """Test later catalog changes do not alter the stored order items"""
        order = orders.create_order([{"product_id": "P1", "quantity": 1}]).value

        catalog.update_product("P1", name="Espresso", price=4.0)

        stored = orders.get_order(order.id)
        assert stored.items[0].product_name == "Coffee"
        assert stored.items[0].unit_price == 2.50

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2", True, float("nan"), None])
    def test_invalid_quantity_is_rejected(self, orders, quantity):
        """Test quantities must be positive whole numbers"""
        result = orders.create_order([{"product_id": "P1", "quantity": quantity}])

        assert not result.success
        assert result.error == "Quantity must be a positive whole number"

    @pytest.mark.parametrize("quantity", [np.int64(2), 2.0, np.float64(2.0)])
    def test_numeric_types_from_tables_are_accepted(self, orders, quantity):
        """Test numpy integers and whole floats count as whole quantities"""
        result = orders.create_order([{"product_id": "P1", "quantity": quantity}])

        assert result.success
        assert result.value.items[0].quantity == 2
        assert type(result.value.items[0].quantity) is int
        assert result.value.subtotal == 5.0

    def test_unknown_product_is_not_found(self, orders):
        result = orders.create_order([{"product_id": "NOPE", "quantity": 1}])

        assert not result.success
        assert result.kind == "NotFoundError"

    def test_inactive_product_is_rejected(self, orders, catalog):
        catalog.update_product("P1", is_active=False)

        result = orders.create_order([{"product_id": "P1", "quantity": 1}])

        assert not result.success
        assert result.kind == "ValidationError"
        assert "not active" in result.error

    def test_unknown_payment_method_is_rejected(self, orders):
        result = orders.create_order([{"product_id": "P1", "quantity": 1}], payment_method="bitcoin")

        assert not result.success
        assert result.error == "Invalid payment method: bitcoin"

    def test_user_id_defaults_to_first_user(self, orders):
        order = orders.create_order([{"product_id": "P1", "quantity": 1}]).value

        assert order.user_id == "1"

    def test_store_failure_becomes_generic_error(self, orders, order_store):
        """Test an unexpected storage error is reported without internals"""
        with patch.object(order_store, "insert", side_effect=RuntimeError("disk on fire")):
            result = orders.create_order([{"product_id": "P1", "quantity": 1}])

        assert not result.success
        assert result.error == "Failed to create order"
        assert result.kind == "InfrastructureError"


class TestOrderStatusTransitions:
    """Test OrderRepository.update_order_status and its stock effects"""

    def test_paid_deducts_stock_and_sets_completed_at(self, orders, catalog):
        """Test pending -> paid takes items out of stock"""
        order = orders.create_order([{"product_id": "P1", "quantity": 3}]).value

        result = orders.update_order_status(order.id, "paid")

        assert result.success
        assert result.value.status == "paid"
        assert result.value.completed_at is not None
        assert _stock(catalog, "P1") == 7

    def test_cancel_after_paid_restores_stock(self, orders, catalog):
        """Test create -> paid -> cancelled leaves stock where it started"""
        order = orders.create_order([{"product_id": "P1", "quantity": 3}]).value
        orders.update_order_status(order.id, "paid")

        result = orders.update_order_status(order.id, "cancelled")

        assert result.success
        assert result.value.status == "cancelled"
        assert _stock(catalog, "P1") == 10

    def test_paid_to_completed_has_no_stock_effect(self, orders, catalog):
        order = orders.create_order([{"product_id": "P1", "quantity": 3}]).value
        orders.update_order_status(order.id, "paid")

        result = orders.update_order_status(order.id, "completed")

        assert result.success
        assert _stock(catalog, "P1") == 7

    def test_pending_to_cancelled_has_no_stock_effect(self, orders, catalog):
        order = orders.create_order([{"product_id": "P1", "quantity": 3}]).value

        orders.update_order_status(order.id, "cancelled")

        assert _stock(catalog, "P1") == 10

    def test_cancelled_order_can_be_paid_again(self, orders, catalog):
        """Test cancelled -> paid deducts stock like pending -> paid"""
        order = orders.create_order([{"product_id": "P1", "quantity": 2}]).value
        orders.update_order_status(order.id, "cancelled")

        result = orders.update_order_status(order.id, "paid")

        assert result.success
        assert _stock(catalog, "P1") == 8

    def test_completed_at_kept_when_moving_back_to_pending(self, orders):
        order = orders.create_order([{"product_id": "P1", "quantity": 1}]).value
        paid = orders.update_order_status(order.id, "paid").value

        reopened = orders.update_order_status(order.id, "pending").value

        assert reopened.completed_at == paid.completed_at

    def test_payment_method_is_recorded(self, orders):
        order = orders.create_order([{"product_id": "P1", "quantity": 1}]).value

        result = orders.update_order_status(order.id, "paid", payment_method="card")

        assert result.value.payment_method == "card"

    def test_invalid_status_is_rejected(self, orders):
        order = orders.create_order([{"product_id": "P1", "quantity": 1}]).value

        result = orders.update_order_status(order.id, "refunded")

        assert not result.success
        assert result.error == "Invalid order status: refunded"

    def test_unknown_order_is_not_found(self, orders):
        result = orders.update_order_status("999", "paid")

        assert not result.success
        assert result.error == "Order not found"

    def test_deduction_checks_live_stock(self, orders, catalog):
        """Test stock sold elsewhere after creation blocks payment with nothing deducted"""
        order = orders.create_order(
            [{"product_id": "P1", "quantity": 2}, {"product_id": "P2", "quantity": 2}]
        ).value
        catalog.update_product("P2", stock=1)

        result = orders.update_order_status(order.id, "paid")

        assert not result.success
        assert result.kind == "InsufficientStockError"
        assert "Available: 1, Needed: 2" in result.error
        assert _stock(catalog, "P1") == 10
        assert orders.get_order(order.id).status == "pending"

    def test_failed_stock_write_rolls_back_earlier_writes(self, orders, catalog):
        """Test a failing write on the second product puts the first one back"""
        order = orders.create_order(
            [{"product_id": "P1", "quantity": 2}, {"product_id": "P2", "quantity": 1}]
        ).value
        real_update = catalog.update_product

        def flaky_update(product_id, **fields):
            if product_id == "P2" and "stock" in fields and fields["stock"] < 2:
                return Result.failed("Failed to update product")
            return real_update(product_id, **fields)

        with patch.object(catalog, "update_product", side_effect=flaky_update):
            result = orders.update_order_status(order.id, "paid")

        assert not result.success
        assert result.error == "Failed to update stock for Muffin"
        assert _stock(catalog, "P1") == 10
        assert _stock(catalog, "P2") == 2
        assert orders.get_order(order.id).status == "pending"

    def test_status_write_failure_restores_deducted_stock(self, orders, order_store, catalog):
        order = orders.create_order([{"product_id": "P1", "quantity": 3}]).value

        with patch.object(order_store, "update_status", side_effect=RuntimeError("locked")):
            result = orders.update_order_status(order.id, "paid")

        assert not result.success
        assert result.error == "Failed to update order status"
        assert _stock(catalog, "P1") == 10

    def test_restore_skips_deleted_product(self, orders, catalog):
        """Test cancelling a paid order whose product was deleted still succeeds"""
        order = orders.create_order(
            [{"product_id": "P1", "quantity": 1}, {"product_id": "P2", "quantity": 1}]
        ).value
        orders.update_order_status(order.id, "paid")
        catalog.delete_product("P2")

        result = orders.update_order_status(order.id, "cancelled")

        assert result.success
        assert _stock(catalog, "P1") == 10

    def test_restore_failure_is_logged_not_raised(self, orders, catalog, caplog):
        order = orders.create_order([{"product_id": "P1", "quantity": 1}]).value
        orders.update_order_status(order.id, "paid")

        with patch.object(catalog, "update_product", return_value=Result.failed("Failed to update product")):
            result = orders.update_order_status(order.id, "cancelled")

        assert result.success
        assert "Failed to restore 1 units of product P1" in caplog.text


class TestUpdateOrder:
    """Test OrderRepository.update_order"""

    def test_pending_order_items_are_replaced_and_totals_recomputed(self, orders):
        order = orders.create_order([{"product_id": "P1", "quantity": 1}]).value

        result = orders.update_order(order.id, [{"product_id": "P2", "quantity": 2}], notes="table 4")

        assert result.success
        updated = result.value
        assert [i.product_id for i in updated.items] == ["P2"]
        assert updated.subtotal == 6.0
        assert updated.tax == 0.6
        assert updated.total == 6.6
        assert updated.notes == "table 4"

    def test_quantities_from_an_edited_float_frame(self, orders):
        """Test rows from a float64 Qty column update the order"""
        order = orders.create_order([{"product_id": "P1", "quantity": 1}]).value
        edited = pd.DataFrame({"product_id": ["P1", "P2"], "Qty": [3.0, np.nan]}).iloc[:1]

        items = [{"product_id": row["product_id"], "quantity": row["Qty"]} for _, row in edited.iterrows()]
        result = orders.update_order(order.id, items)

        assert result.success
        assert result.value.items[0].quantity == 3
        assert result.value.subtotal == 7.5

    def test_paid_order_cannot_be_updated(self, orders):
        """Test editing a paid order fails and leaves items and totals unchanged"""
        order = orders.create_order([{"product_id": "P1", "quantity": 1}]).value
        orders.update_order_status(order.id, "paid")
        before = orders.get_order(order.id)

        result = orders.update_order(order.id, [{"product_id": "P1", "quantity": 2}])

        assert not result.success
        assert result.kind == "InvalidStateError"
        assert result.error == "Can only update pending orders"
        after = orders.get_order(order.id)
        assert after.items == before.items
        assert after.total == before.total

    def test_update_checks_stock(self, orders):
        order = orders.create_order([{"product_id": "P1", "quantity": 1}]).value

        result = orders.update_order(order.id, [{"product_id": "P2", "quantity": 3}])

        assert not result.success
        assert "Available: 2, Requested: 3" in result.error


class TestDeleteOrder:
    """Test OrderRepository.delete_order"""

    def test_deleting_completed_order_restores_stock(self, orders, catalog):
        order = orders.create_order([{"product_id": "P1", "quantity": 4}]).value
        orders.update_order_status(order.id, "completed")
        assert _stock(catalog, "P1") == 6

        result = orders.delete_order(order.id)

        assert result.success
        assert _stock(catalog, "P1") == 10
        assert orders.get_order(order.id) is None

    def test_deleting_pending_order_touches_no_stock(self, orders, catalog):
        order = orders.create_order([{"product_id": "P1", "quantity": 4}]).value

        with patch.object(catalog, "update_product") as update:
            result = orders.delete_order(order.id)

        assert result.success
        update.assert_not_called()

    def test_deleting_unknown_order_fails(self, orders):
        result = orders.delete_order("42")

        assert not result.success
        assert result.kind == "NotFoundError"


class TestOrderQueries:
    """Test read queries and reporting helpers"""

    def test_get_order_is_repeatable(self, orders):
        order = orders.create_order([{"product_id": "P1", "quantity": 2}]).value

        assert orders.get_order(order.id) == orders.get_order(order.id)

    def test_filters_by_status(self, orders):
        first = orders.create_order([{"product_id": "P1", "quantity": 1}]).value
        orders.create_order([{"product_id": "P1", "quantity": 1}])
        orders.update_order_status(first.id, "paid")

        assert [o.id for o in orders.get_orders_by_status("paid")] == [first.id]
        assert len(orders.get_orders_by_status("pending")) == 1

    def test_total_sales_counts_paid_and_completed(self, orders):
        a = orders.create_order([{"product_id": "P1", "quantity": 2}]).value
        b = orders.create_order([{"product_id": "P2", "quantity": 1}]).value
        orders.create_order([{"product_id": "P1", "quantity": 1}])
        orders.update_order_status(a.id, "paid")
        orders.update_order_status(b.id, "completed")

        assert orders.get_total_sales() == pytest.approx(5.5 + 3.3)

    def test_top_selling_products(self, orders):
        a = orders.create_order([{"product_id": "P1", "quantity": 3}, {"product_id": "P2", "quantity": 1}]).value
        orders.update_order_status(a.id, "paid")

        top = orders.get_top_selling_products(5)

        assert [p.product_id for p in top] == ["P1", "P2"]
        assert top[0].total_sold == 3
        assert top[0].total_revenue == 7.5

    def test_query_failure_raises_infrastructure_error(self, orders, order_store):
        with patch.object(order_store, "list_orders", side_effect=RuntimeError("gone")):
            with pytest.raises(InfrastructureError, match="Failed to fetch orders"):
                orders.get_orders()

    def test_total_sales_failure_returns_zero(self, orders, order_store):
        with patch.object(order_store, "total_sales", side_effect=RuntimeError("gone")):
            assert orders.get_total_sales() == 0.0


class TestOrdersByDateRange:
    """Test get_orders_by_date_range on both order stores"""

    @pytest.fixture(params=["memory", "sqlite"])
    def dated_orders(self, request, orders, sqlite_orders, seeded_products):
        """
        Provides a repository holding orders created on Mar 1, Mar 5 and Mar 10 2024
        """
        repo, product_id = (orders, "P1") if request.param == "memory" else (sqlite_orders, seeded_products[0].id)
        for note, created in [
            ("early", "2024-03-01T09:00:00+00:00"),
            ("middle", "2024-03-05T12:00:00+00:00"),
            ("late", "2024-03-10T18:00:00+00:00"),
        ]:
            with patch("core.orders.now_iso", return_value=created):
                repo.create_order([{"product_id": product_id, "quantity": 1}], notes=note)
        return repo

    def test_range_includes_inner_and_end_bound(self, dated_orders):
        found = dated_orders.get_orders_by_date_range("2024-03-02", "2024-03-10T18:00:00+00:00")

        assert sorted(o.notes for o in found) == ["late", "middle"]

    def test_range_includes_start_bound(self, dated_orders):
        found = dated_orders.get_orders_by_date_range("2024-03-01T09:00:00+00:00", "2024-03-02")

        assert [o.notes for o in found] == ["early"]

    def test_empty_range(self, dated_orders):
        assert dated_orders.get_orders_by_date_range("2023-01-01", "2023-12-31") == []

    def test_store_failure_raises_infrastructure_error(self, orders, order_store):
        with patch.object(order_store, "list_by_date_range", side_effect=RuntimeError("gone")):
            with pytest.raises(InfrastructureError, match="Failed to fetch orders by date range"):
                orders.get_orders_by_date_range("2024-03-01", "2024-03-31")


class TestSqliteOrderFlow:
    """Test the full lifecycle against SQLite-backed repositories"""

    def test_example_scenario(self, sqlite_orders, products, seeded_products):
        """Test create -> paid -> cancelled on SQLite with the default 10% tax"""
        coffee, _ = seeded_products

        created = sqlite_orders.create_order([{"product_id": coffee.id, "quantity": 3}])
        assert created.success
        order = created.value
        assert (order.subtotal, order.tax, order.total) == (7.5, 0.75, 8.25)
        assert products.get_product(coffee.id).stock == 10

        paid = sqlite_orders.update_order_status(order.id, "paid").value
        assert paid.completed_at is not None
        assert products.get_product(coffee.id).stock == 7

        sqlite_orders.update_order_status(order.id, "cancelled")
        assert products.get_product(coffee.id).stock == 10

    def test_insufficient_stock_creates_no_rows(self, sqlite_orders, conn, seeded_products):
        _, muffin = seeded_products

        result = sqlite_orders.create_order([{"product_id": muffin.id, "quantity": 5}])

        assert not result.success
        assert "Available: 2, Requested: 5" in result.error
        assert conn.execute("SELECT COUNT(*) FROM orders").fetchone()[0] == 0
        assert conn.execute("SELECT COUNT(*) FROM order_items").fetchone()[0] == 0

    def test_delete_removes_items(self, sqlite_orders, conn, seeded_products):
        coffee, muffin = seeded_products
        order = sqlite_orders.create_order(
            [{"product_id": coffee.id, "quantity": 1}, {"product_id": muffin.id, "quantity": 1}]
        ).value

        sqlite_orders.delete_order(order.id)

        assert conn.execute("SELECT COUNT(*) FROM order_items").fetchone()[0] == 0

    def test_update_order_replaces_items(self, sqlite_orders, seeded_products):
        coffee, muffin = seeded_products
        order = sqlite_orders.create_order([{"product_id": coffee.id, "quantity": 1}]).value

        updated = sqlite_orders.update_order(order.id, [{"product_id": muffin.id, "quantity": 2}]).value

        assert [i.product_name for i in updated.items] == ["Muffin"]
        assert updated.total == 6.6

    def test_tax_follows_company_settings(self, sqlite_orders, settings_repo, seeded_products):
        coffee, _ = seeded_products
        settings_repo.update_settings(tax_enabled=False)

        order = sqlite_orders.create_order([{"product_id": coffee.id, "quantity": 2}]).value

        assert order.tax == 0.0
        assert order.total == 5.0

    def test_failed_item_insert_rolls_back_header(self, sqlite_orders, conn, products, seeded_products):
        """Test the order header is not kept when its items cannot be written"""
        coffee, _ = seeded_products

        with patch.object(SqliteOrderStore, "_insert_items", side_effect=sqlite3.OperationalError("disk I/O error")):
            result = sqlite_orders.create_order([{"product_id": coffee.id, "quantity": 2}])

        assert not result.success
        assert result.error == "Failed to create order"
        assert conn.execute("SELECT COUNT(*) FROM orders").fetchone()[0] == 0
        assert conn.execute("SELECT COUNT(*) FROM order_items").fetchone()[0] == 0
        assert products.get_product(coffee.id).stock == 10
