"""Order lifecycle and inventory reconciliation.

Stock moves only on status transitions:

* into paid/completed from pending/cancelled: stock is deducted, all or nothing;
* out of paid/completed into pending/cancelled: stock is restored, best effort;
* paid <-> completed: no stock effect.

Creating or editing a pending order only checks stock. Deleting a paid or
completed order restores stock before the rows are removed.
"""
import logging
import numbers
from collections import OrderedDict
from typing import Iterable, List, Mapping, Optional, Tuple

from core.constants import ORDER_STATUSES, PAYMENT_METHODS, STOCK_COMMITTED_STATUSES
from core.errors import (
    InfrastructureError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    PosError,
    Result,
    ValidationError,
)
from core.models import Order, OrderItem, TopProduct, now_iso
from core.order_store import OrderStore

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = "1"


def _aggregate(lines: Iterable[Tuple[str, int]]) -> "OrderedDict[str, int]":
    """Sum quantities per product id, keeping first-seen order."""
    totals: "OrderedDict[str, int]" = OrderedDict()
    for product_id, quantity in lines:
        totals[product_id] = totals.get(product_id, 0) + quantity
    return totals


def _whole_quantity(quantity) -> Optional[int]:
    """Integral values and whole floats (table editors hand back both) as int."""
    if isinstance(quantity, bool):
        return None
    if isinstance(quantity, numbers.Integral):
        return int(quantity)
    if isinstance(quantity, numbers.Real) and float(quantity).is_integer():
        return int(quantity)
    return None


def _parse_request(items: Iterable[Mapping]) -> List[Tuple[str, int]]:
    lines = []
    for item in items:
        quantity = _whole_quantity(item.get("quantity"))
        if quantity is None or quantity <= 0:
            raise ValidationError("Quantity must be a positive whole number")
        lines.append((str(item.get("product_id")), quantity))
    if not lines:
        raise ValidationError("Order must contain at least one item")
    return lines


def _validate_payment_method(payment_method: Optional[str]) -> None:
    if payment_method is not None and payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {payment_method}")


class OrderRepository:
    """Single authority for orders and the stock they commit.

    ``catalog`` must provide ``get_product(id)`` and
    ``update_product(id, stock=...) -> Result``; ``settings`` must provide
    ``calculate_total_with_tax(subtotal)``.
    """

    def __init__(self, store: OrderStore, catalog, settings):
        self.store = store
        self.catalog = catalog
        self.settings = settings

    # ----------------------------------------------------------------- queries

    def get_orders(self) -> List[Order]:
        try:
            return self.store.list_orders()
        except Exception as e:
            logger.exception("Failed to fetch orders: %s", e)
            raise InfrastructureError("Failed to fetch orders") from e

    def get_order(self, order_id) -> Optional[Order]:
        try:
            return self.store.get(order_id)
        except Exception as e:
            logger.exception("Failed to fetch order %s: %s", order_id, e)
            raise InfrastructureError("Failed to fetch order") from e

    def get_orders_by_status(self, status: str) -> List[Order]:
        try:
            return self.store.list_by_status(status)
        except Exception as e:
            logger.exception("Failed to fetch orders by status: %s", e)
            raise InfrastructureError("Failed to fetch orders by status") from e

    def get_orders_by_date_range(self, start: str, end: str) -> List[Order]:
        """Orders created between ``start`` and ``end`` inclusive (ISO strings)."""
        try:
            return self.store.list_by_date_range(start, end)
        except Exception as e:
            logger.exception("Failed to fetch orders by date range: %s", e)
            raise InfrastructureError("Failed to fetch orders by date range") from e

    def get_total_sales(self) -> float:
        try:
            return self.store.total_sales()
        except Exception as e:
            logger.exception("Failed to compute total sales: %s", e)
            return 0.0

    def get_top_selling_products(self, limit: int = 10) -> List[TopProduct]:
        try:
            return self.store.top_selling(limit)
        except Exception as e:
            logger.exception("Failed to compute top selling products: %s", e)
            return []

    # --------------------------------------------------------------- mutations

    def create_order(
        self,
        items: Iterable[Mapping],
        payment_method: Optional[str] = None,
        notes: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Result:
        """Create a pending order. Stock is checked, never deducted."""
        try:
            _validate_payment_method(payment_method)
            order_items = self._build_items(items)
            subtotal = sum(item.total_price for item in order_items)
            totals = self.settings.calculate_total_with_tax(subtotal)
            now = now_iso()
            order = Order(
                id="",
                items=order_items,
                subtotal=subtotal,
                tax=totals.tax,
                total=totals.total,
                status="pending",
                created_at=now,
                updated_at=now,
                user_id=str(user_id) if user_id is not None else DEFAULT_USER_ID,
                payment_method=payment_method,
                notes=notes,
            )
            created = self.store.insert(order)
            logger.info("Created order %s (%d items, total %.2f)", created.id, len(order_items), created.total)
            return Result.ok(created)
        except PosError as e:
            return Result.fail(e)
        except Exception as e:
            logger.exception("Failed to create order: %s", e)
            return Result.failed("Failed to create order")

    def update_order_status(self, order_id, new_status: str, payment_method: Optional[str] = None) -> Result:
        try:
            if new_status not in ORDER_STATUSES:
                raise ValidationError(f"Invalid order status: {new_status}")
            _validate_payment_method(payment_method)
            order = self.store.get(order_id)
            if order is None:
                raise NotFoundError("Order not found")

            was_committed = order.status in STOCK_COMMITTED_STATUSES
            will_commit = new_status in STOCK_COMMITTED_STATUSES

            deducted: List[Tuple[str, int]] = []
            if will_commit and not was_committed:
                deducted = self._deduct_stock(order.items)

            now = now_iso()
            try:
                self.store.update_status(
                    order.id,
                    new_status,
                    updated_at=now,
                    completed_at=now if will_commit else order.completed_at,
                    payment_method=payment_method or order.payment_method,
                )
            except Exception:
                self._restore_stock(deducted)
                raise

            if was_committed and not will_commit:
                self._restore_stock((item.product_id, item.quantity) for item in order.items)

            logger.info("Order %s: %s -> %s", order.id, order.status, new_status)
            return Result.ok(self.store.get(order.id))
        except PosError as e:
            return Result.fail(e)
        except Exception as e:
            logger.exception("Failed to update order status: %s", e)
            return Result.failed("Failed to update order status")

    def update_order(
        self,
        order_id,
        items: Iterable[Mapping],
        payment_method: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Result:
        """Replace the items of a pending order and recompute its totals."""
        try:
            _validate_payment_method(payment_method)
            order = self.store.get(order_id)
            if order is None:
                raise NotFoundError("Order not found")
            if order.status != "pending":
                raise InvalidStateError("Can only update pending orders")

            order.items = self._build_items(items)
            order.subtotal = sum(item.total_price for item in order.items)
            totals = self.settings.calculate_total_with_tax(order.subtotal)
            order.tax, order.total = totals.tax, totals.total
            order.payment_method = payment_method or order.payment_method
            if notes is not None:
                order.notes = notes
            order.updated_at = now_iso()

            self.store.replace_items(order)
            return Result.ok(self.store.get(order.id))
        except PosError as e:
            return Result.fail(e)
        except Exception as e:
            logger.exception("Failed to update order: %s", e)
            return Result.failed("Failed to update order")

    def delete_order(self, order_id) -> Result:
        try:
            order = self.store.get(order_id)
            if order is None:
                raise NotFoundError("Order not found")
            if order.status in STOCK_COMMITTED_STATUSES:
                self._restore_stock((item.product_id, item.quantity) for item in order.items)
            self.store.delete(order.id)
            logger.info("Deleted order %s (%s)", order.id, order.status)
            return Result.ok()
        except PosError as e:
            return Result.fail(e)
        except Exception as e:
            logger.exception("Failed to delete order: %s", e)
            return Result.failed("Failed to delete order")

    # ------------------------------------------------------------------- stock

    def _build_items(self, items: Iterable[Mapping]) -> List[OrderItem]:
        """Validate requested lines against the live catalog and snapshot them."""
        lines = _parse_request(items)
        requested: dict = {}
        built = []
        for product_id, quantity in lines:
            product = self.catalog.get_product(product_id)
            if product is None:
                raise NotFoundError(f"Product {product_id} not found")
            if not product.is_active:
                raise ValidationError(f"Product {product.name} is not active")
            requested[product_id] = requested.get(product_id, 0) + quantity
            if product.stock < requested[product_id]:
                raise InsufficientStockError(product.name, product.stock, requested[product_id])
            built.append(
                OrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    quantity=quantity,
                    unit_price=product.price,
                    total_price=product.price * quantity,
                )
            )
        return built

    def _deduct_stock(self, items: List[OrderItem]) -> List[Tuple[str, int]]:
        """Take ``items`` out of stock or change nothing.

        Every product is checked against live stock before the first write.
        Writes then run in item order; if one fails, the writes already made
        are put back and the error propagates.
        """
        required = _aggregate((item.product_id, item.quantity) for item in items)
        products = {}
        for product_id, quantity in required.items():
            product = self.catalog.get_product(product_id)
            if product is None:
                raise NotFoundError(f"Product {product_id} not found")
            if product.stock < quantity:
                raise InsufficientStockError(product.name, product.stock, quantity, label="Needed")
            products[product_id] = product

        applied: List[Tuple[str, int]] = []
        for product_id, quantity in required.items():
            product = products[product_id]
            try:
                result = self.catalog.update_product(product_id, stock=product.stock - quantity)
            except Exception:
                self._restore_stock(applied)
                raise
            if not result.success:
                self._restore_stock(applied)
                raise InfrastructureError(f"Failed to update stock for {product.name}")
            applied.append((product_id, quantity))
        return applied

    def _restore_stock(self, lines: Iterable[Tuple[str, int]]) -> None:
        """Add quantities back to live stock. Failures are logged, never raised."""
        # TODO: queue failed restorations for retry instead of only logging them
        for product_id, quantity in lines:
            try:
                product = self.catalog.get_product(product_id)
                if product is None:
                    logger.info("Skipping stock restore for deleted product %s", product_id)
                    continue
                result = self.catalog.update_product(product_id, stock=product.stock + quantity)
                if not result.success:
                    logger.warning(
                        "Failed to restore %d units of product %s: %s", quantity, product_id, result.error
                    )
            except Exception as e:
                logger.exception("Failed to restore %d units of product %s: %s", quantity, product_id, e)
