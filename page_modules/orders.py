"""Register and order management page."""
from datetime import date, timedelta

import pandas as pd
import streamlit as st

from core.constants import ORDER_STATUSES, PAYMENT_METHODS
from core.errors import PosError, PrintError
from core.print_service import format_receipt_data, print_thermal_receipt, receipt_to_pdf
from ui.components import STATUS_BADGES, money, render_totals


def _flash(message: str, icon: str = "✅"):
    st.session_state.order_toast = (message, icon)


def _cart():
    """Product id -> quantity for the order being rung up."""
    if "cart" not in st.session_state:
        st.session_state.cart = {}
    return st.session_state.cart


def _cart_items(cart):
    return [{"product_id": pid, "quantity": qty} for pid, qty in cart.items()]


def render(services, session):
    """Render the orders page."""
    t = session.t
    if "order_toast" in st.session_state:
        message, icon = st.session_state.pop("order_toast")
        st.toast(message, icon=icon)

    settings = services.settings.get_settings()
    currency = settings.currency_symbol if settings else "$"

    st.header(f"🧾 {t('orders.title')}")
    can_create = session.auth_actions.has_permission("sales.create")
    tabs = st.tabs([f"🛒 {t('orders.new_order')}", f"📋 {t('orders.order_list')}"])
    with tabs[0]:
        if can_create:
            _render_register(services, session, currency)
        else:
            st.warning(f"🔒 {t('common.no_permission')}")
    with tabs[1]:
        _render_order_list(services, session, settings, currency)


def _render_register(services, session, currency):
    t = session.t
    cart = _cart()
    query = st.text_input(f"🔍 {t('orders.search_product')}", key="register_search")
    products = services.products.search_products(query) if query else services.products.get_products(False)
    products = sorted((p for p in products if p.is_active), key=lambda p: p.name.casefold())
    if not products:
        st.info(t("orders.no_products"))
    else:
        col1, col2, col3 = st.columns([3, 1, 1])
        with col1:
            product = st.selectbox(
                t("orders.product"),
                products,
                format_func=lambda p: f"{p.name} · {money(p.price, currency)} · {p.stock} in stock",
                key="register_product",
            )
        with col2:
            qty = st.number_input(t("orders.quantity"), min_value=1, step=1, value=1, key="register_qty")
        with col3:
            st.write("")
            st.write("")
            if st.button(f"➕ {t('orders.add')}", key="register_add", disabled=product.is_out_of_stock):
                cart[product.id] = cart.get(product.id, 0) + int(qty)
                st.rerun()

    if not cart:
        st.info(t("orders.cart_empty"))
        return

    st.subheader(f"🛒 {t('orders.cart')}")
    subtotal = 0.0
    for pid, qty in list(cart.items()):
        product = services.products.get_product(pid)
        if product is None:
            cart.pop(pid)
            continue
        line_total = product.price * qty
        subtotal += line_total
        col1, col2, col3, col4 = st.columns([4, 1, 2, 1])
        col1.write(f"**{product.name}**")
        col2.write(f"× {qty}")
        col3.write(money(line_total, currency))
        if col4.button("🗑️", key=f"cart_remove_{pid}"):
            cart.pop(pid)
            st.rerun()

    totals = services.settings.calculate_total_with_tax(subtotal)
    render_totals(subtotal, totals.tax, totals.total, currency)

    col1, col2 = st.columns(2)
    with col1:
        payment = st.selectbox(
            t("orders.payment_method"),
            [None] + PAYMENT_METHODS,
            format_func=lambda m: t("orders.payment_none") if m is None else m.title(),
            key="register_payment",
        )
    with col2:
        notes = st.text_input(t("orders.notes"), key="register_notes")

    col1, col2 = st.columns(2)
    if col1.button(f"✅ {t('orders.create_order')}", type="primary", key="register_create", use_container_width=True):
        user = session.auth_store.user
        result = services.orders.create_order(
            _cart_items(cart),
            payment_method=payment,
            notes=notes or None,
            user_id=user.id if user else None,
        )
        if result.success:
            st.session_state.cart = {}
            _flash(t("orders.created", id=result.value.id))
            st.rerun()
        else:
            st.error(f"❌ {result.error}")
    if col2.button(f"🧹 {t('orders.clear_cart')}", key="register_clear", use_container_width=True):
        st.session_state.cart = {}
        st.rerun()


def _load_orders(services, status_filter, date_range):
    if date_range and len(date_range) == 2:
        start, end = date_range
        # created_at is ISO text, so an end bound of the next day's prefix covers the whole day
        orders = services.orders.get_orders_by_date_range(start.isoformat(), (end + timedelta(days=1)).isoformat())
        if status_filter != "all":
            orders = [o for o in orders if o.status == status_filter]
        return orders
    if status_filter != "all":
        return services.orders.get_orders_by_status(status_filter)
    return services.orders.get_orders()


def _render_order_list(services, session, settings, currency):
    t = session.t
    col1, col2 = st.columns(2)
    with col1:
        status_filter = st.selectbox(
            t("orders.status"),
            ["all"] + ORDER_STATUSES,
            format_func=lambda s: t("common.all") if s == "all" else STATUS_BADGES[s],
            key="orders_status_filter",
        )
    with col2:
        today = date.today()
        date_range = st.date_input(
            t("orders.date_range"),
            value=(today - timedelta(days=30), today),
            key="orders_date_range",
        )

    try:
        orders = _load_orders(services, status_filter, date_range)
    except PosError as e:
        st.error(f"❌ {e}")
        return

    if not orders:
        st.info(t("orders.none_found"))
        return

    st.caption(t("orders.count", count=len(orders)))
    for order in orders:
        label = (
            f"#{order.id} · {STATUS_BADGES.get(order.status, order.status)} · "
            f"{money(order.total, currency)} · {order.created_at[:16].replace('T', ' ')}"
        )
        with st.expander(label):
            _render_order_detail(services, session, settings, currency, order)


def _render_order_detail(services, session, settings, currency, order):
    t = session.t
    items_df = pd.DataFrame(
        [
            {
                "Product": item.product_name,
                "Qty": item.quantity,
                "Unit": money(item.unit_price, currency),
                "Total": money(item.total_price, currency),
            }
            for item in order.items
        ]
    )
    st.dataframe(items_df, use_container_width=True, hide_index=True)
    render_totals(order.subtotal, order.tax, order.total, currency)
    if order.payment_method:
        st.caption(f"{t('orders.payment_method')}: {order.payment_method.title()}")
    if order.notes:
        st.caption(f"📝 {order.notes}")
    if order.completed_at:
        st.caption(f"{t('orders.completed_at')}: {order.completed_at[:16].replace('T', ' ')}")

    can_change = session.auth_actions.has_permission("sales.create")
    can_edit = session.auth_actions.has_permission("sales.edit")

    col1, col2, col3 = st.columns(3)
    with col1:
        if can_change:
            targets = [s for s in ORDER_STATUSES if s != order.status]
            new_status = st.selectbox(
                t("orders.change_status"),
                targets,
                format_func=lambda s: STATUS_BADGES[s],
                key=f"status_{order.id}",
            )
            payment = st.selectbox(
                t("orders.payment_method"),
                [order.payment_method] + [m for m in PAYMENT_METHODS if m != order.payment_method],
                format_func=lambda m: t("orders.payment_none") if m is None else m.title(),
                key=f"status_payment_{order.id}",
            )
            if st.button(t("orders.apply_status"), key=f"apply_status_{order.id}"):
                result = services.orders.update_order_status(order.id, new_status, payment_method=payment)
                if result.success:
                    _flash(t("orders.status_updated", id=order.id, status=new_status))
                    st.rerun()
                else:
                    st.error(f"❌ {result.error}")
    with col2:
        _render_receipt(session, settings, currency, order)
    with col3:
        if can_edit:
            if st.button(f"🗑️ {t('common.delete')}", key=f"delete_order_{order.id}"):
                result = services.orders.delete_order(order.id)
                if result.success:
                    _flash(t("orders.deleted", id=order.id), icon="🗑️")
                    st.rerun()
                else:
                    st.error(f"❌ {result.error}")

    if can_edit and order.status == "pending":
        _render_edit_pending(services, session, order)


def edited_items(edited: pd.DataFrame) -> list:
    """Order lines from the item editor; a quantity of 0 drops the line.

    Blank quantities are passed through so the repository rejects them.
    """
    return [
        {"product_id": row["product_id"], "quantity": row["Qty"]}
        for _, row in edited.iterrows()
        if row["Qty"] != 0
    ]


def _render_edit_pending(services, session, order):
    t = session.t
    st.markdown(f"**✏️ {t('orders.edit_items')}**")
    edit_df = pd.DataFrame(
        [{"product_id": i.product_id, "Product": i.product_name, "Qty": i.quantity} for i in order.items]
    )
    edited = st.data_editor(
        edit_df,
        key=f"edit_items_{order.id}",
        hide_index=True,
        num_rows="fixed",
        disabled=["product_id", "Product"],
        column_config={
            "product_id": None,
            "Qty": st.column_config.NumberColumn("Qty", min_value=0, step=1, help=t("orders.qty_zero_removes")),
        },
    )
    notes = st.text_input(t("orders.notes"), value=order.notes or "", key=f"edit_notes_{order.id}")
    if st.button(f"💾 {t('common.save')}", key=f"save_order_{order.id}"):
        result = services.orders.update_order(order.id, edited_items(edited), notes=notes)
        if result.success:
            _flash(t("orders.updated", id=order.id))
            st.rerun()
        else:
            st.error(f"❌ {result.error}")


def _render_receipt(session, settings, currency, order):
    t = session.t
    if not st.button(f"🖨️ {t('orders.print_receipt')}", key=f"print_{order.id}"):
        return
    receipt = format_receipt_data(order, settings)
    try:
        outcome = print_thermal_receipt(receipt)
    except PrintError as e:
        st.error(f"❌ {e}")
        return
    if outcome.printed:
        st.success(outcome.message)
        return
    st.info(outcome.message)
    st.code(outcome.payload, language="json")
    st.download_button(
        f"📄 {t('orders.download_pdf')}",
        data=receipt_to_pdf(receipt, currency),
        file_name=f"receipt_{order.id}.pdf",
        mime="application/pdf",
        key=f"receipt_pdf_{order.id}",
    )
