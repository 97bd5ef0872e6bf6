"""Stock levels, low stock alerts and restocking."""
import pandas as pd
import plotly.express as px
import streamlit as st

from core.constants import LOW_STOCK_THRESHOLD_DEFAULT
from ui.components import money


def render(services, session):
    """Render the inventory page."""
    t = session.t
    if st.session_state.get("restock_success"):
        st.toast(st.session_state.pop("restock_success"), icon="📦")

    settings = services.settings.get_settings()
    currency = settings.currency_symbol if settings else "$"
    st.header(f"🚨 {t('inventory.title')}")

    status = services.dashboard.get_inventory_status()
    col1, col2, col3, col4 = st.columns(4)
    col1.metric(t("inventory.total_products"), status.total_products)
    col2.metric(t("inventory.in_stock"), status.in_stock)
    col3.metric(t("inventory.low_stock"), status.low_stock)
    col4.metric(t("inventory.out_of_stock"), status.out_of_stock)

    df = services.products.get_products_frame(include_inactive=False)
    if df.empty:
        st.info(t("products.none"))
        return

    total_cost = (df["stock"] * df["cost"]).sum()
    retail_value = (df["stock"] * df["price"]).sum()
    col1, col2, col3 = st.columns(3)
    col1.metric(t("inventory.stock_cost"), money(total_cost, currency))
    col2.metric(t("inventory.retail_value"), money(retail_value, currency))
    col3.metric(t("inventory.profit_potential"), money(retail_value - total_cost, currency))

    st.markdown("---")
    st.subheader(f"⚠️ {t('inventory.alerts')}")
    threshold = st.slider(t("inventory.threshold"), 0, 50, LOW_STOCK_THRESHOLD_DEFAULT, key="inventory_threshold")
    low = services.products.get_low_stock_products(threshold)
    if not low:
        st.info(t("inventory.no_alerts", threshold=threshold))
    else:
        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "Name": p.name,
                        "Category": p.category,
                        "Barcode": p.barcode or "",
                        "Stock": p.stock,
                        "Status": "🔴 Out" if p.is_out_of_stock else "🟡 Low",
                    }
                    for p in low
                ]
            ),
            use_container_width=True,
            hide_index=True,
        )

    if session.auth_actions.has_permission("inventory.edit"):
        _render_restock(services, session, low or services.products.get_products(include_inactive=False))

    st.markdown("---")
    st.subheader(f"📊 {t('inventory.by_category')}")
    category_stock = df.groupby("category")["stock"].sum().reset_index()
    category_stock = category_stock[category_stock["stock"] > 0].sort_values("stock", ascending=False)
    if category_stock.empty:
        st.info(t("inventory.no_stock"))
    else:
        fig = px.pie(category_stock, values="stock", names="category")
        st.plotly_chart(fig, width="stretch")


def _render_restock(services, session, candidates):
    t = session.t
    st.markdown(f"**📦 {t('inventory.restock')}**")
    candidates = sorted(candidates, key=lambda p: p.name.casefold())
    with st.form("restock_form"):
        product = st.selectbox(
            t("orders.product"),
            candidates,
            format_func=lambda p: f"{p.name} ({p.stock})",
        )
        qty = st.number_input(t("inventory.add_units"), min_value=1, step=1, value=10)
        submitted = st.form_submit_button(t("inventory.restock"))
    if submitted and product is not None:
        # Re-read so the increment applies to live stock
        current = services.products.get_product(product.id)
        if current is None:
            st.error(f"❌ {t('inventory.product_missing')}")
            return
        result = services.products.update_product(current.id, stock=current.stock + int(qty))
        if result.success:
            st.session_state.restock_success = t("inventory.restocked", name=current.name, stock=result.value.stock)
            st.rerun()
        else:
            st.error(f"❌ {result.error}")
