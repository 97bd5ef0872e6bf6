"""Dashboard page with today's sales overview."""
import plotly.express as px
import streamlit as st

from ui.components import STATUS_BADGES, money

STATUS_COLORS = {
    "pending": "#FFEC21",
    "paid": "#378AFF",
    "completed": "#93F03B",
    "cancelled": "#F54F52",
}


def render(services, session):
    """Render the dashboard page."""
    t = session.t
    settings = services.settings.get_settings()
    currency = settings.currency_symbol if settings else "$"
    dashboard = services.dashboard

    st.header(f"📈 {t('dashboard.title')}")
    stats = dashboard.get_dashboard_stats()

    # Row 1: Sales metrics
    col1, col2, col3, col4 = st.columns(4)
    col1.metric(t("dashboard.total_sales"), money(stats.total_sales, currency))
    col2.metric(t("dashboard.orders_today"), stats.orders_today)
    col3.metric(t("dashboard.average_order"), money(stats.average_order_value, currency))
    col4.metric(t("dashboard.pending_orders"), stats.pending_orders)

    # Row 2: Store metrics
    inventory = dashboard.get_inventory_status()
    col1, col2, col3, col4 = st.columns(4)
    col1.metric(t("dashboard.customers"), stats.total_customers)
    col2.metric(t("dashboard.products"), inventory.total_products)
    col3.metric(t("dashboard.low_stock"), inventory.low_stock)
    col4.metric(t("dashboard.out_of_stock"), inventory.out_of_stock)

    st.markdown("---")

    days = st.radio(t("dashboard.period"), [7, 14, 30], horizontal=True, format_func=lambda d: f"{d}d")
    sales = dashboard.get_sales_data(days)
    st.subheader(f"💵 {t('dashboard.sales_trend')}")
    fig = px.bar(
        sales,
        x="date",
        y="amount",
        labels={"date": "Date", "amount": f"Sales ({currency})"},
        color_discrete_sequence=["#378AFF"],
    )
    st.plotly_chart(fig, width="stretch")

    col1, col2 = st.columns(2)
    with col1:
        st.subheader(f"🏆 {t('dashboard.top_products')}")
        top = dashboard.get_top_products(5)
        if top.empty:
            st.info(t("dashboard.no_sales"))
        else:
            fig = px.bar(
                top,
                x="name",
                y="sales",
                labels={"name": "Product", "sales": "Units sold"},
                color="revenue",
                color_continuous_scale="Viridis",
            )
            st.plotly_chart(fig, width="stretch")

    with col2:
        st.subheader(f"📊 {t('dashboard.status_breakdown')}")
        breakdown = dashboard.get_order_status_breakdown()
        counts = {status: n for status, n in breakdown.items() if status != "total" and n > 0}
        if counts:
            fig = px.pie(
                names=list(counts),
                values=list(counts.values()),
                color=list(counts),
                color_discrete_map=STATUS_COLORS,
            )
            st.plotly_chart(fig, width="stretch")
        else:
            st.info(t("dashboard.no_orders"))

    st.subheader(f"🧾 {t('dashboard.recent_orders')}")
    recent = dashboard.get_recent_orders(5)
    if recent:
        st.dataframe(
            [
                {
                    "Order": f"#{o.id}",
                    "Status": STATUS_BADGES.get(o.status, o.status),
                    "Items": o.item_count,
                    "Total": money(o.total, currency),
                    "Created": o.created_at[:16].replace("T", " "),
                }
                for o in recent
            ],
            width="stretch",
            hide_index=True,
        )
    else:
        st.info(t("dashboard.no_orders"))
