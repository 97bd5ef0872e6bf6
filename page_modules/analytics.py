"""Sales analytics page."""
from datetime import date, timedelta

import plotly.express as px
import streamlit as st

from core.exports import XLSX_MIME, frame_to_excel
from ui.components import money


def render(services, session):
    """Render the analytics page."""
    t = session.t
    settings = services.settings.get_settings()
    currency = settings.currency_symbol if settings else "$"
    analytics = services.analytics

    st.header(f"📊 {t('analytics.title')}")
    col1, col2 = st.columns([2, 1])
    with col1:
        today = date.today()
        picked = st.date_input(t("orders.date_range"), value=(today - timedelta(days=30), today), key="analytics_range")
    with col2:
        period = st.selectbox(
            t("analytics.group_by"),
            ["day", "week", "month"],
            format_func=lambda p: t(f"analytics.{p}"),
            key="analytics_period",
        )
    start = end = None
    if picked and len(picked) == 2:
        start = picked[0].isoformat()
        end = (picked[1] + timedelta(days=1)).isoformat()

    metrics = analytics.get_overall_metrics(start, end)
    col1, col2, col3, col4 = st.columns(4)
    col1.metric(t("analytics.revenue"), money(metrics.total_revenue, currency))
    col2.metric(t("analytics.orders"), metrics.total_orders)
    col3.metric(t("analytics.completed"), metrics.completed_orders)
    col4.metric(t("dashboard.average_order"), money(metrics.average_order_value, currency))
    col1, col2 = st.columns(2)
    col1.metric(t("dashboard.pending_orders"), metrics.pending_orders)
    col2.metric(t("analytics.cancelled"), metrics.cancelled_orders)

    st.markdown("---")
    st.subheader(f"💵 {t('analytics.sales_over_time')}")
    by_period = analytics.get_sales_by_period(period, start, end)
    if by_period.empty:
        st.info(t("dashboard.no_sales"))
    else:
        fig = px.line(
            by_period,
            x="period",
            y="revenue",
            markers=True,
            labels={"period": t(f"analytics.{period}"), "revenue": f"Revenue ({currency})"},
        )
        st.plotly_chart(fig, width="stretch")
        st.download_button(
            "⬇️ Excel",
            data=frame_to_excel(by_period, "sales", "Sales"),
            file_name=f"sales_by_{period}.xlsx",
            mime=XLSX_MIME,
            key="analytics_export",
        )

    col1, col2 = st.columns(2)
    with col1:
        st.subheader(f"🏆 {t('dashboard.top_products')}")
        top = analytics.get_top_products(10, start, end)
        if top.empty:
            st.info(t("dashboard.no_sales"))
        else:
            fig = px.bar(
                top,
                x="product_name",
                y="total_sold",
                labels={"product_name": "Product", "total_sold": "Units sold"},
                color="total_revenue",
                color_continuous_scale="Viridis",
            )
            st.plotly_chart(fig, width="stretch")
    with col2:
        st.subheader(f"🧑‍💼 {t('analytics.by_member')}")
        members = analytics.get_sales_by_members(start, end)
        if members.empty:
            st.info(t("dashboard.no_sales"))
        else:
            fig = px.pie(members, values="total_revenue", names="user_name")
            st.plotly_chart(fig, width="stretch")

    st.subheader(f"👥 {t('analytics.customer_insights')}")
    insights = services.dashboard.get_customer_insights()
    col1, col2, col3 = st.columns(3)
    col1.metric(t("analytics.active_customers"), insights.total_active_customers)
    col2.metric(t("analytics.customer_spending"), money(insights.total_customer_spending, currency))
    col3.metric(t("analytics.average_per_customer"), money(insights.average_spent_per_customer, currency))
    if insights.top_customers:
        st.dataframe(insights.top_customers, width="stretch", hide_index=True)
