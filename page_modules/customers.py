"""Customer directory page."""
import pandas as pd
import streamlit as st

from core.constants import CUSTOMER_TYPES
from ui.components import money, render_pagination, show_result

PAGE_SIZE = 10


def _customer_form(t, key: str, customer=None):
    """Render customer fields; returns a dict of field values."""
    col1, col2 = st.columns(2)
    first_name = col1.text_input(f"{t('customers.first_name')} *", value=customer.first_name if customer else "", key=f"{key}_first")
    last_name = col2.text_input(f"{t('customers.last_name')} *", value=customer.last_name if customer else "", key=f"{key}_last")
    col1, col2 = st.columns(2)
    email = col1.text_input(t("customers.email"), value=(customer.email or "") if customer else "", key=f"{key}_email")
    phone = col2.text_input(t("customers.phone"), value=(customer.phone or "") if customer else "", key=f"{key}_phone")
    col1, col2 = st.columns(2)
    customer_type = col1.selectbox(
        t("customers.type"),
        CUSTOMER_TYPES,
        index=CUSTOMER_TYPES.index(customer.customer_type) if customer and customer.customer_type in CUSTOMER_TYPES else 0,
        key=f"{key}_type",
    )
    company_name = col2.text_input(
        t("customers.company"), value=(customer.company_name or "") if customer else "", key=f"{key}_company"
    )
    address = st.text_input(t("customers.address"), value=(customer.address_line1 or "") if customer else "", key=f"{key}_address")
    col1, col2, col3 = st.columns(3)
    city = col1.text_input(t("customers.city"), value=(customer.city or "") if customer else "", key=f"{key}_city")
    state = col2.text_input(t("customers.state"), value=(customer.state or "") if customer else "", key=f"{key}_state")
    postal = col3.text_input(t("customers.postal_code"), value=(customer.postal_code or "") if customer else "", key=f"{key}_postal")
    notes = st.text_area(t("orders.notes"), value=(customer.notes or "") if customer else "", key=f"{key}_notes")
    return {
        "first_name": first_name,
        "last_name": last_name,
        "email": email or None,
        "phone": phone or None,
        "customer_type": customer_type,
        "company_name": company_name or None,
        "address_line1": address or None,
        "city": city or None,
        "state": state or None,
        "postal_code": postal or None,
        "notes": notes or None,
    }


def render(services, session):
    """Render the customers page."""
    t = session.t
    if "customer_toast" in st.session_state:
        st.toast(st.session_state.pop("customer_toast"), icon="👥")

    settings = services.settings.get_settings()
    currency = settings.currency_symbol if settings else "$"
    st.header(f"👥 {t('customers.title')}")

    tabs = st.tabs([f"📋 {t('customers.directory')}", f"➕ {t('customers.add')}", f"🏆 {t('customers.top')}"])
    with tabs[0]:
        _render_directory(services, session, currency)
    with tabs[1]:
        fields = _customer_form(t, "new_customer")
        if st.button(f"💾 {t('customers.create')}", type="primary", key="new_customer_submit"):
            user = session.auth_store.user
            first_name = fields.pop("first_name")
            last_name = fields.pop("last_name")
            result = services.customers.create_customer(
                first_name, last_name, created_by=user.id if user else None, **fields
            )
            if result.success:
                st.session_state.customer_toast = t("customers.created", number=result.value.customer_number)
                st.rerun()
            else:
                st.error(f"❌ {result.error}")
    with tabs[2]:
        top = services.customers.get_top_customers(10)
        if not top:
            st.info(t("customers.none"))
        else:
            st.dataframe(
                pd.DataFrame(
                    [
                        {
                            "Number": c.customer_number,
                            "Name": c.full_name,
                            "Orders": c.total_orders,
                            "Spent": money(c.total_purchases, currency),
                            "Points": c.loyalty_points,
                        }
                        for c in top
                    ]
                ),
                use_container_width=True,
                hide_index=True,
            )


def _render_directory(services, session, currency):
    t = session.t
    query = st.text_input(f"🔍 {t('common.search')}", key="customers_search")
    if st.session_state.get("customers_last_query") != query:
        st.session_state.customers_last_query = query
        st.session_state.customers_page = 1
    page_number = st.session_state.get("customers_page", 1)

    if query.strip():
        page = services.customers.search_customers_paginated(query, page_number, PAGE_SIZE)
    else:
        page = services.customers.get_customers_paginated(page_number, PAGE_SIZE)

    if not page.items:
        st.info(t("customers.none"))
        return

    for customer in page.items:
        status = "" if customer.is_active else " · ⏸️"
        with st.expander(f"{customer.customer_number} · {customer.full_name}{status}"):
            col1, col2, col3 = st.columns(3)
            col1.metric(t("customers.orders"), customer.total_orders)
            col2.metric(t("customers.spent"), money(customer.total_purchases, currency))
            col3.metric(t("customers.points"), customer.loyalty_points)

            fields = _customer_form(t, f"edit_customer_{customer.id}", customer)
            fields["is_active"] = st.checkbox(
                t("products.active"), value=customer.is_active, key=f"edit_customer_{customer.id}_active"
            )
            col1, col2, col3 = st.columns([2, 2, 1])
            with col1:
                if st.button(f"💾 {t('common.save')}", key=f"save_customer_{customer.id}"):
                    if show_result(services.customers.update_customer(customer.id, **fields), t("customers.updated")):
                        st.rerun()
            with col2:
                points = st.number_input(
                    t("customers.adjust_points"), step=1, value=0, key=f"points_{customer.id}"
                )
                if st.button(t("customers.apply_points"), key=f"apply_points_{customer.id}", disabled=points == 0):
                    if show_result(services.customers.update_loyalty_points(customer.id, int(points)), t("customers.updated")):
                        st.rerun()
            with col3:
                if st.button(f"🗑️ {t('common.delete')}", key=f"delete_customer_{customer.id}"):
                    if show_result(services.customers.delete_customer(customer.id), t("customers.deleted")):
                        st.rerun()

    target = render_pagination(page, "customers")
    if target is not None:
        st.session_state.customers_page = target
        st.rerun()
