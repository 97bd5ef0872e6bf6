"""Product catalog page: browse, add, edit, import and export."""
from datetime import datetime

import pandas as pd
import streamlit as st
from streamlit_free_text_select import st_free_text_select

from core.exports import (
    XLSX_MIME,
    frame_to_excel,
    frame_to_pdf,
    import_products,
    normalize_import_frame,
    products_export_frame,
    template_excel,
)
from core.models import APP_TZ
from ui.components import render_products_table, show_result


def _category_input(categories, key: str, default: str = "") -> str:
    """Render category input with suggestions and return normalized value."""
    options = sorted(set(categories), key=str.casefold)
    if default and key not in st.session_state:
        st.session_state[key] = default
    category_input = st_free_text_select(
        "Category",
        options,
        key=key,
        placeholder="Type to search or add",
    )
    category_input = (category_input or "").strip()
    match = next((c for c in options if c.lower() == category_input.lower()), None)
    return match if match else (category_input.title() if category_input else "Other")


def render(services, session):
    """Render the products page."""
    t = session.t
    if "product_toast" in st.session_state:
        message, icon = st.session_state.pop("product_toast")
        st.toast(message, icon=icon)

    settings = services.settings.get_settings()
    currency = settings.currency_symbol if settings else "$"
    st.header(f"📦 {t('products.title')}")

    can_create = session.auth_actions.has_permission("products.create")
    can_edit = session.auth_actions.has_permission("products.edit")

    labels = [f"📋 {t('products.catalog')}"]
    if can_create:
        labels.append(f"➕ {t('products.add')}")
    if can_edit:
        labels += [f"📝 {t('products.edit')}", f"📥 {t('products.import')}"]
    tabs = st.tabs(labels)

    with tabs[0]:
        _render_catalog(services, session, currency)
    if can_create:
        with tabs[1]:
            _render_add(services, session)
    if can_edit:
        with tabs[-2]:
            _render_edit(services, session)
        with tabs[-1]:
            _render_import(services, session)


def _render_catalog(services, session, currency):
    t = session.t
    df = services.products.get_products_frame()
    if df.empty:
        st.info(t("products.none"))
        return

    col1, col2, col3 = st.columns([2, 2, 1])
    with col1:
        search = st.text_input(f"🔍 {t('common.search')}", key="products_search")
    with col2:
        categories = ["All"] + services.products.get_categories()
        category = st.selectbox(t("products.category"), categories, key="products_category")
    with col3:
        show_inactive = st.checkbox(t("products.show_inactive"), key="products_inactive")

    if search:
        # Case-insensitive partial search across name, category, barcode, description
        mask = df["name"].str.contains(search, case=False, na=False, regex=False)
        for column in ("category", "barcode", "description"):
            mask = mask | df[column].astype(str).str.contains(search, case=False, na=False, regex=False)
        df = df[mask]
    if category != "All":
        df = df[df["category"] == category]
    if not show_inactive:
        df = df[df["is_active"] == 1]
    df = df.sort_values("name", key=lambda s: s.str.casefold())

    render_products_table(df, currency)

    export_df = products_export_frame(df)
    stamp = datetime.now(APP_TZ).strftime("%Y%m%d")
    col1, col2 = st.columns(2)
    col1.download_button(
        "⬇️ Excel",
        data=frame_to_excel(export_df, "products", "Products"),
        file_name=f"products_{stamp}.xlsx",
        mime=XLSX_MIME,
        key="products_export_xlsx",
    )
    col2.download_button(
        "⬇️ PDF",
        data=frame_to_pdf(export_df),
        file_name=f"products_{stamp}.pdf",
        mime="application/pdf",
        key="products_export_pdf",
    )


def _render_add(services, session):
    t = session.t
    categories = services.products.get_categories()
    name = st.text_input(f"{t('products.name')} *", key="add_name")
    category = _category_input(categories, "add_category")
    col1, col2, col3 = st.columns(3)
    price = col1.number_input(f"{t('products.price')} *", min_value=0.0, step=0.5, key="add_price")
    cost = col2.number_input(t("products.cost"), min_value=0.0, step=0.5, key="add_cost")
    stock = col3.number_input(t("products.stock"), min_value=0, step=1, key="add_stock")
    barcode = st.text_input(t("products.barcode"), key="add_barcode")
    description = st.text_area(t("products.description"), key="add_description")
    image = st.text_input(t("products.image"), key="add_image")

    if st.button(f"💾 {t('products.create')}", type="primary", key="add_submit"):
        result = services.products.create_product(
            name=name,
            price=price,
            cost=cost,
            stock=int(stock),
            category=category,
            description=description,
            barcode=barcode,
            image=image or None,
        )
        if result.success:
            for key in ("add_name", "add_barcode", "add_description", "add_image", "add_category"):
                st.session_state.pop(key, None)
            st.session_state.product_toast = (t("products.created", name=result.value.name), "✅")
            st.rerun()
        else:
            st.error(f"❌ {result.error}")


def _render_edit(services, session):
    t = session.t
    products = sorted(services.products.get_products(), key=lambda p: p.name.casefold())
    if not products:
        st.info(t("products.none"))
        return

    product = st.selectbox(
        t("products.select"),
        products,
        format_func=lambda p: f"{p.name}{'' if p.is_active else ' ❌ (Inactive)'}",
        key="edit_product",
    )
    # Widget keys carry the id so switching products reloads the fields
    suffix = product.id
    name = st.text_input(f"{t('products.name')} *", value=product.name, key=f"edit_name_{suffix}")
    category = _category_input(services.products.get_categories(), f"edit_category_{suffix}", product.category)
    col1, col2, col3 = st.columns(3)
    price = col1.number_input(t("products.price"), min_value=0.0, value=float(product.price), key=f"edit_price_{suffix}")
    cost = col2.number_input(t("products.cost"), min_value=0.0, value=float(product.cost), key=f"edit_cost_{suffix}")
    stock = col3.number_input(t("products.stock"), min_value=0, value=int(product.stock), key=f"edit_stock_{suffix}")
    barcode = st.text_input(t("products.barcode"), value=product.barcode or "", key=f"edit_barcode_{suffix}")
    description = st.text_area(t("products.description"), value=product.description, key=f"edit_desc_{suffix}")
    image = st.text_input(t("products.image"), value=product.image or "", key=f"edit_image_{suffix}")
    is_active = st.checkbox(t("products.active"), value=product.is_active, key=f"edit_active_{suffix}")

    col1, col2 = st.columns([3, 1])
    with col1:
        if st.button(f"💾 {t('common.save')}", type="primary", key=f"edit_save_{suffix}"):
            result = services.products.update_product(
                product.id,
                name=name,
                category=category,
                price=price,
                cost=cost,
                stock=int(stock),
                barcode=barcode,
                description=description,
                image=image or None,
                is_active=is_active,
            )
            if result.success:
                st.session_state.product_toast = (t("products.updated", name=name), "💾")
                st.rerun()
            else:
                st.error(f"❌ {result.error}")
    with col2:
        if session.auth_actions.has_permission("products.delete"):
            if st.button(f"🗑️ {t('common.delete')}", key=f"edit_delete_{suffix}"):
                if show_result(services.products.delete_product(product.id), t("products.deleted", name=product.name)):
                    st.session_state.pop("edit_product", None)
                    st.rerun()


def _render_import(services, session):
    t = session.t
    st.download_button(
        f"📄 {t('products.template')}",
        data=template_excel(),
        file_name="products_template.xlsx",
        mime=XLSX_MIME,
        key="products_template",
    )
    upload = st.file_uploader(t("products.upload"), type=["xlsx"], key="products_upload")
    if upload is None:
        return
    try:
        import_df = normalize_import_frame(pd.read_excel(upload))
    except ValueError as e:
        st.error(f"❌ {e}")
        return

    st.dataframe(import_df.head(20), use_container_width=True, hide_index=True)
    if st.button(f"📥 {t('products.run_import')}", type="primary", key="products_run_import"):
        report = import_products(services.products, import_df)
        st.success(
            t(
                "products.import_summary",
                added=report.added,
                updated=report.updated,
                skipped=report.skipped,
                errors=report.errors,
            )
        )
        if report.error_rows:
            st.dataframe(pd.DataFrame(report.error_rows), use_container_width=True, hide_index=True)
