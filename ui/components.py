"""Reusable UI components."""
import base64
from pathlib import Path
from typing import Optional

import pandas as pd
import streamlit as st

from core.errors import Result
from core.models import Page

STATUS_BADGES = {
    "pending": "\U0001F7E1 Pending",
    "paid": "\U0001F535 Paid",
    "completed": "\U0001F7E2 Completed",
    "cancelled": "\U0001F534 Cancelled",
}


def money(value: float, currency: str = "$") -> str:
    return f"{currency}{value:,.2f}"


def image_to_base64(image_path):
    """Convert local image file to base64 data URI."""
    if not image_path or image_path.startswith(("http://", "https://", "data:")):
        return image_path
    file_path = Path(image_path)
    if not file_path.exists():
        return image_path
    mime_types = {
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".png": "image/png",
        ".gif": "image/gif",
        ".webp": "image/webp",
    }
    mime = mime_types.get(file_path.suffix.lower(), "image/png")
    b64 = base64.b64encode(file_path.read_bytes()).decode()
    return f"data:{mime};base64,{b64}"


def render_products_table(df: pd.DataFrame, currency: str = "$"):
    """Render products as a table with image thumbnails."""
    if df.empty:
        st.info("No products to show")
        return

    table_cols = ["image", "name", "category", "barcode", "stock", "cost", "price", "is_active", "description"]
    display_df = df.copy()
    for c in table_cols:
        if c not in display_df.columns:
            display_df[c] = ""
    display_df = display_df[table_cols]
    display_df["image"] = display_df["image"].apply(image_to_base64)
    display_df["is_active"] = display_df["is_active"].astype(bool)

    st.dataframe(
        display_df,
        use_container_width=True,
        hide_index=True,
        column_config={
            "image": st.column_config.ImageColumn("Image", width="small"),
            "name": "Name",
            "category": "Category",
            "barcode": "Barcode",
            "stock": st.column_config.NumberColumn("Stock", format="%d"),
            "cost": st.column_config.NumberColumn("Cost", format=f"{currency}%.2f"),
            "price": st.column_config.NumberColumn("Price", format=f"{currency}%.2f"),
            "is_active": st.column_config.CheckboxColumn("Active"),
            "description": "Description",
        },
    )


def show_result(result: Result, success_message: str, icon: str = "✅") -> bool:
    """Toast on success, inline error otherwise. Returns ``result.success``."""
    if result.success:
        st.toast(success_message, icon=icon)
    else:
        st.error(f"❌ {result.error}")
    return result.success


def render_totals(subtotal: float, tax: float, total: float, currency: str = "$"):
    st.markdown(
        f"""
        <div class="pos-totals">
            Subtotal: {money(subtotal, currency)}<br/>
            Tax: {money(tax, currency)}<br/>
            <span class="grand-total">Total: {money(total, currency)}</span>
        </div>
        """,
        unsafe_allow_html=True,
    )


def render_pagination(page: Page, key: str) -> Optional[int]:
    """Prev/next buttons under a paginated listing; returns the page to show next."""
    col1, col2, col3 = st.columns([1, 2, 1])
    target = None
    with col1:
        if st.button("◀ Prev", key=f"{key}_prev", disabled=not page.has_previous_page):
            target = page.current_page - 1
    with col2:
        st.caption(f"Page {page.current_page} of {max(page.total_pages, 1)} · {page.total_count} total")
    with col3:
        if st.button("Next ▶", key=f"{key}_next", disabled=not page.has_next_page):
            target = page.current_page + 1
    return target
