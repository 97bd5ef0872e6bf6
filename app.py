"""Post POS - Main Application Entry Point."""
import logging

import streamlit as st

from core.constants import (
    LOG_LEVEL,
    MENU_ANALYTICS,
    MENU_CUSTOMERS,
    MENU_DASHBOARD,
    MENU_INVENTORY,
    MENU_MEMBERS,
    MENU_ORDERS,
    MENU_PRODUCTS,
    MENU_SETTINGS,
)
from core.container import get_services, get_session
from page_modules import analytics, customers, dashboard, inventory, members, orders, products, settings, sign_in
from ui.sidebar import render_backup, render_sidebar_menu
from ui.styles import apply_pos_styles

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Page configuration
st.set_page_config(
    page_title="Post POS",
    page_icon="💳",
    layout="wide",
)

apply_pos_styles()

services = get_services()
session = get_session(services)

# Check authentication
if not session.auth_store.is_authenticated:
    sign_in.render(services, session)
    st.stop()

# Render sidebar menu and backup button
menu = render_sidebar_menu(services, session)
render_backup(services, session)

# Page routing
pages = {
    MENU_DASHBOARD: dashboard.render,
    MENU_ORDERS: orders.render,
    MENU_PRODUCTS: products.render,
    MENU_INVENTORY: inventory.render,
    MENU_CUSTOMERS: customers.render,
    MENU_ANALYTICS: analytics.render,
    MENU_MEMBERS: members.render,
    MENU_SETTINGS: settings.render,
}

if menu not in pages:
    menu = MENU_DASHBOARD
pages[menu](services, session)
