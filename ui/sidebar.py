"""Sidebar menu, language picker and account controls."""
import streamlit as st

from core.constants import (
    MENU_ANALYTICS,
    MENU_CUSTOMERS,
    MENU_DASHBOARD,
    MENU_INVENTORY,
    MENU_MEMBERS,
    MENU_ORDERS,
    MENU_PRODUCTS,
    MENU_SETTINGS,
)
from core.db_init import backup_database

# Menu label -> (permission needed to see it, translation key)
MENU_ITEMS = {
    MENU_DASHBOARD: (None, "nav.dashboard"),
    MENU_ORDERS: ("sales.view", "nav.orders"),
    MENU_PRODUCTS: ("products.view", "nav.products"),
    MENU_INVENTORY: ("inventory.view", "nav.inventory"),
    MENU_CUSTOMERS: ("sales.view", "nav.customers"),
    MENU_ANALYTICS: ("reports.view", "nav.analytics"),
    MENU_MEMBERS: ("users.view", "nav.members"),
    MENU_SETTINGS: (None, "nav.settings"),
}


def visible_menu(session):
    """Menu labels the signed-in user may open, in display order."""
    return [
        label
        for label, (permission, _) in MENU_ITEMS.items()
        if permission is None or session.auth_actions.has_permission(permission)
    ]


def _menu_label(session, label: str) -> str:
    icon = label.split(" ", 1)[0]
    return f"{icon} {session.t(MENU_ITEMS[label][1])}"


def render_sidebar_menu(services, session):
    """Render the navigation radio and return the selected menu label."""
    user = session.auth_store.user
    settings = services.settings.get_settings()
    st.sidebar.title(settings.name if settings else "Post POS")
    if user is not None:
        st.sidebar.caption(f"👤 {user.name} · {user.role}")

    menu = visible_menu(session)
    if "menu_selection" not in st.session_state or st.session_state.menu_selection not in menu:
        st.session_state.menu_selection = menu[0]
    selected = st.sidebar.radio(
        session.t("nav.select_page"),
        menu,
        key="menu_selection",
        format_func=lambda label: _menu_label(session, label),
    )

    render_language_picker(session)

    st.sidebar.markdown("---")
    if st.sidebar.button(f"🚪 {session.t('auth.sign_out')}", key="sidebar_sign_out"):
        session.auth_actions.sign_out()
        st.session_state.pop("cart", None)
        st.toast(session.t("auth.signed_out"), icon="🔒")
        st.rerun()
    return selected


def render_language_picker(session):
    locales = session.translations.get_supported_locales()
    codes = [loc.code for loc in locales]
    names = {loc.code: f"{loc.flag} {loc.native_name}" for loc in locales}
    current = session.language_store.current_locale
    choice = st.sidebar.selectbox(
        session.t("settings.language"),
        codes,
        index=codes.index(current) if current in codes else 0,
        format_func=names.get,
        key="sidebar_language",
    )
    if choice != current:
        session.language_actions.change_language(choice)
        st.rerun()


def render_backup(services, session):
    """Render database backup button in sidebar for admin users."""
    if not session.auth_store.is_admin:
        return
    if st.sidebar.button(f"🔄 {session.t('settings.backup')}", key="sidebar_backup"):
        msg = backup_database(services.db_path)
        st.sidebar.success(msg)
        st.toast("💾 Backup completed", icon="💽")
