"""Company settings, account PIN and maintenance page."""
import streamlit as st

from core.constants import SUPPORTED_CURRENCIES
from core.db_init import backup_database
from ui.components import show_result


def render(services, session):
    """Render the settings page."""
    t = session.t
    if "settings_toast" in st.session_state:
        st.toast(st.session_state.pop("settings_toast"), icon="⚙️")

    st.header(f"⚙️ {t('settings.title')}")
    if session.auth_store.is_admin:
        _render_company(services, session)
        st.markdown("---")
    _render_change_pin(session)
    if session.auth_store.is_admin:
        st.markdown("---")
        st.subheader(f"💽 {t('settings.maintenance')}")
        if st.button(f"🔄 {t('settings.backup')}", key="settings_backup"):
            st.success(backup_database(services.db_path))


def _render_company(services, session):
    t = session.t
    settings = services.settings.get_settings()
    if settings is None:
        st.error(f"❌ {t('settings.missing')}")
        return

    st.subheader(f"🏢 {t('settings.company')}")
    symbols = [symbol for symbol, _ in SUPPORTED_CURRENCIES]
    currency_names = dict(SUPPORTED_CURRENCIES)
    with st.form("company_settings_form"):
        name = st.text_input(f"{t('settings.company_name')} *", value=settings.name)
        description = st.text_input(t("products.description"), value=settings.description)
        col1, col2, col3 = st.columns(3)
        tax_enabled = col1.checkbox(t("settings.tax_enabled"), value=settings.tax_enabled)
        tax_percentage = col2.number_input(
            t("settings.tax_percentage"), min_value=0.0, max_value=100.0, step=0.5, value=settings.tax_percentage
        )
        currency = col3.selectbox(
            t("settings.currency"),
            symbols,
            index=symbols.index(settings.currency_symbol) if settings.currency_symbol in symbols else 0,
            format_func=lambda s: f"{s} · {currency_names[s]}",
        )
        address = st.text_input(t("customers.address"), value=settings.address or "")
        col1, col2, col3 = st.columns(3)
        phone = col1.text_input(t("customers.phone"), value=settings.phone or "")
        email = col2.text_input(t("customers.email"), value=settings.email or "")
        website = col3.text_input(t("settings.website"), value=settings.website or "")
        logo_url = st.text_input(t("settings.logo_url"), value=settings.logo_url or "")
        submitted = st.form_submit_button(f"💾 {t('common.save')}")

    if submitted:
        result = services.settings.update_settings(
            name=name,
            description=description,
            tax_enabled=tax_enabled,
            tax_percentage=tax_percentage,
            currency_symbol=currency,
            address=address or None,
            phone=phone or None,
            email=email or None,
            website=website or None,
            logo_url=logo_url or None,
        )
        if result.success:
            st.session_state.settings_toast = t("settings.saved")
            st.rerun()
        else:
            st.error(f"❌ {result.error}")

    if st.button(f"↩️ {t('settings.reset')}", key="settings_reset"):
        if show_result(services.settings.reset_to_defaults(), t("settings.saved")):
            session.language_actions.change_language("en")
            st.rerun()


def _render_change_pin(session):
    t = session.t
    st.subheader(f"🔐 {t('settings.change_pin')}")
    with st.form("change_pin_form", clear_on_submit=True):
        current = st.text_input(t("settings.current_pin"), type="password", max_chars=6)
        new_pin = st.text_input(t("settings.new_pin"), type="password", max_chars=6)
        confirm = st.text_input(t("settings.confirm_pin"), type="password", max_chars=6)
        submitted = st.form_submit_button(t("settings.change_pin"))
    if submitted:
        if new_pin != confirm:
            st.error(f"❌ {t('settings.pin_mismatch')}")
            return
        show_result(session.auth.change_password(current, new_pin), t("settings.pin_changed"))
