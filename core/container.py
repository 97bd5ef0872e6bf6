"""Service wiring.

Shared services (one SQLite connection and the repositories over it) are
built once per Streamlit process; auth and language state are built once per
browser session and kept in ``st.session_state``.
"""
import logging
import sqlite3
from dataclasses import dataclass

import streamlit as st

from core.analytics import AnalyticsService, DashboardService
from core.auth import AuthService
from core.company_settings import CompanySettingsRepository
from core.constants import DB_PATH, SESSION_FILE
from core.customers import CustomerRepository
from core.db_init import init_db
from core.order_store import SqliteOrderStore
from core.orders import OrderRepository
from core.products import ProductRepository
from core.store import AuthActions, AuthStore, LanguageActions, LanguageStore
from core.translations import TranslationService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    conn: sqlite3.Connection
    db_path: str
    products: ProductRepository
    settings: CompanySettingsRepository
    orders: OrderRepository
    customers: CustomerRepository
    analytics: AnalyticsService
    dashboard: DashboardService


@dataclass
class SessionContext:
    auth: AuthService
    translations: TranslationService
    auth_store: AuthStore
    language_store: LanguageStore
    auth_actions: AuthActions
    language_actions: LanguageActions

    def t(self, key: str, **params) -> str:
        return self.translations.t(key, **params)


def build_services(conn: sqlite3.Connection, db_path: str = DB_PATH) -> Services:
    products = ProductRepository(conn)
    settings = CompanySettingsRepository(conn)
    orders = OrderRepository(SqliteOrderStore(conn), products, settings)
    customers = CustomerRepository(conn)
    return Services(
        conn=conn,
        db_path=db_path,
        products=products,
        settings=settings,
        orders=orders,
        customers=customers,
        analytics=AnalyticsService(conn),
        dashboard=DashboardService(orders, customers, products),
    )


def build_session(services: Services, session_file: str = SESSION_FILE) -> SessionContext:
    auth = AuthService(services.conn, session_file=session_file)
    translations = TranslationService()
    auth_store = AuthStore()
    language_store = LanguageStore()
    language_actions = LanguageActions(translations, services.settings, language_store)
    language_actions.initialize_language()
    auth_actions = AuthActions(auth, auth_store)
    auth_actions.initialize_auth()
    return SessionContext(
        auth=auth,
        translations=translations,
        auth_store=auth_store,
        language_store=language_store,
        auth_actions=auth_actions,
        language_actions=language_actions,
    )


def _configured_db_path() -> str:
    """``[postpos] db_path`` from Streamlit secrets, else the environment."""
    try:
        if "postpos" in st.secrets and "db_path" in st.secrets["postpos"]:
            return st.secrets["postpos"]["db_path"]
    except Exception:
        logger.debug("No Streamlit secrets available; using POSTPOS_DB_PATH")
    return DB_PATH


@st.cache_resource
def get_services() -> Services:
    db_path = _configured_db_path()
    logger.info("Opening database %s", db_path)
    return build_services(init_db(db_path), db_path)


def get_session(services: Services) -> SessionContext:
    if "session_context" not in st.session_state:
        st.session_state.session_context = build_session(services)
    return st.session_state.session_context
