"""
Pytest fixtures shared across the Post POS test modules.

Every fixture builds fresh state per test: an in-memory SQLite database with
the full schema, or the dict-backed stores with the same contracts.
"""
import pytest

from core.company_settings import CompanySettingsRepository, StaticTaxSettings
from core.customers import CustomerRepository
from core.db_init import _connect_sqlite, init_schema
from core.memory import InMemoryProductRepository
from core.models import Product
from core.order_store import InMemoryOrderStore, SqliteOrderStore
from core.orders import OrderRepository
from core.products import ProductRepository


@pytest.fixture
def conn():
    """
    Provides an in-memory SQLite connection with schema and seed rows

    Seeds: company settings (10% tax) and the three default users
    """
    connection = _connect_sqlite(":memory:")
    init_schema(connection)
    yield connection
    connection.close()


@pytest.fixture
def products(conn):
    return ProductRepository(conn)


@pytest.fixture
def settings_repo(conn):
    return CompanySettingsRepository(conn)


@pytest.fixture
def customers(conn):
    return CustomerRepository(conn)


@pytest.fixture
def seeded_products(products):
    """
    Provides two stored products: Coffee ($2.50, 10 in stock) and Muffin ($3.00, 2 in stock)
    """
    coffee = products.create_product(name="Coffee", price=2.50, cost=1.0, stock=10, category="Beverages").value
    muffin = products.create_product(name="Muffin", price=3.00, cost=1.2, stock=2, category="Bakery").value
    return coffee, muffin


@pytest.fixture
def sqlite_orders(conn, products, settings_repo, seeded_products):
    return OrderRepository(SqliteOrderStore(conn), products, settings_repo)


@pytest.fixture
def catalog():
    """
    Provides an in-memory catalog with P1 (Coffee) and P2 (Muffin)
    """
    return InMemoryProductRepository(
        [
            Product(id="P1", name="Coffee", price=2.50, cost=1.0, stock=10, category="Beverages"),
            Product(id="P2", name="Muffin", price=3.00, cost=1.2, stock=2, category="Bakery"),
        ]
    )


@pytest.fixture
def tax_settings():
    return StaticTaxSettings(tax_percentage=10.0)


@pytest.fixture
def order_store():
    return InMemoryOrderStore()


@pytest.fixture
def orders(order_store, catalog, tax_settings):
    """
    Provides an order repository over the in-memory store and catalog, 10% tax
    """
    return OrderRepository(order_store, catalog, tax_settings)
