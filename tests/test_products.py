"""
Unit tests for ProductRepository and InMemoryProductRepository

Both catalogs share one contract, so the behavioural tests run against each.
"""
import pytest

from core.memory import InMemoryProductRepository
from core.products import ProductRepository


@pytest.fixture(params=["sqlite", "memory"])
def catalog_repo(request, conn):
    if request.param == "sqlite":
        return ProductRepository(conn)
    return InMemoryProductRepository()


class TestProductValidation:
    """Test field validation on create and update"""

    @pytest.mark.parametrize(
        "fields, message",
        [
            ({"name": "  ", "price": 1.0}, "Product name is required"),
            ({"name": "Tea", "price": 0}, "Price must be greater than 0"),
            ({"name": "Tea", "price": 1.0, "cost": -1}, "Cost cannot be negative"),
            ({"name": "Tea", "price": 1.0, "stock": -5}, "Stock cannot be negative"),
            ({"name": "Tea", "price": "abc"}, "Price must be a number"),
            ({"name": "Tea", "price": 1.0, "cost": "free"}, "Cost must be a number"),
            ({"name": "Tea", "price": 1.0, "stock": "lots"}, "Stock must be a number"),
        ],
    )
    def test_create_rejects_invalid_fields(self, catalog_repo, fields, message):
        result = catalog_repo.create_product(**fields)

        assert not result.success
        assert result.kind == "ValidationError"
        assert result.error == message

    def test_update_rejects_negative_stock(self, catalog_repo):
        product = catalog_repo.create_product(name="Tea", price=1.0, stock=3).value

        result = catalog_repo.update_product(product.id, stock=-1)

        assert not result.success
        assert catalog_repo.get_product(product.id).stock == 3

    def test_update_rejects_non_numeric_price(self, catalog_repo):
        product = catalog_repo.create_product(name="Tea", price=1.0).value

        result = catalog_repo.update_product(product.id, price="one fifty")

        assert not result.success
        assert result.kind == "ValidationError"
        assert catalog_repo.get_product(product.id).price == 1.0

    def test_duplicate_barcode_is_rejected(self, catalog_repo):
        catalog_repo.create_product(name="Tea", price=1.0, barcode="123")

        result = catalog_repo.create_product(name="Green Tea", price=1.5, barcode="123")

        assert not result.success
        assert result.error == "Product with this barcode already exists"


class TestProductCrud:
    """Test create, read, update and delete"""

    def test_create_and_get(self, catalog_repo):
        created = catalog_repo.create_product(name="Tea", price=1.75, stock=4, category="Coffee & Tea")

        assert created.success
        product = catalog_repo.get_product(created.value.id)
        assert product.name == "Tea"
        assert product.price == 1.75
        assert product.stock == 4
        assert product.is_active

    def test_update_partial_fields(self, catalog_repo):
        product = catalog_repo.create_product(name="Tea", price=1.0, stock=3).value

        result = catalog_repo.update_product(product.id, price=1.25)

        assert result.success
        assert result.value.price == 1.25
        assert result.value.stock == 3
        assert result.value.name == "Tea"

    def test_update_unknown_product(self, catalog_repo):
        result = catalog_repo.update_product("999", price=2.0)

        assert not result.success
        assert result.error == "Product not found"

    def test_delete(self, catalog_repo):
        product = catalog_repo.create_product(name="Tea", price=1.0).value

        assert catalog_repo.delete_product(product.id).success
        assert catalog_repo.get_product(product.id) is None
        assert not catalog_repo.delete_product(product.id).success

    def test_get_unknown_id_returns_none(self, catalog_repo):
        assert catalog_repo.get_product("not-a-number") is None


class TestProductQueries:
    """Test search and listing helpers"""

    @pytest.fixture
    def stocked(self, catalog_repo):
        catalog_repo.create_product(name="Latte", price=3.5, stock=20, category="Coffee & Tea", barcode="111")
        catalog_repo.create_product(name="Bagel", price=2.0, stock=4, category="Bakery")
        catalog_repo.create_product(name="Scone", price=2.5, stock=0, category="Bakery")
        catalog_repo.create_product(name="Old Mug", price=9.0, stock=1, category="Other", is_active=False)
        return catalog_repo

    def test_search_matches_name_category_and_barcode(self, stocked):
        assert [p.name for p in stocked.search_products("lat")] == ["Latte"]
        assert {p.name for p in stocked.search_products("bakery")} == {"Bagel", "Scone"}
        assert [p.name for p in stocked.search_products("111")] == ["Latte"]

    def test_active_only_listing(self, stocked):
        names = [p.name for p in stocked.get_products(include_inactive=False)]

        assert "Old Mug" not in names
        assert len(names) == 3

    def test_low_stock_excludes_inactive_and_sorts_by_stock(self, stocked):
        low = stocked.get_low_stock_products(5)

        assert [p.name for p in low] == ["Scone", "Bagel"]

    def test_categories(self, stocked):
        assert set(stocked.get_categories()) == {"Coffee & Tea", "Bakery", "Other"}

    def test_products_by_category(self, stocked):
        assert {p.name for p in stocked.get_products_by_category("Bakery")} == {"Bagel", "Scone"}


class TestProductFrame:
    """Test the DataFrame view used by tables and exports"""

    def test_frame_has_product_columns(self, products, seeded_products):
        df = products.get_products_frame()

        assert list(df["name"]) == ["Coffee", "Muffin"]
        assert {"price", "cost", "stock", "barcode", "is_active"} <= set(df.columns)
