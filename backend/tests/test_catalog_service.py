"""
Catalog maintenance: product form validation, create/update, delete, search.
"""

import pytest

from snacktab.models import PRODUCTS_TABLE
from snacktab.services.catalog_service import (
    Product,
    ProductNotFound,
    delete_product,
    find_product,
    get_product,
    list_products,
    search_products,
    upsert_product,
)
from snacktab.validation import ValidationError, validate_product_form

from conftest import add_product, add_sale, sales_rows


class TestUpsertProduct:

    def test_create_without_id(self, tables):
        product = upsert_product(tables, {"name": "Gomitas", "price": 1500, "stock": 20, "emoji": "🍬"})

        assert product.id is not None
        assert product.name == "Gomitas"
        assert product.price == 1500
        assert product.stock == 20
        assert product.emoji == "🍬"
        assert len(tables.select(PRODUCTS_TABLE)) == 1

    def test_numeric_strings_are_accepted(self, tables):
        product = upsert_product(tables, {"name": "Papas", "price": "2000", "stock": " 7 "})

        assert (product.price, product.stock) == (2000, 7)

    def test_update_with_id_changes_only_submitted_fields(self, tables):
        original = add_product(tables, name="Papas", price=2000, stock=3, emoji="🥔")

        updated = upsert_product(tables, {"id": original.id, "price": 2200})

        assert updated.id == original.id
        assert updated.price == 2200
        assert updated.name == "Papas"
        assert updated.stock == 3
        assert updated.emoji == "🥔"
        assert len(tables.select(PRODUCTS_TABLE)) == 1

    def test_update_missing_id_is_not_found(self, tables):
        with pytest.raises(ProductNotFound):
            upsert_product(tables, {"id": 404, "name": "Fantasma", "price": 1000, "stock": 1})

        assert tables.select(PRODUCTS_TABLE) == []

    def test_stock_zero_is_allowed(self, tables):
        product = upsert_product(tables, {"name": "Agotado", "price": 1000, "stock": 0})

        assert product.stock == 0
        assert product.sold_out is True

    @pytest.mark.parametrize("payload", [
        {"name": "Papas", "price": "dos mil", "stock": 3},
        {"name": "Papas", "price": "", "stock": 3},
        {"name": "Papas", "price": 0, "stock": 3},
        {"name": "Papas", "price": -500, "stock": 3},
        {"name": "Papas", "price": "12.5", "stock": 3},
        {"name": "Papas", "price": 2000, "stock": -1},
        {"name": "Papas", "price": 2000, "stock": "muchas"},
        {"name": "   ", "price": 2000, "stock": 3},
        {"price": 2000, "stock": 3},
        {"name": "Papas", "price": 2000, "stock": 3, "created_at": "2024-01-01"},
    ])
    def test_malformed_form_is_rejected_without_writing(self, tables, payload):
        with pytest.raises(ValidationError):
            upsert_product(tables, payload)

        assert tables.select(PRODUCTS_TABLE) == []

    def test_update_rejects_bad_price(self, tables):
        original = add_product(tables, price=2000)

        with pytest.raises(ValidationError):
            upsert_product(tables, {"id": original.id, "price": "abc"})

        assert get_product(tables, original.id).price == 2000


class TestDeleteProduct:

    def test_delete_leaves_ledger_rows_alone(self, tables):
        product = add_product(tables, name="Papas")
        add_sale(tables, description="Papas (x2)", amount=4000)

        assert delete_product(tables, product.id) is True

        assert tables.select(PRODUCTS_TABLE) == []
        rows = sales_rows(tables)
        assert len(rows) == 1
        assert rows[0]["producto"] == "Papas (x2)"

    def test_delete_missing(self, tables):
        assert delete_product(tables, 12345) is False


class TestLookups:

    def test_list_is_ordered_by_name(self, tables):
        add_product(tables, name="Gomitas")
        add_product(tables, name="Chocolatina")
        add_product(tables, name="Papas")

        assert [p.name for p in list_products(tables)] == ["Chocolatina", "Gomitas", "Papas"]

    def test_get_missing_raises(self, tables):
        with pytest.raises(ProductNotFound) as exc:
            get_product(tables, 9)
        assert exc.value.details == {"product_id": 9}

    def test_find_in_snapshot(self):
        products = [Product(1, "Papas", 2000, 3), Product(2, "Gomitas", 1500, 0)]

        assert find_product(products, 2).name == "Gomitas"
        with pytest.raises(ProductNotFound):
            find_product(products, 3)

    def test_search_is_case_insensitive_substring(self):
        products = [
            Product(1, "Papas de limón", 2000, 3),
            Product(2, "Papas BBQ", 2000, 3),
            Product(3, "Gomitas", 1500, 3),
        ]

        assert [p.id for p in search_products(products, "PAPAS")] == [1, 2]
        assert [p.id for p in search_products(products, "bbq")] == [2]
        assert [p.id for p in search_products(products, "  ")] == [1, 2, 3]
        assert search_products(products, "chicle") == []


def test_form_validation_keeps_only_submitted_fields():
    form = validate_product_form({"id": "3", "stock": "0", "emoji": ""})

    assert form == {"id": 3, "stock": 0, "emoji": None}
