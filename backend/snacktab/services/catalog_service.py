"""
Catalog Service

Products are the only mutable business rows besides the paid flag:
- create / update from the admin form (create vs update decided by "id")
- stock decrement from sale registration (see sales_service)
- hard delete; ledger rows that mention the name are never touched
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..models import PRODUCTS_TABLE
from ..validation import validate_product_form
from .table_service import TableService

# Form field -> column in the productos table
FORM_COLUMNS = {
    "name": "nombre",
    "price": "precio",
    "stock": "stock",
    "emoji": "emoji",
    "image_url": "imagen",
}


class CatalogError(Exception):
    """Raised for catalog operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ProductNotFound(CatalogError):
    """No product row with the requested id."""


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    price: int
    stock: int
    emoji: str | None = None
    image_url: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "Product":
        return cls(
            id=row["id"],
            name=row["nombre"],
            price=int(row["precio"]),
            stock=int(row["stock"]),
            emoji=row.get("emoji") or None,
            image_url=row.get("imagen") or None,
        )

    @property
    def sold_out(self) -> bool:
        return self.stock <= 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "stock": self.stock,
            "emoji": self.emoji,
            "image_url": self.image_url,
            "sold_out": self.sold_out,
        }


def list_products(tables: TableService) -> list[Product]:
    """Full catalog ordered by name."""
    return [Product.from_row(r) for r in tables.select(PRODUCTS_TABLE, order_by="nombre")]


def get_product(tables: TableService, product_id: int) -> Product:
    row = tables.get(PRODUCTS_TABLE, product_id)
    if row is None:
        raise ProductNotFound("Product not found", details={"product_id": product_id})
    return Product.from_row(row)


def find_product(products: Iterable[Product], product_id: int) -> Product:
    """Look a product up in an already-fetched snapshot."""
    for p in products:
        if p.id == product_id:
            return p
    raise ProductNotFound("Product not found", details={"product_id": product_id})


def search_products(products: Iterable[Product], text: str | None) -> list[Product]:
    """Inventory search: case-insensitive substring on the name; blank matches all."""
    needle = (text or "").strip().lower()
    if not needle:
        return list(products)
    return [p for p in products if needle in p.name.lower()]


def _form_to_row(form: dict) -> dict:
    return {FORM_COLUMNS[k]: v for k, v in form.items() if k in FORM_COLUMNS}


def upsert_product(tables: TableService, payload: dict) -> Product:
    """
    Create or update a product from the admin form.

    Raises:
        ValidationError: malformed form (non-numeric price/stock, blank name...)
        ProductNotFound: update for an id that no longer exists
        RemoteWriteError: the store rejected the write
    """
    form = validate_product_form(payload)
    row = _form_to_row(form)

    if "id" in form:
        # id and created_at are never part of the patch
        updated = tables.update(PRODUCTS_TABLE, row, eq={"id": form["id"]})
        if not updated:
            raise ProductNotFound("Product not found", details={"product_id": form["id"]})
        return Product.from_row(updated[0])

    created = tables.insert(PRODUCTS_TABLE, [row])
    return Product.from_row(created[0])


def delete_product(tables: TableService, product_id: int) -> bool:
    """
    Hard-delete a product.

    Returns:
        True if deleted, False if not found
    """
    return tables.delete(PRODUCTS_TABLE, eq={"id": product_id}) > 0
