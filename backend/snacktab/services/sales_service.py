"""
Sales Service - sale registration

A sale is two writes: one unpaid ledger row and a stock decrement on the
product. On a backend with transactions both happen in one transaction under
a row lock. Without one (REST backend) both writes are attempted exactly once
each, no rollback is tried, and a RemoteWriteError says which one landed so
the operator can fix the other by hand.
"""
from __future__ import annotations

from datetime import datetime, tzinfo

from ..models import PRODUCTS_TABLE, SALES_TABLE
from ..validation import validate_quantity
from snacktab.time_utils import format_display_time, parse_local_datetime, store_tz
from .auth_service import AuthenticationFailed, check_customer_pin, is_known_customer
from .catalog_service import Product, ProductNotFound
from .ledger_service import SaleRecord
from .table_service import RemoteWriteError, TableService


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class MissingIdentity(SaleError):
    """No (or no known) customer selected."""


class InsufficientStock(SaleError):
    """Requested quantity exceeds the product's stock."""


def describe(name: str, quantity: int) -> str:
    """Ledger description: the product name, with " (xN)" for multiples."""
    return f"{name} (x{quantity})" if quantity > 1 else name


def _sale_moment(explicit_timestamp, tz: tzinfo) -> datetime:
    if explicit_timestamp is None:
        return datetime.now(tz)
    if isinstance(explicit_timestamp, str):
        return parse_local_datetime(explicit_timestamp, tz)
    if explicit_timestamp.tzinfo is None:
        return explicit_timestamp.replace(tzinfo=tz)
    return explicit_timestamp.astimezone(tz)


def _ensure_stock(product: Product, quantity: int) -> None:
    if quantity > product.stock:
        raise InsufficientStock(
            "No hay suficiente stock",
            details={
                "product_id": product.id,
                "requested_quantity": quantity,
                "stock": product.stock,
            },
        )


def _sale_row(customer: str, product: Product, quantity: int, moment: datetime) -> dict:
    return {
        "cliente": customer,
        "producto": describe(product.name, quantity),
        "precio": product.price * quantity,
        "fecha": format_display_time(moment),
        "pagado": False,
    }


def register_sale(
    tables: TableService,
    *,
    customer: str | None,
    product: Product,
    quantity=1,
    explicit_timestamp=None,
    pin: str | None = None,
    pins: dict[str, str] | None = None,
    tz: tzinfo | None = None,
) -> SaleRecord:
    """
    Put `quantity` units of `product` on `customer`'s tab.

    Self-service purchases (no explicit_timestamp) must confirm with the
    customer's PIN. Admin direct entries pass explicit_timestamp and skip it:
    the admin session is the authorization.

    Raises:
        MissingIdentity: blank customer, or unknown customer for self-service
        ValidationError: quantity is not an integer >= 1
        AuthenticationFailed: PIN mismatch (nothing written)
        InsufficientStock: quantity > stock (nothing written)
        ProductNotFound: product row vanished (transactional backend)
        RemoteWriteError: the store rejected one or both writes
    """
    customer = (customer or "").strip()
    if not customer:
        raise MissingIdentity("Selecciona tu nombre primero")

    self_service = explicit_timestamp is None
    if self_service and not is_known_customer(customer, pins):
        raise MissingIdentity("Cliente desconocido", details={"customer": customer})

    quantity = validate_quantity(quantity)

    if self_service and not check_customer_pin(customer, pin, pins):
        raise AuthenticationFailed("PIN incorrecto. Compra cancelada.", details={"customer": customer})

    _ensure_stock(product, quantity)

    moment = _sale_moment(explicit_timestamp, tz or store_tz())

    if tables.supports_transactions:
        return _register_atomic(tables, customer, product, quantity, moment)
    return _register_two_writes(tables, customer, product, quantity, moment)


def _register_atomic(
    tables: TableService, customer: str, product: Product, quantity: int, moment: datetime
) -> SaleRecord:
    with tables.transaction():
        row = tables.get(PRODUCTS_TABLE, product.id, for_update=True)
        if row is None:
            raise ProductNotFound("Product not found", details={"product_id": product.id})
        # Re-check against the locked row, not the caller's snapshot
        current = Product.from_row(row)
        _ensure_stock(current, quantity)

        inserted = tables.insert(SALES_TABLE, [_sale_row(customer, current, quantity, moment)])
        tables.update(PRODUCTS_TABLE, {"stock": current.stock - quantity}, eq={"id": current.id})

    return SaleRecord.from_row(inserted[0])


def _register_two_writes(
    tables: TableService, customer: str, product: Product, quantity: int, moment: datetime
) -> SaleRecord:
    sale = _sale_row(customer, product, quantity, moment)
    new_stock = product.stock - quantity

    inserted: list[dict] = []
    sale_error = None
    stock_error = None

    try:
        inserted = tables.insert(SALES_TABLE, [sale])
    except RemoteWriteError as exc:
        sale_error = exc

    # Attempted even when the insert failed; last write wins on stock.
    try:
        updated = tables.update(PRODUCTS_TABLE, {"stock": new_stock}, eq={"id": product.id})
        if not updated:
            stock_error = RemoteWriteError("Product row not found for stock update")
    except RemoteWriteError as exc:
        stock_error = exc

    if sale_error is None and stock_error is None:
        return SaleRecord.from_row(inserted[0])

    details = {
        "sale_written": sale_error is None,
        "stock_written": stock_error is None,
        "partial": (sale_error is None) != (stock_error is None),
        "customer": customer,
        "product_id": product.id,
        "description": sale["producto"],
        "amount": sale["precio"],
        "expected_stock": new_stock,
        "sale_id": inserted[0]["id"] if inserted else None,
    }
    if sale_error is not None and stock_error is not None:
        message = "No se pudo registrar la venta"
    elif sale_error is not None:
        message = "Stock actualizado pero la venta no se registró"
    else:
        message = "Venta registrada pero el stock no se actualizó"
    raise RemoteWriteError(message, details=details) from (sale_error or stock_error)
