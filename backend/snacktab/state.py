# Overview: Per-app storefront state; owns the table service, the table snapshot and the reconciliation log.

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from flask import current_app, g, has_request_context

from .services import catalog_service, ledger_service, sales_service
from .services.catalog_service import Product
from .services.ledger_service import SaleRecord
from .services.table_service import RemoteReadError, RemoteWriteError, TableService
from .time_utils import to_utc_z, utcnow
from .validation import coerce_int

EXTENSION_KEY = "snacktab"
SNAPSHOT_G_KEY = "snacktab_snapshot"


@dataclass(frozen=True)
class Snapshot:
    """Both tables as of one fetch. Lives for one request at most, never patched."""
    products: tuple[Product, ...]
    sales: tuple[SaleRecord, ...]
    fetched_at: datetime


@dataclass
class ReconciliationEntry:
    """A sale whose ledger insert and stock decrement did not both land."""
    recorded_at: datetime
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"recorded_at": to_utc_z(self.recorded_at), **self.details}


class StorefrontState:
    """
    Explicit application state and the single write path.

    Other workers and other clients write to the same store, so the snapshot
    is fetched at most once per request and kept on `g`. Outside a request
    every read goes to the store. Every mutating method ends by re-fetching
    it (or dropping it on failure) so readers never see an optimistic update.
    """

    def __init__(self, tables: TableService):
        self.tables = tables
        self._reconciliation: list[ReconciliationEntry] = []
        self._lock = threading.Lock()

    # --- snapshot -----------------------------------------------------------

    def snapshot(self) -> Snapshot:
        if has_request_context():
            cached = g.get(SNAPSHOT_G_KEY)
            if cached is not None:
                return cached
        return self.refresh()

    def refresh(self) -> Snapshot:
        snapshot = self._fetch()
        if has_request_context():
            setattr(g, SNAPSHOT_G_KEY, snapshot)
        return snapshot

    def invalidate(self) -> None:
        if has_request_context():
            g.pop(SNAPSHOT_G_KEY, None)

    def _fetch(self) -> Snapshot:
        return Snapshot(
            products=tuple(catalog_service.list_products(self.tables)),
            sales=tuple(ledger_service.list_sales(self.tables)),
            fetched_at=utcnow(),
        )

    def _after_write(self) -> None:
        try:
            self.refresh()
        except RemoteReadError:
            # The write landed; the next reader fetches again.
            current_app.logger.exception("Snapshot refresh after write failed")
            self.invalidate()

    # --- writes -------------------------------------------------------------

    def register_sale(
        self,
        *,
        customer: str | None,
        product_id,
        quantity=1,
        explicit_timestamp=None,
        pin: str | None = None,
    ) -> SaleRecord:
        product_id = coerce_int("product_id", product_id)
        product = catalog_service.find_product(self.snapshot().products, product_id)
        try:
            sale = sales_service.register_sale(
                self.tables,
                customer=customer,
                product=product,
                quantity=quantity,
                explicit_timestamp=explicit_timestamp,
                pin=pin,
            )
        except RemoteWriteError as exc:
            if exc.details.get("partial"):
                self.record_partial_write(exc.details)
                current_app.logger.error("Partial sale write, manual reconciliation needed: %s", exc.details)
            self.invalidate()
            raise
        current_app.logger.info(
            "Sale registered: %s -> %s (%s)", sale.customer, sale.description, sale.amount
        )
        self._after_write()
        return sale

    def upsert_product(self, payload: dict) -> Product:
        try:
            product = catalog_service.upsert_product(self.tables, payload)
        except RemoteWriteError:
            self.invalidate()
            raise
        self._after_write()
        return product

    def delete_product(self, product_id: int) -> bool:
        try:
            deleted = catalog_service.delete_product(self.tables, product_id)
        except RemoteWriteError:
            self.invalidate()
            raise
        self._after_write()
        return deleted

    def settle(self, sale_ids: Iterable[int]) -> int:
        try:
            settled = ledger_service.settle(self.tables, sale_ids)
        except RemoteWriteError:
            self.invalidate()
            raise
        current_app.logger.info("Settled %s ledger records", settled)
        self._after_write()
        return settled

    def delete_sale(self, sale_id: int) -> bool:
        try:
            deleted = ledger_service.delete_sale(self.tables, sale_id)
        except RemoteWriteError:
            self.invalidate()
            raise
        self._after_write()
        return deleted

    # --- reconciliation -----------------------------------------------------

    def record_partial_write(self, details: dict) -> ReconciliationEntry:
        entry = ReconciliationEntry(recorded_at=utcnow(), details=dict(details))
        with self._lock:
            self._reconciliation.append(entry)
        return entry

    def reconciliation_entries(self) -> list[ReconciliationEntry]:
        with self._lock:
            return list(self._reconciliation)


def get_state() -> StorefrontState:
    return current_app.extensions[EXTENSION_KEY]


def release_snapshot(exc=None) -> None:
    """teardown_request hook; the app context (and g) can outlive one request."""
    g.pop(SNAPSHOT_G_KEY, None)
