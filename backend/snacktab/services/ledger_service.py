# Overview: Service-layer operations for the sales ledger; filtering, debt aggregation, settlement.

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, tzinfo
from typing import Iterable, Optional

from ..models import SALES_TABLE
from snacktab.time_utils import day_bounds_utc, parse_iso_datetime, store_tz, to_utc_z, utcnow
from .table_service import TableService

"""
Ledger Invariants

- A record's amount and description never change after insert.
- The only update ever issued is pagado false -> true (settlement).
- Outstanding debt is always recomputed from the rows; it is never stored.
- Date-range filtering uses created_at (server clock), never the `fecha` string.
"""


@dataclass(frozen=True)
class SaleRecord:
    id: int
    customer: str
    description: str
    amount: int
    display_time: str
    paid: bool
    created_at: Optional[datetime]

    @classmethod
    def from_row(cls, row: dict) -> "SaleRecord":
        created = row.get("created_at")
        if isinstance(created, str):
            created = parse_iso_datetime(created)
        return cls(
            id=row["id"],
            customer=row["cliente"],
            description=row["producto"],
            amount=int(row["precio"]),
            display_time=row.get("fecha") or "",
            paid=bool(row.get("pagado")),
            created_at=created,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer": self.customer,
            "description": self.description,
            "amount": self.amount,
            "display_time": self.display_time,
            "paid": self.paid,
            "created_at": to_utc_z(self.created_at),
        }


@dataclass(frozen=True)
class LedgerFilters:
    """
    Conjunctive ledger filter. A None/blank criterion matches everything.

    start/end are local calendar dates, both inclusive.
    """
    customer: Optional[str] = None
    product: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None
    unpaid_only: bool = True

    def to_dict(self) -> dict:
        data = asdict(self)
        data["start"] = self.start.isoformat() if self.start else None
        data["end"] = self.end.isoformat() if self.end else None
        return data


def list_sales(tables: TableService) -> list[SaleRecord]:
    """Whole ledger, newest first."""
    rows = tables.select(SALES_TABLE, order_by="created_at", descending=True)
    return [SaleRecord.from_row(r) for r in rows]


def _contains(haystack: str, needle: Optional[str]) -> bool:
    if not needle or not needle.strip():
        return True
    return needle.strip().lower() in (haystack or "").lower()


def filter_ledger(
    records: Iterable[SaleRecord],
    filters: LedgerFilters,
    tz: Optional[tzinfo] = None,
) -> list[SaleRecord]:
    """Apply every filter criterion; order of the input is preserved."""
    start_dt = end_dt = None
    if filters.start is not None or filters.end is not None:
        start_dt, end_dt = day_bounds_utc(filters.start, filters.end, tz or store_tz())

    result = []
    for r in records:
        if filters.unpaid_only and r.paid:
            continue
        if not _contains(r.customer, filters.customer):
            continue
        if not _contains(r.description, filters.product):
            continue
        if start_dt is not None and (r.created_at is None or r.created_at < start_dt):
            continue
        if end_dt is not None and (r.created_at is None or r.created_at > end_dt):
            continue
        result.append(r)
    return result


def compute_outstanding(
    records: Iterable[SaleRecord],
    filters: LedgerFilters = LedgerFilters(),
    tz: Optional[tzinfo] = None,
) -> int:
    """Sum of unpaid amounts among the records matching filters (0 when none match)."""
    return sum(r.amount for r in filter_ledger(records, filters, tz) if not r.paid)


def customer_debt(records: Iterable[SaleRecord], customer: str) -> int:
    """A customer's own tab: exact-name match, unpaid only."""
    return sum(r.amount for r in records if r.customer == customer and not r.paid)


def debts_by_customer(records: Iterable[SaleRecord]) -> dict[str, int]:
    """Outstanding amount per customer, customers with nothing owed omitted."""
    totals: dict[str, int] = {}
    for r in records:
        if r.paid:
            continue
        totals[r.customer] = totals.get(r.customer, 0) + r.amount
    return dict(sorted(totals.items(), key=lambda kv: (-kv[1], kv[0])))


def settle(tables: TableService, sale_ids: Iterable[int]) -> int:
    """
    Mark exactly these records paid.

    The ids come from the filter the admin was looking at, so records that
    arrive after the filter was evaluated are never swept in. Already-paid ids
    are skipped, which makes repeated settlement a no-op.

    Returns the number of records flipped to paid.
    """
    ids = sorted({int(i) for i in sale_ids})
    if not ids:
        return 0
    updated = tables.update(SALES_TABLE, {"pagado": True}, eq={"pagado": False}, in_=("id", ids))
    return len(updated)


def delete_sale(tables: TableService, sale_id: int) -> bool:
    """Remove one ledger record. Returns False if it did not exist."""
    return tables.delete(SALES_TABLE, eq={"id": sale_id}) > 0


def ledger_report(
    records: Iterable[SaleRecord],
    filters: LedgerFilters,
    tz: Optional[tzinfo] = None,
) -> dict:
    """Data behind the printable report: the filtered rows and their total."""
    rows = filter_ledger(records, filters, tz)
    return {
        "generated_at": to_utc_z(utcnow()),
        "filters": filters.to_dict(),
        "items": [r.to_dict() for r in rows],
        "count": len(rows),
        "total": sum(r.amount for r in rows if not r.paid),
    }
