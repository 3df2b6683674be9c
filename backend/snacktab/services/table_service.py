# Overview: Generic row CRUD over the shop's two tables; SQLAlchemy session or PostgREST endpoint.

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterable, Iterator

import requests
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Producto, Venta, PRODUCTS_TABLE, SALES_TABLE

"""
Table service contract

- select(table, order_by, descending) -> list of row dicts
- get(table, id, for_update) -> row dict or None
- insert(table, rows) -> inserted rows (with server-assigned id / created_at)
- update(table, patch, eq, in_) -> updated rows; a filter is mandatory
- delete(table, eq) -> number of deleted rows; a filter is mandatory
- transaction() -> context manager; real only when supports_transactions

Every write is attempted exactly once. Failures surface as RemoteWriteError,
failed reads as RemoteReadError. Nothing here retries.
"""

logger = logging.getLogger(__name__)

Filter = dict[str, Any]
InFilter = tuple[str, Iterable[Any]]


class TableServiceError(Exception):
    """Base error for the table store."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class RemoteReadError(TableServiceError):
    """A select against the store failed."""


class RemoteWriteError(TableServiceError):
    """An insert/update/delete against the store reported an error."""


class TableService:
    supports_transactions = False

    def select(self, table: str, *, order_by: str | None = None, descending: bool = False) -> list[dict]:
        raise NotImplementedError

    def get(self, table: str, row_id: int, *, for_update: bool = False) -> dict | None:
        raise NotImplementedError

    def insert(self, table: str, rows: list[dict]) -> list[dict]:
        raise NotImplementedError

    def update(self, table: str, patch: dict, *, eq: Filter | None = None, in_: InFilter | None = None) -> list[dict]:
        raise NotImplementedError

    def delete(self, table: str, *, eq: Filter) -> int:
        raise NotImplementedError

    @contextmanager
    def transaction(self) -> Iterator["TableService"]:
        # No multi-statement support: each call inside commits on its own.
        yield self

    @staticmethod
    def _require_filter(operation: str, table: str, eq: Filter | None, in_: InFilter | None = None) -> None:
        if not eq and in_ is None:
            raise TableServiceError(f"Refusing unfiltered {operation} on {table}")


class SqlTableService(TableService):
    """
    Table service over the Flask-SQLAlchemy session.

    Writes commit immediately unless they run inside transaction(), in which
    case they only flush and the outermost block commits or rolls back.
    """
    supports_transactions = True

    MODELS = {
        PRODUCTS_TABLE: Producto,
        SALES_TABLE: Venta,
    }

    def __init__(self, session=None):
        self._session = session
        self._local = threading.local()

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    @property
    def _depth(self) -> int:
        return getattr(self._local, "depth", 0)

    @_depth.setter
    def _depth(self, value: int) -> None:
        self._local.depth = value

    def _model(self, table: str):
        try:
            return self.MODELS[table]
        except KeyError:
            raise TableServiceError(f"Unknown table: {table}")

    @staticmethod
    def _column(model, key: str):
        if key not in model.__table__.columns:
            raise TableServiceError(f"Unknown column {model.__tablename__}.{key}")
        return getattr(model, key)

    def _query(self, model, eq: Filter | None, in_: InFilter | None):
        q = self.session.query(model)
        for key, value in (eq or {}).items():
            q = q.filter(self._column(model, key) == value)
        if in_ is not None:
            key, values = in_
            q = q.filter(self._column(model, key).in_(list(values)))
        return q

    def _finish(self) -> None:
        if self._depth == 0:
            self.session.commit()

    def select(self, table: str, *, order_by: str | None = None, descending: bool = False) -> list[dict]:
        model = self._model(table)
        q = self.session.query(model)
        if order_by:
            col = self._column(model, order_by)
            if descending:
                q = q.order_by(col.desc(), model.id.desc())
            else:
                q = q.order_by(col.asc(), model.id.asc())
        try:
            return [r.to_dict() for r in q.all()]
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RemoteReadError(f"Could not read {table}") from exc

    def get(self, table: str, row_id: int, *, for_update: bool = False) -> dict | None:
        model = self._model(table)
        q = self.session.query(model).filter(model.id == row_id)
        if for_update:
            # NOTE: SQLite ignores SELECT ... FOR UPDATE, Postgres honors it.
            q = q.with_for_update()
        try:
            row = q.first()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RemoteReadError(f"Could not read {table} id={row_id}") from exc
        return row.to_dict() if row else None

    def insert(self, table: str, rows: list[dict]) -> list[dict]:
        model = self._model(table)
        try:
            objs = []
            for row in rows:
                for key in row:
                    self._column(model, key)
                objs.append(model(**row))
            self.session.add_all(objs)
            self.session.flush()  # assigns ids and server defaults
            inserted = [o.to_dict() for o in objs]
            self._finish()
            return inserted
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RemoteWriteError(f"Could not insert into {table}") from exc

    def update(self, table: str, patch: dict, *, eq: Filter | None = None, in_: InFilter | None = None) -> list[dict]:
        self._require_filter("update", table, eq, in_)
        model = self._model(table)
        for key in patch:
            self._column(model, key)
        try:
            rows = self._query(model, eq, in_).all()
            for row in rows:
                for key, value in patch.items():
                    setattr(row, key, value)
            self.session.flush()
            updated = [r.to_dict() for r in rows]
            self._finish()
            return updated
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RemoteWriteError(f"Could not update {table}") from exc

    def delete(self, table: str, *, eq: Filter) -> int:
        self._require_filter("delete", table, eq)
        model = self._model(table)
        try:
            rows = self._query(model, eq, None).all()
            for row in rows:
                self.session.delete(row)
            self.session.flush()
            self._finish()
            return len(rows)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RemoteWriteError(f"Could not delete from {table}") from exc

    @contextmanager
    def transaction(self) -> Iterator["SqlTableService"]:
        """All writes inside commit together, or none do."""
        self._depth += 1
        try:
            yield self
        except Exception:
            self._depth -= 1
            self.session.rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            try:
                self.session.commit()
            except SQLAlchemyError as exc:
                self.session.rollback()
                raise RemoteWriteError("Could not commit transaction") from exc


def _encode(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _error_message(resp) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or str(body)
    return str(body)


class RestTableService(TableService):
    """
    Table service over a PostgREST endpoint (e.g. a hosted Supabase project).

    Each call is one HTTP request and one independent write; there is no way
    to group writes, so supports_transactions stays False.
    """

    def __init__(self, base_url: str | None, api_key: str | None, *, timeout: float | None = 10.0, session=None):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key or ""
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    @staticmethod
    def _filter_params(eq: Filter | None, in_: InFilter | None = None) -> dict[str, str]:
        params = {}
        for key, value in (eq or {}).items():
            params[key] = f"eq.{_encode(value)}"
        if in_ is not None:
            key, values = in_
            params[key] = "in.(" + ",".join(_encode(v) for v in values) + ")"
        return params

    def _request(self, method: str, table: str, *, error_cls, params=None, json=None) -> list[dict]:
        try:
            resp = self.session.request(
                method,
                self._url(table),
                params=params,
                json=json,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.exception("%s %s failed", method, table)
            raise error_cls(f"Could not reach the table service ({table})") from exc

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.error("%s %s returned %s: %s", method, table, resp.status_code, message)
            raise error_cls(
                f"Table service rejected {method} on {table}: {message}",
                details={"status": resp.status_code},
            )

        if not resp.text:
            return []
        try:
            body = resp.json()
        except ValueError as exc:
            logger.error("%s %s returned a non-JSON body (HTTP %s)", method, table, resp.status_code)
            raise error_cls(
                f"Table service sent an unreadable answer for {table}",
                details={"status": resp.status_code},
            ) from exc
        return body if isinstance(body, list) else [body]

    def select(self, table: str, *, order_by: str | None = None, descending: bool = False) -> list[dict]:
        params = {"select": "*"}
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        return self._request("GET", table, error_cls=RemoteReadError, params=params)

    def get(self, table: str, row_id: int, *, for_update: bool = False) -> dict | None:
        # for_update has no REST equivalent; the read is a plain snapshot
        params = {"select": "*", **self._filter_params({"id": row_id})}
        rows = self._request("GET", table, error_cls=RemoteReadError, params=params)
        return rows[0] if rows else None

    def insert(self, table: str, rows: list[dict]) -> list[dict]:
        return self._request("POST", table, error_cls=RemoteWriteError, json=list(rows))

    def update(self, table: str, patch: dict, *, eq: Filter | None = None, in_: InFilter | None = None) -> list[dict]:
        self._require_filter("update", table, eq, in_)
        return self._request(
            "PATCH", table, error_cls=RemoteWriteError, params=self._filter_params(eq, in_), json=patch
        )

    def delete(self, table: str, *, eq: Filter) -> int:
        self._require_filter("delete", table, eq)
        rows = self._request("DELETE", table, error_cls=RemoteWriteError, params=self._filter_params(eq))
        return len(rows)


def build_table_service(config) -> TableService:
    """Pick the backend named by TABLE_BACKEND."""
    backend = (config.get("TABLE_BACKEND") or "sql").lower()
    if backend == "sql":
        return SqlTableService()
    if backend == "rest":
        return RestTableService(
            config.get("SUPABASE_URL"),
            config.get("SUPABASE_KEY"),
            timeout=config.get("REMOTE_TIMEOUT_SECONDS"),
        )
    raise ValueError(f"Unknown TABLE_BACKEND: {backend}")
