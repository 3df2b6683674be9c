"""
Pytest fixtures for SnackTab backend tests.

Provides an app per test on in-memory SQLite, seeding helpers, an admin
client, and an in-memory PostgREST double for the REST table backend.
"""

import json
from datetime import datetime, timezone

import pytest
from snacktab import create_app
from snacktab.extensions import db
from snacktab.models import PRODUCTS_TABLE, SALES_TABLE
from snacktab.services.catalog_service import Product
from snacktab.state import get_state


TEST_PINS = {
    "Daya": "1997",
    "Yara": "2811",
    "Juan Medina": "4813",
}
ADMIN_PIN = "2468"

BASE_CONFIG = {
    'TESTING': True,
    'SECRET_KEY': 'test',
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'ADMIN_PASSWORD': ADMIN_PIN,
    'CUSTOMER_PINS': TEST_PINS,
    'STORE_TIMEZONE': 'America/Bogota',
}


@pytest.fixture(scope='function')
def app():
    """Create application with a fresh SQL database."""
    app = create_app({**BASE_CONFIG, 'TABLE_BACKEND': 'sql'})

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def admin_client(client):
    """Test client with the admin session flag set."""
    response = client.post('/api/admin/login', json={'pin': ADMIN_PIN})
    assert response.status_code == 200
    return client


@pytest.fixture(scope='function')
def state(app):
    return get_state()


@pytest.fixture(scope='function')
def tables(state):
    return state.tables


def add_product(tables, name="Papas", price=2000, stock=3, emoji=None) -> Product:
    """Insert a product row directly and drop the cached snapshot."""
    row = tables.insert(PRODUCTS_TABLE, [{"nombre": name, "precio": price, "stock": stock, "emoji": emoji}])[0]
    get_state().invalidate()
    return Product.from_row(row)


def add_sale(tables, customer="Daya", description="Papas", amount=2000, paid=False, created_at=None) -> dict:
    """Insert a ledger row directly and drop the cached snapshot."""
    row = {
        "cliente": customer,
        "producto": description,
        "precio": amount,
        "fecha": "01 ene, 10:00 a. m.",
        "pagado": paid,
    }
    if created_at is not None:
        row["created_at"] = created_at
    inserted = tables.insert(SALES_TABLE, [row])[0]
    get_state().invalidate()
    return inserted


def stock_of(tables, product_id: int) -> int:
    return tables.get(PRODUCTS_TABLE, product_id)["stock"]


def sales_rows(tables) -> list[dict]:
    return tables.select(SALES_TABLE, order_by="id")


# ---------------------------------------------------------------------------
# REST backend double
# ---------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, status_code: int, body=None):
        self.status_code = status_code
        self.text = "" if body is None else json.dumps(body)

    def json(self):
        return json.loads(self.text)


def _fmt(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class FakePostgrest:
    """
    In-memory PostgREST endpoint: eq./in. filters, order, return=representation.

    Add (METHOD, table) pairs to `fail` to make those calls answer HTTP 500.
    """

    def __init__(self):
        self.tables = {PRODUCTS_TABLE: [], SALES_TABLE: []}
        self.next_id = 1
        self.fail = set()
        self.calls = []

    def seed(self, table: str, **row) -> dict:
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        row["id"] = self.next_id
        self.next_id += 1
        self.tables[table].append(row)
        return dict(row)

    @staticmethod
    def _matches(row: dict, filters: dict) -> bool:
        for key, cond in filters.items():
            op, _, raw = cond.partition(".")
            if op == "eq" and _fmt(row.get(key)) != raw:
                return False
            if op == "in" and _fmt(row.get(key)) not in raw.strip("()").split(","):
                return False
        return True

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        table = url.rsplit("/", 1)[-1]
        params = dict(params or {})
        self.calls.append((method, table, params, json))

        if (method, table) in self.fail:
            return FakeResponse(500, {"message": "simulated failure"})

        rows = self.tables[table]
        filters = {k: v for k, v in params.items() if k not in ("select", "order")}

        if method == "GET":
            result = [dict(r) for r in rows if self._matches(r, filters)]
            if "order" in params:
                col, _, direction = params["order"].partition(".")
                result.sort(key=lambda r: r.get(col), reverse=(direction == "desc"))
            return FakeResponse(200, result)

        if method == "POST":
            created = []
            for row in json:
                new = dict(row)
                if table == SALES_TABLE:
                    new.setdefault("pagado", False)
                created.append(self.seed(table, **new))
            return FakeResponse(201, created)

        if method == "PATCH":
            updated = []
            for r in rows:
                if self._matches(r, filters):
                    r.update(json)
                    updated.append(dict(r))
            return FakeResponse(200, updated)

        if method == "DELETE":
            gone = [dict(r) for r in rows if self._matches(r, filters)]
            self.tables[table] = [r for r in rows if not self._matches(r, filters)]
            return FakeResponse(200, gone)

        return FakeResponse(405, {"message": f"unsupported method {method}"})


@pytest.fixture(scope='function')
def rest_app():
    """Application wired to the REST backend, talking to a FakePostgrest."""
    app = create_app({
        **BASE_CONFIG,
        'TABLE_BACKEND': 'rest',
        'SUPABASE_URL': 'https://shop.example.supabase.co',
        'SUPABASE_KEY': 'anon-key',
    })
    with app.app_context():
        get_state().tables.session = FakePostgrest()
        yield app


@pytest.fixture(scope='function')
def rest_state(rest_app):
    return get_state()


@pytest.fixture(scope='function')
def postgrest(rest_state) -> FakePostgrest:
    return rest_state.tables.session
