# Overview: Flask CLI command groups for bootstrap, catalog and ledger inspection.

# backend/snacktab/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair (SQL backend only):
# - python -m flask system init-db
#   Create the productos / ventas tables if they do not exist.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask catalog list [--search papas]
#   List products with price and stock.
# - python -m flask catalog seed
#   Add a starter set of snacks when the catalog is empty.
#
# Ledger:
# - python -m flask ledger outstanding [--customer Daya] [--product gomitas] [--start 2024-01-01] [--end 2024-01-31]
#   Print the unpaid rows matching the filters and their total.
# - python -m flask ledger debts
#   Outstanding amount per customer.

import click
from flask.cli import with_appcontext

from .extensions import db
from .state import get_state
from .services import catalog_service, ledger_service
from .services.ledger_service import LedgerFilters
from .services.table_service import SqlTableService
from .time_utils import parse_date

STARTER_SNACKS = [
    {"name": "Papas de limón", "price": 2000, "stock": 12, "emoji": "🥔"},
    {"name": "Gomitas", "price": 1500, "stock": 20, "emoji": "🍬"},
    {"name": "Chocolatina", "price": 2500, "stock": 10, "emoji": "🍫"},
    {"name": "Gaseosa", "price": 3000, "stock": 8, "emoji": "🥤"},
]


def _money(amount: int) -> str:
    return f"${amount:,}".replace(",", ".")


def _require_sql_backend() -> None:
    if not isinstance(get_state().tables, SqlTableService):
        raise click.ClickException("This command only works with TABLE_BACKEND=sql")


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    _require_sql_backend()
    db.create_all()
    click.echo("PASS Tables ready: productos, ventas")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    _require_sql_backend()
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()
    click.echo("BUILD Creating tables...")
    db.create_all()
    get_state().invalidate()
    click.echo("PASS Database reset complete")


@click.group('catalog')
def catalog_group():
    """Catalog inspection and seeding."""


@catalog_group.command('list')
@click.option('--search', default=None, help='Name substring')
@with_appcontext
def list_catalog(search):
    """List products with price and stock."""
    products = catalog_service.search_products(get_state().refresh().products, search)
    if not products:
        click.echo("No products found")
        return
    for p in products:
        status = "SOLD OUT" if p.sold_out else f"{p.stock} disponibles"
        click.echo(f"{p.id:>4}  {p.emoji or ' '}  {p.name:<30} {_money(p.price):>10}  {status}")


@catalog_group.command('seed')
@with_appcontext
def seed_catalog():
    """Add starter snacks when the catalog is empty."""
    state = get_state()
    if state.refresh().products:
        click.echo("WARN Catalog is not empty, skipping seed")
        return
    for snack in STARTER_SNACKS:
        product = state.upsert_product(dict(snack))
        click.echo(f"PASS Created {product.name} (ID: {product.id})")


@click.group('ledger')
def ledger_group():
    """Ledger inspection."""


@ledger_group.command('outstanding')
@click.option('--customer', default=None, help='Customer name substring')
@click.option('--product', default=None, help='Product description substring')
@click.option('--start', default=None, help='First day, YYYY-MM-DD')
@click.option('--end', default=None, help='Last day, YYYY-MM-DD')
@with_appcontext
def outstanding(customer, product, start, end):
    """Unpaid rows matching the filters and their total."""
    try:
        filters = LedgerFilters(customer=customer, product=product, start=parse_date(start), end=parse_date(end))
    except ValueError:
        raise click.BadParameter("start and end must be YYYY-MM-DD")

    rows = ledger_service.filter_ledger(get_state().refresh().sales, filters)
    for r in rows:
        click.echo(f"{r.id:>5}  {r.display_time:<22} {r.customer:<18} {r.description:<30} {_money(r.amount):>10}")
    click.echo(f"TOTAL {_money(ledger_service.compute_outstanding(rows))} ({len(rows)} registros)")


@ledger_group.command('debts')
@with_appcontext
def debts():
    """Outstanding amount per customer."""
    totals = ledger_service.debts_by_customer(get_state().refresh().sales)
    if not totals:
        click.echo("Nobody owes anything")
        return
    for name, amount in totals.items():
        click.echo(f"{name:<20} {_money(amount):>10}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(ledger_group)
