# Overview: Flask API routes for the admin panel; parses input and returns JSON responses.

# backend/snacktab/routes/admin.py
"""
Admin panel routes

SECURITY: everything except /login requires the admin session flag, which is
set after a successful ADMIN_PASSWORD comparison (see auth_service).
Irrevocable actions (settle, deletes) additionally require "confirm".

Ledger views always show unpaid records only; totals are recomputed from the
current snapshot on every request.
"""

from flask import Blueprint, request, jsonify, session, current_app

from ..state import get_state
from ..services import auth_service, catalog_service, ledger_service
from ..services.catalog_service import ProductNotFound
from ..services.ledger_service import LedgerFilters
from ..services.sales_service import SaleError, InsufficientStock
from ..services.table_service import RemoteReadError, RemoteWriteError
from ..validation import ValidationError, coerce_int
from ..decorators import ADMIN_SESSION_KEY, require_admin, require_confirmation
from snacktab.time_utils import parse_date, parse_local_datetime, store_tz


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _filters_from_args() -> LedgerFilters:
    """
    Query params: customer, product (substrings), start, end (YYYY-MM-DD, inclusive).

    Raises ValidationError on malformed dates.
    """
    try:
        start = parse_date(request.args.get("start"))
        end = parse_date(request.args.get("end"))
    except ValueError:
        raise ValidationError("start and end must be YYYY-MM-DD dates")
    return LedgerFilters(
        customer=request.args.get("customer") or None,
        product=request.args.get("product") or None,
        start=start,
        end=end,
        unpaid_only=True,
    )


@admin_bp.post("/login")
def login_route():
    """Open the admin panel. Body: {"pin": str}"""
    data = request.get_json(silent=True) or {}

    if not auth_service.check_admin_pin(data.get("pin")):
        current_app.logger.warning("Rejected admin PIN from %s", request.remote_addr)
        return jsonify({"error": "Incorrecto"}), 401

    session[ADMIN_SESSION_KEY] = True
    return jsonify({"ok": True}), 200


@admin_bp.post("/logout")
def logout_route():
    session.pop(ADMIN_SESSION_KEY, None)
    return jsonify({"ok": True}), 200


@admin_bp.get("/ledger")
@require_admin
def ledger_route():
    """Unpaid ledger rows matching the filters, newest first, with their total."""
    try:
        filters = _filters_from_args()
        snapshot = get_state().snapshot()
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except RemoteReadError as e:
        current_app.logger.exception("Failed to load ledger")
        return jsonify({"error": str(e)}), 502

    rows = ledger_service.filter_ledger(snapshot.sales, filters)
    return jsonify({
        "items": [r.to_dict() for r in rows],
        "count": len(rows),
        "total": ledger_service.compute_outstanding(rows),
        "filters": filters.to_dict(),
    }), 200


@admin_bp.post("/ledger/settle")
@require_admin
@require_confirmation
def settle_route():
    """
    Mark the given records paid.

    Body: {"ids": [int, ...], "confirm": true}. The ids are the rows the admin
    was looking at; nothing is re-filtered server-side.
    """
    data = request.get_json(silent=True) or {}
    raw_ids = data.get("ids")
    if not isinstance(raw_ids, list):
        return jsonify({"error": "ids must be a list of sale ids"}), 400

    try:
        ids = [coerce_int("ids", i) for i in raw_ids]
        settled = get_state().settle(ids)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except RemoteWriteError as e:
        return jsonify({"error": str(e), "details": e.details}), 502
    except Exception:
        current_app.logger.exception("Failed to settle ledger")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"settled": settled}), 200


@admin_bp.delete("/ledger/<int:sale_id>")
@require_admin
@require_confirmation
def delete_sale_route(sale_id: int):
    try:
        deleted = get_state().delete_sale(sale_id)
    except RemoteWriteError as e:
        return jsonify({"error": "Error al borrar", "details": e.details}), 502

    if not deleted:
        return jsonify({"error": "Sale not found"}), 404

    return jsonify({"ok": True}), 200


@admin_bp.get("/debts")
@require_admin
def debts_route():
    """Outstanding amount per customer."""
    try:
        snapshot = get_state().snapshot()
    except RemoteReadError as e:
        return jsonify({"error": str(e)}), 502

    debts = ledger_service.debts_by_customer(snapshot.sales)
    return jsonify({
        "items": [{"customer": name, "outstanding": amount} for name, amount in debts.items()],
        "total": sum(debts.values()),
    }), 200


@admin_bp.get("/report")
@require_admin
def report_route():
    """Data for the printable report of the currently filtered rows."""
    try:
        filters = _filters_from_args()
        snapshot = get_state().snapshot()
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except RemoteReadError as e:
        return jsonify({"error": str(e)}), 502

    return jsonify(ledger_service.ledger_report(snapshot.sales, filters)), 200


@admin_bp.get("/reconciliation")
@require_admin
def reconciliation_route():
    """Sales whose two writes did not both land (non-transactional backend only)."""
    entries = get_state().reconciliation_entries()
    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200


@admin_bp.post("/sales")
@require_admin
def direct_sale_route():
    """
    Admin direct entry. No PIN: the admin session is the authorization.

    Body: {"customer": str, "product_id": int, "quantity": int, "timestamp": "YYYY-MM-DDTHH:MM"}
    """
    data = request.get_json(silent=True) or {}

    raw_ts = data.get("timestamp")
    if not raw_ts or not isinstance(raw_ts, str):
        return jsonify({"error": "timestamp required"}), 400
    try:
        moment = parse_local_datetime(raw_ts, store_tz())
    except ValueError:
        return jsonify({"error": "timestamp must be an ISO-8601 datetime"}), 400

    try:
        sale = get_state().register_sale(
            customer=data.get("customer"),
            product_id=data.get("product_id"),
            quantity=data.get("quantity", 1),
            explicit_timestamp=moment,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ProductNotFound as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except InsufficientStock as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except (RemoteReadError, RemoteWriteError) as e:
        return jsonify({"error": str(e), "details": e.details}), 502
    except Exception:
        current_app.logger.exception("Failed to register direct sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"sale": sale.to_dict()}), 201


@admin_bp.get("/products")
@require_admin
def list_products_route():
    """Inventory list. Query params: search (name substring)."""
    try:
        snapshot = get_state().snapshot()
    except RemoteReadError as e:
        return jsonify({"error": str(e)}), 502

    products = catalog_service.search_products(snapshot.products, request.args.get("search"))
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@admin_bp.post("/products")
@require_admin
def upsert_product_route():
    """
    Save the product form. With "id" the product is updated, without it created.

    Body: {"id"?, "name", "price", "stock", "emoji"?, "image_url"?}
    """
    payload = request.get_json(silent=True) or {}
    is_update = payload.get("id") not in (None, "") if isinstance(payload, dict) else False

    try:
        product = get_state().upsert_product(payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ProductNotFound as e:
        return jsonify({"error": str(e)}), 404
    except RemoteWriteError as e:
        verb = "actualizar" if is_update else "crear"
        return jsonify({"error": f"Error al {verb}: {e}", "details": e.details}), 502
    except Exception:
        current_app.logger.exception("Failed to save product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(product.to_dict()), (200 if is_update else 201)


@admin_bp.delete("/products/<int:product_id>")
@require_admin
@require_confirmation
def delete_product_route(product_id: int):
    """Hard delete. Ledger rows naming this product are left as they are."""
    try:
        deleted = get_state().delete_product(product_id)
    except RemoteWriteError as e:
        return jsonify({"error": str(e), "details": e.details}), 502

    if not deleted:
        return jsonify({"error": "Product not found"}), 404

    return jsonify({"ok": True}), 200
