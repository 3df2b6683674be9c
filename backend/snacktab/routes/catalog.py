# Overview: Flask API routes for the customer catalog; parses input and returns JSON responses.

# backend/snacktab/routes/catalog.py
"""
Catalog routes (customer self-service)

No session needed: every purchase is confirmed with the customer's PIN.
"""

from flask import Blueprint, request, jsonify, current_app

from ..state import get_state
from ..services import auth_service, ledger_service
from ..services.auth_service import AuthenticationFailed
from ..services.catalog_service import ProductNotFound
from ..services.sales_service import SaleError, InsufficientStock
from ..services.table_service import RemoteReadError, RemoteWriteError
from ..validation import ValidationError


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


@catalog_bp.get("/products")
def list_products_route():
    """Catalog as of the latest snapshot, ordered by name."""
    try:
        snapshot = get_state().snapshot()
    except RemoteReadError:
        current_app.logger.exception("Failed to load catalog")
        return jsonify({"error": "No se pudo sincronizar la tienda"}), 502

    return jsonify({
        "items": [p.to_dict() for p in snapshot.products],
        "count": len(snapshot.products),
    }), 200


@catalog_bp.get("/customers")
def list_customers_route():
    return jsonify({"items": auth_service.list_customers()}), 200


@catalog_bp.get("/customers/<name>/debt")
def customer_debt_route(name: str):
    """Outstanding tab for one customer (exact name)."""
    if not auth_service.is_known_customer(name):
        return jsonify({"error": "Customer not found"}), 404

    try:
        snapshot = get_state().snapshot()
    except RemoteReadError:
        current_app.logger.exception("Failed to load ledger")
        return jsonify({"error": "No se pudo sincronizar la tienda"}), 502

    return jsonify({
        "customer": name,
        "outstanding": ledger_service.customer_debt(snapshot.sales, name),
    }), 200


@catalog_bp.post("/purchase")
def purchase_route():
    """
    Self-service purchase.

    Body: {"customer": str, "product_id": int, "quantity": int (default 1), "pin": str}
    """
    data = request.get_json(silent=True) or {}

    try:
        sale = get_state().register_sale(
            customer=data.get("customer"),
            product_id=data.get("product_id"),
            quantity=data.get("quantity", 1),
            pin=data.get("pin"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AuthenticationFailed as e:
        return jsonify({"error": str(e)}), 401
    except ProductNotFound as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except InsufficientStock as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except (RemoteReadError, RemoteWriteError) as e:
        return jsonify({"error": str(e), "details": e.details}), 502
    except Exception:
        current_app.logger.exception("Failed to register purchase")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "sale": sale.to_dict(),
        "message": f"¡Listo! {sale.description} registrado.",
    }), 201
