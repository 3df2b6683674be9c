# backend/snacktab/routes/system.py
"""
System health endpoint.

Reports whether the table store answers and how large the snapshot is.
"""

import time
from flask import Blueprint, current_app, jsonify

from ..state import get_state
from ..services.table_service import TableServiceError
from snacktab.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_store_health() -> dict:
    """
    Re-fetch both tables and time it.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        snapshot = get_state().refresh()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "backend": current_app.config.get("TABLE_BACKEND", "sql"),
                "products": len(snapshot.products),
                "sales": len(snapshot.sales),
            },
        }
    except TableServiceError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Table store health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Table store error",
        }


@system_bp.get("/api/health")
def health():
    store = check_store_health()
    status_code = 200 if store["status"] == "healthy" else 503
    return jsonify({
        "status": store["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"store": store},
    }), status_code
