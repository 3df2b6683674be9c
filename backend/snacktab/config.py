# backend/snacktab/config.py
from __future__ import annotations
import json
import logging
import os

logger = logging.getLogger(__name__)


# Static PIN table for the closed customer group. Override with CUSTOMER_PINS='{"Name": "1234"}'.
DEFAULT_CUSTOMER_PINS = {
    "Juan Medina": "4813",
    "Juanita": "3011",
    "Juan Sebastián": "3333",
    "Juan David": "0015",
    "Daya": "1997",
    "Yara": "2811",
    "Isa": "1206",
    "Sara": "5169",
}

DEFAULT_REMOTE_TIMEOUT_SECONDS = 10.0


def _load_customer_pins() -> dict[str, str]:
    raw = os.environ.get("CUSTOMER_PINS")
    if not raw:
        return dict(DEFAULT_CUSTOMER_PINS)
    try:
        parsed = json.loads(raw)
    except ValueError:
        parsed = None
    if not isinstance(parsed, dict):
        logger.warning("CUSTOMER_PINS is not a JSON object of name -> PIN, using the built-in table")
        return dict(DEFAULT_CUSTOMER_PINS)
    return {str(name): str(pin) for name, pin in parsed.items()}


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number, using %s", name, raw, default)
        return default


class Config:
    # Signs the Flask session cookie that carries the admin flag
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # hosted Postgres in production
        "sqlite:///snacktab.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "sql" talks to DATABASE_URL through SQLAlchemy, "rest" to a PostgREST endpoint
    TABLE_BACKEND = os.environ.get("TABLE_BACKEND", "sql")
    SUPABASE_URL = os.environ.get("SUPABASE_URL")
    SUPABASE_KEY = os.environ.get("SUPABASE_KEY")
    REMOTE_TIMEOUT_SECONDS = _env_float("REMOTE_TIMEOUT_SECONDS", DEFAULT_REMOTE_TIMEOUT_SECONDS)

    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD")
    CUSTOMER_PINS = _load_customer_pins()

    STORE_TIMEZONE = os.environ.get("STORE_TIMEZONE", "America/Bogota")
