"""
Identity Gate

PIN comparison for the customer purchase confirmation and the admin panel.

SECURITY NOTE: this is a social deterrent for a small, closed group, not a
security boundary. PINs live in configuration in clear text and there is no
hashing, throttling or lockout. Treat any exposure beyond that group as a
reason to replace this module, not to patch it.
"""
from __future__ import annotations

import hmac

from flask import current_app


class AuthenticationFailed(Exception):
    """Entered PIN did not match."""
    def __init__(self, message: str = "PIN incorrecto", details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _customer_pins(pins: dict[str, str] | None = None) -> dict[str, str]:
    if pins is not None:
        return pins
    return current_app.config.get("CUSTOMER_PINS") or {}


def list_customers(pins: dict[str, str] | None = None) -> list[str]:
    """Known customer names, in table order."""
    return list(_customer_pins(pins).keys())


def is_known_customer(name: str | None, pins: dict[str, str] | None = None) -> bool:
    return bool(name) and name in _customer_pins(pins)


def _matches(expected: str | None, entered: str | None) -> bool:
    if not expected or entered is None:
        return False
    return hmac.compare_digest(str(expected), str(entered).strip())


def check_customer_pin(name: str, entered_pin: str | None, pins: dict[str, str] | None = None) -> bool:
    """True when entered_pin equals the customer's PIN. Unknown names never match."""
    return _matches(_customer_pins(pins).get(name), entered_pin)


def check_admin_pin(entered_pin: str | None, secret: str | None = None) -> bool:
    """True when entered_pin equals ADMIN_PASSWORD. An unset secret never matches."""
    if secret is None:
        secret = current_app.config.get("ADMIN_PASSWORD")
    return _matches(secret, entered_pin)
