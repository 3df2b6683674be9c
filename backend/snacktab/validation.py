from __future__ import annotations

from dataclasses import dataclass
from typing import Any


# Maximum price in whole pesos. Keeps out typos like an extra row of zeros.
MAX_PRICE = 99_999_999
MAX_STOCK = 1_000_000
MAX_NAME_LENGTH = 255
MAX_EMOJI_LENGTH = 16
MAX_IMAGE_URL_LENGTH = 2048


class ValidationError(ValueError):
    """400-level input problem."""


@dataclass(frozen=True)
class FormPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required when no id is submitted
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


PRODUCT_POLICY = FormPolicy(
    writable_fields={"id", "name", "price", "stock", "emoji", "image_url"},
    required_on_create={"name", "price", "stock"},
)


def coerce_int(key: str, value: Any) -> int:
    """
    Strict integer coercion for form input.

    Accepts ints and plain digit strings. Anything else (blank, decimals,
    scientific notation, words) is rejected rather than read as zero.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    # Whole floats come from JSON number inputs ("2000" -> 2000.0 in some clients)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ValidationError(f"{key} must be an integer")


def _optional_text(key: str, value: Any, max_length: int) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return text


def validate_product_form(payload: dict, policy: FormPolicy = PRODUCT_POLICY) -> dict:
    """
    Validate + normalize an admin product form.

    The presence of "id" decides create vs update; on create every field in
    required_on_create must be present. Returns a cleaned dict containing only
    the submitted writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")

    is_update = payload.get("id") not in (None, "")
    if not is_update:
        missing = sorted(f for f in (policy.required_on_create or set()) if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    form: dict = {}
    if is_update:
        form["id"] = coerce_int("id", payload["id"])

    if "name" in payload:
        name = _optional_text("name", payload["name"], MAX_NAME_LENGTH)
        if name is None:
            raise ValidationError("name cannot be blank")
        form["name"] = name

    if "price" in payload:
        price = coerce_int("price", payload["price"])
        if price <= 0:
            raise ValidationError("price must be > 0")
        if price > MAX_PRICE:
            raise ValidationError(f"price cannot exceed {MAX_PRICE}")
        form["price"] = price

    if "stock" in payload:
        stock = coerce_int("stock", payload["stock"])
        if stock < 0:
            raise ValidationError("stock must be >= 0")
        if stock > MAX_STOCK:
            raise ValidationError(f"stock cannot exceed {MAX_STOCK}")
        form["stock"] = stock

    if "emoji" in payload:
        form["emoji"] = _optional_text("emoji", payload["emoji"], MAX_EMOJI_LENGTH)
    if "image_url" in payload:
        form["image_url"] = _optional_text("image_url", payload["image_url"], MAX_IMAGE_URL_LENGTH)

    return form


def validate_quantity(value: Any) -> int:
    """Sale quantities are whole units, at least one."""
    if value is None:
        return 1
    quantity = coerce_int("quantity", value)
    if quantity < 1:
        raise ValidationError("quantity must be >= 1")
    return quantity
