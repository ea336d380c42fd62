# Overview: Payload validation against model column metadata plus shop business rules.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, String, Text

from shopdesk.time_utils import parse_iso_datetime


# 9,999,999.99 in cents; anything larger is a typo, not a price
MAX_PRICE_CENTS = 999_999_999

# Largest single stock movement accepted from clients
MAX_QUANTITY = 1_000_000

CURRENCY_CODES = {
    "USD", "EUR", "GBP", "INR", "AUD", "CAD", "JPY", "CNY", "SGD", "AED",
    "ZAR", "NGN", "KES", "BRL", "MXN", "PKR", "BDT", "LKR", "NPR", "IDR",
}


class ValidationError(ValueError):
    """Bad client input (HTTP 400)."""


class ConflictError(ValueError):
    """Input collides with existing data, e.g. a duplicate SKU (HTTP 409)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """Which model columns a client may write, and which a create must carry."""
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def coerce_int(key: str, value: Any) -> int:
    """
    Strict integer coercion for money and quantities.

    Accepts ints and digit strings. Bools, floats, decimal strings and
    scientific notation are rejected rather than rounded.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} must be an integer")

    text = value.strip()
    if "e" in text.lower():
        raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
    if "." in text:
        raise ValidationError(f"{key} must be an integer (no decimals)")
    try:
        return int(text)
    except ValueError:
        raise ValidationError(f"{key} must be an integer")


def _coerce_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a datetime")
    try:
        parsed = parse_iso_datetime(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")
    return parsed


def _clean_column_value(col, value: Any):
    """Coerce one non-null value to the column's type and check its limits."""
    coltype = col.type

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if not isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a boolean")
        return value

    if isinstance(coltype, DateTime):
        return _coerce_datetime(col.key, value)

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, str):
            raise ValidationError(f"{col.key} must be a string")
        text = value.strip()
        if not text and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        length = getattr(coltype, "length", None)
        if length and len(text) > length:
            raise ValidationError(f"{col.key} exceeds max length {length}")
        return text

    return value


def validate_payload(*, model, payload: dict, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Turn a JSON body into a clean patch for `model`.

    Only keys in policy.writable_fields are accepted. Values are checked
    against the mapped column (nullability, type, String length). With
    partial=False the policy's required_on_create keys must all be present.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(policy.required_on_create - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}

    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        col = columns.get(key)
        if col is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _clean_column_value(col, raw)

    return patch


def _check_money(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        amount = patch[key]
        if amount < 0:
            raise ValidationError(f"{key} must be >= 0")
        if amount > MAX_PRICE_CENTS:
            raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS} ({MAX_PRICE_CENTS / 100:,.2f})")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_money(patch, "price_cents")
    _check_money(patch, "cost_cents")

    if "stock_quantity" in patch and patch["stock_quantity"] is not None:
        if patch["stock_quantity"] < 0:
            raise ValidationError("stock_quantity must be >= 0")
        if patch["stock_quantity"] > MAX_QUANTITY:
            raise ValidationError(f"stock_quantity cannot exceed {MAX_QUANTITY}")

    if "low_stock_threshold" in patch and patch["low_stock_threshold"] is not None:
        if patch["low_stock_threshold"] < 0:
            raise ValidationError("low_stock_threshold must be >= 0")


def enforce_rules_stock_adjust(patch: dict) -> None:
    delta = patch.get("quantity_change")
    if delta is None:
        raise ValidationError("quantity_change is required")
    if abs(delta) > MAX_QUANTITY:
        raise ValidationError(f"quantity_change cannot exceed {MAX_QUANTITY} in magnitude")


def enforce_rules_shop(patch: dict) -> None:
    if "currency" in patch and patch["currency"] is not None:
        currency = patch["currency"].upper()
        if currency not in CURRENCY_CODES:
            raise ValidationError(f"Unsupported currency: {patch['currency']}")
        patch["currency"] = currency
