from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
from minestock.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Maximum unit price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Numeric(14, 2) upper bound
MAX_QUANTITY = Decimal("999999999999.99")
QUANTITY_SCALE = 2


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


RESOURCE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "unit_of_measure", "stock_level", "threshold", "supplier_id", "unit_price_cents"},
    required_on_create={"name", "threshold"},
)

# stock_level only moves through usage and deliveries once a resource exists
RESOURCE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "unit_of_measure", "threshold", "supplier_id", "unit_price_cents"},
)

USAGE_POLICY = ModelValidationPolicy(
    writable_fields={"quantity", "used_at", "department", "operator_id", "equipment_used", "notes"},
    required_on_create={"quantity"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact", "email", "phone", "address"},
    required_on_create={"name"},
)

HOLIDAY_POLICY = ModelValidationPolicy(
    writable_fields={"holiday_date", "name", "is_recurring", "recurrence_type"},
    required_on_create={"holiday_date", "name"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    return {c.key: c for c in model.__mapper__.columns}


def coerce_decimal(key: str, value: Any) -> Decimal:
    """Quantities arrive as JSON numbers or numeric strings; bools are not numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValidationError(f"{key} must be a number")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{key} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    if abs(result) > MAX_QUANTITY:
        raise ValidationError(f"{key} is out of range")
    # Numeric(14, 2): anything finer than hundredths would be rounded on write
    if result.as_tuple().exponent < -QUANTITY_SCALE:
        raise ValidationError(f"{key} allows at most {QUANTITY_SCALE} decimal places")
    return result


def _coerce_int(key: str, value: Any) -> int:
    # bool is an int subclass; floats and "12.5"/"1e3" strings are rejected outright
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


def _coerce_value(col, value: Any):
    coltype = col.type
    if value is None:
        return None
    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)
    if isinstance(coltype, Numeric):
        return coerce_decimal(col.key, value)
    if isinstance(coltype, Boolean):
        return value if isinstance(value, bool) else bool(value)
    if isinstance(coltype, DateTime):
        return _coerce_datetime(col.key, value)
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, str):
            raise ValidationError(f"{col.key} must be a string")
        return value.strip()
    return value


def _check_string(col, value: Any) -> None:
    if not isinstance(value, str) or not isinstance(col.type, (String, Text)):
        return
    if value == "" and not col.nullable:
        raise ValidationError(f"{col.key} cannot be blank")
    length = getattr(col.type, "length", None)
    if length and len(value) > length:
        raise ValidationError(f"{col.key} exceeds max length {length}")


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validate and normalize a JSON body against the model's columns.

    - keys outside policy.writable_fields are rejected
    - partial=False (create) also enforces policy.required_on_create
    - values are coerced by column type (Integer strict, Numeric -> Decimal,
      DateTime from ISO-8601, strings must be str and are stripped) and
      checked for nullability and String(n) length

    Returns a patch dict holding only the keys that were sent.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted((policy.required_on_create or set()) - set(payload))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    for key in payload:
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        if key not in cols:
            raise ValidationError(f"Unknown field: {key}")

    patch: dict = {}
    for key, raw in payload.items():
        col = cols[key]
        if raw is None and not col.nullable:
            raise ValidationError(f"{key} cannot be null")
        value = _coerce_value(col, raw)
        _check_string(col, value)
        patch[key] = value
    return patch


def enforce_rules_resource(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    """
    if "threshold" in patch and patch["threshold"] is not None:
        if patch["threshold"] <= 0:
            raise ValidationError("threshold must be > 0")

    if "stock_level" in patch and patch["stock_level"] is not None:
        if patch["stock_level"] < 0:
            raise ValidationError("stock_level must be >= 0")

    if "unit_price_cents" in patch and patch["unit_price_cents"] is not None:
        price = patch["unit_price_cents"]
        if price < 0:
            raise ValidationError("unit_price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"unit_price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")
