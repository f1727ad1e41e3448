from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from backoffice.time_utils import parse_ymd


# Money columns are Numeric(14, 2); anything wider would overflow them
MONEY_QUANTUM = Decimal("0.01")
MAX_MONEY = Decimal("999999999999.99")

# Largest stock quantity a single line may carry
MAX_QUANTITY = 1_000_000_000


class LedgerError(Exception):
    """Base for errors that are surfaced verbatim to the caller."""
    http_status = 400


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""
    http_status = 400


class ConflictError(LedgerError, ValueError):
    """409-level business rule conflict (e.g., a shift is already open)."""
    http_status = 409


class NotFoundError(LedgerError, LookupError):
    """404-level reference to an aggregate that does not exist."""
    http_status = 404


class UnderflowError(ValidationError):
    """Stock or cash would go negative; the whole operation is rejected."""
    http_status = 400


@dataclass(frozen=True)
class ModelValidationPolicy:
    """Which registry columns a payload may set, and which a create must carry."""
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    return {c.key: c for c in model.__mapper__.columns}


def parse_money(
    value: Any,
    field: str,
    *,
    allow_zero: bool = True,
    allow_negative: bool = False,
) -> Decimal:
    """
    Normalize a monetary input to a 2-place Decimal.

    Accepts ints, floats, Decimals and numeric strings. Floats go through
    str() so 0.1 stays 0.1 instead of its binary expansion.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(f"{field} must be a finite number")
        amount = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain number (scientific notation not allowed)")
        try:
            amount = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(amount) > MAX_MONEY:
        raise ValidationError(f"{field} cannot exceed {MAX_MONEY}")
    if amount != amount.quantize(MONEY_QUANTUM):
        raise ValidationError(f"{field} supports at most 2 decimal places")

    amount = amount.quantize(MONEY_QUANTUM)

    if amount < 0 and not allow_negative:
        raise ValidationError(f"{field} must be >= 0")
    if amount == 0 and not allow_zero:
        raise ValidationError(f"{field} must be > 0")
    return amount


def to_money(value: Any) -> Decimal:
    """Normalize a value read back from the database (or an aggregate) to 2 places."""
    if value is None:
        return Decimal("0.00")
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(MONEY_QUANTUM)


def money_str(value: Any) -> str | None:
    """JSON rendering for money: a fixed 2-place string."""
    if value is None:
        return None
    return f"{to_money(value):.2f}"


def parse_quantity(value: Any, field: str, *, minimum: int = 0) -> int:
    """
    Strict integer parsing for stock quantities.

    Rejects booleans, floats, decimals and scientific notation.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        qty = value
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            qty = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    else:
        raise ValidationError(f"{field} must be an integer")

    if qty < minimum:
        if minimum == 0:
            raise ValidationError(f"{field} must be a non-negative integer")
        raise ValidationError(f"{field} must be >= {minimum}")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY}")
    return qty


def parse_id(value: Any, field: str) -> int:
    """Positive integer identifier (operator ids, foreign keys)."""
    return parse_quantity(value, field, minimum=1)


def parse_date(value: Any, field: str) -> date:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required")
    if isinstance(value, date):
        return value
    try:
        parsed = parse_ymd(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD form")
    if parsed is None:
        raise ValidationError(f"{field} is required")
    return parsed


def clean_text(value: Any, field: str, *, required: bool = False, max_length: int | None = None) -> str | None:
    """Strip free text; blank optional text becomes None."""
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    stripped = value.strip()
    if not stripped:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if max_length is not None and len(stripped) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return stripped


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_quantity(value, col.key, minimum=-MAX_QUANTITY)

    # Booleans are strict: "false" must not become True
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    if isinstance(coltype, Numeric):
        return parse_money(value, col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, str):
            raise ValidationError(f"{col.key} must be a string")
        return value.strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Clean a menu item or supplier payload using the model's column metadata.

    Only keys in policy.writable_fields survive. With partial=False the
    policy's required_on_create keys must be present; with partial=True only
    the keys sent are checked. Values are coerced per column type, blank
    optional strings become None, and String(n) lengths are enforced.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(set(policy.required_on_create or ()) - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = _columns_by_key(model)
    rejected = [key for key in payload if key not in policy.writable_fields]
    if rejected:
        raise ValidationError(f"Field not allowed: {rejected[0]}")

    cleaned: dict = {}
    for key, raw in payload.items():
        column = columns.get(key)
        if column is None:
            raise ValidationError(f"Unknown field: {key}")

        value = None if raw is None else _coerce_value(column, raw)
        if value == "" and isinstance(column.type, (String, Text)):
            value = None
        if value is None and not column.nullable:
            raise ValidationError(f"{key} is required")

        length = getattr(column.type, "length", None)
        if length and isinstance(value, str) and len(value) > length:
            raise ValidationError(f"{key} exceeds max length {length}")

        cleaned[key] = value

    return cleaned
