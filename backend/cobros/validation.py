from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any


# Maximum amount: 9,999,999,999.99 (Numeric(12, 2))
MAX_AMOUNT = Decimal("9999999999.99")
CENT = Decimal("0.01")

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate stall number)."""


def to_amount(value: Any, field: str = "amount") -> Decimal:
    """
    Coerce a money value to a 2-place Decimal.

    Floats go through ``str`` first so 10.1 becomes Decimal("10.10") rather
    than its binary expansion. Booleans, blank strings and values finer than
    a cent ("10.005") are rejected; trailing zeros ("10.500") are fine.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        try:
            amount = Decimal(stripped)
        except InvalidOperation as exc:
            raise ValidationError(f"{field} must be a number") from exc
    else:
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} is too large")
    cents = amount.quantize(CENT)
    if cents != amount:
        raise ValidationError(f"{field} cannot have more than 2 decimal places")
    return cents


def require_text(value: str | None, field: str) -> str:
    """Return the stripped value; blank or missing is an error."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def validate_amounts(monto_cobrado: Any, dinero_recibido: Any) -> tuple[Decimal, Decimal]:
    """
    Business rules for a payment:
    - charged amount must be positive
    - received amount must cover the charged amount
    """
    charged = to_amount(monto_cobrado, "monto_cobrado")
    received = to_amount(dinero_recibido, "dinero_recibido")
    if charged <= 0:
        raise ValidationError("monto_cobrado must be greater than zero")
    if received < charged:
        raise ValidationError("dinero_recibido must be greater than or equal to monto_cobrado")
    return charged, received


def validate_date(value: str | date | None, field: str = "fecha_cobro") -> str:
    """Normalize to a zero-padded YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = require_text(value, field)
    if not _DATE_RE.match(text):
        raise ValidationError(f"{field} must use YYYY-MM-DD")
    try:
        date.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"{field} is not a valid date") from exc
    return text


def validate_optional_date(value: str | date | None, field: str) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return validate_date(value, field)


def validate_coordinates(latitud: float | None, longitud: float | None) -> tuple[float | None, float | None]:
    """Both coordinates or neither, each within range."""
    if latitud is None and longitud is None:
        return None, None
    if latitud is None or longitud is None:
        raise ValidationError("latitud and longitud must be provided together")
    lat = float(latitud)
    lon = float(longitud)
    if not -90.0 <= lat <= 90.0:
        raise ValidationError("latitud must be between -90 and 90")
    if not -180.0 <= lon <= 180.0:
        raise ValidationError("longitud must be between -180 and 180")
    return lat, lon


def validate_payment(
    *,
    monto_cobrado: Any,
    dinero_recibido: Any,
    fecha_cobro: str | date,
    latitud: float | None = None,
    longitud: float | None = None,
) -> dict:
    """Run every caller-side payment rule; returns normalized values."""
    charged, received = validate_amounts(monto_cobrado, dinero_recibido)
    lat, lon = validate_coordinates(latitud, longitud)
    return {
        "monto_cobrado": charged,
        "dinero_recibido": received,
        "fecha_cobro": validate_date(fecha_cobro),
        "latitud": lat,
        "longitud": lon,
    }
