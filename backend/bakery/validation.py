from __future__ import annotations

from datetime import date
from typing import Any

from .enums import Shift
from .time_utils import parse_iso_date


# Maximum price: 9,999,999.99 (999,999,999 minor units)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999
MAX_QUANTITY = 1_000_000


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate batch number)."""


class NotFoundError(LookupError):
    """404-level missing entity."""


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for request input.

    Accepts ints and plain digit strings; rejects bools, floats, decimals
    and scientific notation.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def require_id(value: Any, field: str) -> int:
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    ident = coerce_int(value, field)
    if ident <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return ident


def require_quantity(value: Any, field: str = "quantity", *, maximum: int = MAX_QUANTITY) -> int:
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    qty = coerce_int(value, field)
    if qty < 0:
        raise ValidationError(f"{field} must be >= 0")
    if qty > maximum:
        raise ValidationError(f"{field} must be <= {maximum}")
    return qty


def optional_cents(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    cents = coerce_int(value, field)
    if cents < 0:
        raise ValidationError(f"{field} must be >= 0")
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} must be <= {MAX_PRICE_CENTS}")
    return cents


def parse_shift(value: Any, *, required: bool = True) -> Shift | None:
    if value is None or value == "":
        if required:
            raise ValidationError("shift is required")
        return None
    if isinstance(value, Shift):
        return value
    try:
        return Shift(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in Shift)
        raise ValidationError(f"Invalid shift '{value}'. Must be one of: {allowed}")


def parse_day(value: Any) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"Invalid day '{value}'. Expected YYYY-MM-DD")
