from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


def coerce_int(name: str, value: Any, *, minimum: int | None = None, required: bool = True) -> int | None:
    """
    Strict integer coercion for JSON input.

    Rejects floats, booleans, decimals-in-strings and scientific notation so
    that "12.5" can never silently become 12 cents.
    """
    if value is None:
        if required:
            raise ValidationError(f"{name} is required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{name} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    return result


def coerce_money_cents(name: str, value: Any, *, required: bool = True) -> int | None:
    result = coerce_int(name, value, required=required)
    if result is not None and abs(result) > MAX_PRICE_CENTS * 1000:
        raise ValidationError(f"{name} is out of range")
    return result


def coerce_decimal(name: str, value: Any, *, default: Decimal | None = None) -> Decimal:
    """Percentages and other non-money numerics. Floats go through str() to avoid binary noise."""
    if value is None:
        if default is None:
            raise ValidationError(f"{name} is required")
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{name} must be a finite number")
    return result


def coerce_str(name: str, value: Any, *, max_length: int | None = None, required: bool = False) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{name} is required")
        return None
    result = str(value).strip()
    if not result:
        if required:
            raise ValidationError(f"{name} cannot be blank")
        return None
    if max_length is not None and len(result) > max_length:
        raise ValidationError(f"{name} exceeds max length {max_length}")
    return result


def coerce_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValidationError(f"{name} must be a boolean")


def enforce_rules_pricing_settings(patch: dict) -> None:
    if "tax_rate_bps" in patch:
        rate = patch["tax_rate_bps"]
        if rate < 0 or rate > 10_000:
            raise ValidationError("tax_rate_bps must be between 0 and 10000")

    if "default_payment_method" in patch:
        if not patch["default_payment_method"]:
            raise ValidationError("default_payment_method cannot be blank")
