from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .services.errors import ValidationError
from .time_utils import parse_iso_date


# Numeric(10, 2): 99,999,999.99 is the largest storable amount
MAX_MONEY = Decimal("99999999.99")
CENT = Decimal("0.01")
RATE_STEP = Decimal("0.0001")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _to_decimal(value: Any, field: str) -> Decimal:
    # Floats are rejected: binary rounding would leak into stored prices
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{field} must be a decimal string or integer, not a float")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} is required")
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a decimal number")
    else:
        raise ValidationError(f"{field} must be a decimal number")

    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


def to_money(value: Any, field: str = "amount") -> Decimal:
    """Coerce to a non-negative 2dp Decimal (ROUND_HALF_UP)."""
    amount = _to_decimal(value, field)
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    amount = quantize_money(amount)
    if amount > MAX_MONEY:
        raise ValidationError(f"{field} cannot exceed {MAX_MONEY}")
    return amount


def to_tax_rate(value: Any, field: str = "tax_rate") -> Decimal:
    """Coerce to a 4dp rate in [0, 1)."""
    rate = _to_decimal(value, field)
    if rate < 0 or rate >= 1:
        raise ValidationError(f"{field} must be between 0 and 1")
    return rate.quantize(RATE_STEP, rounding=ROUND_HALF_UP)


def to_positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.isdigit():
            raise ValidationError(f"{field} must be a positive integer")
        value = int(stripped)
    if not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value <= 0:
        raise ValidationError(f"{field} must be > 0")
    return value


def to_non_negative_int(value: Any, field: str) -> int:
    if value == 0 or value == "0":
        return 0
    return to_positive_int(value, field)


def to_date(value: Any, field: str, *, required: bool = True) -> date | None:
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 date (YYYY-MM-DD)")
    if parsed is None and required:
        raise ValidationError(f"{field} is required")
    return parsed


def to_code(value: Any, field: str, max_length: int = 50) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    code = value.strip()
    if len(code) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return code


def to_process_types(value: Any) -> list[str]:
    """
    Process types are an ordered list of unique process codes.

    Order is preserved for display; duplicates are rejected rather than
    silently collapsed.
    """
    if not isinstance(value, (list, tuple)):
        raise ValidationError("process_types must be a list of process codes")
    codes: list[str] = []
    for raw in value:
        code = to_code(raw, "process_types[]")
        if code in codes:
            raise ValidationError(f"process_types contains duplicate code '{code}'")
        codes.append(code)
    return codes


def to_id_list(value: Any, field: str) -> list[int]:
    """Ordered list of unique positive integer ids; must not be empty."""
    if not isinstance(value, (list, tuple)) or not value:
        raise ValidationError(f"{field} must be a non-empty list of ids")
    ids: list[int] = []
    for raw in value:
        item = to_positive_int(raw, f"{field}[]")
        if item in ids:
            raise ValidationError(f"{field} contains duplicate id {item}")
        ids.append(item)
    return ids
