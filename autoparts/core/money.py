from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

TWOPLACES = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value: Any, default: Decimal | None = Decimal("0")) -> Decimal | None:
    """Best-effort conversion of user-entered amounts (``"$1,250.50"``, floats, ints)."""

    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        cleaned = value.strip().replace("$", "").replace(",", "")
        if not cleaned:
            return default
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return default
    return default


def quantize_currency(value: Decimal | None) -> Decimal:
    if not value:
        return Decimal("0.00")
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
