from __future__ import annotations

from decimal import Decimal, InvalidOperation

from app.cashdesk.core.error_catalog import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest amount whose minor units fit a signed 64-bit column.
MAX_AMOUNT = Decimal(2**63 - 1) / 100


def to_money(value: Decimal | int | str | None, field: str) -> Decimal:
    """Parse a monetary value into a 2-place Decimal.

    Floats are refused outright, and values carrying more than two decimal
    places are rejected instead of rounded.
    """
    if value is None:
        raise ValidationError(details={"message": f"{field} is required", "field": field})
    if isinstance(value, (float, bool)):
        raise ValidationError(details={"message": f"{field} must be a decimal value", "field": field})
    try:
        amount = Decimal(str(value)) if not isinstance(value, Decimal) else value
    except InvalidOperation as exc:
        raise ValidationError(details={"message": f"{field} is not a valid amount", "field": field}) from exc
    if not amount.is_finite():
        raise ValidationError(details={"message": f"{field} is not a valid amount", "field": field})
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(details={"message": f"{field} is out of range", "field": field})
    try:
        quantized = amount.quantize(CENT)
    except InvalidOperation as exc:
        raise ValidationError(details={"message": f"{field} is not a valid amount", "field": field}) from exc
    if quantized != amount:
        raise ValidationError(
            details={"message": f"{field} must have at most 2 decimal places", "field": field}
        )
    return quantized


def ensure_positive(value: Decimal | int | str | None, field: str) -> Decimal:
    amount = to_money(value, field)
    if amount <= 0:
        raise ValidationError(details={"message": f"{field} must be greater than 0", "field": field})
    return amount


def ensure_non_negative(value: Decimal | int | str | None, field: str) -> Decimal:
    amount = to_money(value, field)
    if amount < 0:
        raise ValidationError(details={"message": f"{field} must not be negative", "field": field})
    return amount


def money(value) -> Decimal:
    """Normalize a stored amount (possibly None) to a 2-place Decimal."""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT)
