"""
Domain: fixed-point money amounts.

Prices and balances are `Decimal` values quantized to the cent. Floats never
enter the ledger; the API exchanges decimal strings and they are parsed here.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Union

from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Largest amount a numeric(12, 2) column holds.
MAX_AMOUNT = Decimal("9999999999.99")

AmountLike = Union[str, int, Decimal]


def parse_amount(value: AmountLike, *, name: str = "amount", allow_zero: bool = False) -> Decimal:
    """
    Parse an external amount into a cent-quantized Decimal.

    Rejects:
    - floats (binary floating point would drift)
    - non-numeric or non-finite values
    - more than two fractional digits
    - anything above MAX_AMOUNT
    - zero (unless allow_zero) and negative values
    """

    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{name} must be a decimal string, not {type(value).__name__}")

    try:
        amount = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{name} is not a valid decimal amount: {value!r}")

    if not amount.is_finite():
        raise ValidationError(f"{name} must be finite")

    if amount.copy_abs() > MAX_AMOUNT:
        raise ValidationError(f"{name} must not exceed {MAX_AMOUNT}")

    if amount != amount.quantize(CENT, rounding=ROUND_DOWN):
        raise ValidationError(f"{name} must have at most two decimal places")

    amount = amount.quantize(CENT)

    if amount < ZERO or (amount == ZERO and not allow_zero):
        raise ValidationError(f"{name} must be greater than 0")

    return amount


def half_of(amount: Decimal) -> Decimal:
    """Half of an amount, rounded down to the cent."""

    return (amount / 2).quantize(CENT, rounding=ROUND_DOWN)


def format_amount(amount: Decimal) -> str:
    return str(amount.quantize(CENT))


__all__ = ["CENT", "ZERO", "MAX_AMOUNT", "parse_amount", "half_of", "format_amount"]
