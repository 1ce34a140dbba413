"""
Money helpers.

All ledger arithmetic is done in Decimal quantized to the currency's
minor unit. Splits are apportioned in integer minor units so stored
shares always add up to the expense amount exactly.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from group_ledger.errors import InvalidAmountError

DEFAULT_PLACES = 2

Number = Union[Decimal, int, float, str]


def quantum(places: int = DEFAULT_PLACES) -> Decimal:
    return Decimal(1).scaleb(-places)


def to_decimal(value: Number) -> Decimal:
    """
    Convert a number to an unrounded Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its
    binary expansion.

    Raises:
        InvalidAmountError: If the value is not a finite number
    """
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(f"Not a valid amount: {value!r}")
    if not amount.is_finite():
        raise InvalidAmountError(f"Amount must be a finite number, got {value!r}")
    return amount


def to_money(value: Number, places: int = DEFAULT_PLACES) -> Decimal:
    """Convert a number to a Decimal quantized to minor units (half-up)."""
    return to_decimal(value).quantize(quantum(places), rounding=ROUND_HALF_UP)


def require_positive(value: Number, places: int = DEFAULT_PLACES, field: str = "amount") -> Decimal:
    """Quantize and reject zero or negative amounts."""
    amount = to_money(value, places)
    if amount <= 0:
        raise InvalidAmountError(f"{field} must be greater than zero, got {amount}")
    return amount


def to_minor_units(amount: Decimal, places: int = DEFAULT_PLACES) -> int:
    return int(to_money(amount, places).scaleb(places))


def from_minor_units(units: int, places: int = DEFAULT_PLACES) -> Decimal:
    return Decimal(units).scaleb(-places).quantize(quantum(places))
