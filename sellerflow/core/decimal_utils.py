"""
SellerFlow — Decimal Utilities
Central Decimal context setup and rounding helpers.
Monetary values are Decimal end to end.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, getcontext
from typing import Iterable, Union

# Set high-precision context globally for the process
getcontext().prec = 28

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def monetary(value: Union[str, int, float, Decimal]) -> Decimal:
    """
    Convert any numeric value to a Decimal suitable for monetary calculations.
    Raises TypeError on non-numeric or non-finite input (NaN, Infinity).
    """
    if isinstance(value, bool):
        raise TypeError("Cannot convert bool to Decimal monetary value")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        # Force via string to avoid float imprecision
        result = Decimal(str(value))
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise TypeError(f"Cannot convert {value!r} to Decimal monetary value")
    else:
        raise TypeError(f"Cannot convert {type(value).__name__} to Decimal monetary value")
    if not result.is_finite():
        raise TypeError(f"Non-finite monetary value {value!r}")
    return result


def display_round(amount: Decimal, places: int = 2) -> Decimal:
    """Round to `places` decimal places for display/reporting only."""
    quantizer = Decimal(10) ** -places
    return amount.quantize(quantizer, rounding=ROUND_HALF_UP)


def mean(values: Iterable[Decimal]) -> Decimal:
    """Arithmetic mean of Decimals; ZERO for an empty iterable."""
    items = list(values)
    if not items:
        return ZERO
    return sum(items, ZERO) / Decimal(len(items))


def safe_ratio(numerator: Decimal, denominator: Decimal, default: Decimal) -> Decimal:
    """numerator / denominator, or `default` when the denominator is not positive."""
    if denominator <= ZERO:
        return default
    return numerator / denominator


def safe_percentage(numerator: Decimal, denominator: Decimal) -> Decimal | None:
    """
    Return |numerator / denominator| * 100 as a percentage Decimal.
    Returns None if denominator is zero.
    """
    if denominator == ZERO:
        return None
    return abs(numerator) / abs(denominator) * HUNDRED
