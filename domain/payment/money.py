"""
Money helpers - conversion between major units (Decimal) and integer minor units.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[Decimal, int, float, str]

_MINOR_PER_MAJOR = Decimal(100)


def to_decimal(value: Number) -> Decimal:
    # str() first so floats like 49.99 keep their printed value
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_minor_units(amount: Number) -> int:
    """Round ``amount * 100`` half away from zero, once."""
    scaled = to_decimal(amount) * _MINOR_PER_MAJOR
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def unit_amount_minor(line_total: Number, quantity: int) -> int:
    """Per-unit price in minor units derived from a post-discount line total."""
    if quantity <= 0:
        raise ValueError("quantity must be positive")
    scaled = to_decimal(line_total) / Decimal(quantity) * _MINOR_PER_MAJOR
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
