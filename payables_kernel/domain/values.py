"""
Values -- Decimal helpers shared by every engine.

All monetary amounts, ratios, scores and confidences are ``Decimal``;
floats never enter a calculation.  Amounts are rounded half-up to cents
only where a figure is presented (discount savings, strategy savings);
running sums stay exact.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """Coerce ints, strings and Decimals; reject floats and garbage."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{field} must be Decimal, int or str, got {type(value).__name__}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{field} is not a valid decimal: {value!r}") from exc


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def clamp_unit(value: Decimal) -> Decimal:
    """Clamp a score into [0, 1]."""
    if value < ZERO:
        return ZERO
    if value > ONE:
        return ONE
    return value


def decimal_sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def mean(values: Iterable[Decimal]) -> Decimal:
    items = list(values)
    if not items:
        return ZERO
    return decimal_sum(items) / Decimal(len(items))
