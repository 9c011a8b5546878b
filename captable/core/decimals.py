"""Decimal helpers shared by every share and percentage computation.

Quantities, prices and percentages are always ``Decimal``. Percentages are
rounded half-up to six fractional digits before they are persisted or hashed.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0")
ONE_HUNDRED = Decimal("100")
PERCENTAGE_QUANTUM = Decimal("0.000001")

DecimalLike = Decimal | int | str | float


def to_decimal(value: DecimalLike | None) -> Decimal:
    """Coerce ``value`` to ``Decimal``; floats go through ``str`` to avoid binary noise."""

    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize_percentage(value: Decimal) -> Decimal:
    return value.quantize(PERCENTAGE_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_display(value: Decimal, places: int = 2) -> Decimal:
    quantum = Decimal(1).scaleb(-places)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def percentage_of(part: Decimal, whole: Decimal) -> Decimal:
    """Return ``part / whole * 100`` or zero when ``whole`` is zero."""

    if whole == ZERO:
        return ZERO
    return part / whole * ONE_HUNDRED


def is_integral(value: Decimal) -> bool:
    return value == value.to_integral_value()


def format_decimal(value: DecimalLike | None) -> str | None:
    """Render a decimal as a plain string without exponent or trailing zeros."""

    if value is None:
        return None
    number = to_decimal(value)
    if number == ZERO:
        return "0"
    normalized = number.normalize()
    return format(normalized, "f")


__all__ = [
    "DecimalLike",
    "ONE_HUNDRED",
    "PERCENTAGE_QUANTUM",
    "ZERO",
    "format_decimal",
    "is_integral",
    "percentage_of",
    "quantize_display",
    "quantize_percentage",
    "to_decimal",
]
