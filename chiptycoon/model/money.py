"""Quick card: Decimal currency helpers; money never travels as a float."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_EVEN, Decimal

CENT = Decimal("0.01")
I64_MAX = 2**63 - 1
I64_MIN = -(2**63)
_MAX_AMOUNT = Decimal(2**63) / 100


class ConversionError(ArithmeticError):
    """Conversion card: an amount that cannot be represented as signed 64-bit cents."""


def round_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_EVEN)


def to_cents(amount: Decimal) -> int:
    """Cents cue: round to the cent, then refuse anything that would not fit in an i64."""
    if not amount.is_finite():
        raise ConversionError(f"cannot convert non-finite amount {amount!r} to cents")
    if abs(amount) > _MAX_AMOUNT:
        raise ConversionError(f"amount {amount} overflows 64-bit cents")
    cents = int(round_cents(amount) * 100)
    if not I64_MIN <= cents <= I64_MAX:
        raise ConversionError(f"amount {amount} overflows 64-bit cents")
    return cents


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / 100).quantize(CENT)


def frac(value: float) -> Decimal:
    """Fraction cue: lift an already-clamped float ratio into Decimal for money maths."""
    if not math.isfinite(value):
        raise ConversionError(f"cannot convert non-finite fraction {value!r}")
    return Decimal(repr(float(value)))
