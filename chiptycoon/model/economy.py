"""Quick card: stateless demand and pricing maths (constant elasticity, Lerner pricing, ASP)."""

from __future__ import annotations

import math
import random
from decimal import Decimal
from typing import Sequence

from chiptycoon.model.money import frac, round_cents

U64_MAX = 2**64 - 1


class EconomicError(ValueError):
    """Economy card: an argument outside the domain of the demand/pricing formulas."""


def _check_elasticity(elasticity: float) -> None:
    if not isinstance(elasticity, (int, float)) or not math.isfinite(elasticity):
        raise EconomicError(f"elasticity must be finite, got {elasticity!r}")
    if elasticity >= 0:
        raise EconomicError(f"elasticity must be negative, got {elasticity}")


def _check_price(value: Decimal, label: str) -> None:
    if not isinstance(value, Decimal) or not value.is_finite() or value <= 0:
        raise EconomicError(f"{label} must be a positive finite amount, got {value!r}")


def _saturating_floor(quantity: float) -> int:
    if not math.isfinite(quantity) or quantity >= U64_MAX:
        return U64_MAX
    return max(0, int(math.floor(quantity)))


def demand(base: int, price: Decimal, ref_price: Decimal, elasticity: float) -> int:
    """Demand cue: ``base * (price/ref)^e`` floored, saturating instead of overflowing."""
    _check_elasticity(elasticity)
    _check_price(price, "price")
    _check_price(ref_price, "reference price")
    if base < 0:
        raise EconomicError(f"base demand must be non-negative, got {base}")
    if base == 0:
        return 0
    if price == ref_price:
        return base
    ratio = float(price / ref_price)
    try:
        scale = ratio**elasticity
    except (OverflowError, ZeroDivisionError):
        return U64_MAX
    return _saturating_floor(base * scale)


def demand_with_noise(
    base: int,
    price: Decimal,
    ref_price: Decimal,
    elasticity: float,
    noise_frac: float,
    rng: random.Random,
) -> int:
    """Noise cue: scale demand by a seeded uniform draw in ``[1-f, 1+f]``."""
    if not isinstance(noise_frac, (int, float)) or not math.isfinite(noise_frac) or not 0.0 <= noise_frac < 1.0:
        raise EconomicError(f"noise fraction must be in [0, 1), got {noise_frac!r}")
    quantity = demand(base, price, ref_price, elasticity)
    if noise_frac == 0.0:
        return quantity
    factor = rng.uniform(1.0 - noise_frac, 1.0 + noise_frac)
    return _saturating_floor(quantity * factor)


def optimal_price(unit_cost: Decimal, elasticity: float) -> Decimal:
    """Lerner card: monopoly price ``cost / (1 + 1/e)``, defined only for elastic demand.

    At exactly e = -1 the markup is unbounded, so that case is rejected too.
    """
    _check_elasticity(elasticity)
    if elasticity > -1.0:
        raise EconomicError(f"optimal price needs elasticity <= -1, got {elasticity}")
    if elasticity == -1.0:
        raise EconomicError("optimal price is unbounded at elasticity -1")
    if not isinstance(unit_cost, Decimal) or not unit_cost.is_finite() or unit_cost < 0:
        raise EconomicError(f"unit cost must be a non-negative finite amount, got {unit_cost!r}")
    markup_divisor = frac(1.0 + 1.0 / elasticity)
    return round_cents(unit_cost / markup_divisor)


def promo_price(price: Decimal, discount_frac: float) -> Decimal:
    if not isinstance(price, Decimal) or not price.is_finite() or price < 0:
        raise EconomicError(f"price must be a non-negative finite amount, got {price!r}")
    if not isinstance(discount_frac, (int, float)) or not math.isfinite(discount_frac):
        raise EconomicError(f"discount must be finite, got {discount_frac!r}")
    if not 0.0 <= discount_frac <= 1.0:
        raise EconomicError(f"discount must be in [0, 1], got {discount_frac}")
    return round_cents(price * (Decimal(1) - frac(discount_frac)))


def asp(prices: Sequence[Decimal], quantities: Sequence[int]) -> Decimal:
    """ASP cue: quantity-weighted average price; zero volume gives zero."""
    if len(prices) != len(quantities):
        raise EconomicError(f"got {len(prices)} prices for {len(quantities)} quantities")
    total_qty = 0
    total_value = Decimal(0)
    for price, qty in zip(prices, quantities):
        if not isinstance(price, Decimal) or not price.is_finite() or price < 0:
            raise EconomicError(f"price must be a non-negative finite amount, got {price!r}")
        if qty < 0:
            raise EconomicError(f"quantity must be non-negative, got {qty}")
        total_qty += qty
        total_value += price * qty
    if total_qty == 0:
        return Decimal("0.00")
    return round_cents(total_value / total_qty)
