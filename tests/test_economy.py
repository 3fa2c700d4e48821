"""
Demand and pricing formula tests.

Run with: pytest tests/test_economy.py -v
"""
import random
from decimal import Decimal

import pytest

from chiptycoon.model.economy import (
    U64_MAX,
    EconomicError,
    asp,
    demand,
    demand_with_noise,
    optimal_price,
    promo_price,
)


class TestDemand:
    """Constant-elasticity demand: base * (price/ref)^e, floored."""

    def test_reference_price_returns_base(self):
        assert demand(1000, Decimal("10"), Decimal("10"), -1.2) == 1000

    def test_doubling_price_halves_unit_elastic_demand(self):
        assert demand(1000, Decimal("20"), Decimal("10"), -1.0) == 500
        assert demand(1000, Decimal("5"), Decimal("10"), -1.0) == 2000

    @pytest.mark.parametrize("elasticity", [-0.5, -1.2, -3.0])
    def test_never_rises_with_price(self, elasticity):
        prices = [Decimal(cents) / 100 for cents in range(100, 100_001, 997)]
        volumes = [demand(1_000_000, price, Decimal("300.00"), elasticity) for price in prices]
        assert all(later <= earlier for earlier, later in zip(volumes, volumes[1:]))
        assert volumes[0] > volumes[-1]

    def test_zero_base_is_zero(self):
        assert demand(0, Decimal("1"), Decimal("10"), -2.0) == 0

    def test_saturates_instead_of_overflowing(self):
        assert demand(10**18, Decimal("0.01"), Decimal("1000000"), -5.0) == U64_MAX

    def test_rejects_non_negative_elasticity(self):
        with pytest.raises(EconomicError):
            demand(1000, Decimal("10"), Decimal("10"), 0.0)

    def test_rejects_non_positive_price(self):
        with pytest.raises(EconomicError):
            demand(1000, Decimal("0"), Decimal("10"), -1.2)

    def test_noise_stays_within_band(self):
        rng = random.Random(7)
        for _ in range(50):
            q = demand_with_noise(1000, Decimal("10"), Decimal("10"), -1.2, 0.02, rng)
            assert 980 <= q <= 1020

    def test_zero_noise_draws_nothing(self):
        rng = random.Random(7)
        before = rng.getstate()
        assert demand_with_noise(1000, Decimal("10"), Decimal("10"), -1.2, 0.0, rng) == 1000
        assert rng.getstate() == before

    def test_same_seed_same_draws(self):
        rng_a, rng_b = random.Random(3), random.Random(3)
        a = [demand_with_noise(5000, Decimal("9"), Decimal("10"), -1.5, 0.02, rng_a) for _ in range(5)]
        b = [demand_with_noise(5000, Decimal("9"), Decimal("10"), -1.5, 0.02, rng_b) for _ in range(5)]
        assert a == b


class TestPricing:

    def test_lerner_price(self):
        assert optimal_price(Decimal("100"), -2.0) == Decimal("200.00")

    def test_lerner_rejects_inelastic_and_unit_elastic(self):
        with pytest.raises(EconomicError):
            optimal_price(Decimal("100"), -0.5)
        with pytest.raises(EconomicError):
            optimal_price(Decimal("100"), -1.0)

    def test_promo_price(self):
        assert promo_price(Decimal("100.00"), 0.25) == Decimal("75.00")
        with pytest.raises(EconomicError):
            promo_price(Decimal("100.00"), 1.5)

    def test_asp_is_quantity_weighted(self):
        assert asp([Decimal("10"), Decimal("20")], [1, 3]) == Decimal("17.50")

    def test_asp_zero_volume(self):
        assert asp([Decimal("10")], [0]) == Decimal("0.00")

    def test_asp_length_mismatch(self):
        with pytest.raises(EconomicError):
            asp([Decimal("10")], [1, 2])
