"""
Domain model and money helper tests.

Run with: pytest tests/test_domain.py -v
"""
import math
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from chiptycoon.model.domain import (
    DependencyNotFound,
    ElasticityNonNegative,
    InvalidYield,
    MarketSegment,
    NegativeMoney,
    NonFinite,
    NonPositiveArea,
    ProductKind,
    ProductSpec,
    YearOutOfRange,
    add_months,
    months_between,
    validate_product,
    validate_segment,
    validate_tech_node,
    validate_world,
)
from chiptycoon.model.money import ConversionError, from_cents, frac, round_cents, to_cents


# =============================================================================
# CALENDAR
# =============================================================================

class TestCalendar:
    """Month arithmetic used by the tick scheduler."""

    def test_add_months_crosses_year_boundary(self):
        assert add_months(date(1997, 12, 1), 2) == date(1998, 2, 1)

    def test_add_months_clamps_day_to_month_end(self):
        assert add_months(date(2000, 1, 31), 1) == date(2000, 2, 29)
        assert add_months(date(1999, 1, 31), 1) == date(1999, 2, 28)

    def test_months_between(self):
        assert months_between(date(1990, 1, 1), date(1991, 3, 1)) == 14
        assert months_between(date(1991, 3, 1), date(1990, 1, 1)) == -14


# =============================================================================
# VALIDATION
# =============================================================================

class TestValidation:
    """Structural checks reject bad data before any tick runs."""

    def test_minimal_world_is_valid(self, world_minimal):
        validate_world(world_minimal)

    def test_yield_outside_unit_interval(self, node_800):
        with pytest.raises(InvalidYield):
            validate_tech_node(replace(node_800, yield_baseline=1.1))

    def test_year_out_of_range(self, node_800):
        with pytest.raises(YearOutOfRange):
            validate_tech_node(replace(node_800, year_available=1900))

    def test_negative_wafer_cost(self, node_800):
        with pytest.raises(NegativeMoney):
            validate_tech_node(replace(node_800, wafer_cost_usd=Decimal("-1")))

    def test_non_finite_density(self, node_800):
        with pytest.raises(NonFinite):
            validate_tech_node(replace(node_800, density_mtr_per_mm2=math.nan))

    def test_non_negative_elasticity(self):
        with pytest.raises(ElasticityNonNegative):
            validate_segment(MarketSegment(name="Flat", base_demand_units=10, price_elasticity=0.0))

    def test_missing_dependency(self, world_minimal):
        world_minimal.tech_tree[1].dependencies = ["1000nm"]
        with pytest.raises(DependencyNotFound):
            validate_world(world_minimal)

    def test_duplicate_node_id(self, world_minimal, node_800):
        world_minimal.tech_tree.append(node_800)
        with pytest.raises(DependencyNotFound):
            validate_world(world_minimal)

    def test_product_area_must_be_positive(self):
        with pytest.raises(NonPositiveArea):
            validate_product(ProductSpec(tech_node="800nm", perf_index=0.5, die_area_mm2=0.0))

    def test_errors_are_value_errors(self, node_800):
        with pytest.raises(ValueError):
            validate_tech_node(replace(node_800, yield_baseline=-0.1))


class TestProductSpec:

    def test_dict_form_keeps_kind_and_money(self):
        spec = ProductSpec(
            tech_node="600nm",
            perf_index=0.7,
            die_area_mm2=80.0,
            kind=ProductKind.GPU,
            tdp_w=35.0,
            bom_usd=Decimal("12.50"),
        )
        data = spec.to_dict()
        assert data["kind"] == "GPU"
        assert data["bom_usd"] == "12.50"
        assert ProductSpec.from_dict(data) == spec


# =============================================================================
# MONEY
# =============================================================================

class TestMoney:
    """Decimal money, banker's rounding, and i64 cents."""

    def test_round_half_even(self):
        assert round_cents(Decimal("1.005")) == Decimal("1.00")
        assert round_cents(Decimal("1.015")) == Decimal("1.02")

    def test_to_cents_and_back(self):
        assert to_cents(Decimal("123.45")) == 12345
        assert from_cents(12345) == Decimal("123.45")
        assert to_cents(Decimal("-0.015")) == -2

    def test_to_cents_rejects_overflow(self):
        with pytest.raises(ConversionError):
            to_cents(Decimal("1e30"))

    def test_to_cents_rejects_non_finite(self):
        with pytest.raises(ConversionError):
            to_cents(Decimal("NaN"))

    def test_frac_rejects_nan(self):
        with pytest.raises(ConversionError):
            frac(math.nan)
        assert frac(0.25) == Decimal("0.25")
