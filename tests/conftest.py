"""
Shared pytest fixtures for the chip tycoon simulation tests.
"""
from datetime import date
from decimal import Decimal

import pytest

from chiptycoon.model.domain import Company, MacroState, MarketSegment, SimConfig, TechNode, World
from chiptycoon.model.scenarios import minimal_world, single_node_world
from chiptycoon.model.world_model import ChipModel


# =============================================================================
# FIXTURES - Worlds
# =============================================================================

@pytest.fixture
def node_800():
    """A mature 1990 node: 90% yield, $1000 wafers."""
    return TechNode(
        id="800nm",
        year_available=1990,
        density_mtr_per_mm2=0.05,
        freq_ghz_baseline=0.05,
        leakage_index=0.1,
        yield_baseline=0.9,
        wafer_cost_usd=Decimal("1000.00"),
        mask_set_cost_usd=Decimal("5000.00"),
    )


@pytest.fixture
def world_minimal():
    """Two nodes, one company, one desktop segment."""
    return minimal_world()


@pytest.fixture
def world_single():
    """One node and a small 1000-unit segment; the end-to-end world."""
    return single_node_world()


@pytest.fixture
def world_factory():
    """Build a one-node, one-company world from a few knobs."""
    def _make(start=date(1990, 1, 1), cash="1000000.00", demand=1000):
        return World(
            macro=MacroState(date=start),
            tech_tree=[
                TechNode(
                    id="N90",
                    year_available=1990,
                    density_mtr_per_mm2=1.0,
                    freq_ghz_baseline=1.0,
                    leakage_index=0.1,
                    yield_baseline=0.9,
                    wafer_cost_usd=Decimal("1000.00"),
                    mask_set_cost_usd=Decimal("5000.00"),
                )
            ],
            companies=[Company(name="Player", cash_usd=Decimal(cash))],
            segments=[MarketSegment(name="Seg", base_demand_units=demand, price_elasticity=-1.2)],
        )
    return _make


# =============================================================================
# FIXTURES - Models
# =============================================================================

@pytest.fixture
def model(world_single):
    """Fresh model on the single-node world, seed 42."""
    return ChipModel(world_single, SimConfig(rng_seed=42))


@pytest.fixture
def model_factory(world_single):
    """Build independent models on the single-node world with a chosen seed."""
    def _make(seed=42, **options):
        return ChipModel(single_node_world(), SimConfig(rng_seed=seed), **options)
    return _make
