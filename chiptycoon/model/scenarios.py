"""Quick card: built-in worlds, 1990s market configs, and the starter campaign."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from chiptycoon.model.campaign import CampaignScenario, parse_scenario
from chiptycoon.model.domain import Company, MacroState, MarketSegment, SimConfig, TechNode, World
from chiptycoon.model.market import MarketStepEvent, SegmentConfig
from chiptycoon.model.world_model import ChipModel


def _node(
    node_id: str,
    year: int,
    density: float,
    freq: float,
    yield_baseline: float,
    wafer_cost: str,
    mask_cost: str,
    dependencies: Optional[List[str]] = None,
) -> TechNode:
    return TechNode(
        id=node_id,
        year_available=year,
        density_mtr_per_mm2=density,
        freq_ghz_baseline=freq,
        leakage_index=0.1,
        yield_baseline=yield_baseline,
        wafer_cost_usd=Decimal(wafer_cost),
        mask_set_cost_usd=Decimal(mask_cost),
        dependencies=dependencies or [],
    )


def minimal_world() -> World:
    """World card: two nodes, one company, one desktop segment; the smallest useful sandbox."""
    return World(
        macro=MacroState(date=date(1990, 1, 1)),
        tech_tree=[
            _node("800nm", 1990, 0.05, 0.05, 0.9, "1000.00", "5000.00"),
            _node("600nm", 1992, 0.08, 0.08, 0.85, "1200.00", "6000.00", ["800nm"]),
        ],
        companies=[Company(name="ChipCo", cash_usd=Decimal("1000000.00"))],
        segments=[MarketSegment(name="Desktop CPU", base_demand_units=1_000_000, price_elasticity=-1.2)],
    )


def single_node_world() -> World:
    return World(
        macro=MacroState(date=date(1990, 1, 1)),
        tech_tree=[_node("N90", 1990, 1.0, 1.0, 0.9, "1000.00", "5000.00")],
        companies=[Company(name="Player", cash_usd=Decimal("1000000.00"))],
        segments=[MarketSegment(name="Seg", base_demand_units=1000, price_elasticity=-1.2)],
    )


def default_markets() -> List[SegmentConfig]:
    """Market card: 1990s segments with their growth rates and the 1997 downturn."""
    downturn = MarketStepEvent(start=date(1997, 7, 1), months=18, base_demand_pct=-15.0, ref_price_pct=-10.0)
    return [
        SegmentConfig(
            id="desktop",
            name="Desktop CPU",
            base_demand_units_1990=1_000_000,
            base_asp_cents_1990=30_000,
            elasticity=-1.2,
            annual_growth_pct=12.0,
            step_events=[downturn],
        ),
        SegmentConfig(
            id="server",
            name="Server CPU",
            base_demand_units_1990=100_000,
            base_asp_cents_1990=120_000,
            elasticity=-0.8,
            annual_growth_pct=8.0,
        ),
        SegmentConfig(
            id="embedded",
            name="Embedded",
            base_demand_units_1990=2_000_000,
            base_asp_cents_1990=2_000,
            elasticity=-1.5,
            annual_growth_pct=5.0,
            step_events=[
                MarketStepEvent(start=date(1995, 1, 1), months=24, base_demand_pct=20.0, elasticity_delta=-0.1)
            ],
        ),
    ]


def campaign_1990s() -> Dict[str, Any]:
    """Scenario card: the starter decade, with the four-step tutorial attached."""
    return {
        "name": "1990s Startup",
        "start_date": "1990-01-01",
        "end_date": "1999-12-01",
        "player_start_cash_cents": 100_000_000,
        "difficulty": "normal",
        "goals": [
            {"kind": "reach_share", "segment": "desktop", "min_share": 0.25, "deadline": "1995-12-01"},
            {"kind": "launch_node", "node": "600nm", "deadline": "1996-12-01"},
            {"kind": "profit_target", "profit_cents": 50_000_000, "deadline": "1999-12-01"},
            {"kind": "survive_event", "event_id": "asian_crisis_1997", "deadline": "1998-12-01"},
        ],
        "fail_conditions": [
            {"kind": "cash_below", "threshold_cents": 0},
            {"kind": "share_below", "segment": "desktop", "min_share": 0.05, "deadline": "1997-12-01"},
        ],
        "tutorial": {
            "cash_threshold_cents_month24": 0,
            "steps": [
                {
                    "id": "price_cut",
                    "desc": "Cut your list price by at least 5%.",
                    "hint": "Lower prices lift demand when elasticity is below -1.",
                    "nav": "pricing",
                },
                {
                    "id": "foundry_contract",
                    "desc": "Sign a foundry contract for 1000 wafers/month over 12 months.",
                    "hint": "Take-or-pay contracts bill the floor even when idle.",
                    "nav": "capacity",
                },
                {
                    "id": "tapeout_expedite",
                    "desc": "Expedite a tape-out.",
                    "hint": "Expediting saves three months for a fee.",
                    "nav": "products",
                },
                {
                    "id": "positive_cash_24m",
                    "desc": "Keep cash positive through month 24.",
                    "hint": "Watch contract costs against revenue.",
                    "nav": "finance",
                },
            ],
        },
    }


def campaign_1990s_scenario() -> CampaignScenario:
    return parse_scenario(campaign_1990s())


def campaign_1990s_model(seed: int = 42, difficulty: Optional[str] = None) -> ChipModel:
    """Builder cue: the 1990s campaign on the minimal world with the default markets."""
    return ChipModel(
        minimal_world(),
        SimConfig(rng_seed=seed),
        markets=default_markets(),
        scenario=campaign_1990s_scenario(),
        difficulty=difficulty,
    )
