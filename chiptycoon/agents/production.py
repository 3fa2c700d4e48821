"""Quick card: production helpers (wafers to dies, defects, unit cost) to keep the scheduler lean."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import config
from chiptycoon.model.domain import TechNode
from chiptycoon.model.money import frac, round_cents


@dataclass
class ProductionRun:
    wafers: int
    gross_dies: int
    defect_units: int
    good_units: int


def dies_per_wafer(die_area_mm2: Optional[float]) -> int:
    """Die cue: usable wafer area over die area; no released design means the stock die count."""
    if die_area_mm2 is None or die_area_mm2 <= 0:
        return config.BASE_DIES_PER_WAFER
    return max(1, int(config.USABLE_DIE_AREA_MM2 // die_area_mm2))


def good_dies_per_wafer(die_area_mm2: Optional[float]) -> int:
    dies = dies_per_wafer(die_area_mm2)
    return max(1, dies - dies * config.DEFECT_RATE_PCT // 100)


def effective_yield(node: TechNode) -> float:
    return min(1.0, max(0.0, node.yield_baseline * (1.0 - config.YIELD_OVERHEAD_FRAC)))


def unit_cost_for(node: TechNode, die_area_mm2: Optional[float]) -> Decimal:
    """Cost card: wafer cost spread over yielded dies (a dead yield costs a whole wafer per unit)."""
    yielded = dies_per_wafer(die_area_mm2) * effective_yield(node)
    if yielded <= 0.0:
        return round_cents(node.wafer_cost_usd)
    return round_cents(node.wafer_cost_usd / frac(yielded))


def wafers_for_units(units: int, die_area_mm2: Optional[float]) -> int:
    if units <= 0:
        return 0
    per_wafer = good_dies_per_wafer(die_area_mm2)
    return -(-units // per_wafer)


def run_production(wafers: int, die_area_mm2: Optional[float]) -> ProductionRun:
    """Fab cue: start wafers, lose a fixed share of dies to defects, keep the rest."""
    gross = max(0, wafers) * dies_per_wafer(die_area_mm2)
    defects = gross * config.DEFECT_RATE_PCT // 100
    return ProductionRun(wafers=max(0, wafers), gross_dies=gross, defect_units=defects, good_units=gross - defects)
