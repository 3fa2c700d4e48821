"""Quick card: segment configuration, per-tick demand trends, and largest-remainder allocation."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

import config
from chiptycoon.model.domain import World, add_months, months_between
from chiptycoon.model.economy import U64_MAX
from chiptycoon.model.money import frac, from_cents, to_cents


@dataclass
class MarketStepEvent:
    """Event card: scripted step change in demand, price anchor, or elasticity."""

    start: date
    months: int
    base_demand_pct: float = 0.0
    ref_price_pct: float = 0.0
    elasticity_delta: float = 0.0

    def active(self, on: date) -> bool:
        return self.start <= on < add_months(self.start, self.months)


@dataclass
class SegmentConfig:
    id: str
    name: str
    base_demand_units_1990: int
    base_asp_cents_1990: int
    elasticity: float
    annual_growth_pct: float = 0.0
    step_events: List[MarketStepEvent] = field(default_factory=list)


@dataclass
class MarketModEffect:
    """Perturbation card: a time-boxed demand/elasticity shock from a mod (``None`` hits every segment)."""

    id: str
    start: date
    end: date
    segment_id: Optional[str] = None
    base_demand_pct: float = 0.0
    elasticity_delta: float = 0.0

    def active(self, on: date) -> bool:
        return self.start <= on <= self.end

    def applies_to(self, segment_id: str) -> bool:
        return self.segment_id is None or self.segment_id == segment_id


@dataclass
class MarketTrend:
    """Trend card: one segment's demand picture for the current month, rebuilt every tick."""

    segment_id: str
    name: str
    base_demand_units: int
    ref_price_cents: int
    elasticity: float
    trend_pct: float = 0.0
    demand_units: int = 0
    sold_units: int = 0

    @property
    def ref_price_usd(self) -> Decimal:
        return from_cents(self.ref_price_cents)


def segment_configs_from_world(world: World, ref_price: Decimal) -> List[SegmentConfig]:
    """Fallback cue: build flat configs from bare world segments anchored on one price."""
    ref_cents = max(1, to_cents(ref_price))
    configs: List[SegmentConfig] = []
    for idx, segment in enumerate(world.segments):
        configs.append(
            SegmentConfig(
                id=f"seg-{idx}",
                name=segment.name,
                base_demand_units_1990=segment.base_demand_units,
                base_asp_cents_1990=ref_cents,
                elasticity=segment.price_elasticity,
            )
        )
    return configs


def _years_since_base(on: date) -> float:
    return max(0.0, months_between(date(config.BASE_YEAR, 1, 1), on) / 12.0)


def compute_trends(
    configs: Sequence[SegmentConfig],
    on: date,
    mod_effects: Iterable[MarketModEffect] = (),
    growth_multiplier: float = 1.0,
    event_severity: float = 1.0,
) -> List[MarketTrend]:
    """Trend card: recompute every segment from its 1990 baseline plus whatever is active today."""
    years = _years_since_base(on)
    active_mods = [mod for mod in mod_effects if mod.active(on)]
    trends: List[MarketTrend] = []
    for cfg in configs:
        growth = cfg.annual_growth_pct * growth_multiplier / 100.0
        demand_f = float(cfg.base_demand_units_1990) * max(0.0, 1.0 + growth) ** years
        price_mult = 1.0
        elasticity = cfg.elasticity
        for event in cfg.step_events:
            if not event.active(on):
                continue
            demand_f *= 1.0 + event.base_demand_pct * event_severity / 100.0
            price_mult *= 1.0 + event.ref_price_pct * event_severity / 100.0
            elasticity += event.elasticity_delta * event_severity
        for mod in active_mods:
            if not mod.applies_to(cfg.id):
                continue
            demand_f *= 1.0 + mod.base_demand_pct / 100.0
            elasticity += mod.elasticity_delta
        if not math.isfinite(demand_f) or demand_f >= U64_MAX:
            demand_units = U64_MAX
        else:
            demand_units = max(0, int(math.floor(demand_f)))
        price_mult = max(0.01, price_mult)
        ref_cents = max(1, to_cents(from_cents(cfg.base_asp_cents_1990) * frac(price_mult)))
        elasticity = min(elasticity, config.ELASTICITY_CEILING)
        trend_pct = 0.0
        if cfg.base_demand_units_1990 > 0:
            trend_pct = (demand_units / cfg.base_demand_units_1990 - 1.0) * 100.0
        trends.append(
            MarketTrend(
                segment_id=cfg.id,
                name=cfg.name,
                base_demand_units=demand_units,
                ref_price_cents=ref_cents,
                elasticity=elasticity,
                trend_pct=trend_pct,
            )
        )
    return trends


def apportion(weights: Sequence[int], units: int) -> List[int]:
    """Apportion card: split exactly ``units`` by integer weights using largest remainders.

    Floors each proportional share, then hands the leftover units to the largest fractional
    remainders, lower index first on ties.
    """
    if units < 0 or any(w < 0 for w in weights):
        raise ValueError("weights and units must be non-negative")
    total = sum(weights)
    if units == 0 or total == 0:
        return [0] * len(weights)
    floors: List[int] = []
    remainders: List[int] = []
    for w in weights:
        share, rem = divmod(w * units, total)
        floors.append(share)
        remainders.append(rem)
    leftover = units - sum(floors)
    order = sorted(range(len(weights)), key=lambda i: (-remainders[i], i))
    for i in order[:leftover]:
        floors[i] += 1
    return floors


def allocate_largest_remainder(demands: Sequence[int], supply: int) -> List[int]:
    """Allocation cue: sold units per segment, summing to exactly ``min(sum(demands), supply)``."""
    if supply < 0:
        raise ValueError("supply must be non-negative")
    return apportion(demands, min(sum(demands), supply))
