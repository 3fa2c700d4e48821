"""Quick card: the per-tick systems the scheduler runs in order (mods through cash settlement).

Each helper mutates ``SimState`` in place and reads only what earlier steps have already
committed for the month; hand-offs between steps go through ``state.month``.
"""

from __future__ import annotations

import logging
import random
from decimal import Decimal
from typing import List, Optional

import config
from chiptycoon.agents.production import (
    good_dies_per_wafer,
    run_production,
    unit_cost_for,
    wafers_for_units,
)
from chiptycoon.agents.tactics import min_price
from chiptycoon.model.domain import ProductSpec, TechNode
from chiptycoon.model.economy import demand_with_noise
from chiptycoon.model.ledger import base_capacity_wafers, bill_contracts
from chiptycoon.model.market import MarketTrend, allocate_largest_remainder, apportion, compute_trends
from chiptycoon.model.money import from_cents, round_cents
from chiptycoon.model.state import ProductWeights, SimState
from chiptycoon.model.tapeout import ReleasedProduct

log = logging.getLogger(__name__)


# --- Product lookups ---


def current_spec(state: SimState) -> Optional[ProductSpec]:
    latest = state.pipeline.latest
    return latest.spec if latest else None


def current_die_area(state: SimState) -> Optional[float]:
    spec = current_spec(state)
    return spec.die_area_mm2 if spec else None


def entry_node(state: SimState) -> Optional[TechNode]:
    """Entry cue: the oldest node (earliest year, then tree order) a fresh company fabs on."""
    if not state.world.tech_tree:
        return None
    return min(enumerate(state.world.tech_tree), key=lambda pair: (pair[1].year_available, pair[0]))[1]


def current_node(state: SimState) -> Optional[TechNode]:
    spec = current_spec(state)
    if spec is not None:
        node = state.world.node(spec.tech_node)
        if node is not None:
            return node
    return entry_node(state)


def newest_available_node(state: SimState) -> Optional[TechNode]:
    year = state.date.year
    available = [n for n in state.world.tech_tree if n.year_available <= year]
    if not available:
        return None
    return max(enumerate(available), key=lambda pair: (pair[1].year_available, pair[0]))[1]


def lead_trend(state: SimState) -> Optional[MarketTrend]:
    return state.trends[0] if state.trends else None


def enforce_price_floor(state: SimState) -> None:
    floor = min_price(state.pricing.unit_cost_usd, state.ai.tactics.min_margin_frac)
    if state.pricing.asp_usd < floor:
        state.pricing.asp_usd = floor


def refresh_unit_cost(state: SimState) -> None:
    node = current_node(state)
    if node is None:
        return
    state.pricing.unit_cost_usd = unit_cost_for(node, current_die_area(state))
    enforce_price_floor(state)


# --- Step 1: mod effects ---


def apply_mod_effects(state: SimState) -> List[str]:
    changed = state.mods.apply(state.date, state.world.tech_tree)
    expired = state.mods.expire_market(state.date)
    for effect in expired:
        log.info("Market effect %s expired on %s", effect.id, state.date)
    node = current_node(state)
    if node is not None and node.id in changed:
        refresh_unit_cost(state)
    return changed


# --- Step 2: trends ---


def recompute_trends(state: SimState) -> None:
    state.trends = compute_trends(
        state.markets,
        state.date,
        state.mods.market_effects,
        growth_multiplier=state.growth_multiplier,
        event_severity=state.event_severity,
    )


# --- Step 3: demand allocation ---


def allocate_demand(state: SimState, rng: random.Random) -> None:
    """Allocation cue: our share of each segment's noisy demand, capped by start-of-month stock."""
    share = state.stats.market_share
    demands: List[int] = []
    for trend in state.trends:
        segment_demand = demand_with_noise(
            trend.base_demand_units,
            state.pricing.asp_usd,
            trend.ref_price_usd,
            trend.elasticity,
            config.DEMAND_NOISE_FRAC,
            rng,
        )
        ours = int(segment_demand * share)
        trend.demand_units = ours
        demands.append(ours)
    sold = allocate_largest_remainder(demands, state.stats.inventory_units)
    for trend, units in zip(state.trends, sold):
        trend.sold_units = units
    state.month.demand_units = sum(demands)
    state.month.allocated_units = sum(sold)


# --- Step 4: R&D, capacity, production ---


def advance_rd(state: SimState) -> None:
    budget_boost = float(from_cents(state.rd_budget_cents)) / 1_000_000 * config.RD_PROGRESS_PER_MILLION_USD
    step = max(0.0, config.RD_BASELINE_PER_MONTH + state.rd_boost + budget_boost)
    state.stats.rd_progress = min(1.0, max(0.0, state.stats.rd_progress + step))


def advance_capacity(state: SimState) -> None:
    base = base_capacity_wafers(len(state.world.tech_tree), len(state.world.companies))
    state.month.base_wafers = base
    state.month.capacity_wafers = state.capacity.capacity_wafers(state.date, base)


def run_fab(state: SimState) -> None:
    """Fab card: start just enough wafers to cover the gap, own fab first, then contracts in order."""
    month = state.month
    die_area = current_die_area(state)
    available = state.stats.inventory_units - month.allocated_units
    shortfall = max(0, month.demand_units - available)
    wafers_needed = min(month.capacity_wafers, wafers_for_units(shortfall, die_area))
    base_used = min(month.base_wafers, wafers_needed)
    month.draws = state.capacity.draw(state.date, wafers_needed - base_used)
    wafers = base_used + sum(d.drawn_wafers for d in month.draws)
    run = run_production(wafers, die_area)
    month.wafers_started = run.wafers
    month.good_units = run.good_units
    month.defect_units = run.defect_units
    state.stats.inventory_units += run.good_units
    state.stats.output_units += run.good_units
    state.stats.defect_units += run.defect_units


# --- Step 5: tape-outs ---


def advance_pipeline(state: SimState) -> List[ReleasedProduct]:
    shipped = state.pipeline.release_due(state.date)
    for product in shipped:
        node = state.world.node(product.spec.tech_node)
        if node is not None:
            state.pricing.unit_cost_usd = unit_cost_for(node, product.spec.die_area_mm2)
        state.appeal = min(config.APPEAL_MAX, state.appeal + config.APPEAL_BUMP)
        state.month.released.append(product.spec.tech_node)
        log.info("Released %s product on %s (appeal now %.2f)", product.spec.kind.value, product.spec.tech_node, state.appeal)
    if shipped:
        enforce_price_floor(state)
    return shipped


# --- Step 6: sales and cash ---


def attractiveness(spec: ProductSpec, appeal: float, asp: Decimal, ref_price: Decimal, weights: ProductWeights) -> float:
    """Attractiveness cue: blend of performance, appeal, and price relative to the market anchor."""
    price_rel = float(ref_price / asp) if asp > 0 else 0.0
    return max(0.0, weights.perf * spec.perf_index + weights.appeal * appeal + weights.price_rel * price_rel)


def execute_sales(state: SimState) -> None:
    """Sales card: ship allocated units, split them over released products, bill, and settle cash."""
    month = state.month
    stats = state.stats
    sold = month.allocated_units
    stats.inventory_units -= sold
    stats.sold_units += sold
    asp = state.pricing.asp_usd
    trend = lead_trend(state)
    ref_price = trend.ref_price_usd if trend else asp

    released = state.pipeline.released
    if released:
        scores = [attractiveness(p.spec, state.appeal, asp, ref_price, state.ai.product_weights) for p in released]
        weights = [int(score * 1_000_000) for score in scores]
        if sum(weights) == 0:
            weights = [1] * len(released)
        for product, units in zip(released, apportion(weights, sold)):
            product.units_sold += units
        month.attractiveness = max(scores)
    else:
        month.attractiveness = state.ai.product_weights.appeal * state.appeal

    month.revenue_usd = round_cents(asp * sold)
    month.cogs_usd = round_cents(state.pricing.unit_cost_usd * sold)
    month.bills = bill_contracts(month.draws)
    month.contract_cost_cents = sum(b.amount_cents for b in month.bills)
    month.rd_spend_usd = from_cents(state.rd_budget_cents)
    month.fees_usd = state.pending_fees_usd
    state.pending_fees_usd = Decimal("0.00")

    idx = stats.months_run
    ledger = state.ledger
    ledger.book(idx, "revenue", month.revenue_usd)
    ledger.book(idx, "cogs", -month.cogs_usd)
    ledger.book(idx, "contracts", -from_cents(month.contract_cost_cents))
    ledger.book(idx, "rd", -month.rd_spend_usd)
    ledger.book(idx, "fees", -month.fees_usd)
    ledger.settle(idx, state.player)

    stats.revenue_usd += month.revenue_usd
    stats.cogs_usd += month.cogs_usd
    stats.contract_costs_cents += month.contract_cost_cents
    stats.rd_spend_usd += month.rd_spend_usd
    stats.fees_usd += month.fees_usd
    stats.profit_usd += (
        month.revenue_usd
        - month.cogs_usd
        - from_cents(month.contract_cost_cents)
        - month.rd_spend_usd
        - month.fees_usd
    )


def capacity_units(state: SimState) -> int:
    """Capacity cue: this month's wafer capacity expressed in good units."""
    return state.month.capacity_wafers * good_dies_per_wafer(current_die_area(state))
