"""Quick card: CompanyAgent, the AI advisor that runs monthly tactics and the quarterly planner."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Optional

import mesa

import config
from chiptycoon.agents.planner import (
    AdjustPrice,
    AllocateRnd,
    CurrentKpis,
    DemandView,
    Plan,
    PlanAction,
    RequestCapacity,
    ScheduleTapeout,
    describe_action,
    drift_share,
    expected_share,
    metrics_from_financials,
    plan_horizon,
    price_attractiveness,
)
from chiptycoon.agents.production import wafers_for_units
from chiptycoon.agents.tactics import CompanyMetrics, TacticsDecision, decide_tactics, price_after_delta
from chiptycoon.model.domain import ProductSpec
from chiptycoon.model.ledger import make_contract
from chiptycoon.model.money import from_cents
from chiptycoon.model.systems import capacity_units, current_die_area, lead_trend, newest_available_node

if TYPE_CHECKING:
    from chiptycoon.model.state import SimState
    from chiptycoon.model.world_model import ChipModel

log = logging.getLogger(__name__)


class CompanyAgent(mesa.Agent):
    """Advisor card: steers the player company's price, R&D, capacity, and tape-outs."""

    def __init__(self, model: "ChipModel") -> None:
        """Init cue: all state lives on the model so clones stay independent."""
        super().__init__(model=model)

    @property
    def state(self) -> "SimState":
        return self.model.state

    def metrics(self) -> CompanyMetrics:
        state = self.state
        month = state.month
        profit = (
            month.revenue_usd
            - month.cogs_usd
            - from_cents(month.contract_cost_cents)
            - month.rd_spend_usd
            - month.fees_usd
        )
        return metrics_from_financials(
            share=state.stats.market_share,
            revenue_usd=month.revenue_usd,
            profit_usd=profit,
            cash_usd=state.player.cash_usd,
            debt_usd=state.player.debt_usd,
            segment_count=len(state.trends),
        )

    def step(self) -> TacticsDecision:
        """Tactics card: apply this month's price/R&D nudges, then drift share toward the price target."""
        state = self.state
        stats = state.stats
        cfg = state.ai.tactics
        ratio = state.month.demand_units / max(1, state.month.supply_units)
        decision = decide_tactics(
            self.metrics(),
            stats.last_share,
            ratio,
            state.pricing.unit_cost_usd,
            state.pricing.asp_usd,
            cfg,
        )
        state.pricing.asp_usd = price_after_delta(
            state.pricing.asp_usd, decision.price_df, state.pricing.unit_cost_usd, cfg.min_margin_frac
        )
        state.rd_boost = min(config.RD_BOOST_MAX, max(config.RD_BOOST_MIN, state.rd_boost + decision.rd_delta))
        state.last_tactics = decision

        trend = lead_trend(state)
        ref_price = trend.ref_price_usd if trend else state.pricing.asp_usd
        planner_cfg = state.ai.planner
        attract = price_attractiveness(float(state.pricing.asp_usd), float(ref_price), planner_cfg.price_pref_beta)
        target = expected_share(attract, planner_cfg.competitor_attractiveness)
        stats.last_share = stats.market_share
        stats.market_share = drift_share(stats.market_share, target)
        return decision

    def build_plan(self, months: Optional[int] = None) -> Plan:
        """Plan cue: feed the live KPIs into the beam search without touching state."""
        state = self.state
        cfg = state.ai.planner
        if months is not None:
            cfg = replace(cfg, months=months)
        trend = lead_trend(state)
        current = CurrentKpis(
            asp_usd=state.pricing.asp_usd,
            unit_cost_usd=state.pricing.unit_cost_usd,
            capacity_units_per_month=capacity_units(state),
            cash_usd=state.player.cash_usd,
            debt_usd=state.player.debt_usd,
            share=state.stats.market_share,
            rd_progress=state.stats.rd_progress,
            ref_price_usd=trend.ref_price_usd if trend else None,
        )
        if trend is not None:
            view = DemandView(
                base_demand_units=trend.base_demand_units,
                elasticity=trend.elasticity,
                segment_count=len(state.trends),
            )
        else:
            view = DemandView()
        return plan_horizon(current, view, state.ai.weights, cfg)

    def plan_quarter(self) -> Plan:
        """Quarter card: rolling horizon, so only the first decision of a fresh plan is acted on."""
        plan = self.build_plan()
        self.state.last_plan = plan
        if plan.first is not None:
            self.apply_decision(plan.first)
        return plan

    def apply_decision(self, action: PlanAction) -> None:
        state = self.state
        if isinstance(action, AdjustPrice):
            state.pricing.asp_usd = price_after_delta(
                state.pricing.asp_usd, action.frac, state.pricing.unit_cost_usd, state.ai.planner.min_margin_frac
            )
        elif isinstance(action, RequestCapacity):
            wafers = wafers_for_units(action.units, current_die_area(state))
            if wafers <= 0:
                return
            # This month's capacity and billing are already settled, so supply starts next month.
            contract = make_contract(
                state.date,
                wafers,
                config.DEFAULT_CONTRACT_MONTHS,
                take_or_pay_frac=state.default_take_or_pay_frac,
                lead_time_months=1,
            )
            state.capacity.add(contract)
        elif isinstance(action, AllocateRnd):
            state.rd_boost = min(config.RD_BOOST_MAX, max(config.RD_BOOST_MIN, state.rd_boost + action.boost))
        elif isinstance(action, ScheduleTapeout):
            node = newest_available_node(state)
            if node is None:
                log.warning("Planner asked for a tape-out but no tech node is available in %d", state.date.year)
                return
            spec = ProductSpec(
                tech_node=node.id,
                perf_index=config.AI_PERF_INDEX_BASE + state.stats.rd_progress * 0.5,
                die_area_mm2=config.DEFAULT_DIE_AREA_MM2,
            )
            self.model.schedule_tapeout(spec, expedite=action.expedite)
        else:
            raise TypeError(f"unknown plan action {action!r}")
        log.debug("Advisor applied %s", describe_action(action))
