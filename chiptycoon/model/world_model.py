"""Quick card: Mesa world wiring for the chip tycoon core: tick scheduler, player intents, and dry runs."""

from __future__ import annotations

import copy
import logging
import math
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

import mesa
import pandas as pd
from mesa.datacollection import DataCollector

import config
from chiptycoon.agents.company import CompanyAgent
from chiptycoon.agents.planner import is_decision_month
from chiptycoon.agents.production import unit_cost_for
from chiptycoon.agents.tactics import price_after_delta
from chiptycoon.model.campaign import CampaignScenario, CampaignState, CampaignView, evaluate_campaign
from chiptycoon.model.domain import (
    DependencyNotFound,
    ProductSpec,
    SimConfig,
    ValidationError,
    World,
    add_months,
    months_between,
    validate_product,
    validate_world,
)
from chiptycoon.model.economy import EconomicError, optimal_price
from chiptycoon.model.ledger import CashLedger, FinanceConfig, contract_summary, make_contract
from chiptycoon.model.log_utils import append_chronicle_event, append_chronicle_month, log_step_summary
from chiptycoon.model.market import MarketModEffect, SegmentConfig, segment_configs_from_world
from chiptycoon.model.mods import EffectSpec
from chiptycoon.model.money import frac, from_cents, round_cents, to_cents
from chiptycoon.model.state import AiConfig, MonthScratch, Pricing, SimSnapshot, SimState, Stats, TelemetryRow
from chiptycoon.model.systems import (
    advance_capacity,
    advance_pipeline,
    advance_rd,
    allocate_demand,
    apply_mod_effects,
    enforce_price_floor,
    entry_node,
    execute_sales,
    recompute_trends,
    run_fab,
)
from chiptycoon.model.tapeout import TapeoutRequest
from chiptycoon.model.tutorial import TutorialState, TutorialView, evaluate_tutorial

log = logging.getLogger(__name__)

U64_MAX = 2**64 - 1


def _opening_price(unit_cost: Decimal, markets: Optional[Sequence[SegmentConfig]], world: World) -> Decimal:
    """Opening cue: the lead segment's 1990 ASP if configured, else the Lerner price, else cost plus markup."""
    if markets:
        return from_cents(markets[0].base_asp_cents_1990)
    if world.segments:
        try:
            return optimal_price(unit_cost, world.segments[0].price_elasticity)
        except EconomicError:
            log.debug("Lead segment is inelastic; opening at cost plus markup")
    return round_cents(unit_cost * (Decimal(1) + frac(config.DEFAULT_MARKUP_FRAC)))


def build_state(
    world: World,
    sim_config: SimConfig,
    markets: Optional[Sequence[SegmentConfig]] = None,
    finance: Optional[FinanceConfig] = None,
    ai: Optional[AiConfig] = None,
) -> SimState:
    """Setup note: derive pricing, markets, and ledgers from a validated world."""
    state = SimState(
        world=world,
        sim_config=sim_config,
        markets=[],
        pricing=Pricing(asp_usd=Decimal("0.00"), unit_cost_usd=config.DEFAULT_UNIT_COST_USD),
        stats=Stats(),
        ledger=CashLedger(finance=finance or FinanceConfig()),
        ai=ai or AiConfig(),
        base_cash_usd=world.player.cash_usd,
    )
    node = entry_node(state)
    if node is not None:
        state.pricing.unit_cost_usd = unit_cost_for(node, None)
    state.pricing.asp_usd = _opening_price(state.pricing.unit_cost_usd, markets, world)
    enforce_price_floor(state)
    if markets:
        state.markets = list(markets)
    else:
        state.markets = segment_configs_from_world(world, state.pricing.asp_usd)
    return state


class ChipModel(mesa.Model):
    """Model card: one player company in a world of nodes and segments, stepped a calendar month at a time."""

    def __init__(
        self,
        world: World,
        sim_config: SimConfig | None = None,
        *,
        markets: Optional[Sequence[SegmentConfig]] = None,
        finance: Optional[FinanceConfig] = None,
        ai: Optional[AiConfig] = None,
        scenario: Optional[CampaignScenario] = None,
        difficulty: Optional[str] = None,
    ) -> None:
        """Init cue: validate first, then seed the one RNG the whole run draws from."""
        sim_config = sim_config or SimConfig()
        validate_world(world)
        if not world.companies:
            raise ValidationError("world needs at least one company to play")
        if not 0 <= sim_config.rng_seed <= U64_MAX:
            raise ValidationError(f"rng seed must fit in 64 unsigned bits, got {sim_config.rng_seed}")
        super().__init__(seed=sim_config.rng_seed)
        self.sim_config = sim_config
        self.state: SimState = build_state(copy.deepcopy(world), sim_config, markets, finance, ai)
        self.chronicle: List[Dict[str, Any]] = []
        self.telemetry: List[TelemetryRow] = []
        if scenario is not None:
            self.state.world.macro.date = scenario.start_date
            self.state.player.cash_usd = from_cents(scenario.player_start_cash_cents)
            self.state.base_cash_usd = self.state.player.cash_usd
            self.state.campaign = CampaignState.start(scenario)
            if difficulty is None:
                difficulty = scenario.difficulty
            if scenario.tutorial is not None:
                self.state.tutorial = TutorialState(
                    enabled=True,
                    cash_threshold_cents=scenario.tutorial.cash_threshold_cents_month24,
                )
        if difficulty is not None:
            self.set_difficulty(difficulty)
        self.advisor = CompanyAgent(model=self)
        self.datacollector = self._build_collector()
        self.datacollector.collect(self)

    def _build_collector(self) -> DataCollector:
        return DataCollector(
            model_reporters={
                "months_run": lambda m: m.state.stats.months_run,
                "cash_cents": lambda m: to_cents(m.state.player.cash_usd),
                "revenue_cents": lambda m: to_cents(m.state.stats.revenue_usd),
                "profit_cents": lambda m: to_cents(m.state.stats.profit_usd),
                "asp_cents": lambda m: to_cents(m.state.pricing.asp_usd),
                "unit_cost_cents": lambda m: to_cents(m.state.pricing.unit_cost_usd),
                "market_share": lambda m: m.state.stats.market_share,
                "rd_progress": lambda m: m.state.stats.rd_progress,
                "inventory_units": lambda m: m.state.stats.inventory_units,
            }
        )

    # --- Tick scheduler ---

    def step(self) -> None:
        """Loop card: one month through the fixed ten-stage pipeline, all or nothing."""
        super().step()
        backup = copy.deepcopy(self.state)
        rng_state = self.random.getstate()
        chronicle_len = len(self.chronicle)
        telemetry_len = len(self.telemetry)
        collected_lens = {name: len(values) for name, values in self.datacollector.model_vars.items()}
        try:
            row = self._run_month()
            self.telemetry.append(row)
            append_chronicle_month(self.chronicle, row, self.state)
            log_step_summary(row, self.state)
            self.datacollector.collect(self)
        except Exception:
            # A failed tick never happened: everything it touched is put back.
            self.state = backup
            self.random.setstate(rng_state)
            del self.chronicle[chronicle_len:]
            del self.telemetry[telemetry_len:]
            for name, values in self.datacollector.model_vars.items():
                del values[collected_lens.get(name, 0):]
            # mesa counts the step before this body runs.
            self.steps -= 1
            raise

    def _run_month(self) -> TelemetryRow:
        state = self.state
        state.stats.months_run += 1
        month_index = state.stats.months_run
        tick_date = state.date
        state.month = MonthScratch(start_inventory=state.stats.inventory_units)

        # 1. Mod effects: tech shocks and market perturbations, expiring ones restored.
        apply_mod_effects(state)
        # 2. Trends rebuilt from configuration.
        recompute_trends(state)
        # 3. Demand allocation against start-of-month inventory.
        allocate_demand(state, self.random)
        # 4. R&D, capacity, production.
        advance_rd(state)
        advance_capacity(state)
        run_fab(state)
        # 5. Tape-out releases.
        advance_pipeline(state)
        # 6. Sales, billing, cash.
        execute_sales(state)
        # 7. Tactics and share drift.
        self.advisor.step()
        # 8. Quarterly planner, first decision only.
        if is_decision_month(month_index, state.ai.planner.quarter_step):
            self.advisor.plan_quarter()
        # 9. Campaign and tutorial trackers.
        self._evaluate_trackers(month_index, tick_date)
        # 10. Calendar.
        state.world.macro.date = add_months(tick_date, 1)
        return self._telemetry_row(month_index, tick_date)

    def _evaluate_trackers(self, month_index: int, tick_date: date) -> None:
        state = self.state
        cash_cents = to_cents(state.player.cash_usd)
        if state.campaign is not None:
            before = state.campaign.outcome
            view = CampaignView(
                date=tick_date,
                cash_cents=cash_cents,
                profit_cents=to_cents(state.stats.profit_usd),
                market_share=state.stats.market_share,
                released_nodes=frozenset(p.spec.tech_node for p in state.pipeline.released),
            )
            outcome = evaluate_campaign(state.campaign, view)
            if outcome is not before:
                append_chronicle_event(self.chronicle, month_index, "campaign_outcome", outcome=outcome.value)
        evaluate_tutorial(
            state.tutorial,
            TutorialView(
                months_run=month_index,
                cash_cents=cash_cents,
                largest_player_price_cut=state.player_flags.largest_price_cut,
                contracts=state.player_flags.signed_contracts,
                expedite_requested=state.player_flags.expedite_requested,
            ),
        )

    def _telemetry_row(self, month_index: int, tick_date: date) -> TelemetryRow:
        state = self.state
        month = state.month
        return TelemetryRow(
            month_index=month_index,
            date=tick_date.isoformat(),
            output_units=month.good_units,
            sold_units=month.allocated_units,
            defect_units=month.defect_units,
            inventory_units=state.stats.inventory_units,
            asp_cents=to_cents(state.pricing.asp_usd),
            unit_cost_cents=to_cents(state.pricing.unit_cost_usd),
            margin_cents=to_cents(month.revenue_usd - month.cogs_usd),
            revenue_cents=to_cents(month.revenue_usd),
            cogs_cents=to_cents(month.cogs_usd),
            contract_cost_cents=month.contract_cost_cents,
            cash_cents=to_cents(state.player.cash_usd),
            market_share=state.stats.market_share,
            rd_progress=state.stats.rd_progress,
        )

    def advance(self, months: int) -> Tuple[SimSnapshot, List[TelemetryRow]]:
        """Batch cue: run ``months`` ticks back to back; returns the final snapshot plus their telemetry."""
        if months < 0:
            raise ValueError(f"months must be non-negative, got {months}")
        rows: List[TelemetryRow] = []
        for _ in range(months):
            self.step()
            rows.append(self.telemetry[-1])
        return self.snapshot(), rows

    def tick_quarter(self) -> Tuple[SimSnapshot, List[TelemetryRow]]:
        return self.advance(3)

    def snapshot(self) -> SimSnapshot:
        state = self.state
        stats = state.stats
        return SimSnapshot(
            months_run=stats.months_run,
            date=state.date.isoformat(),
            cash_cents=to_cents(state.player.cash_usd),
            revenue_cents=to_cents(stats.revenue_usd),
            cogs_cents=to_cents(stats.cogs_usd),
            contract_costs_cents=stats.contract_costs_cents,
            profit_cents=to_cents(stats.profit_usd),
            asp_cents=to_cents(state.pricing.asp_usd),
            unit_cost_cents=to_cents(state.pricing.unit_cost_usd),
            market_share=stats.market_share,
            rd_progress=stats.rd_progress,
            output_units=stats.output_units,
            defect_units=stats.defect_units,
            inventory_units=stats.inventory_units,
        )

    # --- Player intents ---

    def apply_price_delta(self, price_frac: float) -> Decimal:
        """Price intent: move the list price by a fraction; the margin floor still applies."""
        if not math.isfinite(price_frac):
            raise ValueError(f"price delta must be finite, got {price_frac!r}")
        state = self.state
        state.pricing.asp_usd = price_after_delta(
            state.pricing.asp_usd, price_frac, state.pricing.unit_cost_usd, state.ai.tactics.min_margin_frac
        )
        if price_frac < 0:
            state.player_flags.largest_price_cut = max(state.player_flags.largest_price_cut, -price_frac)
        return state.pricing.asp_usd

    def apply_rd_delta(self, delta_cents: int) -> int:
        """R&D intent: shift the monthly budget, never below zero."""
        state = self.state
        state.rd_budget_cents = max(0, state.rd_budget_cents + int(delta_cents))
        return state.rd_budget_cents

    def apply_capacity_request(
        self,
        wafers_per_month: int,
        months: int,
        billing_cents_per_wafer: Optional[int] = None,
        take_or_pay_frac: Optional[float] = None,
    ) -> str:
        """Capacity intent: sign a foundry contract starting this month; returns its summary."""
        state = self.state
        top = state.default_take_or_pay_frac if take_or_pay_frac is None else take_or_pay_frac
        contract = make_contract(state.date, wafers_per_month, months, billing_cents_per_wafer, top)
        state.capacity.add(contract)
        state.player_flags.signed_contracts.append(contract)
        summary = contract_summary(contract)
        log.info("Signed %s", summary)
        append_chronicle_event(self.chronicle, state.stats.months_run, "contract", summary=summary)
        return summary

    def apply_tapeout_request(
        self,
        perf_index: float,
        die_area_mm2: float,
        tech_node: str,
        expedite: bool = False,
    ) -> date:
        """Tape-out intent: queue a design on a known node; returns when it will be ready."""
        state = self.state
        if state.world.node(tech_node) is None:
            raise DependencyNotFound(f"unknown tech node {tech_node!r}")
        spec = ProductSpec(tech_node=tech_node, perf_index=float(perf_index), die_area_mm2=float(die_area_mm2))
        validate_product(spec)
        request = self.schedule_tapeout(spec, expedite=expedite)
        if expedite:
            state.player_flags.expedite_requested = True
        return request.ready

    def schedule_tapeout(self, spec: ProductSpec, expedite: bool = False) -> TapeoutRequest:
        state = self.state
        request = state.pipeline.schedule(spec, state.date, expedite=expedite)
        if expedite:
            state.pending_fees_usd += request.expedite_cost_usd
        append_chronicle_event(
            self.chronicle,
            state.stats.months_run,
            "tapeout",
            tech_node=spec.tech_node,
            ready=request.ready.isoformat(),
            expedite=expedite,
        )
        return request

    # --- Mods ---

    def submit_effect(self, spec: EffectSpec) -> bool:
        return self.state.mods.submit(spec)

    def submit_market_effect(self, effect: MarketModEffect) -> bool:
        return self.state.mods.submit_market(effect)

    def active_mods(self) -> List[Dict[str, Any]]:
        return self.state.mods.active_summary(self.state.date)

    # --- Difficulty ---

    def set_difficulty(self, level: str) -> None:
        """Preset card: push a difficulty level into the AI, contract, and market knobs."""
        preset = config.DIFFICULTY_LEVELS.get(level)
        if preset is None:
            raise KeyError(f"unknown difficulty {level!r}; choose from {sorted(config.DIFFICULTY_LEVELS)}")
        state = self.state
        state.ai.tactics.min_margin_frac = preset["min_margin_frac"]
        state.ai.planner.min_margin_frac = preset["min_margin_frac"]
        state.ai.tactics.price_epsilon_frac = preset["price_epsilon_frac"]
        state.default_take_or_pay_frac = preset["take_or_pay_frac"]
        state.growth_multiplier = preset["annual_growth_pct_multiplier"]
        state.event_severity = preset["event_severity_multiplier"]
        if state.stats.months_run == 0:
            state.player.cash_usd = round_cents(state.base_cash_usd * frac(preset["cash_multiplier"]))
        else:
            log.info("Difficulty %s set mid-game; starting cash left as is", level)
        state.difficulty = level
        enforce_price_floor(state)

    # --- Planning, clones, exports ---

    def plan_quarter_preview(self) -> List[str]:
        """Preview cue: what the advisor would do over the next quarter, without doing it."""
        plan = self.advisor.build_plan(months=3)
        return plan.labels()

    def clone(self) -> "ChipModel":
        """Clone card: an independent twin (state, RNG position, logs) for dry runs."""
        twin = ChipModel(self.state.world, self.sim_config)
        twin.state = copy.deepcopy(self.state)
        twin.random.setstate(self.random.getstate())
        twin.chronicle = copy.deepcopy(self.chronicle)
        twin.telemetry = copy.deepcopy(self.telemetry)
        twin.datacollector = twin._build_collector()
        return twin

    def export_projection(self, months: Optional[int] = None) -> List[Dict[str, Any]]:
        """Dry-run card: project on a clone until the campaign ends (or a default horizon)."""
        if months is None:
            campaign = self.state.campaign
            if campaign is not None:
                months = max(0, months_between(self.state.date, campaign.scenario.end_date) + 1)
            else:
                months = config.PROJECTION_DEFAULT_MONTHS
        twin = self.clone()
        rows: List[Dict[str, Any]] = []
        for _ in range(months):
            twin.step()
            row = twin.telemetry[-1]
            snap = twin.snapshot()
            rows.append(
                {
                    "date": row.date,
                    "month_index": row.month_index,
                    "cash": snap.cash_cents,
                    "revenue": snap.revenue_cents,
                    "cogs": snap.cogs_cents,
                    "profit": snap.profit_cents,
                    "asp": snap.asp_cents,
                    "unit_cost": snap.unit_cost_cents,
                    "share": snap.market_share,
                    "output": row.output_units,
                    "inventory": snap.inventory_units,
                }
            )
        return rows

    def telemetry_frame(self) -> pd.DataFrame:
        """Frame cue: collected KPIs (row 0 is the opening state) as a pandas DataFrame."""
        return self.datacollector.get_model_vars_dataframe()


def init_world(world: World, sim_config: SimConfig | None = None, **options: Any) -> ChipModel:
    return ChipModel(world, sim_config, **options)


def advance(model: ChipModel, months: int) -> Tuple[SimSnapshot, List[TelemetryRow]]:
    return model.advance(months)
