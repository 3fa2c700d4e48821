"""
ChipModel tests: the monthly pipeline, player intents, clones, and exports.

Run with: pytest tests/test_world_model.py -v
"""
import math
from datetime import date
from decimal import Decimal

import pytest

from chiptycoon.agents.planner import RequestCapacity
from chiptycoon.agents.tactics import min_price
from chiptycoon.model import world_model
from chiptycoon.model.campaign import CampaignOutcome, CampaignScenario, ShareBelow
from chiptycoon.model.domain import DependencyNotFound, SimConfig, ValidationError
from chiptycoon.model.mods import EffectSpec
from chiptycoon.model.scenarios import campaign_1990s_model, single_node_world
from chiptycoon.model.world_model import ChipModel, advance, init_world


# =============================================================================
# INITIALISATION
# =============================================================================

class TestInit:
    """Construction validates before anything else happens."""

    def test_needs_a_company(self, world_single):
        world_single.companies = []
        with pytest.raises(ValidationError):
            ChipModel(world_single)

    def test_seed_must_be_unsigned(self, world_single):
        with pytest.raises(ValidationError):
            ChipModel(world_single, SimConfig(rng_seed=-1))

    def test_invalid_world_rejected(self, world_single):
        world_single.tech_tree[0].yield_baseline = 2.0
        with pytest.raises(ValidationError):
            init_world(world_single)

    def test_caller_world_is_not_shared(self, world_single):
        model = ChipModel(world_single)
        model.advance(1)
        assert world_single.macro.date == date(1990, 1, 1)

    def test_opening_price_clears_the_floor(self, model):
        pricing = model.state.pricing
        assert pricing.unit_cost_usd == Decimal("23.39")
        assert pricing.asp_usd >= min_price(pricing.unit_cost_usd, model.state.ai.tactics.min_margin_frac)


# =============================================================================
# MONTHLY PIPELINE
# =============================================================================

class TestStep:

    def test_calendar_advances_one_month_per_tick(self, world_factory):
        model = ChipModel(world_factory(start=date(1997, 12, 1)))
        snapshot, rows = advance(model, 2)
        assert snapshot.date == "1998-02-01"
        assert [row.date for row in rows] == ["1997-12-01", "1998-01-01"]

    def test_first_months_end_to_end(self, model):
        snapshot, rows = model.advance(3)
        first = rows[0]
        assert first.sold_units == 0
        assert first.output_units > 0
        assert first.cash_cents == 100_000_000
        assert snapshot.months_run == 3
        assert snapshot.revenue_cents > 0
        assert snapshot.output_units == sum(row.output_units for row in rows)

    def test_million_unit_segment_three_months(self, world_factory):
        """One node, one company, a 1,000,000-unit segment, seed 42: reproducible to the cent."""
        runs = [ChipModel(world_factory(demand=1_000_000), SimConfig(rng_seed=42)).advance(3) for _ in range(2)]
        (snap_a, rows_a), (snap_b, rows_b) = runs
        assert snap_a.months_run == 3
        assert snap_a.output_units >= 0
        assert math.isfinite(snap_a.market_share)
        assert math.isfinite(snap_a.rd_progress)
        assert snap_a == snap_b
        assert rows_a == rows_b

    def test_month_entries_carry_the_row(self, model):
        model.advance(2)
        months = [e for e in model.chronicle if e["event_type"] == "month"]
        assert [e["month"] for e in months] == [1, 2]
        assert "month_index" not in months[0]
        assert months[1]["cash_cents"] == model.telemetry[1].cash_cents

    def test_same_seed_same_run(self, model_factory):
        a, b = model_factory(seed=7), model_factory(seed=7)
        snap_a, rows_a = a.advance(12)
        snap_b, rows_b = b.advance(12)
        assert snap_a == snap_b
        assert rows_a == rows_b

    def test_margin_floor_holds_every_month(self, model):
        for _ in range(12):
            model.step()
            pricing = model.state.pricing
            assert pricing.asp_usd >= min_price(pricing.unit_cost_usd, model.state.ai.tactics.min_margin_frac)

    def test_inventory_balances(self, model):
        snapshot, _ = model.advance(6)
        stats = model.state.stats
        assert snapshot.inventory_units == stats.output_units - stats.sold_units

    def test_failed_tick_rolls_back(self, model, monkeypatch):
        def broken_sales(state):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(world_model, "execute_sales", broken_sales)
        before = model.snapshot()
        rng_state = model.random.getstate()
        with pytest.raises(RuntimeError):
            model.step()
        assert model.snapshot() == before
        assert model.random.getstate() == rng_state
        assert model.telemetry == []

    def test_failed_tick_leaves_no_log_trace(self, world_single, monkeypatch):
        scenario = CampaignScenario(
            name="doomed",
            start_date=date(1990, 1, 1),
            end_date=date(1991, 12, 1),
            player_start_cash_cents=100_000_000,
            fail_conditions=[ShareBelow(segment="Seg", min_share=1.0, deadline=date(1990, 1, 1))],
        )
        model = ChipModel(world_single, SimConfig(rng_seed=42), scenario=scenario)

        def broken_tutorial(state, view):
            raise RuntimeError("tutorial store offline")

        monkeypatch.setattr(world_model, "evaluate_tutorial", broken_tutorial)
        with pytest.raises(RuntimeError):
            model.step()
        assert model.chronicle == []
        assert model.steps == 0
        assert len(model.telemetry_frame()) == 1
        assert model.state.campaign.outcome is CampaignOutcome.IN_PROGRESS

        monkeypatch.undo()
        model.step()
        assert model.steps == 1
        outcomes = [e for e in model.chronicle if e["event_type"] == "campaign_outcome"]
        assert outcomes == [{"event_type": "campaign_outcome", "month": 1, "outcome": "failed"}]

    def test_negative_months_rejected(self, model):
        with pytest.raises(ValueError):
            model.advance(-1)

    def test_chronicle_and_frame(self, model):
        model.tick_quarter()
        assert [e["month"] for e in model.chronicle if e["event_type"] == "month"] == [1, 2, 3]
        frame = model.telemetry_frame()
        assert len(frame) == 4
        assert "cash_cents" in frame.columns


# =============================================================================
# PLAYER INTENTS
# =============================================================================

class TestIntents:

    def test_price_cut_stops_at_floor(self, model):
        price = model.apply_price_delta(-0.99)
        assert price == min_price(model.state.pricing.unit_cost_usd, model.state.ai.tactics.min_margin_frac)
        assert model.state.player_flags.largest_price_cut == pytest.approx(0.99)

    def test_price_delta_must_be_finite(self, model):
        with pytest.raises(ValueError):
            model.apply_price_delta(float("inf"))

    def test_rd_budget_never_negative(self, model):
        assert model.apply_rd_delta(-500) == 0
        assert model.apply_rd_delta(1_000_000) == 1_000_000

    def test_capacity_request_bills_take_or_pay(self, model):
        summary = model.apply_capacity_request(1000, 12)
        assert "foundry-a" in summary
        assert len(model.state.capacity.contracts) == 1
        _, rows = model.advance(1)
        assert rows[0].contract_cost_cents >= 50_000_000

    def test_unknown_tapeout_node(self, model):
        with pytest.raises(DependencyNotFound):
            model.apply_tapeout_request(0.6, 100.0, "3nm")

    def test_expedited_tapeout(self, model):
        ready = model.apply_tapeout_request(0.6, 100.0, "N90", expedite=True)
        assert ready == date(1990, 7, 1)
        assert model.state.player_flags.expedite_requested is True
        model.step()
        assert model.state.stats.fees_usd == Decimal("100000.00")
        model.advance(5)
        assert model.state.pipeline.released == []
        model.step()
        assert any(p.spec.die_area_mm2 == 100.0 for p in model.state.pipeline.released)
        assert model.state.appeal > 0.0


# =============================================================================
# DIFFICULTY, MODS, CLONES
# =============================================================================

class TestDifficulty:

    def test_easy_scales_opening_cash(self, model):
        model.set_difficulty("easy")
        assert model.state.player.cash_usd == Decimal("1500000.00")
        assert model.state.ai.tactics.min_margin_frac == 0.03

    def test_mid_game_keeps_cash(self, model):
        model.step()
        cash = model.state.player.cash_usd
        model.set_difficulty("hard")
        assert model.state.player.cash_usd == cash
        assert model.state.difficulty == "hard"

    def test_unknown_level(self, model):
        with pytest.raises(KeyError):
            model.set_difficulty("nightmare")


class TestModsOnModel:

    def test_wafer_shock_raises_unit_cost_then_expires(self, model):
        base_cost = model.state.pricing.unit_cost_usd
        model.submit_effect(EffectSpec(id="quake", start_date=date(1990, 1, 1), duration_months=1, cost_increase=50))
        assert [row["id"] for row in model.active_mods()] == ["quake"]
        model.step()
        assert model.state.pricing.unit_cost_usd > base_cost
        model.step()
        assert model.state.pricing.unit_cost_usd == base_cost
        assert model.active_mods() == []


class TestClones:

    def test_clone_is_independent(self, model):
        twin = model.clone()
        twin.advance(3)
        assert model.state.stats.months_run == 0
        assert twin.state.stats.months_run == 3

    def test_clone_continues_identically(self, model):
        model.advance(2)
        twin = model.clone()
        assert model.advance(4)[0] == twin.advance(4)[0]

    def test_projection_leaves_model_untouched(self, model):
        before = model.snapshot()
        rows = model.export_projection(6)
        assert len(rows) == 6
        assert rows[0]["date"] == "1990-01-01"
        assert set(rows[0]) == {
            "date", "month_index", "cash", "revenue", "cogs", "profit",
            "asp", "unit_cost", "share", "output", "inventory",
        }
        assert model.snapshot() == before

    def test_preview_does_not_apply(self, model):
        model.step()
        before = model.snapshot()
        labels = model.plan_quarter_preview()
        assert len(labels) == 1
        assert model.snapshot() == before


# =============================================================================
# CAMPAIGN
# =============================================================================

class TestCampaignModel:

    def test_campaign_starts_from_scenario(self):
        model = campaign_1990s_model()
        assert model.state.date == date(1990, 1, 1)
        assert model.state.player.cash_usd == Decimal("1000000.00")
        assert model.state.tutorial.enabled

    def test_campaign_runs(self):
        model = campaign_1990s_model()
        model.advance(3)
        assert model.state.campaign.outcome is CampaignOutcome.IN_PROGRESS
        assert model.state.tutorial.done[3] is True
        assert model.state.tutorial.current_step == 0

    def test_only_player_contracts_count_for_the_tutorial(self):
        model = campaign_1990s_model()
        model.advisor.apply_decision(RequestCapacity(units=1_000_000))
        advisor_contract = model.state.capacity.contracts[-1]
        assert advisor_contract.wafers_per_month >= 1000
        assert advisor_contract.duration_months >= 12
        model.step()
        assert model.state.tutorial.done[1] is False
        model.apply_capacity_request(1000, 12)
        model.step()
        assert model.state.tutorial.done[1] is True

    def test_projection_defaults_to_campaign_end(self):
        model = campaign_1990s_model()
        model.state.campaign.scenario.end_date = date(1990, 6, 1)
        assert len(model.export_projection()) == 6

    def test_fresh_world_each_time(self):
        assert single_node_world() is not single_node_world()
