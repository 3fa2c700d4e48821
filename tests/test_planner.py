"""
Quarterly planner tests: scoring, action grammar, and beam search.

Run with: pytest tests/test_planner.py -v
"""
from dataclasses import replace
from decimal import Decimal

import pytest

from chiptycoon.agents.planner import (
    AdjustPrice,
    AllocateRnd,
    CurrentKpis,
    DemandView,
    PlannerConfig,
    PlannerState,
    RequestCapacity,
    ScheduleTapeout,
    ScoreWeights,
    apply_action,
    candidate_actions,
    describe_action,
    drift_share,
    expected_share,
    is_decision_month,
    plan_horizon,
    utility_score,
)
from chiptycoon.agents.tactics import CompanyMetrics, min_price


@pytest.fixture
def kpis():
    """A healthy company priced at the market anchor."""
    return CurrentKpis(
        asp_usd=Decimal("150.00"),
        unit_cost_usd=Decimal("100.00"),
        capacity_units_per_month=50_000,
        cash_usd=Decimal("1000000.00"),
        debt_usd=Decimal("0.00"),
        share=0.30,
        rd_progress=0.1,
        ref_price_usd=Decimal("150.00"),
    )


@pytest.fixture
def planner_state():
    return PlannerState(
        asp=Decimal("150.00"),
        unit_cost=Decimal("100.00"),
        capacity=1000,
        cash=Decimal("1000.00"),
        debt=Decimal("0.00"),
        share=0.30,
        rd_progress=0.0,
        ref_price=Decimal("150.00"),
    )


# =============================================================================
# SCORING
# =============================================================================

class TestScoring:

    def test_score_is_bounded(self):
        metrics = CompanyMetrics(share_12m=5.0, margin_ratio=-3.0, liquidity_k=1e9, portfolio_div=0.5)
        assert 0.0 <= utility_score(metrics, ScoreWeights()) <= 1.0

    def test_all_bad_weights_score_zero(self):
        metrics = CompanyMetrics(share_12m=0.5, margin_ratio=0.5, liquidity_k=5.0, portfolio_div=0.5)
        weights = ScoreWeights(share=-1.0, margin=float("nan"), liquidity=0.0, portfolio=0.0)
        assert utility_score(metrics, weights) == 0.0

    def test_share_stays_in_band(self):
        assert expected_share(1e9, 1.0) == 0.95
        assert expected_share(0.0, 1.0) == 0.05
        assert drift_share(0.10, 0.60) == pytest.approx(0.15)


# =============================================================================
# ACTION GRAMMAR
# =============================================================================

class TestActions:

    def test_decision_months(self):
        assert [m for m in range(1, 13) if is_decision_month(m, 3)] == [1, 4, 7, 10]

    def test_low_share_grammar(self, planner_state):
        cfg = PlannerConfig()
        actions = candidate_actions(replace(planner_state, share=0.1), cfg)
        assert len(actions) == 5
        assert AdjustPrice(cfg.price_step_frac) not in actions
        assert ScheduleTapeout(expedite=True) not in actions

    def test_full_grammar(self, planner_state):
        assert len(candidate_actions(planner_state, PlannerConfig())) == 7

    def test_labels(self):
        assert describe_action(AdjustPrice(-0.05)) == "ASP-5%"
        assert describe_action(AdjustPrice(0.05)) == "ASP+5%"
        assert describe_action(RequestCapacity(10_000)) == "Capacity+10000u/mo"
        assert describe_action(AllocateRnd(0.01)) == "R&D boost"
        assert describe_action(ScheduleTapeout(expedite=True)) == "Tapeout (expedite)"

    def test_price_action_respects_floor(self, planner_state):
        cfg = PlannerConfig()
        for _ in range(20):
            apply_action(planner_state, AdjustPrice(-0.05), cfg)
        assert planner_state.asp == min_price(planner_state.unit_cost, cfg.min_margin_frac)

    def test_expedite_costs_cash(self, planner_state):
        cfg = PlannerConfig()
        apply_action(planner_state, ScheduleTapeout(expedite=True), cfg)
        assert planner_state.cash == Decimal("1000.00") - cfg.expedite_cost_usd

    def test_unknown_action(self, planner_state):
        with pytest.raises(TypeError):
            apply_action(planner_state, "raise prices", PlannerConfig())


# =============================================================================
# BEAM SEARCH
# =============================================================================

class TestPlanHorizon:
    """Branch at decision months, prune every month, keep the best path."""

    def test_one_decision_per_quarter(self, kpis):
        plan = plan_horizon(kpis, DemandView(), ScoreWeights(), PlannerConfig(months=24))
        assert [step.month_index for step in plan.decisions] == [1, 4, 7, 10, 13, 16, 19, 22]
        assert plan.first is plan.decisions[0].action

    def test_deterministic(self, kpis):
        cfg = PlannerConfig(months=12)
        first = plan_horizon(kpis, DemandView(), ScoreWeights(), cfg)
        second = plan_horizon(kpis, DemandView(), ScoreWeights(), cfg)
        assert first.labels() == second.labels()
        assert first.expected_score == second.expected_score

    def test_score_grows_with_horizon(self, kpis):
        short = plan_horizon(kpis, DemandView(), ScoreWeights(), PlannerConfig(months=3))
        long = plan_horizon(kpis, DemandView(), ScoreWeights(), PlannerConfig(months=12))
        assert 0.0 < short.expected_score < long.expected_score

    def test_inputs_untouched(self, kpis):
        before = replace(kpis)
        plan_horizon(kpis, DemandView(), ScoreWeights(), PlannerConfig(months=6))
        assert kpis == before
