"""Quick card: quarterly beam-search planner over a small action grammar with a fast month predictor.

The predictor is deliberately not the full scheduler: it drifts share toward a price-attractiveness
target, sells ``min(share of demand, capacity)``, and scores the month with a weighted utility.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import List, Optional, Union

import config
from chiptycoon.agents.tactics import CompanyMetrics, price_after_delta
from chiptycoon.model.economy import EconomicError, demand


@dataclass
class ScoreWeights:
    share: float = config.WEIGHT_SHARE
    margin: float = config.WEIGHT_MARGIN
    liquidity: float = config.WEIGHT_LIQUIDITY
    portfolio: float = config.WEIGHT_PORTFOLIO


def norm01(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return min(1.0, max(0.0, value))


def safe_ratio(num: float, den: float) -> float:
    if not math.isfinite(num) or not math.isfinite(den) or abs(den) < 1e-9:
        return 0.0
    return min(1e6, max(-1e6, num / den))


def norm_liquidity(liquidity_k: float) -> float:
    """Liquidity cue: five times debt cover counts as fully liquid."""
    return norm01(liquidity_k / 5.0)


def utility_score(metrics: CompanyMetrics, weights: ScoreWeights) -> float:
    """Score card: clamp each term to [0, 1], drop bad weights, renormalise by what is left."""
    raw = (weights.share, weights.margin, weights.liquidity, weights.portfolio)
    clean = [w if math.isfinite(w) and w > 0 else 0.0 for w in raw]
    total = sum(clean)
    if total <= 0.0:
        return 0.0
    terms = (
        norm01(metrics.share_12m),
        norm01(metrics.margin_ratio),
        norm_liquidity(metrics.liquidity_k),
        norm01(metrics.portfolio_div),
    )
    return norm01(sum(w * t for w, t in zip(clean, terms)) / total)


def metrics_from_financials(
    share: float,
    revenue_usd: Decimal,
    profit_usd: Decimal,
    cash_usd: Decimal,
    debt_usd: Decimal,
    segment_count: int,
) -> CompanyMetrics:
    """Metrics cue: margin defaults to 0.3 before any revenue has been booked."""
    if revenue_usd > 0:
        margin = norm01(safe_ratio(float(profit_usd), float(revenue_usd)))
    else:
        margin = 0.3
    liquidity = float(cash_usd) / max(float(debt_usd) + 1.0, 1.0)
    return CompanyMetrics(
        share_12m=share,
        margin_ratio=margin,
        liquidity_k=liquidity,
        portfolio_div=norm01(segment_count / 5.0),
    )


@dataclass
class PlannerConfig:
    beam_width: int = config.BEAM_WIDTH
    months: int = config.PLAN_MONTHS
    quarter_step: int = config.QUARTER_STEP
    discount: float = config.PLAN_DISCOUNT
    min_margin_frac: float = config.MIN_MARGIN_FRAC
    price_step_frac: float = config.PRICE_STEP_FRAC
    capacity_step_units: int = config.CAPACITY_STEP_UNITS
    price_pref_beta: float = config.PRICE_PREF_BETA
    competitor_attractiveness: float = config.COMPETITOR_ATTRACTIVENESS
    expedite_cost_usd: Decimal = config.EXPEDITE_FEE_USD
    low_share_threshold: float = config.LOW_SHARE_THRESHOLD


# Action grammar: a closed set, matched exhaustively in apply_action.
@dataclass(frozen=True)
class AdjustPrice:
    frac: float


@dataclass(frozen=True)
class RequestCapacity:
    units: int


@dataclass(frozen=True)
class AllocateRnd:
    boost: float


@dataclass(frozen=True)
class ScheduleTapeout:
    expedite: bool = False


PlanAction = Union[AdjustPrice, RequestCapacity, AllocateRnd, ScheduleTapeout]


def describe_action(action: PlanAction) -> str:
    """Label cue: short strings for the host's plan preview."""
    if isinstance(action, AdjustPrice):
        if action.frac > 0:
            return f"ASP+{action.frac * 100:.0f}%"
        if action.frac < 0:
            return f"ASP-{abs(action.frac) * 100:.0f}%"
        return "ASP±0%"
    if isinstance(action, RequestCapacity):
        return f"Capacity+{action.units}u/mo"
    if isinstance(action, AllocateRnd):
        return "R&D boost"
    if isinstance(action, ScheduleTapeout):
        return "Tapeout (expedite)" if action.expedite else "Tapeout"
    raise TypeError(f"unknown plan action {action!r}")


@dataclass
class CurrentKpis:
    asp_usd: Decimal
    unit_cost_usd: Decimal
    capacity_units_per_month: int
    cash_usd: Decimal
    debt_usd: Decimal
    share: float
    rd_progress: float
    ref_price_usd: Optional[Decimal] = None


@dataclass
class DemandView:
    """Market slice the predictor sees: the lead segment's demand and elasticity."""

    base_demand_units: int = config.PLANNER_DEFAULT_DEMAND
    elasticity: float = config.PLANNER_DEFAULT_ELASTICITY
    segment_count: int = 1


@dataclass
class PlannerState:
    asp: Decimal
    unit_cost: Decimal
    capacity: int
    cash: Decimal
    debt: Decimal
    share: float
    rd_progress: float
    ref_price: Decimal


@dataclass
class PlanStep:
    month_index: int
    action: PlanAction


@dataclass
class Plan:
    decisions: List[PlanStep] = field(default_factory=list)
    expected_score: float = 0.0

    @property
    def first(self) -> Optional[PlanAction]:
        return self.decisions[0].action if self.decisions else None

    def labels(self) -> List[str]:
        return [describe_action(step.action) for step in self.decisions]


@dataclass
class _BeamNode:
    state: PlannerState
    score: float
    decisions: List[PlanStep]


def price_attractiveness(price: float, ref_price: float, beta: float) -> float:
    return (max(ref_price, 0.01) / max(price, 0.01)) ** beta


def expected_share(attractiveness: float, competitor_attractiveness: float) -> float:
    share = attractiveness / (attractiveness + max(competitor_attractiveness, 1e-3))
    return min(config.SHARE_MAX, max(config.SHARE_MIN, share))


def drift_share(share: float, target: float) -> float:
    """Drift cue: close a fixed fraction of the gap to the target every month."""
    moved = share + (target - share) * config.SHARE_DRIFT_RATE
    return min(config.SHARE_MAX, max(config.SHARE_MIN, moved))


def simulate_month(state: PlannerState, view: DemandView, cfg: PlannerConfig, weights: ScoreWeights) -> float:
    """Predictor card: one cheap month forward, mutating ``state``; returns that month's utility."""
    attractiveness = price_attractiveness(float(state.asp), float(state.ref_price), cfg.price_pref_beta)
    state.share = drift_share(state.share, expected_share(attractiveness, cfg.competitor_attractiveness))
    try:
        q_total = demand(view.base_demand_units, state.asp, state.ref_price, view.elasticity)
    except EconomicError:
        q_total = 0
    q_our = int(q_total * state.share)
    sold = min(q_our, state.capacity)
    revenue = state.asp * sold
    profit = (state.asp - state.unit_cost) * sold
    state.cash += profit
    margin = norm01(safe_ratio(float(profit), float(revenue))) if revenue > 0 else 0.0
    metrics = CompanyMetrics(
        share_12m=state.share,
        margin_ratio=margin,
        liquidity_k=float(state.cash) / max(float(state.debt) + 1.0, 1.0),
        portfolio_div=norm01(view.segment_count / 5.0),
    )
    return utility_score(metrics, weights)


def apply_action(state: PlannerState, action: PlanAction, cfg: PlannerConfig) -> None:
    if isinstance(action, AdjustPrice):
        state.asp = price_after_delta(state.asp, action.frac, state.unit_cost, cfg.min_margin_frac)
    elif isinstance(action, RequestCapacity):
        state.capacity += max(0, action.units)
    elif isinstance(action, AllocateRnd):
        state.rd_progress = norm01(state.rd_progress + action.boost)
    elif isinstance(action, ScheduleTapeout):
        bump = 0.01 if action.expedite else 0.005
        state.rd_progress = norm01(state.rd_progress + bump)
        if action.expedite:
            state.cash -= cfg.expedite_cost_usd
    else:
        raise TypeError(f"unknown plan action {action!r}")


def candidate_actions(state: PlannerState, cfg: PlannerConfig) -> List[PlanAction]:
    """Grammar cue: low share drops the price raise and the paid expedite."""
    step = cfg.price_step_frac
    if state.share < cfg.low_share_threshold:
        return [
            AdjustPrice(-step),
            AdjustPrice(0.0),
            ScheduleTapeout(expedite=False),
            RequestCapacity(cfg.capacity_step_units),
            AllocateRnd(0.01),
        ]
    return [
        AdjustPrice(-step),
        AdjustPrice(0.0),
        AdjustPrice(step),
        ScheduleTapeout(expedite=False),
        ScheduleTapeout(expedite=True),
        RequestCapacity(cfg.capacity_step_units),
        AllocateRnd(0.01),
    ]


def is_decision_month(month_index: int, quarter_step: int) -> bool:
    """Cadence cue: months 1, 4, 7, ... for a three-month quarter."""
    step = max(1, quarter_step)
    return (month_index - 1) % step == 0


def plan_horizon(
    current: CurrentKpis,
    view: DemandView,
    weights: ScoreWeights,
    cfg: PlannerConfig,
) -> Plan:
    """Plan card: beam search across ``cfg.months``; branch at decision months, prune every month.

    The beam is sorted stably by discounted score, so equal scores keep insertion order.
    """
    ref_price = current.ref_price_usd if current.ref_price_usd is not None else current.asp_usd
    root = PlannerState(
        asp=current.asp_usd,
        unit_cost=current.unit_cost_usd,
        capacity=current.capacity_units_per_month,
        cash=current.cash_usd,
        debt=current.debt_usd,
        share=min(config.SHARE_MAX, max(config.SHARE_MIN, current.share)),
        rd_progress=current.rd_progress,
        ref_price=ref_price,
    )
    beam: List[_BeamNode] = [_BeamNode(state=root, score=0.0, decisions=[])]
    width = max(1, cfg.beam_width)
    discount_pow = 1.0
    for month in range(1, cfg.months + 1):
        candidates: List[_BeamNode] = []
        at_decision = is_decision_month(month, cfg.quarter_step)
        for node in beam:
            if at_decision:
                for action in candidate_actions(node.state, cfg):
                    state = replace(node.state)
                    apply_action(state, action, cfg)
                    util = simulate_month(state, view, cfg, weights)
                    candidates.append(
                        _BeamNode(
                            state=state,
                            score=node.score + discount_pow * util,
                            decisions=node.decisions + [PlanStep(month_index=month, action=action)],
                        )
                    )
            else:
                state = replace(node.state)
                util = simulate_month(state, view, cfg, weights)
                candidates.append(_BeamNode(state=state, score=node.score + discount_pow * util, decisions=node.decisions))
        candidates.sort(key=lambda n: n.score, reverse=True)
        beam = candidates[:width]
        discount_pow *= cfg.discount
    best = beam[0]
    return Plan(decisions=list(best.decisions), expected_score=best.score)
