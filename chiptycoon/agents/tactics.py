"""Quick card: monthly reactive tactics (price nudges + R&D delta) under a hard margin floor."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal

import config
from chiptycoon.model.money import CENT, frac, round_cents


@dataclass
class TacticsConfig:
    share_drop_delta: float = config.SHARE_DROP_DELTA
    price_epsilon_frac: float = config.PRICE_EPSILON_FRAC
    min_margin_frac: float = config.MIN_MARGIN_FRAC
    shortage_raise_threshold: float = config.SHORTAGE_RAISE_THRESHOLD
    shortage_raise_epsilon_frac: float = config.SHORTAGE_RAISE_EPSILON_FRAC
    cash_liquidity_floor_k: float = config.CASH_LIQUIDITY_FLOOR_K
    rd_boost_on_expedite: float = config.RD_BOOST_ON_EXPEDITE
    rd_cut_on_cash_low: float = config.RD_CUT_ON_CASH_LOW


@dataclass
class CompanyMetrics:
    """Metrics card: the four normalised-ish inputs the AI scores a company on."""

    share_12m: float
    margin_ratio: float
    liquidity_k: float
    portfolio_div: float


@dataclass
class TacticsDecision:
    price_df: float
    rd_delta: float


def min_price(unit_cost: Decimal, min_margin_frac: float) -> Decimal:
    """Floor cue: lowest sellable price, rounded up to the cent so it never undercuts the margin."""
    exact = unit_cost * (Decimal(1) + frac(max(0.0, min_margin_frac)))
    return exact.quantize(CENT, rounding=ROUND_CEILING)


def respects_min_margin(asp: Decimal, unit_cost: Decimal, min_margin_frac: float) -> bool:
    return asp >= unit_cost * (Decimal(1) + frac(max(0.0, min_margin_frac)))


def price_after_delta(asp: Decimal, price_df: float, unit_cost: Decimal, min_margin_frac: float) -> Decimal:
    """Price card: every price change (player, tactics, planner) lands here.

    The margin floor always wins, and no price drops below one cent.
    """
    if not math.isfinite(price_df):
        price_df = 0.0
    price_df = max(-1.0, price_df)
    proposed = round_cents(asp * (Decimal(1) + frac(price_df)))
    return max(proposed, min_price(unit_cost, min_margin_frac), CENT)


def decide_tactics(
    metrics: CompanyMetrics,
    last_share: float,
    demand_supply_ratio: float,
    unit_cost: Decimal,
    asp: Decimal,
    cfg: TacticsConfig,
) -> TacticsDecision:
    """Rule card: share-drop cut, shortage raise, margin clamp, then the R&D call."""
    share_drop = max(last_share - metrics.share_12m, 0.0)
    price_df = 0.0
    if share_drop > cfg.share_drop_delta:
        price_df -= cfg.price_epsilon_frac
    if demand_supply_ratio > cfg.shortage_raise_threshold:
        price_df += cfg.shortage_raise_epsilon_frac

    floor = min_price(unit_cost, cfg.min_margin_frac)
    if asp > 0 and asp * (Decimal(1) + frac(price_df)) < floor:
        # Largest cut that still clears the floor (a raise if already below it).
        price_df = float(floor / asp - 1)
        while asp * (Decimal(1) + frac(price_df)) < floor:
            price_df = math.nextafter(price_df, math.inf)

    if metrics.liquidity_k < cfg.cash_liquidity_floor_k:
        rd_delta = -cfg.rd_cut_on_cash_low
    elif share_drop > cfg.share_drop_delta:
        rd_delta = cfg.rd_boost_on_expedite
    else:
        rd_delta = 0.0
    return TacticsDecision(price_df=price_df, rd_delta=rd_delta)
