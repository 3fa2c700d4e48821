"""Quick card: the simulation state record threaded through every pipeline step, plus KPI records."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import config
from chiptycoon.agents.planner import Plan, PlannerConfig, ScoreWeights
from chiptycoon.agents.tactics import TacticsConfig, TacticsDecision
from chiptycoon.model.campaign import CampaignState
from chiptycoon.model.domain import Company, SimConfig, World
from chiptycoon.model.ledger import CapacityBook, CashLedger, ContractBill, ContractDraw, FoundryContract
from chiptycoon.model.market import MarketTrend, SegmentConfig
from chiptycoon.model.mods import ModEngine
from chiptycoon.model.tapeout import ProductPipeline
from chiptycoon.model.tutorial import TutorialState


@dataclass
class ProductWeights:
    perf: float = config.PRODUCT_WEIGHT_PERF
    price_rel: float = config.PRODUCT_WEIGHT_PRICE_REL
    appeal: float = config.PRODUCT_WEIGHT_APPEAL


@dataclass
class AiConfig:
    """AI card: every knob the advisor reads, bundled so difficulty presets can reach them."""

    weights: ScoreWeights = field(default_factory=ScoreWeights)
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    tactics: TacticsConfig = field(default_factory=TacticsConfig)
    product_weights: ProductWeights = field(default_factory=ProductWeights)


@dataclass
class Pricing:
    asp_usd: Decimal
    unit_cost_usd: Decimal


@dataclass
class Stats:
    """Stats card: running totals since month zero (money cumulative, inventory a level)."""

    months_run: int = 0
    revenue_usd: Decimal = Decimal("0.00")
    cogs_usd: Decimal = Decimal("0.00")
    contract_costs_cents: int = 0
    rd_spend_usd: Decimal = Decimal("0.00")
    fees_usd: Decimal = Decimal("0.00")
    profit_usd: Decimal = Decimal("0.00")
    market_share: float = config.INITIAL_MARKET_SHARE
    last_share: float = config.INITIAL_MARKET_SHARE
    rd_progress: float = 0.0
    output_units: int = 0
    defect_units: int = 0
    sold_units: int = 0
    inventory_units: int = 0


@dataclass
class MonthScratch:
    """Scratch card: values one step hands to a later step within the same tick; reset every tick."""

    start_inventory: int = 0
    demand_units: int = 0
    allocated_units: int = 0
    base_wafers: int = 0
    capacity_wafers: int = 0
    wafers_started: int = 0
    good_units: int = 0
    defect_units: int = 0
    draws: List[ContractDraw] = field(default_factory=list)
    bills: List[ContractBill] = field(default_factory=list)
    revenue_usd: Decimal = Decimal("0.00")
    cogs_usd: Decimal = Decimal("0.00")
    contract_cost_cents: int = 0
    rd_spend_usd: Decimal = Decimal("0.00")
    fees_usd: Decimal = Decimal("0.00")
    attractiveness: float = 0.0
    released: List[str] = field(default_factory=list)

    @property
    def supply_units(self) -> int:
        return self.start_inventory + self.good_units


@dataclass
class PlayerFlags:
    largest_price_cut: float = 0.0
    expedite_requested: bool = False
    signed_contracts: List[FoundryContract] = field(default_factory=list)


@dataclass
class SimState:
    """State card: the world plus every derived resource; exclusively owned by one model."""

    world: World
    sim_config: SimConfig
    markets: List[SegmentConfig]
    pricing: Pricing
    stats: Stats = field(default_factory=Stats)
    capacity: CapacityBook = field(default_factory=CapacityBook)
    ledger: CashLedger = field(default_factory=CashLedger)
    pipeline: ProductPipeline = field(default_factory=ProductPipeline)
    mods: ModEngine = field(default_factory=ModEngine)
    ai: AiConfig = field(default_factory=AiConfig)
    trends: List[MarketTrend] = field(default_factory=list)
    month: MonthScratch = field(default_factory=MonthScratch)
    appeal: float = 0.0
    rd_budget_cents: int = 0
    rd_boost: float = 0.0
    pending_fees_usd: Decimal = Decimal("0.00")
    default_take_or_pay_frac: float = config.DEFAULT_TAKE_OR_PAY_FRAC
    growth_multiplier: float = 1.0
    event_severity: float = 1.0
    difficulty: str = "normal"
    base_cash_usd: Decimal = Decimal("0.00")
    campaign: Optional[CampaignState] = None
    tutorial: TutorialState = field(default_factory=TutorialState)
    player_flags: PlayerFlags = field(default_factory=PlayerFlags)
    last_tactics: Optional[TacticsDecision] = None
    last_plan: Optional[Plan] = None

    @property
    def date(self) -> date:
        return self.world.macro.date

    @property
    def player(self) -> Company:
        return self.world.player


@dataclass
class SimSnapshot:
    """Snapshot card: KPI view handed back by ``advance``; money in integer cents."""

    months_run: int
    date: str
    cash_cents: int
    revenue_cents: int
    cogs_cents: int
    contract_costs_cents: int
    profit_cents: int
    asp_cents: int
    unit_cost_cents: int
    market_share: float
    rd_progress: float
    output_units: int
    defect_units: int
    inventory_units: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TelemetryRow:
    """Telemetry card: what happened in one month (flows for that month, levels at month end)."""

    month_index: int
    date: str
    output_units: int
    sold_units: int
    defect_units: int
    inventory_units: int
    asp_cents: int
    unit_cost_cents: int
    margin_cents: int
    revenue_cents: int
    cogs_cents: int
    contract_cost_cents: int
    cash_cents: int
    market_share: float
    rd_progress: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
