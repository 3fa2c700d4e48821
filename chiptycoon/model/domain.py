"""Quick card: plain world data (tech nodes, companies, segments, macro) plus structural checks."""

from __future__ import annotations

import calendar
import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

import config


class ValidationError(ValueError):
    """Validation card: malformed world data, surfaced before any tick runs."""


class YearOutOfRange(ValidationError):
    pass


class InvalidYield(ValidationError):
    pass


class NonFinite(ValidationError):
    pass


class NegativeMoney(ValidationError):
    pass


class NonPositiveArea(ValidationError):
    pass


class ElasticityNonNegative(ValidationError):
    pass


class DependencyNotFound(ValidationError):
    pass


def add_months(start: date, months: int) -> date:
    """Calendar cue: shift by whole months, clamping the day to the target month's last day."""
    total = start.year * 12 + (start.month - 1) + months
    year, month_idx = divmod(total, 12)
    last_day = calendar.monthrange(year, month_idx + 1)[1]
    return date(year, month_idx + 1, min(start.day, last_day))


def months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


@dataclass
class TechNode:
    """Node card: one process generation with its cost and yield profile."""

    id: str
    year_available: int
    density_mtr_per_mm2: float
    freq_ghz_baseline: float
    leakage_index: float
    yield_baseline: float
    wafer_cost_usd: Decimal
    mask_set_cost_usd: Decimal
    dependencies: List[str] = field(default_factory=list)


class ProductKind(str, Enum):
    CPU = "CPU"
    GPU = "GPU"
    APU = "APU"
    ASIC = "ASIC"
    NPU = "NPU"


@dataclass
class ProductSpec:
    """Product card: a design bound to a tech node."""

    tech_node: str
    perf_index: float
    die_area_mm2: float
    kind: ProductKind = ProductKind.CPU
    tdp_w: float = 0.0
    bom_usd: Decimal = Decimal("0")

    def to_dict(self) -> Dict[str, object]:
        return {
            "tech_node": self.tech_node,
            "perf_index": self.perf_index,
            "die_area_mm2": self.die_area_mm2,
            "kind": self.kind.value,
            "tdp_w": self.tdp_w,
            "bom_usd": str(self.bom_usd),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "ProductSpec":
        return cls(
            tech_node=str(data["tech_node"]),
            perf_index=float(data.get("perf_index", 0.0)),
            die_area_mm2=float(data["die_area_mm2"]),
            kind=ProductKind(str(data.get("kind", ProductKind.CPU.value))),
            tdp_w=float(data.get("tdp_w", 0.0)),
            bom_usd=Decimal(str(data.get("bom_usd", "0"))),
        )


@dataclass
class MacroState:
    date: date
    inflation_annual: float = 0.02
    interest_rate: float = 0.05
    fx_usd_index: float = 100.0


@dataclass
class MarketSegment:
    name: str
    base_demand_units: int
    price_elasticity: float


@dataclass
class Company:
    name: str
    cash_usd: Decimal
    debt_usd: Decimal = Decimal("0")
    ip_portfolio: List[str] = field(default_factory=list)


@dataclass
class World:
    """World card: everything the scheduler needs to start a game."""

    macro: MacroState
    tech_tree: List[TechNode] = field(default_factory=list)
    companies: List[Company] = field(default_factory=list)
    segments: List[MarketSegment] = field(default_factory=list)

    def node(self, node_id: str) -> Optional[TechNode]:
        for node in self.tech_tree:
            if node.id == node_id:
                return node
        return None

    @property
    def player(self) -> Company:
        """Player cue: the first company is the one the host steers."""
        return self.companies[0]


@dataclass
class SimConfig:
    """Run card: tick length is informational, ticks are always one calendar month."""

    tick_days: int = 30
    rng_seed: int = 42


def _finite(value: float) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


def _check_money(value: Decimal, label: str) -> None:
    if not isinstance(value, Decimal) or not value.is_finite():
        raise NonFinite(f"{label} must be a finite decimal amount, got {value!r}")
    if value < 0:
        raise NegativeMoney(f"{label} must be non-negative, got {value}")


def _check_year(year: int, label: str) -> None:
    if not config.MIN_TECH_YEAR <= year <= config.MAX_TECH_YEAR:
        raise YearOutOfRange(f"{label} year {year} outside [{config.MIN_TECH_YEAR}, {config.MAX_TECH_YEAR}]")


def validate_macro(macro: MacroState) -> None:
    _check_year(macro.date.year, "macro date")
    for label, value in (
        ("inflation_annual", macro.inflation_annual),
        ("interest_rate", macro.interest_rate),
        ("fx_usd_index", macro.fx_usd_index),
    ):
        if not _finite(value):
            raise NonFinite(f"macro {label} must be finite, got {value!r}")


def validate_segment(segment: MarketSegment) -> None:
    if not segment.name.strip():
        raise NonFinite("segment name must not be empty")
    if segment.base_demand_units < 0:
        raise NonFinite(f"segment {segment.name!r} base demand must be non-negative")
    if not _finite(segment.price_elasticity) or segment.price_elasticity >= 0:
        raise ElasticityNonNegative(
            f"segment {segment.name!r} elasticity must be finite and < 0, got {segment.price_elasticity!r}"
        )


def validate_company(company: Company) -> None:
    if not company.name.strip():
        raise NonFinite("company name must not be empty")
    _check_money(company.cash_usd, f"company {company.name!r} cash")
    _check_money(company.debt_usd, f"company {company.name!r} debt")


def validate_tech_node(node: TechNode) -> None:
    if not node.id.strip():
        raise NonFinite("tech node id must not be empty")
    _check_year(node.year_available, f"tech node {node.id!r}")
    if not _finite(node.yield_baseline) or not 0.0 <= node.yield_baseline <= 1.0:
        raise InvalidYield(f"tech node {node.id!r} yield {node.yield_baseline!r} outside [0, 1]")
    if not _finite(node.density_mtr_per_mm2) or node.density_mtr_per_mm2 <= 0:
        raise NonFinite(f"tech node {node.id!r} density must be finite and positive")
    if not _finite(node.freq_ghz_baseline) or node.freq_ghz_baseline < 0:
        raise NonFinite(f"tech node {node.id!r} frequency must be finite and non-negative")
    if not _finite(node.leakage_index) or node.leakage_index < 0:
        raise NonFinite(f"tech node {node.id!r} leakage must be finite and non-negative")
    _check_money(node.wafer_cost_usd, f"tech node {node.id!r} wafer cost")
    _check_money(node.mask_set_cost_usd, f"tech node {node.id!r} mask-set cost")


def validate_product(spec: ProductSpec) -> None:
    if not _finite(spec.die_area_mm2) or spec.die_area_mm2 <= 0:
        raise NonPositiveArea(f"die area must be positive, got {spec.die_area_mm2!r}")
    if not _finite(spec.perf_index) or spec.perf_index < 0:
        raise NonFinite(f"perf index must be finite and non-negative, got {spec.perf_index!r}")
    if not _finite(spec.tdp_w) or spec.tdp_w < 0:
        raise NonFinite(f"TDP must be finite and non-negative, got {spec.tdp_w!r}")
    _check_money(spec.bom_usd, "product BOM")


def validate_world(world: World) -> None:
    """Check card: macro, then segments, companies, nodes, and finally dependency links."""
    validate_macro(world.macro)
    for segment in world.segments:
        validate_segment(segment)
    for company in world.companies:
        validate_company(company)
    seen: set[str] = set()
    for node in world.tech_tree:
        validate_tech_node(node)
        if node.id in seen:
            raise DependencyNotFound(f"duplicate tech node id {node.id!r}")
        seen.add(node.id)
    for node in world.tech_tree:
        for dep in node.dependencies:
            if dep not in seen:
                raise DependencyNotFound(f"tech node {node.id!r} depends on unknown node {dep!r}")
