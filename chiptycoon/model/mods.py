"""Quick card: apply and revert time-boxed mod effects (tech cost/yield shocks, market perturbations).

Parsing or running mod scripts happens elsewhere; this module only receives finished
``EffectSpec`` values. Affected nodes are rebuilt each tick from the values captured before the
first effect touched them, so applying twice on the same date changes nothing and expiry restores
the captured values exactly.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from chiptycoon.model.domain import TechNode, add_months
from chiptycoon.model.market import MarketModEffect
from chiptycoon.model.money import frac, round_cents

log = logging.getLogger(__name__)


def cost_increase_fraction(value: float) -> float:
    """Unit heuristic: ``|x| <= 1`` reads as a fraction, anything larger as a whole percent.

    Mod authors write both ``0.2`` and ``20`` for the same +20% shock, so ``1`` means +100%
    while ``1.5`` means +1.5%.
    """
    if abs(value) <= 1.0:
        return value
    return value / 100.0


@dataclass(frozen=True)
class EffectSpec:
    id: str
    start_date: date
    duration_months: int
    cost_increase: float = 0.0
    yield_delta: float = 0.0
    target_nodes: Optional[Tuple[str, ...]] = None

    @property
    def end_date(self) -> date:
        """Exclusive end: the first month the effect is no longer in force."""
        return add_months(self.start_date, self.duration_months)

    def active(self, on: date) -> bool:
        return self.start_date <= on < self.end_date

    def targets(self, node_id: str) -> bool:
        return self.target_nodes is None or node_id in self.target_nodes


@dataclass
class _NodeOriginal:
    wafer_cost_usd: Decimal
    yield_baseline: float


@dataclass
class ModEngine:
    """Engine card: owns the effect stream plus the untouched node values it must restore."""

    specs: List[EffectSpec] = field(default_factory=list)
    market_effects: List[MarketModEffect] = field(default_factory=list)
    originals: Dict[str, _NodeOriginal] = field(default_factory=dict)

    def submit(self, spec: EffectSpec) -> bool:
        """Intake cue: accept a parsed spec once per id; repeats are ignored."""
        if any(existing.id == spec.id for existing in self.specs):
            log.debug("Ignoring duplicate effect spec %s", spec.id)
            return False
        if spec.duration_months <= 0:
            raise ValueError(f"effect {spec.id!r} needs a positive duration, got {spec.duration_months}")
        if not math.isfinite(spec.cost_increase) or not math.isfinite(spec.yield_delta):
            raise ValueError(f"effect {spec.id!r} carries non-finite deltas")
        self.specs.append(spec)
        return True

    def submit_market(self, effect: MarketModEffect) -> bool:
        if any(existing.id == effect.id for existing in self.market_effects):
            return False
        if effect.end < effect.start:
            raise ValueError(f"market effect {effect.id!r} ends before it starts")
        self.market_effects.append(effect)
        return True

    def active_specs(self, on: date) -> List[EffectSpec]:
        return [spec for spec in self.specs if spec.active(on)]

    def apply(self, on: date, tech_tree: Sequence[TechNode]) -> List[str]:
        """Apply card: bring every node in line with today's active effects; return changed ids."""
        active = self.active_specs(on)
        changed: List[str] = []
        for node in tech_tree:
            node_effects = [spec for spec in active if spec.targets(node.id)]
            if node_effects:
                original = self.originals.setdefault(
                    node.id, _NodeOriginal(node.wafer_cost_usd, node.yield_baseline)
                )
                cost = original.wafer_cost_usd
                yld = original.yield_baseline
                for spec in node_effects:
                    shock = cost_increase_fraction(spec.cost_increase)
                    cost = max(Decimal("0.00"), round_cents(cost * (Decimal(1) + frac(shock))))
                    yld = min(1.0, max(0.0, yld + spec.yield_delta))
                if cost != node.wafer_cost_usd or yld != node.yield_baseline:
                    node.wafer_cost_usd = cost
                    node.yield_baseline = yld
                    changed.append(node.id)
            elif node.id in self.originals:
                original = self.originals.pop(node.id)
                node.wafer_cost_usd = original.wafer_cost_usd
                node.yield_baseline = original.yield_baseline
                changed.append(node.id)
                log.info("Mod effects on %s expired; originals restored", node.id)
        # Originals are back in place by now, so finished specs can go.
        self.specs = [spec for spec in self.specs if spec.end_date > on]
        return changed

    def expire_market(self, on: date) -> List[MarketModEffect]:
        expired = [m for m in self.market_effects if m.end < on]
        if expired:
            self.market_effects = [m for m in self.market_effects if m.end >= on]
        return expired

    def active_summary(self, on: date) -> List[Dict[str, Any]]:
        """Summary card: what is in force today, for the host's mods panel."""
        rows: List[Dict[str, Any]] = []
        for spec in self.active_specs(on):
            rows.append(
                {
                    "id": spec.id,
                    "kind": "tech",
                    "target": ",".join(spec.target_nodes) if spec.target_nodes else "tech_tree",
                    "start": spec.start_date.isoformat(),
                    "end": spec.end_date.isoformat(),
                }
            )
        for effect in self.market_effects:
            if not effect.active(on):
                continue
            rows.append(
                {
                    "id": effect.id,
                    "kind": "market",
                    "target": effect.segment_id or "all_segments",
                    "start": effect.start.isoformat(),
                    "end": effect.end.isoformat(),
                }
            )
        return rows
