"""Quick card: persistence hand-off: world blobs plus flat rows for contracts and the product pipeline.

Storage itself lives with the host; this module only fixes the shapes it reads and writes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Sequence, Tuple

import config
from chiptycoon.model.domain import (
    Company,
    MacroState,
    MarketSegment,
    ProductSpec,
    TechNode,
    ValidationError,
    World,
    validate_world,
)
from chiptycoon.model.ledger import BillingModel, FoundryContract
from chiptycoon.model.money import from_cents, to_cents
from chiptycoon.model.systems import refresh_unit_cost
from chiptycoon.model.tapeout import ReleasedProduct, TapeoutRequest
from chiptycoon.model.world_model import ChipModel

log = logging.getLogger(__name__)


# --- World blobs ---


def _node_to_dict(node: TechNode) -> Dict[str, Any]:
    return {
        "id": node.id,
        "year_available": node.year_available,
        "density_mtr_per_mm2": node.density_mtr_per_mm2,
        "freq_ghz_baseline": node.freq_ghz_baseline,
        "leakage_index": node.leakage_index,
        "yield_baseline": node.yield_baseline,
        "wafer_cost_usd": str(node.wafer_cost_usd),
        "mask_set_cost_usd": str(node.mask_set_cost_usd),
        "dependencies": list(node.dependencies),
    }


def world_to_bytes(world: World) -> bytes:
    """Blob card: JSON with Decimals as strings and dates as ISO text."""
    payload = {
        "macro": {
            "date": world.macro.date.isoformat(),
            "inflation_annual": world.macro.inflation_annual,
            "interest_rate": world.macro.interest_rate,
            "fx_usd_index": world.macro.fx_usd_index,
        },
        "tech_tree": [_node_to_dict(node) for node in world.tech_tree],
        "companies": [
            {
                "name": c.name,
                "cash_usd": str(c.cash_usd),
                "debt_usd": str(c.debt_usd),
                "ip_portfolio": list(c.ip_portfolio),
            }
            for c in world.companies
        ],
        "segments": [
            {"name": s.name, "base_demand_units": s.base_demand_units, "price_elasticity": s.price_elasticity}
            for s in world.segments
        ],
    }
    return json.dumps(payload, sort_keys=True).encode("utf-8")


def world_from_bytes(blob: bytes) -> World:
    """Load cue: rebuild and re-validate; a malformed blob surfaces as ValidationError."""
    try:
        data = json.loads(blob.decode("utf-8"))
        macro = data["macro"]
        world = World(
            macro=MacroState(
                date=date.fromisoformat(macro["date"]),
                inflation_annual=float(macro["inflation_annual"]),
                interest_rate=float(macro["interest_rate"]),
                fx_usd_index=float(macro["fx_usd_index"]),
            ),
            tech_tree=[
                TechNode(
                    id=str(n["id"]),
                    year_available=int(n["year_available"]),
                    density_mtr_per_mm2=float(n["density_mtr_per_mm2"]),
                    freq_ghz_baseline=float(n["freq_ghz_baseline"]),
                    leakage_index=float(n["leakage_index"]),
                    yield_baseline=float(n["yield_baseline"]),
                    wafer_cost_usd=Decimal(n["wafer_cost_usd"]),
                    mask_set_cost_usd=Decimal(n["mask_set_cost_usd"]),
                    dependencies=[str(d) for d in n.get("dependencies", [])],
                )
                for n in data.get("tech_tree", [])
            ],
            companies=[
                Company(
                    name=str(c["name"]),
                    cash_usd=Decimal(c["cash_usd"]),
                    debt_usd=Decimal(c.get("debt_usd", "0")),
                    ip_portfolio=[str(ip) for ip in c.get("ip_portfolio", [])],
                )
                for c in data.get("companies", [])
            ],
            segments=[
                MarketSegment(
                    name=str(s["name"]),
                    base_demand_units=int(s["base_demand_units"]),
                    price_elasticity=float(s["price_elasticity"]),
                )
                for s in data.get("segments", [])
            ],
        )
    except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError, ArithmeticError) as exc:
        raise ValidationError(f"unreadable world blob: {exc}") from exc
    validate_world(world)
    return world


# --- Flat rows ---


@dataclass
class ContractRow:
    foundry_id: str
    wafers_per_month: int
    price_per_wafer_cents: int
    take_or_pay_frac: float
    billing_cents_per_wafer: int
    billing_model: str
    lead_time_months: int
    start: str
    end: str

    @classmethod
    def from_contract(cls, contract: FoundryContract) -> "ContractRow":
        return cls(
            foundry_id=contract.foundry_id,
            wafers_per_month=contract.wafers_per_month,
            price_per_wafer_cents=contract.price_per_wafer_cents,
            take_or_pay_frac=contract.take_or_pay_frac,
            billing_cents_per_wafer=contract.billing_cents_per_wafer,
            billing_model=contract.billing_model.value,
            lead_time_months=contract.lead_time_months,
            start=contract.start.isoformat(),
            end=contract.end.isoformat(),
        )

    def to_contract(self) -> FoundryContract:
        return FoundryContract(
            foundry_id=self.foundry_id,
            wafers_per_month=int(self.wafers_per_month),
            price_per_wafer_cents=int(self.price_per_wafer_cents),
            take_or_pay_frac=float(self.take_or_pay_frac),
            billing_cents_per_wafer=int(self.billing_cents_per_wafer),
            start=date.fromisoformat(self.start),
            end=date.fromisoformat(self.end),
            billing_model=BillingModel(self.billing_model),
            lead_time_months=int(self.lead_time_months),
        )


@dataclass
class TapeoutRow:
    product_json: str
    tech_node: str
    start: str
    ready: str
    expedite: int
    expedite_cost_cents: int

    @classmethod
    def from_request(cls, request: TapeoutRequest) -> "TapeoutRow":
        return cls(
            product_json=json.dumps(request.spec.to_dict(), sort_keys=True),
            tech_node=request.spec.tech_node,
            start=request.start.isoformat(),
            ready=request.ready.isoformat(),
            expedite=int(request.expedite),
            expedite_cost_cents=to_cents(request.expedite_cost_usd),
        )

    def to_request(self) -> TapeoutRequest:
        return TapeoutRequest(
            spec=ProductSpec.from_dict(json.loads(self.product_json)),
            start=date.fromisoformat(self.start),
            ready=date.fromisoformat(self.ready),
            expedite=bool(self.expedite),
            expedite_cost_usd=from_cents(self.expedite_cost_cents),
        )


@dataclass
class ReleasedRow:
    product_json: str
    released_at: str

    @classmethod
    def from_product(cls, product: ReleasedProduct) -> "ReleasedRow":
        return cls(
            product_json=json.dumps(product.spec.to_dict(), sort_keys=True),
            released_at=product.released_at.isoformat(),
        )

    def to_product(self) -> ReleasedProduct:
        return ReleasedProduct(
            spec=ProductSpec.from_dict(json.loads(self.product_json)),
            released_at=date.fromisoformat(self.released_at),
        )


def export_rows(model: ChipModel) -> Tuple[List[ContractRow], List[TapeoutRow], List[ReleasedRow]]:
    state = model.state
    return (
        [ContractRow.from_contract(c) for c in state.capacity.contracts],
        [TapeoutRow.from_request(r) for r in state.pipeline.queue],
        [ReleasedRow.from_product(p) for p in state.pipeline.released],
    )


def rows_as_dicts(rows: Sequence[Any]) -> List[Dict[str, Any]]:
    return [asdict(row) for row in rows]


def rehydrate(
    model: ChipModel,
    contracts: Sequence[ContractRow],
    tapeouts: Sequence[TapeoutRow],
    released: Sequence[ReleasedRow],
) -> None:
    """Rehydrate card: replace contracts and pipeline from rows, then rederive unit cost and appeal."""
    state = model.state
    state.capacity.contracts = [row.to_contract() for row in contracts]
    state.pipeline.queue = [row.to_request() for row in tapeouts]
    state.pipeline.released = [row.to_product() for row in released]
    state.appeal = min(config.APPEAL_MAX, config.APPEAL_BUMP * len(state.pipeline.released))
    refresh_unit_cost(state)
    log.info(
        "Rehydrated %d contracts, %d queued tape-outs, %d released products",
        len(state.capacity.contracts),
        len(state.pipeline.queue),
        len(state.pipeline.released),
    )
