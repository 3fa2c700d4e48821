"""Quick card: foundry contracts, monthly wafer capacity, take-or-pay billing, and lagged cash settlement."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_EVEN, Decimal
from enum import Enum
from typing import Dict, List, Optional

import config
from chiptycoon.model.domain import Company, add_months, months_between
from chiptycoon.model.money import frac, round_cents

log = logging.getLogger(__name__)


class BillingModel(str, Enum):
    TAKE_OR_PAY = "take_or_pay"
    PAY_AS_USED = "pay_as_used"


@dataclass
class FoundryContract:
    """Contract card: committed wafers per month over an inclusive [start, end] window."""

    foundry_id: str
    wafers_per_month: int
    price_per_wafer_cents: int
    take_or_pay_frac: float
    billing_cents_per_wafer: int
    start: date
    end: date
    billing_model: BillingModel = BillingModel.TAKE_OR_PAY
    lead_time_months: int = 0

    def active(self, on: date) -> bool:
        return self.start <= on <= self.end

    @property
    def duration_months(self) -> int:
        return months_between(self.start, self.end) + 1


@dataclass
class ContractDraw:
    contract: FoundryContract
    drawn_wafers: int


@dataclass
class ContractBill:
    foundry_id: str
    drawn_wafers: int
    billed_wafers: Decimal
    amount_cents: int


def base_capacity_wafers(tech_node_count: int, company_count: int) -> int:
    return config.BASE_WAFERS_PER_ENTITY * (tech_node_count + company_count)


def make_contract(
    on: date,
    wafers_per_month: int,
    months: int,
    billing_cents_per_wafer: Optional[int] = None,
    take_or_pay_frac: Optional[float] = None,
    foundry_id: str = config.DEFAULT_FOUNDRY_ID,
    lead_time_months: int = config.DEFAULT_CONTRACT_LEAD_MONTHS,
) -> FoundryContract:
    """Contract cue: turn a capacity request into dated terms; zero take-or-pay means pay-as-used."""
    if wafers_per_month <= 0:
        raise ValueError(f"wafers per month must be positive, got {wafers_per_month}")
    if months <= 0:
        raise ValueError(f"contract duration must be positive, got {months}")
    if lead_time_months < 0:
        raise ValueError(f"lead time must be non-negative, got {lead_time_months}")
    rate = config.DEFAULT_BILLING_CENTS_PER_WAFER if billing_cents_per_wafer is None else int(billing_cents_per_wafer)
    if rate < 0:
        raise ValueError(f"billing rate must be non-negative, got {rate}")
    top = config.DEFAULT_TAKE_OR_PAY_FRAC if take_or_pay_frac is None else float(take_or_pay_frac)
    if not math.isfinite(top) or not 0.0 <= top <= 1.0:
        raise ValueError(f"take-or-pay fraction must be in [0, 1], got {take_or_pay_frac!r}")
    start = add_months(on, lead_time_months)
    return FoundryContract(
        foundry_id=foundry_id,
        wafers_per_month=int(wafers_per_month),
        price_per_wafer_cents=rate,
        take_or_pay_frac=top,
        billing_cents_per_wafer=rate,
        start=start,
        end=add_months(start, months - 1),
        billing_model=BillingModel.PAY_AS_USED if top == 0.0 else BillingModel.TAKE_OR_PAY,
        lead_time_months=lead_time_months,
    )


def contract_summary(contract: FoundryContract) -> str:
    rate = Decimal(contract.billing_cents_per_wafer) / 100
    return (
        f"{contract.foundry_id}: {contract.wafers_per_month} wafers/mo x {contract.duration_months} mo"
        f" @ ${rate:.2f}/wafer ({contract.billing_model.value}, take-or-pay {contract.take_or_pay_frac:.0%})"
        f" {contract.start.isoformat()}..{contract.end.isoformat()}"
    )


@dataclass
class CapacityBook:
    """Book card: every contract ever signed, in signing order."""

    contracts: List[FoundryContract] = field(default_factory=list)

    def add(self, contract: FoundryContract) -> None:
        self.contracts.append(contract)

    def active(self, on: date) -> List[FoundryContract]:
        return [c for c in self.contracts if c.active(on)]

    def contracted_wafers(self, on: date) -> int:
        return sum(c.wafers_per_month for c in self.active(on))

    def capacity_wafers(self, on: date, base_wafers: int) -> int:
        return base_wafers + self.contracted_wafers(on)

    def draw(self, on: date, wafers_needed: int) -> List[ContractDraw]:
        """Draw cue: consume contract supply in signing order; every active contract gets a row."""
        remaining = max(0, wafers_needed)
        draws: List[ContractDraw] = []
        for contract in self.active(on):
            drawn = min(remaining, contract.wafers_per_month)
            remaining -= drawn
            draws.append(ContractDraw(contract=contract, drawn_wafers=drawn))
        return draws


def billed_wafers(contract: FoundryContract, drawn: int) -> Decimal:
    if contract.billing_model is BillingModel.PAY_AS_USED:
        return Decimal(drawn)
    top = min(1.0, max(0.0, contract.take_or_pay_frac))
    floor = Decimal(contract.wafers_per_month) * frac(top)
    return max(Decimal(drawn), floor)


def bill_contract(contract: FoundryContract, drawn: int) -> ContractBill:
    """Billing cue: under-use never drops the bill below the take-or-pay floor."""
    wafers = billed_wafers(contract, drawn)
    amount = (wafers * contract.billing_cents_per_wafer).quantize(Decimal(1), rounding=ROUND_HALF_EVEN)
    return ContractBill(
        foundry_id=contract.foundry_id,
        drawn_wafers=drawn,
        billed_wafers=wafers,
        amount_cents=int(amount),
    )


def bill_contracts(draws: List[ContractDraw]) -> List[ContractBill]:
    return [bill_contract(d.contract, d.drawn_wafers) for d in draws]


STREAMS = ("revenue", "cogs", "contracts", "rd", "fees")


@dataclass
class FinanceConfig:
    """Finance card: settlement lag per cash stream, in months (zero settles same month)."""

    revenue_lag_months: int = config.REVENUE_LAG_MONTHS
    cogs_lag_months: int = config.COGS_LAG_MONTHS
    contract_lag_months: int = config.CONTRACT_LAG_MONTHS
    rd_lag_months: int = config.RD_LAG_MONTHS
    fee_lag_months: int = 0

    def lag_for(self, stream: str) -> int:
        lags: Dict[str, int] = {
            "revenue": self.revenue_lag_months,
            "cogs": self.cogs_lag_months,
            "contracts": self.contract_lag_months,
            "rd": self.rd_lag_months,
            "fees": self.fee_lag_months,
        }
        if stream not in lags:
            raise KeyError(f"unknown cash stream {stream!r}")
        return max(0, lags[stream])


@dataclass
class Settlement:
    due_month: int
    stream: str
    amount_usd: Decimal


@dataclass
class CashLedger:
    """Ledger card: queue signed cash items per stream and net whatever is due once a month."""

    finance: FinanceConfig = field(default_factory=FinanceConfig)
    pending: List[Settlement] = field(default_factory=list)

    def book(self, month_index: int, stream: str, amount_usd: Decimal) -> None:
        if amount_usd == 0:
            return
        due = month_index + self.finance.lag_for(stream)
        self.pending.append(Settlement(due_month=due, stream=stream, amount_usd=round_cents(amount_usd)))

    def settle(self, month_index: int, company: Company) -> Decimal:
        """Settle cue: apply every due item to company cash in one net movement."""
        due = [s for s in self.pending if s.due_month <= month_index]
        self.pending = [s for s in self.pending if s.due_month > month_index]
        net = sum((s.amount_usd for s in due), Decimal("0"))
        company.cash_usd = round_cents(company.cash_usd + net)
        if due:
            log.debug("Settled %d cash items for month %d: net %s", len(due), month_index, net)
        return net

    def outstanding(self) -> Decimal:
        return sum((s.amount_usd for s in self.pending), Decimal("0"))
