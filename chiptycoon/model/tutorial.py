"""Quick card: four latched tutorial checkpoints plus the derived "current step" index."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

import config
from chiptycoon.model.ledger import FoundryContract

TUTORIAL_STEP_IDS = ("price_cut", "foundry_contract", "tapeout_expedite", "positive_cash_24m")


@dataclass
class TutorialState:
    enabled: bool = False
    done: List[bool] = field(default_factory=lambda: [False] * len(TUTORIAL_STEP_IDS))
    cash_threshold_cents: int = config.TUTORIAL_CASH_THRESHOLD_CENTS

    @property
    def current_step(self) -> int:
        """Step cue: index of the first unmet checkpoint, or 4 once everything is done."""
        for idx, flag in enumerate(self.done):
            if not flag:
                return idx
        return len(self.done)

    @property
    def current_step_id(self) -> str | None:
        step = self.current_step
        return TUTORIAL_STEP_IDS[step] if step < len(TUTORIAL_STEP_IDS) else None


@dataclass
class TutorialView:
    months_run: int
    cash_cents: int
    largest_player_price_cut: float
    contracts: Sequence[FoundryContract]
    expedite_requested: bool


def _contract_qualifies(contract: FoundryContract) -> bool:
    return (
        contract.wafers_per_month >= config.TUTORIAL_CONTRACT_WAFERS
        and contract.duration_months >= config.TUTORIAL_CONTRACT_MONTHS
    )


def evaluate_tutorial(state: TutorialState, view: TutorialView) -> int:
    """Checkpoint card: latch whatever is satisfied now and return the current step."""
    if not state.enabled:
        return state.current_step
    checks = (
        view.largest_player_price_cut >= config.TUTORIAL_PRICE_CUT_FRAC,
        any(_contract_qualifies(c) for c in view.contracts),
        view.expedite_requested,
        view.months_run <= config.TUTORIAL_CASH_DEADLINE_MONTH and view.cash_cents > state.cash_threshold_cents,
    )
    for idx, passed in enumerate(checks):
        if passed:
            state.done[idx] = True
    return state.current_step
