"""Quick card: host-side owner of one ChipModel; serializes ticks, intents, and dry runs."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Tuple

from chiptycoon.model.state import SimSnapshot, TelemetryRow
from chiptycoon.model.world_model import ChipModel

log = logging.getLogger(__name__)


class SimulationBusy(RuntimeError):
    """Raised when a request arrives while another one still owns the model."""


class SimSession:
    """Session card: at most one operation touches the model at a time; the rest fail fast."""

    def __init__(self, model: ChipModel) -> None:
        self.model = model
        self.busy = False
        self._lock = threading.Lock()

    @contextmanager
    def exclusive(self) -> Iterator[ChipModel]:
        with self._lock:
            if self.busy:
                raise SimulationBusy("simulation is busy; try again once the current request finishes")
            self.busy = True
        try:
            yield self.model
        finally:
            with self._lock:
                self.busy = False

    def tick(self, months: int = 1) -> Tuple[SimSnapshot, List[TelemetryRow]]:
        with self.exclusive() as model:
            return model.advance(months)

    def tick_quarter(self) -> Tuple[SimSnapshot, List[TelemetryRow]]:
        with self.exclusive() as model:
            return model.tick_quarter()

    def snapshot(self) -> SimSnapshot:
        with self.exclusive() as model:
            return model.snapshot()

    def apply_price_delta(self, price_frac: float) -> Decimal:
        with self.exclusive() as model:
            return model.apply_price_delta(price_frac)

    def apply_rd_delta(self, delta_cents: int) -> int:
        with self.exclusive() as model:
            return model.apply_rd_delta(delta_cents)

    def apply_capacity_request(
        self,
        wafers_per_month: int,
        months: int,
        billing_cents_per_wafer: Optional[int] = None,
        take_or_pay_frac: Optional[float] = None,
    ) -> str:
        with self.exclusive() as model:
            return model.apply_capacity_request(wafers_per_month, months, billing_cents_per_wafer, take_or_pay_frac)

    def apply_tapeout_request(
        self,
        perf_index: float,
        die_area_mm2: float,
        tech_node: str,
        expedite: bool = False,
    ) -> date:
        with self.exclusive() as model:
            return model.apply_tapeout_request(perf_index, die_area_mm2, tech_node, expedite)

    def set_difficulty(self, level: str) -> None:
        with self.exclusive() as model:
            model.set_difficulty(level)

    def dry_run(self, months: Optional[int] = None) -> List[Dict[str, Any]]:
        """Dry-run cue: projection on a clone; the owned model is left as it was."""
        with self.exclusive() as model:
            rows = model.export_projection(months)
        log.debug("Dry run projected %d months", len(rows))
        return rows
