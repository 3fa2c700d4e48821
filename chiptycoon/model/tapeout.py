"""Quick card: the product pipeline (tape-outs in flight plus released designs)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

import config
from chiptycoon.model.domain import ProductSpec, add_months


@dataclass
class TapeoutRequest:
    spec: ProductSpec
    start: date
    ready: date
    expedite: bool = False
    expedite_cost_usd: Decimal = Decimal("0.00")


@dataclass
class ReleasedProduct:
    spec: ProductSpec
    released_at: date
    units_sold: int = 0


@dataclass
class ProductPipeline:
    """Pipeline card: FIFO queue of tape-outs; a request ships the month its ready date arrives."""

    queue: List[TapeoutRequest] = field(default_factory=list)
    released: List[ReleasedProduct] = field(default_factory=list)

    def schedule(self, spec: ProductSpec, on: date, expedite: bool = False) -> TapeoutRequest:
        lead = config.TAPEOUT_LEAD_MONTHS
        fee = Decimal("0.00")
        if expedite:
            lead = max(1, lead - config.EXPEDITE_SAVED_MONTHS)
            fee = config.EXPEDITE_FEE_USD
        request = TapeoutRequest(spec=spec, start=on, ready=add_months(on, lead), expedite=expedite, expedite_cost_usd=fee)
        self.queue.append(request)
        return request

    def release_due(self, on: date) -> List[ReleasedProduct]:
        """Release cue: move every request with ``ready <= on`` out of the queue, keeping queue order."""
        shipped: List[ReleasedProduct] = []
        waiting: List[TapeoutRequest] = []
        for request in self.queue:
            if request.ready <= on:
                shipped.append(ReleasedProduct(spec=request.spec, released_at=on))
            else:
                waiting.append(request)
        self.queue = waiting
        self.released.extend(shipped)
        return shipped

    @property
    def latest(self) -> Optional[ReleasedProduct]:
        return self.released[-1] if self.released else None

    def has_node(self, node_id: str) -> bool:
        return any(product.spec.tech_node == node_id for product in self.released)
