"""Quick card: logging helpers for the chronicle and per-month step recaps."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import config
from chiptycoon.agents.planner import is_decision_month
from chiptycoon.model.state import SimState, TelemetryRow

log = logging.getLogger(__name__)


def fmt_usd(cents: Any) -> str:
    """Formatter note: integer cents as a dollar string."""
    try:
        return f"${int(cents) / 100:,.2f}"
    except (TypeError, ValueError):
        return "n/a"


def fmt_share(value: Any) -> str:
    try:
        return f"{float(value):.{config.SHARE_DISPLAY_DECIMALS}f}"
    except (TypeError, ValueError):
        return "n/a"


def append_chronicle_event(chronicle: List[Dict[str, Any]], month_index: int, event_type: str, **details: Any) -> None:
    entry: Dict[str, Any] = {"event_type": event_type, "month": month_index}
    entry.update(details)
    chronicle.append(entry)


def append_chronicle_month(chronicle: List[Dict[str, Any]], row: TelemetryRow, state: SimState) -> None:
    """Chronicle card: one "month" entry plus whatever notable happened in it."""
    month = state.month
    details = row.to_dict()
    details.pop("month_index", None)
    append_chronicle_event(chronicle, row.month_index, "month", **details)
    for node_id in month.released:
        append_chronicle_event(chronicle, row.month_index, "release", date=row.date, tech_node=node_id)
    planned_now = is_decision_month(row.month_index, state.ai.planner.quarter_step)
    if planned_now and state.last_plan is not None and state.last_plan.decisions:
        append_chronicle_event(
            chronicle,
            row.month_index,
            "plan",
            date=row.date,
            decisions=state.last_plan.labels(),
            expected_score=state.last_plan.expected_score,
        )
    if state.campaign is not None:
        append_chronicle_event(
            chronicle,
            row.month_index,
            "campaign",
            outcome=state.campaign.outcome.value,
            statuses=[s.value for s in state.campaign.statuses],
        )


def log_step_summary(row: TelemetryRow, state: SimState) -> None:
    """Recap cue: one INFO line per month so long runs stay readable."""
    log.info(
        "Month %d (%s): sold=%d output=%d inv=%d asp=%s cost=%s revenue=%s cash=%s share=%s rd=%.2f",
        row.month_index,
        row.date,
        row.sold_units,
        row.output_units,
        row.inventory_units,
        fmt_usd(row.asp_cents),
        fmt_usd(row.unit_cost_cents),
        fmt_usd(row.revenue_cents),
        fmt_usd(row.cash_cents),
        fmt_share(row.market_share),
        row.rd_progress,
    )
    if state.last_tactics is not None and state.last_tactics.price_df != 0.0:
        log.debug("  Tactics: price %+.3f, R&D boost %+.3f", state.last_tactics.price_df, state.last_tactics.rd_delta)
    if state.campaign is not None:
        log.info("  Campaign: %s", state.campaign.outcome.value)
