"""Quick card: campaign scenarios, per-goal status tracking, fail conditions, and scenario parsing."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Union

log = logging.getLogger(__name__)


class ScenarioError(ValueError):
    """Scenario card: a campaign definition that cannot be turned into goals."""


class GoalStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    FAILED = "failed"


class CampaignOutcome(str, Enum):
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class ReachShare:
    segment: str
    min_share: float
    deadline: date


@dataclass(frozen=True)
class LaunchNode:
    node: str
    deadline: date


@dataclass(frozen=True)
class ProfitTarget:
    profit_cents: int
    deadline: date


@dataclass(frozen=True)
class SurviveEvent:
    event_id: str
    deadline: date


Goal = Union[ReachShare, LaunchNode, ProfitTarget, SurviveEvent]


@dataclass(frozen=True)
class CashBelow:
    threshold_cents: int


@dataclass(frozen=True)
class ShareBelow:
    segment: str
    min_share: float
    deadline: date


FailCondition = Union[CashBelow, ShareBelow]


@dataclass
class TutorialStepInfo:
    id: str
    desc: str = ""
    hint: str = ""
    nav: str = ""


@dataclass
class TutorialConfig:
    cash_threshold_cents_month24: int = 0
    steps: List[TutorialStepInfo] = field(default_factory=list)


@dataclass
class CampaignScenario:
    name: str
    start_date: date
    end_date: date
    player_start_cash_cents: int
    goals: List[Goal] = field(default_factory=list)
    fail_conditions: List[FailCondition] = field(default_factory=list)
    ai_companies: int = 0
    difficulty: str = "normal"
    tutorial: Optional[TutorialConfig] = None


@dataclass
class CampaignView:
    """View card: the post-tick facts the campaign is judged on."""

    date: date
    cash_cents: int
    profit_cents: int
    market_share: float
    released_nodes: FrozenSet[str] = frozenset()


@dataclass
class CampaignState:
    scenario: CampaignScenario
    statuses: List[GoalStatus] = field(default_factory=list)
    failed_by: Optional[str] = None
    outcome: CampaignOutcome = CampaignOutcome.IN_PROGRESS

    @classmethod
    def start(cls, scenario: CampaignScenario) -> "CampaignState":
        return cls(scenario=scenario, statuses=[GoalStatus.PENDING for _ in scenario.goals])


def describe_goal(goal: Goal) -> str:
    if isinstance(goal, ReachShare):
        return f"Reach {goal.min_share:.0%} share in {goal.segment} by {goal.deadline.isoformat()}"
    if isinstance(goal, LaunchNode):
        return f"Launch a product on {goal.node} by {goal.deadline.isoformat()}"
    if isinstance(goal, ProfitTarget):
        return f"Cumulative profit >= ${goal.profit_cents / 100:,.2f} by {goal.deadline.isoformat()}"
    if isinstance(goal, SurviveEvent):
        return f"Survive {goal.event_id} until {goal.deadline.isoformat()}"
    raise TypeError(f"unknown goal {goal!r}")


def goal_met(goal: Goal, view: CampaignView) -> bool:
    if isinstance(goal, ReachShare):
        return view.market_share >= goal.min_share
    if isinstance(goal, LaunchNode):
        return goal.node in view.released_nodes
    if isinstance(goal, ProfitTarget):
        return view.profit_cents >= goal.profit_cents
    if isinstance(goal, SurviveEvent):
        return view.date >= goal.deadline
    raise TypeError(f"unknown goal {goal!r}")


def fail_breached(condition: FailCondition, view: CampaignView) -> bool:
    if isinstance(condition, CashBelow):
        return view.cash_cents < condition.threshold_cents
    if isinstance(condition, ShareBelow):
        return view.date >= condition.deadline and view.market_share < condition.min_share
    raise TypeError(f"unknown fail condition {condition!r}")


def outcome_from(statuses: List[GoalStatus], failed_by: Optional[str]) -> CampaignOutcome:
    """Outcome cue: recomputed from the status vector every tick, never carried forward."""
    if failed_by is not None or any(s is GoalStatus.FAILED for s in statuses):
        return CampaignOutcome.FAILED
    if statuses and all(s is GoalStatus.DONE for s in statuses):
        return CampaignOutcome.SUCCESS
    return CampaignOutcome.IN_PROGRESS


def evaluate_campaign(state: CampaignState, view: CampaignView) -> CampaignOutcome:
    """Tracker card: latch fail conditions, move open goals, then recompute the outcome.

    Done and Failed are terminal; a breached fail condition fails every goal still open, and a
    target first reached after its deadline is Failed.
    """
    if state.failed_by is None:
        for condition in state.scenario.fail_conditions:
            if fail_breached(condition, view):
                state.failed_by = type(condition).__name__
                log.info("Campaign %s failed on %s at %s", state.scenario.name, state.failed_by, view.date)
                break
    for idx, goal in enumerate(state.scenario.goals):
        status = state.statuses[idx]
        if status in (GoalStatus.DONE, GoalStatus.FAILED):
            continue
        if state.failed_by is not None:
            state.statuses[idx] = GoalStatus.FAILED
        elif view.date > goal.deadline and not isinstance(goal, SurviveEvent):
            # Reaching a target after its deadline does not count.
            state.statuses[idx] = GoalStatus.FAILED
        elif goal_met(goal, view):
            state.statuses[idx] = GoalStatus.DONE
        else:
            state.statuses[idx] = GoalStatus.IN_PROGRESS
    state.outcome = outcome_from(state.statuses, state.failed_by)
    return state.outcome


def _parse_date(raw: Any, label: str) -> date:
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(str(raw))
    except ValueError as exc:
        raise ScenarioError(f"{label} is not an ISO date: {raw!r}") from exc


def _require(entry: Mapping[str, Any], key: str, label: str) -> Any:
    if key not in entry:
        raise ScenarioError(f"{label} is missing {key!r}")
    return entry[key]


def parse_goal(entry: Mapping[str, Any]) -> Goal:
    kind = str(_require(entry, "kind", "goal"))
    label = f"goal {kind}"
    deadline = _parse_date(_require(entry, "deadline", label), f"{label} deadline")
    if kind == "reach_share":
        return ReachShare(
            segment=str(_require(entry, "segment", label)),
            min_share=float(_require(entry, "min_share", label)),
            deadline=deadline,
        )
    if kind == "launch_node":
        return LaunchNode(node=str(_require(entry, "node", label)), deadline=deadline)
    if kind == "profit_target":
        return ProfitTarget(profit_cents=int(_require(entry, "profit_cents", label)), deadline=deadline)
    if kind == "survive_event":
        return SurviveEvent(event_id=str(_require(entry, "event_id", label)), deadline=deadline)
    raise ScenarioError(f"unknown goal kind {kind!r}")


def parse_fail_condition(entry: Mapping[str, Any]) -> FailCondition:
    kind = str(_require(entry, "kind", "fail condition"))
    label = f"fail condition {kind}"
    if kind == "cash_below":
        return CashBelow(threshold_cents=int(_require(entry, "threshold_cents", label)))
    if kind == "share_below":
        return ShareBelow(
            segment=str(_require(entry, "segment", label)),
            min_share=float(_require(entry, "min_share", label)),
            deadline=_parse_date(_require(entry, "deadline", label), f"{label} deadline"),
        )
    raise ScenarioError(f"unknown fail condition kind {kind!r}")


def parse_tutorial(entry: Mapping[str, Any]) -> TutorialConfig:
    steps = [
        TutorialStepInfo(
            id=str(_require(step, "id", "tutorial step")),
            desc=str(step.get("desc", "")),
            hint=str(step.get("hint", "")),
            nav=str(step.get("nav", "")),
        )
        for step in entry.get("steps", [])
    ]
    return TutorialConfig(
        cash_threshold_cents_month24=int(entry.get("cash_threshold_cents_month24", 0)),
        steps=steps,
    )


def parse_scenario(data: Mapping[str, Any]) -> CampaignScenario:
    """Parse card: plain mapping (as loaded from YAML/JSON by the host) into a scenario."""
    start = _parse_date(_require(data, "start_date", "scenario"), "start_date")
    end = _parse_date(_require(data, "end_date", "scenario"), "end_date")
    if end < start:
        raise ScenarioError(f"scenario ends ({end}) before it starts ({start})")
    tutorial_raw = data.get("tutorial")
    try:
        return CampaignScenario(
            name=str(data.get("name", "campaign")),
            start_date=start,
            end_date=end,
            player_start_cash_cents=int(_require(data, "player_start_cash_cents", "scenario")),
            goals=[parse_goal(g) for g in data.get("goals", [])],
            fail_conditions=[parse_fail_condition(f) for f in data.get("fail_conditions", [])],
            ai_companies=int(data.get("ai_companies", 0)),
            difficulty=str(data.get("difficulty", "normal")),
            tutorial=parse_tutorial(tutorial_raw) if tutorial_raw else None,
        )
    except (TypeError, ValueError) as exc:
        if isinstance(exc, ScenarioError):
            raise
        raise ScenarioError(f"malformed scenario: {exc}") from exc


def parse_scenario_json(text: str) -> CampaignScenario:
    try:
        data: Dict[str, Any] = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ScenarioError(f"scenario is not valid JSON: {exc}") from exc
    return parse_scenario(data)
