"""I keep this as the CLI entry point for the chip tycoon core so I can run the 1990s campaign,
watch the monthly KPIs, and keep telemetry plus the chronicle for later comparison."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from statistics import mean
from typing import Optional

import pandas as pd

from chiptycoon.model.log_utils import fmt_share, fmt_usd
from chiptycoon.model.scenarios import campaign_1990s_model

log = logging.getLogger(__name__)


@dataclass
class RunConfig:
    """I centralise the key knobs (months, seed, difficulty, outputs) so demo runs stay comparable."""

    months: int = 24
    seed: int = 42
    difficulty: Optional[str] = None
    save_telemetry: bool = True
    save_chronicle: bool = True
    log_level: str = "INFO"


def run_demo(
    months: int = 24,
    seed: int = 42,
    difficulty: Optional[str] = None,
    save_outputs: bool = True,
    config: Optional[RunConfig] = None,
) -> pd.DataFrame:
    """I build the 1990s campaign, advance it month by month, and optionally persist the artifacts.

    :param months: I control how many monthly ticks to run.
    :param seed: I pass this seed into the model for deterministic runs.
    :param difficulty: I override the scenario's difficulty preset when I want a quick comparison.
    :param save_outputs: I set this to False if I do not want telemetry or chronicle files.
    :param config: I pass a ``RunConfig`` when I want to manage all knobs from one object.
    """
    if config is None:
        config = RunConfig(
            months=months,
            seed=seed,
            difficulty=difficulty,
            save_telemetry=save_outputs,
            save_chronicle=save_outputs,
        )
    logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    model = campaign_1990s_model(seed=config.seed, difficulty=config.difficulty)
    for _ in range(config.months):
        model.step()
        campaign = model.state.campaign
        if campaign is not None and campaign.outcome.value != "in_progress":
            print(f"Campaign ended ({campaign.outcome.value}) at month {model.state.stats.months_run}.")
            break

    frame = pd.DataFrame([row.to_dict() for row in model.telemetry])
    run_dir = _make_run_dir(config.seed, config.difficulty) if config.save_telemetry or config.save_chronicle else None
    if config.save_telemetry and not frame.empty:
        csv_path = run_dir / "telemetry.csv"
        frame.to_csv(csv_path, index=False)
        json_path = csv_path.with_suffix(".json")
        json_path.write_text(json.dumps([row.to_dict() for row in model.telemetry], indent=2), encoding="utf-8")
        print(f"Saved telemetry to {csv_path.resolve()}")
    if config.save_chronicle:
        chronicle_path = run_dir / "chronicle.json"
        chronicle_path.write_text(json.dumps(model.chronicle, indent=2, default=str), encoding="utf-8")
        print(f"Saved chronicle to {chronicle_path.resolve()}")
    summarize_telemetry(frame)
    return frame


def summarize_telemetry(frame: pd.DataFrame) -> None:
    """I print quick stats from the telemetry frame so I can sanity-check a run at a glance."""
    if frame.empty:
        print("Telemetry is empty.")
        return
    last = frame.iloc[-1]
    print("Telemetry summary:")
    print(f"  Months run: {len(frame)} (through {last['date']})")
    print(f"  Units sold: {int(frame['sold_units'].sum()):,}, produced: {int(frame['output_units'].sum()):,}")
    print(f"  Revenue: {fmt_usd(frame['revenue_cents'].sum())}, final cash: {fmt_usd(last['cash_cents'])}")
    print(f"  ASP: {fmt_usd(frame['asp_cents'].min())} .. {fmt_usd(frame['asp_cents'].max())}")
    print(f"  Share: mean {fmt_share(mean(frame['market_share']))}, final {fmt_share(last['market_share'])}")


def _make_run_dir(seed: int, difficulty: Optional[str], root: Path = Path("logs")) -> Path:
    """I give every campaign run its own stamped folder so two runs never share artifacts."""
    label = f"campaign_{datetime.now():%Y%m%d-%H%M%S}_{difficulty or 'scenario'}_s{seed}"
    run_dir = root / label
    attempt = 1
    while True:
        try:
            run_dir.mkdir(parents=True)
            break
        except FileExistsError:
            attempt += 1
            run_dir = root / f"{label}-{attempt}"
    log.info("Writing run artifacts to %s", run_dir)
    return run_dir


if __name__ == "__main__":
    raw = input("How many months should the simulation run for? [default: 24] ")
    try:
        months = int(raw.strip()) if raw.strip() else 24
        if months <= 0:
            print("Months must be positive, defaulting to 24.")
            months = 24
    except ValueError:
        print("Invalid input, defaulting to 24 months.")
        months = 24

    seed_raw = input("Which seed should I use? [default: 42] ")
    try:
        seed_value = int(seed_raw.strip()) if seed_raw.strip() else 42
    except ValueError:
        print("Invalid seed, defaulting to 42.")
        seed_value = 42

    run_demo(months=months, seed=seed_value)
