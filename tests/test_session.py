"""
Session guard and persistence hand-off tests.

Run with: pytest tests/test_session.py -v
"""
from datetime import date
from decimal import Decimal

import pytest

from chiptycoon.model.domain import ValidationError
from chiptycoon.model.scenarios import minimal_world, single_node_world
from chiptycoon.model.session import SimSession, SimulationBusy
from chiptycoon.model.snapshot import (
    ContractRow,
    export_rows,
    rehydrate,
    rows_as_dicts,
    world_from_bytes,
    world_to_bytes,
)
from chiptycoon.model.world_model import ChipModel


# =============================================================================
# SESSION
# =============================================================================

class TestSession:
    """One request at a time; a second one fails fast."""

    def test_tick_and_quarter(self, model):
        session = SimSession(model)
        snapshot, rows = session.tick(2)
        assert snapshot.months_run == 2
        assert len(rows) == 2
        assert session.tick_quarter()[0].months_run == 5
        assert session.busy is False

    def test_busy_rejects_second_request(self, model):
        session = SimSession(model)
        with session.exclusive():
            assert session.busy is True
            with pytest.raises(SimulationBusy):
                session.tick(1)
            with pytest.raises(SimulationBusy):
                session.apply_price_delta(-0.05)
        assert session.busy is False
        assert model.state.stats.months_run == 0

    def test_busy_clears_after_error(self, model):
        session = SimSession(model)
        with pytest.raises(ValueError):
            session.apply_capacity_request(0, 12)
        assert session.busy is False
        assert session.apply_rd_delta(100) == 100

    def test_intents_pass_through(self, model):
        session = SimSession(model)
        assert session.apply_tapeout_request(0.5, 124.0, "N90") == date(1990, 10, 1)
        assert "foundry-a" in session.apply_capacity_request(500, 6)
        session.set_difficulty("hard")
        assert model.state.difficulty == "hard"

    def test_dry_run_leaves_model(self, model):
        session = SimSession(model)
        rows = session.dry_run(4)
        assert [row["month_index"] for row in rows] == [1, 2, 3, 4]
        assert session.snapshot().months_run == 0


# =============================================================================
# PERSISTENCE
# =============================================================================

class TestWorldBlob:

    def test_blob_restores_world(self):
        world = minimal_world()
        restored = world_from_bytes(world_to_bytes(world))
        assert restored == world
        assert restored.tech_tree[0].wafer_cost_usd == Decimal("1000.00")

    def test_blob_is_json_text(self):
        assert world_to_bytes(single_node_world()).startswith(b"{")

    def test_corrupt_blob(self):
        with pytest.raises(ValidationError):
            world_from_bytes(b"\xff\x00")
        with pytest.raises(ValidationError):
            world_from_bytes(b'{"macro": {}}')

    def test_blob_is_revalidated(self):
        world = minimal_world()
        world.tech_tree[0].yield_baseline = 3.0
        with pytest.raises(ValidationError):
            world_from_bytes(world_to_bytes(world))


class TestRows:
    """Contracts and the product pipeline survive a trip through flat rows."""

    def test_rehydrate_into_fresh_model(self, model):
        model.apply_capacity_request(1000, 12, take_or_pay_frac=0.0)
        model.apply_tapeout_request(0.6, 100.0, "N90")
        model.apply_tapeout_request(0.7, 100.0, "N90", expedite=True)
        model.advance(7)
        contracts, tapeouts, released = export_rows(model)
        assert ContractRow.from_contract(model.state.capacity.contracts[0]).billing_model == "pay_as_used"
        assert rows_as_dicts(contracts)[0]["start"] == "1990-01-01"

        fresh = ChipModel(single_node_world())
        rehydrate(fresh, contracts, tapeouts, released)
        assert fresh.state.capacity.contracts == model.state.capacity.contracts
        assert fresh.state.pipeline.queue == model.state.pipeline.queue
        assert [p.spec for p in fresh.state.pipeline.released] == [p.spec for p in model.state.pipeline.released]
        assert fresh.state.appeal == pytest.approx(0.05 * len(released))
        assert fresh.state.pricing.unit_cost_usd == model.state.pricing.unit_cost_usd
