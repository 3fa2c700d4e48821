"""
Runner artifact tests.

Run with: pytest tests/test_main.py -v
"""
from main import _make_run_dir


class TestRunDir:
    """Each run writes into a folder of its own."""

    def test_names_carry_difficulty_and_seed(self, tmp_path):
        run_dir = _make_run_dir(7, "hard", root=tmp_path)
        assert run_dir.is_dir()
        assert run_dir.parent == tmp_path
        assert run_dir.name.startswith("campaign_")
        assert run_dir.name.endswith("_hard_s7")

    def test_same_second_runs_do_not_collide(self, tmp_path):
        first = _make_run_dir(42, None, root=tmp_path)
        second = _make_run_dir(42, None, root=tmp_path)
        assert first != second
        assert first.name.endswith("_scenario_s42")
        assert second.is_dir()
