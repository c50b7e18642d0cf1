"""
Integration tests for the command line interface.
"""

import pytest
from click.testing import CliRunner

from vendue.cli.main import cli
from vendue.utils.logger import VendueLogger


@pytest.fixture(autouse=True)
def reset_logging():
    """The CLI binds log handlers to the runner's stream; drop them afterwards."""
    yield
    VendueLogger.reset()


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, data_dir, *args):
    return runner.invoke(cli, ["--data-dir", str(data_dir), *args])


class TestDemo:
    """Tests for the demo command."""

    def test_demo_settles(self, runner, tmp_path):
        result = invoke(runner, tmp_path, "demo")

        assert result.exit_code == 0, result.output
        assert "BID_TOO_LOW" in result.output
        assert "Settled: SETTLED_TO_WINNER" in result.output
        assert "Bob holds asset: True" in result.output
        assert "Escrow balance: 0" in result.output
        assert (tmp_path / "ledger.db").exists()

    def test_demo_reusing_id_fails(self, runner, tmp_path):
        assert invoke(runner, tmp_path, "demo").exit_code == 0

        result = invoke(runner, tmp_path, "demo")

        assert result.exit_code != 0
        assert "ADDRESS_COLLISION" in result.output


class TestInspection:
    """Tests for show and stats."""

    def test_show_after_demo(self, runner, tmp_path):
        invoke(runner, tmp_path, "demo", "--auction-id", "3", "--min-bid", "4")

        result = invoke(runner, tmp_path, "show", "3")

        assert result.exit_code == 0, result.output
        assert "SETTLED_TO_WINNER" in result.output
        assert "Highest bid:    8" in result.output
        assert "Escrow:         0" in result.output

    def test_show_missing(self, runner, tmp_path):
        result = invoke(runner, tmp_path, "show", "99")
        assert result.exit_code != 0
        assert "not found" in result.output

    def test_stats(self, runner, tmp_path):
        invoke(runner, tmp_path, "demo")

        result = invoke(runner, tmp_path, "stats")

        assert result.exit_code == 0, result.output
        assert "vendue.auction" in result.output
        assert "journal_entries:" in result.output
