"""
Tests for the command-line interface.
"""

from pathlib import Path

import pandas as pd
import pytest
from click.testing import CliRunner

from rebalance_sim.cli import main


@pytest.fixture
def config_file(tmp_path: Path, csv_data_dir: Path) -> Path:
    output_dir = tmp_path / "results"
    path = tmp_path / "config.yaml"
    path.write_text(
        f"data_dir: {csv_data_dir}\n"
        f"output_dir: {output_dir}\n"
        f"decision_log: {output_dir / 'decision_log.jsonl'}\n"
        "log_level: WARNING\n"
    )
    return path


class TestRunCommand:
    """Tests for the run command."""

    def test_run_single_simulation(self, config_file, tmp_path):
        result = CliRunner().invoke(main, ["run", "-c", str(config_file), "-s", "SIM1"])

        assert result.exit_code == 0, result.output
        assert "Simulation SIM1" in result.output
        assert "Market Value" in result.output

        output_dir = tmp_path / "results"
        stats = pd.read_csv(output_dir / "Stats.csv")
        assert list(stats["SimulationId"]) == ["SIM1"]
        assert (output_dir / "SIM1" / "snapshots.csv").exists()
        assert (output_dir / "SIM1" / "holdings.csv").exists()
        assert (output_dir / "decision_log.jsonl").exists()

    def test_run_all_simulations(self, config_file, tmp_path):
        result = CliRunner().invoke(main, ["run", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        stats = pd.read_csv(tmp_path / "results" / "Stats.csv")
        assert list(stats["SimulationId"]) == ["SIM1", "SIM2"]

    def test_unknown_simulation(self, config_file):
        result = CliRunner().invoke(main, ["run", "-c", str(config_file), "-s", "NOPE"])

        assert result.exit_code == 1
        assert "NOPE" in result.output

    def test_missing_data_dir(self, config_file, tmp_path):
        result = CliRunner().invoke(
            main, ["run", "-c", str(config_file), "-d", str(tmp_path / "missing")]
        )

        assert result.exit_code == 1
        assert "Data directory not found" in result.output


class TestSweepCommand:
    """Tests for the sweep command."""

    def test_sweep(self, config_file, tmp_path):
        result = CliRunner().invoke(
            main,
            ["sweep", "-c", str(config_file), "-s", "SIM2", "--end", "2024-01-21"],
        )

        assert result.exit_code == 0, result.output
        assert "Completed 3 runs" in result.output
        stats = pd.read_csv(tmp_path / "results" / "InceptionStart.csv")
        assert list(stats["StartDate"]) == ["2024-01-01", "2024-01-11", "2024-01-21"]

    def test_invalid_end_date(self, config_file):
        result = CliRunner().invoke(
            main, ["sweep", "-c", str(config_file), "-s", "SIM2", "--end", "Jan 21"]
        )

        assert result.exit_code == 1
        assert "Invalid date format" in result.output


class TestValidateCommand:
    """Tests for the validate command."""

    def test_valid_data_set(self, config_file):
        result = CliRunner().invoke(main, ["validate", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "OK   SIM1" in result.output
        assert "2 simulations checked, 0 failed" in result.output

    def test_bad_allocation(self, config_file, csv_data_dir):
        (csv_data_dir / "M1_ModelPortfolioAssets.csv").write_text(
            "Ticker,Allocation,CashReserve\n"
            "AAA,0.5,\n"
            "BBB,0.4,\n"
            "$CAD,0.2,0\n"
        )

        result = CliRunner().invoke(main, ["validate", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "FAIL SIM1" in result.output


def test_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output
