"""
Tests for single runs, inception sweeps and result persistence.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pandas as pd
import pytest

from rebalance_sim.models import ThresholdMixedPolicy
from rebalance_sim.simulation.backtest import (
    STATS_COLUMNS,
    append_stats_record,
    inception_dates,
    run_inception_sweep,
    run_simulation,
)


class TestRunSimulation:
    """Tests for run_simulation."""

    def test_result_contents(self, cash_only_parameters):
        result = run_simulation(cash_only_parameters)

        assert result.simulation_id == "SIM1"
        assert result.inception_date == date(2024, 1, 1)
        assert result.stats.market_value == Decimal("1000")
        assert len(result.snapshots) == 11
        assert {h.ticker for h in result.holdings} == {"AAA", "$CAD"}

    def test_policy_override(self, cash_only_parameters):
        """A 60% threshold leaves the cash undeployed after inception."""
        parameters = replace(cash_only_parameters, force_initial_rebalancing=False)

        result = run_simulation(
            parameters, rebalancing_policy=ThresholdMixedPolicy(threshold=Decimal("0.6"))
        )

        assert {h.ticker for h in result.holdings} == {"$CAD"}

    def test_stats_record(self, cash_only_parameters):
        record = run_simulation(cash_only_parameters).to_stats_record()

        assert list(record) == STATS_COLUMNS
        assert record["StartDate"] == "2024-01-01"
        assert record["InitialValue"] == Decimal("1000")


class TestInceptionDates:
    """Tests for inception date generation."""

    def test_inclusive_steps(self):
        assert inception_dates(date(2024, 1, 1), date(2024, 1, 21)) == [
            date(2024, 1, 1),
            date(2024, 1, 11),
            date(2024, 1, 21),
        ]

    def test_single_date(self):
        assert inception_dates(date(2024, 1, 1), date(2024, 1, 1)) == [date(2024, 1, 1)]

    def test_step_must_be_positive(self):
        with pytest.raises(ValueError):
            inception_dates(date(2024, 1, 1), date(2024, 1, 21), step_days=0)


class TestInceptionSweep:
    """Tests for run_inception_sweep."""

    def test_sweep(self, cash_only_parameters):
        parameters = replace(cash_only_parameters, stop_date=date(2024, 2, 15))
        seen = []

        results = run_inception_sweep(
            parameters,
            start=date(2024, 1, 1),
            end=date(2024, 1, 21),
            progress_callback=seen.append,
        )

        assert [r.inception_date for r in results] == [
            date(2024, 1, 1),
            date(2024, 1, 11),
            date(2024, 1, 21),
        ]
        assert seen == results
        assert all(r.simulation_id == "SIM1" for r in results)
        assert [r.stats.days for r in results] == [46, 36, 26]

    def test_sweep_leaves_template_untouched(self, cash_only_parameters):
        parameters = replace(cash_only_parameters, stop_date=date(2024, 2, 15))

        run_inception_sweep(parameters, start=date(2024, 1, 1), end=date(2024, 1, 11))

        assert parameters.inception_date == date(2024, 1, 1)
        assert parameters.initial_portfolio.cash == Decimal("1000")
        assert parameters.initial_portfolio.get_asset("AAA") is None


class TestPersistence:
    """Tests for CSV output."""

    def test_save_outputs(self, cash_only_parameters, temp_output_dir):
        result = run_simulation(cash_only_parameters)

        paths = result.save_outputs(temp_output_dir / "SIM1")

        snapshots = pd.read_csv(paths["snapshots"])
        holdings = pd.read_csv(paths["holdings"])
        assert len(snapshots) == 11
        assert snapshots["market_value"].iloc[-1] == pytest.approx(1000.0)
        assert set(holdings["ticker"]) == {"AAA", "$CAD"}

    def test_append_stats_writes_header_once(self, cash_only_parameters, temp_output_dir):
        stats_path = temp_output_dir / "Stats.csv"
        result = run_simulation(cash_only_parameters)

        append_stats_record(stats_path, result)
        append_stats_record(stats_path, result)

        lines = stats_path.read_text().strip().splitlines()
        assert lines[0].split(",") == STATS_COLUMNS
        assert len(lines) == 3

        frame = pd.read_csv(stats_path)
        assert list(frame["SimulationId"]) == ["SIM1", "SIM1"]
