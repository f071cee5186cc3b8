"""
Simulation orchestration and result persistence.

Runs a single simulation to completion, or a sweep of simulations that share
the same inputs but start on successive inception dates, and writes results
as CSV files.
"""

import dataclasses
import logging
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Callable, Optional

import pandas as pd

from rebalance_sim.logging.decision_log import DecisionLogger
from rebalance_sim.models import (
    DailySnapshot,
    HoldingSnapshot,
    PortfolioStats,
    RebalancingPolicy,
    SimulationParameters,
)
from rebalance_sim.simulation.engine import SimulationEngine

logger = logging.getLogger(__name__)

STATS_COLUMNS = [
    "SimulationId",
    "StartDate",
    "InitialValue",
    "MarketValue",
    "DividendsPaid",
    "ManagementExpenses",
    "TotalReturn",
    "TotalReturnRate",
    "AnnualizedReturnRate",
]


class SimulationResult:
    """Container for the results of one simulation run."""

    def __init__(
        self,
        parameters: SimulationParameters,
        stats: PortfolioStats,
        snapshots: list[DailySnapshot],
        holdings: list[HoldingSnapshot],
    ):
        self.parameters = parameters
        self.stats = stats
        self.snapshots = snapshots
        self.holdings = holdings

    @property
    def simulation_id(self) -> str:
        return self.parameters.simulation_id

    @property
    def inception_date(self) -> date:
        return self.parameters.inception_date

    def snapshots_to_dataframe(self) -> pd.DataFrame:
        """Convert daily snapshots to DataFrame."""
        records = []
        for snap in self.snapshots:
            records.append({
                "date": snap.date,
                "market_value": float(snap.market_value),
                "cash": float(snap.cash),
                "book_value": float(snap.book_value),
                "dividends_paid": float(snap.dividends_paid),
                "management_cost": float(snap.management_cost),
            })
        return pd.DataFrame(records)

    def holdings_to_dataframe(self) -> pd.DataFrame:
        """Convert final holdings to DataFrame."""
        records = []
        for holding in self.holdings:
            records.append({
                "ticker": holding.ticker,
                "units": float(holding.units),
                "book_value": float(holding.book_value),
                "book_price": float(holding.book_price),
                "last_price": float(holding.last_price),
                "market_value": float(holding.market_value),
                "dividends_paid": float(holding.dividends_paid),
                "management_cost": float(holding.management_cost),
                "is_cash": holding.is_cash,
            })
        return pd.DataFrame(records)

    def to_stats_record(self) -> dict:
        """One statistics row, keyed by the stats CSV column names."""
        return {
            "SimulationId": self.simulation_id,
            "StartDate": self.inception_date.isoformat(),
            "InitialValue": self.stats.initial_value,
            "MarketValue": self.stats.market_value,
            "DividendsPaid": self.stats.dividends_paid,
            "ManagementExpenses": self.stats.management_expenses,
            "TotalReturn": self.stats.total_return,
            "TotalReturnRate": self.stats.total_return_rate,
            "AnnualizedReturnRate": self.stats.annualized_return_rate,
        }

    def save_outputs(self, output_dir: str | Path) -> dict[str, Path]:
        """
        Save simulation outputs to files.

        Args:
            output_dir: Directory to save outputs

        Returns:
            Dictionary mapping output type to file path
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        paths = {}

        snapshots_path = output_dir / "snapshots.csv"
        self.snapshots_to_dataframe().to_csv(snapshots_path, index=False)
        paths["snapshots"] = snapshots_path

        holdings_path = output_dir / "holdings.csv"
        self.holdings_to_dataframe().to_csv(holdings_path, index=False)
        paths["holdings"] = holdings_path

        return paths


def run_simulation(
    parameters: SimulationParameters,
    decision_logger: Optional[DecisionLogger] = None,
    rebalancing_policy: Optional[RebalancingPolicy] = None,
    allocation_tolerance: Decimal = Decimal("0.0001"),
) -> SimulationResult:
    """
    Run one simulation to completion.

    Args:
        parameters: Simulation inputs
        decision_logger: Optional reporting port
        rebalancing_policy: Policy override for the simulated portfolio
        allocation_tolerance: Allowed deviation of model allocations from 1

    Returns:
        SimulationResult with statistics, daily snapshots and final holdings
    """
    engine = SimulationEngine(
        parameters,
        decision_logger=decision_logger,
        allocation_tolerance=allocation_tolerance,
        rebalancing_policy=rebalancing_policy,
    )
    stats = engine.run()

    return SimulationResult(
        parameters=parameters,
        stats=stats,
        snapshots=engine.snapshots,
        holdings=engine.holdings_snapshot(),
    )


def inception_dates(start: date, end: date, step_days: int = 10) -> list[date]:
    """Inception dates from start to end (inclusive), step_days apart."""
    if step_days <= 0:
        raise ValueError(f"step_days must be positive, got {step_days}")

    dates = []
    current = start
    while current <= end:
        dates.append(current)
        current += timedelta(days=step_days)
    return dates


def run_inception_sweep(
    parameters: SimulationParameters,
    start: date,
    end: date,
    step_days: int = 10,
    decision_logger: Optional[DecisionLogger] = None,
    rebalancing_policy: Optional[RebalancingPolicy] = None,
    allocation_tolerance: Decimal = Decimal("0.0001"),
    progress_callback: Optional[Callable[[SimulationResult], None]] = None,
) -> list[SimulationResult]:
    """
    Run the same simulation from successive inception dates.

    Each run starts from its own clone of the initial portfolio and stops on
    the template stop date.

    Args:
        parameters: Template simulation inputs
        start: First inception date
        end: Last inception date
        step_days: Days between inception dates
        decision_logger: Optional reporting port shared by all runs
        rebalancing_policy: Policy override for the simulated portfolio
        allocation_tolerance: Allowed deviation of model allocations from 1
        progress_callback: Called with each finished result

    Returns:
        One SimulationResult per inception date
    """
    results = []
    for inception in inception_dates(start, end, step_days):
        run_parameters = dataclasses.replace(parameters, inception_date=inception)
        logger.info("%s: running from %s", parameters.simulation_id, inception)
        result = run_simulation(
            run_parameters,
            decision_logger=decision_logger,
            rebalancing_policy=rebalancing_policy,
            allocation_tolerance=allocation_tolerance,
        )
        results.append(result)
        if progress_callback:
            progress_callback(result)

    return results


def append_stats_record(path: str | Path, result: SimulationResult) -> Path:
    """
    Append one statistics row to a CSV file.

    The header is written only when the file does not exist yet.

    Args:
        path: Statistics CSV path
        result: Finished simulation

    Returns:
        Path of the statistics file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    write_header = not path.exists() or path.stat().st_size == 0
    row = pd.DataFrame([result.to_stats_record()], columns=STATS_COLUMNS)
    row.to_csv(path, mode="a", header=write_header, index=False)
    return path
