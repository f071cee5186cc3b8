"""
Command-line interface for the rebalancing simulator.

Provides commands for:
- run: Run configured simulations to completion
- sweep: Re-run one simulation from successive inception dates
- validate: Check a data set without simulating
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from rebalance_sim.config import ConfigurationError, load_run_config, parse_date
from rebalance_sim.data import CsvDataSource, DataLoadError
from rebalance_sim.logging import DecisionLogger
from rebalance_sim.models import (
    HoldingSnapshot,
    PortfolioStats,
    RunConfig,
    SimulationError,
    ThresholdMixedPolicy,
)
from rebalance_sim.simulation import (
    SimulationResult,
    append_stats_record,
    run_inception_sweep,
    run_simulation,
    validate_simulation,
)


def _load_settings(
    config: Optional[str],
    data_dir: Optional[str],
    output_dir: Optional[str],
    schedule: Optional[str],
) -> RunConfig:
    """Load the run configuration and apply command-line overrides."""
    try:
        settings = load_run_config(config) if config else RunConfig()
    except ConfigurationError as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)

    if data_dir:
        settings.data_dir = data_dir
    if output_dir:
        settings.output_dir = output_dir
    if schedule:
        settings.schedule = schedule

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    return settings


def _open_decision_log(settings: RunConfig, config: Optional[str]) -> DecisionLogger:
    decision_logger = DecisionLogger(settings.decision_log)
    decision_logger.log_config_loaded(settings, config)
    return decision_logger


def _open_data_source(settings: RunConfig) -> CsvDataSource:
    try:
        return CsvDataSource(settings.data_dir, default_schedule=settings.schedule)
    except DataLoadError as e:
        click.echo(f"Error loading data: {e}", err=True)
        sys.exit(1)


def _policy(settings: RunConfig) -> ThresholdMixedPolicy:
    return ThresholdMixedPolicy(
        threshold=settings.threshold,
        trading_expense_threshold=settings.trading_expense_threshold,
    )


def _echo_holdings(holdings: list[HoldingSnapshot]) -> None:
    click.echo(
        f"  {'Ticker':<10} {'Units':>12} {'Book Value':>14} {'Last Price':>11} "
        f"{'Market Value':>14} {'Dividends':>11} {'Fees':>9}"
    )
    for h in holdings:
        click.echo(
            f"  {h.ticker:<10} {h.units:>12,.2f} {h.book_value:>14,.2f} {h.last_price:>11,.2f} "
            f"{h.market_value:>14,.2f} {h.dividends_paid:>11,.2f} {h.management_cost:>9,.2f}"
        )


def _echo_stats(stats: PortfolioStats) -> None:
    click.echo(f"  Initial Value:      ${stats.initial_value:,.2f}")
    click.echo(f"  Book Cost:          ${stats.book_cost:,.2f}")
    click.echo(f"  Market Value:       ${stats.market_value:,.2f}")
    click.echo(f"  Dividends Paid:     ${stats.dividends_paid:,.2f}")
    click.echo(f"  Management Exp.:    ${stats.management_expenses:,.2f}")
    click.echo(f"  Total Return:       ${stats.total_return:,.2f} ({stats.total_return_rate:.2%})")
    click.echo(f"  Annualized Return:  {stats.annualized_return_rate:.2%}")
    click.echo(f"  Max Drawdown:       {stats.max_drawdown:.2%}")
    click.echo(f"  Volatility (ann.):  {stats.annualized_volatility:.2%}")
    click.echo(f"  Days:               {stats.days}")


@click.group()
@click.version_option(version="0.1.0", prog_name="rebalance-sim")
def main():
    """
    Portfolio rebalancing simulator.

    Replays historical quotes and dividends day by day and rebalances a
    portfolio toward its model portfolio on a periodic schedule.
    """
    pass


@main.command()
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    default=None,
    help="Path to run configuration YAML file",
)
@click.option(
    "--data-dir", "-d",
    type=click.Path(),
    default=None,
    help="Data directory. Defaults to config data_dir.",
)
@click.option(
    "--simulation", "-s",
    "simulation_ids",
    multiple=True,
    help="Simulation to run (repeatable). Defaults to all.",
)
@click.option(
    "--output-dir", "-o",
    type=click.Path(),
    default=None,
    help="Output directory. Defaults to config output_dir.",
)
@click.option(
    "--schedule",
    type=click.Choice(["daily", "monthly", "quarterly", "semiannual"]),
    default=None,
    help="Default rebalancing schedule. Defaults to config schedule.",
)
def run(
    config: Optional[str],
    data_dir: Optional[str],
    simulation_ids: tuple[str, ...],
    output_dir: Optional[str],
    schedule: Optional[str],
):
    """
    Run simulations to completion.

    Prints final holdings and statistics for each simulation, saves daily
    snapshots and holdings, and appends one row per run to the stats file.
    """
    settings = _load_settings(config, data_dir, output_dir, schedule)
    decision_logger = _open_decision_log(settings, config)
    source = _open_data_source(settings)

    click.echo(f"Loading simulations from {settings.data_dir}...")
    try:
        if simulation_ids:
            simulations = [source.get_simulation(s) for s in simulation_ids]
        else:
            simulations = source.get_simulation_parameters()
    except DataLoadError as e:
        click.echo(f"Error loading data: {e}", err=True)
        sys.exit(1)

    if not simulations:
        click.echo("No simulations configured", err=True)
        sys.exit(1)

    out_dir = Path(settings.output_dir)
    stats_path = out_dir / settings.stats_file

    for parameters in simulations:
        click.echo()
        click.echo(
            f"Simulation {parameters.simulation_id}: "
            f"{parameters.inception_date} to {parameters.stop_date}"
        )
        try:
            result = run_simulation(
                parameters,
                decision_logger=decision_logger,
                rebalancing_policy=_policy(settings),
                allocation_tolerance=settings.allocation_tolerance,
            )
        except SimulationError as e:
            click.echo(f"Error running simulation {parameters.simulation_id}: {e}", err=True)
            sys.exit(1)

        _echo_holdings(result.holdings)
        click.echo()
        _echo_stats(result.stats)

        paths = result.save_outputs(out_dir / parameters.simulation_id)
        append_stats_record(stats_path, result)
        for name, path in paths.items():
            click.echo(f"  - {name}: {path}")

    click.echo()
    click.echo(f"Statistics appended to: {stats_path}")


@main.command()
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    default=None,
    help="Path to run configuration YAML file",
)
@click.option(
    "--data-dir", "-d",
    type=click.Path(),
    default=None,
    help="Data directory. Defaults to config data_dir.",
)
@click.option(
    "--simulation", "-s",
    "simulation_id",
    required=True,
    help="Simulation to sweep",
)
@click.option(
    "--start",
    type=str,
    default=None,
    help="First inception date (YYYY-MM-DD). Defaults to the simulation's inception date.",
)
@click.option(
    "--end",
    type=str,
    required=True,
    help="Last inception date (YYYY-MM-DD)",
)
@click.option(
    "--step-days",
    type=int,
    default=10,
    help="Days between inception dates (default: 10)",
)
@click.option(
    "--output-dir", "-o",
    type=click.Path(),
    default=None,
    help="Output directory. Defaults to config output_dir.",
)
@click.option(
    "--stats-file",
    type=str,
    default="InceptionStart.csv",
    help="Stats CSV inside the output directory (default: InceptionStart.csv)",
)
def sweep(
    config: Optional[str],
    data_dir: Optional[str],
    simulation_id: str,
    start: Optional[str],
    end: str,
    step_days: int,
    output_dir: Optional[str],
    stats_file: str,
):
    """
    Run one simulation from successive inception dates.

    Every run starts from the same initial portfolio and stops on the
    simulation's stop date, which shows how the outcome depends on the
    starting point.

    Example:
        rebalance-sim sweep -s Balanced --end 2015-12-31 --step-days 10
    """
    settings = _load_settings(config, data_dir, output_dir, None)
    decision_logger = _open_decision_log(settings, config)
    source = _open_data_source(settings)

    try:
        parameters = source.get_simulation(simulation_id)
    except DataLoadError as e:
        click.echo(f"Error loading data: {e}", err=True)
        sys.exit(1)

    try:
        start_date = parse_date(start, "start") if start else parameters.inception_date
        end_date = parse_date(end, "end")
    except ConfigurationError as e:
        click.echo(f"{e}", err=True)
        sys.exit(1)

    if step_days <= 0:
        click.echo(f"--step-days must be positive, got {step_days}", err=True)
        sys.exit(1)

    stats_path = Path(settings.output_dir) / stats_file

    def progress(result: SimulationResult) -> None:
        append_stats_record(stats_path, result)
        click.echo(
            f"  {result.inception_date}  total return {result.stats.total_return_rate:8.2%}  "
            f"annualized {result.stats.annualized_return_rate:8.2%}"
        )

    click.echo(f"Sweeping {simulation_id} inception dates {start_date} to {end_date}...")
    try:
        results = run_inception_sweep(
            parameters,
            start_date,
            end_date,
            step_days=step_days,
            decision_logger=decision_logger,
            rebalancing_policy=_policy(settings),
            allocation_tolerance=settings.allocation_tolerance,
            progress_callback=progress,
        )
    except SimulationError as e:
        click.echo(f"\nError running sweep: {e}", err=True)
        sys.exit(1)

    click.echo()
    click.echo(f"Completed {len(results)} runs. Statistics saved to: {stats_path}")


@main.command()
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    default=None,
    help="Path to run configuration YAML file",
)
@click.option(
    "--data-dir", "-d",
    type=click.Path(),
    default=None,
    help="Data directory. Defaults to config data_dir.",
)
def validate(config: Optional[str], data_dir: Optional[str]):
    """
    Validate a data set.

    Loads every simulation and checks model allocations, cash holdings and
    dates without running anything. Holdings outside the model portfolio are
    reported as warnings.
    """
    settings = _load_settings(config, data_dir, None, None)
    source = _open_data_source(settings)

    try:
        simulations = source.get_simulation_parameters()
    except DataLoadError as e:
        click.echo(f"Error loading data: {e}", err=True)
        sys.exit(1)

    failures = 0
    for parameters in simulations:
        try:
            orphans = validate_simulation(parameters, settings.allocation_tolerance)
        except SimulationError as e:
            failures += 1
            click.echo(f"  FAIL {parameters.simulation_id}: {e}", err=True)
            continue

        click.echo(f"  OK   {parameters.simulation_id}")
        for ticker in orphans:
            click.echo(f"       warning: {ticker} is not in the model portfolio")

    click.echo()
    click.echo(f"{len(simulations)} simulations checked, {failures} failed")
    if failures:
        sys.exit(1)


if __name__ == "__main__":
    main()
