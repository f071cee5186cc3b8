"""
Core simulation engine for day-by-day rebalancing simulations.

The engine walks the calendar one day at a time from the inception date to
the stop date. Each day it executes any staged trade plan, advances the date,
revalues holdings and accrues dividends. When the rebalancing schedule fires
it pauses so a handler can decide whether to stage a new plan.

A plan staged on day D is executed at the start of the following cycle,
before the date advances. Its orders therefore carry trade date D and are
priced at the first quote on or after D, not at the quote of D+1.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from rebalance_sim.analytics.drift import (
    calculate_drift,
    find_orphaned_holdings,
    summarize_drift,
)
from rebalance_sim.logging.decision_log import DecisionLogger
from rebalance_sim.models import (
    ActionType,
    DailySnapshot,
    HoldingSnapshot,
    PortfolioStats,
    RebalancingPolicy,
    SimulationParameters,
    SimulationSetupError,
    TradePlanItem,
)
from rebalance_sim.portfolio.valuation import (
    rebase_book_costs,
    revalue_portfolio,
    snapshot_portfolio,
    summarize_holdings,
)
from rebalance_sim.simulation.metrics import calculate_portfolio_stats
from rebalance_sim.simulation.schedule import Schedule, ScheduleKind
from rebalance_sim.trading.orders import prepare_trade_orders
from rebalance_sim.trading.settlement import settle_trade_orders
from rebalance_sim.trading.strategy import check_rebalance_needed, generate_trade_plan

logger = logging.getLogger(__name__)


class SimulationPhase(Enum):
    """Lifecycle phase of a simulation engine."""
    INITIALIZING = "INITIALIZING"
    RUNNING = "RUNNING"
    AWAITING_SCHEDULE = "AWAITING_SCHEDULE"
    PLANNING = "PLANNING"
    EXECUTING = "EXECUTING"
    SETTLING = "SETTLING"
    REVALUING = "REVALUING"
    FINISHED = "FINISHED"


def validate_simulation(
    parameters: SimulationParameters,
    allocation_tolerance: Decimal = Decimal("0.0001"),
) -> list[str]:
    """
    Validate simulation inputs before a run.

    Args:
        parameters: Simulation inputs
        allocation_tolerance: Allowed deviation of model allocations from 1

    Returns:
        Tickers held by the initial portfolio but absent from the model

    Raises:
        SimulationSetupError: If the dates are reversed, the model is invalid
            or the portfolio has no cash holding
    """
    if parameters.stop_date < parameters.inception_date:
        raise SimulationSetupError(
            f"Stop date {parameters.stop_date} is before inception date "
            f"{parameters.inception_date}"
        )

    parameters.model_portfolio.validate(allocation_tolerance)

    portfolio = parameters.initial_portfolio
    if portfolio.get_cash_asset() is None:
        raise SimulationSetupError(f"Portfolio {portfolio.name} has no cash holding")

    try:
        ScheduleKind.parse(parameters.schedule_kind)
    except ValueError as e:
        raise SimulationSetupError(str(e)) from e

    return find_orphaned_holdings(portfolio, parameters.model_portfolio)


class SimulationEngine:
    """
    Stateful, single-portfolio simulation.

    Drive it with run(), or step it manually:

        while engine.resume_simulation():
            engine.default_schedule_handler()
    """

    def __init__(
        self,
        parameters: SimulationParameters,
        decision_logger: Optional[DecisionLogger] = None,
        schedule: Optional[Schedule] = None,
        allocation_tolerance: Decimal = Decimal("0.0001"),
        rebalancing_policy: Optional[RebalancingPolicy] = None,
    ):
        """
        Initialize the engine and the simulated portfolio at inception.

        Args:
            parameters: Simulation inputs; the initial portfolio is cloned
            decision_logger: Optional reporting port
            schedule: Rebalancing schedule (defaults to parameters.schedule_kind)
            allocation_tolerance: Allowed deviation of model allocations from 1
            rebalancing_policy: Policy for the simulated portfolio (defaults to
                the initial portfolio's policy)

        Raises:
            SimulationSetupError: If the inputs fail validation
            DataUnavailableError: If a holding has no quote at inception
        """
        self.phase = SimulationPhase.INITIALIZING
        self.parameters = parameters
        self.simulation_id = parameters.simulation_id
        self.decision_logger = decision_logger

        orphans = validate_simulation(parameters, allocation_tolerance)

        self.schedule = schedule or Schedule(ScheduleKind.parse(parameters.schedule_kind))
        self.inception_date = parameters.inception_date
        self.stop_date = parameters.stop_date
        self.current_date = parameters.inception_date
        self.pending_plan: list[TradePlanItem] = []
        self.snapshots: list[DailySnapshot] = []

        self.portfolio = parameters.initial_portfolio.clone()
        self.portfolio.model_portfolio = parameters.model_portfolio
        if rebalancing_policy is not None:
            self.portfolio.rebalancing_policy = rebalancing_policy

        self._log(
            ActionType.SIMULATION_STARTED,
            {
                "portfolio": self.portfolio.name,
                "model_portfolio": parameters.model_portfolio.name,
                "inception_date": self.inception_date.isoformat(),
                "stop_date": self.stop_date.isoformat(),
                "schedule": self.schedule.kind.value,
            },
        )
        for ticker in orphans:
            logger.warning(
                "%s: %s is held but not part of model portfolio %s",
                self.simulation_id, ticker, parameters.model_portfolio.name,
            )
            self._log(
                ActionType.SETUP_WARNING,
                {"ticker": ticker, "reason": "orphaned_holding"},
            )

        revalue_portfolio(self.portfolio, self.current_date, accrue_dividends=False)
        if parameters.set_initial_book_cost:
            rebase_book_costs(self.portfolio)

        self.initial_value = self.portfolio.market_value
        self.snapshots.append(snapshot_portfolio(self.portfolio, self.current_date))
        logger.info(
            "%s: initial market value %s on %s",
            self.simulation_id, self.initial_value, self.current_date,
        )

        if parameters.force_initial_rebalancing:
            self._stage_plan()

        self.phase = SimulationPhase.RUNNING

    @property
    def is_finished(self) -> bool:
        return self.phase is SimulationPhase.FINISHED

    def resume_simulation(self) -> bool:
        """
        Advance the simulation to the next schedule point.

        Returns:
            True when paused on a date where the schedule fired, False once
            the stop date has been passed
        """
        if self.is_finished:
            return False

        self.phase = SimulationPhase.RUNNING
        while self.current_date <= self.stop_date:
            if self.pending_plan:
                self._execute_pending_plan()

            self.current_date += timedelta(days=1)

            self.phase = SimulationPhase.REVALUING
            revalue_portfolio(self.portfolio, self.current_date)
            self.snapshots.append(snapshot_portfolio(self.portfolio, self.current_date))

            if self.schedule.is_arrived(self.current_date):
                self.phase = SimulationPhase.AWAITING_SCHEDULE
                return True

            self.phase = SimulationPhase.RUNNING

        self._finish()
        return False

    def default_schedule_handler(self) -> None:
        """Check the portfolio and stage a rebalancing plan if it has drifted."""
        self.phase = SimulationPhase.PLANNING

        needed = check_rebalance_needed(self.portfolio)
        if self.decision_logger is not None:
            summary = summarize_drift(
                calculate_drift(self.portfolio),
                self.portfolio.rebalancing_policy.threshold,
            )
            self._log(
                ActionType.REBALANCE_CHECKED,
                {
                    "rebalance_needed": needed,
                    "market_value": str(self.portfolio.market_value),
                    "cash": str(self.portfolio.cash),
                    **summary,
                },
            )
        if needed:
            self._stage_plan()

        self.phase = SimulationPhase.RUNNING

    def run(self) -> PortfolioStats:
        """Run to completion and return the final statistics."""
        while self.resume_simulation():
            self.default_schedule_handler()
        return self.calculate_portfolio_stats()

    def holdings_snapshot(self) -> list[HoldingSnapshot]:
        return summarize_holdings(self.portfolio)

    def calculate_portfolio_stats(self) -> PortfolioStats:
        return calculate_portfolio_stats(
            self.portfolio,
            self.initial_value,
            self.inception_date,
            self.current_date,
            self.snapshots,
        )

    def _stage_plan(self) -> None:
        plan = generate_trade_plan(
            self.portfolio,
            decision_logger=self.decision_logger,
            simulation_id=self.simulation_id,
            sim_date=self.current_date,
        )
        logger.info(
            "%s: staged %d trade plan items on %s",
            self.simulation_id, len(plan), self.current_date,
        )
        if self.decision_logger is not None:
            self.decision_logger.log_trade_plan_generated(
                self.simulation_id, self.current_date, plan
            )
        self.pending_plan = plan

    def _execute_pending_plan(self) -> None:
        self.phase = SimulationPhase.EXECUTING
        orders = prepare_trade_orders(
            self.pending_plan,
            self.portfolio,
            self.current_date,
            decision_logger=self.decision_logger,
            simulation_id=self.simulation_id,
        )

        self.phase = SimulationPhase.SETTLING
        settle_trade_orders(self.portfolio, orders)
        self.pending_plan = []

        if self.decision_logger is not None:
            self.decision_logger.log_trades_executed(
                self.simulation_id, self.current_date, orders, self.portfolio.cash
            )

    def _finish(self) -> None:
        self.phase = SimulationPhase.FINISHED
        self.pending_plan = []
        stats = self.calculate_portfolio_stats()
        logger.info(
            "%s: finished on %s, market value %s, total return %s",
            self.simulation_id, self.current_date, stats.market_value, stats.total_return,
        )
        if self.decision_logger is not None:
            self.decision_logger.log_simulation_finished(
                self.simulation_id, self.current_date, stats
            )

    def _log(self, action_type: ActionType, details: dict) -> None:
        if self.decision_logger is not None:
            self.decision_logger.log_action(
                action_type, self.simulation_id, details, self.current_date
            )
