"""
Simulation module for the rebalancing simulator.

Provides the day-by-day engine, rebalancing schedules, run statistics and
single-run and inception-sweep orchestration.
"""

from rebalance_sim.simulation.schedule import Schedule, ScheduleKind
from rebalance_sim.simulation.engine import (
    SimulationEngine,
    SimulationPhase,
    validate_simulation,
)
from rebalance_sim.simulation.metrics import calculate_portfolio_stats
from rebalance_sim.simulation.backtest import (
    SimulationResult,
    append_stats_record,
    run_inception_sweep,
    run_simulation,
)

__all__ = [
    "Schedule",
    "ScheduleKind",
    "SimulationEngine",
    "SimulationPhase",
    "validate_simulation",
    "calculate_portfolio_stats",
    "SimulationResult",
    "append_stats_record",
    "run_inception_sweep",
    "run_simulation",
]
