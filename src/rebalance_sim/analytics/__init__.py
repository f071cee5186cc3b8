"""
Analytics module for the rebalancing simulator.

Provides allocation and drift analysis vs the model portfolio.
"""

from rebalance_sim.analytics.drift import (
    DriftAnalysis,
    calculate_drift,
    find_orphaned_holdings,
    investable_value,
    summarize_drift,
)

__all__ = [
    "DriftAnalysis",
    "calculate_drift",
    "find_orphaned_holdings",
    "investable_value",
    "summarize_drift",
]
