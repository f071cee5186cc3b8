"""
Decision logging module for the rebalancing simulator.

Provides append-only decision logging for audit and reproducibility.
"""

from rebalance_sim.logging.decision_log import (
    DecimalEncoder,
    DecisionLogger,
)

__all__ = [
    "DecimalEncoder",
    "DecisionLogger",
]
