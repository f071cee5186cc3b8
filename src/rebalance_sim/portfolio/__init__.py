"""
Portfolio management module for the rebalancing simulator.

Provides daily revaluation, dividend accrual, book-cost rebasing and
holdings snapshots.
"""

from rebalance_sim.portfolio.valuation import (
    rebase_book_costs,
    revalue_portfolio,
    snapshot_portfolio,
    summarize_holdings,
)

__all__ = [
    "rebase_book_costs",
    "revalue_portfolio",
    "snapshot_portfolio",
    "summarize_holdings",
]
