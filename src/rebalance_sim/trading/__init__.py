"""
Trading module for the rebalancing simulator.

Decides when to rebalance, plans monetary trades, prices them into orders
on the execution date and settles them against holdings and cash.
"""

from rebalance_sim.trading.strategy import (
    check_rebalance_needed,
    generate_trade_plan,
)
from rebalance_sim.trading.orders import prepare_trade_orders
from rebalance_sim.trading.settlement import settle_trade_orders

__all__ = [
    "check_rebalance_needed",
    "generate_trade_plan",
    "prepare_trade_orders",
    "settle_trade_orders",
]
