"""
Portfolio Rebalancing Simulator (rebalance-sim)

A day-by-day simulator of a portfolio under a periodic, threshold-based
rebalancing policy. Prices and dividends follow historical quote series; on
each scheduled date the portfolio is compared with its target model portfolio
and, when it has drifted too far, a plan of buy and sell trades is executed on
the following cycle against cash and holdings.
"""

__version__ = "0.1.0"
