"""
Data loading module for the rebalancing simulator.

Provides the DataSource interface and its CSV implementation.
"""

from rebalance_sim.data.base import DataSource
from rebalance_sim.data.loaders import CsvDataSource, DataLoadError

__all__ = [
    "DataSource",
    "CsvDataSource",
    "DataLoadError",
]
