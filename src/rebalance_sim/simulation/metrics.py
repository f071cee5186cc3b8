"""
Performance statistics for simulation results.

Calculates the aggregate return figures of a run:
- Total return and total return rate vs the inception market value
- Annualized (compounded) return rate over the elapsed calendar days
- Maximum drawdown and annualized volatility from daily snapshots
"""

import math
from datetime import date
from decimal import Decimal

import numpy as np
import pandas as pd

from rebalance_sim.models import DailySnapshot, Portfolio, PortfolioStats

DAYS_PER_YEAR = 365


def annualize_return(total_return_rate: Decimal, days: int) -> Decimal:
    """
    Compound a total return rate to a yearly rate.

    Args:
        total_return_rate: Return over the whole period (0.1 = 10%)
        days: Calendar days in the period

    Returns:
        (1 + rate) ^ (365 / days) - 1; 0 for an empty period and -1 when
        the portfolio lost everything
    """
    if days <= 0:
        return Decimal("0")

    base = Decimal("1") + total_return_rate
    if base <= 0:
        return Decimal("-1")

    return base ** (Decimal(DAYS_PER_YEAR) / Decimal(days)) - Decimal("1")


def snapshots_to_series(snapshots: list[DailySnapshot]) -> pd.Series:
    """Daily market values indexed by date."""
    if not snapshots:
        return pd.Series(dtype=float)
    series = pd.Series(
        [float(s.market_value) for s in snapshots],
        index=pd.to_datetime([s.date for s in snapshots]),
        name="market_value",
    )
    return series


def calculate_risk_metrics(snapshots: list[DailySnapshot]) -> tuple[float, float]:
    """
    Maximum drawdown and annualized volatility of daily market values.

    Args:
        snapshots: Daily snapshots in date order

    Returns:
        (max_drawdown, annualized_volatility); drawdown is zero or negative
    """
    values = snapshots_to_series(snapshots)
    if len(values) < 2:
        return 0.0, 0.0

    cumulative_max = values.cummax()
    drawdown = ((values - cumulative_max) / cumulative_max.where(cumulative_max > 0)).fillna(0.0)
    max_drawdown = float(drawdown.min())

    daily_returns = values.pct_change().replace([np.inf, -np.inf], np.nan).dropna()
    if len(daily_returns) > 1:
        annualized_volatility = float(daily_returns.std() * math.sqrt(DAYS_PER_YEAR))
    else:
        annualized_volatility = 0.0

    return round(max_drawdown, 6), round(annualized_volatility, 6)


def calculate_portfolio_stats(
    portfolio: Portfolio,
    initial_value: Decimal,
    inception_date: date,
    current_date: date,
    snapshots: list[DailySnapshot] | None = None,
) -> PortfolioStats:
    """
    Calculate aggregate statistics of a simulated portfolio.

    Dividends are already credited to cash, so they are part of the final
    market value and of the total return.

    Args:
        portfolio: Portfolio at the end of (or paused within) the run
        initial_value: Market value at inception
        inception_date: First simulated date
        current_date: Simulated date reached
        snapshots: Daily snapshots for the risk metrics

    Returns:
        PortfolioStats for the run so far
    """
    market_value = portfolio.market_value
    total_return = market_value - initial_value

    if initial_value == 0:
        total_return_rate = Decimal("0")
    else:
        total_return_rate = total_return / initial_value

    days = (current_date - inception_date).days
    max_drawdown, annualized_volatility = calculate_risk_metrics(snapshots or [])

    return PortfolioStats(
        initial_value=initial_value,
        book_cost=portfolio.book_value,
        market_value=market_value,
        dividends_paid=sum((a.dividends_paid for a in portfolio.holdings), Decimal("0")),
        management_expenses=sum((a.management_cost for a in portfolio.holdings), Decimal("0")),
        total_return=total_return,
        total_return_rate=total_return_rate,
        annualized_return_rate=annualize_return(total_return_rate, days),
        days=days,
        max_drawdown=max_drawdown,
        annualized_volatility=annualized_volatility,
    )
