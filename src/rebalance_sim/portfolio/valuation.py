"""
Portfolio valuation and dividend accrual.

This module marks holdings to market as of a simulated date using the latest
available quote, credits dividends to both the paying asset and the cash
balance, and recomputes the portfolio's market value.
"""

import logging
from datetime import date
from decimal import Decimal

from rebalance_sim.models import (
    DailySnapshot,
    HoldingSnapshot,
    InvariantViolationError,
    Portfolio,
)

logger = logging.getLogger(__name__)


def revalue_portfolio(
    portfolio: Portfolio,
    valuation_date: date,
    accrue_dividends: bool = True,
) -> Portfolio:
    """
    Mark every non-cash holding to market as of valuation_date.

    Args:
        portfolio: Portfolio to revalue in place
        valuation_date: Simulated date
        accrue_dividends: Whether to credit dividends paid on valuation_date

    Returns:
        The same portfolio with refreshed prices and market value

    Raises:
        DataUnavailableError: If a held security has no quote on or before the date
        InvariantViolationError: If dividends are due but there is no cash holding
    """
    cash_asset = portfolio.get_cash_asset()

    for asset in portfolio.holdings:
        if asset.is_cash:
            continue

        asset.last_price = asset.security.quote_on_or_before(valuation_date).average_price

        if not accrue_dividends:
            continue

        per_unit = asset.security.dividend_on(valuation_date)
        if per_unit == 0 or asset.units == 0:
            continue

        if cash_asset is None:
            raise InvariantViolationError(
                f"Dividend from {asset.ticker} on {valuation_date} but "
                f"portfolio {portfolio.name} has no cash holding"
            )
        payment = per_unit * asset.units
        asset.dividends_paid += payment
        cash_asset.book_value += payment
        logger.debug("Dividend %s from %s on %s", payment, asset.ticker, valuation_date)

    portfolio.recompute_market_value()
    return portfolio


def rebase_book_costs(portfolio: Portfolio) -> Portfolio:
    """
    Reset each non-cash book value to its current market value.

    Re-bases cost accounting to the simulation start instead of the historical
    purchase price. Prices must already be current (see revalue_portfolio).
    """
    for asset in portfolio.holdings:
        if asset.is_cash:
            continue
        asset.book_value = asset.last_price * asset.units
    return portfolio


def snapshot_portfolio(portfolio: Portfolio, snapshot_date: date) -> DailySnapshot:
    """Record the portfolio totals for one simulated day."""
    return DailySnapshot(
        date=snapshot_date,
        market_value=portfolio.market_value,
        cash=portfolio.cash,
        book_value=portfolio.book_value,
        dividends_paid=sum((a.dividends_paid for a in portfolio.holdings), Decimal("0")),
        management_cost=sum((a.management_cost for a in portfolio.holdings), Decimal("0")),
    )


def summarize_holdings(portfolio: Portfolio) -> list[HoldingSnapshot]:
    """Read-only snapshot of every holding, largest market value first."""
    summaries = [HoldingSnapshot.from_asset(a) for a in portfolio.holdings]
    summaries.sort(key=lambda s: s.market_value, reverse=True)
    return summaries
