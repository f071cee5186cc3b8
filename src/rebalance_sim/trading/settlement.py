"""
Settlement of trade orders against portfolio holdings and cash.

Sells reduce units and book value by the proceeds net of the fee and credit
the same amount to cash. Buys add units and book value at cost plus fee and
debit cash by the same amount. Fees always accumulate into the asset's
management cost. Holdings whose units reach zero are retained so their
management-cost history survives.
"""

import logging

from rebalance_sim.models import (
    Asset,
    InvariantViolationError,
    Portfolio,
    TradeOrder,
    TradeSide,
)

logger = logging.getLogger(__name__)


def apply_order(portfolio: Portfolio, cash_asset: Asset, order: TradeOrder) -> Asset:
    """
    Apply one order to its asset and to the cash asset.

    Args:
        portfolio: Portfolio being settled
        cash_asset: The portfolio's cash holding
        order: Order to apply

    Returns:
        The traded asset

    Raises:
        InvariantViolationError: If a sell targets an unowned security
    """
    asset = portfolio.get_asset(order.security.ticker)
    if asset is None:
        if order.side is TradeSide.SELL:
            raise InvariantViolationError(
                f"Attempt to sell {order.security.ticker} which is not owned"
            )
        logger.info("Creating portfolio position for %s", order.security.ticker)
        asset = portfolio.add_asset(Asset(order.security, last_price=order.price))

    gross = order.gross_amount
    if order.side is TradeSide.SELL:
        asset.units -= order.units
        asset.book_value -= gross - order.fee
    else:
        asset.units += order.units
        asset.book_value += gross + order.fee

    asset.management_cost += order.fee
    cash_asset.book_value += order.cash_effect

    logger.info(
        "%s: %s units, %s book value after %s; cash %s",
        asset.ticker, asset.units, asset.book_value, order.side.value, cash_asset.book_value,
    )
    return asset


def settle_trade_orders(portfolio: Portfolio, orders: list[TradeOrder]) -> Portfolio:
    """
    Settle orders in sequence and verify the portfolio afterwards.

    Args:
        portfolio: Portfolio to mutate
        orders: Orders prepared for the current simulated date

    Returns:
        The same portfolio, updated

    Raises:
        InvariantViolationError: If the portfolio has no cash holding, or any
            holding has negative units or cash is negative after settlement
    """
    cash_asset = portfolio.get_cash_asset()
    if cash_asset is None:
        raise InvariantViolationError(f"Portfolio {portfolio.name} has no cash holding")

    for order in orders:
        apply_order(portfolio, cash_asset, order)

    negative = [a.ticker for a in portfolio.holdings if not a.is_cash and a.units < 0]
    if negative:
        raise InvariantViolationError(f"Negative units after settlement: {negative}")

    if cash_asset.book_value < 0:
        raise InvariantViolationError(
            f"Negative cash {cash_asset.book_value} after executing trade orders"
        )

    return portfolio
