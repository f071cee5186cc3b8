"""
Conversion of trade plans into dated, priced trade orders.

A trade plan is computed on one simulated day and executed on a later one, so
prices and fees are resolved here, as of the execution date, using the next
available quote for each security.
"""

import logging
from datetime import date
from decimal import Decimal, ROUND_DOWN
from typing import Optional

from rebalance_sim.logging.decision_log import DecisionLogger
from rebalance_sim.models import (
    InvariantViolationError,
    Portfolio,
    TradeOrder,
    TradePlanItem,
    TradeSide,
)

logger = logging.getLogger(__name__)


def order_plan_items(plan: list[TradePlanItem]) -> list[TradePlanItem]:
    """Sells first (they replenish cash), then buys; plan order kept within each side."""
    return sorted(plan, key=lambda item: 0 if item.amount < 0 else 1)


def calculate_units(item: TradePlanItem, price: Decimal) -> Decimal:
    """
    Unit magnitude for a monetary amount at a price.

    Whole-share securities truncate toward zero; partial-share securities keep
    the exact quotient.
    """
    units = abs(item.amount / price)
    if item.security.allows_partial_shares:
        return units
    return units.quantize(Decimal("1"), rounding=ROUND_DOWN)


def prepare_trade_orders(
    plan: list[TradePlanItem],
    portfolio: Portfolio,
    trade_date: date,
    decision_logger: Optional[DecisionLogger] = None,
    simulation_id: Optional[str] = None,
) -> list[TradeOrder]:
    """
    Price a trade plan as of trade_date.

    Args:
        plan: Trade plan items from the rebalancing policy
        portfolio: Portfolio the orders will settle against
        trade_date: Execution date
        decision_logger: Optional reporting port for skipped orders
        simulation_id: Simulation identifier for the decision log

    Returns:
        Trade orders, sells before buys

    Raises:
        DataUnavailableError: If a security has no quote on or after trade_date
        InvariantViolationError: If an item has a zero amount or sells an
            unowned security
    """
    orders: list[TradeOrder] = []
    logger.info("Creating trade orders for %s", trade_date.isoformat())

    for item in order_plan_items(plan):
        security = item.security
        if security.is_cash:
            # Cash moves implicitly through settlement.
            continue

        if item.amount == 0:
            raise InvariantViolationError(
                f"No-op trade plan item for {security.ticker} on {trade_date}"
            )

        side = item.side
        price = security.quote_on_or_after(trade_date).average_price
        fee = security.fee_for(side, portfolio.transaction_fee)
        units = calculate_units(item, price)

        if side is TradeSide.SELL:
            asset = portfolio.get_asset(security.ticker)
            if asset is None:
                raise InvariantViolationError(
                    f"Attempt to sell {security.ticker} which is not owned"
                )
            if units > asset.units:
                logger.warning(
                    "Selling more units of %s (%s) than owned (%s); clamping",
                    security.ticker, units, asset.units,
                )
                units = asset.units

        if units == 0:
            logger.warning(
                "Order for %s of %s at %s rounds to zero units; skipped",
                security.ticker, item.amount, price,
            )
            if decision_logger is not None:
                decision_logger.log_policy_skip(
                    simulation_id, trade_date, security.ticker, "zero_units",
                    amount=item.amount, price=price,
                )
            continue

        logger.info(
            "%s %s units of %s at %s, fee %s",
            side.value, units, security.ticker, price, fee,
        )
        orders.append(
            TradeOrder(
                security=security,
                side=side,
                units=units,
                price=price,
                fee=fee,
                trade_date=trade_date,
            )
        )

    return orders
