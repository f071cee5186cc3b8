"""
Rebalancing decisions and trade planning.

This module decides whether a portfolio has drifted far enough from its model
portfolio to warrant rebalancing, and builds a plan of monetary buy/sell
amounts to bring it back. Trade planning runs in three phases:

- Shortlist: every asset whose drift is outside the threshold gets a trade
  sized to its target value, subject to policy guards (no loss-realizing
  sells, no sub-unit trades).
- Funding: buys are capped at the cash on hand plus expected sell proceeds,
  less the cash sleeve, the cash floor and expected fees.
- Redistribution: funded cash the shortlist leaves unused is spread across
  buys by target weight.

Plans are proposals only; they are priced and executed on a later date by
trading.orders and trading.settlement.
"""

import logging
from datetime import date
from decimal import ROUND_DOWN, Decimal
from typing import Optional

from rebalance_sim.analytics.drift import (
    analyze_asset,
    combined_assets,
    investable_value,
)
from rebalance_sim.logging.decision_log import DecisionLogger
from rebalance_sim.models import (
    Portfolio,
    RebalancingPolicy,
    ThresholdMixedPolicy,
    TradePlanItem,
    TradeSide,
)

logger = logging.getLogger(__name__)


def check_rebalance_needed(
    portfolio: Portfolio,
    policy: Optional[RebalancingPolicy] = None,
) -> bool:
    """
    Decide whether the portfolio needs rebalancing.

    Side-effect free: calling it twice without a state change gives the same
    verdict.

    Args:
        portfolio: Portfolio with up-to-date market values and a model portfolio
        policy: Policy to apply (defaults to the portfolio's policy)

    Returns:
        True if at least one holding is out of balance
    """
    policy = policy or portfolio.rebalancing_policy
    if isinstance(policy, ThresholdMixedPolicy):
        return _check_threshold_mixed(portfolio, policy)
    raise TypeError(f"Unsupported rebalancing policy: {type(policy).__name__}")


def generate_trade_plan(
    portfolio: Portfolio,
    policy: Optional[RebalancingPolicy] = None,
    decision_logger: Optional[DecisionLogger] = None,
    simulation_id: Optional[str] = None,
    sim_date: Optional[date] = None,
) -> list[TradePlanItem]:
    """
    Build the list of monetary trades that rebalances the portfolio.

    Args:
        portfolio: Portfolio with up-to-date market values and a model portfolio
        policy: Policy to apply (defaults to the portfolio's policy)
        decision_logger: Optional reporting port for policy skips
        simulation_id: Simulation identifier for the decision log
        sim_date: Simulated date of the decision

    Returns:
        Trade plan items (positive amounts buy, negative amounts sell),
        possibly empty
    """
    policy = policy or portfolio.rebalancing_policy
    if isinstance(policy, ThresholdMixedPolicy):
        planner = _ThresholdMixedPlanner(
            portfolio, policy, decision_logger, simulation_id, sim_date
        )
        return planner.plan()
    raise TypeError(f"Unsupported rebalancing policy: {type(policy).__name__}")


def _check_threshold_mixed(portfolio: Portfolio, policy: ThresholdMixedPolicy) -> bool:
    model = portfolio.model_portfolio
    investable = investable_value(portfolio, model)
    if investable <= 0:
        logger.warning(
            "Portfolio %s market value %s does not exceed cash reserve %s",
            portfolio.name, portfolio.market_value, model.cash_reserve,
        )
        return False

    for asset in portfolio.holdings:
        analysis = analyze_asset(asset, model, investable)

        if not analysis.in_model:
            # A legacy holding outside the model has to be unwound.
            if analysis.current_weight > 0:
                logger.debug("Rebalance required: %s is not in the model", asset.ticker)
                return True
            continue

        if analysis.exceeds(policy.threshold):
            logger.debug(
                "Rebalance required: %s drift %.4f%% vs target %.4f%% (threshold %.4f%%)",
                asset.ticker,
                analysis.drift * 100,
                analysis.target_weight * 100,
                policy.threshold * 100,
            )
            return True

    return False


class _ThresholdMixedPlanner:
    """Single-use planner holding the context of one generate_trade_plan call."""

    def __init__(
        self,
        portfolio: Portfolio,
        policy: ThresholdMixedPolicy,
        decision_logger: Optional[DecisionLogger],
        simulation_id: Optional[str],
        sim_date: Optional[date],
    ):
        self.portfolio = portfolio
        self.policy = policy
        self.model = portfolio.model_portfolio
        self.fee = portfolio.transaction_fee
        self.decision_logger = decision_logger
        self.simulation_id = simulation_id
        self.sim_date = sim_date

    def plan(self) -> list[TradePlanItem]:
        investable = investable_value(self.portfolio, self.model)
        if investable <= 0:
            logger.warning(
                "Nothing to rebalance in %s: market value %s, cash reserve %s",
                self.portfolio.name, self.portfolio.market_value, self.model.cash_reserve,
            )
            return []

        logger.debug("Rebalancing '%s' using '%s'", self.portfolio.name, self.model.name)
        assets = combined_assets(self.portfolio, self.model)
        trades, expected_fee = self._shortlist(assets, investable)

        available = self._available_cash(trades, expected_fee)
        trades = self._fund_buys(trades, available)

        leftover = max(available - self._buy_total(trades), Decimal("0"))
        logger.debug("Available cash %s, leftover %s", available, leftover)
        if leftover > 0:
            if any(t.amount > 0 for t in trades):
                self._top_up_buys(trades, leftover)
            else:
                # No buys to absorb the cash: budget a fee for every possible trade.
                leftover -= len(assets) * self.fee
                if leftover > 0:
                    self._distribute(trades, leftover)
                else:
                    logger.debug("Not enough excess cash to cover new transactions")

        return trades

    def _shortlist(
        self,
        assets: list,
        investable: Decimal,
    ) -> tuple[list[TradePlanItem], Decimal]:
        trades: list[TradePlanItem] = []
        expected_fee = Decimal("0")

        for asset in assets:
            analysis = analyze_asset(asset, self.model, investable)
            logger.debug(
                "%s current %.4f%%, target %.4f%%, drift %.4f%%",
                asset.ticker,
                analysis.current_weight * 100,
                analysis.target_weight * 100,
                analysis.drift * 100,
            )

            if abs(analysis.drift) < self.policy.threshold:
                self._skip(asset.ticker, "within_threshold", drift=analysis.drift)
                continue

            target_value = investable * analysis.target_weight
            # positive excess sells, negative excess buys
            excess = asset.market_value - target_value

            if excess > 0 and asset.last_price < asset.book_price:
                self._skip(
                    asset.ticker,
                    "below_book_price",
                    last_price=asset.last_price,
                    book_price=asset.book_price,
                )
                continue

            if abs(excess) < asset.last_price:
                self._skip(
                    asset.ticker,
                    "less_than_one_unit",
                    excess=excess,
                    last_price=asset.last_price,
                )
                continue

            if excess != 0 and not asset.is_cash:
                amount = -excess
                side = TradeSide.BUY if amount > 0 else TradeSide.SELL
                expected_fee += asset.security.fee_for(side, self.fee)
                trades.append(TradePlanItem(security=asset.security, amount=amount))

        return trades, expected_fee

    def _available_cash(self, trades: list[TradePlanItem], expected_fee: Decimal) -> Decimal:
        """Cash the plan may spend on buys once sells settle.

        Sells count at the whole units they will actually trade. The cash
        sleeve, the cash floor and the expected fees are held back.
        """
        cash = self.portfolio.cash
        proceeds = sum(
            (self._expected_proceeds(t) for t in trades if t.amount < 0), Decimal("0")
        )
        cash_sleeve = cash * self.model.cash_allocation

        available = cash + proceeds - cash_sleeve - self.model.cash_reserve - expected_fee
        logger.debug(
            "Cash %s, sell proceeds %s, cash sleeve %s, expected fees %s",
            cash, proceeds, cash_sleeve, expected_fee,
        )
        return available

    def _expected_proceeds(self, trade: TradePlanItem) -> Decimal:
        amount = -trade.amount
        asset = self.portfolio.get_asset(trade.security.ticker)
        if trade.security.allows_partial_shares or asset is None or asset.last_price <= 0:
            return amount
        units = (amount / asset.last_price).quantize(Decimal("1"), rounding=ROUND_DOWN)
        return units * asset.last_price

    @staticmethod
    def _buy_total(trades: list[TradePlanItem]) -> Decimal:
        return sum((t.amount for t in trades if t.amount > 0), Decimal("0"))

    def _fund_buys(
        self,
        trades: list[TradePlanItem],
        available: Decimal,
    ) -> list[TradePlanItem]:
        """Cap planned buys at the cash available to pay for them.

        Buys are scaled down in proportion when cash falls short, and dropped
        when there is none.
        """
        wanted = self._buy_total(trades)
        if wanted <= 0 or wanted <= available:
            return trades

        if available <= 0:
            logger.warning(
                "No cash to fund %s of buys in %s; dropping them",
                wanted, self.portfolio.name,
            )
            for trade in trades:
                if trade.amount > 0:
                    self._skip(
                        trade.security.ticker,
                        "insufficient_cash",
                        amount=trade.amount,
                        available=available,
                    )
            return [t for t in trades if t.amount < 0]

        logger.info(
            "Scaling %s of buys in %s down to available cash %s",
            wanted, self.portfolio.name, available,
        )
        for trade in trades:
            if trade.amount > 0:
                scaled = trade.amount * available / wanted
                self._skip(
                    trade.security.ticker,
                    "insufficient_cash",
                    amount=trade.amount,
                    scaled_amount=scaled,
                    available=available,
                )
                trade.amount = scaled
        return trades

    def _distribute(self, trades: list[TradePlanItem], leftover: Decimal) -> None:
        # a ticker being sold is not bought back in the same plan
        selling = {t.security.ticker for t in trades if t.amount < 0}

        for component in self.model.components:
            if component.security.is_cash or component.ticker in selling:
                continue

            allocated = leftover * component.allocation
            if allocated <= 0:
                continue

            if self.fee / allocated > self.policy.trading_expense_threshold:
                self._skip(
                    component.ticker,
                    "fee_ratio_too_high",
                    amount=allocated,
                    fee=self.fee,
                )
                continue

            logger.debug("Distributing %s extra to %s", allocated, component.ticker)
            trades.append(TradePlanItem(security=component.security, amount=allocated))

    def _top_up_buys(self, trades: list[TradePlanItem], leftover: Decimal) -> None:
        for trade in trades:
            if trade.amount < 0:
                continue
            component = self.model.get_component(trade.security.ticker)
            if component is None:
                continue
            extra = leftover * component.allocation
            logger.debug("Topping up %s by %s", trade.security.ticker, extra)
            trade.amount += extra

    def _skip(self, ticker: str, reason: str, **values) -> None:
        logger.debug("Skipping %s: %s %s", ticker, reason, values)
        if self.decision_logger is not None:
            self.decision_logger.log_policy_skip(
                self.simulation_id, self.sim_date, ticker, reason, **values
            )
