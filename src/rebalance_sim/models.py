"""
Core data models for the portfolio rebalancing simulator.

This module defines the fundamental data structures used throughout the system,
including securities with their quote and dividend history, portfolio holdings,
model portfolios, trade plans and trade orders. All monetary and unit
quantities use Decimal for precision.
"""

import logging
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_EVEN
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class SimulationError(Exception):
    """Base class for conditions that abort a simulation run."""
    pass


class DataUnavailableError(SimulationError):
    """Raised when no quote exists for a security on the required side of a date."""

    def __init__(self, ticker: str, as_of: date, direction: str):
        self.ticker = ticker
        self.as_of = as_of
        self.direction = direction
        super().__init__(
            f"No quote for {ticker} on or {direction} {as_of.isoformat()}"
        )


class InvariantViolationError(SimulationError):
    """Raised when a trade plan or its execution breaks a portfolio invariant."""
    pass


class SimulationSetupError(SimulationError):
    """Raised when simulation inputs fail validation before the run starts."""
    pass


class InstrumentKind(Enum):
    """Whether a security is traded at market prices or is a fixed-price cash sleeve."""
    TRADABLE = "TRADABLE"
    CASH_LIKE = "CASH_LIKE"


class TradeSide(Enum):
    """Trade direction indicator."""
    BUY = "BUY"
    SELL = "SELL"


class ActionType(Enum):
    """Types of logged actions for the decision log."""
    CONFIG_LOADED = "CONFIG_LOADED"
    SIMULATION_STARTED = "SIMULATION_STARTED"
    SETUP_WARNING = "SETUP_WARNING"
    REBALANCE_CHECKED = "REBALANCE_CHECKED"
    TRADE_PLAN_GENERATED = "TRADE_PLAN_GENERATED"
    POLICY_SKIP = "POLICY_SKIP"
    TRADES_EXECUTED = "TRADES_EXECUTED"
    SIMULATION_FINISHED = "SIMULATION_FINISHED"


CENT = Decimal("0.01")


@dataclass(frozen=True)
class Quote:
    """
    A single trading-day quote.

    Attributes:
        trading_date: Trading day of the quote
        open: Opening price
        high: Daily high
        low: Daily low
        close: Closing price
        volume: Traded volume
        adjusted_close: Close adjusted for splits and distributions
    """
    trading_date: date
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int = 0
    adjusted_close: Optional[Decimal] = None

    @property
    def average_price(self) -> Decimal:
        """Representative execution price: midpoint of the daily range, to the cent."""
        midpoint = (self.high - self.low) / 2 + self.low
        return midpoint.quantize(CENT, rounding=ROUND_HALF_EVEN)

    @classmethod
    def fixed(cls, trading_date: date, price: Decimal) -> "Quote":
        """Synthetic zero-volume quote at a fixed price."""
        return cls(
            trading_date=trading_date,
            open=price,
            high=price,
            low=price,
            close=price,
            volume=0,
            adjusted_close=price,
        )


@dataclass(frozen=True)
class Dividend:
    """Per-unit distribution paid on a given date."""
    payment_date: date
    amount: Decimal


@dataclass(eq=False)
class Security:
    """
    A tradable instrument or the cash pseudo-security.

    Quote and dividend series are append-only and kept in ascending date
    order without duplicates, which makes date resolution a binary search.

    Attributes:
        ticker: Unique identifier
        kind: TRADABLE or CASH_LIKE
        name: Display name
        allows_partial_shares: Whether fractional units may be traded
        fixed_price: Unit price of a CASH_LIKE security (None otherwise)
        buy_fee: Per-security buy fee override
        sell_fee: Per-security sell fee override
        quotes: Ascending quote series
        dividends: Ascending dividend series
    """
    ticker: str
    kind: InstrumentKind = InstrumentKind.TRADABLE
    name: str = ""
    allows_partial_shares: bool = False
    fixed_price: Optional[Decimal] = None
    buy_fee: Optional[Decimal] = None
    sell_fee: Optional[Decimal] = None
    quotes: list[Quote] = field(default_factory=list)
    dividends: list[Dividend] = field(default_factory=list)

    def __post_init__(self):
        if self.kind is InstrumentKind.CASH_LIKE:
            if self.fixed_price is None or self.fixed_price <= 0:
                raise ValueError(
                    f"Cash security {self.ticker} requires a positive fixed price"
                )
        elif self.fixed_price is not None:
            raise ValueError(
                f"Tradable security {self.ticker} cannot carry a fixed price"
            )

        quotes, dividends = self.quotes, self.dividends
        self.quotes, self.dividends = [], []
        for quote in quotes:
            self.add_quote(quote)
        for dividend in dividends:
            self.add_dividend(dividend)

    @property
    def is_cash(self) -> bool:
        return self.kind is InstrumentKind.CASH_LIKE

    def add_quote(self, quote: Quote) -> None:
        """Append a quote; dates must be strictly ascending."""
        if self.quotes and quote.trading_date <= self.quotes[-1].trading_date:
            raise ValueError(
                f"Quote for {self.ticker} on {quote.trading_date} is not after "
                f"{self.quotes[-1].trading_date}"
            )
        self.quotes.append(quote)

    def add_dividend(self, dividend: Dividend) -> None:
        """Append a dividend; dates must be strictly ascending."""
        if self.dividends and dividend.payment_date <= self.dividends[-1].payment_date:
            raise ValueError(
                f"Dividend for {self.ticker} on {dividend.payment_date} is not after "
                f"{self.dividends[-1].payment_date}"
            )
        self.dividends.append(dividend)

    def quote_on_or_before(self, as_of: date) -> Quote:
        """
        Latest quote dated on or before as_of.

        Raises:
            DataUnavailableError: If the series starts after as_of
        """
        if self.is_cash:
            return Quote.fixed(as_of, self.fixed_price)

        idx = bisect_right(self.quotes, as_of, key=lambda q: q.trading_date)
        if idx == 0:
            raise DataUnavailableError(self.ticker, as_of, "before")
        return self.quotes[idx - 1]

    def quote_on_or_after(self, as_of: date) -> Quote:
        """
        Earliest quote dated on or after as_of.

        Raises:
            DataUnavailableError: If the series ends before as_of
        """
        if self.is_cash:
            return Quote.fixed(as_of, self.fixed_price)

        idx = bisect_left(self.quotes, as_of, key=lambda q: q.trading_date)
        if idx == len(self.quotes):
            raise DataUnavailableError(self.ticker, as_of, "after")
        return self.quotes[idx]

    def dividend_on(self, as_of: date) -> Decimal:
        """Per-unit dividend paid exactly on as_of, or zero."""
        if self.is_cash:
            return Decimal("0")

        idx = bisect_left(self.dividends, as_of, key=lambda d: d.payment_date)
        if idx < len(self.dividends) and self.dividends[idx].payment_date == as_of:
            return self.dividends[idx].amount
        return Decimal("0")

    def fee_for(self, side: TradeSide, default_fee: Decimal) -> Decimal:
        """Per-security fee override for the trade direction, else the default."""
        override = self.buy_fee if side is TradeSide.BUY else self.sell_fee
        return default_fee if override is None else override


class Asset:
    """
    A holding of one security inside a portfolio.

    For cash the unit count is derived from book value and the last price is
    always the security's fixed price; writes to either are ignored with a
    warning.
    """

    def __init__(
        self,
        security: Security,
        units: Decimal = Decimal("0"),
        book_value: Decimal = Decimal("0"),
        dividends_paid: Decimal = Decimal("0"),
        management_cost: Decimal = Decimal("0"),
        last_price: Decimal = Decimal("0"),
    ):
        self.security = security
        self.book_value = book_value
        self.dividends_paid = dividends_paid
        self.management_cost = management_cost
        self._units = Decimal("0")
        self._last_price = Decimal("0")
        if not security.is_cash:
            self._units = units
            self._last_price = last_price

    def __repr__(self) -> str:
        return (
            f"Asset({self.ticker!r}, units={self.units}, "
            f"book_value={self.book_value}, last_price={self.last_price})"
        )

    @property
    def ticker(self) -> str:
        return self.security.ticker

    @property
    def is_cash(self) -> bool:
        return self.security.is_cash

    @property
    def units(self) -> Decimal:
        if self.is_cash:
            return self.book_value / self.security.fixed_price
        return self._units

    @units.setter
    def units(self, value: Decimal) -> None:
        if self.is_cash:
            logger.warning("Attempt to set units for cash asset %s ignored", self.ticker)
            return
        self._units = value

    @property
    def last_price(self) -> Decimal:
        if self.is_cash:
            return self.security.fixed_price
        return self._last_price

    @last_price.setter
    def last_price(self, value: Decimal) -> None:
        if self.is_cash:
            logger.warning("Attempt to set last price for cash asset %s ignored", self.ticker)
            return
        self._last_price = value

    @property
    def book_price(self) -> Decimal:
        """Average cost per unit (0 when nothing is held)."""
        units = self.units
        if units == 0:
            return Decimal("0")
        return self.book_value / units

    @property
    def market_value(self) -> Decimal:
        if self.is_cash:
            return self.book_value
        return self.last_price * self.units

    def copy(self) -> "Asset":
        """Independent copy sharing the same security."""
        return Asset(
            security=self.security,
            units=self._units,
            book_value=self.book_value,
            dividends_paid=self.dividends_paid,
            management_cost=self.management_cost,
            last_price=self._last_price,
        )


@dataclass
class ModelPortfolioComponent:
    """
    One target entry of a model portfolio.

    Attributes:
        security: Target security
        allocation: Target weight (0-1)
        cash_reserve: Absolute cash floor, only meaningful on the cash entry
    """
    security: Security
    allocation: Decimal
    cash_reserve: Optional[Decimal] = None

    @property
    def ticker(self) -> str:
        return self.security.ticker


@dataclass
class ModelPortfolio:
    """Named target allocation that the rebalancing policy steers toward."""
    name: str
    components: list[ModelPortfolioComponent] = field(default_factory=list)

    def get_component(self, ticker: str) -> Optional[ModelPortfolioComponent]:
        for component in self.components:
            if component.ticker == ticker:
                return component
        return None

    def cash_component(self) -> Optional[ModelPortfolioComponent]:
        for component in self.components:
            if component.security.is_cash:
                return component
        return None

    @property
    def cash_reserve(self) -> Decimal:
        component = self.cash_component()
        if component is None or component.cash_reserve is None:
            return Decimal("0")
        return component.cash_reserve

    @property
    def cash_allocation(self) -> Decimal:
        component = self.cash_component()
        return component.allocation if component is not None else Decimal("0")

    @property
    def total_allocation(self) -> Decimal:
        return sum((c.allocation for c in self.components), Decimal("0"))

    def validate(self, tolerance: Decimal = Decimal("0.0001")) -> None:
        """
        Check that allocations sum to 1 and tickers are unique.

        Raises:
            SimulationSetupError: If either rule is broken
        """
        tickers = [c.ticker for c in self.components]
        duplicates = sorted({t for t in tickers if tickers.count(t) > 1})
        if duplicates:
            raise SimulationSetupError(
                f"Model portfolio {self.name} lists {duplicates} more than once"
            )

        total = self.total_allocation
        if abs(total - Decimal("1")) > tolerance:
            raise SimulationSetupError(
                f"Model portfolio {self.name} allocations sum to {total}, expected 1"
            )


@dataclass(frozen=True)
class ThresholdMixedPolicy:
    """
    Threshold rebalancing with leftover-cash redistribution.

    Attributes:
        threshold: Absolute drift above which an asset is out of balance
        trading_expense_threshold: Maximum fee-to-amount ratio for a new buy
    """
    threshold: Decimal = Decimal("0.01")
    trading_expense_threshold: Decimal = Decimal("0.1")


# Closed set of supported policies; dispatch happens in trading.strategy.
RebalancingPolicy = ThresholdMixedPolicy


class Portfolio:
    """
    Mutable holdings ledger simulated against a model portfolio.

    Attributes:
        name: Portfolio name
        transaction_fee: Flat default fee per trade
        holdings: Assets, unique by ticker, in insertion order
        market_value: Sum of asset market values as of the last revaluation
        model_portfolio: Target allocation
        rebalancing_policy: Policy used to check and plan rebalancing
    """

    def __init__(
        self,
        name: str,
        transaction_fee: Decimal = Decimal("0"),
        holdings: Optional[list[Asset]] = None,
        model_portfolio: Optional[ModelPortfolio] = None,
        rebalancing_policy: Optional["RebalancingPolicy"] = None,
    ):
        self.name = name
        self.transaction_fee = transaction_fee
        self.holdings: list[Asset] = []
        self.market_value = Decimal("0")
        self.model_portfolio = model_portfolio
        self.rebalancing_policy = rebalancing_policy or ThresholdMixedPolicy()
        for asset in holdings or []:
            self.add_asset(asset)

    def __repr__(self) -> str:
        return f"Portfolio({self.name!r}, holdings={len(self.holdings)})"

    def get_asset(self, ticker: str) -> Optional[Asset]:
        for asset in self.holdings:
            if asset.ticker == ticker:
                return asset
        return None

    def get_cash_asset(self) -> Optional[Asset]:
        for asset in self.holdings:
            if asset.is_cash:
                return asset
        return None

    def add_asset(self, asset: Asset) -> Asset:
        if self.get_asset(asset.ticker) is not None:
            raise ValueError(f"Portfolio {self.name} already holds {asset.ticker}")
        self.holdings.append(asset)
        return asset

    @property
    def book_value(self) -> Decimal:
        return sum((a.book_value for a in self.holdings), Decimal("0"))

    @property
    def cash(self) -> Decimal:
        cash_asset = self.get_cash_asset()
        return cash_asset.book_value if cash_asset is not None else Decimal("0")

    def recompute_market_value(self) -> Decimal:
        self.market_value = sum((a.market_value for a in self.holdings), Decimal("0"))
        return self.market_value

    def clone(self) -> "Portfolio":
        """Copy with independent holdings; securities and the model are shared."""
        cloned = Portfolio(
            name=self.name,
            transaction_fee=self.transaction_fee,
            holdings=[a.copy() for a in self.holdings],
            model_portfolio=self.model_portfolio,
            rebalancing_policy=self.rebalancing_policy,
        )
        cloned.market_value = self.market_value
        return cloned


@dataclass
class TradePlanItem:
    """
    Monetary trade intent produced by the rebalancing policy.

    Positive amounts buy, negative amounts sell.
    """
    security: Security
    amount: Decimal

    @property
    def side(self) -> TradeSide:
        return TradeSide.SELL if self.amount < 0 else TradeSide.BUY


@dataclass(frozen=True)
class TradeOrder:
    """
    Unit-denominated order priced on its execution date.

    Attributes:
        security: Traded security
        side: BUY or SELL
        units: Non-negative unit quantity
        price: Execution price per unit
        fee: Transaction fee charged
        trade_date: Execution date
    """
    security: Security
    side: TradeSide
    units: Decimal
    price: Decimal
    fee: Decimal
    trade_date: date

    @property
    def gross_amount(self) -> Decimal:
        return self.units * self.price

    @property
    def cash_effect(self) -> Decimal:
        """Signed change to the cash balance once settled."""
        if self.side is TradeSide.SELL:
            return self.gross_amount - self.fee
        return -(self.gross_amount + self.fee)


@dataclass
class SimulationParameters:
    """
    Inputs for one simulation run.

    Attributes:
        simulation_id: Identifier of the run
        inception_date: First simulated date
        stop_date: Last simulated date
        initial_portfolio: Starting holdings (cloned by the engine)
        model_portfolio: Target allocation
        force_initial_rebalancing: Stage a plan before the loop starts
        set_initial_book_cost: Rebase book costs to inception prices
        schedule_kind: Rebalancing cadence name (daily, monthly, quarterly, semiannual)
    """
    simulation_id: str
    inception_date: date
    stop_date: date
    initial_portfolio: Portfolio
    model_portfolio: ModelPortfolio
    force_initial_rebalancing: bool = False
    set_initial_book_cost: bool = False
    schedule_kind: str = "quarterly"


@dataclass
class DailySnapshot:
    """Portfolio totals at the end of one simulated day."""
    date: date
    market_value: Decimal
    cash: Decimal
    book_value: Decimal
    dividends_paid: Decimal
    management_cost: Decimal


@dataclass(frozen=True)
class HoldingSnapshot:
    """Read-only view of one holding for reporting."""
    ticker: str
    units: Decimal
    book_value: Decimal
    book_price: Decimal
    last_price: Decimal
    market_value: Decimal
    dividends_paid: Decimal
    management_cost: Decimal
    is_cash: bool

    @classmethod
    def from_asset(cls, asset: Asset) -> "HoldingSnapshot":
        return cls(
            ticker=asset.ticker,
            units=asset.units,
            book_value=asset.book_value,
            book_price=asset.book_price,
            last_price=asset.last_price,
            market_value=asset.market_value,
            dividends_paid=asset.dividends_paid,
            management_cost=asset.management_cost,
            is_cash=asset.is_cash,
        )


@dataclass
class PortfolioStats:
    """
    Aggregate statistics of a finished (or paused) simulation.

    Attributes:
        initial_value: Market value at inception
        book_cost: Sum of holding book values
        market_value: Final market value
        dividends_paid: Dividends received over the run
        management_expenses: Transaction fees paid over the run
        total_return: market_value - initial_value
        total_return_rate: total_return / initial_value
        annualized_return_rate: Compounded yearly rate over the elapsed days
        days: Calendar days elapsed since inception
        max_drawdown: Worst peak-to-trough decline of daily market value
        annualized_volatility: Annualized standard deviation of daily returns
    """
    initial_value: Decimal
    book_cost: Decimal
    market_value: Decimal
    dividends_paid: Decimal
    management_expenses: Decimal
    total_return: Decimal
    total_return_rate: Decimal
    annualized_return_rate: Decimal
    days: int
    max_drawdown: float = 0.0
    annualized_volatility: float = 0.0


@dataclass
class RunConfig:
    """
    Run configuration loaded from YAML.

    Attributes:
        data_dir: Directory holding the CSV data set
        output_dir: Directory for snapshots and holdings output
        stats_file: CSV that accumulates one statistics row per run
        decision_log: JSONL decision log path (None keeps entries in memory)
        schedule: Default rebalancing cadence when the data set omits one
        threshold: Drift threshold that triggers rebalancing
        trading_expense_threshold: Maximum fee-to-amount ratio for new buys
        allocation_tolerance: Allowed deviation of model allocations from 1
        log_level: Logging level name
    """
    data_dir: str = "config"
    output_dir: str = "output"
    stats_file: str = "Stats.csv"
    decision_log: Optional[str] = "output/decision_log.jsonl"
    schedule: str = "quarterly"
    threshold: Decimal = Decimal("0.01")
    trading_expense_threshold: Decimal = Decimal("0.1")
    allocation_tolerance: Decimal = Decimal("0.0001")
    log_level: str = "INFO"


@dataclass
class DecisionLogEntry:
    """
    Entry for the append-only decision log.

    Attributes:
        timestamp: When the action occurred
        action_type: Type of action
        simulation_id: Simulation involved (if applicable)
        sim_date: Simulated date the action belongs to (if applicable)
        details: JSON-serializable details dictionary
    """
    timestamp: datetime
    action_type: ActionType
    simulation_id: Optional[str]
    sim_date: Optional[date]
    details: dict

    @classmethod
    def create(
        cls,
        action_type: ActionType,
        simulation_id: Optional[str],
        details: dict,
        sim_date: Optional[date] = None,
    ) -> "DecisionLogEntry":
        """Factory method with auto-generated timestamp."""
        return cls(
            timestamp=datetime.now(),
            action_type=action_type,
            simulation_id=simulation_id,
            sim_date=sim_date,
            details=details,
        )
