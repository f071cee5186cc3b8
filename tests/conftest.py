"""
Pytest fixtures for the rebalancing simulator tests.

Provides common test data and utilities used across test modules.
"""

from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Callable, Optional

import pytest

from rebalance_sim.models import (
    Asset,
    Dividend,
    InstrumentKind,
    ModelPortfolio,
    ModelPortfolioComponent,
    Portfolio,
    Quote,
    Security,
    SimulationParameters,
    ThresholdMixedPolicy,
)
from rebalance_sim.portfolio.valuation import revalue_portfolio

START = date(2024, 1, 1)


def flat_quote(trading_date: date, price: str | Decimal) -> Quote:
    """Quote whose average price equals price."""
    price = Decimal(str(price))
    return Quote(
        trading_date=trading_date,
        open=price,
        high=price,
        low=price,
        close=price,
        volume=1000,
        adjusted_close=price,
    )


@pytest.fixture
def make_security() -> Callable[..., Security]:
    """
    Factory for tradable securities with one quote per calendar day.

    prices is either a single price repeated for `days` days from `start`, or
    a list with one price per day.
    """
    def factory(
        ticker: str,
        prices: str | list[str] = "10",
        days: int = 120,
        start: date = START,
        dividends: Optional[dict[date, str]] = None,
        allows_partial_shares: bool = False,
        buy_fee: Optional[str] = None,
        sell_fee: Optional[str] = None,
    ) -> Security:
        if isinstance(prices, str):
            prices = [prices] * days
        return Security(
            ticker=ticker,
            name=f"{ticker} Fund",
            allows_partial_shares=allows_partial_shares,
            buy_fee=Decimal(buy_fee) if buy_fee is not None else None,
            sell_fee=Decimal(sell_fee) if sell_fee is not None else None,
            quotes=[
                flat_quote(start + timedelta(days=i), price)
                for i, price in enumerate(prices)
            ],
            dividends=[
                Dividend(payment_date=d, amount=Decimal(amount))
                for d, amount in sorted((dividends or {}).items())
            ],
        )
    return factory


@pytest.fixture
def cash_security() -> Security:
    """Fixed-price cash pseudo-security."""
    return Security(
        ticker="$CAD",
        kind=InstrumentKind.CASH_LIKE,
        name="Canadian Dollar",
        fixed_price=Decimal("1"),
    )


@pytest.fixture
def stock_a(make_security) -> Security:
    return make_security("AAA", "10")


@pytest.fixture
def stock_b(make_security) -> Security:
    return make_security("BBB", "10")


@pytest.fixture
def balanced_model(stock_a: Security, cash_security: Security) -> ModelPortfolio:
    """50% AAA, 50% cash."""
    return ModelPortfolio(
        name="Balanced",
        components=[
            ModelPortfolioComponent(security=stock_a, allocation=Decimal("0.5")),
            ModelPortfolioComponent(security=cash_security, allocation=Decimal("0.5")),
        ],
    )


@pytest.fixture
def make_portfolio() -> Callable[..., Portfolio]:
    """
    Factory for portfolios revalued on START.

    Holdings are (security, units, book_value) tuples; for cash pass the
    balance as book_value.
    """
    def factory(
        model: ModelPortfolio,
        holdings: list[tuple[Security, str, str]],
        transaction_fee: str = "0",
        policy: Optional[ThresholdMixedPolicy] = None,
        as_of: date = START,
    ) -> Portfolio:
        portfolio = Portfolio(
            name="Test Portfolio",
            transaction_fee=Decimal(transaction_fee),
            model_portfolio=model,
            rebalancing_policy=policy,
        )
        for security, units, book_value in holdings:
            portfolio.add_asset(
                Asset(security, units=Decimal(units), book_value=Decimal(book_value))
            )
        revalue_portfolio(portfolio, as_of, accrue_dividends=False)
        return portfolio
    return factory


@pytest.fixture
def cash_only_parameters(
    cash_security: Security,
    balanced_model: ModelPortfolio,
) -> SimulationParameters:
    """1000 in cash against the 50/50 model, forced initial rebalancing."""
    portfolio = Portfolio(
        name="Starter",
        holdings=[Asset(cash_security, book_value=Decimal("1000"))],
    )
    return SimulationParameters(
        simulation_id="SIM1",
        inception_date=START,
        stop_date=date(2024, 1, 10),
        initial_portfolio=portfolio,
        model_portfolio=balanced_model,
        force_initial_rebalancing=True,
    )


def _write(path: Path, lines: list[str]) -> None:
    path.write_text("\n".join(lines) + "\n")


@pytest.fixture
def csv_data_dir(tmp_path: Path) -> Path:
    """
    A complete CSV data set.

    AAA trades at 10 and BBB at 20 every day from 2024-01-01 to 2024-03-31.
    AAA pays a 0.25 dividend on 2024-01-15. Portfolio P1 holds 1000 in cash
    and model M1 targets 40% AAA, 40% BBB, 20% cash.
    """
    data_dir = tmp_path / "config"
    quotes_dir = data_dir / "quotes"
    quotes_dir.mkdir(parents=True)

    _write(data_dir / "Securities.csv", [
        "Ticker,Name,IsCurrency,PartialShares,FixedPrice,BuyTransactionFee,SellTransactionFee",
        "$CAD,Canadian Dollar,True,True,1,,",
        "AAA,AAA Fund,False,False,,,",
        "BBB,BBB Fund,False,False,,4.95,",
    ])

    for ticker, price in (("AAA", "10"), ("BBB", "20")):
        rows = ["Date,Open,High,Low,Close,Volume,Adj Close"]
        day = date(2024, 3, 31)
        # newest first, as downloaded
        while day >= date(2024, 1, 1):
            rows.append(f"{day.isoformat()},{price},{price},{price},{price},1000,{price}")
            day -= timedelta(days=1)
        _write(quotes_dir / f"{ticker}_SecurityPrices.csv", rows)

    _write(quotes_dir / "AAA_SecurityDividends.csv", [
        "Date,Dividends",
        "2024-01-15,0.25",
    ])

    _write(data_dir / "Portfolios.csv", [
        "PortfolioId,Name,TransactionFee",
        "P1,Starter,0",
    ])
    _write(data_dir / "P1_Holdings.csv", [
        "Ticker,Units,BookCost",
        "$CAD,1000,1000",
    ])

    _write(data_dir / "ModelPortfolios.csv", [
        "ModelPortfolioId,Name",
        "M1,Growth",
    ])
    _write(data_dir / "M1_ModelPortfolioAssets.csv", [
        "Ticker,Allocation,CashReserve",
        "AAA,0.4,",
        "BBB,0.4,",
        "$CAD,0.2,0",
    ])

    _write(data_dir / "SimulationParameters.csv", [
        "SimulationId,ModelPortfolioId,PortfolioId,InceptionDate,StopDate,"
        "ForceInitialRebalancing,SetInitialBookCost,Schedule",
        "SIM1,M1,P1,2024-01-01,2024-02-29,True,False,monthly",
        "SIM2,M1,P1,2024-01-01,2024-01-31,False,False,",
    ])

    return data_dir


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    """Directory for test outputs."""
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return output_dir
