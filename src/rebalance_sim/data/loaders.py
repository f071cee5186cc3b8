"""
CSV data source for simulation inputs.

Reads a data directory laid out as:

    Securities.csv
    quotes/{Ticker}_SecurityPrices.csv
    quotes/{Ticker}_SecurityDividends.csv      (optional)
    Portfolios.csv
    {PortfolioId}_Holdings.csv
    ModelPortfolios.csv
    {ModelPortfolioId}_ModelPortfolioAssets.csv
    SimulationParameters.csv

Files are read with pandas as strings and converted to Decimal so that no
monetary value passes through a float.
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import pandas as pd

from rebalance_sim.data.base import DataSource
from rebalance_sim.data.schemas import (
    DIVIDENDS_SCHEMA,
    HOLDINGS_SCHEMA,
    MODEL_PORTFOLIO_ASSETS_SCHEMA,
    MODEL_PORTFOLIOS_SCHEMA,
    PORTFOLIOS_SCHEMA,
    QUOTES_SCHEMA,
    SECURITIES_SCHEMA,
    SIMULATION_PARAMETERS_SCHEMA,
    FileSchema,
)
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
)

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"true", "1", "yes", "y"}
_FALSE_VALUES = {"false", "0", "no", "n", ""}


class DataLoadError(Exception):
    """Raised when data cannot be loaded or is invalid."""
    pass


class CsvDataSource(DataSource):
    """
    DataSource reading the CSV directory layout.

    Securities and model portfolios are loaded once and shared. Portfolios
    are rebuilt on every call so each simulation owns its holdings.
    """

    def __init__(self, data_dir: str | Path, default_schedule: str = "quarterly"):
        self.data_dir = Path(data_dir)
        self.default_schedule = default_schedule
        self._securities: Optional[dict[str, Security]] = None
        self._model_portfolios: dict[str, ModelPortfolio] = {}

        if not self.data_dir.is_dir():
            raise DataLoadError(f"Data directory not found: {self.data_dir}")

    def get_securities(self) -> dict[str, Security]:
        if self._securities is None:
            self._securities = self._load_securities()
        return self._securities

    def get_security(self, ticker: str, source: Path) -> Security:
        """
        Look up a catalog security.

        Raises:
            DataLoadError: If the ticker is not in Securities.csv
        """
        securities = self.get_securities()
        if ticker not in securities:
            raise DataLoadError(f"Unknown ticker {ticker} in {source}")
        return securities[ticker]

    def get_model_portfolio(self, model_portfolio_id: str) -> ModelPortfolio:
        if model_portfolio_id not in self._model_portfolios:
            self._model_portfolios[model_portfolio_id] = self._load_model_portfolio(
                model_portfolio_id
            )
        return self._model_portfolios[model_portfolio_id]

    def get_portfolio(self, portfolio_id: str) -> Portfolio:
        index_path = self.data_dir / "Portfolios.csv"
        df = _load_csv(index_path, PORTFOLIOS_SCHEMA)
        rows = df[df["PortfolioId"] == portfolio_id]
        if rows.empty:
            raise DataLoadError(f"Portfolio {portfolio_id} not found in {index_path}")
        row = rows.iloc[0]

        portfolio = Portfolio(
            name=_optional_str(row, "Name") or portfolio_id,
            transaction_fee=_parse_decimal(
                _optional_str(row, "TransactionFee") or "0", "TransactionFee", index_path
            ),
        )

        holdings_path = self.data_dir / f"{portfolio_id}_Holdings.csv"
        holdings = _load_csv(holdings_path, HOLDINGS_SCHEMA)
        for _, holding in holdings.iterrows():
            ticker = holding["Ticker"].strip()
            security = self.get_security(ticker, holdings_path)
            try:
                portfolio.add_asset(
                    Asset(
                        security,
                        units=_parse_decimal(holding["Units"], "Units", holdings_path),
                        book_value=_parse_decimal(holding["BookCost"], "BookCost", holdings_path),
                    )
                )
            except ValueError as e:
                raise DataLoadError(f"Invalid holdings in {holdings_path}: {e}") from e

        return portfolio

    def get_simulation_parameters(self) -> list[SimulationParameters]:
        path = self.data_dir / "SimulationParameters.csv"
        df = _load_csv(path, SIMULATION_PARAMETERS_SCHEMA)

        parameters = []
        for _, row in df.iterrows():
            stop_value = _optional_str(row, "StopDate")
            parameters.append(
                SimulationParameters(
                    simulation_id=row["SimulationId"].strip(),
                    inception_date=_parse_date(row["InceptionDate"], "InceptionDate", path),
                    stop_date=(
                        _parse_date(stop_value, "StopDate", path) if stop_value else date.today()
                    ),
                    initial_portfolio=self.get_portfolio(row["PortfolioId"].strip()),
                    model_portfolio=self.get_model_portfolio(row["ModelPortfolioId"].strip()),
                    force_initial_rebalancing=_parse_bool(
                        _optional_str(row, "ForceInitialRebalancing"),
                        "ForceInitialRebalancing",
                        path,
                    ),
                    set_initial_book_cost=_parse_bool(
                        _optional_str(row, "SetInitialBookCost"),
                        "SetInitialBookCost",
                        path,
                    ),
                    schedule_kind=_optional_str(row, "Schedule") or self.default_schedule,
                )
            )

        return parameters

    def get_simulation(self, simulation_id: str) -> SimulationParameters:
        """
        Get the parameters of one simulation.

        Raises:
            DataLoadError: If no simulation has that identifier
        """
        try:
            return super().get_simulation(simulation_id)
        except KeyError:
            raise DataLoadError(
                f"Simulation {simulation_id} not found in "
                f"{self.data_dir / 'SimulationParameters.csv'}"
            )

    def _load_securities(self) -> dict[str, Security]:
        path = self.data_dir / "Securities.csv"
        df = _load_csv(path, SECURITIES_SCHEMA)

        securities: dict[str, Security] = {}
        for _, row in df.iterrows():
            ticker = row["Ticker"].strip()
            if ticker in securities:
                raise DataLoadError(f"Duplicate ticker {ticker} in {path}")

            fixed_price = _optional_str(row, "FixedPrice")
            is_cash = _parse_bool(_optional_str(row, "IsCurrency"), "IsCurrency", path)
            kind = InstrumentKind.CASH_LIKE if is_cash or fixed_price else InstrumentKind.TRADABLE

            buy_fee = _optional_str(row, "BuyTransactionFee")
            sell_fee = _optional_str(row, "SellTransactionFee")

            try:
                security = Security(
                    ticker=ticker,
                    kind=kind,
                    name=_optional_str(row, "Name") or ticker,
                    allows_partial_shares=_parse_bool(
                        _optional_str(row, "PartialShares"), "PartialShares", path
                    ),
                    fixed_price=_parse_decimal(fixed_price, "FixedPrice", path) if fixed_price else None,
                    buy_fee=_parse_decimal(buy_fee, "BuyTransactionFee", path) if buy_fee else None,
                    sell_fee=_parse_decimal(sell_fee, "SellTransactionFee", path) if sell_fee else None,
                )
            except ValueError as e:
                raise DataLoadError(f"Invalid security {ticker} in {path}: {e}") from e

            if not security.is_cash:
                self._load_quotes(security)
                self._load_dividends(security)

            securities[ticker] = security

        logger.debug("Loaded %d securities from %s", len(securities), path)
        return securities

    def _load_quotes(self, security: Security) -> None:
        path = self.data_dir / "quotes" / f"{security.ticker}_SecurityPrices.csv"
        df = _load_csv(path, QUOTES_SCHEMA)
        df = _sorted_by_date(df, path)

        for _, row in df.iterrows():
            adjusted = _optional_str(row, "Adj Close")
            volume = _optional_str(row, "Volume")
            security.add_quote(
                Quote(
                    trading_date=row["Date"],
                    open=_parse_decimal(row["Open"], "Open", path),
                    high=_parse_decimal(row["High"], "High", path),
                    low=_parse_decimal(row["Low"], "Low", path),
                    close=_parse_decimal(row["Close"], "Close", path),
                    volume=int(_parse_decimal(volume, "Volume", path)) if volume else 0,
                    adjusted_close=_parse_decimal(adjusted, "Adj Close", path) if adjusted else None,
                )
            )

    def _load_dividends(self, security: Security) -> None:
        path = self.data_dir / "quotes" / f"{security.ticker}_SecurityDividends.csv"
        if not path.exists():
            return

        df = _load_csv(path, DIVIDENDS_SCHEMA)
        df = _sorted_by_date(df, path)

        for _, row in df.iterrows():
            security.add_dividend(
                Dividend(
                    payment_date=row["Date"],
                    amount=_parse_decimal(row["Dividends"], "Dividends", path),
                )
            )

    def _load_model_portfolio(self, model_portfolio_id: str) -> ModelPortfolio:
        index_path = self.data_dir / "ModelPortfolios.csv"
        df = _load_csv(index_path, MODEL_PORTFOLIOS_SCHEMA)
        rows = df[df["ModelPortfolioId"] == model_portfolio_id]
        if rows.empty:
            raise DataLoadError(
                f"Model portfolio {model_portfolio_id} not found in {index_path}"
            )

        model = ModelPortfolio(name=_optional_str(rows.iloc[0], "Name") or model_portfolio_id)

        assets_path = self.data_dir / f"{model_portfolio_id}_ModelPortfolioAssets.csv"
        assets = _load_csv(assets_path, MODEL_PORTFOLIO_ASSETS_SCHEMA)
        for _, row in assets.iterrows():
            reserve = _optional_str(row, "CashReserve")
            model.components.append(
                ModelPortfolioComponent(
                    security=self.get_security(row["Ticker"].strip(), assets_path),
                    allocation=_parse_decimal(row["Allocation"], "Allocation", assets_path),
                    cash_reserve=(
                        _parse_decimal(reserve, "CashReserve", assets_path) if reserve else None
                    ),
                )
            )

        return model


def _load_csv(file_path: Path, schema: FileSchema) -> pd.DataFrame:
    """
    Load a CSV file as strings and validate against schema.

    Args:
        file_path: Path to CSV file
        schema: Expected file schema

    Returns:
        Loaded DataFrame with blank cells as empty strings

    Raises:
        DataLoadError: If file cannot be loaded or has missing columns
    """
    if not file_path.exists():
        raise DataLoadError(f"File not found: {file_path}")

    try:
        df = pd.read_csv(file_path, dtype=str, keep_default_na=False, skipinitialspace=True)
    except Exception as e:
        raise DataLoadError(f"Failed to load CSV file {file_path}: {e}")

    df.columns = [str(c).strip() for c in df.columns]

    is_valid, missing = schema.validate_columns(df.columns.tolist())
    if not is_valid:
        raise DataLoadError(
            f"File {file_path} is missing required columns: {missing}"
        )

    return df


def _sorted_by_date(df: pd.DataFrame, path: Path) -> pd.DataFrame:
    """Parse the Date column, sort ascending and drop repeated dates."""
    try:
        parsed = pd.to_datetime(df["Date"])
    except (ValueError, TypeError) as e:
        raise DataLoadError(f"Invalid Date in {path}: {e}")
    if parsed.isna().any():
        raise DataLoadError(f"Blank Date in {path}")
    df["Date"] = parsed.dt.date

    duplicated = df["Date"].duplicated(keep="first")
    if duplicated.any():
        logger.warning("Dropping %d duplicate dates in %s", int(duplicated.sum()), path)

    return df[~duplicated].sort_values("Date", kind="stable")


def _optional_str(row: pd.Series, column: str) -> str:
    """Stripped cell value, or an empty string if the column is absent."""
    if column not in row.index:
        return ""
    return str(row[column]).strip()


def _parse_decimal(value: str, field: str, path: Path) -> Decimal:
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise DataLoadError(f"Invalid {field} in {path}: {value!r}")


def _parse_date(value: str, field: str, path: Path) -> date:
    text = str(value).strip()
    if not text:
        raise DataLoadError(f"Missing {field} in {path}")
    try:
        return pd.to_datetime(text).date()
    except (ValueError, TypeError):
        raise DataLoadError(f"Invalid {field} in {path}: {value!r}")


def _parse_bool(value: str, field: str, path: Path) -> bool:
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise DataLoadError(f"Invalid {field} in {path}: {value!r}")
