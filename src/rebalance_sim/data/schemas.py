"""
Data schemas for CSV file validation.

Defines expected columns for every file of a simulation data set.
"""

from dataclasses import dataclass


@dataclass
class ColumnSchema:
    """Schema definition for a single column."""
    name: str
    required: bool = True
    nullable: bool = False


@dataclass
class FileSchema:
    """Schema definition for a file."""
    name: str
    columns: list[ColumnSchema]
    description: str

    @property
    def required_columns(self) -> list[str]:
        """Get list of required column names."""
        return [c.name for c in self.columns if c.required]

    @property
    def all_columns(self) -> list[str]:
        """Get list of all column names."""
        return [c.name for c in self.columns]

    def validate_columns(self, df_columns: list[str]) -> tuple[bool, list[str]]:
        """
        Validate that a dataframe has the required columns.

        Args:
            df_columns: List of column names from the dataframe

        Returns:
            Tuple of (is_valid, list of missing columns)
        """
        missing = [col for col in self.required_columns if col not in df_columns]
        return len(missing) == 0, missing


# Security catalog
SECURITIES_SCHEMA = FileSchema(
    name="securities",
    description="Security catalog with cash flag, partial-share flag and fee overrides",
    columns=[
        ColumnSchema(name="Ticker"),
        ColumnSchema(name="Name", required=False, nullable=True),
        ColumnSchema(name="IsCurrency", required=False, nullable=True),
        ColumnSchema(name="PartialShares", required=False, nullable=True),
        ColumnSchema(name="FixedPrice", required=False, nullable=True),
        ColumnSchema(name="BuyTransactionFee", required=False, nullable=True),
        ColumnSchema(name="SellTransactionFee", required=False, nullable=True),
    ],
)

# Daily quotes per security
QUOTES_SCHEMA = FileSchema(
    name="security_prices",
    description="Daily OHLC quotes of one security",
    columns=[
        ColumnSchema(name="Date"),
        ColumnSchema(name="Open"),
        ColumnSchema(name="High"),
        ColumnSchema(name="Low"),
        ColumnSchema(name="Close"),
        ColumnSchema(name="Volume", required=False),
        ColumnSchema(name="Adj Close", required=False, nullable=True),
    ],
)

# Dividends per security
DIVIDENDS_SCHEMA = FileSchema(
    name="security_dividends",
    description="Per-unit dividends of one security",
    columns=[
        ColumnSchema(name="Date"),
        ColumnSchema(name="Dividends"),
    ],
)

PORTFOLIOS_SCHEMA = FileSchema(
    name="portfolios",
    description="Initial portfolios with their default transaction fee",
    columns=[
        ColumnSchema(name="PortfolioId"),
        ColumnSchema(name="Name", required=False, nullable=True),
        ColumnSchema(name="TransactionFee", required=False, nullable=True),
    ],
)

HOLDINGS_SCHEMA = FileSchema(
    name="holdings",
    description="Holdings of one initial portfolio",
    columns=[
        ColumnSchema(name="Ticker"),
        ColumnSchema(name="Units"),
        ColumnSchema(name="BookCost"),
    ],
)

MODEL_PORTFOLIOS_SCHEMA = FileSchema(
    name="model_portfolios",
    description="Model portfolio names",
    columns=[
        ColumnSchema(name="ModelPortfolioId"),
        ColumnSchema(name="Name", required=False, nullable=True),
    ],
)

MODEL_PORTFOLIO_ASSETS_SCHEMA = FileSchema(
    name="model_portfolio_assets",
    description="Target allocations of one model portfolio",
    columns=[
        ColumnSchema(name="Ticker"),
        ColumnSchema(name="Allocation"),
        ColumnSchema(name="CashReserve", required=False, nullable=True),
    ],
)

SIMULATION_PARAMETERS_SCHEMA = FileSchema(
    name="simulation_parameters",
    description="Simulation runs over a model portfolio and an initial portfolio",
    columns=[
        ColumnSchema(name="SimulationId"),
        ColumnSchema(name="ModelPortfolioId"),
        ColumnSchema(name="PortfolioId"),
        ColumnSchema(name="InceptionDate"),
        ColumnSchema(name="StopDate", nullable=True),
        ColumnSchema(name="ForceInitialRebalancing", required=False, nullable=True),
        ColumnSchema(name="SetInitialBookCost", required=False, nullable=True),
        ColumnSchema(name="Schedule", required=False, nullable=True),
    ],
)
