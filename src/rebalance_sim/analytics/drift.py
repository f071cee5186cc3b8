"""
Drift analysis of portfolio holdings vs the model portfolio.

This module computes the investable value of a portfolio, the current weight
of each holding and its drift from the target weight. The rebalancing policy
builds both its check and its trade plan on these figures.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from rebalance_sim.models import Asset, ModelPortfolio, Portfolio


@dataclass
class DriftAnalysis:
    """
    Drift of a single asset vs its model target.

    Attributes:
        asset: Holding (or a zero-unit placeholder for an unheld model entry)
        current_weight: asset market value / investable value
        target_weight: Model allocation (0 if not in the model)
        drift: current_weight - target_weight
        in_model: Whether the model portfolio lists the asset
    """
    asset: Asset
    current_weight: Decimal
    target_weight: Decimal
    drift: Decimal
    in_model: bool

    @property
    def ticker(self) -> str:
        return self.asset.ticker

    def exceeds(self, threshold: Decimal) -> bool:
        """Strict comparison: drift equal to the threshold is within tolerance."""
        return abs(self.drift) > threshold


def investable_value(portfolio: Portfolio, model: ModelPortfolio) -> Decimal:
    """Portfolio market value less the model's cash floor."""
    return portfolio.market_value - model.cash_reserve


def analyze_asset(
    asset: Asset,
    model: ModelPortfolio,
    investable: Decimal,
) -> DriftAnalysis:
    """
    Calculate weight and drift for one asset.

    Args:
        asset: Asset to analyze
        model: Target model portfolio
        investable: Positive investable value of the portfolio

    Returns:
        DriftAnalysis for the asset
    """
    component = model.get_component(asset.ticker)
    target_weight = component.allocation if component is not None else Decimal("0")
    current_weight = asset.market_value / investable

    return DriftAnalysis(
        asset=asset,
        current_weight=current_weight,
        target_weight=target_weight,
        drift=current_weight - target_weight,
        in_model=component is not None,
    )


def combined_assets(portfolio: Portfolio, model: ModelPortfolio) -> list[Asset]:
    """
    Union of model entries and holdings, keyed by ticker.

    Model entries without a holding become empty placeholder assets; held
    assets replace placeholders since they carry live market value. Model
    order comes first, followed by holdings outside the model.
    """
    assets: dict[str, Asset] = {
        c.ticker: Asset(c.security) for c in model.components
    }
    for asset in portfolio.holdings:
        assets[asset.ticker] = asset
    return list(assets.values())


def calculate_drift(
    portfolio: Portfolio,
    model: Optional[ModelPortfolio] = None,
) -> list[DriftAnalysis]:
    """
    Calculate drift for every model entry and holding.

    Args:
        portfolio: Portfolio with up-to-date market values
        model: Target model (defaults to the portfolio's model)

    Returns:
        List of DriftAnalysis objects, empty when nothing is investable
    """
    model = model or portfolio.model_portfolio
    investable = investable_value(portfolio, model)
    if investable <= 0:
        return []

    return [
        analyze_asset(asset, model, investable)
        for asset in combined_assets(portfolio, model)
    ]


def find_orphaned_holdings(portfolio: Portfolio, model: ModelPortfolio) -> list[str]:
    """Tickers held with positive units but absent from the model."""
    return [
        asset.ticker
        for asset in portfolio.holdings
        if model.get_component(asset.ticker) is None and asset.units > 0
    ]


def summarize_drift(drift_analyses: list[DriftAnalysis], threshold: Decimal) -> dict:
    """
    Generate summary statistics for a drift analysis.

    Args:
        drift_analyses: List of drift analyses
        threshold: Drift threshold

    Returns:
        Dictionary with summary statistics
    """
    exceeding = [da for da in drift_analyses if da.exceeds(threshold)]
    return {
        "total_positions": len(drift_analyses),
        "positions_exceeding_threshold": len(exceeding),
        "exceeding_tickers": [da.ticker for da in exceeding],
        "max_absolute_drift": max(
            (abs(da.drift) for da in drift_analyses),
            default=Decimal("0"),
        ),
    }
