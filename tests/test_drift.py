"""
Tests for drift analysis functionality.
"""

from decimal import Decimal

from rebalance_sim.analytics.drift import (
    calculate_drift,
    combined_assets,
    find_orphaned_holdings,
    investable_value,
    summarize_drift,
)
from rebalance_sim.models import ModelPortfolio, ModelPortfolioComponent


class TestInvestableValue:
    """Tests for investable_value."""

    def test_subtracts_cash_reserve(self, make_portfolio, stock_a, cash_security):
        model = ModelPortfolio(
            name="Reserve",
            components=[
                ModelPortfolioComponent(stock_a, Decimal("0.5")),
                ModelPortfolioComponent(cash_security, Decimal("0.5"), cash_reserve=Decimal("200")),
            ],
        )
        portfolio = make_portfolio(model, [(stock_a, "60", "600"), (cash_security, "0", "400")])

        assert portfolio.market_value == Decimal("1000")
        assert investable_value(portfolio, model) == Decimal("800")


class TestCalculateDrift:
    """Tests for calculate_drift."""

    def test_weights_and_drift(self, make_portfolio, balanced_model, stock_a, cash_security):
        portfolio = make_portfolio(
            balanced_model, [(stock_a, "60", "600"), (cash_security, "0", "400")]
        )

        analyses = {a.ticker: a for a in calculate_drift(portfolio)}

        assert analyses["AAA"].current_weight == Decimal("0.6")
        assert analyses["AAA"].drift == Decimal("0.1")
        assert analyses["$CAD"].drift == Decimal("-0.1")

    def test_unheld_model_entry_has_full_negative_drift(
        self, make_portfolio, balanced_model, cash_security
    ):
        portfolio = make_portfolio(balanced_model, [(cash_security, "0", "1000")])

        analyses = {a.ticker: a for a in calculate_drift(portfolio)}

        assert analyses["AAA"].current_weight == Decimal("0")
        assert analyses["AAA"].drift == Decimal("-0.5")

    def test_nothing_investable(self, make_portfolio, stock_a, cash_security):
        model = ModelPortfolio(
            name="Reserve",
            components=[
                ModelPortfolioComponent(stock_a, Decimal("0.5")),
                ModelPortfolioComponent(cash_security, Decimal("0.5"), cash_reserve=Decimal("5000")),
            ],
        )
        portfolio = make_portfolio(model, [(cash_security, "0", "1000")])

        assert calculate_drift(portfolio) == []


class TestCombinedAssets:
    """Tests for the union of model entries and holdings."""

    def test_holdings_replace_placeholders(
        self, make_portfolio, balanced_model, stock_a, stock_b, cash_security
    ):
        portfolio = make_portfolio(
            balanced_model,
            [(stock_a, "10", "100"), (stock_b, "5", "50"), (cash_security, "0", "100")],
        )

        assets = combined_assets(portfolio, balanced_model)

        assert [a.ticker for a in assets] == ["AAA", "$CAD", "BBB"]
        assert assets[0] is portfolio.get_asset("AAA")


class TestOrphanedHoldings:
    """Tests for find_orphaned_holdings."""

    def test_finds_holdings_outside_model(
        self, make_portfolio, balanced_model, stock_a, stock_b, cash_security
    ):
        portfolio = make_portfolio(
            balanced_model,
            [(stock_a, "10", "100"), (stock_b, "5", "50"), (cash_security, "0", "100")],
        )
        assert find_orphaned_holdings(portfolio, balanced_model) == ["BBB"]

    def test_zero_unit_holding_is_not_orphaned(
        self, make_portfolio, balanced_model, stock_b, cash_security
    ):
        portfolio = make_portfolio(
            balanced_model, [(stock_b, "0", "0"), (cash_security, "0", "100")]
        )
        assert find_orphaned_holdings(portfolio, balanced_model) == []


class TestSummarizeDrift:
    """Tests for summarize_drift."""

    def test_summary(self, make_portfolio, balanced_model, stock_a, cash_security):
        portfolio = make_portfolio(
            balanced_model, [(stock_a, "60", "600"), (cash_security, "0", "400")]
        )

        summary = summarize_drift(calculate_drift(portfolio), Decimal("0.01"))

        assert summary["total_positions"] == 2
        assert summary["positions_exceeding_threshold"] == 2
        assert summary["max_absolute_drift"] == Decimal("0.1")
