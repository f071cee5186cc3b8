"""
Tests for performance statistics.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from rebalance_sim.models import DailySnapshot
from rebalance_sim.simulation.metrics import (
    annualize_return,
    calculate_portfolio_stats,
    calculate_risk_metrics,
    snapshots_to_series,
)


def _snapshots(values: list[str]) -> list[DailySnapshot]:
    start = date(2024, 1, 1)
    return [
        DailySnapshot(
            date=start + timedelta(days=i),
            market_value=Decimal(v),
            cash=Decimal("0"),
            book_value=Decimal("0"),
            dividends_paid=Decimal("0"),
            management_cost=Decimal("0"),
        )
        for i, v in enumerate(values)
    ]


class TestAnnualizeReturn:
    """Tests for annualize_return."""

    def test_full_year_is_unchanged(self):
        assert annualize_return(Decimal("0.1"), 365) == Decimal("0.1")

    def test_compounds_partial_period(self):
        result = annualize_return(Decimal("0.1"), 730)
        assert float(result) == pytest.approx(0.0488088, abs=1e-6)

    def test_zero_days(self):
        assert annualize_return(Decimal("0.5"), 0) == Decimal("0")

    def test_total_loss(self):
        assert annualize_return(Decimal("-1"), 100) == Decimal("-1")


class TestRiskMetrics:
    """Tests for drawdown and volatility."""

    def test_series_indexed_by_date(self):
        series = snapshots_to_series(_snapshots(["100", "110"]))
        assert list(series) == [100.0, 110.0]
        assert str(series.index[0].date()) == "2024-01-01"

    def test_max_drawdown(self):
        drawdown, _ = calculate_risk_metrics(_snapshots(["100", "120", "90", "130"]))
        assert drawdown == pytest.approx(-0.25)

    def test_flat_series_has_no_risk(self):
        assert calculate_risk_metrics(_snapshots(["100", "100", "100"])) == (0.0, 0.0)

    def test_too_few_snapshots(self):
        assert calculate_risk_metrics(_snapshots(["100"])) == (0.0, 0.0)
        assert calculate_risk_metrics([]) == (0.0, 0.0)

    def test_volatility_is_positive_for_moving_series(self):
        _, volatility = calculate_risk_metrics(_snapshots(["100", "110", "99", "105"]))
        assert volatility > 0


class TestPortfolioStats:
    """Tests for calculate_portfolio_stats."""

    def test_stats(self, make_portfolio, balanced_model, stock_a, cash_security):
        portfolio = make_portfolio(
            balanced_model, [(stock_a, "50", "504.95"), (cash_security, "0", "595.05")]
        )
        portfolio.get_asset("AAA").management_cost = Decimal("4.95")

        stats = calculate_portfolio_stats(
            portfolio,
            initial_value=Decimal("1000"),
            inception_date=date(2024, 1, 1),
            current_date=date(2024, 1, 11),
        )

        assert stats.market_value == Decimal("1095.05")
        assert stats.book_cost == Decimal("1100.00")
        assert stats.total_return == Decimal("95.05")
        assert stats.total_return_rate == Decimal("0.09505")
        assert stats.management_expenses == Decimal("4.95")
        assert stats.days == 10
        assert stats.annualized_return_rate > stats.total_return_rate

    def test_zero_initial_value(self, make_portfolio, balanced_model, cash_security):
        portfolio = make_portfolio(balanced_model, [(cash_security, "0", "0")])

        stats = calculate_portfolio_stats(
            portfolio, Decimal("0"), date(2024, 1, 1), date(2024, 1, 1)
        )

        assert stats.total_return_rate == Decimal("0")
        assert stats.annualized_return_rate == Decimal("0")
