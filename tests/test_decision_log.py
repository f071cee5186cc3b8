"""
Tests for the decision log.
"""

import json
from datetime import date
from decimal import Decimal

from rebalance_sim.logging import DecimalEncoder, DecisionLogger
from rebalance_sim.models import (
    ActionType,
    RunConfig,
    TradeOrder,
    TradePlanItem,
    TradeSide,
)

SIM_DATE = date(2024, 1, 2)


class TestDecisionLogger:
    """Tests for DecisionLogger."""

    def test_in_memory_without_path(self):
        logger = DecisionLogger()

        logger.log_config_loaded(RunConfig(), None)

        assert logger.log_path is None
        assert [e.action_type for e in logger.read_log()] == [ActionType.CONFIG_LOADED]

    def test_jsonl_round_trip(self, temp_output_dir, stock_a):
        path = temp_output_dir / "logs" / "decisions.jsonl"
        logger = DecisionLogger(path)

        logger.log_trade_plan_generated(
            "SIM1", SIM_DATE, [TradePlanItem(stock_a, Decimal("250"))]
        )
        logger.log_policy_skip(
            "SIM1", SIM_DATE, "BBB", "below_book_price", last_price=Decimal("9.50")
        )

        lines = path.read_text().strip().splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert first["action_type"] == "TRADE_PLAN_GENERATED"
        assert first["sim_date"] == "2024-01-02"
        assert first["details"]["items"] == [{"ticker": "AAA", "amount": "250"}]

        entries = DecisionLogger(path).read_log()
        assert [e.simulation_id for e in entries] == ["SIM1", "SIM1"]
        assert entries[1].sim_date == SIM_DATE
        assert entries[1].details["last_price"] == "9.50"

    def test_filter_by_action_type(self, stock_a):
        logger = DecisionLogger()
        order = TradeOrder(stock_a, TradeSide.BUY, Decimal("10"), Decimal("25"), Decimal("9.95"), SIM_DATE)

        logger.log_trades_executed("SIM1", SIM_DATE, [order], Decimal("740.05"))
        logger.log_policy_skip("SIM1", SIM_DATE, "AAA", "within_threshold")

        executed = logger.filter_by_action_type(ActionType.TRADES_EXECUTED)
        assert len(executed) == 1
        assert executed[0].details["total_fees"] == "9.95"
        assert executed[0].details["cash_after"] == "740.05"
        assert executed[0].details["orders"][0]["side"] == "BUY"

    def test_missing_file_reads_empty(self, temp_output_dir):
        logger = DecisionLogger(temp_output_dir / "decisions.jsonl")
        assert logger.read_log() == []


class TestDecimalEncoder:
    """Tests for DecimalEncoder."""

    def test_encodes_decimal_and_date(self):
        encoded = json.dumps({"amount": Decimal("1.50"), "on": SIM_DATE}, cls=DecimalEncoder)
        assert json.loads(encoded) == {"amount": "1.50", "on": "2024-01-02"}
