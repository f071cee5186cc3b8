"""
Append-only decision logging for the rebalancing simulator.

Significant simulation decisions (rebalance checks, trade plans, policy skips,
executed trades) are recorded with timestamps and details to support
auditability and reproducibility. The logger is passed explicitly to the
components that report through it.
"""

import json
from datetime import datetime, date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from rebalance_sim.models import (
    ActionType,
    DecisionLogEntry,
    PortfolioStats,
    RunConfig,
    TradeOrder,
    TradePlanItem,
)


class DecisionLogger:
    """
    Append-only decision logger.

    Writes all decisions to a JSONL file for audit purposes. Each line is a
    complete JSON object representing one action. Without a log path the
    entries are only kept in memory.
    """

    def __init__(self, log_path: Optional[str | Path] = None):
        """
        Initialize the decision logger.

        Args:
            log_path: Path to the log file (will be created if not exists)
        """
        self.log_path = Path(log_path) if log_path else None
        self.entries: list[DecisionLogEntry] = []
        if self.log_path is not None:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: DecisionLogEntry) -> None:
        """
        Record a decision log entry.

        Args:
            entry: DecisionLogEntry to record
        """
        self.entries.append(entry)
        if self.log_path is None:
            return

        record = {
            "timestamp": entry.timestamp.isoformat(),
            "action_type": entry.action_type.value,
            "simulation_id": entry.simulation_id,
            "sim_date": entry.sim_date.isoformat() if entry.sim_date else None,
            "details": entry.details,
        }

        with open(self.log_path, "a") as f:
            f.write(json.dumps(record, cls=DecimalEncoder) + "\n")

    def log_action(
        self,
        action_type: ActionType,
        simulation_id: Optional[str],
        details: dict,
        sim_date: Optional[date] = None,
    ) -> None:
        """Create and record an entry in one call."""
        self.log(DecisionLogEntry.create(action_type, simulation_id, details, sim_date))

    def log_config_loaded(self, config: RunConfig, config_path: Optional[str]) -> None:
        details = {
            "config_path": config_path,
            "data_dir": config.data_dir,
            "schedule": config.schedule,
            "threshold": str(config.threshold),
            "trading_expense_threshold": str(config.trading_expense_threshold),
        }
        self.log_action(ActionType.CONFIG_LOADED, None, details)

    def log_policy_skip(
        self,
        simulation_id: Optional[str],
        sim_date: Optional[date],
        ticker: str,
        reason: str,
        **values: Any,
    ) -> None:
        """
        Log a policy-driven no-op decision.

        Args:
            simulation_id: Simulation identifier
            sim_date: Simulated date of the decision
            ticker: Security the decision concerns
            reason: Short machine-readable reason code
            values: Figures that led to the decision
        """
        details = {"ticker": ticker, "reason": reason, **values}
        self.log_action(ActionType.POLICY_SKIP, simulation_id, details, sim_date)

    def log_trade_plan_generated(
        self,
        simulation_id: Optional[str],
        sim_date: Optional[date],
        plan: list[TradePlanItem],
    ) -> None:
        details = {
            "total_items": len(plan),
            "buy_count": sum(1 for item in plan if item.amount > 0),
            "sell_count": sum(1 for item in plan if item.amount < 0),
            "items": [
                {"ticker": item.security.ticker, "amount": str(item.amount)}
                for item in plan
            ],
        }
        self.log_action(ActionType.TRADE_PLAN_GENERATED, simulation_id, details, sim_date)

    def log_trades_executed(
        self,
        simulation_id: Optional[str],
        sim_date: date,
        orders: list[TradeOrder],
        cash_after: Decimal,
    ) -> None:
        details = {
            "order_count": len(orders),
            "total_fees": str(sum((o.fee for o in orders), Decimal("0"))),
            "cash_after": str(cash_after),
            "orders": [
                {
                    "ticker": o.security.ticker,
                    "side": o.side.value,
                    "units": str(o.units),
                    "price": str(o.price),
                    "fee": str(o.fee),
                }
                for o in orders
            ],
        }
        self.log_action(ActionType.TRADES_EXECUTED, simulation_id, details, sim_date)

    def log_simulation_finished(
        self,
        simulation_id: Optional[str],
        sim_date: date,
        stats: PortfolioStats,
    ) -> None:
        details = {
            "initial_value": str(stats.initial_value),
            "market_value": str(stats.market_value),
            "total_return": str(stats.total_return),
            "total_return_rate": str(stats.total_return_rate),
            "annualized_return_rate": str(stats.annualized_return_rate),
            "days": stats.days,
        }
        self.log_action(ActionType.SIMULATION_FINISHED, simulation_id, details, sim_date)

    def read_log(self) -> list[DecisionLogEntry]:
        """
        Read all entries from the log file.

        Returns:
            List of DecisionLogEntry objects (in-memory entries if no file is used)
        """
        if self.log_path is None:
            return list(self.entries)
        if not self.log_path.exists():
            return []

        entries = []
        with open(self.log_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                record = json.loads(line)
                sim_date = record.get("sim_date")
                entries.append(
                    DecisionLogEntry(
                        timestamp=datetime.fromisoformat(record["timestamp"]),
                        action_type=ActionType(record["action_type"]),
                        simulation_id=record.get("simulation_id"),
                        sim_date=date.fromisoformat(sim_date) if sim_date else None,
                        details=record.get("details", {}),
                    )
                )

        return entries

    def filter_by_action_type(
        self,
        action_type: ActionType,
    ) -> list[DecisionLogEntry]:
        """
        Get log entries of a specific action type.

        Args:
            action_type: Action type to filter by

        Returns:
            Filtered list of entries
        """
        return [e for e in self.read_log() if e.action_type == action_type]


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and date types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (date, datetime)):
            return obj.isoformat()
        return super().default(obj)
