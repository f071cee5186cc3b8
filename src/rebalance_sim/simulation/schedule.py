"""
Rebalancing schedules.

A schedule is a stateful predicate over simulated dates: it fires exactly once
per period when the simulated date reaches its next due date and then moves
the due date forward by one period.
"""

from datetime import date, timedelta
from enum import Enum
from typing import Callable, Optional

import pandas as pd


class ScheduleKind(Enum):
    """Supported rebalancing cadences."""
    DAILY = "daily"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"

    @classmethod
    def parse(cls, value: "str | ScheduleKind") -> "ScheduleKind":
        """Parse a cadence name such as 'quarterly' (case-insensitive)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown schedule '{value}'. Expected one of: {valid}")


def _add_months(months: int) -> Callable[[date], date]:
    # DateOffset clamps to month end (Jan 31 + 1 month -> Feb 28/29).
    def advance(current: date) -> date:
        return (pd.Timestamp(current) + pd.DateOffset(months=months)).date()
    return advance


_ADVANCE_RULES: dict[ScheduleKind, Callable[[date], date]] = {
    ScheduleKind.DAILY: lambda current: current + timedelta(days=1),
    ScheduleKind.MONTHLY: _add_months(1),
    ScheduleKind.QUARTERLY: _add_months(3),
    ScheduleKind.SEMIANNUAL: _add_months(6),
}


class Schedule:
    """
    Periodic schedule with a single mutable next due date.

    The first call to is_arrived() arms the schedule on the given date, so the
    very first check always fires.
    """

    def __init__(self, kind: ScheduleKind, next_due_date: Optional[date] = None):
        self.kind = kind
        self.next_due_date = next_due_date

    def __repr__(self) -> str:
        return f"Schedule({self.kind.value}, next_due_date={self.next_due_date})"

    def advance(self, current: date) -> date:
        """Date one period after current."""
        return _ADVANCE_RULES[self.kind](current)

    def is_arrived(self, current: date) -> bool:
        if self.next_due_date is None:
            self.next_due_date = current

        if current == self.next_due_date:
            self.next_due_date = self.advance(current)
            return True

        return False
