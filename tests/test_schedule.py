"""
Tests for rebalancing schedules.
"""

from datetime import date

import pytest

from rebalance_sim.simulation.schedule import Schedule, ScheduleKind


class TestScheduleKind:
    """Tests for parsing schedule names."""

    def test_parse_case_insensitive(self):
        assert ScheduleKind.parse("Quarterly") is ScheduleKind.QUARTERLY
        assert ScheduleKind.parse(ScheduleKind.DAILY) is ScheduleKind.DAILY

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Expected one of"):
            ScheduleKind.parse("weekly")


class TestScheduleAdvance:
    """Tests for the advance rule of each cadence."""

    @pytest.mark.parametrize(
        "kind, expected",
        [
            (ScheduleKind.DAILY, date(2024, 1, 16)),
            (ScheduleKind.MONTHLY, date(2024, 2, 15)),
            (ScheduleKind.QUARTERLY, date(2024, 4, 15)),
            (ScheduleKind.SEMIANNUAL, date(2024, 7, 15)),
        ],
    )
    def test_advance(self, kind, expected):
        assert Schedule(kind).advance(date(2024, 1, 15)) == expected

    def test_month_end_clamps(self):
        """Jan 31 + 1 month is the last day of February."""
        assert Schedule(ScheduleKind.MONTHLY).advance(date(2024, 1, 31)) == date(2024, 2, 29)
        assert Schedule(ScheduleKind.MONTHLY).advance(date(2023, 1, 31)) == date(2023, 2, 28)


class TestScheduleIsArrived:
    """Tests for the is_arrived state machine."""

    def test_first_call_fires(self):
        schedule = Schedule(ScheduleKind.QUARTERLY)
        assert schedule.is_arrived(date(2024, 1, 2))
        assert schedule.next_due_date == date(2024, 4, 2)

    def test_fires_once_per_period(self):
        """A schedule fired on its due date advances to exactly due + period."""
        schedule = Schedule(ScheduleKind.MONTHLY, next_due_date=date(2024, 3, 1))

        assert not schedule.is_arrived(date(2024, 2, 29))
        assert schedule.is_arrived(date(2024, 3, 1))
        assert schedule.next_due_date == date(2024, 4, 1)
        assert not schedule.is_arrived(date(2024, 3, 1))

    def test_other_dates_do_not_fire(self):
        schedule = Schedule(ScheduleKind.QUARTERLY, next_due_date=date(2024, 4, 1))
        assert not schedule.is_arrived(date(2024, 4, 2))
        assert schedule.next_due_date == date(2024, 4, 1)

    def test_daily_fires_every_day(self):
        schedule = Schedule(ScheduleKind.DAILY)
        fired = [schedule.is_arrived(date(2024, 1, d)) for d in range(1, 6)]
        assert fired == [True] * 5
