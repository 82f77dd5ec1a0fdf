"""Tests for due-date advancement."""

import pytest
from datetime import date, datetime

from billcycle.lifecycle.schedule import advance, initial_due_datetime, next_due_date
from billcycle.models.bill import BillFrequency


RECURRING = (BillFrequency.WEEKLY, BillFrequency.MONTHLY, BillFrequency.YEARLY)
SAMPLE_DATES = (
    date(2026, 1, 31),
    date(2026, 2, 28),
    date(2024, 2, 29),
    date(2026, 12, 31),
    date(2026, 3, 9),
)


class TestNextDueDate:
    """Tests for a single cycle step."""

    def test_weekly_adds_seven_days(self):
        assert next_due_date(date(2026, 3, 9), BillFrequency.WEEKLY) == date(2026, 3, 16)

    def test_monthly_adds_one_month(self):
        assert next_due_date(date(2026, 3, 9), BillFrequency.MONTHLY) == date(2026, 4, 9)

    def test_yearly_adds_one_year(self):
        assert next_due_date(date(2026, 3, 9), BillFrequency.YEARLY) == date(2027, 3, 9)

    def test_monthly_clamps_to_month_end(self):
        """Test Jan 31 advances to the last day of February."""
        assert next_due_date(date(2026, 1, 31), BillFrequency.MONTHLY) == date(2026, 2, 28)
        assert next_due_date(date(2024, 1, 31), BillFrequency.MONTHLY) == date(2024, 2, 29)

    def test_clamped_day_is_kept(self):
        """Test the clamp carries forward instead of snapping back to the 31st."""
        feb = next_due_date(date(2026, 1, 31), BillFrequency.MONTHLY)
        assert next_due_date(feb, BillFrequency.MONTHLY) == date(2026, 3, 28)

    def test_yearly_leap_day(self):
        assert next_due_date(date(2024, 2, 29), BillFrequency.YEARLY) == date(2025, 2, 28)

    def test_datetime_keeps_time_of_day(self):
        result = next_due_date(datetime(2026, 3, 9, 0, 0), BillFrequency.MONTHLY)
        assert result == datetime(2026, 4, 9, 0, 0)
        assert isinstance(result, datetime)

    def test_accepts_frequency_value(self):
        """Test plain strings from stored records work too."""
        assert next_due_date(date(2026, 3, 9), "monthly") == date(2026, 4, 9)


class TestAdvanceProperties:
    """Tests for invariants across repeated advancement."""

    @pytest.mark.parametrize("start", SAMPLE_DATES)
    def test_one_time_never_moves(self, start):
        """Test one-time bills are invariant under any number of steps."""
        assert next_due_date(start, BillFrequency.ONE_TIME) == start
        assert advance(start, BillFrequency.ONE_TIME, 12) == start

    @pytest.mark.parametrize("frequency", RECURRING)
    @pytest.mark.parametrize("start", SAMPLE_DATES)
    def test_recurring_strictly_increases(self, start, frequency):
        current = start
        for _ in range(24):
            following = next_due_date(current, frequency)
            assert following > current
            current = following

    def test_monthly_n_steps_moves_n_months(self):
        assert advance(date(2026, 1, 15), BillFrequency.MONTHLY, 14) == date(2027, 3, 15)
        assert advance(date(2026, 1, 15), BillFrequency.MONTHLY, 0) == date(2026, 1, 15)

    def test_negative_cycles_rejected(self):
        with pytest.raises(ValueError):
            advance(date(2026, 1, 15), BillFrequency.MONTHLY, -1)


class TestInitialDueDatetime:
    """Tests for deriving a new bill's first next_due_date."""

    def test_midnight_of_due_date(self):
        assert initial_due_datetime(date(2026, 3, 9)) == datetime(2026, 3, 9, 0, 0)

    def test_datetime_passes_through(self):
        value = datetime(2026, 3, 9, 8, 30)
        assert initial_due_datetime(value) == value


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
