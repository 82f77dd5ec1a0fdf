"""
Due-Date Advancement

Calendar arithmetic for recurring bills. Months and years use
dateutil's relativedelta, which clamps to the last day of shorter months:
Jan 31 + 1 month is Feb 28 (or 29), and Feb 29 + 1 year is Feb 28.
The clamp is not undone later, so a Jan 31 bill settles on the 28th.
"""

from datetime import date, datetime, time, timedelta
from typing import TypeVar

from dateutil.relativedelta import relativedelta

from billcycle.models.bill import BillFrequency


D = TypeVar("D", date, datetime)

_STEPS = {
    BillFrequency.WEEKLY: timedelta(days=7),
    BillFrequency.MONTHLY: relativedelta(months=1),
    BillFrequency.YEARLY: relativedelta(years=1),
}


def next_due_date(current: D, frequency: BillFrequency) -> D:
    """
    Advance a due date by one cycle.

    One-time bills never advance: the input comes back unchanged.
    """
    step = _STEPS.get(BillFrequency(frequency))
    if step is None:
        return current
    return current + step


def advance(current: D, frequency: BillFrequency, cycles: int) -> D:
    """Apply next_due_date() `cycles` times."""
    if cycles < 0:
        raise ValueError("cycles must be >= 0")
    for _ in range(cycles):
        current = next_due_date(current, frequency)
    return current


def initial_due_datetime(due_date: date) -> datetime:
    """First next_due_date of a new bill: midnight UTC on its anchor date."""
    if isinstance(due_date, datetime):
        return due_date
    return datetime.combine(due_date, time.min)
