"""
Bill Status Calculation

DESIGN DECISION: Status is DERIVED, never trusted from storage.
compute_status() is a pure function of (bill, now). The store calls it on
every bulk read; nothing else recomputes status behind the caller's back.

Rules, first match wins:
1. Paid within the last 24 hours -> paid (grace window, absorbs clock and
   timezone skew right after a payment)
2. Stored status is paid:
   - one-off bills stay paid forever
   - recurring bills stay paid until 80% of a minimum cycle has passed
3. Otherwise compare the next due date with now:
   - past due -> overdue
   - due within reminder_days -> pending
   - further out -> upcoming

Day differences round UP (ceil), so a bill due at 00:00 today stays
pending for the rest of the day instead of flipping to overdue.
"""

import math
from datetime import datetime, timedelta
from typing import Iterable, Optional

from billcycle.models.bill import (
    Bill,
    BillFrequency,
    BillStatus,
    as_naive_utc,
    utcnow,
)


PAID_GRACE_PERIOD = timedelta(hours=24)

# Shortest plausible cycle per frequency, in days
MIN_CYCLE_DAYS = {
    BillFrequency.WEEKLY: 7,
    BillFrequency.MONTHLY: 28,
}
DEFAULT_MIN_CYCLE_DAYS = 350

# Fraction of a cycle after which a paid recurring bill is re-evaluated
CYCLE_REEVALUATION_RATIO = 0.8


def days_between(later: datetime, earlier: datetime) -> int:
    """Whole days from earlier to later, rounded up. Negative if later < earlier."""
    return math.ceil((later - earlier).total_seconds() / 86400)


def min_cycle_days(frequency: BillFrequency) -> int:
    return MIN_CYCLE_DAYS.get(frequency, DEFAULT_MIN_CYCLE_DAYS)


def status_from_due_date(
    next_due_date: datetime,
    reminder_days: int,
    now: datetime,
) -> BillStatus:
    """Step 3 on its own: where does the due date sit relative to now?"""
    days_until_due = days_between(next_due_date, now)
    if days_until_due < 0:
        return BillStatus.OVERDUE
    if days_until_due <= reminder_days:
        return BillStatus.PENDING
    return BillStatus.UPCOMING


def compute_status(bill: Bill, now: Optional[datetime] = None) -> BillStatus:
    """
    Derive a bill's status.

    Args:
        bill: The bill as stored (its stored status feeds rule 2)
        now: Evaluation time; aware values are converted to naive UTC. Defaults to the current time.

    Returns:
        The status the bill should be displayed with at `now`
    """
    now = as_naive_utc(now) if now else utcnow()

    if bill.last_paid_date and now - bill.last_paid_date < PAID_GRACE_PERIOD:
        return BillStatus.PAID

    if bill.status == BillStatus.PAID:
        if not bill.is_recurring:
            return BillStatus.PAID
        if bill.last_paid_date:
            days_since_payment = days_between(now, bill.last_paid_date)
            threshold = min_cycle_days(bill.frequency) * CYCLE_REEVALUATION_RATIO
            if days_since_payment < threshold:
                return BillStatus.PAID

    return status_from_due_date(bill.next_due_date, bill.reminder_days, now)


def refresh_statuses(
    bills: Iterable[Bill],
    now: Optional[datetime] = None,
) -> list[Bill]:
    """Return copies of the bills carrying their recomputed status."""
    now = as_naive_utc(now) if now else utcnow()
    return [
        bill.model_copy(update={"status": compute_status(bill, now)})
        for bill in bills
    ]
