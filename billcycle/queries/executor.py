"""
Bills Query Execution

DESIGN DECISION: Analytics are computed, never stored.
Every figure here is derived at read time from the bills (with their
status freshly recomputed) and the payment history. Nothing is cached
or written back.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from billcycle.config import get_settings
from billcycle.models.bill import (
    Bill,
    BillPayment,
    BillsAnalytics,
    BillStatus,
    CategoryBreakdown,
)
from billcycle.services.storage.bill_store import BillStore


logger = structlog.get_logger(__name__)


def _sum_amounts(items: Iterable) -> Decimal:
    return sum((item.amount for item in items), Decimal("0"))


def summarize_bills(
    bills: list[Bill],
    payments: list[BillPayment],
    month_year: str,
) -> BillsAnalytics:
    """
    Aggregate bills and payments into the analytics summary.

    Args:
        bills: Bills with status already computed for "now"
        payments: Full payment history
        month_year: Month to total payments for, as "YYYY-MM"

    The monthly average is the plain mean of bill amounts; it is not
    weighted by frequency.
    """
    breakdown: dict[str, CategoryBreakdown] = {}
    for bill in bills:
        entry = breakdown.setdefault(bill.category, CategoryBreakdown(category=bill.category))
        entry.amount += bill.amount
        entry.count += 1

    total_amount = _sum_amounts(bills)
    average = total_amount / len(bills) if bills else Decimal("0")

    return BillsAnalytics(
        month_year=month_year,
        total_pending=_sum_amounts(b for b in bills if b.status == BillStatus.PENDING),
        total_overdue=_sum_amounts(b for b in bills if b.status == BillStatus.OVERDUE),
        total_paid_this_month=_sum_amounts(
            p for p in payments if p.paid_date.isoformat()[:7] == month_year
        ),
        average_monthly_bills=average,
        category_breakdown=list(breakdown.values()),
    )


class BillQueryExecutor:
    """
    Read-only queries over the bill store.

    GUARANTEES:
    - Only returns what the store holds
    - Statuses reflect the moment of the query
    - Storage errors propagate to the caller
    """

    def __init__(self, store: BillStore):
        self._store = store

    async def get_bills_analytics(self, month_year: Optional[str] = None) -> BillsAnalytics:
        """Summary for `month_year` ("YYYY-MM"), defaulting to the current month."""
        now = self._store.now()
        month_year = month_year or now.strftime("%Y-%m")

        bills = await self._store.get_all_bills(now)
        payments = await self._store.get_bill_payments()
        analytics = summarize_bills(bills, payments, month_year)

        logger.debug(
            "bills_analytics_computed",
            month_year=month_year,
            bill_count=len(bills),
            payment_count=len(payments),
        )
        return analytics

    async def get_upcoming_bills(self, days: Optional[int] = None) -> list[Bill]:
        """
        Unpaid bills coming due within `days` days, soonest first.

        Overdue bills are not included; see get_overdue_bills.
        """
        if days is None:
            days = get_settings().app.upcoming_window_days
        now = self._store.now()
        horizon = now + timedelta(days=days)

        bills = [
            bill for bill in await self._store.get_all_bills(now)
            if bill.status in (BillStatus.PENDING, BillStatus.UPCOMING)
            and bill.next_due_date <= horizon
        ]
        return sorted(bills, key=lambda bill: bill.next_due_date)

    async def get_overdue_bills(self) -> list[Bill]:
        """Overdue bills, most overdue first."""
        bills = [
            bill for bill in await self._store.get_all_bills()
            if bill.status == BillStatus.OVERDUE
        ]
        return sorted(bills, key=lambda bill: bill.next_due_date)

    async def get_bills_by_status(self, status: BillStatus, now: Optional[datetime] = None) -> list[Bill]:
        return [bill for bill in await self._store.get_all_bills(now) if bill.status == status]
