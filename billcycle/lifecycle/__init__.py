"""Status derivation and due-date scheduling."""

from billcycle.lifecycle.schedule import advance, initial_due_datetime, next_due_date
from billcycle.lifecycle.status import (
    compute_status,
    days_between,
    refresh_statuses,
    status_from_due_date,
)

__all__ = [
    "advance",
    "compute_status",
    "days_between",
    "initial_due_datetime",
    "next_due_date",
    "refresh_statuses",
    "status_from_due_date",
]
