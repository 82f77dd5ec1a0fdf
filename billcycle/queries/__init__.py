"""Query execution package."""

from billcycle.queries.executor import BillQueryExecutor, summarize_bills

__all__ = ["BillQueryExecutor", "summarize_bills"]
