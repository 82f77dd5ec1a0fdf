"""
Audit Logger

DESIGN DECISION: Every significant change to bills and payments is logged.
This provides:
1. Complete traceability of each payment cycle
2. A distinct trail for payments that never reached the ledger, so
   reconciliation can find them
3. Debugging capability

The audit logger:
- Is async to match the rest of the engine
- Gracefully handles failures (doesn't break a payment if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from billcycle.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from billcycle.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store (for persistence and reconciliation), if configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("billcycle.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_bill_created(
        self,
        bill_id: str,
        title: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.bill_created(
            bill_id=bill_id,
            title=title,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_bill_updated(
        self,
        bill_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.bill_updated(
            bill_id=bill_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_bill_deleted(
        self,
        bill_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.bill_deleted(
            bill_id=bill_id,
            correlation_id=correlation_id,
        ))

    async def log_bills_cleared(self) -> None:
        await self.log(AuditEventBuilder.bills_cleared())

    async def log_payment_recorded(
        self,
        payment_id: str,
        bill_id: str,
        amount: str,
        is_late: bool,
        next_status: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a payment appended to a bill's history."""
        await self.log(AuditEventBuilder.payment_recorded(
            payment_id=payment_id,
            bill_id=bill_id,
            amount=amount,
            is_late=is_late,
            next_status=next_status,
            correlation_id=correlation_id,
        ))

    async def log_ledger_transaction_created(
        self,
        payment_id: str,
        wallet_id: str,
        category_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_transaction_created(
            payment_id=payment_id,
            wallet_id=wallet_id,
            category_id=category_id,
            correlation_id=correlation_id,
        ))

    async def log_ledger_inconsistency(
        self,
        intent_id: str,
        bill_id: str,
        payment_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Log a bill that was marked paid but never reached the ledger.

        Kept separate from log_error so reconciliation tooling can filter
        on the event type alone.
        """
        await self.log(AuditEventBuilder.ledger_inconsistency(
            intent_id=intent_id,
            bill_id=bill_id,
            payment_id=payment_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_ledger_retry_succeeded(
        self,
        intent_id: str,
        attempts: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_retry_succeeded(
            intent_id=intent_id,
            attempts=attempts,
            correlation_id=correlation_id,
        ))

    async def log_insufficient_funds(
        self,
        wallet_id: str,
        balance: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.insufficient_funds(
            wallet_id=wallet_id,
            balance=balance,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_categories_seeded(self, count: int) -> None:
        await self.log(AuditEventBuilder.categories_seeded(count))

    async def log_category_created(self, category_id: str, name: str) -> None:
        await self.log(AuditEventBuilder.category_created(category_id, name))

    async def log_notification_failed(
        self,
        bill_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.notification_failed(
            bill_id=bill_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., paying a bill).
    Pass it through all subsequent operations.
    """
    return uuid4()
