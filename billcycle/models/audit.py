"""
Audit Models for the Bill Lifecycle Engine

Every significant change to bills, payments and the ledger link is logged.
This provides:
1. Complete traceability of every payment cycle
2. A way to find payments whose ledger transaction never landed
3. Debugging information when things go wrong

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from billcycle.models.bill import UtcDatetime, utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Bill lifecycle
    BILL_CREATED = "bill_created"
    BILL_UPDATED = "bill_updated"
    BILL_DELETED = "bill_deleted"
    BILLS_CLEARED = "bills_cleared"

    # Payment processing
    PAYMENT_RECORDED = "payment_recorded"
    LEDGER_TRANSACTION_CREATED = "ledger_transaction_created"
    LEDGER_INCONSISTENCY = "ledger_inconsistency"
    LEDGER_RETRY_SUCCEEDED = "ledger_retry_succeeded"
    INSUFFICIENT_FUNDS_WARNING = "insufficient_funds_warning"

    # Categories and reminders
    CATEGORIES_SEEDED = "categories_seeded"
    CATEGORY_CREATED = "category_created"
    NOTIFICATION_FAILED = "notification_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Entity ids are the engine's opaque string ids, not UUIDs.
    """

    # Identity
    event_id: UUID = Field(default_factory=uuid4)
    timestamp: UtcDatetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'bill', 'payment', 'intent')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one mark-paid call)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.bill_created(bill_id, title, amount)
        event = AuditEventBuilder.ledger_inconsistency(intent_id, bill_id, error)
    """

    @staticmethod
    def bill_created(
        bill_id: str,
        title: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_CREATED,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Bill created: {title} - {amount}",
            details={"title": title, "amount": amount},
        )

    @staticmethod
    def bill_updated(
        bill_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_UPDATED,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Bill updated: {', '.join(sorted(fields)) or 'no fields'}",
            details={"fields": sorted(fields)},
        )

    @staticmethod
    def bill_deleted(
        bill_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_DELETED,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Bill deleted with its payments and notifications",
        )

    @staticmethod
    def bills_cleared() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILLS_CLEARED,
            severity=AuditSeverity.WARNING,
            entity_type="bill",
            description="All bills, payments, notifications and intents cleared",
        )

    @staticmethod
    def payment_recorded(
        payment_id: str,
        bill_id: str,
        amount: str,
        is_late: bool,
        next_status: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_RECORDED,
            entity_type="payment",
            entity_id=payment_id,
            correlation_id=correlation_id,
            description=f"Payment of {amount} recorded{' (late)' if is_late else ''}",
            details={
                "bill_id": bill_id,
                "amount": amount,
                "is_late": is_late,
                "next_status": next_status,
            },
        )

    @staticmethod
    def ledger_transaction_created(
        payment_id: str,
        wallet_id: str,
        category_id: Optional[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_TRANSACTION_CREATED,
            entity_type="payment",
            entity_id=payment_id,
            correlation_id=correlation_id,
            description="Ledger expense created for bill payment",
            details={"wallet_id": wallet_id, "category_id": category_id},
        )

    @staticmethod
    def ledger_inconsistency(
        intent_id: str,
        bill_id: str,
        payment_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        """Bill is marked paid but the ledger has no matching transaction."""
        return AuditEvent(
            event_type=AuditEventType.LEDGER_INCONSISTENCY,
            severity=AuditSeverity.ERROR,
            entity_type="intent",
            entity_id=intent_id,
            correlation_id=correlation_id,
            description="Bill marked paid without a ledger transaction",
            details={"bill_id": bill_id, "payment_id": payment_id},
            error_code="LEDGER_WRITE_FAILED",
            error_message=error_message,
        )

    @staticmethod
    def ledger_retry_succeeded(
        intent_id: str,
        attempts: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_RETRY_SUCCEEDED,
            entity_type="intent",
            entity_id=intent_id,
            correlation_id=correlation_id,
            description=f"Ledger transaction written after {attempts} attempts",
            details={"attempts": attempts},
        )

    @staticmethod
    def insufficient_funds(
        wallet_id: str,
        balance: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSUFFICIENT_FUNDS_WARNING,
            severity=AuditSeverity.WARNING,
            entity_type="wallet",
            entity_id=wallet_id,
            correlation_id=correlation_id,
            description=f"Wallet balance {balance} is below payment {amount}",
            details={"balance": balance, "amount": amount},
        )

    @staticmethod
    def categories_seeded(count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORIES_SEEDED,
            entity_type="category",
            description=f"Seeded {count} default bill categories",
            details={"count": count},
        )

    @staticmethod
    def category_created(category_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            entity_type="category",
            entity_id=category_id,
            description=f"Bill category created: {name}",
        )

    @staticmethod
    def notification_failed(
        bill_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Reminder notification could not be created",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
