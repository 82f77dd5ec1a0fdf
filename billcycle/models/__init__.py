"""
Data Models Package

This package contains all Pydantic models used by the bill lifecycle engine.
All data flowing through the system must conform to these schemas.
"""

from billcycle.models.bill import (
    DEFAULT_BILL_CATEGORIES,
    Bill,
    BillCategory,
    BillCreate,
    BillFrequency,
    BillNotification,
    BillPayment,
    BillsAnalytics,
    BillStatus,
    CategoryBreakdown,
    IntentStage,
    NotificationType,
    PaymentIntent,
    ValidationIssue,
    ValidationResult,
    as_naive_utc,
    utcnow,
)
from billcycle.models.ledger import (
    FundsCheck,
    LedgerCategory,
    LedgerTransaction,
    TransactionType,
    Wallet,
)
from billcycle.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Bill models
    "DEFAULT_BILL_CATEGORIES",
    "Bill",
    "BillCategory",
    "BillCreate",
    "BillFrequency",
    "BillNotification",
    "BillPayment",
    "BillsAnalytics",
    "BillStatus",
    "CategoryBreakdown",
    "IntentStage",
    "NotificationType",
    "PaymentIntent",
    "ValidationIssue",
    "ValidationResult",
    "as_naive_utc",
    "utcnow",
    # Ledger models
    "FundsCheck",
    "LedgerCategory",
    "LedgerTransaction",
    "TransactionType",
    "Wallet",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
