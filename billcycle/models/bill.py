"""
Core Data Models for the Bill Lifecycle Engine

These models define the strict schemas for every record the engine persists.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Serialize to the camelCase record shape other clients already read
4. Support the audit trail

DESIGN DECISION: Python attributes are snake_case, but records are stored
with camelCase keys (dueDate, nextDueDate, paidHistory, ...). Loading
accepts either spelling so older records keep working.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the engine's time convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid4().hex


def as_naive_utc(value: datetime) -> datetime:
    # Records written by other clients carry a trailing "Z"
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(as_naive_utc)]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class BillFrequency(str, Enum):
    """How often a bill comes due."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    ONE_TIME = "one-time"


class BillStatus(str, Enum):
    """
    Derived bill status.

    CRITICAL: The stored value is a cache of the last explicit write.
    Readers always get a value recomputed from dates.
    """
    UPCOMING = "upcoming"
    PENDING = "pending"    # Due within reminder_days
    OVERDUE = "overdue"
    PAID = "paid"


class NotificationType(str, Enum):
    """Kind of bill notification. Only reminders are produced today."""
    REMINDER = "reminder"
    OVERDUE = "overdue"
    PAID = "paid"


class IntentStage(str, Enum):
    """
    Progress of a payment through its three writes.

    started -> bill_updated -> payment_recorded -> completed
    A ledger failure parks the intent at ledger_failed for retry.
    """
    STARTED = "started"
    BILL_UPDATED = "bill_updated"
    PAYMENT_RECORDED = "payment_recorded"
    COMPLETED = "completed"
    LEDGER_FAILED = "ledger_failed"


class RecordModel(BaseModel):
    """Base for persisted records: camelCase on disk, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_record(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible stored shape."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# PAYMENTS
# =============================================================================

class BillPayment(RecordModel):
    """
    One settlement event.

    CRITICAL: Payments are never mutated once created.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    bill_id: str = Field(..., min_length=1)
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount actually paid (may differ from the bill amount)"
    )
    paid_date: UtcDatetime = Field(default_factory=utcnow)
    wallet_id: str = Field(..., min_length=1)
    notes: Optional[str] = Field(default=None, max_length=1000)
    is_late: bool = Field(
        default=False,
        description="Paid after the bill's next due date"
    )


# =============================================================================
# CORE BILL MODEL
# =============================================================================

class BillFields(RecordModel):
    """Fields shared by the creation payload and the stored bill."""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)

    amount: Decimal = Field(..., ge=0, description="Nominal amount due")
    category_id: str = Field(..., min_length=1)
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category name, denormalized for display and matching"
    )

    due_date: date = Field(..., description="Original anchor date")
    frequency: BillFrequency = BillFrequency.MONTHLY
    is_recurring: bool
    is_auto_pay: bool = False
    wallet_id: Optional[str] = Field(
        default=None,
        description="Wallet normally used to pay this bill"
    )

    reminder_days: int = Field(
        default=3,
        ge=0,
        description="Days before due date at which the bill turns pending"
    )
    reminders_per_day: int = Field(default=1, ge=1)
    tags: list[str] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def default_recurrence(cls, data: Any) -> Any:
        """A missing is_recurring follows the frequency."""
        if isinstance(data, dict) and "is_recurring" not in data and "isRecurring" not in data:
            frequency = data.get("frequency", BillFrequency.MONTHLY)
            data = {**data, "is_recurring": frequency not in (BillFrequency.ONE_TIME, "one-time")}
        return data

    @model_validator(mode='after')
    def validate_recurrence(self):
        if self.frequency == BillFrequency.ONE_TIME and self.is_recurring:
            raise ValueError("One-time bills cannot be recurring")
        return self


class BillCreate(BillFields):
    """
    Payload for creating a bill.

    The store assigns id, created_at, next_due_date and an empty history.
    """
    status: Optional[BillStatus] = None


class Bill(BillFields):
    """A scheduled obligation as stored."""

    id: str = Field(default_factory=new_id)
    created_at: UtcDatetime = Field(default_factory=utcnow)

    next_due_date: UtcDatetime = Field(
        ...,
        description="Due date of the current cycle; advances on each payment"
    )
    status: BillStatus = BillStatus.UPCOMING

    last_paid_date: Optional[UtcDatetime] = None
    paid_history: list[BillPayment] = Field(
        default_factory=list,
        description="Payments in the order they were made"
    )

    @property
    def last_payment(self) -> Optional[BillPayment]:
        return self.paid_history[-1] if self.paid_history else None


# =============================================================================
# CATEGORIES AND NOTIFICATIONS
# =============================================================================

class BillCategory(RecordModel):
    """Classification entry; the name is matched against ledger categories."""

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    icon: str = Field(default="document-text", max_length=50)
    color: str = Field(default="#6B7280", pattern="^#[0-9A-Fa-f]{6}$")
    description: Optional[str] = Field(default=None, max_length=200)


DEFAULT_BILL_CATEGORIES: tuple[BillCategory, ...] = (
    BillCategory(id="1", name="Housing", icon="home", color="#3B82F6",
                 description="Rent, mortgage, property taxes"),
    BillCategory(id="2", name="Utilities", icon="flash", color="#F59E0B",
                 description="Electricity, water, gas, internet"),
    BillCategory(id="3", name="Transportation", icon="car", color="#10B981",
                 description="Car payments, insurance, fuel"),
    BillCategory(id="4", name="Insurance", icon="shield-checkmark", color="#8B5CF6",
                 description="Health, life, auto insurance"),
    BillCategory(id="5", name="Subscriptions", icon="tv", color="#EF4444",
                 description="Netflix, Spotify, gym memberships"),
    BillCategory(id="6", name="Healthcare", icon="medkit", color="#EC4899",
                 description="Medical bills, prescriptions"),
    BillCategory(id="7", name="Credit Cards", icon="card", color="#F97316",
                 description="Credit card payments"),
    BillCategory(id="8", name="Loans", icon="cash", color="#6366F1",
                 description="Student loans, personal loans"),
    BillCategory(id="9", name="Phone", icon="call", color="#14B8A6",
                 description="Mobile phone bills"),
    BillCategory(id="10", name="Other", icon="document-text", color="#6B7280",
                 description="Miscellaneous bills"),
)


class BillNotification(RecordModel):
    """Reminder artifact created alongside a bill."""

    id: str = Field(default_factory=new_id)
    bill_id: str = Field(..., min_length=1)
    title: str
    message: str
    due_date: UtcDatetime
    type: NotificationType = NotificationType.REMINDER
    is_read: bool = False
    created_at: UtcDatetime = Field(default_factory=utcnow)


# =============================================================================
# PAYMENT OUTBOX
# =============================================================================

class PaymentIntent(RecordModel):
    """
    Outbox record for one mark-paid call.

    Written before the bill is touched and advanced after each write, so a
    payment whose ledger transaction never landed can be found and retried.
    """

    id: str = Field(default_factory=new_id)
    bill_id: str
    payment: BillPayment
    stage: IntentStage = IntentStage.STARTED
    attempts: int = Field(default=0, ge=0)
    last_error: Optional[str] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    @property
    def needs_ledger_write(self) -> bool:
        return self.stage in (IntentStage.PAYMENT_RECORDED, IntentStage.LEDGER_FAILED)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(..., description="Field with the issue")
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'immutable')"
    )
    message: str = Field(..., description="Human-readable description of the issue")
    severity: str = Field(..., pattern="^(error|warning|info)$")


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (types, required fields)
    Stage 2: Semantic validation (scheduling sanity checks)
    """

    schema_valid: bool
    semantic_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]


# =============================================================================
# ANALYTICS
# =============================================================================

class CategoryBreakdown(RecordModel):
    category: str
    amount: Decimal = Decimal("0")
    count: int = 0


class BillsAnalytics(RecordModel):
    """Summary figures for the bills screen."""

    month_year: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    total_pending: Decimal = Decimal("0")
    total_overdue: Decimal = Decimal("0")
    total_paid_this_month: Decimal = Decimal("0")
    average_monthly_bills: Decimal = Decimal("0")
    category_breakdown: list[CategoryBreakdown] = Field(default_factory=list)
