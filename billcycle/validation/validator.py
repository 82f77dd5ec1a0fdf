"""
Two-Stage Bill Validation

STAGE 1 - SCHEMA VALIDATION:
- Required fields (title, amount, category)
- Types and ranges (non-negative amount, reminder_days >= 0)
- One-time bills must not be recurring
- Immutable fields (id, createdAt, dueDate) are not edited

STAGE 2 - SEMANTIC VALIDATION:
- Reminder window longer than the billing cycle
- Zero-amount bills
- Very old anchor dates

Schema errors block the write. Semantic findings are warnings: they are
reported, never silently fixed.
"""

from datetime import date, timedelta
from typing import Any, Optional, Union

from pydantic import ValidationError

from billcycle.lifecycle.status import min_cycle_days
from billcycle.models.bill import (
    Bill,
    BillCreate,
    BillFields,
    BillFrequency,
    ValidationIssue,
    ValidationResult,
)


IMMUTABLE_FIELDS = {
    "id": "id",
    "created_at": "created_at",
    "createdAt": "created_at",
    "due_date": "due_date",
    "dueDate": "due_date",
}

# Engine-managed fields that ordinary edits should not touch directly
MANAGED_FIELDS = {"paid_history", "paidHistory"}


class BillValidationError(Exception):
    """A bill payload failed schema validation."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        summary = "; ".join(f"{i.field}: {i.message}" for i in issues if i.severity == "error")
        super().__init__(summary or "Bill failed validation")

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]


def issues_from_pydantic(error: ValidationError) -> list[ValidationIssue]:
    """Translate pydantic's error list into ValidationIssue records."""
    issues = []
    for err in error.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "bill"
        issue_type = "missing" if err.get("type") == "missing" else "invalid_value"
        issues.append(ValidationIssue(
            field=location,
            issue_type=issue_type,
            message=err.get("msg", "Invalid value"),
            severity="error",
        ))
    return issues


class BillValidator:
    """
    Validates bill creation payloads and edits.

    Stage 1 raises BillValidationError. Stage 2 only returns warnings.
    """

    def __init__(self, today: Optional[date] = None):
        self._today = today

    def validate_create(self, data: Union[BillCreate, dict[str, Any]]) -> BillCreate:
        """
        Stage 1 for a new bill.

        Returns:
            The parsed creation payload

        Raises:
            BillValidationError: If required fields are missing or invalid
        """
        if isinstance(data, BillCreate):
            return data
        try:
            return BillCreate.model_validate(data)
        except ValidationError as e:
            raise BillValidationError(issues_from_pydantic(e)) from e

    def validate_update(self, existing: Bill, updates: dict[str, Any]) -> Bill:
        """
        Stage 1 for an edit: merge updates into the stored bill and re-validate.

        Raises:
            BillValidationError: On immutable-field edits or invalid values
        """
        issues = []
        for key, value in updates.items():
            canonical = IMMUTABLE_FIELDS.get(key)
            if canonical and value != self._comparable(existing, canonical, value):
                issues.append(ValidationIssue(
                    field=canonical,
                    issue_type="immutable",
                    message=f"{canonical} cannot be changed after creation",
                    severity="error",
                ))
            elif key in MANAGED_FIELDS:
                issues.append(ValidationIssue(
                    field="paid_history",
                    issue_type="immutable",
                    message="Payment history is only changed by recording payments",
                    severity="error",
                ))
        if issues:
            raise BillValidationError(issues)

        merged = existing.model_dump(by_alias=False)
        for key, value in updates.items():
            merged[self._field_name(key)] = value
        try:
            return Bill.model_validate(merged)
        except ValidationError as e:
            raise BillValidationError(issues_from_pydantic(e)) from e

    def check_semantics(self, bill: BillFields) -> ValidationResult:
        """
        Stage 2: scheduling sanity checks.

        Returns:
            ValidationResult whose issues are all warnings
        """
        issues = []
        today = self._today or date.today()

        if bill.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Bill amount is zero",
                severity="warning",
            ))

        if bill.frequency != BillFrequency.ONE_TIME:
            cycle = min_cycle_days(bill.frequency)
            if bill.reminder_days >= cycle:
                issues.append(ValidationIssue(
                    field="reminder_days",
                    issue_type="suspicious_value",
                    message=(
                        f"Reminder window ({bill.reminder_days} days) is as long as "
                        f"the {bill.frequency.value} cycle; the bill will always be pending"
                    ),
                    severity="warning",
                ))

        if bill.due_date < today - timedelta(days=365 * 2):
            issues.append(ValidationIssue(
                field="due_date",
                issue_type="suspicious_date",
                message=f"Due date ({bill.due_date}) is more than two years ago",
                severity="warning",
            ))

        return ValidationResult(
            schema_valid=True,
            semantic_valid=True,
            issues=issues,
        )

    @staticmethod
    def _field_name(key: str) -> str:
        """Map a camelCase record key to its snake_case attribute."""
        for name, field in Bill.model_fields.items():
            if key == name or key == field.alias:
                return name
        return key

    @staticmethod
    def _comparable(existing: Bill, field: str, incoming: Any) -> Any:
        # Allow callers to echo back the stored value in either form
        current = getattr(existing, field)
        if isinstance(incoming, str) and not isinstance(current, str):
            return current.isoformat()
        return current
