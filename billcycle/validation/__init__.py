"""Bill validation package."""

from billcycle.validation.validator import (
    BillValidationError,
    BillValidator,
    issues_from_pydantic,
)

__all__ = ["BillValidationError", "BillValidator", "issues_from_pydantic"]
