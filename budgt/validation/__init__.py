"""Record validation package."""

from budgt.validation.validator import (
    LedgerValidationError,
    RecordValidator,
    ValidationIssue,
    issues_from_pydantic,
)

__all__ = [
    "LedgerValidationError",
    "RecordValidator",
    "ValidationIssue",
    "issues_from_pydantic",
]
