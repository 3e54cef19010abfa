"""
Two-Stage Record Validation

STAGE 1 - SCHEMA VALIDATION:
- Types, required fields, ranges (amount > 0, name non-empty, day 1..31)
- Transfer destination present and different from the source
- Delegated to the pydantic record models

STAGE 2 - SEMANTIC VALIDATION:
- Changes must not touch immutable fields (id, created_at)
- Account balances are never edited directly

All validation runs before the store is touched, so a rejected payload
never leaves a partial effect behind.

IMPORTANT: Validation NEVER silently fixes issues. It reports them.
"""

from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from budgt.models.records import (
    Account,
    AccountDraft,
    LedgerModel,
    TagDraft,
    Transaction,
    TransactionDraft,
    money_context,
    now_ms,
)


class ValidationIssue(BaseModel):
    """A single validation issue found."""
    
    field: str = Field(
        ...,
        description="Field with the issue ('record' for whole-record checks)"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'greater_than', 'immutable')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
    )


class LedgerValidationError(ValueError):
    """Malformed input rejected before any store mutation."""
    
    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        summary = "; ".join(f"{i.field}: {i.message}" for i in issues)
        super().__init__(f"Invalid input: {summary}")
    
    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]


def issues_from_pydantic(error: PydanticValidationError) -> list[ValidationIssue]:
    """Translate a pydantic ValidationError into ValidationIssues."""
    issues = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        issues.append(ValidationIssue(
            field=loc or "record",
            issue_type=err.get("type", "invalid"),
            message=err.get("msg", "Invalid value"),
        ))
    return issues


Payload = Union[Mapping[str, Any], LedgerModel]

# Fields that never change after a record is created
IMMUTABLE_FIELDS = frozenset({"id", "created_at"})

# Account fields that only transaction operations may change
LEDGER_MANAGED_ACCOUNT_FIELDS = frozenset({"balance"})


class RecordValidator:
    """
    Validates create payloads and update changes for ledger records.
    
    Every method returns a validated, immutable record or raises
    LedgerValidationError.
    """
    
    def __init__(self, default_currency: Optional[str] = None):
        """
        Args:
            default_currency: Currency label applied to new accounts
                             whose payload does not name one.
        """
        self._default_currency = default_currency
    
    def _validate_schema(self, model: type, data: Mapping[str, Any]) -> Any:
        """Stage 1: build the model, collecting every schema issue."""
        try:
            with money_context():
                return model.model_validate(dict(data))
        except PydanticValidationError as e:
            raise LedgerValidationError(issues_from_pydantic(e)) from e
    
    def _check_protected_fields(
        self,
        model: type,
        changes: Mapping[str, Any],
        protected: frozenset,
    ) -> None:
        """Stage 2: reject changes to fields callers may not edit."""
        issues = []
        for key in changes:
            name = model.field_name_for(key)
            if name in IMMUTABLE_FIELDS:
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="immutable",
                    message=f"{name} cannot be changed after creation",
                ))
            elif name in protected:
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="ledger_managed",
                    message=f"{name} changes only through transactions",
                ))
        if issues:
            raise LedgerValidationError(issues)
    
    def _merge(self, record: LedgerModel, changes: Mapping[str, Any]) -> Any:
        try:
            with money_context():
                return record.merged(changes)
        except PydanticValidationError as e:
            raise LedgerValidationError(issues_from_pydantic(e)) from e
    
    @staticmethod
    def _as_mapping(payload: Payload) -> dict[str, Any]:
        if isinstance(payload, LedgerModel):
            return payload.model_dump()
        return dict(payload)
    
    def account_draft(self, payload: Payload) -> AccountDraft:
        """Validate an account creation payload."""
        data = self._as_mapping(payload)
        if (
            self._default_currency
            and "currency" not in data
        ):
            data["currency"] = self._default_currency
        return self._validate_schema(AccountDraft, data)
    
    def account_update(self, account: Account, changes: Mapping[str, Any]) -> Account:
        """Validate account metadata changes and return the merged account."""
        self._check_protected_fields(
            Account, changes, LEDGER_MANAGED_ACCOUNT_FIELDS
        )
        return self._merge(account, changes)
    
    def balance_change(self, account: Account, new_balance: Decimal) -> Account:
        """
        Validate a ledger-driven balance change.
        
        Only transaction operations call this; the result must still fit
        the account schema (e.g. its digit bound).
        """
        return self._merge(
            account, {"balance": new_balance, "updated_at": now_ms()}
        )
    
    def transaction_draft(self, payload: Payload) -> TransactionDraft:
        """Validate a transaction creation payload."""
        return self._validate_schema(TransactionDraft, self._as_mapping(payload))
    
    def transaction_update(
        self,
        transaction: Transaction,
        changes: Mapping[str, Any],
    ) -> Transaction:
        """Validate transaction changes and return the merged candidate."""
        self._check_protected_fields(Transaction, changes, frozenset())
        return self._merge(transaction, changes)
    
    def tag_draft(self, payload: Payload) -> TagDraft:
        """Validate a tag creation payload."""
        return self._validate_schema(TagDraft, self._as_mapping(payload))
