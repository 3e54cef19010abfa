"""
Data Models Package

This package contains all Pydantic models used in the BudgT ledger.
All records flowing through the system must conform to these schemas.
"""

from budgt.models.records import (
    Account,
    AccountDraft,
    AccountType,
    CreditCardDetails,
    LedgerModel,
    Tag,
    TagDraft,
    Transaction,
    TransactionDraft,
    TransactionType,
    now_ms,
)
from budgt.models.event import (
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventSeverity,
    LedgerEventType,
)

__all__ = [
    # Record models
    "Account",
    "AccountDraft",
    "AccountType",
    "CreditCardDetails",
    "LedgerModel",
    "Tag",
    "TagDraft",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "now_ms",
    # Event models
    "LedgerEvent",
    "LedgerEventBuilder",
    "LedgerEventSeverity",
    "LedgerEventType",
]
