"""
Ledger Event Models

Every ledger mutation is described by a LedgerEvent and written to the
structured log. Events are not persisted; they exist so that operations
can be traced and debugged from the log output alone.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class LedgerEventType(str, Enum):
    """Types of events the ledger emits."""
    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"
    
    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    BALANCE_ADJUSTED = "balance_adjusted"
    
    # Tolerated degenerate cases
    TRANSFER_DESTINATION_MISSING = "transfer_destination_missing"
    TRANSFERS_LEFT_DANGLING = "transfers_left_dangling"
    
    # Tags
    TAG_CREATED = "tag_created"
    TAG_DELETED = "tag_deleted"
    
    # Bulk transfer
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_IMPORTED = "backup_imported"
    
    # Failures
    OPERATION_FAILED = "operation_failed"


class LedgerEventSeverity(str, Enum):
    """Severity level for ledger events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LedgerEvent(BaseModel):
    """A single ledger event."""
    
    event_id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: LedgerEventType
    severity: LedgerEventSeverity = LedgerEventSeverity.INFO
    
    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'transaction', 'tag')"
    )
    entity_id: Optional[str] = None
    
    description: str
    details: dict[str, Any] = Field(default_factory=dict)
    
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    
    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_type": self.error_type,
            "error_message": self.error_message,
        }


class LedgerEventBuilder:
    """
    Helper class to build ledger events with common patterns.
    
    Usage:
        event = LedgerEventBuilder.transaction_created(tx)
        event = LedgerEventBuilder.operation_failed("update_transaction", exc)
    """
    
    @staticmethod
    def account_created(account_id: str, name: str, balance: Decimal) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account created: {name}",
            details={"name": name, "opening_balance": str(balance)},
        )
    
    @staticmethod
    def account_updated(account_id: str, fields: list[str]) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.ACCOUNT_UPDATED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
        )
    
    @staticmethod
    def account_deleted(account_id: str, removed_transactions: int) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.ACCOUNT_DELETED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account deleted with {removed_transactions} transactions",
            details={"removed_transactions": removed_transactions},
        )
    
    @staticmethod
    def transaction_created(
        transaction_id: str,
        account_id: str,
        tx_type: str,
        amount: Decimal,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"{tx_type} recorded",
            details={
                "account_id": account_id,
                "type": tx_type,
                "amount": str(amount),
            },
        )
    
    @staticmethod
    def transaction_updated(transaction_id: str, fields: list[str]) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
        )
    
    @staticmethod
    def transaction_deleted(transaction_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction deleted",
        )
    
    @staticmethod
    def balance_adjusted(
        account_id: str,
        old_balance: Decimal,
        new_balance: Decimal,
        transaction_id: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BALANCE_ADJUSTED,
            severity=LedgerEventSeverity.DEBUG,
            entity_type="account",
            entity_id=account_id,
            description="Balance adjusted",
            details={
                "old_balance": str(old_balance),
                "new_balance": str(new_balance),
                "transaction_id": transaction_id,
            },
        )
    
    @staticmethod
    def transfer_destination_missing(
        transaction_id: str,
        destination_id: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSFER_DESTINATION_MISSING,
            severity=LedgerEventSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transfer destination does not exist; destination side skipped",
            details={"transfer_to_account_id": destination_id},
        )
    
    @staticmethod
    def transfers_left_dangling(
        account_id: str,
        transaction_ids: list[str],
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSFERS_LEFT_DANGLING,
            severity=LedgerEventSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            description=(
                f"{len(transaction_ids)} transfers still point at deleted account"
            ),
            details={"transaction_ids": transaction_ids},
        )
    
    @staticmethod
    def tag_created(tag_id: str, name: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TAG_CREATED,
            entity_type="tag",
            entity_id=tag_id,
            description=f"Tag created: {name}",
        )
    
    @staticmethod
    def tag_deleted(tag_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TAG_DELETED,
            entity_type="tag",
            entity_id=tag_id,
            description="Tag deleted",
        )
    
    @staticmethod
    def backup_exported(counts: dict[str, int]) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BACKUP_EXPORTED,
            description="Backup exported",
            details=counts,
        )
    
    @staticmethod
    def backup_imported(counts: dict[str, int]) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BACKUP_IMPORTED,
            description="Backup imported; account balances taken from document",
            details=counts,
        )
    
    @staticmethod
    def operation_failed(operation: str, error: Exception) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.OPERATION_FAILED,
            severity=LedgerEventSeverity.ERROR,
            description=f"Operation failed: {operation}",
            error_type=type(error).__name__,
            error_message=str(error),
            details={"operation": operation},
        )
