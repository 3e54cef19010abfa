"""
Abstract Record Store Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep a durable SQLite backend for real use
2. Use a fresh in-memory store per test
3. Keep ledger logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just keyed access to three collections plus an atomic unit of work.

ATOMIC UNITS: every store operation runs inside a unit. Operations called
inside `async with store.atomic():` join that unit; operations called
outside it get a unit of their own. A unit either commits all of its
writes or none of them, and readers outside a unit never observe a
half-applied unit.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Mapping, Optional
from uuid import uuid4

from budgt.models.records import (
    Account,
    AccountDraft,
    Tag,
    TagDraft,
    Transaction,
    TransactionDraft,
)


def new_record_id() -> str:
    """Generate an opaque, unique record id."""
    return str(uuid4())


class RecordStoreInterface(ABC):
    """
    Abstract interface for ledger record storage.
    
    Any storage implementation (SQLite, in-memory, etc.)
    must implement these methods.
    """
    
    @abstractmethod
    def atomic(self) -> AsyncContextManager[None]:
        """
        Open an atomic unit of work.
        
        Usage:
            async with store.atomic():
                await store.update_account(...)
                await store.create_transaction(...)
        
        Nested units join the outermost one. Any exception leaving the
        outermost block discards every write made inside it.
        
        Raises:
            StorageError: If the backend cannot begin or commit the unit
        """
        pass
    
    async def connect(self) -> None:
        """Open backend resources. No-op for stores that need none."""
    
    async def close(self) -> None:
        """Release backend resources. No-op for stores that need none."""
    
    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    
    @abstractmethod
    async def create_account(self, data: AccountDraft) -> str:
        """
        Insert a new account.
        
        Args:
            data: Validated account payload
            
        Returns:
            The store-assigned account id
        """
        pass
    
    @abstractmethod
    async def get_account(self, account_id: str) -> Optional[Account]:
        """
        Retrieve an account by its ID.
        
        Returns:
            The account if found, None otherwise
        """
        pass
    
    @abstractmethod
    async def update_account(
        self,
        account_id: str,
        changes: Mapping[str, Any],
    ) -> Account:
        """
        Apply partial changes to an account.
        
        Returns:
            The updated account
            
        Raises:
            NotFoundError: If the account doesn't exist
        """
        pass
    
    @abstractmethod
    async def delete_account(self, account_id: str) -> None:
        """
        Delete an account by ID.
        
        Raises:
            NotFoundError: If the account doesn't exist
        """
        pass
    
    @abstractmethod
    async def list_accounts(self) -> list[Account]:
        """All accounts, in no particular order."""
        pass
    
    @abstractmethod
    async def put_account(self, account: Account) -> None:
        """Insert or replace an account by id, verbatim."""
        pass
    
    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    
    @abstractmethod
    async def create_transaction(self, data: TransactionDraft) -> str:
        """
        Insert a new transaction record.
        
        This is a raw record write; balance effects are the caller's job.
        
        Returns:
            The store-assigned transaction id
        """
        pass
    
    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """
        Retrieve a transaction by its ID.
        
        Returns:
            The transaction if found, None otherwise
        """
        pass
    
    @abstractmethod
    async def update_transaction_fields(
        self,
        transaction_id: str,
        changes: Mapping[str, Any],
    ) -> Transaction:
        """
        Apply partial changes to a transaction record.
        
        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass
    
    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> None:
        """
        Delete a transaction record by ID.
        
        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass
    
    @abstractmethod
    async def list_transactions(
        self,
        account_id: Optional[str] = None,
    ) -> list[Transaction]:
        """
        List transactions, optionally only those owned by one account.
        
        Args:
            account_id: Keep only transactions whose account_id matches
            
        Returns:
            Matching transactions, in no particular order
        """
        pass
    
    @abstractmethod
    async def put_transaction(self, transaction: Transaction) -> None:
        """Insert or replace a transaction by id, verbatim."""
        pass
    
    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------
    
    @abstractmethod
    async def create_tag(self, data: TagDraft) -> str:
        """
        Insert a new tag.
        
        Raises:
            DuplicateError: If another tag already has this name
        """
        pass
    
    @abstractmethod
    async def get_tag(self, tag_id: str) -> Optional[Tag]:
        pass
    
    @abstractmethod
    async def delete_tag(self, tag_id: str) -> None:
        """
        Raises:
            NotFoundError: If the tag doesn't exist
        """
        pass
    
    @abstractmethod
    async def list_tags(self) -> list[Tag]:
        pass
    
    @abstractmethod
    async def put_tag(self, tag: Tag) -> None:
        """
        Insert or replace a tag by id, verbatim.
        
        Raises:
            DuplicateError: If a tag with another id already has this name
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    
    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} not found: {entity_id}")


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
