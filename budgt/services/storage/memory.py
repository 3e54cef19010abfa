"""
In-Memory Storage Implementation

Holds the three collections in dicts keyed by id. Records are immutable,
so an atomic unit only needs a shallow copy of each dict: the unit works
on its copy and swaps it in as the committed state on success. Readers
outside the unit keep seeing the previous committed dicts until the swap.

Used as the default backend and for test isolation (one fresh store per
test).
"""

import asyncio
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Mapping, Optional

from budgt.models.records import (
    Account,
    AccountDraft,
    Tag,
    TagDraft,
    Transaction,
    TransactionDraft,
)
from budgt.services.storage.interface import (
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
    new_record_id,
)


@dataclass
class _Tables:
    accounts: dict[str, Account] = field(default_factory=dict)
    transactions: dict[str, Transaction] = field(default_factory=dict)
    tags: dict[str, Tag] = field(default_factory=dict)
    
    def copy(self) -> "_Tables":
        return _Tables(
            accounts=dict(self.accounts),
            transactions=dict(self.transactions),
            tags=dict(self.tags),
        )


class InMemoryRecordStore(RecordStoreInterface):
    """
    Dict-backed record store with copy-on-write atomic units.
    
    Units are serialized by a lock, so there is a single writer at a time.
    """
    
    def __init__(self):
        self._committed = _Tables()
        self._lock = asyncio.Lock()
        # Working copy of the unit running in the current task, if any
        self._unit: ContextVar[Optional[_Tables]] = ContextVar(
            f"budgt_memory_unit_{id(self)}", default=None
        )
    
    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        if self._unit.get() is not None:
            yield
            return
        
        async with self._lock:
            working = self._committed.copy()
            token = self._unit.set(working)
            try:
                yield
            finally:
                self._unit.reset(token)
            self._committed = working
    
    def _view(self) -> _Tables:
        """Tables visible to the caller: its unit's copy, else committed state."""
        return self._unit.get() or self._committed
    
    # Accounts
    
    async def create_account(self, data: AccountDraft) -> str:
        async with self.atomic():
            account_id = new_record_id()
            account = Account.model_validate({**data.model_dump(), "id": account_id})
            self._view().accounts[account_id] = account
            return account_id
    
    async def get_account(self, account_id: str) -> Optional[Account]:
        return self._view().accounts.get(account_id)
    
    async def update_account(
        self,
        account_id: str,
        changes: Mapping[str, Any],
    ) -> Account:
        async with self.atomic():
            tables = self._view()
            current = tables.accounts.get(account_id)
            if current is None:
                raise NotFoundError("account", account_id)
            updated = current.merged(changes)
            tables.accounts[account_id] = updated
            return updated
    
    async def delete_account(self, account_id: str) -> None:
        async with self.atomic():
            tables = self._view()
            if account_id not in tables.accounts:
                raise NotFoundError("account", account_id)
            del tables.accounts[account_id]
    
    async def list_accounts(self) -> list[Account]:
        return list(self._view().accounts.values())
    
    async def put_account(self, account: Account) -> None:
        async with self.atomic():
            self._view().accounts[account.id] = account
    
    # Transactions
    
    async def create_transaction(self, data: TransactionDraft) -> str:
        async with self.atomic():
            transaction_id = new_record_id()
            transaction = Transaction.model_validate(
                {**data.model_dump(), "id": transaction_id}
            )
            self._view().transactions[transaction_id] = transaction
            return transaction_id
    
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._view().transactions.get(transaction_id)
    
    async def update_transaction_fields(
        self,
        transaction_id: str,
        changes: Mapping[str, Any],
    ) -> Transaction:
        async with self.atomic():
            tables = self._view()
            current = tables.transactions.get(transaction_id)
            if current is None:
                raise NotFoundError("transaction", transaction_id)
            updated = current.merged(changes)
            tables.transactions[transaction_id] = updated
            return updated
    
    async def delete_transaction(self, transaction_id: str) -> None:
        async with self.atomic():
            tables = self._view()
            if transaction_id not in tables.transactions:
                raise NotFoundError("transaction", transaction_id)
            del tables.transactions[transaction_id]
    
    async def list_transactions(
        self,
        account_id: Optional[str] = None,
    ) -> list[Transaction]:
        transactions = self._view().transactions.values()
        if account_id is None:
            return list(transactions)
        return [tx for tx in transactions if tx.account_id == account_id]
    
    async def put_transaction(self, transaction: Transaction) -> None:
        async with self.atomic():
            self._view().transactions[transaction.id] = transaction
    
    # Tags
    
    def _check_tag_name(self, tables: _Tables, name: str, tag_id: Optional[str]) -> None:
        for existing in tables.tags.values():
            if existing.name == name and existing.id != tag_id:
                raise DuplicateError(f"Tag name already in use: {name}")
    
    async def create_tag(self, data: TagDraft) -> str:
        async with self.atomic():
            tables = self._view()
            self._check_tag_name(tables, data.name, None)
            tag_id = new_record_id()
            tables.tags[tag_id] = Tag.model_validate({**data.model_dump(), "id": tag_id})
            return tag_id
    
    async def get_tag(self, tag_id: str) -> Optional[Tag]:
        return self._view().tags.get(tag_id)
    
    async def delete_tag(self, tag_id: str) -> None:
        async with self.atomic():
            tables = self._view()
            if tag_id not in tables.tags:
                raise NotFoundError("tag", tag_id)
            del tables.tags[tag_id]
    
    async def list_tags(self) -> list[Tag]:
        return list(self._view().tags.values())
    
    async def put_tag(self, tag: Tag) -> None:
        async with self.atomic():
            tables = self._view()
            self._check_tag_name(tables, tag.name, tag.id)
            tables.tags[tag.id] = tag
