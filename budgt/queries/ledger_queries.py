"""
Query Layer

Read-only projections over the record store. Nothing here writes, and
each call reads committed state only; two separate calls may see
different states if a write commits between them.
"""

from typing import Optional

from budgt.models.records import Account, Tag, Transaction
from budgt.services.storage import RecordStoreInterface


class LedgerQueries:
    """Read-side access to accounts, transactions and tags."""
    
    def __init__(self, store: RecordStoreInterface):
        self._store = store
    
    async def list_accounts(self) -> list[Account]:
        """All accounts, in no guaranteed order."""
        return await self._store.list_accounts()
    
    async def get_account(self, account_id: str) -> Optional[Account]:
        return await self._store.get_account(account_id)
    
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return await self._store.get_transaction(transaction_id)
    
    async def list_transactions(
        self,
        account_id: Optional[str] = None,
        date_from: Optional[int] = None,
        date_to: Optional[int] = None,
    ) -> list[Transaction]:
        """
        List transactions, newest first by economic date.
        
        Args:
            account_id: Only transactions owned by this account. Transfers
                       into the account from elsewhere are not included.
            date_from: Only transactions dated on or after (epoch ms)
            date_to: Only transactions dated on or before (epoch ms)
            
        Returns:
            Matching transactions ordered by date descending. The order of
            transactions sharing a date is unspecified.
        """
        transactions = await self._store.list_transactions(account_id)
        
        if date_from is not None:
            transactions = [tx for tx in transactions if tx.date >= date_from]
        if date_to is not None:
            transactions = [tx for tx in transactions if tx.date <= date_to]
        
        transactions.sort(key=lambda tx: tx.date, reverse=True)
        return transactions
    
    async def list_tags(self) -> list[Tag]:
        return await self._store.list_tags()
