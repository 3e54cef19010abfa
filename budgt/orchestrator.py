"""
Ledger API

This module ties together all the components behind the surface that
callers (forms, scripts) use:

    accounts      create / update / delete / list
    transactions  create / update / delete / list
    tags          create / delete / list
    backup        export / import

DESIGN DECISION: Collaborators are passed in, never looked up globally.
Tests build a LedgerApi around a fresh store; the application builds one
from settings via create_ledger_api().
"""

from typing import Any, Mapping, Optional, Union

from budgt.backup import BackupDocument, BulkTransferService, ImportSummary
from budgt.config import Settings, get_settings
from budgt.events import LedgerEventLogger, configure_logging
from budgt.ledger import LedgerEngine
from budgt.models.records import Account, Tag, Transaction
from budgt.queries import LedgerQueries
from budgt.services.storage import (
    InMemoryRecordStore,
    RecordStoreInterface,
    SQLiteRecordStore,
)
from budgt.validation import RecordValidator
from budgt.validation.validator import Payload


class LedgerApi:
    """
    Single entry point to the ledger.
    
    Writes go through the LedgerEngine, reads through LedgerQueries,
    backups through BulkTransferService. All three share one store.
    """
    
    def __init__(
        self,
        store: RecordStoreInterface,
        event_logger: Optional[LedgerEventLogger] = None,
        default_currency: Optional[str] = None,
    ):
        self._store = store
        self._engine = LedgerEngine(
            store,
            event_logger=event_logger,
            validator=RecordValidator(default_currency=default_currency),
        )
        self._queries = LedgerQueries(store)
        self._backup = BulkTransferService(store, event_logger=event_logger)
    
    @property
    def store(self) -> RecordStoreInterface:
        return self._store
    
    async def close(self) -> None:
        await self._store.close()
    
    # Accounts
    
    async def create_account(self, payload: Payload) -> str:
        return await self._engine.create_account(payload)
    
    async def update_account(
        self,
        account_id: str,
        changes: Mapping[str, Any],
    ) -> Account:
        return await self._engine.update_account(account_id, changes)
    
    async def delete_account(self, account_id: str) -> None:
        await self._engine.delete_account(account_id)
    
    async def get_account(self, account_id: str) -> Optional[Account]:
        return await self._queries.get_account(account_id)
    
    async def list_accounts(self) -> list[Account]:
        return await self._queries.list_accounts()
    
    # Transactions
    
    async def create_transaction(self, payload: Payload) -> str:
        return await self._engine.create_transaction(payload)
    
    async def update_transaction(
        self,
        transaction_id: str,
        changes: Mapping[str, Any],
    ) -> Transaction:
        return await self._engine.update_transaction(transaction_id, changes)
    
    async def delete_transaction(self, transaction_id: str) -> None:
        await self._engine.delete_transaction(transaction_id)
    
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return await self._queries.get_transaction(transaction_id)
    
    async def list_transactions(
        self,
        account_id: Optional[str] = None,
        date_from: Optional[int] = None,
        date_to: Optional[int] = None,
    ) -> list[Transaction]:
        return await self._queries.list_transactions(
            account_id=account_id,
            date_from=date_from,
            date_to=date_to,
        )
    
    # Tags
    
    async def create_tag(self, payload: Payload) -> str:
        return await self._engine.create_tag(payload)
    
    async def delete_tag(self, tag_id: str) -> None:
        await self._engine.delete_tag(tag_id)
    
    async def list_tags(self) -> list[Tag]:
        return await self._queries.list_tags()
    
    # Backup
    
    async def export_all(self) -> BackupDocument:
        return await self._backup.export_all()
    
    async def export_json(self, indent: Optional[int] = 2) -> str:
        return await self._backup.export_json(indent=indent)
    
    async def import_all(
        self,
        document: Union[BackupDocument, Mapping[str, Any]],
    ) -> ImportSummary:
        return await self._backup.import_all(document)
    
    async def import_json(self, text: Union[str, bytes]) -> ImportSummary:
        return await self._backup.import_json(text)


def create_store(settings: Optional[Settings] = None) -> RecordStoreInterface:
    """Build the record store named by the storage settings (not yet connected)."""
    storage = (settings or get_settings()).storage
    if storage.backend == "sqlite":
        return SQLiteRecordStore(
            storage.database_path,
            busy_timeout_ms=storage.busy_timeout_ms,
            connect_attempts=storage.connect_attempts,
        )
    return InMemoryRecordStore()


async def create_ledger_api(settings: Optional[Settings] = None) -> LedgerApi:
    """
    Factory function to create a ready-to-use LedgerApi.
    
    Args:
        settings: Settings to use. Defaults to get_settings().
        
    Returns:
        A LedgerApi with a connected store
        
    Raises:
        StorageConnectionError: If the configured store cannot be opened
    """
    settings = settings or get_settings()
    ledger_settings = settings.ledger
    configure_logging(ledger_settings.log_level)
    
    store = create_store(settings)
    await store.connect()
    
    return LedgerApi(
        store,
        event_logger=LedgerEventLogger(),
        default_currency=ledger_settings.default_currency,
    )
