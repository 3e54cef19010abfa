"""
Bulk Transfer (backup export / import)

DESIGN DECISION: Backups are verbatim. Export writes every stored record
as-is; import upserts every record by id straight into the store,
bypassing the ledger engine. Account balances in an imported document are
trusted as authoritative and are NOT recomputed from its transactions, so
a hand-edited document can introduce balances that disagree with the
transaction history.

Document layout (no version field):

    {
      "accounts":     [ {...Account...}, ... ],
      "transactions": [ {...Transaction...}, ... ],
      "tags":         [ {...Tag...}, ... ]
    }

Record keys use camelCase (accountId, transferToAccountId, createdAt, ...)
and money fields are JSON numbers.
A missing or null section imports as empty.
"""

from datetime import date
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from budgt.events import LedgerEventLogger
from budgt.models.event import LedgerEventBuilder
from budgt.models.records import (
    PORTABLE,
    Account,
    Tag,
    Transaction,
    money_context,
)
from budgt.services.storage import RecordStoreInterface
from budgt.validation import LedgerValidationError, issues_from_pydantic


BACKUP_FILENAME_PREFIX = "budgt-backup"


def backup_filename(on: Optional[date] = None) -> str:
    """File name for a backup taken on `on` (default: today)."""
    on = on or date.today()
    return f"{BACKUP_FILENAME_PREFIX}-{on.isoformat()}.json"


class BackupFormatError(LedgerValidationError):
    """Backup document is not valid JSON or does not match the record schemas."""
    pass


class BackupDocument(BaseModel):
    """The full record set in portable form."""
    
    model_config = ConfigDict(extra="ignore")
    
    accounts: list[Account] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    tags: list[Tag] = Field(default_factory=list)
    
    @field_validator('accounts', 'transactions', 'tags', mode='before')
    @classmethod
    def null_section_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v
    
    def counts(self) -> dict[str, int]:
        return {
            "accounts": len(self.accounts),
            "transactions": len(self.transactions),
            "tags": len(self.tags),
        }
    
    def to_json(self, indent: Optional[int] = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent, context=PORTABLE)


class ImportSummary(BaseModel):
    """How many records of each kind an import wrote."""
    
    accounts: int = 0
    transactions: int = 0
    tags: int = 0


class BulkTransferService:
    """
    Exports and restores the full record set.
    
    Works on the store directly; the ledger engine is not involved.
    """
    
    def __init__(
        self,
        store: RecordStoreInterface,
        event_logger: Optional[LedgerEventLogger] = None,
    ):
        self._store = store
        self._event_logger = event_logger
    
    async def export_all(self) -> BackupDocument:
        """
        Snapshot every account, transaction and tag.
        
        Read inside one atomic unit so the snapshot is consistent.
        """
        async with self._store.atomic():
            document = BackupDocument(
                accounts=await self._store.list_accounts(),
                transactions=await self._store.list_transactions(),
                tags=await self._store.list_tags(),
            )
        
        if self._event_logger:
            self._event_logger.log(LedgerEventBuilder.backup_exported(document.counts()))
        return document
    
    async def export_json(self, indent: Optional[int] = 2) -> str:
        document = await self.export_all()
        return document.to_json(indent=indent)
    
    async def import_all(
        self,
        document: Union[BackupDocument, Mapping[str, Any]],
    ) -> ImportSummary:
        """
        Upsert every record of `document` into the store, all or nothing.
        
        Records whose id already exists are replaced. Account balances are
        taken from the document as-is.
        
        Raises:
            BackupFormatError: If `document` doesn't match the schemas
            DuplicateError: If an imported tag name clashes with another tag
        """
        if not isinstance(document, BackupDocument):
            try:
                with money_context():
                    document = BackupDocument.model_validate(document)
            except PydanticValidationError as e:
                raise self._format_error(e) from e
        
        try:
            async with self._store.atomic():
                for account in document.accounts:
                    await self._store.put_account(account)
                for transaction in document.transactions:
                    await self._store.put_transaction(transaction)
                for tag in document.tags:
                    await self._store.put_tag(tag)
        except Exception as e:
            if self._event_logger:
                self._event_logger.log(LedgerEventBuilder.operation_failed("import_all", e))
            raise
        
        if self._event_logger:
            self._event_logger.log(LedgerEventBuilder.backup_imported(document.counts()))
        return ImportSummary(**document.counts())
    
    async def import_json(self, text: Union[str, bytes]) -> ImportSummary:
        """
        Parse a JSON backup and import it.
        
        Raises:
            BackupFormatError: If `text` is not valid JSON or not a backup
        """
        try:
            with money_context():
                document = BackupDocument.model_validate_json(text)
        except PydanticValidationError as e:
            raise self._format_error(e) from e
        return await self.import_all(document)
    
    def _format_error(self, error: PydanticValidationError) -> BackupFormatError:
        format_error = BackupFormatError(issues_from_pydantic(error))
        if self._event_logger:
            self._event_logger.log(
                LedgerEventBuilder.operation_failed("import_all", format_error)
            )
        return format_error
