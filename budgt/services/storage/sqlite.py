"""
SQLite Storage Implementation

DESIGN DECISION: SQLite is the durable backend because:
1. Personal finance data stays on the user's machine
2. No database server required
3. Real transactions (BEGIN IMMEDIATE / COMMIT / ROLLBACK) back the
   atomic unit directly

Each record is stored as its JSON document in one column. Transactions
also carry indexed account_id and date columns for filtering; tag names
carry a UNIQUE constraint.

A single connection is shared, so the store serializes units with a lock.
Reads outside a unit take the same lock; otherwise they could observe
another task's uncommitted writes on the shared connection.
"""

import asyncio
import sqlite3
from contextlib import asynccontextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, AsyncIterator, Mapping, Optional

import aiosqlite
import structlog
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

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
    StorageConnectionError,
    StorageError,
    new_record_id,
)


logger = structlog.get_logger("budgt.storage")


SCHEMA = """
CREATE TABLE IF NOT EXISTS accounts (
    id TEXT PRIMARY KEY,
    document TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL,
    date INTEGER NOT NULL,
    document TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_transactions_account_date
    ON transactions (account_id, date);

CREATE TABLE IF NOT EXISTS tags (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    document TEXT NOT NULL
);
"""


class SQLiteRecordStore(RecordStoreInterface):
    """
    SQLite implementation of the record store.
    
    Usage:
        store = SQLiteRecordStore("budgt.db")
        await store.connect()
        async with store.atomic():
            ...
        await store.close()
    """
    
    def __init__(
        self,
        db_path: Path | str,
        busy_timeout_ms: int = 30000,
        connect_attempts: int = 3,
    ):
        self.db_path = str(db_path)
        self._busy_timeout_ms = busy_timeout_ms
        self._connect_attempts = connect_attempts
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()
        self._in_unit: ContextVar[bool] = ContextVar(
            f"budgt_sqlite_unit_{id(self)}", default=False
        )
    
    @property
    def is_connected(self) -> bool:
        return self._conn is not None
    
    async def _open(self) -> aiosqlite.Connection:
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        
        # Autocommit mode: units issue BEGIN/COMMIT themselves
        conn = await aiosqlite.connect(self.db_path, isolation_level=None)
        try:
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute(f"PRAGMA busy_timeout={int(self._busy_timeout_ms)}")
            await conn.executescript(SCHEMA)
        except sqlite3.Error:
            await conn.close()
            raise
        return conn
    
    async def connect(self) -> None:
        """
        Open the database, creating the schema if needed.
        
        Retries with exponential backoff before giving up.
        
        Raises:
            StorageConnectionError: If the database cannot be opened
        """
        if self._conn is not None:
            return
        
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._connect_attempts),
                wait=wait_exponential(multiplier=1, min=2, max=10),
                reraise=True,
            ):
                with attempt:
                    self._conn = await self._open()
        except (sqlite3.Error, OSError) as e:
            raise StorageConnectionError(
                f"Failed to open SQLite database {self.db_path}: {e}"
            ) from e
        
        logger.info("sqlite_connected", db_path=self.db_path)
    
    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("sqlite_closed", db_path=self.db_path)
    
    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StorageConnectionError("Not connected to database")
        return self._conn
    
    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        if self._in_unit.get():
            yield
            return
        
        conn = self._connection()
        async with self._lock:
            token = self._in_unit.set(True)
            try:
                await conn.execute("BEGIN IMMEDIATE")
                try:
                    yield
                except BaseException:
                    await conn.execute("ROLLBACK")
                    raise
                await conn.execute("COMMIT")
            except sqlite3.Error as e:
                raise StorageError(f"Storage operation failed: {e}") from e
            finally:
                self._in_unit.reset(token)
    
    async def _fetch_documents(self, sql: str, parameters: tuple = ()) -> list[str]:
        async with self.atomic():
            cursor = await self._connection().execute(sql, parameters)
            rows = await cursor.fetchall()
            await cursor.close()
        return [row[0] for row in rows]
    
    async def _fetch_document(self, sql: str, parameters: tuple) -> Optional[str]:
        documents = await self._fetch_documents(sql, parameters)
        return documents[0] if documents else None
    
    async def _execute(self, sql: str, parameters: tuple) -> int:
        """Run a write statement and return the affected row count."""
        async with self.atomic():
            cursor = await self._connection().execute(sql, parameters)
            count = cursor.rowcount
            await cursor.close()
        return count
    
    # Accounts
    
    async def _write_account(self, account: Account) -> None:
        await self._execute(
            "INSERT OR REPLACE INTO accounts (id, document) VALUES (?, ?)",
            (account.id, account.model_dump_json()),
        )
    
    async def create_account(self, data: AccountDraft) -> str:
        account = Account.model_validate({**data.model_dump(), "id": new_record_id()})
        await self._write_account(account)
        return account.id
    
    async def get_account(self, account_id: str) -> Optional[Account]:
        document = await self._fetch_document(
            "SELECT document FROM accounts WHERE id = ?", (account_id,)
        )
        return Account.model_validate_json(document) if document else None
    
    async def update_account(
        self,
        account_id: str,
        changes: Mapping[str, Any],
    ) -> Account:
        async with self.atomic():
            current = await self.get_account(account_id)
            if current is None:
                raise NotFoundError("account", account_id)
            updated = current.merged(changes)
            await self._write_account(updated)
        return updated
    
    async def delete_account(self, account_id: str) -> None:
        deleted = await self._execute(
            "DELETE FROM accounts WHERE id = ?", (account_id,)
        )
        if not deleted:
            raise NotFoundError("account", account_id)
    
    async def list_accounts(self) -> list[Account]:
        documents = await self._fetch_documents("SELECT document FROM accounts")
        return [Account.model_validate_json(doc) for doc in documents]
    
    async def put_account(self, account: Account) -> None:
        await self._write_account(account)
    
    # Transactions
    
    async def _write_transaction(self, transaction: Transaction) -> None:
        await self._execute(
            "INSERT OR REPLACE INTO transactions (id, account_id, date, document) "
            "VALUES (?, ?, ?, ?)",
            (
                transaction.id,
                transaction.account_id,
                transaction.date,
                transaction.model_dump_json(),
            ),
        )
    
    async def create_transaction(self, data: TransactionDraft) -> str:
        transaction = Transaction.model_validate(
            {**data.model_dump(), "id": new_record_id()}
        )
        await self._write_transaction(transaction)
        return transaction.id
    
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        document = await self._fetch_document(
            "SELECT document FROM transactions WHERE id = ?", (transaction_id,)
        )
        return Transaction.model_validate_json(document) if document else None
    
    async def update_transaction_fields(
        self,
        transaction_id: str,
        changes: Mapping[str, Any],
    ) -> Transaction:
        async with self.atomic():
            current = await self.get_transaction(transaction_id)
            if current is None:
                raise NotFoundError("transaction", transaction_id)
            updated = current.merged(changes)
            await self._write_transaction(updated)
        return updated
    
    async def delete_transaction(self, transaction_id: str) -> None:
        deleted = await self._execute(
            "DELETE FROM transactions WHERE id = ?", (transaction_id,)
        )
        if not deleted:
            raise NotFoundError("transaction", transaction_id)
    
    async def list_transactions(
        self,
        account_id: Optional[str] = None,
    ) -> list[Transaction]:
        if account_id is None:
            documents = await self._fetch_documents(
                "SELECT document FROM transactions"
            )
        else:
            documents = await self._fetch_documents(
                "SELECT document FROM transactions WHERE account_id = ?",
                (account_id,),
            )
        return [Transaction.model_validate_json(doc) for doc in documents]
    
    async def put_transaction(self, transaction: Transaction) -> None:
        await self._write_transaction(transaction)
    
    # Tags
    
    async def _write_tag(self, tag: Tag) -> None:
        async with self.atomic():
            existing = await self._fetch_document(
                "SELECT id FROM tags WHERE name = ? AND id != ?", (tag.name, tag.id)
            )
            if existing is not None:
                raise DuplicateError(f"Tag name already in use: {tag.name}")
            await self._execute(
                "INSERT OR REPLACE INTO tags (id, name, document) VALUES (?, ?, ?)",
                (tag.id, tag.name, tag.model_dump_json()),
            )
    
    async def create_tag(self, data: TagDraft) -> str:
        tag = Tag.model_validate({**data.model_dump(), "id": new_record_id()})
        await self._write_tag(tag)
        return tag.id
    
    async def get_tag(self, tag_id: str) -> Optional[Tag]:
        document = await self._fetch_document(
            "SELECT document FROM tags WHERE id = ?", (tag_id,)
        )
        return Tag.model_validate_json(document) if document else None
    
    async def delete_tag(self, tag_id: str) -> None:
        deleted = await self._execute("DELETE FROM tags WHERE id = ?", (tag_id,))
        if not deleted:
            raise NotFoundError("tag", tag_id)
    
    async def list_tags(self) -> list[Tag]:
        documents = await self._fetch_documents("SELECT document FROM tags")
        return [Tag.model_validate_json(doc) for doc in documents]
    
    async def put_tag(self, tag: Tag) -> None:
        await self._write_tag(tag)
