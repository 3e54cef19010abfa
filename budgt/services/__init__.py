"""Services package."""

from budgt.services.storage import (
    DuplicateError,
    InMemoryRecordStore,
    NotFoundError,
    RecordStoreInterface,
    SQLiteRecordStore,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    "DuplicateError",
    "InMemoryRecordStore",
    "NotFoundError",
    "RecordStoreInterface",
    "SQLiteRecordStore",
    "StorageConnectionError",
    "StorageError",
]
