"""
Storage Services Package

Provides the abstract record store interface and its implementations:
an in-memory store (default, tests) and a durable SQLite store.
"""

from budgt.services.storage.interface import (
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
    StorageConnectionError,
    StorageError,
    new_record_id,
)
from budgt.services.storage.memory import InMemoryRecordStore
from budgt.services.storage.sqlite import SQLiteRecordStore

__all__ = [
    # Interface
    "RecordStoreInterface",
    "new_record_id",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # Implementations
    "InMemoryRecordStore",
    "SQLiteRecordStore",
]
