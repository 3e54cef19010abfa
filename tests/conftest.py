"""
Shared fixtures.

Every test gets its own store: a fresh in-memory store, or a SQLite
database in the test's tmp_path. No state is shared between tests.
"""

from pathlib import Path

import pytest
import pytest_asyncio

from budgt.orchestrator import LedgerApi
from budgt.services.storage import (
    InMemoryRecordStore,
    RecordStoreInterface,
    SQLiteRecordStore,
)
from tests.helpers import RecordingEventLogger


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path: Path) -> RecordStoreInterface:
    """A fresh, connected store of each backend."""
    if request.param == "sqlite":
        backend = SQLiteRecordStore(tmp_path / "ledger.db")
    else:
        backend = InMemoryRecordStore()
    await backend.connect()
    yield backend
    await backend.close()


@pytest.fixture
def event_logger() -> RecordingEventLogger:
    return RecordingEventLogger()


@pytest_asyncio.fixture
async def api(store: RecordStoreInterface, event_logger: RecordingEventLogger) -> LedgerApi:
    return LedgerApi(store, event_logger=event_logger)
