"""Helpers shared by the ledger tests."""

from decimal import Decimal
from typing import Optional

from budgt.ledger import effect
from budgt.models.event import LedgerEvent
from budgt.orchestrator import LedgerApi


class RecordingEventLogger:
    """Collects ledger events instead of writing them to the log."""
    
    def __init__(self):
        self.events: list[LedgerEvent] = []
    
    def log(self, event: LedgerEvent) -> None:
        self.events.append(event)
    
    def types(self) -> list[str]:
        return [event.event_type.value for event in self.events]


async def open_account(
    api: LedgerApi,
    balance: str = "1000",
    name: str = "Checking",
    account_type: str = "CHECKING",
) -> str:
    return await api.create_account({
        "name": name,
        "type": account_type,
        "balance": Decimal(balance),
        "currency": "USD",
    })


async def balance_of(api: LedgerApi, account_id: str) -> Optional[Decimal]:
    account = await api.get_account(account_id)
    return account.balance if account else None


async def assert_ledger_consistent(api: LedgerApi, opening: dict[str, Decimal]) -> None:
    """Every account balance equals its opening balance plus all stored effects."""
    transactions = await api.list_transactions()
    for account in await api.list_accounts():
        expected = opening[account.id] + sum(
            (effect(tx, account.id) for tx in transactions), Decimal("0")
        )
        assert account.balance == expected, account.name
