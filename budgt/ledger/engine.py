"""
Ledger Engine

DESIGN DECISION: Balances are never edited directly. Every balance change
is a side effect of creating, updating or deleting a transaction, and runs
in the same atomic unit as the record change. So at every point where no
operation is in flight:

    balance == opening balance + sum(effect(tx, account) for stored tx)

An update is "revert the old effect, then apply the new one" rather than a
diff, which keeps revert and apply symmetric.

TOLERATED CASES (named policy branches below, logged as warnings):
- A TRANSFER whose destination account does not exist is stored; only
  the source side moves.
- Deleting an account leaves other accounts' transfers into it dangling.
"""

from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, AsyncIterator, Mapping, Optional

from budgt.events import LedgerEventLogger
from budgt.ledger.effects import effect
from budgt.models.event import LedgerEvent, LedgerEventBuilder
from budgt.models.records import (
    Account,
    LedgerModel,
    Transaction,
    TransactionDraft,
    TransactionType,
    money_context,
    now_ms,
)
from budgt.services.storage import NotFoundError, RecordStoreInterface
from budgt.validation import RecordValidator
from budgt.validation.validator import Payload


APPLY = 1
REVERT = -1


def _changed_fields(old: LedgerModel, new: LedgerModel) -> dict[str, Any]:
    """Fields whose value differs between two versions of a record."""
    return {
        name: getattr(new, name)
        for name in type(new).model_fields
        if getattr(old, name) != getattr(new, name)
    }


class LedgerEngine:
    """
    Applies transaction lifecycle operations and keeps balances in step.
    
    GUARANTEES:
    - Each public operation is one atomic unit: it fully happens or
      leaves the store untouched
    - Malformed input is rejected before any write
    - Errors propagate to the caller after being logged
    """
    
    def __init__(
        self,
        store: RecordStoreInterface,
        event_logger: Optional[LedgerEventLogger] = None,
        validator: Optional[RecordValidator] = None,
    ):
        self._store = store
        self._event_logger = event_logger
        self._validator = validator or RecordValidator()
    
    def _log(self, events: list[LedgerEvent]) -> None:
        if self._event_logger:
            for event in events:
                self._event_logger.log(event)
    
    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[list[LedgerEvent]]:
        """
        Run one ledger operation.
        
        Yields a list the operation appends events to. Events are only
        logged once the operation has committed; a failure is logged
        instead and re-raised.
        """
        events: list[LedgerEvent] = []
        try:
            yield events
        except Exception as e:
            self._log([LedgerEventBuilder.operation_failed(name, e)])
            raise
        self._log(events)
    
    # =========================================================================
    # BALANCE EFFECTS
    # =========================================================================
    
    async def _adjust_balance(
        self,
        account: Account,
        delta: Decimal,
        transaction_id: str,
        events: list[LedgerEvent],
    ) -> None:
        with money_context():
            new_balance = account.balance + delta
        # Raises LedgerValidationError when the balance outgrows its digit bound
        updated = self._validator.balance_change(account, new_balance)
        await self._store.put_account(updated)
        events.append(LedgerEventBuilder.balance_adjusted(
            account_id=account.id,
            old_balance=account.balance,
            new_balance=new_balance,
            transaction_id=transaction_id,
        ))
    
    def _skip_missing_destination(
        self,
        tx: TransactionDraft,
        transaction_id: str,
        events: list[LedgerEvent],
    ) -> None:
        """Policy: a transfer into a missing account moves only the source side."""
        events.append(LedgerEventBuilder.transfer_destination_missing(
            transaction_id=transaction_id,
            destination_id=tx.transfer_to_account_id,
        ))
    
    async def _move(
        self,
        tx: TransactionDraft,
        transaction_id: str,
        direction: int,
        events: list[LedgerEvent],
    ) -> None:
        """
        Apply (APPLY) or revert (REVERT) the effect of `tx`.
        
        Raises:
            NotFoundError: If the source account doesn't exist
        """
        source = await self._store.get_account(tx.account_id)
        if source is None:
            raise NotFoundError("account", tx.account_id)
        await self._adjust_balance(
            source, direction * effect(tx, source.id), transaction_id, events
        )
        
        if tx.type != TransactionType.TRANSFER:
            return
        
        destination = await self._store.get_account(tx.transfer_to_account_id)
        if destination is None:
            self._skip_missing_destination(tx, transaction_id, events)
            return
        await self._adjust_balance(
            destination, direction * effect(tx, destination.id), transaction_id, events
        )
    
    # =========================================================================
    # TRANSACTIONS
    # =========================================================================
    
    async def create_transaction(self, payload: Payload) -> str:
        """
        Record a transaction and apply its balance effect.
        
        Args:
            payload: Transaction fields (dict or TransactionDraft)
            
        Returns:
            The new transaction id
            
        Raises:
            LedgerValidationError: Non-positive or oversized amount, bad transfer
                                  destination, or a balance past its digit bound
            NotFoundError: If the source account doesn't exist
        """
        async with self._operation("create_transaction") as events:
            draft = self._validator.transaction_draft(payload)
            async with self._store.atomic():
                transaction_id = await self._store.create_transaction(draft)
                await self._move(draft, transaction_id, APPLY, events)
            events.append(LedgerEventBuilder.transaction_created(
                transaction_id=transaction_id,
                account_id=draft.account_id,
                tx_type=draft.type.value,
                amount=draft.amount,
            ))
        return transaction_id
    
    async def update_transaction(
        self,
        transaction_id: str,
        changes: Mapping[str, Any],
    ) -> Transaction:
        """
        Change a transaction, keeping its id.
        
        Reverts the old effect from the accounts it touched, then applies
        the effect of the old record merged with `changes`. Fields not in
        `changes` are inherited.
        
        Returns:
            The updated transaction
            
        Raises:
            NotFoundError: If the transaction or its (new) source account
                          doesn't exist
            LedgerValidationError: If the merged transaction is invalid
        """
        async with self._operation("update_transaction") as events:
            async with self._store.atomic():
                old = await self._store.get_transaction(transaction_id)
                if old is None:
                    raise NotFoundError("transaction", transaction_id)
                candidate = self._validator.transaction_update(old, changes)
                
                await self._move(old, transaction_id, REVERT, events)
                await self._move(candidate, transaction_id, APPLY, events)
                
                changed = _changed_fields(old, candidate)
                updated = await self._store.update_transaction_fields(
                    transaction_id, changed
                )
            events.append(LedgerEventBuilder.transaction_updated(
                transaction_id=transaction_id,
                fields=sorted(changed),
            ))
        return updated
    
    async def delete_transaction(self, transaction_id: str) -> None:
        """
        Delete a transaction and revert its balance effect.
        
        Deleting a transaction that doesn't exist is a no-op.
        
        Raises:
            NotFoundError: If the transaction's source account doesn't exist
        """
        async with self._operation("delete_transaction") as events:
            async with self._store.atomic():
                tx = await self._store.get_transaction(transaction_id)
                if tx is None:
                    return
                await self._move(tx, transaction_id, REVERT, events)
                await self._store.delete_transaction(transaction_id)
            events.append(LedgerEventBuilder.transaction_deleted(transaction_id))
    
    # =========================================================================
    # ACCOUNTS
    # =========================================================================
    
    async def create_account(self, payload: Payload) -> str:
        """
        Create an account seeded with its opening balance.
        
        Returns:
            The new account id
            
        Raises:
            LedgerValidationError: Empty name, credit card details on a
                                  non credit card account, etc.
        """
        async with self._operation("create_account") as events:
            draft = self._validator.account_draft(payload)
            account_id = await self._store.create_account(draft)
            events.append(LedgerEventBuilder.account_created(
                account_id=account_id,
                name=draft.name,
                balance=draft.balance,
            ))
        return account_id
    
    async def update_account(
        self,
        account_id: str,
        changes: Mapping[str, Any],
    ) -> Account:
        """
        Change account metadata (name, type, currency, card details).
        
        The balance is not editable here.
        
        Raises:
            NotFoundError: If the account doesn't exist
            LedgerValidationError: If `changes` touches balance, id or
                                  created_at, or the result is invalid
        """
        async with self._operation("update_account") as events:
            async with self._store.atomic():
                account = await self._store.get_account(account_id)
                if account is None:
                    raise NotFoundError("account", account_id)
                candidate = self._validator.account_update(account, changes)
                changed = _changed_fields(account, candidate)
                updated = await self._store.update_account(
                    account_id, {**changed, "updated_at": now_ms()}
                )
            events.append(LedgerEventBuilder.account_updated(
                account_id=account_id,
                fields=sorted(changed),
            ))
        return updated
    
    def _leave_transfers_dangling(
        self,
        account_id: str,
        transfers: list[Transaction],
        events: list[LedgerEvent],
    ) -> None:
        """Policy: transfers from other accounts into a deleted account are kept."""
        events.append(LedgerEventBuilder.transfers_left_dangling(
            account_id=account_id,
            transaction_ids=[tx.id for tx in transfers],
        ))
    
    async def delete_account(self, account_id: str) -> None:
        """
        Delete an account and every transaction it owns.
        
        No balance is reverted. Transactions that reference the account
        only as a transfer destination are left in place.
        
        Raises:
            NotFoundError: If the account doesn't exist
        """
        async with self._operation("delete_account") as events:
            async with self._store.atomic():
                if await self._store.get_account(account_id) is None:
                    raise NotFoundError("account", account_id)
                
                owned = await self._store.list_transactions(account_id)
                for tx in owned:
                    await self._store.delete_transaction(tx.id)
                await self._store.delete_account(account_id)
                
                incoming = [
                    tx for tx in await self._store.list_transactions()
                    if tx.type == TransactionType.TRANSFER
                    and tx.transfer_to_account_id == account_id
                ]
                if incoming:
                    self._leave_transfers_dangling(account_id, incoming, events)
            events.append(LedgerEventBuilder.account_deleted(
                account_id=account_id,
                removed_transactions=len(owned),
            ))
    
    # =========================================================================
    # TAGS
    # =========================================================================
    
    async def create_tag(self, payload: Payload) -> str:
        """
        Raises:
            LedgerValidationError: Empty name or color
            DuplicateError: If the name is already taken
        """
        async with self._operation("create_tag") as events:
            draft = self._validator.tag_draft(payload)
            tag_id = await self._store.create_tag(draft)
            events.append(LedgerEventBuilder.tag_created(tag_id, draft.name))
        return tag_id
    
    async def delete_tag(self, tag_id: str) -> None:
        """
        Raises:
            NotFoundError: If the tag doesn't exist
        """
        async with self._operation("delete_tag") as events:
            await self._store.delete_tag(tag_id)
            events.append(LedgerEventBuilder.tag_deleted(tag_id))
