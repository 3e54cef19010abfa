"""
Tests for the ledger engine.

Each test runs against both store backends (see conftest.store).
"""

import asyncio
from decimal import Decimal

import pytest

from budgt.models.records import TransactionType
from budgt.services.storage import NotFoundError
from budgt.validation import LedgerValidationError
from tests.helpers import assert_ledger_consistent, balance_of, open_account


def income(account_id: str, amount: str, **extra) -> dict:
    return {"accountId": account_id, "amount": Decimal(amount), "type": "INCOME", **extra}


def expense(account_id: str, amount: str, **extra) -> dict:
    return {"accountId": account_id, "amount": Decimal(amount), "type": "EXPENSE", **extra}


def transfer(source_id: str, destination_id: str, amount: str, **extra) -> dict:
    return {
        "accountId": source_id,
        "transferToAccountId": destination_id,
        "amount": Decimal(amount),
        "type": "TRANSFER",
        **extra,
    }


class TestCreateTransaction:
    """Tests for create_transaction."""
    
    @pytest.mark.asyncio
    async def test_income_credits_account(self, api):
        account_id = await open_account(api, "1000")
        
        await api.create_transaction(income(account_id, "500"))
        
        assert await balance_of(api, account_id) == Decimal("1500")
    
    @pytest.mark.asyncio
    async def test_expense_debits_account(self, api):
        account_id = await open_account(api, "1000")
        
        await api.create_transaction(expense(account_id, "200"))
        
        assert await balance_of(api, account_id) == Decimal("800")
    
    @pytest.mark.asyncio
    async def test_returns_id_of_stored_transaction(self, api):
        account_id = await open_account(api)
        
        tx_id = await api.create_transaction(expense(account_id, "12.50", category="Food"))
        
        stored = await api.get_transaction(tx_id)
        assert stored is not None
        assert stored.amount == Decimal("12.50")
        assert stored.category == "Food"
        assert stored.type == TransactionType.EXPENSE
    
    @pytest.mark.asyncio
    async def test_transfer_moves_amount_between_accounts(self, api):
        source = await open_account(api, "1000", name="Checking")
        destination = await open_account(api, "50", name="Wallet", account_type="WALLET")
        
        await api.create_transaction(transfer(source, destination, "300"))
        
        assert await balance_of(api, source) == Decimal("700")
        assert await balance_of(api, destination) == Decimal("350")
    
    @pytest.mark.asyncio
    async def test_transfer_to_missing_account_only_debits_source(self, api, event_logger):
        source = await open_account(api, "1000")
        
        tx_id = await api.create_transaction(transfer(source, "no-such-account", "250"))
        
        assert await balance_of(api, source) == Decimal("750")
        assert (await api.get_transaction(tx_id)).transfer_to_account_id == "no-such-account"
        assert "transfer_destination_missing" in event_logger.types()
    
    @pytest.mark.asyncio
    async def test_missing_source_account_stores_nothing(self, api, event_logger):
        other = await open_account(api, "100")
        
        with pytest.raises(NotFoundError):
            await api.create_transaction(transfer("no-such-account", other, "40"))
        
        assert await api.list_transactions() == []
        assert await balance_of(api, other) == Decimal("100")
        assert event_logger.types()[-1] == "operation_failed"
    
    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "-5"])
    async def test_rejects_non_positive_amount(self, api, amount):
        account_id = await open_account(api, "1000")
        
        with pytest.raises(LedgerValidationError) as exc_info:
            await api.create_transaction(expense(account_id, amount))
        
        assert "amount" in exc_info.value.fields
        assert await api.list_transactions() == []
        assert await balance_of(api, account_id) == Decimal("1000")
    
    @pytest.mark.asyncio
    async def test_rejects_transfer_without_destination(self, api):
        account_id = await open_account(api)
        
        with pytest.raises(LedgerValidationError, match="destination"):
            await api.create_transaction({
                "accountId": account_id,
                "amount": Decimal("10"),
                "type": "TRANSFER",
            })
    
    @pytest.mark.asyncio
    async def test_rejects_transfer_to_same_account(self, api):
        account_id = await open_account(api)
        
        with pytest.raises(LedgerValidationError, match="differ"):
            await api.create_transaction(transfer(account_id, account_id, "10"))
        
        assert await balance_of(api, account_id) == Decimal("1000")
    
    @pytest.mark.asyncio
    async def test_transfer_to_long_missing_id_is_accepted(self, api, event_logger):
        source = await open_account(api, "1000")
        destination = "x" * 600
        
        tx_id = await api.create_transaction(transfer(source, destination, "250"))
        
        assert await balance_of(api, source) == Decimal("750")
        assert (await api.get_transaction(tx_id)).transfer_to_account_id == destination
        assert event_logger.types()[-1] == "transaction_created"
    
    @pytest.mark.asyncio
    async def test_largest_amount_is_recorded_and_logged(self, api, event_logger):
        account_id = await open_account(api, "0")
        amount = "9" * 20
        
        await api.create_transaction(income(account_id, amount))
        
        assert await balance_of(api, account_id) == Decimal(amount)
        assert event_logger.events[-1].details["amount"] == amount
    
    @pytest.mark.asyncio
    async def test_rejects_amount_beyond_digit_bound(self, api, event_logger):
        account_id = await open_account(api, "1000")
        
        with pytest.raises(LedgerValidationError) as exc_info:
            await api.create_transaction(income(account_id, "1" * 21))
        
        assert "amount" in exc_info.value.fields
        assert await api.list_transactions() == []
        assert await balance_of(api, account_id) == Decimal("1000")
        assert event_logger.types()[-1] == "operation_failed"
    
    @pytest.mark.asyncio
    async def test_balance_overflow_rolls_back(self, api):
        opening = "9" * 28
        account_id = await open_account(api, opening)
        
        with pytest.raises(LedgerValidationError) as exc_info:
            await api.create_transaction(income(account_id, "1"))
        
        assert "balance" in exc_info.value.fields
        assert await api.list_transactions() == []
        assert await balance_of(api, account_id) == Decimal(opening)
    
    @pytest.mark.asyncio
    async def test_balance_is_never_rounded_to_fit(self, api):
        opening = "1" + "0" * 27
        account_id = await open_account(api, opening)
        
        # 10**27 + 0.5 needs 29 digits; rounding would hide the half unit
        with pytest.raises(LedgerValidationError):
            await api.create_transaction(income(account_id, "0.5"))
        
        assert await balance_of(api, account_id) == Decimal(opening)
        
        await api.create_transaction(income(account_id, "1"))
        assert await balance_of(api, account_id) == Decimal(opening) + 1


class TestUpdateTransaction:
    """Tests for update_transaction (revert old effect, apply new one)."""
    
    @pytest.mark.asyncio
    async def test_income_expense_scenario(self, api):
        account_id = await open_account(api, "1000")
        
        income_id = await api.create_transaction(income(account_id, "500"))
        assert await balance_of(api, account_id) == Decimal("1500")
        
        expense_id = await api.create_transaction(expense(account_id, "200"))
        assert await balance_of(api, account_id) == Decimal("1300")
        
        await api.update_transaction(expense_id, {"amount": Decimal("300")})
        assert await balance_of(api, account_id) == Decimal("1200")
        
        await api.update_transaction(expense_id, {"type": "INCOME"})
        assert await balance_of(api, account_id) == Decimal("1800")
        
        # expense_id is now a 300 income
        await api.delete_transaction(expense_id)
        assert await balance_of(api, account_id) == Decimal("1500")
        
        await api.delete_transaction(income_id)
        assert await balance_of(api, account_id) == Decimal("1000")
    
    @pytest.mark.asyncio
    async def test_keeps_id_and_inherits_unchanged_fields(self, api):
        account_id = await open_account(api)
        tx_id = await api.create_transaction(
            expense(account_id, "20", category="Food", description="Lunch", tags=["work"])
        )
        
        updated = await api.update_transaction(tx_id, {"description": "Team lunch"})
        
        assert updated.id == tx_id
        assert updated.description == "Team lunch"
        assert updated.category == "Food"
        assert updated.tags == ["work"]
        assert await balance_of(api, account_id) == Decimal("980")
    
    @pytest.mark.asyncio
    async def test_update_then_inverse_restores_balances(self, api):
        checking = await open_account(api, "1000", name="Checking")
        savings = await open_account(api, "500", name="Savings", account_type="SAVINGS")
        tx_id = await api.create_transaction(expense(checking, "75"))
        before = {a.id: a.balance for a in await api.list_accounts()}
        
        await api.update_transaction(tx_id, {
            "accountId": savings,
            "amount": Decimal("120"),
            "type": "TRANSFER",
            "transferToAccountId": checking,
        })
        await api.update_transaction(tx_id, {
            "accountId": checking,
            "amount": Decimal("75"),
            "type": "EXPENSE",
            "transferToAccountId": None,
        })
        
        after = {a.id: a.balance for a in await api.list_accounts()}
        assert after == before
    
    @pytest.mark.asyncio
    async def test_moving_to_another_account_moves_effect(self, api):
        first = await open_account(api, "100", name="First")
        second = await open_account(api, "100", name="Second")
        tx_id = await api.create_transaction(income(first, "40"))
        
        await api.update_transaction(tx_id, {"account_id": second})
        
        assert await balance_of(api, first) == Decimal("100")
        assert await balance_of(api, second) == Decimal("140")
    
    @pytest.mark.asyncio
    async def test_redirecting_transfer_destination(self, api):
        source = await open_account(api, "1000", name="Source")
        old_dest = await open_account(api, "0", name="Old")
        new_dest = await open_account(api, "0", name="New")
        tx_id = await api.create_transaction(transfer(source, old_dest, "100"))
        
        await api.update_transaction(tx_id, {"transferToAccountId": new_dest})
        
        assert await balance_of(api, source) == Decimal("900")
        assert await balance_of(api, old_dest) == Decimal("0")
        assert await balance_of(api, new_dest) == Decimal("100")
    
    @pytest.mark.asyncio
    async def test_missing_transaction_raises_not_found(self, api):
        with pytest.raises(NotFoundError):
            await api.update_transaction("no-such-transaction", {"amount": Decimal("1")})
    
    @pytest.mark.asyncio
    async def test_missing_new_source_leaves_state_intact(self, api):
        account_id = await open_account(api, "1000")
        tx_id = await api.create_transaction(expense(account_id, "200"))
        
        with pytest.raises(NotFoundError):
            await api.update_transaction(tx_id, {"accountId": "no-such-account"})
        
        assert await balance_of(api, account_id) == Decimal("800")
        assert (await api.get_transaction(tx_id)).account_id == account_id
    
    @pytest.mark.asyncio
    async def test_invalid_changes_leave_state_intact(self, api):
        account_id = await open_account(api, "1000")
        tx_id = await api.create_transaction(expense(account_id, "200"))
        
        with pytest.raises(LedgerValidationError):
            await api.update_transaction(tx_id, {"amount": Decimal("-1")})
        with pytest.raises(LedgerValidationError):
            await api.update_transaction(tx_id, {"type": "TRANSFER"})
        
        assert await balance_of(api, account_id) == Decimal("800")
        assert (await api.get_transaction(tx_id)).amount == Decimal("200")
    
    @pytest.mark.asyncio
    async def test_rejects_id_change(self, api):
        account_id = await open_account(api)
        tx_id = await api.create_transaction(expense(account_id, "5"))
        
        with pytest.raises(LedgerValidationError) as exc_info:
            await api.update_transaction(tx_id, {"id": "other"})
        
        assert exc_info.value.issues[0].issue_type == "immutable"
    
    @pytest.mark.asyncio
    async def test_rejects_unknown_field(self, api):
        account_id = await open_account(api)
        tx_id = await api.create_transaction(expense(account_id, "5"))
        
        with pytest.raises(LedgerValidationError):
            await api.update_transaction(tx_id, {"merchant": "Cafe"})


class TestDeleteTransaction:
    """Tests for delete_transaction."""
    
    @pytest.mark.asyncio
    async def test_reverts_effect(self, api):
        account_id = await open_account(api, "1000")
        tx_id = await api.create_transaction(expense(account_id, "250"))
        
        await api.delete_transaction(tx_id)
        
        assert await balance_of(api, account_id) == Decimal("1000")
        assert await api.get_transaction(tx_id) is None
    
    @pytest.mark.asyncio
    async def test_is_idempotent(self, api):
        account_id = await open_account(api, "1000")
        tx_id = await api.create_transaction(income(account_id, "10"))
        
        await api.delete_transaction(tx_id)
        first = [a.model_dump() for a in await api.list_accounts()]
        await api.delete_transaction(tx_id)
        second = [a.model_dump() for a in await api.list_accounts()]
        
        assert first == second
        assert await balance_of(api, account_id) == Decimal("1000")
    
    @pytest.mark.asyncio
    async def test_deleting_transfer_reverts_both_sides(self, api):
        source = await open_account(api, "1000", name="Source")
        destination = await open_account(api, "0", name="Destination")
        tx_id = await api.create_transaction(transfer(source, destination, "400"))
        
        await api.delete_transaction(tx_id)
        
        assert await balance_of(api, source) == Decimal("1000")
        assert await balance_of(api, destination) == Decimal("0")
    
    @pytest.mark.asyncio
    async def test_deleting_dangling_transfer_reverts_source_only(self, api):
        source = await open_account(api, "1000")
        tx_id = await api.create_transaction(transfer(source, "gone", "100"))
        
        await api.delete_transaction(tx_id)
        
        assert await balance_of(api, source) == Decimal("1000")


class TestAccounts:
    """Tests for account operations."""
    
    @pytest.mark.asyncio
    async def test_create_account_seeds_balance(self, api, event_logger):
        account_id = await open_account(api, "1234.56", name="Savings", account_type="SAVINGS")
        
        account = await api.get_account(account_id)
        assert account.name == "Savings"
        assert account.balance == Decimal("1234.56")
        assert account.created_at > 0
        assert event_logger.types() == ["account_created"]
    
    @pytest.mark.asyncio
    async def test_create_credit_card_account(self, api):
        account_id = await api.create_account({
            "name": "Visa",
            "type": "CREDIT_CARD",
            "balance": Decimal("0"),
            "currency": "USD",
            "creditCardDetails": {"limit": 5000, "billingDay": 5, "dueDay": 25},
        })
        
        account = await api.get_account(account_id)
        assert account.credit_card_details.limit == Decimal("5000")
        assert account.credit_card_details.due_day == 25
    
    @pytest.mark.asyncio
    async def test_rejects_empty_name(self, api):
        with pytest.raises(LedgerValidationError):
            await api.create_account({"name": "   ", "type": "CASH"})
        
        assert await api.list_accounts() == []
    
    @pytest.mark.asyncio
    async def test_update_account_metadata(self, api):
        account_id = await open_account(api, "100")
        
        updated = await api.update_account(account_id, {"name": "Joint Checking"})
        
        assert updated.name == "Joint Checking"
        assert updated.balance == Decimal("100")
    
    @pytest.mark.asyncio
    async def test_update_account_rejects_balance_edit(self, api):
        account_id = await open_account(api, "100")
        
        with pytest.raises(LedgerValidationError) as exc_info:
            await api.update_account(account_id, {"balance": Decimal("999")})
        
        assert exc_info.value.issues[0].issue_type == "ledger_managed"
        assert await balance_of(api, account_id) == Decimal("100")
    
    @pytest.mark.asyncio
    async def test_update_missing_account_raises_not_found(self, api):
        with pytest.raises(NotFoundError):
            await api.update_account("no-such-account", {"name": "X"})
    
    @pytest.mark.asyncio
    async def test_delete_account_cascades_owned_transactions(self, api):
        doomed = await open_account(api, "1000", name="Doomed")
        other = await open_account(api, "1000", name="Other")
        await api.create_transaction(income(doomed, "10"))
        await api.create_transaction(expense(doomed, "20"))
        await api.create_transaction(transfer(doomed, other, "30"))
        incoming = await api.create_transaction(transfer(other, doomed, "40"))
        
        await api.delete_account(doomed)
        
        assert await api.get_account(doomed) is None
        assert await api.list_transactions(doomed) == []
        remaining = await api.list_transactions()
        assert [tx.id for tx in remaining] == [incoming]
        # No balances are reverted on the surviving account
        assert await balance_of(api, other) == Decimal("990")
    
    @pytest.mark.asyncio
    async def test_delete_account_logs_dangling_transfers(self, api, event_logger):
        doomed = await open_account(api, name="Doomed")
        other = await open_account(api, name="Other")
        incoming = await api.create_transaction(transfer(other, doomed, "40"))
        
        await api.delete_account(doomed)
        
        dangling = [e for e in event_logger.events if e.event_type.value == "transfers_left_dangling"]
        assert dangling[0].details["transaction_ids"] == [incoming]
    
    @pytest.mark.asyncio
    async def test_dangling_transfer_can_still_be_deleted(self, api):
        doomed = await open_account(api, "0", name="Doomed")
        other = await open_account(api, "100", name="Other")
        incoming = await api.create_transaction(transfer(other, doomed, "40"))
        await api.delete_account(doomed)
        
        await api.delete_transaction(incoming)
        
        assert await balance_of(api, other) == Decimal("100")
    
    @pytest.mark.asyncio
    async def test_delete_missing_account_raises_not_found(self, api):
        with pytest.raises(NotFoundError):
            await api.delete_account("no-such-account")


class TestLedgerInvariant:
    """Balances always match opening balance plus stored transaction effects."""
    
    @pytest.mark.asyncio
    async def test_invariant_holds_after_every_operation(self, api):
        opening = {}
        for name, balance in [("Checking", "1000"), ("Savings", "5000"), ("Cash", "80")]:
            account_id = await open_account(api, balance, name=name)
            opening[account_id] = Decimal(balance)
        checking, savings, cash = opening
        
        ids = []
        operations = [
            lambda: api.create_transaction(income(checking, "2500.00")),
            lambda: api.create_transaction(expense(cash, "12.35")),
            lambda: api.create_transaction(transfer(checking, savings, "700")),
            lambda: api.create_transaction(transfer(savings, cash, "60")),
            lambda: api.update_transaction(ids[0], {"amount": Decimal("2400")}),
            lambda: api.update_transaction(ids[2], {"transferToAccountId": cash}),
            lambda: api.update_transaction(ids[1], {"type": "TRANSFER", "transferToAccountId": savings}),
            lambda: api.update_transaction(ids[3], {"accountId": checking}),
            lambda: api.delete_transaction(ids[2]),
            lambda: api.create_transaction(expense(savings, "0.01")),
            lambda: api.delete_transaction(ids[0]),
        ]
        
        for operation in operations:
            result = await operation()
            if isinstance(result, str):
                ids.append(result)
            await assert_ledger_consistent(api, opening)
    
    @pytest.mark.asyncio
    async def test_concurrent_transactions_on_one_account(self, api):
        account_id = await open_account(api, "1000")
        other_id = await open_account(api, "0", name="Other")
        opening = {account_id: Decimal("1000"), other_id: Decimal("0")}
        
        payloads = (
            [income(account_id, "10") for _ in range(10)]
            + [expense(account_id, "3") for _ in range(5)]
            + [transfer(account_id, other_id, "7") for _ in range(5)]
        )
        await asyncio.gather(*(api.create_transaction(p) for p in payloads))
        
        assert len(await api.list_transactions()) == 20
        assert await balance_of(api, account_id) == Decimal("1050")
        assert await balance_of(api, other_id) == Decimal("35")
        await assert_ledger_consistent(api, opening)
