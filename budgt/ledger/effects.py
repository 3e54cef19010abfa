"""
Balance effect of a transaction.

The effect of a transaction on an account is the signed amount it adds to
that account's balance:

    INCOME    +amount on account_id
    EXPENSE   -amount on account_id
    TRANSFER  -amount on account_id, +amount on transfer_to_account_id

Every other (transaction, account) pair has no effect. An account balance
always equals its opening balance plus the effects of every stored
transaction that references it.
"""

from decimal import Decimal

from budgt.models.records import TransactionDraft, TransactionType


ZERO = Decimal("0")


def effect(tx: TransactionDraft, account_id: str) -> Decimal:
    """Signed balance delta `tx` contributes to `account_id`."""
    if tx.account_id == account_id:
        if tx.type == TransactionType.INCOME:
            return tx.amount
        # EXPENSE and TRANSFER both debit the owning account
        return -tx.amount
    
    if tx.type == TransactionType.TRANSFER and tx.transfer_to_account_id == account_id:
        return tx.amount
    
    return ZERO

