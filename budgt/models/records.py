"""
Core Data Models for BudgT Ledger

These models define the strict schemas for accounts, transactions and tags.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Serialize verbatim to the portable backup layout (camelCase keys)

DESIGN DECISION: Records are immutable. An update builds a new record from
the old one with overrides (see LedgerModel.merged) so the old value is
always available to revert its balance effect.

Ids are opaque strings for both primary and foreign keys. Documents that
carry numeric ids are coerced to the string form on the way in.
"""

import time
from contextlib import contextmanager
from decimal import Decimal, localcontext
from enum import Enum
from typing import Annotated, Any, Iterator, Mapping, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    SerializationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


ModelT = TypeVar("ModelT", bound="LedgerModel")

# Serialization context for the portable backup layout
PORTABLE = {"portable": True}

# Significant digits allowed for money. Balances stay within the default
# decimal precision, so stores can revalidate them without rounding.
AMOUNT_MAX_DIGITS = 20
BALANCE_MAX_DIGITS = 28

# Wide enough that any valid amount added to any valid balance is exact
MONEY_PRECISION = BALANCE_MAX_DIGITS + AMOUNT_MAX_DIGITS + 1


@contextmanager
def money_context() -> Iterator[None]:
    """Decimal context for money arithmetic and digit checks on new values."""
    with localcontext() as ctx:
        ctx.prec = MONEY_PRECISION
        yield


def _money_to_json(value: Decimal, info: SerializationInfo) -> Any:
    """Money is a JSON number in backups; stored documents keep the exact string."""
    if not (info.context or {}).get("portable"):
        return str(value)
    if value == value.to_integral_value():
        return int(value)
    return float(value)


Money = Annotated[Decimal, PlainSerializer(_money_to_json, when_used="json")]


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def _coerce_id(value: Any) -> Any:
    # bool is an int subclass and never a valid id
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Kinds of account a user can track."""
    SAVINGS = "SAVINGS"
    CHECKING = "CHECKING"
    CREDIT_CARD = "CREDIT_CARD"
    WALLET = "WALLET"
    CASH = "CASH"


class TransactionType(str, Enum):
    """
    Direction of a transaction.
    
    The stored amount is always a positive magnitude; the type alone
    decides whether it adds to or subtracts from a balance.
    """
    INCOME = "INCOME"        # credits accountId
    EXPENSE = "EXPENSE"      # debits accountId
    TRANSFER = "TRANSFER"    # debits accountId, credits transferToAccountId


# =============================================================================
# BASE MODEL
# =============================================================================

class LedgerModel(BaseModel):
    """
    Base for every stored record.
    
    Field names are snake_case in Python and camelCase on the wire.
    Either spelling is accepted on input.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )
    
    @classmethod
    def field_name_for(cls, key: str) -> str:
        """Resolve a field name or its camelCase alias to the field name."""
        if key in cls.model_fields:
            return key
        for name, info in cls.model_fields.items():
            if info.alias == key:
                return name
        # Unknown keys are passed through so validation rejects them
        return key
    
    def merged(self: ModelT, changes: Mapping[str, Any]) -> ModelT:
        """
        Build a new, fully validated record from this one with overrides.
        
        Fields absent from `changes` are inherited. The receiver is never
        modified.
        
        Raises:
            pydantic.ValidationError: If the merged record is invalid
        """
        data = self.model_dump()
        for key, value in changes.items():
            data[self.field_name_for(key)] = value
        return type(self).model_validate(data)


# =============================================================================
# ACCOUNTS
# =============================================================================

class CreditCardDetails(LedgerModel):
    """Billing metadata carried by credit card accounts only."""
    
    limit: Money = Field(
        ...,
        ge=0,
        max_digits=BALANCE_MAX_DIGITS,
        description="Credit limit"
    )
    billing_day: int = Field(
        ...,
        ge=1,
        le=31,
        description="Day of month the statement is generated"
    )
    due_day: int = Field(
        ...,
        ge=1,
        le=31,
        description="Day of month payment is due"
    )


class AccountDraft(LedgerModel):
    """
    Payload for creating an account.
    
    `balance` is the seed of the ledger invariant: every later change
    to it comes from a transaction.
    """
    
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display label"
    )
    type: AccountType
    balance: Money = Field(
        default=Decimal("0"),
        max_digits=BALANCE_MAX_DIGITS,
        description="Starting balance (signed)"
    )
    currency: str = Field(
        default="USD",
        min_length=1,
        max_length=10,
        description="Currency label (no conversion semantics)"
    )
    credit_card_details: Optional[CreditCardDetails] = None
    created_at: int = Field(default_factory=now_ms, ge=0)
    updated_at: int = Field(default_factory=now_ms, ge=0)
    
    @model_validator(mode='after')
    def validate_credit_card_details(self):
        if self.credit_card_details is not None and self.type != AccountType.CREDIT_CARD:
            raise ValueError(
                "Credit card details are only allowed on CREDIT_CARD accounts"
            )
        return self


class Account(AccountDraft):
    """A stored account."""
    
    id: str = Field(..., min_length=1)
    
    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return _coerce_id(v)


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionDraft(LedgerModel):
    """
    Payload for creating a transaction.
    
    `transfer_to_account_id` is only meaningful for TRANSFER; on other
    types it is carried along but has no balance effect.
    """
    
    account_id: str = Field(
        ...,
        min_length=1,
        description="Owning account (debited for EXPENSE/TRANSFER, credited for INCOME)"
    )
    amount: Money = Field(
        ...,
        gt=0,
        max_digits=AMOUNT_MAX_DIGITS,
        description="Positive magnitude; direction comes from type"
    )
    type: TransactionType
    transfer_to_account_id: Optional[str] = Field(
        default=None,
        description="Destination account for TRANSFER"
    )
    category: str = Field(default="", max_length=100)
    description: str = Field(default="", max_length=500)
    tags: list[str] = Field(default_factory=list)
    date: int = Field(
        default_factory=now_ms,
        ge=0,
        description="Economic date of the event (epoch ms)"
    )
    created_at: int = Field(default_factory=now_ms, ge=0)
    
    @field_validator('account_id', 'transfer_to_account_id', mode='before')
    @classmethod
    def coerce_account_refs(cls, v: Any) -> Any:
        return _coerce_id(v)
    
    @field_validator('tags')
    @classmethod
    def dedupe_tags(cls, v: list[str]) -> list[str]:
        """Tags have set semantics; keep first occurrence order."""
        return list(dict.fromkeys(tag for tag in v if tag))
    
    @model_validator(mode='after')
    def validate_transfer_destination(self):
        if self.type == TransactionType.TRANSFER:
            if not self.transfer_to_account_id:
                raise ValueError("Transfer requires a destination account")
            if self.transfer_to_account_id == self.account_id:
                raise ValueError("Transfer destination must differ from source account")
        return self


class Transaction(TransactionDraft):
    """A stored transaction."""
    
    id: str = Field(..., min_length=1)
    
    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return _coerce_id(v)


# =============================================================================
# TAGS
# =============================================================================

class TagDraft(LedgerModel):
    """Payload for creating a tag. Names are unique across tags."""
    
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(..., min_length=1, max_length=30)


class Tag(TagDraft):
    """A stored tag."""
    
    id: str = Field(..., min_length=1)
    
    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return _coerce_id(v)
