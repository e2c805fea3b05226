"""
Chart of Accounts Models

Every account has a type, and the type decides its normal balance:
assets and expenses grow with debits; liabilities, capital and income
grow with credits.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.common import ZERO, to_money, utc_now


class AccountType(str, Enum):
    """Account classification."""
    ASSET = "asset"
    LIABILITY = "liability"
    INCOME = "income"
    EXPENSE = "expense"
    CAPITAL = "capital"

    @property
    def increases_with_debit(self) -> bool:
        """True for debit-normal types (asset, expense)."""
        return self in (AccountType.ASSET, AccountType.EXPENSE)


class Account(BaseModel):
    """
    A ledger account.

    CRITICAL: balance is owned by the TransactionLedger. It always equals
    opening_balance plus the deltas of every transaction posted to it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique account ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Account name (unique within the chart)"
    )
    account_type: AccountType
    balance: Decimal = ZERO
    opening_balance: Decimal = Field(
        default=ZERO,
        description="Balance at creation, before any transaction"
    )
    created_at: datetime = Field(default_factory=utc_now)

    # Identifier assigned by the remote store; never written back to it
    external_id: Optional[str] = Field(default=None, exclude=True)

    @field_validator('balance', 'opening_balance')
    @classmethod
    def round_to_cents(cls, v: Decimal) -> Decimal:
        return to_money(v)

    def delta_for(self, debit: Decimal, credit: Decimal) -> Decimal:
        """
        Balance change produced by a debit/credit pair on this account.

        Debit-normal accounts: debit - credit.
        Credit-normal accounts: credit - debit.
        """
        if self.account_type.increases_with_debit:
            return debit - credit
        return credit - debit
