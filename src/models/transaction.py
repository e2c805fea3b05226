"""
Double-Entry Transaction Models

DESIGN DECISION: Transactions are frozen once built. The ledger is
append-only; a mistake is corrected by recording a reversing
transaction, never by editing an old one.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.models.common import ZERO, MoneyInput, to_money, utc_now
from src.models.results import LedgerErrorCode


class TransactionLine(BaseModel):
    """
    One posting of a transaction.

    Normally exactly one of debit/credit is nonzero.
    """
    model_config = ConfigDict(frozen=True)

    account_id: UUID
    debit: Decimal = Field(default=ZERO, ge=0)
    credit: Decimal = Field(default=ZERO, ge=0)

    @field_validator('debit', 'credit')
    @classmethod
    def round_to_cents(cls, v: Decimal) -> Decimal:
        return to_money(v)

    @property
    def is_zero(self) -> bool:
        return self.debit == ZERO and self.credit == ZERO

    @classmethod
    def debit_line(cls, account_id: UUID, amount: MoneyInput) -> "TransactionLine":
        return cls(account_id=account_id, debit=amount)

    @classmethod
    def credit_line(cls, account_id: UUID, amount: MoneyInput) -> "TransactionLine":
        return cls(account_id=account_id, credit=amount)


class Transaction(BaseModel):
    """A balanced, recorded journal entry."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    transaction_date: date
    description: str = Field(..., min_length=1, max_length=500)
    lines: tuple[TransactionLine, ...]
    total_debit: Decimal
    total_credit: Decimal
    created_at: datetime = Field(default_factory=utc_now)

    external_id: Optional[str] = Field(default=None, exclude=True)

    @model_validator(mode='after')
    def validate_totals(self) -> 'Transaction':
        """Totals must match the lines they summarize."""
        if sum((line.debit for line in self.lines), ZERO) != self.total_debit:
            raise ValueError("total_debit does not match the lines")
        if sum((line.credit for line in self.lines), ZERO) != self.total_credit:
            raise ValueError("total_credit does not match the lines")
        return self

    def touches(self, account_id: UUID) -> bool:
        return any(line.account_id == account_id for line in self.lines)


class LedgerValidation(BaseModel):
    """Result of checking a set of lines before recording them."""

    is_valid: bool
    total_debit: Decimal
    total_credit: Decimal
    error: Optional[LedgerErrorCode] = None
    message: str = "OK"

    @property
    def difference(self) -> Decimal:
        return self.total_debit - self.total_credit
