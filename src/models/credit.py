"""
Credit (Loan) Models

A credit is money lent to a client. The amount owed is fixed when the
credit is granted: total_due = principal * (1 + interest_rate / 100).

Status only moves forward:
    APPROVED -> IN_PROGRESS (first payment) -> COMPLETED (nothing remaining)
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from src.models.common import ZERO, to_money, utc_now


class CreditStatus(str, Enum):
    """Lifecycle state of a credit."""
    APPROVED = "approved"        # Funded, no payments yet
    IN_PROGRESS = "in_progress"  # At least one payment received
    COMPLETED = "completed"      # Fully paid (terminal)


class Payment(BaseModel):
    """
    A payment received against a credit.

    Immutable once appended. The interest/principal split is recorded
    so the posted transaction can be traced back from the payment.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    credit_id: UUID
    amount: Decimal = Field(..., gt=0)
    payment_date: date
    note: str = Field(default="", max_length=500)
    interest_portion: Decimal = ZERO
    principal_portion: Decimal = ZERO
    transaction_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator('amount', 'interest_portion', 'principal_portion')
    @classmethod
    def round_to_cents(cls, v: Decimal) -> Decimal:
        return to_money(v)


class Credit(BaseModel):
    """
    A loan granted to a client.

    total_due and remaining are derived, so they can never disagree
    with principal, interest_rate and paid.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    client_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Name of the borrower"
    )
    principal: Decimal = Field(..., gt=0, description="Amount lent")
    interest_rate: Decimal = Field(
        ...,
        ge=0,
        description="Flat interest over the whole term, in percent"
    )
    paid: Decimal = ZERO
    start_date: date
    end_date: date
    status: CreditStatus = CreditStatus.APPROVED
    payments: list[Payment] = Field(default_factory=list)

    # Funding transaction
    transaction_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utc_now)

    external_id: Optional[str] = Field(default=None, exclude=True)

    @field_validator('principal', 'paid')
    @classmethod
    def round_to_cents(cls, v: Decimal) -> Decimal:
        return to_money(v)

    @model_validator(mode='after')
    def validate_dates(self) -> 'Credit':
        if self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self

    @computed_field
    @property
    def total_due(self) -> Decimal:
        return to_money(self.principal + self.principal * self.interest_rate / 100)

    @computed_field
    @property
    def remaining(self) -> Decimal:
        return max(self.total_due - self.paid, ZERO)

    @property
    def interest_amount(self) -> Decimal:
        """Total interest the credit earns over its life."""
        return self.total_due - self.principal

    @property
    def is_completed(self) -> bool:
        return self.status == CreditStatus.COMPLETED
