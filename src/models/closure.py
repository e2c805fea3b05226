"""Monthly accounting closure record."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from src.models.common import utc_now


class AccountingClosure(BaseModel):
    """
    Result of closing one calendar month.

    Created only by the PeriodClosingEngine; one per (month, year).
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=9999)
    closing_date: date = Field(..., description="When the close was performed")
    interest_income: Decimal
    investment_gain: Decimal
    total_income: Decimal
    total_expense: Decimal
    net_income: Decimal
    transaction_id: UUID
    created_at: datetime = Field(default_factory=utc_now)

    external_id: Optional[str] = Field(default=None, exclude=True)

    @property
    def period(self) -> tuple[int, int]:
        return self.year, self.month
