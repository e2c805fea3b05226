"""
Investment Models

An investment is inventory bought for resale. Its gain is only an
estimate until the sale; selling locks realized_gain to the estimate
and freezes the record.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from src.models.common import ZERO, to_money, utc_now


class Investment(BaseModel):
    """A resale asset."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=1000)
    cost: Decimal = Field(..., gt=0, description="Purchase price")
    estimated_gain: Decimal = Field(
        default=ZERO,
        ge=0,
        description="Projected profit on resale"
    )
    realized_gain: Decimal = Field(
        default=ZERO,
        description="Gain locked in at sale; zero while unsold"
    )
    sold: bool = False
    sale_date: Optional[date] = None

    # Purchase and sale transactions
    transaction_id: Optional[UUID] = None
    sale_transaction_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utc_now)

    external_id: Optional[str] = Field(default=None, exclude=True)

    @field_validator('cost', 'estimated_gain', 'realized_gain')
    @classmethod
    def round_to_cents(cls, v: Decimal) -> Decimal:
        return to_money(v)

    @computed_field
    @property
    def total(self) -> Decimal:
        """Expected sale price."""
        return self.cost + self.estimated_gain
