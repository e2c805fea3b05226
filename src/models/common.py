"""
Shared helpers for money and time.

Money is always Decimal, never float. Every computed amount is rounded
to cents with ROUND_HALF_UP before it is stored or posted.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

ZERO = Decimal("0.00")
CENT = Decimal("0.01")

MoneyInput = Union[Decimal, int, float, str]


def to_money(value: MoneyInput) -> Decimal:
    """Convert a number to a Decimal rounded to cents."""
    if not isinstance(value, Decimal):
        # str() first so floats like 0.1 don't leak binary noise
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
