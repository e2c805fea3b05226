"""
Operation Results

Every mutating operation of the FinanceService returns an
OperationResult. Business-rule violations are reported here with a
machine-readable code and a human-readable message; they are never
raised to the caller.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class LedgerErrorCode(str, Enum):
    """Machine-readable failure reasons."""
    # Ledger
    UNBALANCED = "unbalanced"
    EMPTY_TRANSACTION = "empty_transaction"
    UNKNOWN_ACCOUNT = "unknown_account"

    # Accounts
    ACCOUNT_NOT_FOUND = "account_not_found"
    DUPLICATE_ACCOUNT = "duplicate_account"
    ACCOUNT_IN_USE = "account_in_use"

    # Funding policy
    INVALID_SOURCE_ACCOUNT = "invalid_source_account"
    INVALID_DESTINATION_ACCOUNT = "invalid_destination_account"
    INSUFFICIENT_FUNDS = "insufficient_funds"

    # Credits
    CREDIT_NOT_FOUND = "credit_not_found"
    ALREADY_COMPLETED = "already_completed"
    CREDIT_NOT_DELETABLE = "credit_not_deletable"

    # Investments
    INVESTMENT_NOT_FOUND = "investment_not_found"
    ALREADY_SOLD = "already_sold"

    # Period close
    ALREADY_CLOSED = "already_closed"
    NOTHING_TO_CLOSE = "nothing_to_close"
    CAPITAL_ACCOUNT_MISSING = "capital_account_missing"
    INVALID_PERIOD = "invalid_period"

    # Input
    INVALID_INPUT = "invalid_input"


class OperationResult(BaseModel):
    """Outcome of a core operation."""

    success: bool
    message: str
    error: Optional[LedgerErrorCode] = None
    value: Any = None

    @classmethod
    def ok(cls, value: Any = None, message: str = "OK") -> "OperationResult":
        return cls(success=True, message=message, value=value)

    @classmethod
    def fail(cls, error: LedgerErrorCode, message: str) -> "OperationResult":
        return cls(success=False, message=message, error=error)

    def __bool__(self) -> bool:
        return self.success
