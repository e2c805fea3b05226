"""
Data Models Package

This package contains all Pydantic models used by the ledger.
All data flowing through the system must conform to these schemas.
"""

from src.models.account import Account, AccountType
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from src.models.closure import AccountingClosure
from src.models.common import to_money
from src.models.credit import Credit, CreditStatus, Payment
from src.models.investment import Investment
from src.models.results import LedgerErrorCode, OperationResult
from src.models.transaction import LedgerValidation, Transaction, TransactionLine

__all__ = [
    # Ledger models
    "Account",
    "AccountType",
    "AccountingClosure",
    "Credit",
    "CreditStatus",
    "Investment",
    "LedgerValidation",
    "Payment",
    "Transaction",
    "TransactionLine",
    # Results
    "LedgerErrorCode",
    "OperationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Helpers
    "to_money",
]
