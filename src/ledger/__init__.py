"""
Ledger Engine Package

Double-entry bookkeeping for credits and investments. The
TransactionLedger is the only component allowed to move a balance;
everything else describes what should be posted.
"""

from src.ledger.closing import PeriodClosingEngine
from src.ledger.credits import CreditManager
from src.ledger.defaults import bootstrap_default_accounts, default_accounts
from src.ledger.errors import LedgerError
from src.ledger.investments import InvestmentManager
from src.ledger.journal import TransactionLedger
from src.ledger.policy import FundingPolicy
from src.ledger.registry import AccountRegistry

__all__ = [
    "AccountRegistry",
    "CreditManager",
    "FundingPolicy",
    "InvestmentManager",
    "LedgerError",
    "PeriodClosingEngine",
    "TransactionLedger",
    "bootstrap_default_accounts",
    "default_accounts",
]
