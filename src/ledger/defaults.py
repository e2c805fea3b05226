"""
Default chart of accounts.

A brand-new store starts with nine accounts and their starting
balances. Seeding happens once, before the FinanceService connects,
and only when the accounts collection is still empty.
"""

from decimal import Decimal
from typing import Optional

import structlog

from src.audit import AuditLogger
from src.config import LedgerSettings, get_settings
from src.models.account import Account, AccountType
from src.services.storage.interface import EntityKind, LedgerStoreInterface

logger = structlog.get_logger(__name__)


def default_accounts(settings: Optional[LedgerSettings] = None) -> list[Account]:
    """The nine starting accounts, named from settings."""
    settings = settings or get_settings().ledger
    chart = [
        (settings.capital_account, AccountType.CAPITAL, Decimal("1000")),
        (settings.interest_income_account, AccountType.INCOME, Decimal("0")),
        (settings.investment_gains_account, AccountType.INCOME, Decimal("0")),
        (settings.receivable_account, AccountType.ASSET, Decimal("400")),
        (settings.cash_account, AccountType.ASSET, Decimal("400")),
        (settings.bank_account, AccountType.ASSET, Decimal("0")),
        (settings.inventory_account, AccountType.ASSET, Decimal("200")),
        (settings.operating_expense_account, AccountType.EXPENSE, Decimal("0")),
        (settings.accounts_payable_account, AccountType.LIABILITY, Decimal("0")),
    ]
    return [
        Account(name=name, account_type=account_type, balance=balance, opening_balance=balance)
        for name, account_type, balance in chart
    ]


async def bootstrap_default_accounts(
    store: LedgerStoreInterface,
    settings: Optional[LedgerSettings] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> bool:
    """
    Seed the default accounts into an empty store.

    Returns:
        True if the accounts were created, False if the store already had accounts
    """
    existing = await store.list_all(EntityKind.ACCOUNTS)
    if existing:
        logger.debug("seed_skipped", existing_accounts=len(existing))
        return False

    accounts = default_accounts(settings)
    for account in accounts:
        await store.create(EntityKind.ACCOUNTS, account.model_dump(mode="json"))

    names = [account.name for account in accounts]
    logger.info("accounts_seeded", count=len(names))
    if audit_logger:
        audit_logger.log_accounts_seeded(names)
    return True
