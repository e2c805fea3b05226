"""
Read-Only Ledger Reports

DESIGN DECISION: Reports are DERIVED, never stored.
Every figure here is recomputed from the in-memory collections, so a
report can never disagree with the ledger it describes.

Nothing in this module mutates its inputs.
"""

from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.config import LedgerSettings, get_settings
from src.models.account import Account, AccountType
from src.models.common import ZERO, to_money
from src.models.credit import Credit
from src.models.investment import Investment
from src.models.transaction import Transaction


class FinanceSummary(BaseModel):
    """Headline figures for the dashboard."""

    total_credits: Decimal = Field(..., description="Sum of total due over all credits")
    total_pending: Decimal = Field(..., description="Sum of remaining over all credits")
    total_investments: Decimal = Field(..., description="Sum of cost plus estimated gain")
    total_estimated_gains: Decimal
    total_realized_gains: Decimal
    cash_position: Decimal = Field(..., description="Balance held in liquidity accounts")
    credit_count: int
    investment_count: int


class TrialBalanceRow(BaseModel):
    account_id: UUID
    name: str
    account_type: AccountType
    debit: Decimal = ZERO
    credit: Decimal = ZERO


class TrialBalance(BaseModel):
    """
    Every account's balance on its debit or credit side.

    A debit-normal account with a positive balance sits in the debit
    column; a negative balance flips it to the credit column.
    """

    rows: list[TrialBalanceRow]
    total_debit: Decimal
    total_credit: Decimal

    @property
    def difference(self) -> Decimal:
        return self.total_debit - self.total_credit


class BalanceDrift(BaseModel):
    """An account whose stored balance disagrees with its ledger history."""

    account_id: UUID
    name: str
    stored_balance: Decimal
    replayed_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.stored_balance - self.replayed_balance


def summarize(
    credits: Iterable[Credit],
    investments: Iterable[Investment],
    accounts: Iterable[Account],
    settings: Optional[LedgerSettings] = None,
) -> FinanceSummary:
    """Aggregate credits, investments and liquidity balances."""
    settings = settings or get_settings().ledger
    credits = list(credits)
    investments = list(investments)
    liquidity = {name.casefold() for name in settings.liquidity_accounts_list}

    return FinanceSummary(
        total_credits=sum((c.total_due for c in credits), ZERO),
        total_pending=sum((c.remaining for c in credits), ZERO),
        total_investments=sum((i.total for i in investments), ZERO),
        total_estimated_gains=sum((i.estimated_gain for i in investments), ZERO),
        total_realized_gains=sum((i.realized_gain for i in investments), ZERO),
        cash_position=sum(
            (a.balance for a in accounts if a.name.casefold() in liquidity), ZERO
        ),
        credit_count=len(credits),
        investment_count=len(investments),
    )


def trial_balance(accounts: Iterable[Account]) -> TrialBalance:
    rows = []
    for account in sorted(accounts, key=lambda a: (a.account_type.value, a.name)):
        row = TrialBalanceRow(
            account_id=account.id,
            name=account.name,
            account_type=account.account_type,
        )
        debit_side = account.account_type.increases_with_debit == (account.balance >= ZERO)
        if debit_side:
            row.debit = abs(account.balance)
        else:
            row.credit = abs(account.balance)
        rows.append(row)

    return TrialBalance(
        rows=rows,
        total_debit=sum((r.debit for r in rows), ZERO),
        total_credit=sum((r.credit for r in rows), ZERO),
    )


def replay_balances(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
) -> dict[UUID, Decimal]:
    """
    Rebuild every balance from its opening balance and the ledger.

    Lines for accounts that no longer exist are ignored.
    """
    by_id = {account.id: account for account in accounts}
    balances = {account.id: account.opening_balance for account in by_id.values()}
    for transaction in transactions:
        for line in transaction.lines:
            account = by_id.get(line.account_id)
            if account is None:
                continue
            balances[account.id] += account.delta_for(line.debit, line.credit)
    return {account_id: to_money(balance) for account_id, balance in balances.items()}


def find_balance_drift(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
) -> list[BalanceDrift]:
    """Accounts whose stored balance differs from the replayed one."""
    accounts = list(accounts)
    replayed = replay_balances(accounts, transactions)
    return [
        BalanceDrift(
            account_id=account.id,
            name=account.name,
            stored_balance=account.balance,
            replayed_balance=replayed[account.id],
        )
        for account in accounts
        if account.balance != replayed[account.id]
    ]


def transactions_for_period(
    transactions: Iterable[Transaction],
    month: int,
    year: int,
) -> list[Transaction]:
    """Transactions dated within a calendar month, oldest first."""
    selected = [
        t for t in transactions
        if t.transaction_date.year == year and t.transaction_date.month == month
    ]
    return sorted(selected, key=lambda t: (t.transaction_date, t.created_at))
