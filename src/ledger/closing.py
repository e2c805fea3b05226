"""
Period Closing Engine

Closes a calendar month: the balances of Interest Income, Investment
Gains and Operating Expense are driven to zero and the net income is
carried into Capital by a single closing transaction.

Each (month, year) can be closed once.
"""

import calendar
from datetime import date
from decimal import Decimal
from typing import Optional

from src.audit import AuditLogger
from src.config import LedgerSettings, get_settings
from src.ledger.errors import (
    CapitalAccountMissingError,
    InvalidPeriodError,
    NothingToCloseError,
    PeriodAlreadyClosedError,
)
from src.ledger.journal import TransactionLedger
from src.ledger.registry import AccountRegistry
from src.models.account import Account
from src.models.closure import AccountingClosure
from src.models.common import ZERO
from src.models.transaction import TransactionLine
from src.services.replication import Replicator
from src.services.storage.interface import EntityKind


class PeriodClosingEngine:
    """Monthly close of income and expense into capital."""

    def __init__(
        self,
        registry: AccountRegistry,
        ledger: TransactionLedger,
        settings: Optional[LedgerSettings] = None,
        replicator: Optional[Replicator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._registry = registry
        self._ledger = ledger
        self._settings = settings or get_settings().ledger
        self._replicator = replicator
        self._audit_logger = audit_logger
        self._closures: list[AccountingClosure] = []

    @property
    def closures(self) -> list[AccountingClosure]:
        return list(self._closures)

    def is_closed(self, month: int, year: int) -> bool:
        return any(closure.period == (year, month) for closure in self._closures)

    def close(
        self,
        month: int,
        year: int,
        closing_date: Optional[date] = None,
    ) -> AccountingClosure:
        """
        Close a month.

        Income accounts are debited and the expense account credited for
        their full balances (a negative balance is reversed on the other
        side). Capital takes the net: credited when positive, debited
        when negative. The transaction is dated the last day of the month.

        Raises:
            InvalidPeriodError, PeriodAlreadyClosedError,
            NothingToCloseError, CapitalAccountMissingError
        """
        if not 1 <= month <= 12:
            raise InvalidPeriodError(month, year)
        if self.is_closed(month, year):
            raise PeriodAlreadyClosedError(month, year)

        interest_account = self._registry.find_by_name(self._settings.interest_income_account)
        gains_account = self._registry.find_by_name(self._settings.investment_gains_account)
        expense_account = self._registry.find_by_name(self._settings.operating_expense_account)

        interest_income = self._balance(interest_account)
        investment_gain = self._balance(gains_account)
        total_expense = self._balance(expense_account)
        total_income = interest_income + investment_gain
        net_income = total_income - total_expense

        if total_income == ZERO and total_expense == ZERO:
            raise NothingToCloseError(month, year)

        capital = self._registry.find_by_name(self._settings.capital_account)
        if capital is None:
            raise CapitalAccountMissingError(self._settings.capital_account)

        lines: list[TransactionLine] = []
        for account in (interest_account, gains_account):
            if account is not None and account.balance != ZERO:
                lines.append(self._zeroing_line(account))
        if expense_account is not None and expense_account.balance != ZERO:
            lines.append(self._zeroing_line(expense_account))

        if net_income > ZERO:
            lines.append(TransactionLine.credit_line(capital.id, net_income))
        elif net_income < ZERO:
            lines.append(TransactionLine.debit_line(capital.id, -net_income))

        last_day = calendar.monthrange(year, month)[1]
        transaction = self._ledger.record(
            date(year, month, last_day),
            f"Period close {year}-{month:02d}",
            lines,
        )

        closure = AccountingClosure(
            month=month,
            year=year,
            closing_date=closing_date or date.today(),
            interest_income=interest_income,
            investment_gain=investment_gain,
            total_income=total_income,
            total_expense=total_expense,
            net_income=net_income,
            transaction_id=transaction.id,
        )
        self._closures.append(closure)

        if self._replicator:
            self._replicator.create(EntityKind.CLOSURES, closure.id, closure.model_dump(mode="json"))
        if self._audit_logger:
            self._audit_logger.log_period_closed(
                closure_id=closure.id,
                month=month,
                year=year,
                net_income=str(net_income),
                transaction_id=transaction.id,
            )
        return closure

    def replace_snapshot(self, closures: list[AccountingClosure]) -> None:
        self._closures = sorted(closures, key=lambda c: c.created_at)

    def _balance(self, account: Optional[Account]) -> Decimal:
        return account.balance if account is not None else ZERO

    def _zeroing_line(self, account: Account) -> TransactionLine:
        """
        The line that brings an account back to zero.

        Income normally carries a credit balance, so it is debited;
        expense carries a debit balance, so it is credited.
        """
        amount = abs(account.balance)
        if (account.balance > ZERO) != account.account_type.increases_with_debit:
            return TransactionLine.debit_line(account.id, amount)
        return TransactionLine.credit_line(account.id, amount)
