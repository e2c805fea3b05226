"""
Transaction Ledger

The single point of truth for balance changes. Every money movement in
the system (granting a credit, receiving a payment, buying or selling an
investment, closing a period) is exactly one call to record().

GUARANTEES:
- Every recorded transaction balances (within the configured tolerance)
- Every recorded transaction has at least one nonzero line
- No balance moves unless the whole transaction is valid
- The log is append-only; there is no update or delete
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Union
from uuid import UUID

from src.audit import AuditLogger
from src.config import LedgerSettings, get_settings
from src.ledger.errors import (
    EmptyTransactionError,
    LedgerError,
    UnbalancedTransactionError,
    UnknownAccountError,
)
from src.ledger.registry import AccountRegistry
from src.models.common import ZERO
from src.models.transaction import LedgerValidation, Transaction, TransactionLine
from src.services.replication import Replicator
from src.services.storage.interface import EntityKind

LineInput = Union[TransactionLine, dict]


class TransactionLedger:
    """Validates, applies and stores double-entry transactions."""

    def __init__(
        self,
        registry: AccountRegistry,
        settings: Optional[LedgerSettings] = None,
        replicator: Optional[Replicator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._registry = registry
        self._settings = settings or get_settings().ledger
        self._replicator = replicator
        self._audit_logger = audit_logger
        self._transactions: list[Transaction] = []

    @property
    def transactions(self) -> list[Transaction]:
        """All transactions in the order they were recorded."""
        return list(self._transactions)

    def recent(self, limit: Optional[int] = None) -> list[Transaction]:
        """Transactions newest first, for display."""
        ordered = sorted(self._transactions, key=lambda t: t.created_at, reverse=True)
        return ordered[:limit] if limit is not None else ordered

    def find_by_id(self, transaction_id: UUID) -> Optional[Transaction]:
        for transaction in self._transactions:
            if transaction.id == transaction_id:
                return transaction
        return None

    def references_account(self, account_id: UUID) -> bool:
        return any(transaction.touches(account_id) for transaction in self._transactions)

    def validate(self, lines: Iterable[LineInput]) -> LedgerValidation:
        """
        Check lines without recording anything.

        Fails with EMPTY_TRANSACTION when no line carries an amount, or
        UNBALANCED when debits and credits differ by more than the tolerance.
        """
        lines = self._coerce(lines)
        total_debit, total_credit = self._totals(lines)
        try:
            self._check(lines)
        except LedgerError as e:
            return LedgerValidation(
                is_valid=False,
                total_debit=total_debit,
                total_credit=total_credit,
                error=e.code,
                message=e.message,
            )
        return LedgerValidation(
            is_valid=True,
            total_debit=total_debit,
            total_credit=total_credit,
        )

    def record(
        self,
        transaction_date: date,
        description: str,
        lines: Iterable[LineInput],
    ) -> Transaction:
        """
        Validate and post a transaction.

        Each line moves its account by the normal-balance rule:
        asset/expense += debit - credit; liability/capital/income += credit - debit.

        Raises:
            EmptyTransactionError, UnbalancedTransactionError, UnknownAccountError
        """
        lines = self._coerce(lines)
        self._check(lines)

        # Every account must exist before any balance moves
        for line in lines:
            if self._registry.find_by_id(line.account_id) is None:
                raise UnknownAccountError(line.account_id)

        total_debit, total_credit = self._totals(lines)
        transaction = Transaction(
            transaction_date=transaction_date,
            description=description,
            lines=tuple(lines),
            total_debit=total_debit,
            total_credit=total_credit,
        )

        for line in lines:
            account = self._registry.get(line.account_id)
            self._registry.apply_posting(account.id, account.delta_for(line.debit, line.credit))
        self._transactions.append(transaction)

        if self._replicator:
            self._replicator.create(
                EntityKind.TRANSACTIONS, transaction.id, transaction.model_dump(mode="json")
            )
        if self._audit_logger:
            self._audit_logger.log_transaction_recorded(
                transaction_id=transaction.id,
                description=transaction.description,
                total=str(total_debit),
                line_count=len(lines),
            )
        return transaction

    def replace_snapshot(self, transactions: list[Transaction]) -> None:
        """Replace the local log with a snapshot from the store (oldest first)."""
        self._transactions = sorted(transactions, key=lambda t: t.created_at)

    def _coerce(self, lines: Iterable[LineInput]) -> list[TransactionLine]:
        return [
            line if isinstance(line, TransactionLine) else TransactionLine.model_validate(line)
            for line in lines
        ]

    def _totals(self, lines: list[TransactionLine]) -> tuple[Decimal, Decimal]:
        total_debit = sum((line.debit for line in lines), ZERO)
        total_credit = sum((line.credit for line in lines), ZERO)
        return total_debit, total_credit

    def _check(self, lines: list[TransactionLine]) -> None:
        if all(line.is_zero for line in lines):
            raise EmptyTransactionError()
        total_debit, total_credit = self._totals(lines)
        if abs(total_debit - total_credit) > self._settings.balance_tolerance:
            raise UnbalancedTransactionError(total_debit, total_credit)
