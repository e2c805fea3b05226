"""
Credit Manager

Owns the credits collection and drives each credit through its
lifecycle: granted (funded from Cash or Bank), paid down, completed.

CRITICAL: This manager never touches a balance. Every money movement
goes through TransactionLedger.record(), and the credit itself only
changes after the ledger has accepted the transaction.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from src.audit import AuditLogger
from src.config import LedgerSettings, get_settings
from src.ledger.errors import (
    CreditAlreadyCompletedError,
    CreditNotDeletableError,
    CreditNotFoundError,
)
from src.ledger.journal import TransactionLedger
from src.ledger.policy import FundingPolicy
from src.ledger.registry import AccountRegistry
from src.models.account import AccountType
from src.models.common import ZERO, MoneyInput, to_money
from src.models.credit import Credit, CreditStatus, Payment
from src.models.transaction import TransactionLine
from src.services.replication import Replicator
from src.services.storage.interface import EntityKind


class CreditManager:
    """Grants credits and records payments against them."""

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
        self._policy = FundingPolicy(registry, self._settings)
        self._replicator = replicator
        self._audit_logger = audit_logger
        self._credits: dict[UUID, Credit] = {}

    @property
    def credits(self) -> list[Credit]:
        return list(self._credits.values())

    def find_by_id(self, credit_id: UUID) -> Optional[Credit]:
        return self._credits.get(credit_id)

    def get(self, credit_id: UUID) -> Credit:
        credit = self.find_by_id(credit_id)
        if credit is None:
            raise CreditNotFoundError(credit_id)
        return credit

    def grant_credit(
        self,
        client_name: str,
        principal: MoneyInput,
        interest_rate: MoneyInput,
        start_date: date,
        end_date: date,
        source_account_id: UUID,
    ) -> Credit:
        """
        Lend money to a client out of Cash or Bank.

        Posts: debit Receivable / credit source, for the principal.

        Raises:
            AccountNotFoundError, InvalidSourceAccountError,
            InsufficientFundsError, plus any ledger error
        """
        # Build the model first so bad input fails before any money moves
        credit = Credit(
            client_name=client_name,
            principal=principal,
            interest_rate=interest_rate,
            start_date=start_date,
            end_date=end_date,
        )

        source = self._policy.source_account(source_account_id)
        self._policy.require_funds(source, credit.principal)
        receivable = self._registry.ensure_account(
            self._settings.receivable_account, AccountType.ASSET
        )

        transaction = self._ledger.record(
            start_date,
            f"Credit granted to {credit.client_name}",
            [
                TransactionLine.debit_line(receivable.id, credit.principal),
                TransactionLine.credit_line(source.id, credit.principal),
            ],
        )

        credit.transaction_id = transaction.id
        self._credits[credit.id] = credit

        if self._replicator:
            self._replicator.create(EntityKind.CREDITS, credit.id, credit.model_dump(mode="json"))
        if self._audit_logger:
            self._audit_logger.log_credit_granted(
                credit_id=credit.id,
                client_name=credit.client_name,
                principal=str(credit.principal),
                total_due=str(credit.total_due),
                transaction_id=transaction.id,
            )
        return credit

    def record_payment(
        self,
        credit_id: UUID,
        amount: MoneyInput,
        payment_date: date,
        note: str,
        account_id: UUID,
    ) -> Payment:
        """
        Receive a payment into Cash or Bank.

        Every payment is split with the same proportion of interest to
        total due, regardless of how much has already been paid:

            interest_portion  = amount * (total_due - principal) / total_due
            principal_portion = amount - interest_portion

        Posts: debit account (amount) / credit Receivable (principal
        portion) / credit Interest Income (interest portion).

        Raises:
            CreditNotFoundError, CreditAlreadyCompletedError,
            AccountNotFoundError, InvalidSourceAccountError
        """
        credit = self.get(credit_id)
        if credit.is_completed:
            raise CreditAlreadyCompletedError(credit.client_name)

        account = self._policy.source_account(account_id)
        amount = to_money(amount)

        interest_portion = self._interest_portion(credit, amount)
        principal_portion = amount - interest_portion
        payment = Payment(
            credit_id=credit.id,
            amount=amount,
            payment_date=payment_date,
            note=note,
            interest_portion=interest_portion,
            principal_portion=principal_portion,
        )

        receivable = self._registry.ensure_account(
            self._settings.receivable_account, AccountType.ASSET
        )
        interest_income = self._registry.ensure_account(
            self._settings.interest_income_account, AccountType.INCOME
        )

        transaction = self._ledger.record(
            payment_date,
            f"Payment from {credit.client_name}",
            [
                TransactionLine.debit_line(account.id, amount),
                TransactionLine.credit_line(receivable.id, principal_portion),
                TransactionLine.credit_line(interest_income.id, interest_portion),
            ],
        )

        payment = payment.model_copy(update={"transaction_id": transaction.id})
        credit.payments.append(payment)
        credit.paid = to_money(credit.paid + amount)
        credit.status = self._status_for(credit)

        if self._replicator:
            self._replicator.update(
                EntityKind.CREDITS,
                credit.id,
                {
                    "paid": str(credit.paid),
                    "remaining": str(credit.remaining),
                    "status": credit.status.value,
                    "payments": [p.model_dump(mode="json") for p in credit.payments],
                },
            )
        if self._audit_logger:
            self._audit_logger.log_payment_recorded(
                credit_id=credit.id,
                amount=str(amount),
                remaining=str(credit.remaining),
                status=credit.status.value,
                transaction_id=transaction.id,
            )
        return payment

    def update_credit(
        self,
        credit_id: UUID,
        client_name: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Credit:
        """
        Edit the descriptive fields of a credit.

        Principal and rate are fixed once the credit has been funded.
        """
        credit = self.get(credit_id)
        changes: dict[str, str] = {}
        if client_name is not None and client_name.strip() != credit.client_name:
            changes["client_name"] = client_name.strip()
        if start_date is not None and start_date != credit.start_date:
            changes["start_date"] = start_date.isoformat()
        if end_date is not None and end_date != credit.end_date:
            changes["end_date"] = end_date.isoformat()
        if not changes:
            return credit

        # Re-validate the whole record (dates must stay ordered)
        updated = Credit.model_validate(
            {**credit.model_dump(), **changes, "external_id": credit.external_id}
        )
        self._credits[credit.id] = updated

        if self._replicator:
            self._replicator.update(EntityKind.CREDITS, updated.id, dict(changes))
        if self._audit_logger:
            self._audit_logger.log_credit_updated(updated.id, changes)
        return updated

    def delete_credit(self, credit_id: UUID) -> Credit:
        """
        Cancel a credit that has not received any payment.

        Posts: debit Cash / credit Receivable, for the principal.

        Raises:
            CreditNotFoundError, CreditNotDeletableError
        """
        credit = self.get(credit_id)
        if credit.status != CreditStatus.APPROVED:
            raise CreditNotDeletableError(credit.client_name, credit.status.value)

        cash = self._registry.get_by_name(self._settings.cash_account)
        receivable = self._registry.ensure_account(
            self._settings.receivable_account, AccountType.ASSET
        )
        transaction = self._ledger.record(
            date.today(),
            f"Credit to {credit.client_name} cancelled",
            [
                TransactionLine.debit_line(cash.id, credit.principal),
                TransactionLine.credit_line(receivable.id, credit.principal),
            ],
        )
        del self._credits[credit.id]

        if self._replicator:
            self._replicator.delete(EntityKind.CREDITS, credit.id)
        if self._audit_logger:
            self._audit_logger.log_credit_deleted(credit.id, credit.client_name, transaction.id)
        return credit

    def can_close(self, credit_id: UUID) -> tuple[bool, str]:
        """Whether the credit is settled, with a reason for display."""
        credit = self.get(credit_id)
        if credit.remaining <= ZERO:
            return True, "Credit is fully paid"
        return False, f"Outstanding balance of {credit.remaining}"

    def replace_snapshot(self, credits: list[Credit]) -> None:
        self._credits = {credit.id: credit for credit in credits}

    def _interest_portion(self, credit: Credit, amount: Decimal) -> Decimal:
        if credit.total_due == ZERO:
            return ZERO
        return to_money(amount * (credit.total_due - credit.principal) / credit.total_due)

    def _status_for(self, credit: Credit) -> CreditStatus:
        if credit.remaining <= ZERO:
            return CreditStatus.COMPLETED
        if credit.payments:
            return CreditStatus.IN_PROGRESS
        return CreditStatus.APPROVED
