"""
Account Registry

Holds the chart of accounts. This is the leaf of the engine: it knows
nothing about transactions, credits or investments.

CRITICAL: apply_posting() is the only way a balance moves during normal
operation, and only the TransactionLedger calls it.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from src.audit import AuditLogger
from src.ledger.errors import AccountNotFoundError, DuplicateAccountError
from src.models.account import Account, AccountType
from src.models.common import MoneyInput, to_money
from src.services.replication import Replicator
from src.services.storage.interface import EntityKind


class AccountRegistry:
    """In-memory chart of accounts, mirrored to the ledger store."""

    def __init__(
        self,
        replicator: Optional[Replicator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._accounts: dict[UUID, Account] = {}
        self._replicator = replicator
        self._audit_logger = audit_logger

    @property
    def accounts(self) -> list[Account]:
        return list(self._accounts.values())

    def find_by_id(self, account_id: UUID) -> Optional[Account]:
        return self._accounts.get(account_id)

    def find_by_name(self, name: str) -> Optional[Account]:
        """Case-insensitive lookup by account name."""
        wanted = name.strip().casefold()
        for account in self._accounts.values():
            if account.name.casefold() == wanted:
                return account
        return None

    def get(self, account_id: UUID) -> Account:
        account = self.find_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def get_by_name(self, name: str) -> Account:
        account = self.find_by_name(name)
        if account is None:
            raise AccountNotFoundError(name)
        return account

    def create_account(
        self,
        name: str,
        account_type: AccountType,
        initial_balance: MoneyInput = 0,
    ) -> Account:
        """
        Add an account to the chart.

        The initial balance becomes the account's opening balance.

        Raises:
            DuplicateAccountError: If the name is taken
        """
        if self.find_by_name(name) is not None:
            raise DuplicateAccountError(name.strip())

        opening = to_money(initial_balance)
        account = Account(
            name=name,
            account_type=account_type,
            balance=opening,
            opening_balance=opening,
        )
        self._accounts[account.id] = account

        if self._replicator:
            self._replicator.create(
                EntityKind.ACCOUNTS, account.id, account.model_dump(mode="json")
            )
        if self._audit_logger:
            self._audit_logger.log_account_created(
                account_id=account.id,
                name=account.name,
                account_type=account.account_type.value,
                opening_balance=str(opening),
            )
        return account

    def ensure_account(self, name: str, account_type: AccountType) -> Account:
        """Return the named account, creating it with a zero balance if absent."""
        account = self.find_by_name(name)
        if account is None:
            account = self.create_account(name, account_type)
        return account

    def update_account(
        self,
        account_id: UUID,
        name: Optional[str] = None,
        account_type: Optional[AccountType] = None,
        balance: Optional[MoneyInput] = None,
    ) -> Account:
        """
        Edit an account.

        A balance given here is an administrative correction. The opening
        balance shifts by the same amount, so replaying the ledger still
        reproduces the corrected balance.
        """
        account = self.get(account_id)
        changes: dict[str, str] = {}

        if name is not None and name.strip() != account.name:
            other = self.find_by_name(name)
            if other is not None and other.id != account.id:
                raise DuplicateAccountError(name.strip())
            account.name = name.strip()
            changes["name"] = account.name

        if account_type is not None and account_type != account.account_type:
            account.account_type = account_type
            changes["account_type"] = account_type.value

        if balance is not None:
            new_balance = to_money(balance)
            if new_balance != account.balance:
                old_balance = account.balance
                account.opening_balance = account.opening_balance + (new_balance - old_balance)
                account.balance = new_balance
                changes["balance"] = str(new_balance)
                changes["opening_balance"] = str(account.opening_balance)
                if self._audit_logger:
                    self._audit_logger.log_balance_corrected(
                        account_id=account.id,
                        name=account.name,
                        old_balance=str(old_balance),
                        new_balance=str(new_balance),
                    )

        if changes:
            if self._replicator:
                self._replicator.update(EntityKind.ACCOUNTS, account.id, dict(changes))
            if self._audit_logger:
                self._audit_logger.log_account_updated(account.id, changes)
        return account

    def delete_account(self, account_id: UUID) -> Account:
        """
        Remove an account from the chart.

        Callers must check that no transaction references it first.
        """
        account = self.get(account_id)
        del self._accounts[account_id]

        if self._replicator:
            self._replicator.delete(EntityKind.ACCOUNTS, account.id)
        if self._audit_logger:
            self._audit_logger.log_account_deleted(account.id, account.name)
        return account

    def apply_posting(self, account_id: UUID, delta: Decimal) -> Account:
        """Move a balance by delta. Called only by the TransactionLedger."""
        account = self.get(account_id)
        account.balance = to_money(account.balance + delta)

        if self._replicator:
            self._replicator.update(
                EntityKind.ACCOUNTS, account.id, {"balance": str(account.balance)}
            )
        return account

    def replace_snapshot(self, accounts: list[Account]) -> None:
        """Replace the whole chart with a snapshot from the store."""
        self._accounts = {account.id: account for account in accounts}
