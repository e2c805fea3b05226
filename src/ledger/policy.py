"""
Funding policy: only liquidity accounts (Cash and Bank by default) may
fund a credit or an investment, receive a credit payment, or receive
the proceeds of a sale.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from src.config import LedgerSettings, get_settings
from src.ledger.errors import (
    InsufficientFundsError,
    InvalidDestinationAccountError,
    InvalidSourceAccountError,
)
from src.ledger.registry import AccountRegistry
from src.models.account import Account


class FundingPolicy:
    """Checks that money moves through the designated liquidity accounts."""

    def __init__(
        self,
        registry: AccountRegistry,
        settings: Optional[LedgerSettings] = None,
    ):
        self._registry = registry
        self._settings = settings or get_settings().ledger

    @property
    def liquidity_names(self) -> list[str]:
        return self._settings.liquidity_accounts_list

    def is_liquidity_account(self, account: Account) -> bool:
        return account.name.casefold() in {name.casefold() for name in self.liquidity_names}

    def source_account(self, account_id: UUID) -> Account:
        """
        Resolve an account money is taken from (or paid into, for credit payments).

        Raises:
            AccountNotFoundError: If the id is unknown
            InvalidSourceAccountError: If it is not a liquidity account
        """
        account = self._registry.get(account_id)
        if not self.is_liquidity_account(account):
            raise InvalidSourceAccountError(account.name, self.liquidity_names)
        return account

    def destination_account(self, account_id: UUID) -> Account:
        """Resolve an account that receives sale proceeds."""
        account = self._registry.get(account_id)
        if not self.is_liquidity_account(account):
            raise InvalidDestinationAccountError(account.name, self.liquidity_names)
        return account

    def require_funds(self, account: Account, amount: Decimal) -> None:
        if account.balance < amount:
            raise InsufficientFundsError(account.name, account.balance, amount)
