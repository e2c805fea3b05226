"""
Investment Manager

Owns the investments collection: inventory bought out of Cash or Bank
and later sold at cost plus the estimated gain.

CRITICAL: A sold investment must always have a sale transaction behind
it. sell() marks the record sold before posting, and puts it back
exactly as it was if the ledger rejects the posting.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from src.audit import AuditLogger
from src.config import LedgerSettings, get_settings
from src.ledger.errors import InvestmentAlreadySoldError, InvestmentNotFoundError, LedgerError
from src.ledger.journal import TransactionLedger
from src.ledger.policy import FundingPolicy
from src.ledger.registry import AccountRegistry
from src.models.account import AccountType
from src.models.common import ZERO, MoneyInput, to_money
from src.models.investment import Investment
from src.models.transaction import TransactionLine
from src.services.replication import Replicator
from src.services.storage.interface import EntityKind


class InvestmentManager:
    """Buys, edits, cancels and sells investments."""

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
        self._investments: dict[UUID, Investment] = {}

    @property
    def investments(self) -> list[Investment]:
        return list(self._investments.values())

    def find_by_id(self, investment_id: UUID) -> Optional[Investment]:
        return self._investments.get(investment_id)

    def get(self, investment_id: UUID) -> Investment:
        investment = self.find_by_id(investment_id)
        if investment is None:
            raise InvestmentNotFoundError(investment_id)
        return investment

    def purchase(
        self,
        name: str,
        description: str,
        cost: MoneyInput,
        estimated_gain: MoneyInput,
        source_account_id: UUID,
        purchase_date: Optional[date] = None,
    ) -> Investment:
        """
        Buy inventory out of Cash or Bank.

        Posts: debit Investment Inventory / credit source, for the cost.

        Raises:
            AccountNotFoundError, InvalidSourceAccountError,
            InsufficientFundsError, plus any ledger error
        """
        investment = Investment(
            name=name,
            description=description,
            cost=cost,
            estimated_gain=estimated_gain,
        )

        source = self._policy.source_account(source_account_id)
        self._policy.require_funds(source, investment.cost)
        inventory = self._registry.ensure_account(
            self._settings.inventory_account, AccountType.ASSET
        )

        transaction = self._ledger.record(
            purchase_date or date.today(),
            f"Investment purchase: {investment.name}",
            [
                TransactionLine.debit_line(inventory.id, investment.cost),
                TransactionLine.credit_line(source.id, investment.cost),
            ],
        )

        investment.transaction_id = transaction.id
        self._investments[investment.id] = investment

        if self._replicator:
            self._replicator.create(
                EntityKind.INVESTMENTS, investment.id, investment.model_dump(mode="json")
            )
        if self._audit_logger:
            self._audit_logger.log_investment_purchased(
                investment_id=investment.id,
                name=investment.name,
                cost=str(investment.cost),
                transaction_id=transaction.id,
            )
        return investment

    def update(
        self,
        investment_id: UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
        cost: Optional[MoneyInput] = None,
        estimated_gain: Optional[MoneyInput] = None,
    ) -> bool:
        """
        Edit an unsold investment.

        Returns False without changing anything when the investment has
        been sold. A cost change posts the difference between Investment
        Inventory and Cash so inventory keeps matching the recorded cost.
        """
        investment = self.get(investment_id)
        if investment.sold:
            return False

        changes: dict[str, str] = {}
        if name is not None and name.strip() != investment.name:
            changes["name"] = name.strip()
        if description is not None and description.strip() != investment.description:
            changes["description"] = description.strip()
        if cost is not None and to_money(cost) != investment.cost:
            changes["cost"] = str(to_money(cost))
        if estimated_gain is not None and to_money(estimated_gain) != investment.estimated_gain:
            changes["estimated_gain"] = str(to_money(estimated_gain))
        if not changes:
            return True

        updated = Investment.model_validate(
            {**investment.model_dump(), **changes, "external_id": investment.external_id}
        )

        difference = updated.cost - investment.cost
        if difference != ZERO:
            self._post_cost_adjustment(updated, difference)

        self._investments[updated.id] = updated
        changes["total"] = str(updated.total)

        if self._replicator:
            self._replicator.update(EntityKind.INVESTMENTS, updated.id, dict(changes))
        if self._audit_logger:
            self._audit_logger.log_investment_updated(updated.id, changes)
        return True

    def delete(self, investment_id: UUID) -> Investment:
        """
        Cancel an unsold investment and return its cost to Cash.

        Posts: debit Cash / credit Investment Inventory, for the cost.

        Raises:
            InvestmentNotFoundError, InvestmentAlreadySoldError
        """
        investment = self.get(investment_id)
        if investment.sold:
            raise InvestmentAlreadySoldError(investment.name)

        cash = self._registry.get_by_name(self._settings.cash_account)
        inventory = self._registry.ensure_account(
            self._settings.inventory_account, AccountType.ASSET
        )
        transaction = self._ledger.record(
            date.today(),
            f"Investment cancelled: {investment.name}",
            [
                TransactionLine.debit_line(cash.id, investment.cost),
                TransactionLine.credit_line(inventory.id, investment.cost),
            ],
        )
        del self._investments[investment.id]

        if self._replicator:
            self._replicator.delete(EntityKind.INVESTMENTS, investment.id)
        if self._audit_logger:
            self._audit_logger.log_investment_deleted(investment.id, investment.name, transaction.id)
        return investment

    def sell(
        self,
        investment_id: UUID,
        destination_account_id: UUID,
        sale_date: Optional[date] = None,
    ) -> Investment:
        """
        Sell an investment at cost plus its estimated gain.

        The estimated gain becomes the realized gain and can no longer
        change. Posts: debit destination (total) / credit Investment
        Inventory (cost) / credit Investment Gains (gain).

        Raises:
            InvestmentNotFoundError, InvestmentAlreadySoldError,
            AccountNotFoundError, InvalidDestinationAccountError,
            plus any ledger error (after the sale has been undone)
        """
        investment = self.get(investment_id)
        if investment.sold:
            raise InvestmentAlreadySoldError(investment.name)

        destination = self._policy.destination_account(destination_account_id)
        sale_date = sale_date or date.today()

        investment.realized_gain = investment.estimated_gain
        investment.sold = True
        investment.sale_date = sale_date

        try:
            inventory = self._registry.ensure_account(
                self._settings.inventory_account, AccountType.ASSET
            )
            gains = self._registry.ensure_account(
                self._settings.investment_gains_account, AccountType.INCOME
            )
            transaction = self._ledger.record(
                sale_date,
                f"Investment sold: {investment.name}",
                [
                    TransactionLine.debit_line(destination.id, investment.total),
                    TransactionLine.credit_line(inventory.id, investment.cost),
                    TransactionLine.credit_line(gains.id, investment.realized_gain),
                ],
            )
        except LedgerError:
            investment.realized_gain = ZERO
            investment.sold = False
            investment.sale_date = None
            raise

        investment.sale_transaction_id = transaction.id

        if self._replicator:
            self._replicator.update(
                EntityKind.INVESTMENTS,
                investment.id,
                {
                    "realized_gain": str(investment.realized_gain),
                    "sold": True,
                    "sale_date": sale_date.isoformat(),
                    "sale_transaction_id": str(transaction.id),
                },
            )
        if self._audit_logger:
            self._audit_logger.log_investment_sold(
                investment_id=investment.id,
                name=investment.name,
                total=str(investment.total),
                realized_gain=str(investment.realized_gain),
                transaction_id=transaction.id,
            )
        return investment

    def replace_snapshot(self, investments: list[Investment]) -> None:
        self._investments = {investment.id: investment for investment in investments}

    def _post_cost_adjustment(self, investment: Investment, difference: Decimal) -> None:
        cash = self._registry.get_by_name(self._settings.cash_account)
        inventory = self._registry.ensure_account(
            self._settings.inventory_account, AccountType.ASSET
        )
        amount = abs(difference)
        if difference > ZERO:
            lines = [
                TransactionLine.debit_line(inventory.id, amount),
                TransactionLine.credit_line(cash.id, amount),
            ]
        else:
            lines = [
                TransactionLine.debit_line(cash.id, amount),
                TransactionLine.credit_line(inventory.id, amount),
            ]
        self._ledger.record(date.today(), f"Cost adjustment: {investment.name}", lines)
