"""
Main Orchestrator for the Ledger

This module ties together all the components behind a single
FinanceService, constructed once per session and passed to whatever
layer needs it.

DESIGN DECISION: The service enforces the boundaries:
- Every operation returns an OperationResult; business-rule violations
  never escape as exceptions
- Local state changes synchronously; the remote store is written in the
  background and never awaited
- Every rejection is audited

Snapshots pushed by the store replace the local collections wholesale
(last write wins). A snapshot read from the store before every local
write had finished is skipped, since it predates them.
"""

import asyncio
import threading
from datetime import date
from decimal import InvalidOperation
from typing import Any, Callable, Iterable, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, ValidationError

from src.audit import AuditLogger
from src.config import LedgerSettings, Settings, get_settings
from src.ledger import (
    AccountRegistry,
    CreditManager,
    InvestmentManager,
    LedgerError,
    PeriodClosingEngine,
    TransactionLedger,
    bootstrap_default_accounts,
    default_accounts,
)
from src.ledger.errors import AccountInUseError
from src.models.account import Account, AccountType
from src.models.closure import AccountingClosure
from src.models.common import MoneyInput
from src.models.credit import Credit
from src.models.investment import Investment
from src.models.results import LedgerErrorCode, OperationResult
from src.models.transaction import LedgerValidation, Transaction, TransactionLine
from src.queries import (
    BalanceDrift,
    FinanceSummary,
    TrialBalance,
    find_balance_drift,
    summarize,
    trial_balance,
)
from src.services.replication import Replicator
from src.services.storage import (
    EntityKind,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    LedgerStoreInterface,
    Record,
    StorageError,
)

logger = structlog.get_logger(__name__)

LineInput = Union[TransactionLine, dict]

# Bad input surfaces as one of these before any money moves
_INVALID_INPUT_ERRORS = (ValidationError, ValueError, InvalidOperation)


class FinanceService:
    """
    The ledger engine as one service object.

    Owns the account registry, the transaction ledger, the credit and
    investment managers and the period closing engine. When a store is
    given, local changes are replicated to it and its snapshots are
    mirrored back after connect().
    """

    def __init__(
        self,
        store: Optional[LedgerStoreInterface] = None,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        drain_timeout_seconds: Optional[float] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._audit_logger = audit_logger or AuditLogger()
        self._store = store
        self._replicator = Replicator(store, self._audit_logger) if store else None
        self._drain_timeout = drain_timeout_seconds

        self._registry = AccountRegistry(self._replicator, self._audit_logger)
        self._ledger = TransactionLedger(
            self._registry, self._settings, self._replicator, self._audit_logger
        )
        self._credits = CreditManager(
            self._registry, self._ledger, self._settings, self._replicator, self._audit_logger
        )
        self._investments = InvestmentManager(
            self._registry, self._ledger, self._settings, self._replicator, self._audit_logger
        )
        self._closing = PeriodClosingEngine(
            self._registry, self._ledger, self._settings, self._replicator, self._audit_logger
        )

        # Single logical writer: operations and snapshots never interleave
        self._lock = threading.RLock()
        self._unsubscribes: list[Callable[[], None]] = []

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def replicator(self) -> Optional[Replicator]:
        return self._replicator

    @property
    def is_connected(self) -> bool:
        return bool(self._unsubscribes)

    def connect(self) -> None:
        """
        Subscribe to every collection of the store.

        Each subscription delivers the current collection right away,
        so the local mirror is populated when this returns.
        """
        if self._store is None:
            raise StorageError("FinanceService has no ledger store to connect to")
        if self._unsubscribes:
            return

        for kind in EntityKind:
            self._unsubscribes.append(
                self._store.subscribe(
                    kind,
                    self._snapshot_handler(kind),
                    read_marker=self._replicator.read_marker,
                )
            )
        logger.info("finance_service_connected", kinds=[kind.value for kind in EntityKind])

    def disconnect(self) -> None:
        while self._unsubscribes:
            unsubscribe = self._unsubscribes.pop()
            unsubscribe()

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for background writes. True when nothing is pending."""
        if self._replicator is None:
            return True
        return self._replicator.drain(timeout if timeout is not None else self._drain_timeout)

    def close(self) -> None:
        """Stop listening, flush pending writes and stop replication."""
        self.disconnect()
        if self._replicator:
            self._replicator.close(self._drain_timeout)
        if self._store is not None:
            self._store.close()

    def __enter__(self) -> "FinanceService":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def load_default_accounts(self) -> bool:
        """
        Start an empty, store-less session with the default chart.

        Returns:
            True if the accounts were loaded
        """
        with self._lock:
            if self._registry.accounts:
                return False
            accounts = default_accounts(self._settings)
            self._registry.replace_snapshot(accounts)
        self._audit_logger.log_accounts_seeded([account.name for account in accounts])
        return True

    # =========================================================================
    # READ VIEWS - Derived, never mutate
    # =========================================================================

    @property
    def accounts(self) -> list[Account]:
        return self._registry.accounts

    @property
    def transactions(self) -> list[Transaction]:
        return self._ledger.transactions

    def recent_transactions(self, limit: Optional[int] = None) -> list[Transaction]:
        return self._ledger.recent(limit)

    @property
    def credits(self) -> list[Credit]:
        return self._credits.credits

    @property
    def investments(self) -> list[Investment]:
        return self._investments.investments

    @property
    def closures(self) -> list[AccountingClosure]:
        return self._closing.closures

    def find_account_by_id(self, account_id: UUID) -> Optional[Account]:
        return self._registry.find_by_id(account_id)

    def find_account_by_name(self, name: str) -> Optional[Account]:
        return self._registry.find_by_name(name)

    def find_credit(self, credit_id: UUID) -> Optional[Credit]:
        return self._credits.find_by_id(credit_id)

    def find_investment(self, investment_id: UUID) -> Optional[Investment]:
        return self._investments.find_by_id(investment_id)

    def is_period_closed(self, month: int, year: int) -> bool:
        return self._closing.is_closed(month, year)

    def summary(self) -> FinanceSummary:
        return summarize(self.credits, self.investments, self.accounts, self._settings)

    def trial_balance(self) -> TrialBalance:
        return trial_balance(self.accounts)

    def balance_drift(self) -> list[BalanceDrift]:
        return find_balance_drift(self.accounts, self.transactions)

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def create_account(
        self,
        name: str,
        account_type: Union[AccountType, str],
        initial_balance: MoneyInput = 0,
    ) -> OperationResult:
        return self._run(
            "create_account",
            lambda: self._registry.create_account(name, AccountType(account_type), initial_balance),
            "Account created",
        )

    def update_account(
        self,
        account_id: UUID,
        name: Optional[str] = None,
        account_type: Optional[Union[AccountType, str]] = None,
        balance: Optional[MoneyInput] = None,
    ) -> OperationResult:
        """
        Rename, retype or (as an administrative correction) rebalance an account.

        The type of an account referenced by recorded transactions is
        fixed: its balance was built under the current normal-balance rule.
        """
        def update() -> Account:
            account = self._registry.get(account_id)
            new_type = AccountType(account_type) if account_type is not None else None
            if (
                new_type is not None
                and new_type != account.account_type
                and self._ledger.references_account(account.id)
            ):
                raise AccountInUseError(account.name)
            return self._registry.update_account(
                account.id, name=name, account_type=new_type, balance=balance
            )

        return self._run("update_account", update, "Account updated")

    def delete_account(self, account_id: UUID) -> OperationResult:
        def delete() -> Account:
            account = self._registry.get(account_id)
            if self._ledger.references_account(account.id):
                raise AccountInUseError(account.name)
            return self._registry.delete_account(account.id)

        return self._run("delete_account", delete, "Account deleted")

    # =========================================================================
    # LEDGER
    # =========================================================================

    def validate_transaction(self, lines: Iterable[LineInput]) -> LedgerValidation:
        return self._ledger.validate(lines)

    def record_transaction(
        self,
        transaction_date: date,
        description: str,
        lines: Iterable[LineInput],
    ) -> OperationResult:
        return self._run(
            "record_transaction",
            lambda: self._ledger.record(transaction_date, description, lines),
            "Transaction recorded",
        )

    # =========================================================================
    # CREDITS
    # =========================================================================

    def grant_credit(
        self,
        client_name: str,
        principal: MoneyInput,
        interest_rate: MoneyInput,
        start_date: date,
        end_date: date,
        source_account_id: UUID,
    ) -> OperationResult:
        return self._run(
            "grant_credit",
            lambda: self._credits.grant_credit(
                client_name, principal, interest_rate, start_date, end_date, source_account_id
            ),
            "Credit granted",
        )

    def record_payment(
        self,
        credit_id: UUID,
        amount: MoneyInput,
        payment_date: date,
        note: str,
        account_id: UUID,
    ) -> OperationResult:
        return self._run(
            "record_payment",
            lambda: self._credits.record_payment(credit_id, amount, payment_date, note, account_id),
            "Payment recorded",
        )

    def update_credit(
        self,
        credit_id: UUID,
        client_name: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> OperationResult:
        return self._run(
            "update_credit",
            lambda: self._credits.update_credit(credit_id, client_name, start_date, end_date),
            "Credit updated",
        )

    def delete_credit(self, credit_id: UUID) -> OperationResult:
        return self._run(
            "delete_credit",
            lambda: self._credits.delete_credit(credit_id),
            "Credit deleted",
        )

    def can_close_credit(self, credit_id: UUID) -> OperationResult:
        """value is True when the credit is settled; message says why."""
        with self._lock:
            try:
                can_close, reason = self._credits.can_close(credit_id)
            except LedgerError as e:
                return self._rejected("can_close_credit", e.code, e.message)
        return OperationResult.ok(can_close, reason)

    # =========================================================================
    # INVESTMENTS
    # =========================================================================

    def purchase_investment(
        self,
        name: str,
        description: str,
        cost: MoneyInput,
        estimated_gain: MoneyInput,
        source_account_id: UUID,
    ) -> OperationResult:
        return self._run(
            "purchase_investment",
            lambda: self._investments.purchase(
                name, description, cost, estimated_gain, source_account_id
            ),
            "Investment purchased",
        )

    def update_investment(
        self,
        investment_id: UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
        cost: Optional[MoneyInput] = None,
        estimated_gain: Optional[MoneyInput] = None,
    ) -> OperationResult:
        """
        Edit an investment.

        Succeeds with value False (nothing changed) when it has been sold.
        """
        result = self._run(
            "update_investment",
            lambda: self._investments.update(investment_id, name, description, cost, estimated_gain),
        )
        if result.success and result.value is False:
            return OperationResult.ok(False, "Investment is sold; nothing changed")
        return result

    def delete_investment(self, investment_id: UUID) -> OperationResult:
        return self._run(
            "delete_investment",
            lambda: self._investments.delete(investment_id),
            "Investment deleted",
        )

    def sell_investment(
        self,
        investment_id: UUID,
        destination_account_id: UUID,
        sale_date: Optional[date] = None,
    ) -> OperationResult:
        return self._run(
            "sell_investment",
            lambda: self._investments.sell(investment_id, destination_account_id, sale_date),
            "Investment sold",
        )

    # =========================================================================
    # PERIOD CLOSE
    # =========================================================================

    def close_period(self, month: int, year: int) -> OperationResult:
        return self._run(
            "close_period",
            lambda: self._closing.close(month, year),
            f"Period {year}-{month:02d} closed" if 1 <= month <= 12 else "Period closed",
        )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _run(
        self,
        operation: str,
        action: Callable[[], Any],
        message: str = "OK",
    ) -> OperationResult:
        with self._lock:
            try:
                value = action()
            except LedgerError as e:
                return self._rejected(operation, e.code, e.message)
            except _INVALID_INPUT_ERRORS as e:
                return self._rejected(operation, LedgerErrorCode.INVALID_INPUT, _describe(e))
        return OperationResult.ok(value, message)

    def _rejected(
        self,
        operation: str,
        code: LedgerErrorCode,
        message: str,
    ) -> OperationResult:
        self._audit_logger.log_operation_rejected(operation, code.value, message)
        return OperationResult.fail(code, message)

    def _snapshot_handler(self, kind: EntityKind) -> Callable[..., None]:
        def on_snapshot(records: list[Record], marker: Optional[int] = None) -> None:
            self._apply_snapshot(kind, records, marker)
        return on_snapshot

    def _apply_snapshot(
        self,
        kind: EntityKind,
        records: list[Record],
        marker: Optional[int] = None,
    ) -> None:
        model, replace = self._snapshot_targets()[kind]
        with self._lock:
            if self._replicator and not self._replicator.is_settled(marker):
                logger.debug(
                    "snapshot_skipped",
                    kind=kind.value,
                    reason="read before local writes finished",
                )
                return

            items: list[BaseModel] = []
            for record in records:
                try:
                    item = model.model_validate(record)
                except ValidationError as e:
                    logger.warning(
                        "snapshot_record_invalid",
                        kind=kind.value,
                        external_id=record.get("external_id"),
                        error=str(e),
                    )
                    continue
                items.append(item)
                if self._replicator and item.external_id:
                    self._replicator.remember(kind, item.id, item.external_id)

            replace(items)
        self._audit_logger.log_snapshot_applied(kind.value, len(items))

    def _snapshot_targets(self) -> dict[EntityKind, tuple[type[BaseModel], Callable[[list], None]]]:
        return {
            EntityKind.ACCOUNTS: (Account, self._registry.replace_snapshot),
            EntityKind.TRANSACTIONS: (Transaction, self._ledger.replace_snapshot),
            EntityKind.CREDITS: (Credit, self._credits.replace_snapshot),
            EntityKind.INVESTMENTS: (Investment, self._investments.replace_snapshot),
            EntityKind.CLOSURES: (AccountingClosure, self._closing.replace_snapshot),
        }


def _describe(error: Exception) -> str:
    """Readable message for an input error."""
    if isinstance(error, ValidationError):
        parts = []
        for detail in error.errors():
            location = ".".join(str(part) for part in detail.get("loc", ()))
            parts.append(f"{location}: {detail['msg']}" if location else detail["msg"])
        return "; ".join(parts)
    if isinstance(error, InvalidOperation):
        return "Invalid amount"
    return str(error)


def create_finance_service(
    use_storage: bool = True,
    store: Optional[LedgerStoreInterface] = None,
    settings: Optional[Settings] = None,
) -> FinanceService:
    """
    Factory function to create the application's FinanceService.

    Args:
        use_storage: Whether to connect to Google Sheets when no store is given.
                    Set to False to run offline with the default chart.
        store: An already-built ledger store (e.g. InMemoryLedgerStore)

    Returns:
        A connected FinanceService, or an offline one if storage is unavailable
    """
    settings = settings or get_settings()
    app_settings = settings.app
    audit_logger = AuditLogger()

    if store is None and use_storage:
        try:
            store = GoogleSheetsLedgerStore(GoogleSheetsClient())
        except (ValidationError, StorageError) as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            store = None

    if store is not None and app_settings.seed_default_accounts:
        try:
            asyncio.run(bootstrap_default_accounts(store, settings.ledger, audit_logger))
        except StorageError as e:
            logger.warning("seed_failed", error=str(e))
            store = None

    service = FinanceService(
        store=store,
        settings=settings.ledger,
        audit_logger=audit_logger,
        drain_timeout_seconds=app_settings.replication_drain_timeout_seconds,
    )
    if store is not None:
        service.connect()
    elif app_settings.seed_default_accounts:
        service.load_default_accounts()
    return service
