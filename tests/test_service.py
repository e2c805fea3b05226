"""
Tests for the FinanceService boundary.

Business-rule failures come back as OperationResult values; the
remote store is written in the background and never rolls back local
state.
"""

import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

from src import orchestrator
from src.config import get_settings
from src.ledger import bootstrap_default_accounts
from src.models.account import AccountType
from src.models.audit import AuditEventType
from src.models.credit import CreditStatus
from src.models.results import LedgerErrorCode
from src.orchestrator import FinanceService, create_finance_service
from src.services.storage import EntityKind, InMemoryLedgerStore


class TestResults:
    """Tests for result values at the boundary."""

    def test_successful_operation_returns_value(self, service, account_id):
        """Test a granted credit is returned in the result."""
        result = service.grant_credit(
            "Ana", 200, 10, date(2024, 1, 1), date(2024, 6, 1), account_id(service, "Cash")
        )
        assert result.success is True
        assert result.value.total_due == Decimal("220.00")
        assert service.credits == [result.value]

    def test_business_rule_violation_is_a_result(self, service, account_id):
        """Test an invalid source fails without raising."""
        result = service.grant_credit(
            "Ana", 200, 10, date(2024, 1, 1), date(2024, 6, 1), account_id(service, "Capital")
        )
        assert result.success is False
        assert result.error == LedgerErrorCode.INVALID_SOURCE_ACCOUNT
        assert "Cash" in result.message

    def test_invalid_input_is_a_result(self, service, account_id):
        """Test pydantic validation errors map to INVALID_INPUT."""
        result = service.grant_credit(
            "Ana", -5, 10, date(2024, 1, 1), date(2024, 6, 1), account_id(service, "Cash")
        )
        assert result.error == LedgerErrorCode.INVALID_INPUT
        assert "principal" in result.message

    def test_bad_amount_text_is_invalid_input(self, service):
        """Test unparseable amounts map to INVALID_INPUT."""
        result = service.create_account("Savings", "asset", "lots")
        assert result.error == LedgerErrorCode.INVALID_INPUT

    def test_bad_account_type_is_invalid_input(self, service):
        """Test unknown account types map to INVALID_INPUT."""
        result = service.create_account("Savings", "equity")
        assert result.error == LedgerErrorCode.INVALID_INPUT

    def test_rejections_are_audited(self, service, audit_logger):
        """Test every rejection produces an operation_rejected event."""
        service.close_period(3, 2024)
        rejected = [
            e for e in audit_logger.history if e.event_type == AuditEventType.OPERATION_REJECTED
        ]
        assert len(rejected) == 1
        assert rejected[0].error_code == "nothing_to_close"
        assert rejected[0].details["operation"] == "close_period"

    def test_rejection_is_reported_once(self, service, audit_logger, monkeypatch):
        """Test a rejection is written by the audit logger only."""
        events = []

        class RecordingLogger:
            def __getattr__(self, level):
                return lambda event, **kw: events.append((level, event))

        monkeypatch.setattr(orchestrator, "logger", RecordingLogger())
        service.close_period(3, 2024)

        assert events == []
        assert [e.event_type for e in audit_logger.history].count(
            AuditEventType.OPERATION_REJECTED
        ) == 1

    def test_record_transaction_unbalanced(self, service, account_id):
        """Test an unbalanced manual entry fails with UNBALANCED."""
        result = service.record_transaction(
            date(2024, 3, 1),
            "Manual",
            [
                {"account_id": account_id(service, "Bank"), "debit": 10},
                {"account_id": account_id(service, "Cash"), "credit": 9},
            ],
        )
        assert result.error == LedgerErrorCode.UNBALANCED

    def test_validate_transaction(self, service, account_id):
        """Test validation without recording."""
        validation = service.validate_transaction([{"account_id": account_id(service, "Bank")}])
        assert validation.error == LedgerErrorCode.EMPTY_TRANSACTION
        assert service.transactions == []


class TestAccountsThroughService:
    """Tests for account operations on the service."""

    def test_create_and_find(self, service):
        """Test a new account can be found by name and id."""
        result = service.create_account("Savings", "asset", 10)
        assert result.success is True
        assert service.find_account_by_name("savings").id == result.value.id
        assert service.find_account_by_id(result.value.id).balance == Decimal("10.00")

    def test_duplicate_account(self, service):
        """Test duplicate names are rejected."""
        result = service.create_account("Cash", "asset")
        assert result.error == LedgerErrorCode.DUPLICATE_ACCOUNT

    def test_delete_account_in_use(self, service, account_id):
        """Test accounts referenced by the ledger cannot be deleted."""
        service.grant_credit(
            "Ana", 50, 0, date(2024, 1, 1), date(2024, 2, 1), account_id(service, "Cash")
        )
        result = service.delete_account(account_id(service, "Cash"))
        assert result.error == LedgerErrorCode.ACCOUNT_IN_USE
        assert service.find_account_by_name("Cash") is not None

    def test_delete_unused_account(self, service, account_id):
        """Test an untouched account can be deleted."""
        result = service.delete_account(account_id(service, "Accounts Payable"))
        assert result.success is True
        assert service.find_account_by_name("Accounts Payable") is None

    def test_delete_unknown_account(self, service):
        """Test deleting a missing account fails."""
        assert service.delete_account(uuid4()).error == LedgerErrorCode.ACCOUNT_NOT_FOUND

    def test_update_account_type(self, service, account_id):
        """Test an account can be retyped with a plain string."""
        result = service.update_account(account_id(service, "Accounts Payable"), account_type="expense")
        assert result.success is True
        assert result.value.account_type.value == "expense"

    def test_retype_account_with_history_rejected(self, service, account_id):
        """Test an account referenced by transactions keeps its type."""
        cash_id = account_id(service, "Cash")
        service.record_transaction(
            date(2024, 3, 1),
            "Supplies",
            [
                {"account_id": account_id(service, "Operating Expense"), "debit": 100},
                {"account_id": cash_id, "credit": 100},
            ],
        )
        result = service.update_account(cash_id, account_type="liability")

        assert result.error == LedgerErrorCode.ACCOUNT_IN_USE
        assert service.find_account_by_id(cash_id).account_type == AccountType.ASSET
        assert service.balance_drift() == []

    def test_rename_account_with_history(self, service, account_id):
        """Test an account in use can still be renamed under its own type."""
        cash_id = account_id(service, "Cash")
        service.purchase_investment("Phones", "", 100, 10, cash_id)
        result = service.update_account(cash_id, name="Wallet", account_type="asset")

        assert result.success is True
        assert service.find_account_by_name("Wallet").id == cash_id
        assert service.balance_drift() == []


class TestWorkflowsThroughService:
    """End-to-end flows on an offline service."""

    def test_credit_lifecycle(self, service, account_id):
        """Test grant, pay in full, then a rejected extra payment."""
        cash_id = account_id(service, "Cash")
        credit = service.grant_credit(
            "Ana", 200, 10, date(2024, 1, 1), date(2024, 6, 1), cash_id
        ).value

        paid = service.record_payment(credit.id, 220, date(2024, 2, 1), "all", cash_id)
        assert paid.success is True
        assert service.find_credit(credit.id).status == CreditStatus.COMPLETED

        again = service.record_payment(credit.id, 1, date(2024, 2, 2), "", cash_id)
        assert again.error == LedgerErrorCode.ALREADY_COMPLETED

        closable = service.can_close_credit(credit.id)
        assert closable.success is True
        assert closable.value is True

    def test_delete_credit_states(self, service, account_id):
        """Test only approved credits can be deleted."""
        cash_id = account_id(service, "Cash")
        credit = service.grant_credit("Ana", 100, 0, date(2024, 1, 1), date(2024, 6, 1), cash_id).value
        service.record_payment(credit.id, 10, date(2024, 2, 1), "", cash_id)
        assert service.delete_credit(credit.id).error == LedgerErrorCode.CREDIT_NOT_DELETABLE

        other = service.grant_credit("Luis", 100, 0, date(2024, 1, 1), date(2024, 6, 1), cash_id).value
        assert service.delete_credit(other.id).success is True

    def test_update_credit(self, service, account_id):
        """Test descriptive edits go through the service."""
        cash_id = account_id(service, "Cash")
        credit = service.grant_credit("Ana", 100, 0, date(2024, 1, 1), date(2024, 6, 1), cash_id).value
        result = service.update_credit(credit.id, client_name="Ana B.")
        assert result.value.client_name == "Ana B."
        bad = service.update_credit(credit.id, end_date=date(2023, 1, 1))
        assert bad.error == LedgerErrorCode.INVALID_INPUT

    def test_can_close_unknown_credit(self, service):
        """Test can_close on a missing credit fails as a result."""
        assert service.can_close_credit(uuid4()).error == LedgerErrorCode.CREDIT_NOT_FOUND

    def test_investment_lifecycle(self, service, account_id):
        """Test purchase, sale, then rejected edits and deletion."""
        cash_id = account_id(service, "Cash")
        investment = service.purchase_investment("Phones", "", 100, 10, cash_id).value

        sold = service.sell_investment(investment.id, cash_id)
        assert sold.success is True
        assert sold.value.realized_gain == Decimal("10.00")

        assert service.sell_investment(investment.id, cash_id).error == LedgerErrorCode.ALREADY_SOLD
        assert service.delete_investment(investment.id).error == LedgerErrorCode.ALREADY_SOLD

        edit = service.update_investment(investment.id, name="Other")
        assert edit.success is True
        assert edit.value is False

    def test_sell_to_invalid_destination(self, service, account_id):
        """Test sale proceeds must go to Cash or Bank."""
        cash_id = account_id(service, "Cash")
        investment = service.purchase_investment("Phones", "", 100, 10, cash_id).value
        result = service.sell_investment(investment.id, account_id(service, "Receivable"))
        assert result.error == LedgerErrorCode.INVALID_DESTINATION_ACCOUNT
        assert service.find_investment(investment.id).sold is False

    def test_close_period_twice(self, service, account_id):
        """Test the second close of a month fails with ALREADY_CLOSED."""
        cash_id = account_id(service, "Cash")
        credit = service.grant_credit("Ana", 200, 10, date(2024, 3, 1), date(2024, 4, 1), cash_id).value
        service.record_payment(credit.id, 220, date(2024, 3, 20), "", cash_id)

        first = service.close_period(3, 2024)
        assert first.success is True
        assert first.value.net_income == Decimal("20.00")
        assert service.is_period_closed(3, 2024) is True

        second = service.close_period(3, 2024)
        assert second.error == LedgerErrorCode.ALREADY_CLOSED

    def test_invalid_period(self, service):
        """Test month 13 fails with INVALID_PERIOD."""
        assert service.close_period(13, 2024).error == LedgerErrorCode.INVALID_PERIOD

    def test_read_views(self, service, account_id):
        """Test summary, recent transactions and closures reflect activity."""
        cash_id = account_id(service, "Cash")
        service.grant_credit("Ana", 200, 10, date(2024, 3, 1), date(2024, 4, 1), cash_id)
        service.purchase_investment("Phones", "", 100, 10, cash_id)

        summary = service.summary()
        assert summary.credit_count == 1
        assert summary.total_pending == Decimal("220.00")
        assert summary.cash_position == Decimal("100.00")

        assert len(service.recent_transactions()) == 2
        assert len(service.recent_transactions(limit=1)) == 1
        assert service.closures == []

    def test_ledger_replays_after_workflow(self, service, account_id):
        """Test no account drifts from its ledger history."""
        cash_id = account_id(service, "Cash")
        credit = service.grant_credit("Ana", 200, 10, date(2024, 3, 1), date(2024, 4, 1), cash_id).value
        service.record_payment(credit.id, 73, date(2024, 3, 10), "", cash_id)
        investment = service.purchase_investment("Phones", "", 100, 10, cash_id).value
        service.update_investment(investment.id, cost=80)
        service.sell_investment(investment.id, cash_id)
        service.close_period(3, 2024)

        assert service.balance_drift() == []
        assert service.trial_balance().difference == Decimal("0")


class TestReplication:
    """Tests for background replication to the store."""

    def test_seeding_happens_once(self, store, ledger_settings):
        """Test the nine default accounts are seeded only into an empty store."""
        assert asyncio.run(bootstrap_default_accounts(store, ledger_settings)) is True
        assert asyncio.run(bootstrap_default_accounts(store, ledger_settings)) is False
        assert len(store.snapshot(EntityKind.ACCOUNTS)) == 9

    def test_connect_loads_store_contents(self, connected_service):
        """Test subscribing populates the local mirror."""
        assert len(connected_service.accounts) == 9
        assert connected_service.find_account_by_name("Cash").external_id is not None

    def test_operations_are_mirrored_to_store(self, connected_service, store, account_id):
        """Test local changes reach the store after drain."""
        cash_id = account_id(connected_service, "Cash")
        credit = connected_service.grant_credit(
            "Ana", 200, 10, date(2024, 1, 1), date(2024, 6, 1), cash_id
        ).value
        connected_service.record_payment(credit.id, 110, date(2024, 2, 1), "", cash_id)
        assert connected_service.drain(5) is True

        credits = store.snapshot(EntityKind.CREDITS)
        assert len(credits) == 1
        assert credits[0]["status"] == "in_progress"
        assert credits[0]["paid"] == "110.00"
        assert len(store.snapshot(EntityKind.TRANSACTIONS)) == 2

        cash_record = next(r for r in store.snapshot(EntityKind.ACCOUNTS) if r["name"] == "Cash")
        assert Decimal(cash_record["balance"]) == Decimal("310.00")
        assert connected_service.find_account_by_name("Cash").balance == Decimal("310.00")

    def test_deletes_are_mirrored(self, connected_service, store, account_id):
        """Test a deleted credit disappears from the store."""
        cash_id = account_id(connected_service, "Cash")
        credit = connected_service.grant_credit(
            "Ana", 50, 0, date(2024, 1, 1), date(2024, 6, 1), cash_id
        ).value
        connected_service.drain(5)
        connected_service.delete_credit(credit.id)
        assert connected_service.drain(5) is True
        assert store.snapshot(EntityKind.CREDITS) == []

    def test_store_failure_keeps_local_state(self, connected_service, store, audit_logger, account_id):
        """Test a failed remote write is logged and nothing is rolled back."""
        store.fail_writes()
        cash_id = account_id(connected_service, "Cash")
        result = connected_service.purchase_investment("Phones", "", 100, 10, cash_id)

        assert result.success is True
        assert connected_service.drain(5) is True
        assert connected_service.find_account_by_name("Cash").balance == Decimal("300.00")
        assert len(connected_service.investments) == 1
        assert store.snapshot(EntityKind.INVESTMENTS) == []

        failures = [
            e for e in audit_logger.history if e.event_type == AuditEventType.REPLICATION_FAILED
        ]
        assert failures
        assert {e.entity_type for e in failures} >= {"investments", "transactions"}

    def test_snapshot_replaces_local_collection(self, connected_service, store):
        """Test a remote change replaces the local mirror wholesale."""
        remote = store.snapshot(EntityKind.ACCOUNTS)[0]
        asyncio.run(store.delete(EntityKind.ACCOUNTS, remote["external_id"]))

        assert len(connected_service.accounts) == 8
        assert connected_service.find_account_by_name(remote["name"]) is None

    def test_disconnect_stops_snapshots(self, connected_service, store):
        """Test no snapshot is applied after disconnect."""
        connected_service.disconnect()
        remote = store.snapshot(EntityKind.ACCOUNTS)[0]
        asyncio.run(store.delete(EntityKind.ACCOUNTS, remote["external_id"]))
        assert len(connected_service.accounts) == 9

    def test_second_session_sees_first_sessions_books(self, store, ledger_settings, account_id):
        """Test a new service rebuilds the books from the store."""
        asyncio.run(bootstrap_default_accounts(store, ledger_settings))
        with FinanceService(store=store, settings=ledger_settings, drain_timeout_seconds=5) as first:
            first.connect()
            cash_id = account_id(first, "Cash")
            first.purchase_investment("Phones", "", 100, 10, cash_id)
            first.drain(5)

        second = FinanceService(store=store, settings=ledger_settings, drain_timeout_seconds=5)
        try:
            second.connect()
            assert len(second.investments) == 1
            assert len(second.transactions) == 1
            assert second.find_account_by_name("Cash").balance == Decimal("300.00")
            assert second.balance_drift() == []
        finally:
            second.close()

    def test_snapshot_read_before_a_write_is_ignored(self, ledger_settings, account_id):
        """Test a snapshot read before an operation does not revert it."""

        class HoldingStore(InMemoryLedgerStore):
            """Keeps each subscriber so a test can deliver an old snapshot."""

            def __init__(self):
                super().__init__()
                self.subscribers = {}

            def subscribe(self, kind, on_snapshot, read_marker=None):
                self.subscribers[kind] = (on_snapshot, read_marker)
                return super().subscribe(kind, on_snapshot, read_marker=read_marker)

        store = HoldingStore()
        asyncio.run(bootstrap_default_accounts(store, ledger_settings))
        service = FinanceService(store=store, settings=ledger_settings, drain_timeout_seconds=5)
        try:
            service.connect()
            on_snapshot, read_marker = store.subscribers[EntityKind.ACCOUNTS]
            marker = read_marker()
            stale = store.snapshot(EntityKind.ACCOUNTS)

            bank_id = account_id(service, "Bank")
            cash_id = account_id(service, "Cash")

            def move(amount):
                return service.record_transaction(
                    date(2024, 3, 1),
                    "Deposit",
                    [
                        {"account_id": bank_id, "debit": amount},
                        {"account_id": cash_id, "credit": amount},
                    ],
                )

            assert move(100).success is True
            assert service.drain(5) is True
            on_snapshot(stale, marker)
            assert service.find_account_by_id(cash_id).balance == Decimal("300.00")

            assert move(10).success is True
            assert service.drain(5) is True
            cash_record = next(r for r in store.snapshot(EntityKind.ACCOUNTS) if r["name"] == "Cash")
            assert Decimal(cash_record["balance"]) == Decimal("290.00")
            assert service.balance_drift() == []
        finally:
            service.close()


class TestFactory:
    """Tests for create_finance_service."""

    def test_offline_service_has_default_chart(self):
        """Test an offline service starts with the nine default accounts."""
        service = create_finance_service(use_storage=False)
        assert len(service.accounts) == 9
        assert service.replicator is None

    def test_with_in_memory_store(self):
        """Test the factory seeds and connects a given store."""
        store = InMemoryLedgerStore()
        service = create_finance_service(store=store)
        try:
            assert service.is_connected is True
            assert len(service.accounts) == 9
            assert len(store.snapshot(EntityKind.ACCOUNTS)) == 9
        finally:
            service.close()

    def test_unconfigured_sheets_falls_back_offline(self, monkeypatch):
        """Test missing Google Sheets settings leave the service offline."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        get_settings.cache_clear()
        try:
            service = create_finance_service(use_storage=True)
        finally:
            get_settings.cache_clear()
        assert service.replicator is None
        assert len(service.accounts) == 9
