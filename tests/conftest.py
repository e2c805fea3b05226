"""
Shared fixtures.

No test talks to Google: the in-memory store stands in for the remote
backend, and the Sheets adapter is exercised against fake worksheets.
"""

import asyncio

import pytest

from src.audit import AuditLogger
from src.config import LedgerSettings
from src.ledger import (
    AccountRegistry,
    CreditManager,
    InvestmentManager,
    PeriodClosingEngine,
    TransactionLedger,
    bootstrap_default_accounts,
    default_accounts,
)
from src.orchestrator import FinanceService
from src.services.storage import InMemoryLedgerStore


@pytest.fixture
def ledger_settings():
    return LedgerSettings()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def registry(audit_logger):
    """Registry holding the default chart of accounts."""
    registry = AccountRegistry(audit_logger=audit_logger)
    registry.replace_snapshot(default_accounts(LedgerSettings()))
    return registry


@pytest.fixture
def ledger(registry, ledger_settings, audit_logger):
    return TransactionLedger(registry, ledger_settings, audit_logger=audit_logger)


@pytest.fixture
def credit_manager(registry, ledger, ledger_settings, audit_logger):
    return CreditManager(registry, ledger, ledger_settings, audit_logger=audit_logger)


@pytest.fixture
def investment_manager(registry, ledger, ledger_settings, audit_logger):
    return InvestmentManager(registry, ledger, ledger_settings, audit_logger=audit_logger)


@pytest.fixture
def closing_engine(registry, ledger, ledger_settings, audit_logger):
    return PeriodClosingEngine(registry, ledger, ledger_settings, audit_logger=audit_logger)


@pytest.fixture
def service(ledger_settings, audit_logger):
    """Offline FinanceService with the default chart."""
    service = FinanceService(settings=ledger_settings, audit_logger=audit_logger)
    service.load_default_accounts()
    return service


@pytest.fixture
def store():
    return InMemoryLedgerStore()


@pytest.fixture
def connected_service(store, ledger_settings, audit_logger):
    """FinanceService replicating to a seeded in-memory store."""
    asyncio.run(bootstrap_default_accounts(store, ledger_settings, audit_logger))
    service = FinanceService(
        store=store,
        settings=ledger_settings,
        audit_logger=audit_logger,
        drain_timeout_seconds=5,
    )
    service.connect()
    yield service
    service.close()


def _find(source, name: str):
    finder = getattr(source, "find_account_by_name", None) or source.find_by_name
    return finder(name)


@pytest.fixture
def account_id():
    """account_id(source, name): id of a named account on a registry or service."""
    def id_of(source, name: str):
        return _find(source, name).id
    return id_of
