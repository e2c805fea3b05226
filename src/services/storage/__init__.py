"""
Storage Services Package

Provides the abstract ledger store interface and its implementations.
Google Sheets is the remote backend; the in-memory store serves tests
and offline use.
"""

from src.services.storage.interface import (
    ConnectionError,
    EntityKind,
    LedgerStoreInterface,
    NotFoundError,
    Record,
    StorageError,
)
from src.services.storage.memory import InMemoryLedgerStore
from src.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
)

__all__ = [
    # Interface
    "EntityKind",
    "LedgerStoreInterface",
    "Record",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "InMemoryLedgerStore",
]
