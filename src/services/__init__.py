"""Services package."""

from src.services.replication import Replicator
from src.services.storage import (
    ConnectionError,
    EntityKind,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryLedgerStore,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Replication
    "Replicator",
    # Storage services
    "ConnectionError",
    "EntityKind",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "InMemoryLedgerStore",
    "LedgerStoreInterface",
    "NotFoundError",
    "StorageError",
]
