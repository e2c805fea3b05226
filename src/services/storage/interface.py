"""
Abstract Ledger Store Interface

DESIGN DECISION: The ledger engine never talks to a database directly.
It keeps an in-memory mirror of every collection and talks to a
"ledger store" through this interface. This allows us to:
1. Swap Google Sheets for a document database later
2. Use in-memory storage for testing
3. Keep accounting rules decoupled from transport

Records cross this boundary as plain JSON-compatible dicts.
Snapshot records carry the store's own identifier under 'external_id'.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

Record = dict[str, Any]
SnapshotCallback = Callable[..., None]
ReadMarker = Callable[[], Any]
Unsubscribe = Callable[[], None]


class EntityKind(str, Enum):
    """Collections held by the ledger store."""
    ACCOUNTS = "accounts"
    CREDITS = "credits"
    INVESTMENTS = "investments"
    TRANSACTIONS = "transactions"
    CLOSURES = "closures"


class LedgerStoreInterface(ABC):
    """
    Abstract interface for ledger persistence.

    Any storage implementation (Google Sheets, Firestore, etc.)
    must implement these methods.
    """

    @abstractmethod
    def subscribe(
        self,
        kind: EntityKind,
        on_snapshot: SnapshotCallback,
        read_marker: Optional[ReadMarker] = None,
    ) -> Unsubscribe:
        """
        Register for push notifications of a whole collection.

        The callback receives the full current collection once right
        away and again every time the collection changes.

        When read_marker is given it is called just before each read of
        the collection, and its result is passed to the callback as a
        second argument: on_snapshot(records, marker).

        Returns:
            A callable that cancels the subscription
        """
        pass

    @abstractmethod
    async def create(self, kind: EntityKind, record: Record) -> str:
        """
        Store a new record.

        Returns:
            The external identifier assigned by the store

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update(self, kind: EntityKind, external_id: str, partial: Record) -> None:
        """
        Merge fields into an existing record.

        Raises:
            NotFoundError: If the record doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, kind: EntityKind, external_id: str) -> None:
        """
        Delete a record.

        Raises:
            StorageError: If the delete fails
        """
        pass

    @abstractmethod
    async def list_all(self, kind: EntityKind) -> list[Record]:
        """
        Read the full collection.

        Used once at startup to decide whether to seed default accounts.
        """
        pass

    def close(self) -> None:
        """Release any background resources (watchers, connections)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class Subscription:
    """A subscriber's callback and optional read marker, as held by a store."""

    def __init__(self, on_snapshot: SnapshotCallback, read_marker: Optional[ReadMarker] = None):
        self.on_snapshot = on_snapshot
        self.read_marker = read_marker

    def mark(self) -> Any:
        """Call right before reading the collection."""
        return self.read_marker() if self.read_marker else None

    def deliver(self, records: list[Record], marker: Any = None) -> None:
        if self.read_marker is None:
            self.on_snapshot(records)
        else:
            self.on_snapshot(records, marker)
