"""
In-Memory Ledger Store

A dict-backed store with push notifications. Used by the test suite
and for running the ledger without any remote backend.

Subscribers are notified synchronously after every successful write,
in the thread that performed the write.
"""

import copy
import threading
from collections import defaultdict
from typing import Optional
from uuid import uuid4

from src.services.storage.interface import (
    EntityKind,
    LedgerStoreInterface,
    NotFoundError,
    ReadMarker,
    Record,
    SnapshotCallback,
    StorageError,
    Subscription,
    Unsubscribe,
)


class InMemoryLedgerStore(LedgerStoreInterface):
    """Ledger store held entirely in process memory."""

    def __init__(self):
        # kind -> external_id -> record (insertion ordered)
        self._collections: dict[EntityKind, dict[str, Record]] = defaultdict(dict)
        self._subscribers: dict[EntityKind, list[Subscription]] = defaultdict(list)
        self._lock = threading.RLock()
        self._failing = False

    def fail_writes(self, failing: bool = True) -> None:
        """Make every subsequent write raise StorageError (for testing outages)."""
        self._failing = failing

    def snapshot(self, kind: EntityKind) -> list[Record]:
        """Current collection, each record tagged with its external_id."""
        with self._lock:
            return [
                {**copy.deepcopy(record), "external_id": external_id}
                for external_id, record in self._collections[kind].items()
            ]

    def subscribe(
        self,
        kind: EntityKind,
        on_snapshot: SnapshotCallback,
        read_marker: Optional[ReadMarker] = None,
    ) -> Unsubscribe:
        subscription = Subscription(on_snapshot, read_marker)
        with self._lock:
            self._subscribers[kind].append(subscription)
        self._deliver(kind, subscription)

        def unsubscribe() -> None:
            with self._lock:
                if subscription in self._subscribers[kind]:
                    self._subscribers[kind].remove(subscription)

        return unsubscribe

    async def create(self, kind: EntityKind, record: Record) -> str:
        self._check_available()
        external_id = uuid4().hex
        with self._lock:
            self._collections[kind][external_id] = copy.deepcopy(record)
        self._notify(kind)
        return external_id

    async def update(self, kind: EntityKind, external_id: str, partial: Record) -> None:
        self._check_available()
        with self._lock:
            if external_id not in self._collections[kind]:
                raise NotFoundError(f"{kind.value} record not found: {external_id}")
            self._collections[kind][external_id].update(copy.deepcopy(partial))
        self._notify(kind)

    async def delete(self, kind: EntityKind, external_id: str) -> None:
        self._check_available()
        with self._lock:
            self._collections[kind].pop(external_id, None)
        self._notify(kind)

    async def list_all(self, kind: EntityKind) -> list[Record]:
        return self.snapshot(kind)

    def _check_available(self) -> None:
        if self._failing:
            raise StorageError("In-memory store is unavailable")

    def _notify(self, kind: EntityKind) -> None:
        with self._lock:
            subscriptions = list(self._subscribers[kind])
        for subscription in subscriptions:
            self._deliver(kind, subscription)

    def _deliver(self, kind: EntityKind, subscription: Subscription) -> None:
        marker = subscription.mark()
        subscription.deliver(self.snapshot(kind), marker)
