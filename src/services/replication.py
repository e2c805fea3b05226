"""
Background Replication to the Ledger Store

DESIGN DECISION: The local mirror is authoritative for the running
session. Every local mutation happens synchronously and immediately;
the matching remote write is handed to the Replicator and never awaited
by the operation that caused it.

How it works:
- The Replicator owns a private asyncio event loop on a daemon thread
- Writes are submitted with run_coroutine_threadsafe and executed one at
  a time, in submission order, so an update always sees the external id
  produced by the earlier create of the same record
- A failed write is logged and dropped. Local state is NOT rolled back
  (accepted risk: local and remote may drift until the next snapshot)
- Writes are counted when submitted and when finished. A store read
  marked before the last submitted write finished is stale (is_settled)
"""

import asyncio
import concurrent.futures
import threading
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import structlog

from src.audit import AuditLogger
from src.services.storage.interface import (
    EntityKind,
    LedgerStoreInterface,
    NotFoundError,
    Record,
)

logger = structlog.get_logger(__name__)


class Replicator:
    """Fire-and-forget writer of local changes to a LedgerStoreInterface."""

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._lock = threading.Lock()
        self._external_ids: dict[tuple[EntityKind, str], str] = {}
        self._pending: set[concurrent.futures.Future] = set()
        # Writes handed to the loop, and writes finished (either way).
        # Writes run one at a time in order, so settled <= submitted.
        self._submitted = 0
        self._settled = 0

        self._loop = asyncio.new_event_loop()
        self._order_lock = asyncio.Lock()
        self._thread = threading.Thread(
            target=self._loop.run_forever,
            name="ledger-replicator",
            daemon=True,
        )
        self._thread.start()

    @property
    def store(self) -> LedgerStoreInterface:
        return self._store

    @property
    def pending_count(self) -> int:
        with self._lock:
            return sum(1 for future in self._pending if not future.done())

    def read_marker(self) -> int:
        """Take before reading the store; pass the result to is_settled()."""
        with self._lock:
            return self._settled

    def is_settled(self, marker: Optional[int] = None) -> bool:
        """
        True if every write submitted so far had finished when the marker
        was taken (or, without a marker, has finished now).

        A store read that started before a local write finished predates
        that write and must not replace local state.
        """
        with self._lock:
            settled = self._settled if marker is None else marker
            return settled >= self._submitted

    def remember(self, kind: EntityKind, record_id: UUID, external_id: str) -> None:
        """Record which remote document holds a local record."""
        with self._lock:
            self._external_ids[(kind, str(record_id))] = external_id

    def external_id_for(self, kind: EntityKind, record_id: UUID) -> Optional[str]:
        with self._lock:
            return self._external_ids.get((kind, str(record_id)))

    def create(self, kind: EntityKind, record_id: UUID, record: Record) -> concurrent.futures.Future:
        async def operation() -> None:
            external_id = await self._store.create(kind, record)
            self.remember(kind, record_id, external_id)

        return self._submit(kind, "create", record_id, operation)

    def update(self, kind: EntityKind, record_id: UUID, partial: Record) -> concurrent.futures.Future:
        async def operation() -> None:
            external_id = self.external_id_for(kind, record_id)
            if external_id is None:
                raise NotFoundError(f"No remote {kind.value} record for {record_id}")
            await self._store.update(kind, external_id, partial)

        return self._submit(kind, "update", record_id, operation)

    def delete(self, kind: EntityKind, record_id: UUID) -> concurrent.futures.Future:
        async def operation() -> None:
            with self._lock:
                external_id = self._external_ids.pop((kind, str(record_id)), None)
            if external_id is None:
                raise NotFoundError(f"No remote {kind.value} record for {record_id}")
            await self._store.delete(kind, external_id)

        return self._submit(kind, "delete", record_id, operation)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every submitted write has finished.

        Only shutdown code and tests call this; ledger operations never do.

        Returns:
            True if nothing is left pending
        """
        with self._lock:
            pending = list(self._pending)
        _, not_done = concurrent.futures.wait(pending, timeout=timeout)
        return not not_done

    def close(self, timeout: Optional[float] = None) -> None:
        """Drain pending writes and stop the background loop."""
        self.drain(timeout)
        if self._loop.is_running():
            self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)

    def _submit(
        self,
        kind: EntityKind,
        action: str,
        record_id: UUID,
        operation: Callable[[], Awaitable[Any]],
    ) -> concurrent.futures.Future:
        with self._lock:
            self._submitted += 1
        future = asyncio.run_coroutine_threadsafe(
            self._run(kind, action, record_id, operation),
            self._loop,
        )
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: concurrent.futures.Future) -> None:
        with self._lock:
            self._pending.discard(future)

    async def _run(
        self,
        kind: EntityKind,
        action: str,
        record_id: UUID,
        operation: Callable[[], Awaitable[Any]],
    ) -> bool:
        async with self._order_lock:
            try:
                await operation()
                return True
            except Exception as e:
                # Replication is best-effort: log, keep local state, move on
                logger.error(
                    "replication_failed",
                    kind=kind.value,
                    action=action,
                    record_id=str(record_id),
                    error=str(e),
                )
                if self._audit_logger:
                    self._audit_logger.log_replication_failed(
                        kind=kind.value,
                        action=action,
                        record_id=record_id,
                        error_message=str(e),
                    )
                return False
            finally:
                with self._lock:
                    self._settled += 1
