"""
Google Sheets Ledger Store

DESIGN DECISION: Google Sheets is used as the remote backend because:
1. The owner can inspect the books directly in a spreadsheet
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No push notifications: subscriptions poll the worksheet and notify
  when its content changes
- No transactions (the local mirror is authoritative; see Replicator)
- Limited query capabilities (we read whole worksheets)

Each entity kind lives in its own worksheet with the columns below.
The record itself is stored as JSON so nested data (transaction lines,
credit payments) survives the round trip unchanged.
"""

import asyncio
import json
import threading
from typing import Optional
from uuid import uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from src.config import GoogleSheetsSettings, get_settings
from src.models.common import utc_now
from src.services.storage.interface import (
    ConnectionError,
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


LEDGER_COLUMNS = [
    "external_id",
    "record_id",
    "updated_at",
    "data_json",
]

logger = structlog.get_logger(__name__)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[EntityKind, gspread.Worksheet] = {}
        self._settings = settings or get_settings().google_sheets

    @property
    def poll_interval_seconds(self) -> float:
        return self._settings.poll_interval_seconds

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, kind: EntityKind) -> gspread.Worksheet:
        """Get or create the worksheet holding one entity kind."""
        if kind not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            title = self._settings.sheet_name_for(kind.value)
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                # Create the sheet with headers
                sheet = spreadsheet.add_worksheet(
                    title=title,
                    rows=1000,
                    cols=len(LEDGER_COLUMNS),
                )
                sheet.append_row(LEDGER_COLUMNS)
            self._worksheets[kind] = sheet
        return self._worksheets[kind]


class _SheetWatcher:
    """Polls one worksheet on a daemon thread and reports changes."""

    def __init__(
        self,
        store: "GoogleSheetsLedgerStore",
        kind: EntityKind,
        subscription: Subscription,
        interval: float,
    ):
        self._store = store
        self._kind = kind
        self._subscription = subscription
        self._interval = interval
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            name=f"sheets-watch-{kind.value}",
            daemon=True,
        )

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        last_fingerprint = None
        while not self._stop.is_set():
            marker = self._subscription.mark()
            try:
                records = self._store.read_records(self._kind)
            except StorageError as e:
                logger.warning("sheets_poll_failed", kind=self._kind.value, error=str(e))
            else:
                fingerprint = json.dumps(records, sort_keys=True)
                if fingerprint != last_fingerprint:
                    last_fingerprint = fingerprint
                    self._subscription.deliver(records, marker)
            self._stop.wait(self._interval)


class GoogleSheetsLedgerStore(LedgerStoreInterface):
    """
    Google Sheets implementation of the ledger store.

    One row per record; the store generates the external_id.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._watchers: list[_SheetWatcher] = []

    def _to_row(self, external_id: str, record: Record) -> list:
        """Convert a record to a spreadsheet row."""
        return [
            external_id,
            str(record.get("id", "")),
            utc_now().isoformat(),
            json.dumps(record, sort_keys=True),
        ]

    def _row_to_record(self, row: list) -> Record:
        """Convert a spreadsheet row to a record tagged with its external_id."""
        record = json.loads(row[3])
        record["external_id"] = row[0]
        return record

    def _find_row(self, sheet: gspread.Worksheet, external_id: str) -> tuple[int, list]:
        """Locate a row by external_id. Returns (1-based row index, row values)."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if row and row[0] == external_id:
                return idx, row
        raise NotFoundError(f"Record not found: {external_id}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def read_records(self, kind: EntityKind) -> list[Record]:
        """Read every record of a kind (blocking)."""
        try:
            sheet = self._client.get_worksheet(kind)
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to read {kind.value}: {e}")

        records = []
        for row in all_rows:
            if len(row) < len(LEDGER_COLUMNS) or not row[0]:
                continue  # Skip empty rows
            try:
                records.append(self._row_to_record(row))
            except json.JSONDecodeError:
                logger.warning("sheets_malformed_row", kind=kind.value, external_id=row[0])
        return records

    def subscribe(
        self,
        kind: EntityKind,
        on_snapshot: SnapshotCallback,
        read_marker: Optional[ReadMarker] = None,
    ) -> Unsubscribe:
        watcher = _SheetWatcher(
            store=self,
            kind=kind,
            subscription=Subscription(on_snapshot, read_marker),
            interval=self._client.poll_interval_seconds,
        )
        self._watchers.append(watcher)
        watcher.start()

        def unsubscribe() -> None:
            watcher.stop()
            if watcher in self._watchers:
                self._watchers.remove(watcher)

        return unsubscribe

    async def create(self, kind: EntityKind, record: Record) -> str:
        """
        Append a record as a new row.

        Not retried: an append that landed but timed out would be
        written twice.
        """
        return await asyncio.to_thread(self._append_record, kind, record)

    async def update(self, kind: EntityKind, external_id: str, partial: Record) -> None:
        await asyncio.to_thread(self._update_record, kind, external_id, partial)

    async def delete(self, kind: EntityKind, external_id: str) -> None:
        await asyncio.to_thread(self._delete_record, kind, external_id)

    def _append_record(self, kind: EntityKind, record: Record) -> str:
        external_id = uuid4().hex
        try:
            sheet = self._client.get_worksheet(kind)
            sheet.append_row(self._to_row(external_id, record), value_input_option="RAW")
            return external_id
        except Exception as e:
            raise StorageError(f"Failed to create {kind.value} record: {e}")

    def _update_record(self, kind: EntityKind, external_id: str, partial: Record) -> None:
        """Merge fields into the stored JSON of an existing row."""
        try:
            sheet = self._client.get_worksheet(kind)
            idx, row = self._find_row(sheet, external_id)
            record = json.loads(row[3])
            record.update(partial)
            new_row = self._to_row(external_id, record)
            # Only updated_at and data_json change
            sheet.update_cell(idx, 3, new_row[2])
            sheet.update_cell(idx, 4, new_row[3])
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {kind.value} record: {e}")

    def _delete_record(self, kind: EntityKind, external_id: str) -> None:
        """Delete a row by external_id. Deleting a missing row is a no-op."""
        try:
            sheet = self._client.get_worksheet(kind)
            idx, _ = self._find_row(sheet, external_id)
            sheet.delete_rows(idx)
        except NotFoundError:
            return
        except Exception as e:
            raise StorageError(f"Failed to delete {kind.value} record: {e}")

    async def list_all(self, kind: EntityKind) -> list[Record]:
        return await asyncio.to_thread(self.read_records, kind)

    def close(self) -> None:
        """Stop all polling watchers."""
        for watcher in list(self._watchers):
            watcher.stop()
        self._watchers.clear()
