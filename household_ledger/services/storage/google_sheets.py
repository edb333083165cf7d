"""
Google Sheets Storage

The ledger can be kept in a Google Sheets spreadsheet so the household
can look at its raw data directly in Sheets.

Layout:
- One worksheet per collection ("<prefix>persons", "<prefix>accounts", ...)
  with columns [id, record_json]
- A "<prefix>meta" worksheet holding the snapshot timestamp; it is
  written last, so its absence means nothing was ever saved
- An append-only audit worksheet

TRADEOFFS:
- A save rewrites every collection sheet (fine for household volumes)
- No transactions: a crash between sheets can leave a mixed state,
  which the store's import validation then rejects on the next load
"""

import json
from pathlib import Path
from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from household_ledger.config import get_settings
from household_ledger.config.settings import GoogleSheetsSettings
from household_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from household_ledger.models.snapshot import COLLECTION_MODELS, Snapshot
from household_ledger.services.storage.interface import (
    AuditStorageInterface,
    SnapshotStorageInterface,
    StorageConnectionError,
    StorageError,
)


COLLECTION_COLUMNS = ["id", "record_json"]
META_COLUMNS = ["key", "value"]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "description",
    "details_json",
    "error_message",
]


SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

# Shared by every Sheets API call: three attempts, exponential back-off.
# Connection errors are configuration problems and fail at once.
sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type(StorageConnectionError),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Lazily authorized handle on the ledger spreadsheet.

    The gspread client and spreadsheet are opened on first use and
    reused afterwards; worksheets are created on demand.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._settings = settings or get_settings().google_sheets
        self._gc: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @sheets_retry
    def _authorize(self, key_file: str) -> gspread.Client:
        credentials = Credentials.from_service_account_file(key_file, scopes=SCOPES)
        return gspread.authorize(credentials)

    def connect(self) -> gspread.Client:
        """Authorize with the service account key from the settings."""
        if self._gc is not None:
            return self._gc

        key_file = self._settings.credentials_path
        if not Path(key_file).is_file():
            raise StorageConnectionError(f"Service account key not found: {key_file}")
        try:
            self._gc = self._authorize(key_file)
        except Exception as e:
            raise StorageConnectionError(f"Could not authorize with Google Sheets: {e}")
        return self._gc

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            spreadsheet_id = self._settings.spreadsheet_id
            try:
                self._spreadsheet = self.connect().open_by_key(spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(f"No spreadsheet with key {spreadsheet_id}")
        return self._spreadsheet

    def find_worksheet(self, title: str) -> Optional[gspread.Worksheet]:
        """The worksheet called `title`, or None."""
        try:
            return self.get_spreadsheet().worksheet(title)
        except gspread.WorksheetNotFound:
            return None

    def get_worksheet(self, title: str, header: list[str], rows: int = 1000) -> gspread.Worksheet:
        """The worksheet called `title`, created with `header` as first row if missing."""
        sheet = self.find_worksheet(title)
        if sheet is None:
            sheet = self.get_spreadsheet().add_worksheet(
                title=title,
                rows=rows,
                cols=len(header),
            )
            sheet.append_row(header)
        return sheet

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,
        )


class GoogleSheetsSnapshotStorage(SnapshotStorageInterface):
    """
    Snapshot storage spread over one worksheet per collection.

    Each row holds a record id and the record as snapshot-format JSON.
    """

    backend_name = "google_sheets"

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet_title(self, key: str) -> str:
        return f"{self._client.settings.worksheet_prefix}{key}"

    @sheets_retry
    def load(self) -> Optional[dict[str, Any]]:
        """Read every collection sheet back into a snapshot-format mapping."""
        try:
            meta_sheet = self._client.find_worksheet(self._sheet_title("meta"))
            if meta_sheet is None:
                return None

            meta = {
                row[0]: row[1]
                for row in meta_sheet.get_all_values()[1:]
                if len(row) >= 2 and row[0]
            }

            data: dict = {"timestamp": meta.get("timestamp")} if meta.get("timestamp") else {}
            for key in COLLECTION_MODELS:
                sheet = self._client.find_worksheet(self._sheet_title(key))
                rows = sheet.get_all_values()[1:] if sheet is not None else []
                data[key] = [
                    json.loads(row[1])
                    for row in rows
                    if len(row) >= 2 and row[0]
                ]

            return data
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load snapshot from Google Sheets: {e}")

    @sheets_retry
    def save(self, snapshot: Snapshot) -> None:
        """Rewrite every collection sheet, then the meta sheet."""
        try:
            payload = snapshot.to_dict()
            for key in COLLECTION_MODELS:
                sheet = self._client.get_worksheet(self._sheet_title(key), COLLECTION_COLUMNS)
                rows = [COLLECTION_COLUMNS] + [
                    [record["id"], json.dumps(record, ensure_ascii=False)]
                    for record in payload[key]
                ]
                sheet.clear()
                sheet.update(values=rows, range_name="A1")

            meta_sheet = self._client.get_worksheet(self._sheet_title("meta"), META_COLUMNS)
            meta_sheet.clear()
            meta_sheet.update(
                values=[META_COLUMNS, ["timestamp", payload["timestamp"]]],
                range_name="A1",
            )
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save snapshot to Google Sheets: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """Audit trail as rows of the audit worksheet, one event per row."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Parse one worksheet row; short rows are padded with blanks."""
        cells = dict(zip(AUDIT_COLUMNS, list(row) + [""] * (len(AUDIT_COLUMNS) - len(row))))
        return AuditEvent(
            event_id=cells["event_id"],
            timestamp=cells["timestamp"],
            event_type=AuditEventType(cells["event_type"]),
            severity=AuditSeverity(cells["severity"]),
            entity_type=cells["entity_type"] or None,
            entity_id=cells["entity_id"] or None,
            description=cells["description"],
            details=json.loads(cells["details_json"]) if cells["details_json"] else {},
            error_message=cells["error_message"] or None,
        )

    def _read_events(self) -> list[AuditEvent]:
        try:
            rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to read the audit worksheet: {e}")

        events = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError:
                continue  # hand-edited or truncated row
        return events

    @sheets_retry
    def append_event(self, event: AuditEvent) -> bool:
        self._client.get_audit_sheet().append_row(
            event.to_sheets_row(),
            value_input_option="RAW",
        )
        return True

    def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        events = [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = self._read_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
