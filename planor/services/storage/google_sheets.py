"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the shared storage backend because:
1. The finance ledger already lives in the same spreadsheet
2. Users can inspect their challenges directly in Sheets
3. No database setup required

TRADEOFFS:
- No transactions: the version check in put() is read-then-write, so it
  narrows the window for lost updates without closing it completely
- Limited query capabilities (we filter in Python)

One challenge per row. Deposit history and custom amounts are stored
as JSON columns.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from planor.config import GoogleSheetsSettings, get_settings
from planor.models.audit import AuditEvent, AuditEventType, AuditSeverity
from planor.models.challenge import (
    Challenge,
    ChallengeDirection,
    ChallengeStatus,
    ChallengeType,
    Deposit,
    LedgerEntry,
    utc_now,
)
from planor.services.storage.interface import (
    AuditStorageInterface,
    ChallengeStoreInterface,
    ConflictError,
    ConnectionError,
    DuplicateError,
    LedgerSinkInterface,
    LedgerWriteError,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


# Column mappings for the Challenges sheet
CHALLENGE_COLUMNS = [
    "id",
    "title",
    "icon",
    "challenge_type",
    "start_amount",
    "step_amount",
    "total_weeks",
    "direction",
    "custom_amounts_json",
    "target_amount",
    "start_date",
    "current_week",
    "total_deposited",
    "status",
    "completed_at",
    "linked_account_id",
    "notification_enabled",
    "version",
    "created_at",
    "updated_at",
    "deposit_history_json",
]

# Column mappings for the ledger (Transactions) sheet
LEDGER_COLUMNS = [
    "id",
    "type",
    "amount",
    "category",
    "description",
    "date",
    "account_id",
    "paid",
    "challenge_id",
    "week",
]

# Column mappings for the Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Lookups and version checks fail for good reasons; retrying them only delays the error
sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type((NotFoundError, DuplicateError, ConflictError)),
    reraise=True,
)


def _safe_getter(row: list):
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and get-or-create of worksheets.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

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
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get a worksheet by title, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            logger.info("worksheet_created", title=title)
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
        return sheet

    def get_challenges_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.challenges_sheet_name, CHALLENGE_COLUMNS)

    def get_ledger_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.ledger_sheet_name, LEDGER_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


def challenge_to_row(challenge: Challenge) -> list:
    """Convert a Challenge to a spreadsheet row."""
    custom_amounts = (
        json.dumps([str(a) for a in challenge.custom_amounts])
        if challenge.custom_amounts is not None
        else ""
    )
    return [
        str(challenge.id),
        challenge.title,
        challenge.icon or "",
        challenge.challenge_type.value,
        str(challenge.start_amount),
        str(challenge.step_amount),
        str(challenge.total_weeks),
        challenge.direction.value,
        custom_amounts,
        str(challenge.target_amount) if challenge.target_amount is not None else "",
        challenge.start_date.isoformat(),
        str(challenge.current_week),
        str(challenge.total_deposited),
        challenge.status.value,
        challenge.completed_at.isoformat() if challenge.completed_at else "",
        challenge.linked_account_id or "",
        str(challenge.notification_enabled),
        str(challenge.version),
        challenge.created_at.isoformat(),
        challenge.updated_at.isoformat(),
        json.dumps([d.model_dump(mode="json") for d in challenge.deposit_history]),
    ]


def row_to_challenge(row: list) -> Challenge:
    """Convert a spreadsheet row to a Challenge."""
    safe_get = _safe_getter(row)

    custom_amounts = None
    if safe_get(8):
        custom_amounts = [Decimal(a) for a in json.loads(safe_get(8))]

    deposit_history = []
    if safe_get(20):
        deposit_history = [Deposit(**d) for d in json.loads(safe_get(20))]

    return Challenge(
        id=UUID(safe_get(0)),
        title=safe_get(1),
        icon=safe_get(2) or None,
        challenge_type=ChallengeType(safe_get(3, ChallengeType.FIFTY_TWO_WEEKS.value)),
        start_amount=Decimal(safe_get(4, "0")),
        step_amount=Decimal(safe_get(5, "0")),
        total_weeks=int(safe_get(6)),
        direction=ChallengeDirection(safe_get(7, ChallengeDirection.STANDARD.value)),
        custom_amounts=custom_amounts,
        target_amount=Decimal(safe_get(9)) if safe_get(9) else None,
        start_date=date.fromisoformat(safe_get(10)),
        current_week=int(safe_get(11, "0")),
        total_deposited=Decimal(safe_get(12, "0")),
        status=ChallengeStatus(safe_get(13, ChallengeStatus.ACTIVE.value)),
        completed_at=datetime.fromisoformat(safe_get(14)) if safe_get(14) else None,
        linked_account_id=safe_get(15) or None,
        notification_enabled=safe_get(16, "True").lower() == "true",
        version=int(safe_get(17, "0")),
        created_at=datetime.fromisoformat(safe_get(18)),
        updated_at=datetime.fromisoformat(safe_get(19)),
        deposit_history=deposit_history,
    )


class GoogleSheetsChallengeStore(ChallengeStoreInterface):
    """
    Google Sheets implementation of challenge storage.

    Rows are located by the ID in column A. Row 1 is the header.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @sheets_retry
    def _read_rows(self) -> tuple[gspread.Worksheet, list[list]]:
        sheet = self._client.get_challenges_sheet()
        return sheet, sheet.get_all_values()

    @staticmethod
    def _find_row(all_rows: list[list], challenge_id: UUID) -> tuple[int, list]:
        for idx, row in enumerate(all_rows[1:], start=2):  # Start from 2 (row 1 is header)
            if row and row[0] == str(challenge_id):
                return idx, row
        raise NotFoundError(f"Challenge not found: {challenge_id}")

    # Only reads are retried. A write that raised may still have been
    # applied, and repeating it would duplicate rows or report a false conflict.

    async def create(self, challenge: Challenge) -> Challenge:
        try:
            sheet, all_rows = self._read_rows()
            try:
                self._find_row(all_rows, challenge.id)
            except NotFoundError:
                pass
            else:
                raise DuplicateError(f"Challenge already exists: {challenge.id}")

            record = challenge.to_record().model_copy(update={"version": 0})
            sheet.append_row(challenge_to_row(record), value_input_option="RAW")
            return record
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to create challenge: {e}")

    async def get(self, challenge_id: UUID) -> Challenge:
        try:
            _, all_rows = self._read_rows()
            _, row = self._find_row(all_rows, challenge_id)
            return row_to_challenge(row)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get challenge: {e}")

    async def put(self, challenge: Challenge) -> Challenge:
        try:
            sheet, all_rows = self._read_rows()
            idx, row = self._find_row(all_rows, challenge.id)
            stored = row_to_challenge(row)

            if challenge.version != stored.version:
                raise ConflictError(
                    f"Challenge {challenge.id} is at version {stored.version}, "
                    f"update was based on version {challenge.version}"
                )

            record = challenge.to_record().model_copy(update={
                "version": stored.version + 1,
                "created_at": stored.created_at,
                "updated_at": utc_now(),
            })
            sheet.update(range_name=f"A{idx}", values=[challenge_to_row(record)])
            return record
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update challenge: {e}")

    async def delete(self, challenge_id: UUID) -> bool:
        try:
            sheet, all_rows = self._read_rows()
            idx, _ = self._find_row(all_rows, challenge_id)
            sheet.delete_rows(idx)
            return True
        except NotFoundError:
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete challenge: {e}")

    async def list_challenges(
        self,
        status: Optional[ChallengeStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Challenge]:
        try:
            _, all_rows = self._read_rows()
        except Exception as e:
            raise StorageError(f"Failed to list challenges: {e}")

        challenges = []
        for row in all_rows[1:]:  # Skip header
            if not row or not row[0]:  # Skip empty rows
                continue

            try:
                challenge = row_to_challenge(row)
            except (ValueError, KeyError, TypeError) as e:
                logger.warning("malformed_challenge_row", row_id=row[0], error=str(e))
                continue

            if status and challenge.status != status:
                continue

            challenges.append(challenge)

        # Newest first
        challenges.sort(key=lambda c: c.created_at, reverse=True)
        return challenges[offset:offset + limit]


class GoogleSheetsLedgerSink(LedgerSinkInterface):
    """Appends challenge deposits to the finance Transactions sheet."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _entry_to_row(self, entry: LedgerEntry) -> list:
        return [
            str(entry.id),
            entry.type.value,
            str(entry.amount),
            entry.category,
            entry.description,
            entry.date.isoformat(),
            entry.account_id,
            str(entry.paid),
            str(entry.challenge_id) if entry.challenge_id else "",
            str(entry.week) if entry.week else "",
        ]

    @sheets_retry
    def _open_sheet(self) -> gspread.Worksheet:
        return self._client.get_ledger_sheet()

    async def append_entry(self, entry: LedgerEntry) -> None:
        """Write one expense row. The append is attempted exactly once."""
        try:
            sheet = self._open_sheet()
            sheet.append_row(self._entry_to_row(entry), value_input_option="RAW")
        except Exception as e:
            raise LedgerWriteError(f"Failed to write ledger entry: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, KeyError) as e:
                logger.warning("malformed_audit_row", row_id=row[0], error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit persistence must not break the main flow
            logger.warning("audit_event_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        events = [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = self._read_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
