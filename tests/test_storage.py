"""
Tests for storage implementations.

Google Sheets is exercised against an in-process fake worksheet;
no real API calls are made.
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import gspread

from planor.engine import build_template_challenge, mark_week_paid
from planor.models import AuditEventBuilder, ChallengeStatus, LedgerEntry
from planor.services.storage import (
    ConflictError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsChallengeStore,
    GoogleSheetsClient,
    GoogleSheetsLedgerSink,
    InMemoryAuditStorage,
    InMemoryChallengeStore,
    LedgerWriteError,
    NotFoundError,
    StorageError,
)
from planor.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    CHALLENGE_COLUMNS,
    LEDGER_COLUMNS,
    challenge_to_row,
    row_to_challenge,
)


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage classes."""

    def __init__(self, header: list[str]):
        self.rows = [list(header)]

    def get_all_values(self) -> list[list[str]]:
        return [list(r) for r in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(v) for v in row])

    def update(self, range_name=None, values=None):
        index = int(range_name.lstrip("A")) - 1
        self.rows[index] = [str(v) for v in values[0]]

    def delete_rows(self, index):
        del self.rows[index - 1]


@pytest.fixture
def challenge_sheet() -> FakeWorksheet:
    return FakeWorksheet(CHALLENGE_COLUMNS)


@pytest.fixture
def sheets_client(challenge_sheet) -> MagicMock:
    client = MagicMock(spec=GoogleSheetsClient)
    client.get_challenges_sheet.return_value = challenge_sheet
    client.get_ledger_sheet.return_value = FakeWorksheet(LEDGER_COLUMNS)
    client.get_audit_sheet.return_value = FakeWorksheet(AUDIT_COLUMNS)
    return client


@pytest.fixture(params=["memory", "sheets"])
def any_store(request, sheets_client):
    """Both challenge store implementations must behave the same."""
    if request.param == "memory":
        return InMemoryChallengeStore()
    return GoogleSheetsChallengeStore(sheets_client)


class TestChallengeStoreContract:
    """Behaviour shared by every challenge store."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, any_store, challenge):
        created = await any_store.create(challenge)
        fetched = await any_store.get(challenge.id)

        assert created.version == 0
        assert fetched.model_dump() == created.model_dump()

    @pytest.mark.asyncio
    async def test_create_rejects_duplicate(self, any_store, challenge):
        await any_store.create(challenge)
        with pytest.raises(DuplicateError):
            await any_store.create(challenge)

    @pytest.mark.asyncio
    async def test_get_unknown_raises(self, any_store):
        with pytest.raises(NotFoundError):
            await any_store.get(uuid4())

    @pytest.mark.asyncio
    async def test_put_bumps_version_and_keeps_created_at(self, any_store, challenge):
        created = await any_store.create(challenge)
        updated = mark_week_paid(created, 1, Decimal("10"), today=date(2024, 1, 1))

        saved = await any_store.put(updated)

        assert saved.version == 1
        assert saved.created_at == created.created_at
        assert saved.updated_at >= created.updated_at
        assert (await any_store.get(challenge.id)).total_deposited == Decimal("10")

    @pytest.mark.asyncio
    async def test_put_with_stale_version_conflicts(self, any_store, challenge):
        """Two writers read version 0; only the first write wins."""
        created = await any_store.create(challenge)
        first = mark_week_paid(created, 1, Decimal("10"))
        second = mark_week_paid(created, 2, Decimal("15"))

        await any_store.put(first)
        with pytest.raises(ConflictError):
            await any_store.put(second)

        stored = await any_store.get(challenge.id)
        assert stored.paid_weeks == {1}

    @pytest.mark.asyncio
    async def test_put_unknown_raises(self, any_store, challenge):
        with pytest.raises(NotFoundError):
            await any_store.put(challenge)

    @pytest.mark.asyncio
    async def test_delete(self, any_store, challenge):
        await any_store.create(challenge)
        assert await any_store.delete(challenge.id) is True
        assert await any_store.delete(challenge.id) is False
        with pytest.raises(NotFoundError):
            await any_store.get(challenge.id)

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, any_store, challenge):
        await any_store.create(challenge)
        paused = challenge.model_copy(update={"id": uuid4(), "status": ChallengeStatus.PAUSED})
        await any_store.create(paused)

        assert len(await any_store.list_challenges()) == 2
        only_paused = await any_store.list_challenges(status=ChallengeStatus.PAUSED)
        assert [c.id for c in only_paused] == [paused.id]


class TestInMemoryChallengeStore:
    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, challenge):
        store = InMemoryChallengeStore()
        created = await store.create(challenge)
        created.deposit_history.append(
            mark_week_paid(created, 1, Decimal("10")).deposit_history[0]
        )
        assert (await store.get(challenge.id)).deposit_history == []


class TestSheetsRowConversion:
    """Tests for challenge <-> spreadsheet row conversion."""

    def test_row_has_one_cell_per_column(self, challenge):
        assert len(challenge_to_row(challenge)) == len(CHALLENGE_COLUMNS)

    def test_round_trip_preserves_every_field(self):
        challenge = build_template_challenge(
            "5k",
            start_date=date(2024, 1, 1),
            linked_account_id="acc-1",
            icon="star",
        )
        challenge = mark_week_paid(
            challenge, 52, challenge.custom_amounts[-1],
            today=date(2024, 12, 23),
            now=datetime(2024, 12, 23, 9, 30, tzinfo=timezone.utc),
        )
        row = [str(v) for v in challenge_to_row(challenge)]

        restored = row_to_challenge(row)
        assert restored.model_dump() == challenge.model_dump()

    def test_short_row_uses_defaults(self, challenge):
        row = challenge_to_row(challenge)[:11]
        restored = row_to_challenge(row + [""] * 7 + [
            challenge.created_at.isoformat(),
            challenge.updated_at.isoformat(),
        ])
        assert restored.status == ChallengeStatus.ACTIVE
        assert restored.current_week == 0
        assert restored.deposit_history == []


class TestGoogleSheetsChallengeStore:
    @pytest.mark.asyncio
    async def test_list_skips_malformed_rows(self, sheets_client, challenge_sheet, challenge):
        store = GoogleSheetsChallengeStore(sheets_client)
        await store.create(challenge)
        challenge_sheet.rows.append(["not-a-uuid", "Broken"])
        challenge_sheet.rows.append([])

        listed = await store.list_challenges()
        assert [c.id for c in listed] == [challenge.id]

    @pytest.mark.asyncio
    async def test_put_writes_row_in_place(self, sheets_client, challenge_sheet, challenge):
        store = GoogleSheetsChallengeStore(sheets_client)
        created = await store.create(challenge)
        await store.put(mark_week_paid(created, 1, Decimal("10")))

        assert len(challenge_sheet.rows) == 2
        assert challenge_sheet.rows[1][CHALLENGE_COLUMNS.index("version")] == "1"

    @pytest.mark.asyncio
    async def test_failed_update_is_not_retried(self, sheets_client, challenge_sheet, challenge):
        """An update that lands but times out surfaces as a storage error, not a conflict."""
        store = GoogleSheetsChallengeStore(sheets_client)
        created = await store.create(challenge)
        apply_update = challenge_sheet.update

        def update_then_time_out(**kwargs):
            apply_update(**kwargs)
            raise TimeoutError("read timed out")

        challenge_sheet.update = MagicMock(side_effect=update_then_time_out)

        with pytest.raises(StorageError) as exc_info:
            await store.put(mark_week_paid(created, 1, Decimal("10")))

        assert not isinstance(exc_info.value, ConflictError)
        assert challenge_sheet.update.call_count == 1
        assert (await store.get(challenge.id)).version == 1

    @pytest.mark.asyncio
    async def test_failed_append_is_not_retried(self, sheets_client, challenge_sheet, challenge):
        store = GoogleSheetsChallengeStore(sheets_client)
        challenge_sheet.append_row = MagicMock(side_effect=[TimeoutError("read timed out"), None])

        with pytest.raises(StorageError):
            await store.create(challenge)

        assert challenge_sheet.append_row.call_count == 1


class TestGoogleSheetsLedgerSink:
    @pytest.mark.asyncio
    async def test_append_entry_row(self, sheets_client):
        sink = GoogleSheetsLedgerSink(sheets_client)
        challenge_id = uuid4()
        entry = LedgerEntry(
            amount=Decimal("15"),
            category="Savings",
            description="Challenge Four Weeks - Week 2",
            date=date(2024, 1, 8),
            account_id="acc-1",
            challenge_id=challenge_id,
            week=2,
        )

        await sink.append_entry(entry)

        row = sheets_client.get_ledger_sheet.return_value.rows[1]
        assert row[1] == "expense"
        assert row[2] == "15"
        assert row[3] == "Savings"
        assert row[5] == "2024-01-08"
        assert row[6] == "acc-1"
        assert row[8] == str(challenge_id)
        assert row[9] == "2"

    @pytest.mark.asyncio
    async def test_failed_append_is_written_once(self, sheets_client):
        """The row may already be in the sheet when append_row raises."""
        sheet = MagicMock()
        sheet.append_row.side_effect = [TimeoutError("read timed out"), None]
        sheets_client.get_ledger_sheet.return_value = sheet
        sink = GoogleSheetsLedgerSink(sheets_client)
        entry = LedgerEntry(
            amount=Decimal("10"),
            category="Savings",
            description="Challenge Four Weeks - Week 1",
            date=date(2024, 1, 1),
            account_id="acc-1",
        )

        with pytest.raises(LedgerWriteError):
            await sink.append_entry(entry)

        assert sheet.append_row.call_count == 1


class TestGoogleSheetsAuditStorage:
    @pytest.mark.asyncio
    async def test_events_round_trip(self, sheets_client):
        storage = GoogleSheetsAuditStorage(sheets_client)
        challenge_id = uuid4()
        correlation_id = uuid4()
        event = AuditEventBuilder.week_marked_paid(
            challenge_id, 1, Decimal("10"), 1, Decimal("10"), correlation_id
        )

        assert await storage.append_event(event) is True

        by_correlation = await storage.get_events_by_correlation_id(correlation_id)
        by_entity = await storage.get_events_by_entity("challenge", challenge_id)
        assert [e.event_id for e in by_correlation] == [event.event_id]
        assert [e.event_id for e in by_entity] == [event.event_id]
        assert by_correlation[0].details["amount"] == "10"

    @pytest.mark.asyncio
    async def test_append_failure_returns_false(self, sheets_client):
        sheets_client.get_audit_sheet.side_effect = RuntimeError("quota exceeded")
        storage = GoogleSheetsAuditStorage(sheets_client)
        event = AuditEventBuilder.challenge_deleted(uuid4(), uuid4())

        assert await storage.append_event(event) is False


class TestInMemoryAuditStorage:
    @pytest.mark.asyncio
    async def test_recent_events_newest_first(self):
        storage = InMemoryAuditStorage()
        first = AuditEventBuilder.challenge_deleted(uuid4(), uuid4())
        second = AuditEventBuilder.challenge_deleted(uuid4(), uuid4())
        await storage.append_event(first)
        await storage.append_event(second)

        recent = await storage.get_recent_events(limit=1)
        assert len(recent) == 1
        assert recent[0].timestamp >= first.timestamp


class TestGoogleSheetsClient:
    def test_missing_worksheet_is_created_with_header(self):
        settings = MagicMock()
        settings.challenges_sheet_name = "Challenges"
        spreadsheet = MagicMock()
        spreadsheet.worksheet.side_effect = gspread.WorksheetNotFound("Challenges")
        new_sheet = MagicMock()
        spreadsheet.add_worksheet.return_value = new_sheet

        client = GoogleSheetsClient(settings=settings)
        client._spreadsheet = spreadsheet

        assert client.get_challenges_sheet() is new_sheet
        spreadsheet.add_worksheet.assert_called_once_with(
            title="Challenges", rows=1000, cols=len(CHALLENGE_COLUMNS)
        )
        new_sheet.append_row.assert_called_once_with(CHALLENGE_COLUMNS)

    def test_existing_worksheet_is_reused(self):
        settings = MagicMock()
        settings.ledger_sheet_name = "Transactions"
        spreadsheet = MagicMock()

        client = GoogleSheetsClient(settings=settings)
        client._spreadsheet = spreadsheet

        assert client.get_ledger_sheet() is spreadsheet.worksheet.return_value
        spreadsheet.add_worksheet.assert_not_called()
