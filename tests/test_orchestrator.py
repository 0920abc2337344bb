"""
Tests for the challenge service.

Integration tests over in-memory storage; external failures are
simulated with AsyncMock.
"""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

from planor.audit import AuditLogger
from planor.engine import ChallengeStateError, InvalidScheduleError
from planor.models import AuditEventType, ChallengeStatus, LedgerEntryType
from planor.orchestrator import ChallengeService, create_challenge_service
from planor.services.storage import (
    ConflictError,
    InMemoryChallengeStore,
    LedgerWriteError,
    NotFoundError,
)


def event_types(audit_storage) -> list[AuditEventType]:
    return [e.event_type for e in audit_storage.events]


class TestCreateChallenge:
    """Tests for creating challenges."""

    @pytest.mark.asyncio
    async def test_create_returns_enriched(self, service, challenge, audit_storage):
        created = await service.create_challenge(challenge)

        assert created.id == challenge.id
        assert created.target_total == Decimal("70")
        assert created.weekly_amounts[0] == Decimal("10")
        assert event_types(audit_storage) == [AuditEventType.CHALLENGE_CREATED]

    @pytest.mark.asyncio
    async def test_rejects_overlong_schedule(self, store, challenge_settings, challenge):
        settings = challenge_settings.model_copy(update={"max_total_weeks": 3})
        service = ChallengeService(store=store, settings=settings)

        with pytest.raises(InvalidScheduleError):
            await service.create_challenge(challenge)
        assert await store.list_challenges() == []

    @pytest.mark.asyncio
    async def test_create_from_template(self, service):
        created = await service.create_from_template("10k", title="Emergency fund")

        assert created.title == "Emergency fund"
        assert created.total_weeks == 52
        assert created.target_total == Decimal("10000")
        assert created.target_progress_percent == Decimal("0")

    @pytest.mark.asyncio
    async def test_create_custom_template(self, service):
        created = await service.create_from_template(
            "custom", start_amount=1, step_amount=1, total_weeks=52
        )
        assert created.target_total == Decimal("1378")


class TestReads:
    @pytest.mark.asyncio
    async def test_get_and_list(self, service, challenge):
        await service.create_challenge(challenge)

        fetched = await service.get_challenge(challenge.id)
        listed = await service.list_challenges()

        assert fetched.current_week_amount == Decimal("10")
        assert [c.id for c in listed] == [challenge.id]

    @pytest.mark.asyncio
    async def test_get_unknown_propagates_not_found(self, service):
        with pytest.raises(NotFoundError):
            await service.get_challenge(uuid4())

    @pytest.mark.asyncio
    async def test_delete(self, service, challenge, audit_storage):
        await service.create_challenge(challenge)

        assert await service.delete_challenge(challenge.id) is True
        assert await service.delete_challenge(challenge.id) is False
        assert event_types(audit_storage).count(AuditEventType.CHALLENGE_DELETED) == 1


class TestMarkWeekPaid:
    """Tests for the mark-paid flow."""

    @pytest.mark.asyncio
    async def test_scheduled_amount_is_default(self, service, challenge):
        await service.create_challenge(challenge)

        result = await service.mark_week_paid(challenge.id, 3)

        assert result.deposit.amount == Decimal("20")
        assert result.challenge.total_deposited == Decimal("20")
        assert result.challenge.current_week == 3
        assert result.challenge.version == 1
        assert result.completed_now is False
        assert result.ledger_entry is None

    @pytest.mark.asyncio
    async def test_explicit_amount(self, service, challenge):
        await service.create_challenge(challenge)
        result = await service.mark_week_paid(challenge.id, 1, amount=Decimal("12.50"))
        assert result.challenge.total_deposited == Decimal("12.50")

    @pytest.mark.asyncio
    async def test_completion_is_reported_once(self, service, challenge, audit_storage):
        await service.create_challenge(challenge)
        for week in (1, 2, 3):
            await service.mark_week_paid(challenge.id, week)

        final = await service.mark_week_paid(challenge.id, 4)
        repaid = await service.mark_week_paid(challenge.id, 4, amount=Decimal("30"))

        assert final.completed_now is True
        assert final.challenge.status == ChallengeStatus.COMPLETED
        assert repaid.completed_now is False
        assert event_types(audit_storage).count(AuditEventType.CHALLENGE_COMPLETED) == 1

    @pytest.mark.asyncio
    async def test_invalid_week_is_rejected_before_saving(self, service, challenge, store):
        await service.create_challenge(challenge)

        with pytest.raises(InvalidScheduleError):
            await service.mark_week_paid(challenge.id, 9)
        assert (await store.get(challenge.id)).version == 0

    @pytest.mark.asyncio
    async def test_ledger_entry_uses_given_account(self, service, challenge, ledger, audit_storage):
        await service.create_challenge(challenge)

        result = await service.mark_week_paid(
            challenge.id, 2, create_transaction=True, account_id="acc-7"
        )

        assert result.ledger_written
        assert len(ledger.entries) == 1
        entry = ledger.entries[0]
        assert entry.type == LedgerEntryType.EXPENSE
        assert entry.amount == Decimal("15")
        assert entry.category == "Savings"
        assert entry.description == "Challenge Four Weeks - Week 2"
        assert entry.account_id == "acc-7"
        assert entry.date == result.deposit.date
        assert entry.challenge_id == challenge.id
        assert AuditEventType.LEDGER_ENTRY_CREATED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_ledger_falls_back_to_linked_account(self, service, challenge, ledger):
        linked = challenge.model_copy(update={"linked_account_id": "acc-linked"})
        await service.create_challenge(linked)

        await service.mark_week_paid(linked.id, 1, create_transaction=True)

        assert ledger.entries[0].account_id == "acc-linked"

    @pytest.mark.asyncio
    async def test_no_account_skips_ledger(self, service, challenge, ledger):
        await service.create_challenge(challenge)

        result = await service.mark_week_paid(challenge.id, 1, create_transaction=True)

        assert ledger.entries == []
        assert result.ledger_entry is None
        assert result.ledger_error is None

    @pytest.mark.asyncio
    async def test_ledger_not_requested(self, service, challenge, ledger):
        await service.create_challenge(challenge)
        await service.mark_week_paid(challenge.id, 1, account_id="acc-1")
        assert ledger.entries == []

    @pytest.mark.asyncio
    async def test_ledger_failure_keeps_deposit(self, store, challenge, challenge_settings, audit_storage):
        """A failed ledger write is reported, not rolled back."""
        ledger = AsyncMock()
        ledger.append_entry.side_effect = LedgerWriteError("sheet offline")
        service = ChallengeService(
            store=store,
            ledger=ledger,
            audit_logger=AuditLogger(audit_storage),
            settings=challenge_settings,
        )
        await service.create_challenge(challenge)

        result = await service.mark_week_paid(
            challenge.id, 1, create_transaction=True, account_id="acc-1"
        )

        assert result.ledger_error == "sheet offline"
        assert not result.ledger_written
        assert (await store.get(challenge.id)).total_deposited == Decimal("10")
        assert AuditEventType.LEDGER_WRITE_FAILED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_concurrent_write_conflict(self, service, challenge, store, audit_storage):
        """A write landing between our read and our put is not overwritten."""
        await service.create_challenge(challenge)
        stale = await store.get(challenge.id)

        await service.mark_week_paid(challenge.id, 1)

        with patch.object(store, "get", AsyncMock(return_value=stale)):
            with pytest.raises(ConflictError):
                await service.mark_week_paid(challenge.id, 2)

        stored = await store.get(challenge.id)
        assert stored.paid_weeks == {1}
        assert AuditEventType.WRITE_CONFLICT in event_types(audit_storage)


class TestTogglePause:
    @pytest.mark.asyncio
    async def test_pause_and_resume(self, service, challenge, audit_storage):
        await service.create_challenge(challenge)

        paused = await service.toggle_pause(challenge.id)
        resumed = await service.toggle_pause(challenge.id)

        assert paused.status == ChallengeStatus.PAUSED
        assert resumed.status == ChallengeStatus.ACTIVE
        assert event_types(audit_storage)[-2:] == [
            AuditEventType.CHALLENGE_PAUSED,
            AuditEventType.CHALLENGE_RESUMED,
        ]

    @pytest.mark.asyncio
    async def test_completed_challenge_cannot_toggle(self, service, challenge):
        await service.create_challenge(challenge)
        await service.mark_week_paid(challenge.id, 4)

        with pytest.raises(ChallengeStateError):
            await service.toggle_pause(challenge.id)

    @pytest.mark.asyncio
    async def test_write_conflict_is_audited(self, service, challenge, store, audit_storage):
        await service.create_challenge(challenge)
        stale = await store.get(challenge.id)
        await service.mark_week_paid(challenge.id, 1)

        with patch.object(store, "get", AsyncMock(return_value=stale)):
            with pytest.raises(ConflictError):
                await service.toggle_pause(challenge.id)

        assert (await store.get(challenge.id)).status == ChallengeStatus.ACTIVE
        assert event_types(audit_storage)[-1] == AuditEventType.WRITE_CONFLICT


class TestSimulate:
    def test_simulate_delegates_to_engine(self, service):
        simulation = service.simulate(10, 5, 4, "inverse")
        assert simulation.first_week_amount == Decimal("25")
        assert simulation.target_total == Decimal("70")

    def test_simulate_respects_max_weeks(self, service):
        with pytest.raises(InvalidScheduleError):
            service.simulate(1, 1, 10_000)

    def test_simulate_template_uses_default_length(self, service, challenge_settings):
        simulation = service.simulate_template("5k")

        assert len(simulation.weekly_amounts) == challenge_settings.default_total_weeks
        assert simulation.target_total == Decimal("5000")
        assert len(simulation.first_month_weeks) == 4

    def test_simulate_template_respects_max_weeks(self, service):
        with pytest.raises(InvalidScheduleError):
            service.simulate_template("10k", total_weeks=10_000)


class TestCreateChallengeService:
    def test_without_storage_uses_memory(self):
        service, sheets_client = create_challenge_service(use_storage=False)
        assert sheets_client is None
        assert isinstance(service._store, InMemoryChallengeStore)

    def test_falls_back_when_sheets_not_configured(self):
        with patch(
            "planor.orchestrator.GoogleSheetsClient",
            side_effect=ValueError("GOOGLE_SHEETS_SPREADSHEET_ID missing"),
        ):
            service, sheets_client = create_challenge_service(use_storage=True)

        assert sheets_client is None
        assert isinstance(service._store, InMemoryChallengeStore)
