"""
Main Orchestrator for Planor Savings Challenges

This module ties the pure challenge engine to storage, the finance
ledger and the audit trail. Every operation follows the same shape:

    load record -> run engine function -> save (version-checked) -> audit

DESIGN DECISION: The challenge update is the source of truth and is
committed first. The optional ledger entry is a best-effort side effect
written afterwards: if it fails, the deposit stays recorded and the
failure is reported on the result and audited, never rolled back.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

import structlog

from planor.audit import AuditLogger, create_correlation_id
from planor.config import ChallengeSettings, get_settings
from planor.engine import (
    ChallengeTemplate,
    InvalidScheduleError,
    build_template_challenge,
    enrich,
    mark_week_paid,
    resolve_schedule,
    simulate,
    simulate_template,
    toggle_pause,
)
from planor.engine.progression import Amount, validate_week
from planor.models.challenge import (
    Challenge,
    ChallengeDirection,
    ChallengeStatus,
    EnrichedChallenge,
    LedgerEntry,
    LedgerEntryType,
    MarkWeekPaidResult,
    Simulation,
)
from planor.services.storage import (
    ChallengeStoreInterface,
    ConflictError,
    GoogleSheetsAuditStorage,
    GoogleSheetsChallengeStore,
    GoogleSheetsClient,
    GoogleSheetsLedgerSink,
    InMemoryChallengeStore,
    InMemoryLedgerSink,
    LedgerSinkInterface,
)


logger = structlog.get_logger(__name__)


class ChallengeService:
    """
    Use-case layer for savings challenges.

    Reads always come back enriched; the stored record never carries
    derived fields.
    """

    def __init__(
        self,
        store: Optional[ChallengeStoreInterface] = None,
        ledger: Optional[LedgerSinkInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[ChallengeSettings] = None,
    ):
        self._store = store or InMemoryChallengeStore()
        self._ledger = ledger
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().challenges

    def _check_length(self, total_weeks: int) -> None:
        if total_weeks > self._settings.max_total_weeks:
            raise InvalidScheduleError(
                f"total_weeks {total_weeks} exceeds the maximum of "
                f"{self._settings.max_total_weeks}"
            )

    async def _save(self, updated: Challenge, correlation_id: UUID) -> Challenge:
        """Version-checked put; a conflict is logged and audited, then re-raised."""
        try:
            return await self._store.put(updated)
        except ConflictError:
            logger.warning(
                "challenge_write_conflict",
                challenge_id=str(updated.id),
                version=updated.version,
            )
            if self._audit_logger:
                await self._audit_logger.log_write_conflict(
                    challenge_id=updated.id,
                    expected_version=updated.version,
                    correlation_id=correlation_id,
                )
            raise

    async def create_challenge(
        self,
        challenge: Challenge,
        correlation_id: Optional[UUID] = None,
    ) -> EnrichedChallenge:
        """Persist a new challenge and return it enriched."""
        correlation_id = correlation_id or create_correlation_id()
        self._check_length(challenge.total_weeks)

        saved = await self._store.create(challenge)
        logger.info(
            "challenge_created",
            challenge_id=str(saved.id),
            total_weeks=saved.total_weeks,
        )

        if self._audit_logger:
            await self._audit_logger.log_challenge_created(
                challenge_id=saved.id,
                title=saved.title,
                total_weeks=saved.total_weeks,
                correlation_id=correlation_id,
            )

        return enrich(saved)

    async def create_from_template(
        self,
        template: Union[ChallengeTemplate, str],
        title: Optional[str] = None,
        total_weeks: Optional[int] = None,
        direction: Union[ChallengeDirection, str] = ChallengeDirection.STANDARD,
        start_date: Optional[date] = None,
        start_amount: Optional[Amount] = None,
        step_amount: Amount = 0,
        icon: Optional[str] = None,
        linked_account_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> EnrichedChallenge:
        """Build a challenge from a template and persist it."""
        challenge = build_template_challenge(
            template,
            title=title,
            total_weeks=total_weeks or self._settings.default_total_weeks,
            direction=direction,
            start_date=start_date,
            start_amount=start_amount,
            step_amount=step_amount,
            icon=icon,
            linked_account_id=linked_account_id,
            minimum_deposit=self._settings.minimum_template_deposit,
        )
        return await self.create_challenge(challenge, correlation_id=correlation_id)

    async def get_challenge(self, challenge_id: UUID) -> EnrichedChallenge:
        return enrich(await self._store.get(challenge_id))

    async def list_challenges(
        self,
        status: Optional[ChallengeStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[EnrichedChallenge]:
        challenges = await self._store.list_challenges(status=status, limit=limit, offset=offset)
        return [enrich(c) for c in challenges]

    async def delete_challenge(
        self,
        challenge_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()
        deleted = await self._store.delete(challenge_id)

        if deleted and self._audit_logger:
            await self._audit_logger.log_challenge_deleted(
                challenge_id=challenge_id,
                correlation_id=correlation_id,
            )

        return deleted

    async def mark_week_paid(
        self,
        challenge_id: UUID,
        week: int,
        amount: Optional[Amount] = None,
        create_transaction: bool = False,
        account_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> MarkWeekPaidResult:
        """
        Record a deposit for one week.

        Args:
            challenge_id: Challenge to update
            week: Week being paid
            amount: Amount deposited; None pays the scheduled amount
            create_transaction: Also write an expense to the ledger
            account_id: Ledger account; defaults to the challenge's linked account
            correlation_id: Correlation ID for the audit trail

        Returns:
            MarkWeekPaidResult with the saved challenge (enriched) and the
            outcome of the ledger write, if one was requested

        Raises:
            NotFoundError: Unknown challenge
            InvalidScheduleError: Week out of range or negative amount
            ConflictError: The challenge changed since it was loaded
        """
        correlation_id = correlation_id or create_correlation_id()
        current = await self._store.get(challenge_id)

        if amount is None:
            validate_week(week, current.total_weeks)
            amounts, _ = resolve_schedule(current)
            amount = amounts[week - 1]

        saved = await self._save(mark_week_paid(current, week, amount), correlation_id)

        deposit = next(d for d in saved.deposit_history if d.week == week)
        completed_now = (
            saved.status == ChallengeStatus.COMPLETED
            and current.status != ChallengeStatus.COMPLETED
        )

        logger.info(
            "week_marked_paid",
            challenge_id=str(saved.id),
            week=week,
            amount=str(deposit.amount),
            current_week=saved.current_week,
        )

        if self._audit_logger:
            await self._audit_logger.log_week_marked_paid(
                challenge_id=saved.id,
                week=week,
                amount=deposit.amount,
                current_week=saved.current_week,
                total_deposited=saved.total_deposited,
                correlation_id=correlation_id,
            )
            if completed_now:
                await self._audit_logger.log_challenge_completed(
                    challenge_id=saved.id,
                    total_deposited=saved.total_deposited,
                    correlation_id=correlation_id,
                )

        ledger_entry = None
        ledger_error = None
        if create_transaction:
            ledger_entry, ledger_error = await self._write_ledger_entry(
                saved, week, deposit.amount, deposit.date,
                account_id or saved.linked_account_id,
                correlation_id,
            )

        return MarkWeekPaidResult(
            challenge=enrich(saved),
            deposit=deposit,
            completed_now=completed_now,
            ledger_entry=ledger_entry,
            ledger_error=ledger_error,
        )

    async def _write_ledger_entry(
        self,
        challenge: Challenge,
        week: int,
        amount: Decimal,
        entry_date: date,
        account_id: Optional[str],
        correlation_id: UUID,
    ) -> tuple[Optional[LedgerEntry], Optional[str]]:
        if not account_id or self._ledger is None:
            logger.info(
                "ledger_entry_skipped",
                challenge_id=str(challenge.id),
                week=week,
                has_account=bool(account_id),
                has_ledger=self._ledger is not None,
            )
            return None, None

        entry = LedgerEntry(
            type=LedgerEntryType.EXPENSE,
            amount=amount,
            category=self._settings.savings_category,
            description=self._settings.ledger_description_template.format(
                title=challenge.title,
                week=week,
            ),
            date=entry_date,
            account_id=account_id,
            paid=True,
            challenge_id=challenge.id,
            week=week,
        )

        try:
            await self._ledger.append_entry(entry)
        except Exception as e:
            logger.warning(
                "ledger_write_failed",
                challenge_id=str(challenge.id),
                week=week,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_ledger_write_failed(
                    challenge_id=challenge.id,
                    week=week,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return entry, str(e)

        if self._audit_logger:
            await self._audit_logger.log_ledger_entry_created(
                entry_id=entry.id,
                challenge_id=challenge.id,
                amount=amount,
                account_id=account_id,
                correlation_id=correlation_id,
            )
        return entry, None

    async def toggle_pause(
        self,
        challenge_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> EnrichedChallenge:
        """
        Pause an active challenge or resume a paused one.

        Raises:
            ChallengeStateError: The challenge is completed
            ConflictError: The challenge changed since it was loaded
        """
        correlation_id = correlation_id or create_correlation_id()
        current = await self._store.get(challenge_id)
        saved = await self._save(toggle_pause(current), correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_status_toggled(
                challenge_id=saved.id,
                old_status=current.status.value,
                new_status=saved.status.value,
                correlation_id=correlation_id,
            )

        return enrich(saved)

    def simulate(
        self,
        start_amount: Amount,
        step_amount: Amount,
        total_weeks: int,
        direction: Union[ChallengeDirection, str] = ChallengeDirection.STANDARD,
    ) -> Simulation:
        """What-if preview; nothing is stored."""
        self._check_length(total_weeks)
        return simulate(start_amount, step_amount, total_weeks, direction)

    def simulate_template(
        self,
        template: Union[ChallengeTemplate, str],
        total_weeks: Optional[int] = None,
        direction: Union[ChallengeDirection, str] = ChallengeDirection.STANDARD,
    ) -> Simulation:
        """Preview a 5K / 10K schedule before creating it."""
        total_weeks = total_weeks or self._settings.default_total_weeks
        self._check_length(total_weeks)
        return simulate_template(
            template,
            total_weeks,
            direction,
            minimum_deposit=self._settings.minimum_template_deposit,
        )


def create_challenge_service(
    use_storage: bool = True,
) -> tuple[ChallengeService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create the challenge service.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False for in-memory storage.

    Returns:
        (challenge_service, sheets_client)
    """
    sheets_client = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            service = ChallengeService(
                store=GoogleSheetsChallengeStore(sheets_client),
                ledger=GoogleSheetsLedgerSink(sheets_client),
                audit_logger=AuditLogger(GoogleSheetsAuditStorage(sheets_client)),
            )
            return service, sheets_client
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))

    service = ChallengeService(
        store=InMemoryChallengeStore(),
        ledger=InMemoryLedgerSink(),
        audit_logger=AuditLogger(),  # Local-only logging
    )
    return service, None
