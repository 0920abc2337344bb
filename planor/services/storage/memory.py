"""
In-Memory Storage

Process-local implementations of the storage interfaces. Used by the
tests and as the fallback when Google Sheets is not configured.

Records are copied on the way in and out so callers can never mutate
what the store holds.
"""

from typing import Optional
from uuid import UUID

from planor.models.audit import AuditEvent
from planor.models.challenge import Challenge, ChallengeStatus, LedgerEntry, utc_now
from planor.services.storage.interface import (
    AuditStorageInterface,
    ChallengeStoreInterface,
    ConflictError,
    DuplicateError,
    LedgerSinkInterface,
    NotFoundError,
)


class InMemoryChallengeStore(ChallengeStoreInterface):
    """Dict-backed challenge store keyed by challenge ID."""

    def __init__(self):
        self._records: dict[UUID, Challenge] = {}

    async def create(self, challenge: Challenge) -> Challenge:
        if challenge.id in self._records:
            raise DuplicateError(f"Challenge already exists: {challenge.id}")

        record = challenge.to_record().model_copy(update={"version": 0})
        self._records[record.id] = record
        return record.model_copy(deep=True)

    async def get(self, challenge_id: UUID) -> Challenge:
        record = self._records.get(challenge_id)
        if record is None:
            raise NotFoundError(f"Challenge not found: {challenge_id}")
        return record.model_copy(deep=True)

    async def put(self, challenge: Challenge) -> Challenge:
        stored = self._records.get(challenge.id)
        if stored is None:
            raise NotFoundError(f"Challenge not found: {challenge.id}")
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
        self._records[record.id] = record
        return record.model_copy(deep=True)

    async def delete(self, challenge_id: UUID) -> bool:
        return self._records.pop(challenge_id, None) is not None

    async def list_challenges(
        self,
        status: Optional[ChallengeStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Challenge]:
        records = [
            r for r in self._records.values()
            if status is None or r.status == status
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in records[offset:offset + limit]]


class InMemoryLedgerSink(LedgerSinkInterface):
    """Collects ledger entries in a list."""

    def __init__(self):
        self.entries: list[LedgerEntry] = []

    async def append_entry(self, entry: LedgerEntry) -> None:
        self.entries.append(entry)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        events = [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
