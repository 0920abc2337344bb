"""
Abstract Storage Interface

DESIGN DECISION: The engine is pure; persistence sits behind these
interfaces so that:
1. Google Sheets can be swapped for a real database later
2. In-memory storage can be used for testing
3. The orchestrator never knows which backend it is talking to

Challenges are read and replaced as whole records. Every write is
checked against the version the caller read, so two clients paying
weeks of the same challenge cannot silently overwrite each other.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from planor.models.audit import AuditEvent
from planor.models.challenge import Challenge, ChallengeStatus, LedgerEntry


class ChallengeStoreInterface(ABC):
    """
    Abstract interface for challenge storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def create(self, challenge: Challenge) -> Challenge:
        """
        Insert a new challenge.

        Returns:
            The stored record (version 0)

        Raises:
            DuplicateError: A challenge with this ID already exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get(self, challenge_id: UUID) -> Challenge:
        """
        Retrieve a challenge by its ID.

        Raises:
            NotFoundError: If no challenge has this ID
        """
        pass

    @abstractmethod
    async def put(self, challenge: Challenge) -> Challenge:
        """
        Replace a stored challenge.

        challenge.version must equal the stored version. The store
        bumps the version, keeps the original created_at and refreshes
        updated_at.

        Returns:
            The record as stored

        Raises:
            NotFoundError: If the challenge does not exist
            ConflictError: If the stored version moved on since it was read
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, challenge_id: UUID) -> bool:
        """
        Delete a challenge by ID.

        Returns:
            True if a record was deleted, False if none existed
        """
        pass

    @abstractmethod
    async def list_challenges(
        self,
        status: Optional[ChallengeStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Challenge]:
        """
        List challenges, newest first.

        Args:
            status: Only return challenges with this status
            limit: Maximum number of results
            offset: Number of results to skip
        """
        pass


class LedgerSinkInterface(ABC):
    """Destination for the finance transactions emitted by deposits."""

    @abstractmethod
    async def append_entry(self, entry: LedgerEntry) -> None:
        """
        Append one ledger entry.

        Raises:
            LedgerWriteError: If the entry could not be written
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events sharing a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Events about one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConflictError(StorageError):
    """The record changed since it was read (stale version)."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class LedgerWriteError(StorageError):
    """A ledger entry could not be written."""
    pass
