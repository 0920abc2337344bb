"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the production backend; the in-memory stores back the
tests and unconfigured local runs.
"""

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
from planor.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryChallengeStore,
    InMemoryLedgerSink,
)
from planor.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsChallengeStore,
    GoogleSheetsClient,
    GoogleSheetsLedgerSink,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ChallengeStoreInterface",
    "LedgerSinkInterface",
    # Exceptions
    "ConflictError",
    "ConnectionError",
    "DuplicateError",
    "LedgerWriteError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryChallengeStore",
    "InMemoryLedgerSink",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsChallengeStore",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerSink",
]
