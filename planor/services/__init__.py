"""Services package."""

from planor.services.storage import (
    AuditStorageInterface,
    ChallengeStoreInterface,
    ConflictError,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsChallengeStore,
    GoogleSheetsClient,
    GoogleSheetsLedgerSink,
    InMemoryAuditStorage,
    InMemoryChallengeStore,
    InMemoryLedgerSink,
    LedgerSinkInterface,
    LedgerWriteError,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ChallengeStoreInterface",
    "ConflictError",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsChallengeStore",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerSink",
    "InMemoryAuditStorage",
    "InMemoryChallengeStore",
    "InMemoryLedgerSink",
    "LedgerSinkInterface",
    "LedgerWriteError",
    "NotFoundError",
    "StorageError",
]
