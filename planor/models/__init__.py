"""
Data Models Package

This package contains all Pydantic models used by the savings challenge engine.
All data flowing through the system must conform to these schemas.
"""

from planor.models.challenge import (
    Challenge,
    ChallengeDirection,
    ChallengeStatus,
    ChallengeType,
    Deposit,
    DepositStatus,
    EnrichedChallenge,
    GrowthPoint,
    LedgerEntry,
    LedgerEntryType,
    MarkWeekPaidResult,
    Simulation,
    WeekCell,
    WeekState,
)
from planor.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Challenge models
    "Challenge",
    "ChallengeDirection",
    "ChallengeStatus",
    "ChallengeType",
    "Deposit",
    "DepositStatus",
    "EnrichedChallenge",
    "GrowthPoint",
    "LedgerEntry",
    "LedgerEntryType",
    "MarkWeekPaidResult",
    "Simulation",
    "WeekCell",
    "WeekState",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
