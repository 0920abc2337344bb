"""
Audit Models for Planor Savings Challenges

Every state change of a challenge is logged for audit purposes.
This provides:
1. Complete traceability of deposits and status changes
2. Debugging information when a total looks wrong
3. A record of ledger writes that failed after a deposit was saved

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from planor.models.challenge import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Challenge lifecycle
    CHALLENGE_CREATED = "challenge_created"
    CHALLENGE_DELETED = "challenge_deleted"
    CHALLENGE_PAUSED = "challenge_paused"
    CHALLENGE_RESUMED = "challenge_resumed"
    CHALLENGE_COMPLETED = "challenge_completed"

    # Deposits
    WEEK_MARKED_PAID = "week_marked_paid"

    # Ledger integration
    LEDGER_ENTRY_CREATED = "ledger_entry_created"
    LEDGER_WRITE_FAILED = "ledger_write_failed"

    # Persistence
    WRITE_CONFLICT = "write_conflict"
    SAVE_FAILED = "save_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'challenge', 'ledger_entry')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one mark-paid request)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.challenge_created(challenge_id, title, correlation_id)
        event = AuditEventBuilder.week_marked_paid(challenge_id, 3, amount, 3, correlation_id)
    """

    @staticmethod
    def challenge_created(
        challenge_id: UUID,
        title: str,
        total_weeks: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHALLENGE_CREATED,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description=f"Challenge created: {title}",
            details={
                "title": title,
                "total_weeks": total_weeks,
            },
            is_user_action=True,
        )

    @staticmethod
    def challenge_deleted(
        challenge_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHALLENGE_DELETED,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description="Challenge deleted",
            is_user_action=True,
        )

    @staticmethod
    def status_toggled(
        challenge_id: UUID,
        old_status: str,
        new_status: str,
        correlation_id: UUID
    ) -> AuditEvent:
        event_type = (
            AuditEventType.CHALLENGE_PAUSED
            if new_status == "paused"
            else AuditEventType.CHALLENGE_RESUMED
        )
        return AuditEvent(
            event_type=event_type,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description=f"Challenge status changed: {old_status} -> {new_status}",
            details={
                "old_status": old_status,
                "new_status": new_status,
            },
            is_user_action=True,
        )

    @staticmethod
    def week_marked_paid(
        challenge_id: UUID,
        week: int,
        amount: Decimal,
        current_week: int,
        total_deposited: Decimal,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WEEK_MARKED_PAID,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description=f"Week {week} marked paid: {amount}",
            details={
                "week": week,
                "amount": str(amount),
                "current_week": current_week,
                "total_deposited": str(total_deposited),
            },
            is_user_action=True,
        )

    @staticmethod
    def challenge_completed(
        challenge_id: UUID,
        total_deposited: Decimal,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHALLENGE_COMPLETED,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description=f"Challenge completed with {total_deposited} deposited",
            details={
                "total_deposited": str(total_deposited),
            },
        )

    @staticmethod
    def ledger_entry_created(
        entry_id: UUID,
        challenge_id: UUID,
        amount: Decimal,
        account_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_ENTRY_CREATED,
            entity_type="ledger_entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Ledger entry of {amount} written to account {account_id}",
            details={
                "challenge_id": str(challenge_id),
                "amount": str(amount),
                "account_id": account_id,
            },
        )

    @staticmethod
    def ledger_write_failed(
        challenge_id: UUID,
        week: int,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_WRITE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description=f"Ledger entry for week {week} could not be written; deposit kept",
            error_message=error_message,
            details={
                "week": week,
            },
        )

    @staticmethod
    def write_conflict(
        challenge_id: UUID,
        expected_version: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_CONFLICT,
            severity=AuditSeverity.WARNING,
            entity_type="challenge",
            entity_id=challenge_id,
            correlation_id=correlation_id,
            description="Challenge was modified concurrently; update rejected",
            details={
                "expected_version": expected_version,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
