"""
Audit Logger

DESIGN DECISION: Every change to a challenge is logged.
This provides:
1. Complete traceability of deposits
2. A record of ledger writes that failed after the deposit was saved
3. Debugging capability when totals look wrong

The audit logger:
- Always writes a structured local log line
- Persists to audit storage when one is configured
- Never raises: a failed audit write must not undo a saved deposit
- Supports correlation IDs to trace the events of one request
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from planor.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from planor.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("planor.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_challenge_created(
        self,
        challenge_id: UUID,
        title: str,
        total_weeks: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.challenge_created(
            challenge_id=challenge_id,
            title=title,
            total_weeks=total_weeks,
            correlation_id=correlation_id,
        ))

    async def log_challenge_deleted(
        self,
        challenge_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.challenge_deleted(
            challenge_id=challenge_id,
            correlation_id=correlation_id,
        ))

    async def log_status_toggled(
        self,
        challenge_id: UUID,
        old_status: str,
        new_status: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.status_toggled(
            challenge_id=challenge_id,
            old_status=old_status,
            new_status=new_status,
            correlation_id=correlation_id,
        ))

    async def log_week_marked_paid(
        self,
        challenge_id: UUID,
        week: int,
        amount: Decimal,
        current_week: int,
        total_deposited: Decimal,
        correlation_id: UUID,
    ) -> None:
        """Log a recorded deposit."""
        await self.log(AuditEventBuilder.week_marked_paid(
            challenge_id=challenge_id,
            week=week,
            amount=amount,
            current_week=current_week,
            total_deposited=total_deposited,
            correlation_id=correlation_id,
        ))

    async def log_challenge_completed(
        self,
        challenge_id: UUID,
        total_deposited: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.challenge_completed(
            challenge_id=challenge_id,
            total_deposited=total_deposited,
            correlation_id=correlation_id,
        ))

    async def log_ledger_entry_created(
        self,
        entry_id: UUID,
        challenge_id: UUID,
        amount: Decimal,
        account_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_entry_created(
            entry_id=entry_id,
            challenge_id=challenge_id,
            amount=amount,
            account_id=account_id,
            correlation_id=correlation_id,
        ))

    async def log_ledger_write_failed(
        self,
        challenge_id: UUID,
        week: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a ledger write that failed after the deposit was saved."""
        await self.log(AuditEventBuilder.ledger_write_failed(
            challenge_id=challenge_id,
            week=week,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_write_conflict(
        self,
        challenge_id: UUID,
        expected_version: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.write_conflict(
            challenge_id=challenge_id,
            expected_version=expected_version,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., marking a week paid).
    Pass it through all subsequent operations.
    """
    return uuid4()
