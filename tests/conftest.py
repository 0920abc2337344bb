"""
Pytest configuration and shared fixtures.
"""

from datetime import date
from decimal import Decimal

import pytest

from planor.audit import AuditLogger
from planor.config import ChallengeSettings
from planor.models import Challenge
from planor.orchestrator import ChallengeService
from planor.services.storage import (
    InMemoryAuditStorage,
    InMemoryChallengeStore,
    InMemoryLedgerSink,
)


@pytest.fixture
def challenge() -> Challenge:
    """Four-week standard challenge: 10, 15, 20, 25 (total 70)."""
    return Challenge(
        title="Four Weeks",
        start_amount=Decimal("10"),
        step_amount=Decimal("5"),
        total_weeks=4,
        start_date=date(2024, 1, 1),
    )


@pytest.fixture
def challenge_settings() -> ChallengeSettings:
    return ChallengeSettings(
        savings_category="Savings",
        ledger_description_template="Challenge {title} - Week {week}",
    )


@pytest.fixture
def store() -> InMemoryChallengeStore:
    return InMemoryChallengeStore()


@pytest.fixture
def ledger() -> InMemoryLedgerSink:
    return InMemoryLedgerSink()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def service(store, ledger, audit_storage, challenge_settings) -> ChallengeService:
    return ChallengeService(
        store=store,
        ledger=ledger,
        audit_logger=AuditLogger(audit_storage),
        settings=challenge_settings,
    )
