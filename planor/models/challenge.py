"""
Core Data Models for Planor Savings Challenges

These models define the strict schemas for every record the challenge
engine reads or produces. They are designed to:
1. Enforce the record invariants at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Keep money exact (Decimal, never float)

DESIGN DECISION: A Challenge is a plain value. The engine never mutates
one in place; every operation returns a new copy for the caller to persist.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def utc_now() -> datetime:
    """Timezone-aware current time used for record timestamps."""
    return datetime.now(timezone.utc)


Money = Annotated[Decimal, Field(ge=0)]

# Lets record fields be named "date" without shadowing the type
CalendarDate = date


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ChallengeDirection(str, Enum):
    """
    Shape of the weekly schedule.

    STANDARD grows from start_amount by step_amount every week.
    INVERSE is the same sequence reversed: it starts at the peak
    and shrinks back down to start_amount in the final week.
    """
    STANDARD = "standard"
    INVERSE = "inverse"


class ChallengeStatus(str, Enum):
    """
    Challenge lifecycle status.

    COMPLETED is terminal: it is reached only by paying the final
    scheduled week and cannot be paused or resumed afterwards.
    """
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class ChallengeType(str, Enum):
    """How the weekly amounts of a challenge were produced."""
    FIFTY_TWO_WEEKS = "52_weeks"       # arithmetic progression
    CUSTOM_SAVING = "custom_saving"    # explicit custom_amounts from a template


class DepositStatus(str, Enum):
    """Status of a single week's deposit. Only PAID counts towards totals."""
    PAID = "paid"
    PENDING = "pending"
    SKIPPED = "skipped"


class LedgerEntryType(str, Enum):
    """Finance transaction types understood by the ledger."""
    EXPENSE = "expense"
    INCOME = "income"


class WeekState(str, Enum):
    """Display state of one week in the challenge grid."""
    PAID = "paid"
    CURRENT = "current"
    OVERDUE = "overdue"
    UPCOMING = "upcoming"


# =============================================================================
# CORE CHALLENGE MODEL
# =============================================================================

class Deposit(BaseModel):
    """
    A recorded payment against one week of a challenge.

    The amount is what was actually deposited and may differ
    from the scheduled amount for that week.
    """
    week: int = Field(
        ...,
        ge=1,
        description="Week number this deposit pays (1-based)"
    )
    date: CalendarDate = Field(
        ...,
        description="Day the deposit was recorded"
    )
    status: DepositStatus = Field(
        default=DepositStatus.PAID,
        description="Deposit status"
    )
    amount: Money = Field(
        ...,
        description="Amount actually deposited"
    )


class Challenge(BaseModel):
    """
    A fixed-length savings challenge.

    CRITICAL: total_deposited and current_week are derived values.
    They must always agree with deposit_history; the reconciler
    recomputes both from the full history on every change.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique challenge ID"
    )
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display title"
    )
    icon: Optional[str] = Field(
        default=None,
        max_length=50,
        description="Display icon key"
    )

    # Schedule definition
    challenge_type: ChallengeType = Field(
        default=ChallengeType.FIFTY_TWO_WEEKS,
        description="How the weekly amounts are produced"
    )
    start_amount: Money = Field(
        ...,
        description="First-period deposit baseline"
    )
    step_amount: Money = Field(
        default=Decimal("0"),
        description="Per-week increment of the progression"
    )
    total_weeks: int = Field(
        ...,
        ge=1,
        description="Length of the schedule in weeks"
    )
    direction: ChallengeDirection = Field(
        default=ChallengeDirection.STANDARD,
        description="Increasing (standard) or decreasing (inverse) schedule"
    )
    custom_amounts: Optional[list[Money]] = Field(
        default=None,
        description="Explicit weekly amounts overriding the progression"
    )
    target_amount: Optional[Money] = Field(
        default=None,
        description="User-set goal, independent of the computed total"
    )
    start_date: date = Field(
        default_factory=date.today,
        description="Day the challenge started"
    )

    # Progress
    current_week: int = Field(
        default=0,
        ge=0,
        description="Highest week number confirmed paid"
    )
    total_deposited: Money = Field(
        default=Decimal("0"),
        description="Sum of all paid deposits"
    )
    deposit_history: list[Deposit] = Field(default_factory=list)
    status: ChallengeStatus = Field(
        default=ChallengeStatus.ACTIVE,
        description="Lifecycle status"
    )
    completed_at: Optional[datetime] = Field(
        default=None,
        description="When the challenge was completed"
    )

    # Integration
    linked_account_id: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Default account for ledger entries"
    )
    notification_enabled: bool = Field(
        default=True,
        description="Whether the owner wants weekly reminders"
    )

    # Bookkeeping
    version: int = Field(
        default=0,
        ge=0,
        description="Optimistic concurrency token, bumped by the store on every write"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_schedule(self) -> 'Challenge':
        """Validate the record invariants."""
        if self.current_week > self.total_weeks:
            raise ValueError("current_week cannot exceed total_weeks")

        if self.custom_amounts and len(self.custom_amounts) != self.total_weeks:
            raise ValueError(
                f"custom_amounts must have exactly {self.total_weeks} entries, "
                f"got {len(self.custom_amounts)}"
            )

        seen = set()
        for deposit in self.deposit_history:
            if deposit.week > self.total_weeks:
                raise ValueError(
                    f"Deposit week {deposit.week} is outside the {self.total_weeks}-week schedule"
                )
            if deposit.week in seen:
                raise ValueError(f"Duplicate deposit for week {deposit.week}")
            seen.add(deposit.week)

        return self

    @property
    def has_custom_schedule(self) -> bool:
        """True when custom_amounts overrides the progression."""
        return bool(self.custom_amounts) and len(self.custom_amounts) == self.total_weeks

    @property
    def paid_weeks(self) -> set[int]:
        return {d.week for d in self.deposit_history if d.status == DepositStatus.PAID}

    def to_record(self) -> 'Challenge':
        """Plain Challenge copy with any derived view fields dropped."""
        return Challenge.model_validate(
            self.model_dump(include=set(Challenge.model_fields))
        )


class EnrichedChallenge(Challenge):
    """
    A Challenge plus the view fields derived from it.

    Produced by the enricher; never persisted.
    """
    weekly_amounts: list[Decimal] = Field(default_factory=list)
    target_total: Decimal = Field(
        ...,
        description="Sum of the weekly schedule"
    )
    current_week_amount: Decimal = Field(
        ...,
        description="Scheduled amount for the week after current_week (0 when none)"
    )
    progress_percent: Decimal = Field(
        ...,
        description="total_deposited / target_total * 100, not clamped"
    )
    weeks_remaining: int = Field(ge=0)
    projected_completion: date = Field(
        ...,
        description="start_date + total_weeks * 7 days"
    )
    next_unpaid_week: Optional[int] = Field(
        default=None,
        description="Lowest week without a paid deposit"
    )
    target_progress_percent: Optional[Decimal] = Field(
        default=None,
        description="Progress against target_amount when one is set"
    )


# =============================================================================
# SIMULATION AND INSIGHT MODELS
# =============================================================================

class Simulation(BaseModel):
    """Preview of a progression before a challenge is created."""

    target_total: Decimal
    weekly_amounts: list[Decimal]
    first_week_amount: Decimal
    last_week_amount: Decimal
    average_weekly: Decimal
    min_weekly: Decimal
    max_weekly: Decimal
    monthly_average: Decimal = Field(
        ...,
        description="Average over a four-week month"
    )
    first_month_weeks: Optional[list[Decimal]] = Field(
        default=None,
        description="First four weekly amounts; set for template previews"
    )


class WeekCell(BaseModel):
    """One cell of the challenge week grid."""

    week: int = Field(ge=1)
    amount: Decimal = Field(
        ...,
        description="Scheduled amount for the week"
    )
    state: WeekState
    paid_amount: Optional[Decimal] = None


class GrowthPoint(BaseModel):
    """One point of the savings growth chart."""

    week: int = Field(ge=1)
    scheduled: Decimal = Field(
        ...,
        description="Scheduled deposit for this week"
    )
    accumulated: Decimal = Field(
        ...,
        description="Paid total up to and including this week"
    )
    projected: Decimal = Field(
        ...,
        description="Scheduled total up to and including this week"
    )


# =============================================================================
# LEDGER MODELS
# =============================================================================

class LedgerEntry(BaseModel):
    """
    A finance transaction emitted when a challenge deposit is recorded.

    The ledger itself belongs to the finance module; this is only
    the shape of what we append to it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    type: LedgerEntryType = Field(default=LedgerEntryType.EXPENSE)
    amount: Money
    category: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., max_length=500)
    date: CalendarDate
    account_id: str = Field(..., min_length=1, max_length=100)
    paid: bool = True

    # Traceability back to the challenge
    challenge_id: Optional[UUID] = None
    week: Optional[int] = Field(default=None, ge=1)


class MarkWeekPaidResult(BaseModel):
    """
    Outcome of recording a week as paid.

    The challenge update is committed before the ledger entry is
    attempted, so ledger_error can be set while the challenge is
    already saved.
    """

    challenge: EnrichedChallenge
    deposit: Deposit
    completed_now: bool = Field(
        default=False,
        description="Did this payment complete the challenge?"
    )
    ledger_entry: Optional[LedgerEntry] = None
    ledger_error: Optional[str] = None

    @property
    def ledger_written(self) -> bool:
        return self.ledger_entry is not None and self.ledger_error is None
