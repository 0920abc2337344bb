"""
Deposit Reconciler

The only state transitions of a challenge: recording a week as paid
and pausing/resuming. Each function takes a Challenge and returns a new
one; the input is never mutated and nothing is persisted here.

DESIGN DECISION: current_week and total_deposited are recomputed from
the whole deposit history on every payment instead of being nudged
incrementally. Re-paying a week therefore replaces the old amount
rather than double counting it, and a record that drifted is healed
by the next payment.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from planor.engine.exceptions import ChallengeStateError, InvalidScheduleError
from planor.engine.progression import (
    Amount,
    last_week_amount,
    target_total,
    to_decimal,
    validate_week,
    weekly_amounts,
)
from planor.models.challenge import (
    Challenge,
    ChallengeDirection,
    ChallengeStatus,
    Deposit,
    DepositStatus,
    Simulation,
    utc_now,
)


def mark_week_paid(
    challenge: Challenge,
    week: int,
    amount: Amount,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> Challenge:
    """
    Record a paid deposit for one week.

    Args:
        challenge: Current record
        week: Week being paid (1..total_weeks)
        amount: Amount actually deposited; may differ from the schedule
        today: Deposit date, defaults to the current day
        now: Completion timestamp, defaults to the current UTC time

    Returns:
        Updated challenge. Status becomes COMPLETED once the final
        week is paid, regardless of a previous PAUSED status.

    Raises:
        InvalidScheduleError: week out of range or negative amount
    """
    validate_week(week, challenge.total_weeks)
    paid_amount = to_decimal(amount)
    if paid_amount < 0:
        raise InvalidScheduleError(f"Deposit amount cannot be negative, got {paid_amount}")

    record = challenge.to_record()
    deposit = Deposit(
        week=week,
        date=today or date.today(),
        status=DepositStatus.PAID,
        amount=paid_amount,
    )

    history = list(record.deposit_history)
    for index, existing in enumerate(history):
        if existing.week == week:
            history[index] = deposit
            break
    else:
        history.append(deposit)

    paid = [d for d in history if d.status == DepositStatus.PAID]
    total_deposited = sum((d.amount for d in paid), Decimal("0"))
    current_week = max((d.week for d in paid), default=0)

    status = record.status
    completed_at = record.completed_at
    if current_week >= record.total_weeks:
        status = ChallengeStatus.COMPLETED
        if completed_at is None:
            completed_at = now or utc_now()

    return record.model_copy(update={
        "deposit_history": history,
        "total_deposited": total_deposited,
        "current_week": current_week,
        "status": status,
        "completed_at": completed_at,
    })


def toggle_pause(challenge: Challenge) -> Challenge:
    """Flip PAUSED to ACTIVE and ACTIVE to PAUSED."""
    if challenge.status == ChallengeStatus.COMPLETED:
        raise ChallengeStateError(
            f"Challenge {challenge.id} is completed and cannot be paused or resumed"
        )

    new_status = (
        ChallengeStatus.ACTIVE
        if challenge.status == ChallengeStatus.PAUSED
        else ChallengeStatus.PAUSED
    )
    return challenge.to_record().model_copy(update={"status": new_status})


def simulate(
    start_amount: Amount,
    step_amount: Amount,
    total_weeks: int,
    direction: Union[ChallengeDirection, str] = ChallengeDirection.STANDARD,
) -> Simulation:
    """Preview a progression without creating a challenge."""
    amounts = weekly_amounts(start_amount, step_amount, total_weeks, direction)
    total = target_total(start_amount, step_amount, total_weeks)
    start = to_decimal(start_amount)
    last = last_week_amount(start_amount, step_amount, total_weeks)

    # Inverse pays the peak first
    if ChallengeDirection(direction) == ChallengeDirection.INVERSE:
        first, last = last, start
    else:
        first = start

    average = total / total_weeks
    return Simulation(
        target_total=total,
        weekly_amounts=amounts,
        first_week_amount=first,
        last_week_amount=last,
        average_weekly=average,
        min_weekly=min(amounts),
        max_weekly=max(amounts),
        monthly_average=average * 4,
    )
