"""
Challenge Enricher

Attaches the derived view fields (weekly schedule, totals, progress)
to a stored Challenge. Nothing here is persisted; enrich() is called
on every read so the derived values can never drift from the record.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Optional

from planor.engine.exceptions import InvalidScheduleError
from planor.engine.progression import target_total, weekly_amounts
from planor.models.challenge import Challenge, EnrichedChallenge


def resolve_schedule(challenge: Challenge) -> tuple[list[Decimal], Decimal]:
    """
    Weekly amounts and their total for a challenge.

    A custom schedule of exactly total_weeks entries wins over the
    progression; start/step/direction are then ignored entirely.
    """
    if challenge.custom_amounts and not challenge.has_custom_schedule:
        raise InvalidScheduleError(
            f"custom_amounts has {len(challenge.custom_amounts)} entries "
            f"for a {challenge.total_weeks}-week challenge"
        )
    if challenge.has_custom_schedule:
        amounts = list(challenge.custom_amounts)
        return amounts, sum(amounts, Decimal("0"))

    amounts = weekly_amounts(
        challenge.start_amount,
        challenge.step_amount,
        challenge.total_weeks,
        challenge.direction,
    )
    total = target_total(
        challenge.start_amount,
        challenge.step_amount,
        challenge.total_weeks,
    )
    return amounts, total


def next_unpaid_week(challenge: Challenge) -> Optional[int]:
    """Lowest week with no paid deposit, or None once every week is paid."""
    paid = challenge.paid_weeks
    for week in range(1, challenge.total_weeks + 1):
        if week not in paid:
            return week
    return None


def enrich(challenge: Challenge) -> EnrichedChallenge:
    amounts, total = resolve_schedule(challenge)

    upcoming_week = challenge.current_week + 1
    if upcoming_week <= challenge.total_weeks:
        current_week_amount = amounts[upcoming_week - 1]
    else:
        current_week_amount = Decimal("0")

    if total > 0:
        progress_percent = challenge.total_deposited / total * 100
    else:
        progress_percent = Decimal("0")

    target_progress_percent = None
    if challenge.target_amount:
        target_progress_percent = challenge.total_deposited / challenge.target_amount * 100

    return EnrichedChallenge(
        **challenge.model_dump(include=set(Challenge.model_fields)),
        weekly_amounts=amounts,
        target_total=total,
        current_week_amount=current_week_amount,
        progress_percent=progress_percent,
        weeks_remaining=challenge.total_weeks - challenge.current_week,
        projected_completion=challenge.start_date + timedelta(weeks=challenge.total_weeks),
        next_unpaid_week=next_unpaid_week(challenge),
        target_progress_percent=target_progress_percent,
    )
