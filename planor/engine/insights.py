"""
Challenge Insights

Read-only views over a challenge for the dashboard: the week grid,
the growth chart series and the next week awaiting payment.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from planor.engine.enricher import next_unpaid_week, resolve_schedule
from planor.models.challenge import (
    Challenge,
    DepositStatus,
    GrowthPoint,
    WeekCell,
    WeekState,
)


def calendar_week(challenge: Challenge, today: Optional[date] = None) -> int:
    """Week of the schedule that contains today, clamped to [1, total_weeks]."""
    today = today or date.today()
    elapsed_weeks = (today - challenge.start_date).days // 7
    return max(1, min(challenge.total_weeks, elapsed_weeks + 1))


def week_statuses(challenge: Challenge, today: Optional[date] = None) -> list[WeekCell]:
    """One grid cell per week, week 1 first."""
    amounts, _ = resolve_schedule(challenge)
    current = calendar_week(challenge, today)
    paid = {
        d.week: d.amount
        for d in challenge.deposit_history
        if d.status == DepositStatus.PAID
    }

    cells = []
    for week, amount in enumerate(amounts, start=1):
        if week in paid:
            state = WeekState.PAID
        elif week == current:
            state = WeekState.CURRENT
        elif week < current:
            state = WeekState.OVERDUE
        else:
            state = WeekState.UPCOMING
        cells.append(WeekCell(
            week=week,
            amount=amount,
            state=state,
            paid_amount=paid.get(week),
        ))
    return cells


def growth_series(challenge: Challenge) -> list[GrowthPoint]:
    """
    Cumulative savings per week.

    accumulated only counts weeks actually paid, so it flattens out
    over missed weeks while projected keeps climbing with the schedule.
    """
    amounts, _ = resolve_schedule(challenge)
    paid = {
        d.week: d.amount
        for d in challenge.deposit_history
        if d.status == DepositStatus.PAID
    }

    points = []
    accumulated = Decimal("0")
    projected = Decimal("0")
    for week, scheduled in enumerate(amounts, start=1):
        accumulated += paid.get(week, Decimal("0"))
        projected += scheduled
        points.append(GrowthPoint(
            week=week,
            scheduled=scheduled,
            accumulated=accumulated,
            projected=projected,
        ))
    return points


__all__ = [
    "calendar_week",
    "growth_series",
    "next_unpaid_week",
    "week_statuses",
]
