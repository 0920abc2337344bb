"""
Progression Calculator

Weekly deposit schedules as arithmetic sequences:

    standard:  a(w) = start + (w - 1) * step
    inverse:   a(w) = start + (n - w) * step
    total:     S(n) = n * (a(1) + a(n)) / 2

Inverse is the standard sequence read backwards, so both directions
share the same total.

Everything here is pure Decimal arithmetic with no state. A negative
step is accepted and simply yields a descending schedule; range checks
on weeks are explicit and raise InvalidScheduleError.
"""

from decimal import Decimal, InvalidOperation
from typing import Union

from planor.engine.exceptions import InvalidScheduleError
from planor.models.challenge import ChallengeDirection


Amount = Union[Decimal, int, float, str]


def to_decimal(value: Amount) -> Decimal:
    """
    Coerce a money input to Decimal (floats go through str to stay exact).

    Raises:
        InvalidScheduleError: unparseable input, NaN or infinity
    """
    try:
        if isinstance(value, float):
            value = str(value)
        result = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidScheduleError(f"Not a valid amount: {value!r}") from e

    if not result.is_finite():
        raise InvalidScheduleError(f"Amount must be finite, got {result}")
    return result


def validate_total_weeks(total_weeks: int) -> None:
    if total_weeks < 1:
        raise InvalidScheduleError(
            f"total_weeks must be at least 1, got {total_weeks}"
        )


def validate_week(week: int, total_weeks: int) -> None:
    validate_total_weeks(total_weeks)
    if not 1 <= week <= total_weeks:
        raise InvalidScheduleError(
            f"Week {week} is outside the schedule (1-{total_weeks})"
        )


def week_amount(
    week: int,
    total_weeks: int,
    start_amount: Amount,
    step_amount: Amount,
    direction: Union[ChallengeDirection, str] = ChallengeDirection.STANDARD,
) -> Decimal:
    """Scheduled deposit for one week of the progression."""
    validate_week(week, total_weeks)
    start = to_decimal(start_amount)
    step = to_decimal(step_amount)

    if ChallengeDirection(direction) == ChallengeDirection.STANDARD:
        return start + (week - 1) * step
    return start + (total_weeks - week) * step


def last_week_amount(
    start_amount: Amount,
    step_amount: Amount,
    total_weeks: int,
) -> Decimal:
    """Largest term of the progression: a(n) = start + (n - 1) * step."""
    validate_total_weeks(total_weeks)
    return to_decimal(start_amount) + (total_weeks - 1) * to_decimal(step_amount)


def target_total(
    start_amount: Amount,
    step_amount: Amount,
    total_weeks: int,
) -> Decimal:
    """Closed-form sum of the whole schedule."""
    last = last_week_amount(start_amount, step_amount, total_weeks)
    return total_weeks * (to_decimal(start_amount) + last) / 2


def weekly_amounts(
    start_amount: Amount,
    step_amount: Amount,
    total_weeks: int,
    direction: Union[ChallengeDirection, str] = ChallengeDirection.STANDARD,
) -> list[Decimal]:
    """Every scheduled deposit, week 1 first."""
    validate_total_weeks(total_weeks)
    return [
        week_amount(week, total_weeks, start_amount, step_amount, direction)
        for week in range(1, total_weeks + 1)
    ]
