"""
Challenge Templates

Ready-made challenges aimed at a round savings target (5K, 10K) plus a
"custom" template that is just a plain progression.

Target templates do not use an arithmetic progression. Their weekly
amounts follow the salary cycle method: money is easiest to set aside
right after payday, so each 4-week month front-loads its first week
(40/30/20/10 %). Monthly targets grow slowly over the challenge
(85 % to 115 % of the average month) so the effort ramps up gently.

DESIGN DECISION: Amounts are whole currency units. Rounding drift is
pushed onto the heavy first week of each month and any final remainder
onto the last week, so the schedule always sums exactly to the target.
"""

from datetime import date
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field

from planor.engine.exceptions import InvalidScheduleError
from planor.engine.progression import Amount, to_decimal, validate_total_weeks
from planor.models.challenge import Challenge, ChallengeDirection, ChallengeType, Simulation


WEEKS_PER_MONTH = 4

# Share of a month's target paid in each of its weeks
SALARY_CYCLE_WEIGHTS = (
    Decimal("0.40"),
    Decimal("0.30"),
    Decimal("0.20"),
    Decimal("0.10"),
)

GROWTH_FLOOR = Decimal("0.85")
GROWTH_SPAN = Decimal("0.30")


class ChallengeTemplate(str, Enum):
    CUSTOM = "custom"
    FIVE_K = "5k"
    TEN_K = "10k"


class TemplateDefinition(BaseModel):
    """Display data and target of a template."""

    name: str
    description: str
    icon: str
    target_amount: Decimal = Field(
        ...,
        ge=0,
        description="Savings goal; 0 for the custom template"
    )


TEMPLATES: dict[ChallengeTemplate, TemplateDefinition] = {
    ChallengeTemplate.CUSTOM: TemplateDefinition(
        name="Custom Challenge",
        description="Pick your own start amount and weekly increase",
        icon="sparkles",
        target_amount=Decimal("0"),
    ),
    ChallengeTemplate.FIVE_K: TemplateDefinition(
        name="5K Challenge",
        description="Save 5,000 over the year following your pay cycle",
        icon="piggy-bank",
        target_amount=Decimal("5000"),
    ),
    ChallengeTemplate.TEN_K: TemplateDefinition(
        name="10K Challenge",
        description="Save 10,000 over the year following your pay cycle",
        icon="trophy",
        target_amount=Decimal("10000"),
    ),
}


def _round_half_up(value: Decimal) -> Decimal:
    # Halves go towards +infinity, negative values included
    return (value + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR)


def salary_cycle_amounts(
    target_amount: Amount,
    total_weeks: int,
    direction: Union[ChallengeDirection, str] = ChallengeDirection.STANDARD,
    minimum_deposit: Amount = 5,
) -> list[Decimal]:
    """
    Weekly amounts that sum exactly to target_amount.

    Args:
        target_amount: Savings goal, must be positive
        total_weeks: Schedule length
        direction: INVERSE reverses the in-month weights (10/20/30/40 %)
        minimum_deposit: Floor applied to every week before drift correction

    Raises:
        InvalidScheduleError: non-positive target, or a target too small
            to cover the minimum deposit of every week
    """
    validate_total_weeks(total_weeks)
    target = to_decimal(target_amount)
    minimum = to_decimal(minimum_deposit)
    if target <= 0:
        raise InvalidScheduleError(f"Template target must be positive, got {target}")

    weights = SALARY_CYCLE_WEIGHTS
    if ChallengeDirection(direction) == ChallengeDirection.INVERSE:
        weights = tuple(reversed(SALARY_CYCLE_WEIGHTS))

    total_months = -(-total_weeks // WEEKS_PER_MONTH)
    base_monthly = target / total_months
    growth_steps = max(1, total_months - 1)

    monthly_targets = [
        base_monthly * (GROWTH_FLOOR + GROWTH_SPAN * month / growth_steps)
        for month in range(total_months)
    ]
    scale = target / sum(monthly_targets)
    monthly_targets = [m * scale for m in monthly_targets]

    amounts = []
    for index in range(total_weeks):
        month, week_in_month = divmod(index, WEEKS_PER_MONTH)
        weeks_in_month = min(WEEKS_PER_MONTH, total_weeks - month * WEEKS_PER_MONTH)
        # A short final month renormalizes over the weeks it actually has
        month_weights = weights[:weeks_in_month]
        share = month_weights[week_in_month] / sum(month_weights)
        amounts.append(max(minimum, _round_half_up(monthly_targets[month] * share)))

    heavy_weeks = range(0, total_weeks, WEEKS_PER_MONTH)
    per_heavy_week = _round_half_up((target - sum(amounts)) / len(heavy_weeks))
    for index in heavy_weeks:
        amounts[index] += per_heavy_week
    amounts[-1] += target - sum(amounts)

    if any(amount < 0 for amount in amounts):
        raise InvalidScheduleError(
            f"Target {target} is too small for {total_weeks} weeks "
            f"with a minimum deposit of {minimum}"
        )

    return amounts


def simulate_template(
    template: Union[ChallengeTemplate, str],
    total_weeks: int = 52,
    direction: Union[ChallengeDirection, str] = ChallengeDirection.STANDARD,
    minimum_deposit: Amount = 5,
) -> Simulation:
    """
    Preview the salary cycle schedule of a target template.

    The monthly average spreads the target over whole months
    (ceil(total_weeks / 4)), so a short last month still counts as one.
    The custom template has no target; preview it with simulate().
    """
    template = ChallengeTemplate(template)
    if template == ChallengeTemplate.CUSTOM:
        raise InvalidScheduleError(
            "The custom template is a plain progression; use simulate()"
        )

    target = TEMPLATES[template].target_amount
    amounts = salary_cycle_amounts(target, total_weeks, direction, minimum_deposit)
    total_months = -(-total_weeks // WEEKS_PER_MONTH)

    return Simulation(
        target_total=target,
        weekly_amounts=amounts,
        first_week_amount=amounts[0],
        last_week_amount=amounts[-1],
        average_weekly=target / total_weeks,
        min_weekly=min(amounts),
        max_weekly=max(amounts),
        monthly_average=target / total_months,
        first_month_weeks=amounts[:WEEKS_PER_MONTH],
    )


def build_template_challenge(
    template: Union[ChallengeTemplate, str],
    title: Optional[str] = None,
    total_weeks: int = 52,
    direction: Union[ChallengeDirection, str] = ChallengeDirection.STANDARD,
    start_date: Optional[date] = None,
    start_amount: Optional[Amount] = None,
    step_amount: Amount = 0,
    icon: Optional[str] = None,
    linked_account_id: Optional[str] = None,
    minimum_deposit: Amount = 5,
) -> Challenge:
    """
    Create a new, unsaved Challenge from a template.

    The custom template needs start_amount (and usually step_amount)
    and produces a regular progression challenge. Target templates
    ignore both and store the salary cycle schedule in custom_amounts.
    """
    template = ChallengeTemplate(template)
    definition = TEMPLATES[template]
    direction = ChallengeDirection(direction)

    common = {
        "title": title or definition.name,
        "icon": icon or definition.icon,
        "total_weeks": total_weeks,
        "direction": direction,
        "start_date": start_date or date.today(),
        "linked_account_id": linked_account_id,
    }

    if template == ChallengeTemplate.CUSTOM:
        if start_amount is None:
            raise InvalidScheduleError("The custom template requires a start_amount")
        return Challenge(
            challenge_type=ChallengeType.FIFTY_TWO_WEEKS,
            start_amount=to_decimal(start_amount),
            step_amount=to_decimal(step_amount),
            **common,
        )

    amounts = salary_cycle_amounts(
        definition.target_amount,
        total_weeks,
        direction,
        minimum_deposit,
    )
    return Challenge(
        challenge_type=ChallengeType.CUSTOM_SAVING,
        start_amount=amounts[0],
        step_amount=Decimal("0"),
        custom_amounts=amounts,
        target_amount=definition.target_amount,
        **common,
    )
