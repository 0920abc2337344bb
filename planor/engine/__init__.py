"""
Challenge Engine Package

Pure functions over Challenge records:
- progression: weekly amounts and totals of an arithmetic schedule
- enricher: derived view fields attached on every read
- reconciler: mark a week paid, pause/resume, simulate
- templates: 5K / 10K salary cycle schedules and their previews
- insights: week grid and growth chart data

Nothing in here touches storage. The orchestrator loads a record,
runs it through the engine and saves the result.
"""

from planor.engine.exceptions import (
    ChallengeError,
    ChallengeStateError,
    InvalidScheduleError,
)
from planor.engine.progression import (
    last_week_amount,
    target_total,
    week_amount,
    weekly_amounts,
)
from planor.engine.enricher import enrich, next_unpaid_week, resolve_schedule
from planor.engine.reconciler import mark_week_paid, simulate, toggle_pause
from planor.engine.templates import (
    TEMPLATES,
    ChallengeTemplate,
    TemplateDefinition,
    build_template_challenge,
    salary_cycle_amounts,
    simulate_template,
)
from planor.engine.insights import calendar_week, growth_series, week_statuses

__all__ = [
    # Errors
    "ChallengeError",
    "ChallengeStateError",
    "InvalidScheduleError",
    # Progression
    "last_week_amount",
    "target_total",
    "week_amount",
    "weekly_amounts",
    # Enrichment
    "enrich",
    "next_unpaid_week",
    "resolve_schedule",
    # State transitions
    "mark_week_paid",
    "simulate",
    "toggle_pause",
    # Templates
    "TEMPLATES",
    "ChallengeTemplate",
    "TemplateDefinition",
    "build_template_challenge",
    "salary_cycle_amounts",
    "simulate_template",
    # Insights
    "calendar_week",
    "growth_series",
    "week_statuses",
]
