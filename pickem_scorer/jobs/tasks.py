"""Celery task registry.

Re-exports all tasks for Celery discovery. New code should import directly
from ``scoring_tasks``.
"""

from __future__ import annotations

from .scoring_tasks import (
    calculate_weekly_winners_task,
    poll_scores_task,
    process_results_task,
    update_records_and_odds_task,
)

__all__ = [
    "calculate_weekly_winners_task",
    "poll_scores_task",
    "process_results_task",
    "update_records_and_odds_task",
]
