"""Periodic scoring tasks driven by celery beat.

Overlap safeguards, per task:
- Redis lock (skips a tick while another worker is still on it)
- In-process JobGuard (skips, or cancels and restarts, a run in this worker)
- Cancellation token checked between weeks/results so shutdown is prompt
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date

from celery import shared_task
from structlog.contextvars import bound_contextvars

from ..config import settings
from ..db import get_session
from ..logging import logger
from ..utils.date_utils import current_week, season_from_date, weeks_to_poll
from ..utils.datetime_utils import today_in
from ..utils.job_guard import CancellationToken, get_guard
from ..utils.redis_lock import LOCK_TIMEOUT_1HOUR, LOCK_TIMEOUT_5MIN
from ..utils.redis_lock import acquire_redis_lock as _acquire_redis_lock
from ..utils.redis_lock import release_redis_lock as _release_redis_lock

POLL_SCORES = "poll_scores"
PROCESS_RESULTS = "process_results"
WEEKLY_WINNERS = "calculate_weekly_winners"
RECORDS_AND_ODDS = "update_records_and_odds"


def _league_today() -> date:
    return today_in(settings.scheduler_config.timezone)


def _run_exclusive(
    job: str,
    lock_timeout: int,
    restart: bool,
    work: Callable[[CancellationToken], dict],
) -> dict:
    """Run ``work`` under the job's Redis lock, guard and run ledger.

    A restart skips the Redis lock entirely, so it must never release one:
    the lock may belong to the run being restarted on another worker.
    """
    from ..services.job_runs import track_job_run

    lock_name = f"lock:pickem:{job}"
    lock_held = False
    if not restart:
        lock_held = _acquire_redis_lock(lock_name, timeout=lock_timeout)
        if not lock_held:
            logger.debug("scoring_task_skipped_locked", job=job)
            return {"skipped": True, "reason": "locked"}

    try:
        guard = get_guard(job)
        with bound_contextvars(job=job), guard.running(
            restart=restart,
            wait_seconds=settings.scheduler_config.restart_wait_seconds,
        ) as token:
            if token is None:
                return {"skipped": True, "reason": "running"}
            with track_job_run(job) as tracker:
                summary = work(token)
                tracker.update(summary)
                if token.cancelled:
                    tracker.mark("interrupted")
                return summary
    finally:
        if lock_held:
            _release_redis_lock(lock_name)


def _grade_pending() -> dict:
    from ..services.grading import process_all_results

    with get_guard(PROCESS_RESULTS).running() as grading_token:
        if grading_token is None:
            return {"skipped": True, "reason": "running"}
        with get_session() as session:
            counts = process_all_results(session, cancel_token=grading_token)
        return counts


@shared_task(name=POLL_SCORES)
def poll_scores_task(restart: bool = False) -> dict:
    """Reconcile every week so far this season against ESPN (every 2 min).

    Earlier weeks are included so late stat corrections land. When any
    result changed, grading runs right away instead of waiting for the
    next process_results tick.
    """
    from ..provider import ESPNClient
    from ..services.reconciliation import reconcile_season

    def work(token: CancellationToken) -> dict:
        today = _league_today()
        season = season_from_date(today)
        with ESPNClient() as client, get_session() as session:
            summary = reconcile_season(
                session, client, season, weeks_to_poll(today), cancel_token=token
            )
        if summary["results_upserted"] and not token.cancelled:
            summary["grading"] = _grade_pending()
        return summary

    return _run_exclusive(POLL_SCORES, LOCK_TIMEOUT_5MIN, restart, work)


@shared_task(name=PROCESS_RESULTS)
def process_results_task(restart: bool = False) -> dict:
    """Grade final, unprocessed results (every 5 min)."""
    from ..services.grading import process_all_results

    def work(token: CancellationToken) -> dict:
        with get_session() as session:
            return process_all_results(session, cancel_token=token)

    return _run_exclusive(PROCESS_RESULTS, LOCK_TIMEOUT_5MIN, restart, work)


@shared_task(name=WEEKLY_WINNERS)
def calculate_weekly_winners_task(week: int | None = None, season: int | None = None) -> dict:
    """Award the week's winners (Mondays 2 AM league time).

    Without arguments the previous week is used, since the run lands the
    morning after Monday night's game.
    """
    from ..services.standings import calculate_weekly_winners

    def work(token: CancellationToken) -> dict:
        today = _league_today()
        target_season = season if season is not None else season_from_date(today)
        target_week = week if week is not None else current_week(today) - 1
        if target_week < 1:
            logger.info("weekly_winners_no_previous_week", season=target_season)
            return {"skipped": True, "reason": "no_previous_week"}
        with get_session() as session:
            outcome = calculate_weekly_winners(session, target_week, target_season)
        return {
            "week": outcome.week,
            "season": outcome.season,
            "highest_score": outcome.highest_score,
            "winners": [entry.user_id for entry in outcome.winners],
            "is_tie": outcome.is_tie,
        }

    return _run_exclusive(WEEKLY_WINNERS, LOCK_TIMEOUT_1HOUR, False, work)


@shared_task(name=RECORDS_AND_ODDS)
def update_records_and_odds_task() -> dict:
    """Refresh team records and lines for last week through two weeks out (daily 6 AM)."""
    from ..provider import ESPNClient
    from ..services.reconciliation import update_records_and_odds

    def work(token: CancellationToken) -> dict:
        today = _league_today()
        season = season_from_date(today)
        week = current_week(today)
        max_week = settings.scoring_config.max_week
        weeks = [w for w in range(week - 1, week + 3) if 1 <= w <= max_week]
        with ESPNClient() as client, get_session() as session:
            counts = update_records_and_odds(session, client, season, weeks)
        return {"season": season, "weeks": weeks, **counts}

    return _run_exclusive(RECORDS_AND_ODDS, LOCK_TIMEOUT_1HOUR, False, work)
