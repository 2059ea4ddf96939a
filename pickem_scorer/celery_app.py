"""Celery app configuration for the scoring service."""

from __future__ import annotations

from datetime import timedelta

from celery import Celery, signals
from celery.schedules import crontab

from .config import settings
from .logging import logger
from .services.job_runs import mark_runs_interrupted
from .utils.job_guard import cancel_all

_sched = settings.scheduler_config

celery_config = {
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    # Beat evaluates crontabs in league time so "Monday 2 AM" means Eastern
    "timezone": _sched.timezone,
    "enable_utc": True,
    "task_track_started": True,
    "worker_prefetch_multiplier": 1,
    "task_time_limit": 3600,
    "task_soft_time_limit": 3300,
    "task_default_queue": "pickem-scoring",
}

app = Celery(
    "pickem-scorer",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["pickem_scorer.jobs.tasks"],
)
app.conf.update(**celery_config)

app.conf.beat_schedule = {
    "poll-scores": {
        "task": "poll_scores",
        "schedule": crontab(minute=f"*/{_sched.score_poll_minutes}"),
    },
    "process-results": {
        "task": "process_results",
        "schedule": crontab(minute=f"*/{_sched.result_processing_minutes}"),
    },
    "weekly-winners-monday-2am": {
        "task": "calculate_weekly_winners",
        "schedule": crontab(
            minute=0,
            hour=_sched.weekly_winners_hour,
            day_of_week=_sched.weekly_winners_day_of_week,
        ),
    },
    "records-and-odds-daily-6am": {
        "task": "update_records_and_odds",
        "schedule": crontab(minute=0, hour=_sched.records_update_hour),
    },
}


def mark_stale_runs_interrupted() -> None:
    """
    Mark job runs stuck in 'running' as 'interrupted'.

    Handles a worker that was killed mid-run, leaving a run that will never
    complete.
    """
    try:
        count = mark_runs_interrupted(
            older_than=timedelta(hours=_sched.stale_run_hours),
            reason="worker crashed or container killed",
        )
        if count:
            logger.info("stale_runs_marked_interrupted", count=count)
        else:
            logger.debug("no_stale_runs_found")
    except Exception as exc:
        logger.exception("failed_to_mark_stale_runs", error=str(exc))


@signals.worker_ready.connect
def on_worker_ready(sender=None, **kwargs):
    """Called when Celery worker is ready. Mark any stale runs as interrupted."""
    worker_name = getattr(sender, "hostname", None) or (str(sender) if sender else "unknown")
    logger.info("celery_worker_ready", worker=worker_name)
    mark_stale_runs_interrupted()


@signals.worker_shutting_down.connect
def on_worker_shutting_down(sender=None, **kwargs):
    """Cancel in-flight passes and mark their runs as interrupted."""
    worker_name = str(sender) if sender else "unknown"
    cancelled = cancel_all()
    logger.info("celery_worker_shutting_down", worker=worker_name, cancelled_jobs=cancelled)
    try:
        count = mark_runs_interrupted(reason="worker shutdown")
        if count:
            logger.info("runs_marked_interrupted_on_shutdown", count=count)
    except Exception as exc:
        logger.exception("failed_to_mark_runs_on_shutdown", error=str(exc))
