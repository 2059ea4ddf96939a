"""Helpers for recording scheduled job runs."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Generator

from ..db import db_models, get_session
from ..logging import logger
from ..utils.datetime_utils import ensure_utc, now_utc


def start_job_run(job: str, celery_task_id: str | None = None) -> int:
    """Create a job run record and return its ID."""
    with get_session() as session:
        run = db_models.ScoringJobRun(
            job=job,
            status=db_models.JobRunStatus.running.value,
            started_at=now_utc(),
            celery_task_id=celery_task_id,
        )
        session.add(run)
        session.flush()
        run_id = int(run.id)
        logger.info("job_run_started", run_id=run_id, job=job)
        return run_id


def complete_job_run(
    run_id: int,
    status: str,
    error_summary: str | None = None,
    summary_data: dict[str, Any] | None = None,
) -> None:
    """Finalize a job run record with status + duration."""
    with get_session() as session:
        run = session.get(db_models.ScoringJobRun, run_id)
        if not run:
            logger.error("job_run_missing", run_id=run_id)
            return
        finished_at = now_utc()
        run.status = status
        run.finished_at = finished_at
        run.duration_seconds = (finished_at - ensure_utc(run.started_at)).total_seconds()
        run.error_summary = error_summary
        if summary_data is not None:
            run.summary_data = summary_data
        session.flush()
        logger.info("job_run_completed", run_id=run_id, job=run.job, status=status)


def mark_runs_interrupted(older_than: timedelta | None = None, reason: str = "worker shutdown") -> int:
    """Mark runs stuck in 'running' as 'interrupted'. Returns how many.

    With ``older_than`` only runs started before now - older_than are
    touched (stale runs left by a killed container).
    """
    now = now_utc()
    with get_session() as session:
        query = session.query(db_models.ScoringJobRun).filter(
            db_models.ScoringJobRun.status == db_models.JobRunStatus.running.value,
        )
        if older_than is not None:
            query = query.filter(db_models.ScoringJobRun.started_at < now - older_than)
        runs = query.all()
        for run in runs:
            run.status = db_models.JobRunStatus.interrupted.value
            run.finished_at = now
            run.error_summary = f"Run was interrupted ({reason})"
            logger.warning(
                "marking_run_interrupted",
                run_id=run.id,
                job=run.job,
                started_at=str(run.started_at),
            )
        return len(runs)


class JobRunTracker:
    """Mutable tracker for accumulating summary data during a job run."""

    def __init__(self, run_id: int) -> None:
        self.run_id = run_id
        self.summary_data: dict[str, Any] = {}
        self.status: str | None = None

    def set(self, key: str, value: Any) -> None:
        self.summary_data[key] = value

    def update(self, values: dict[str, Any]) -> None:
        self.summary_data.update(values)

    def mark(self, status: str) -> None:
        """Override the final status (e.g. skipped) instead of success."""
        self.status = status


def _get_current_celery_task_id() -> str | None:
    """Return the current Celery task ID if running inside a Celery worker."""
    from celery import current_task

    if current_task and current_task.request and current_task.request.id:
        return str(current_task.request.id)
    return None


@contextmanager
def track_job_run(job: str) -> Generator[JobRunTracker, None, None]:
    """Context manager that creates a job run on enter and finalizes on exit.

    Usage:
        with track_job_run("poll_scores") as tracker:
            tracker.update(reconcile_season(...))

    On normal exit: status="success" (or whatever ``tracker.mark`` set).
    On exception: status="error", error_summary from exception.
    """
    run_id = start_job_run(job, celery_task_id=_get_current_celery_task_id())
    tracker = JobRunTracker(run_id)

    try:
        yield tracker
    except Exception as exc:
        complete_job_run(
            run_id,
            status=db_models.JobRunStatus.error.value,
            error_summary=str(exc)[:500],
            summary_data=tracker.summary_data or None,
        )
        raise
    else:
        complete_job_run(
            run_id,
            status=tracker.status or db_models.JobRunStatus.success.value,
            summary_data=tracker.summary_data or None,
        )
