"""User lookups and recomputation of the aggregates cached on users."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..errors import UserNotFoundError
from ..logging import logger
from ..orm import Pick, User, WeeklyWin
from ..utils.datetime_utils import now_utc


def get_user(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    return user


def week_key(season: int, week: int) -> str:
    """Key of one week in ``User.weekly_points``."""
    return f"{season}:{week}"


def recompute_user_totals(
    session: Session,
    user_ids: Iterable[int],
    now: datetime | None = None,
) -> dict[int, int]:
    """Rebuild total_points and weekly_points from graded picks.

    Totals are always derived from the picks themselves, never incremented,
    so regrading a game any number of times leaves them correct. They span
    every season the user has played; ``weekly_points`` is keyed by
    ``"<season>:<week>"`` so weeks of different seasons stay apart.
    Returns ``{user_id: total_points}``.
    """
    ids = sorted(set(user_ids))
    if not ids:
        return {}
    now = now or now_utc()

    rows = session.execute(
        select(Pick.user_id, Pick.season, Pick.week, func.sum(Pick.points))
        .where(Pick.user_id.in_(ids), Pick.is_correct.is_not(None))
        .group_by(Pick.user_id, Pick.season, Pick.week)
    ).all()

    weekly: dict[int, dict[str, int]] = defaultdict(dict)
    for user_id, season, week, points in rows:
        weekly[user_id][week_key(season, week)] = int(points or 0)

    totals: dict[int, int] = {}
    for user in session.scalars(select(User).where(User.id.in_(ids))):
        user_weeks = weekly.get(user.id, {})
        user.weekly_points = dict(user_weeks)
        user.total_points = sum(user_weeks.values())
        user.last_updated = now
        totals[user.id] = user.total_points
    session.flush()
    logger.debug("user_totals_recomputed", users=len(totals))
    return totals


def recompute_weekly_wins(session: Session, user_ids: Iterable[int]) -> None:
    """weekly_wins = number of awards held, across all seasons."""
    ids = sorted(set(user_ids))
    if not ids:
        return
    counts = dict(
        session.execute(
            select(WeeklyWin.user_id, func.count(WeeklyWin.id))
            .where(WeeklyWin.user_id.in_(ids))
            .group_by(WeeklyWin.user_id)
        ).all()
    )
    for user in session.scalars(select(User).where(User.id.in_(ids))):
        user.weekly_wins = int(counts.get(user.id, 0))
    session.flush()
