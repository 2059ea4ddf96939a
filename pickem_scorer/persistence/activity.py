"""League activity log: typed writers and the rendered feed.

Writers flush but never commit; they run inside the caller's unit of work so
an activity is recorded exactly when the change it describes is.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, aliased

from ..config import settings
from ..logging import logger
from ..models import (
    NO_PICK,
    NO_SCORE,
    ActivityMetadata,
    FeedEntry,
    PickDeleteMeta,
    PickEditMeta,
    PickSubmissionMeta,
    PickUpdateMeta,
    ScoreOverrideMeta,
    activity_metadata_adapter,
)
from ..orm import Activity, Game, User
from ..utils.datetime_utils import now_utc

UNKNOWN_USER = "Unknown User"


def _record(
    session: Session,
    *,
    meta: ActivityMetadata,
    user_id: int | None,
    target_user_id: int | None,
    game_id: int | None,
    week: int | None,
    season: int | None,
    action: str,
    details: str,
) -> Activity:
    activity = Activity(
        type=meta.type,
        user_id=user_id,
        target_user_id=target_user_id,
        game_id=game_id,
        week=week,
        season=season,
        action=action,
        details=details,
        payload=meta.model_dump(mode="json"),
        created_at=now_utc(),
    )
    session.add(activity)
    session.flush()
    logger.debug("activity_logged", type=meta.type, user_id=user_id, game_id=game_id)
    return activity


def log_pick_submission(
    session: Session,
    user_id: int,
    week: int,
    season: int,
    game_ids: list[int],
) -> Activity:
    count = len(game_ids)
    return _record(
        session,
        meta=PickSubmissionMeta(new_value=f"{count} picks submitted", game_ids=game_ids),
        user_id=user_id,
        target_user_id=user_id,
        game_id=game_ids[0] if game_ids else None,
        week=week,
        season=season,
        action="Submitted picks for week",
        details=f"{count} games selected",
    )


def log_pick_update(
    session: Session,
    user_id: int,
    game_id: int,
    week: int,
    season: int,
    previous_value: str,
    new_value: str,
) -> Activity:
    return _record(
        session,
        meta=PickUpdateMeta(previous_value=previous_value, new_value=new_value),
        user_id=user_id,
        target_user_id=user_id,
        game_id=game_id,
        week=week,
        season=season,
        action="Updated pick",
        details=f"Changed from {previous_value} to {new_value}",
    )


def log_admin_edit(
    session: Session,
    admin_user_id: int,
    target_user_id: int,
    game_id: int,
    week: int,
    season: int,
    previous_value: str,
    new_value: str,
    edit_reason: str | None,
    game_was_locked: bool = False,
) -> Activity:
    return _record(
        session,
        meta=PickEditMeta(
            previous_value=previous_value,
            new_value=new_value,
            edit_reason=edit_reason or "No reason provided",
            game_was_locked=game_was_locked,
        ),
        user_id=admin_user_id,
        target_user_id=target_user_id,
        game_id=game_id,
        week=week,
        season=season,
        action="Admin edited pick",
        details=f"Changed from {previous_value} to {new_value}",
    )


def log_admin_created_pick(
    session: Session,
    admin_user_id: int,
    target_user_id: int,
    game_id: int,
    week: int,
    season: int,
    selected_team: str,
    edit_reason: str | None,
    game_was_locked: bool = False,
) -> Activity:
    return _record(
        session,
        meta=PickEditMeta(
            previous_value=NO_PICK,
            new_value=selected_team,
            edit_reason=edit_reason or "Admin created pick on user's behalf",
            game_was_locked=game_was_locked,
        ),
        user_id=admin_user_id,
        target_user_id=target_user_id,
        game_id=game_id,
        week=week,
        season=season,
        action="Admin created pick",
        details=f"Created pick for {selected_team}",
    )


def log_pick_delete(
    session: Session,
    user_id: int,
    game_id: int,
    week: int,
    season: int,
    deleted_value: str,
) -> Activity:
    return _record(
        session,
        meta=PickDeleteMeta(previous_value=deleted_value),
        user_id=user_id,
        target_user_id=user_id,
        game_id=game_id,
        week=week,
        season=season,
        action="Deleted pick",
        details=f"Removed pick for {deleted_value}",
    )


def log_score_override(
    session: Session,
    admin_user_id: int,
    game: Game,
    previous_away_score: int | None,
    previous_home_score: int | None,
    new_away_score: int,
    new_home_score: int,
    reason: str,
) -> Activity:
    prev_away = NO_SCORE if previous_away_score is None else previous_away_score
    prev_home = NO_SCORE if previous_home_score is None else previous_home_score
    return _record(
        session,
        meta=ScoreOverrideMeta(
            away_team=game.away_team,
            home_team=game.home_team,
            previous_away_score=prev_away,
            previous_home_score=prev_home,
            new_away_score=new_away_score,
            new_home_score=new_home_score,
            reason=reason,
        ),
        user_id=admin_user_id,
        target_user_id=admin_user_id,
        game_id=game.id,
        week=game.week,
        season=game.season,
        action="Admin overrode game score",
        details=(
            f"Changed {game.away_team} @ {game.home_team} from "
            f"{prev_away}-{prev_home} to {new_away_score}-{new_home_score}"
        ),
    )


def render_activity(
    activity: Activity,
    actor_name: str | None,
    target_name: str | None,
    matchup: str | None,
) -> tuple[str, str | None]:
    """Return (message, details) for one feed entry."""
    user_name = actor_name or UNKNOWN_USER
    target = target_name or UNKNOWN_USER
    meta = activity_metadata_adapter.validate_python(activity.payload)

    if isinstance(meta, PickSubmissionMeta):
        return f"{user_name} submitted picks for Week {activity.week}", activity.details
    if isinstance(meta, PickUpdateMeta):
        return (
            f"{user_name} updated their pick for Week {activity.week}",
            f"Changed from {meta.previous_value} to {meta.new_value} for {matchup}",
        )
    if isinstance(meta, PickEditMeta):
        if meta.previous_value == NO_PICK:
            return (
                f"{user_name} created a pick for {target}",
                f"Created pick for {meta.new_value} in {matchup}. Reason: {meta.edit_reason}",
            )
        return (
            f"{user_name} edited {target}'s pick",
            f"Changed from {meta.previous_value} to {meta.new_value} for {matchup}. "
            f"Reason: {meta.edit_reason}",
        )
    if isinstance(meta, PickDeleteMeta):
        return f"{user_name} deleted their pick for Week {activity.week}", activity.details
    if isinstance(meta, ScoreOverrideMeta):
        return (
            f"{user_name} overrode game score",
            f"Changed {meta.away_team} @ {meta.home_team} from "
            f"{meta.previous_away_score}-{meta.previous_home_score} to "
            f"{meta.new_away_score}-{meta.new_home_score}. Reason: {meta.reason}",
        )
    return "Unknown activity", activity.details


def get_league_feed(session: Session, limit: int | None = None) -> list[FeedEntry]:
    """Rendered league activity, newest first."""
    if limit is None:
        limit = settings.scoring_config.league_feed_limit
    actor = aliased(User)
    target = aliased(User)
    stmt = (
        select(Activity, actor.name, target.name, Game.away_team, Game.home_team)
        .outerjoin(actor, actor.id == Activity.user_id)
        .outerjoin(target, target.id == Activity.target_user_id)
        .outerjoin(Game, Game.id == Activity.game_id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .limit(limit)
    )
    entries: list[FeedEntry] = []
    for activity, actor_name, target_name, away_team, home_team in session.execute(stmt):
        matchup = f"{away_team} @ {home_team}" if away_team else None
        message, details = render_activity(activity, actor_name, target_name, matchup)
        entries.append(
            FeedEntry(
                type=activity.type,
                message=message,
                details=details,
                timestamp=activity.created_at,
                user_id=activity.user_id,
                week=activity.week,
            )
        )
    return entries


__all__ = [
    "get_league_feed",
    "log_admin_created_pick",
    "log_admin_edit",
    "log_pick_delete",
    "log_pick_submission",
    "log_pick_update",
    "log_score_override",
    "render_activity",
]
