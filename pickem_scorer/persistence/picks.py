"""Pick store: submission, edits, deletion and lock enforcement.

Every operation validates everything first and only then writes, so a
rejected request leaves no partial state behind. Nothing here commits; the
caller owns the transaction.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import (
    DuplicatePickError,
    GameNotFoundError,
    InvalidSelectionError,
    PickLockedError,
    PickNotFoundError,
)
from ..logging import logger
from ..models import PickSelection, TiebreakerPrediction
from ..orm import EditSource, Game, Pick
from ..utils.date_utils import validate_week
from ..utils.datetime_utils import ensure_utc, now_utc
from .activity import (
    log_admin_created_pick,
    log_admin_edit,
    log_pick_delete,
    log_pick_submission,
    log_pick_update,
)
from .games import get_game, get_week_games, mark_result_unprocessed
from .users import get_user, recompute_user_totals


def lock_time_for(game: Game) -> datetime:
    """Explicit lock override, else kickoff minus the configured offset."""
    if game.lock_time is not None:
        return ensure_utc(game.lock_time)
    offset = timedelta(minutes=settings.scoring_config.lock_offset_minutes)
    return ensure_utc(game.kickoff) - offset


def is_game_locked(game: Game, now: datetime | None = None) -> bool:
    now = ensure_utc(now) if now is not None else now_utc()
    return now > lock_time_for(game)


def _check_team(game: Game, selected_team: str) -> None:
    if selected_team not in (game.away_team, game.home_team):
        raise InvalidSelectionError(
            f"{selected_team} is not playing in {game.display_name}"
        )


def _apply_tiebreaker(pick: Pick, tiebreaker: TiebreakerPrediction | None) -> None:
    if tiebreaker is None:
        pick.tiebreaker_total = None
        pick.tiebreaker_away_score = None
        pick.tiebreaker_home_score = None
        return
    pick.tiebreaker_total = tiebreaker.total
    pick.tiebreaker_away_score = tiebreaker.away_score
    pick.tiebreaker_home_score = tiebreaker.home_score


def _tiebreaker_of(pick: Pick) -> tuple[int | None, int | None, int | None]:
    return (pick.tiebreaker_total, pick.tiebreaker_away_score, pick.tiebreaker_home_score)


def _selection_tiebreaker(selection: PickSelection) -> tuple[int | None, int | None, int | None]:
    tb = selection.tiebreaker
    if tb is None:
        return (None, None, None)
    return (tb.total, tb.away_score, tb.home_score)


def _reject_repeated_games(selections: Sequence[PickSelection]) -> None:
    seen: set[int] = set()
    for selection in selections:
        if selection.game_id in seen:
            raise InvalidSelectionError(f"Game {selection.game_id} selected more than once")
        seen.add(selection.game_id)


def get_user_picks(session: Session, user_id: int, season: int, week: int | None = None) -> list[Pick]:
    stmt = select(Pick).where(Pick.user_id == user_id, Pick.season == season)
    if week is not None:
        stmt = stmt.where(Pick.week == week)
    return list(session.scalars(stmt.order_by(Pick.week, Pick.submitted_at, Pick.id)))


def submit_picks(
    session: Session,
    user_id: int,
    week: int,
    season: int,
    selections: Sequence[PickSelection],
    now: datetime | None = None,
) -> list[Pick]:
    """Create new picks for one week. All-or-nothing."""
    validate_week(week)
    if not selections:
        raise InvalidSelectionError("At least one pick is required")
    now = ensure_utc(now) if now is not None else now_utc()
    get_user(session, user_id)
    _reject_repeated_games(selections)

    games = {game.id: game for game in get_week_games(session, season, week)}
    if not games:
        raise InvalidSelectionError(f"No games found for week {week} of season {season}")
    for selection in selections:
        game = games.get(selection.game_id)
        if game is None:
            raise InvalidSelectionError(
                f"Game {selection.game_id} is not in week {week} of season {season}"
            )
        _check_team(game, selection.selected_team)

    locked = [
        games[s.game_id].display_name for s in selections if is_game_locked(games[s.game_id], now)
    ]
    if locked:
        raise PickLockedError("make", locked)

    game_ids = [s.game_id for s in selections]
    existing = session.scalars(
        select(Pick.game_id).where(Pick.user_id == user_id, Pick.game_id.in_(game_ids))
    ).first()
    if existing is not None:
        raise DuplicatePickError(user_id, existing)

    picks: list[Pick] = []
    for selection in selections:
        pick = Pick(
            user_id=user_id,
            game_id=selection.game_id,
            week=week,
            season=season,
            selected_team=selection.selected_team,
            submitted_at=now,
            last_modified=now,
        )
        _apply_tiebreaker(pick, selection.tiebreaker)
        session.add(pick)
        picks.append(pick)
    session.flush()

    log_pick_submission(session, user_id, week, season, game_ids)
    logger.info("picks_submitted", user_id=user_id, week=week, season=season, count=len(picks))
    return picks


def update_picks(
    session: Session,
    user_id: int,
    selections: Sequence[PickSelection],
    now: datetime | None = None,
) -> list[Pick]:
    """User edits to their own unlocked picks. Returns the picks that changed."""
    if not selections:
        raise InvalidSelectionError("At least one pick is required")
    now = ensure_utc(now) if now is not None else now_utc()
    _reject_repeated_games(selections)

    pairs: list[tuple[PickSelection, Game, Pick]] = []
    for selection in selections:
        game = get_game(session, selection.game_id)
        _check_team(game, selection.selected_team)
        pick = session.scalar(
            select(Pick).where(Pick.user_id == user_id, Pick.game_id == game.id)
        )
        if pick is None:
            raise InvalidSelectionError(
                f"No existing pick for user {user_id} on {game.display_name}"
            )
        pairs.append((selection, game, pick))

    locked = [game.display_name for _, game, _ in pairs if is_game_locked(game, now)]
    if locked:
        raise PickLockedError("modify", locked)

    changed: list[Pick] = []
    for selection, game, pick in pairs:
        if (
            pick.selected_team == selection.selected_team
            and _tiebreaker_of(pick) == _selection_tiebreaker(selection)
        ):
            continue
        log_pick_update(
            session, user_id, game.id, game.week, game.season,
            pick.selected_team, selection.selected_team,
        )
        pick.selected_team = selection.selected_team
        _apply_tiebreaker(pick, selection.tiebreaker)
        pick.last_modified = now
        pick.last_edited_by = user_id
        pick.last_edited_at = now
        pick.edit_source = EditSource.user_update.value
        pick.edit_reason = None
        changed.append(pick)
    session.flush()
    logger.info("picks_updated", user_id=user_id, requested=len(pairs), changed=len(changed))
    return changed


def admin_create_pick(
    session: Session,
    admin_user_id: int,
    user_id: int,
    game_id: int,
    selected_team: str,
    edit_reason: str | None = None,
    tiebreaker: TiebreakerPrediction | None = None,
    now: datetime | None = None,
) -> Pick:
    """Create a pick on a user's behalf, regardless of lock."""
    now = ensure_utc(now) if now is not None else now_utc()
    get_user(session, user_id)
    game = get_game(session, game_id)
    selected_team = selected_team.strip()
    _check_team(game, selected_team)
    existing = session.scalar(
        select(Pick.id).where(Pick.user_id == user_id, Pick.game_id == game_id)
    )
    if existing is not None:
        raise DuplicatePickError(user_id, game_id)

    was_locked = is_game_locked(game, now)
    reason = edit_reason or "Admin created pick on user's behalf"
    pick = Pick(
        user_id=user_id,
        game_id=game.id,
        week=game.week,
        season=game.season,
        selected_team=selected_team,
        submitted_at=now,
        last_modified=now,
        last_edited_by=admin_user_id,
        last_edited_at=now,
        edit_reason=reason,
        edit_source=EditSource.admin_edit.value,
    )
    _apply_tiebreaker(pick, tiebreaker)
    session.add(pick)
    session.flush()

    log_admin_created_pick(
        session, admin_user_id, user_id, game.id, game.week, game.season,
        selected_team, reason, game_was_locked=was_locked,
    )
    mark_result_unprocessed(session, game.id)
    logger.info(
        "admin_pick_created",
        admin_user_id=admin_user_id,
        user_id=user_id,
        game_id=game.id,
        game_was_locked=was_locked,
    )
    return pick


def admin_edit_pick(
    session: Session,
    admin_user_id: int,
    pick_id: int,
    selected_team: str,
    edit_reason: str | None = None,
    now: datetime | None = None,
) -> tuple[Pick, bool]:
    """Change any pick, regardless of lock. Returns (pick, game_was_locked).

    If the game already has a final result it is queued for regrading so the
    edited pick's correctness and the user's totals follow.
    """
    now = ensure_utc(now) if now is not None else now_utc()
    pick = session.get(Pick, pick_id)
    if pick is None:
        raise PickNotFoundError(pick_id)
    game = session.get(Game, pick.game_id)
    if game is None:
        raise GameNotFoundError(pick.game_id)
    selected_team = selected_team.strip()
    _check_team(game, selected_team)

    was_locked = is_game_locked(game, now)
    if was_locked:
        logger.info(
            "admin_edit_locked_pick",
            admin_user_id=admin_user_id,
            pick_id=pick.id,
            game=game.display_name,
            week=game.week,
        )
    reason = edit_reason or "Admin edit"
    log_admin_edit(
        session, admin_user_id, pick.user_id, game.id, game.week, game.season,
        pick.selected_team, selected_team, reason, game_was_locked=was_locked,
    )
    pick.selected_team = selected_team
    pick.last_modified = now
    pick.last_edited_by = admin_user_id
    pick.last_edited_at = now
    pick.edit_reason = reason
    pick.edit_source = EditSource.admin_edit.value
    session.flush()
    mark_result_unprocessed(session, game.id)
    return pick, was_locked


def delete_week_picks(
    session: Session,
    user_id: int,
    week: int,
    season: int,
    now: datetime | None = None,
) -> int:
    """Delete a user's picks for a week. Rejected if any of them is locked."""
    validate_week(week)
    now = ensure_utc(now) if now is not None else now_utc()
    picks = get_user_picks(session, user_id, season, week)
    if not picks:
        return 0

    locked = [pick.game.display_name for pick in picks if is_game_locked(pick.game, now)]
    if locked:
        raise PickLockedError("delete", locked)

    for pick in picks:
        log_pick_delete(session, user_id, pick.game_id, week, season, pick.selected_team)
        session.delete(pick)
    session.flush()
    recompute_user_totals(session, [user_id], now)
    logger.info("week_picks_deleted", user_id=user_id, week=week, season=season, count=len(picks))
    return len(picks)


def admin_delete_pick(session: Session, pick_id: int) -> None:
    pick = session.get(Pick, pick_id)
    if pick is None:
        raise PickNotFoundError(pick_id)
    user_id = pick.user_id
    session.delete(pick)
    session.flush()
    recompute_user_totals(session, [user_id])
    logger.info("admin_pick_deleted", pick_id=pick_id, user_id=user_id)
