"""Game and result persistence helpers."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import GameNotFoundError
from ..logging import logger
from ..orm import TIE, Game, GameResult, GameSide, GameStatus


def normalize_status(status: str | None) -> str:
    if not status:
        return GameStatus.scheduled.value
    status_normalized = status.lower()
    if status_normalized in {"final", "completed", "post"}:
        return GameStatus.final.value
    if status_normalized in {"live", "in", "in_progress"}:
        return GameStatus.live.value
    if status_normalized == GameStatus.postponed.value:
        return GameStatus.postponed.value
    if status_normalized in {"cancelled", "canceled"}:
        return GameStatus.cancelled.value
    return GameStatus.scheduled.value


# One-way progression order for the happy path.
# Higher index = further along in lifecycle. Transitions may only move forward.
_STATUS_ORDER: dict[str, int] = {
    GameStatus.scheduled.value: 0,
    GameStatus.live.value: 1,
    GameStatus.final.value: 2,
}

# Never left once reached through provider data
_ABSORBING = {
    GameStatus.final.value,
    GameStatus.postponed.value,
    GameStatus.cancelled.value,
}


def resolve_status_transition(current_status: str | None, incoming_status: str | None) -> str:
    """Resolve a safe status transition without regressing games.

    Rules:
    - final, postponed and cancelled are absorbing
    - scheduled/live only move forward
    - postponed/cancelled are accepted from any non-absorbing state
    """
    current = normalize_status(current_status)
    incoming = normalize_status(incoming_status)

    if current in _ABSORBING:
        return current

    current_order = _STATUS_ORDER.get(current)
    incoming_order = _STATUS_ORDER.get(incoming)
    if current_order is not None and incoming_order is not None:
        if incoming_order < current_order:
            return current  # Don't regress
        return incoming

    return incoming


def winner_side(away_score: int | None, home_score: int | None) -> str | None:
    """Side that won, or None for a tie or missing score."""
    if away_score is None or home_score is None or away_score == home_score:
        return None
    return GameSide.away.value if away_score > home_score else GameSide.home.value


def winner_team(away_team: str, home_team: str, away_score: int, home_score: int) -> str:
    """Winning team name, or the tie sentinel."""
    if away_score > home_score:
        return away_team
    if home_score > away_score:
        return home_team
    return TIE


def final_score_text(away_score: int | None, home_score: int | None) -> str | None:
    if away_score is None or home_score is None:
        return None
    return f"{away_score}-{home_score}"


def get_game(session: Session, game_id: int) -> Game:
    game = session.get(Game, game_id)
    if game is None:
        raise GameNotFoundError(game_id)
    return game


def get_week_games(session: Session, season: int, week: int) -> list[Game]:
    stmt = (
        select(Game)
        .where(Game.season == season, Game.week == week)
        .order_by(Game.kickoff, Game.id)
    )
    return list(session.scalars(stmt))


def get_result_for_game(session: Session, game_id: int) -> GameResult | None:
    return session.scalar(select(GameResult).where(GameResult.game_id == game_id))


def upsert_game_result(
    session: Session,
    game: Game,
    *,
    status: str,
    away_score: int | None,
    home_score: int | None,
    quarter: str | None,
    time_remaining: str | None,
    provider_game_id: str | None,
    now: datetime,
) -> GameResult | None:
    """Write provider-sourced result data for a game.

    Every write resets ``processed`` so grading takes another pass. A result
    carrying an admin ``score_override`` is left untouched and None is
    returned.
    """
    result = get_result_for_game(session, game.id)
    if result is not None and result.score_override:
        logger.info(
            "result_override_preserved",
            game_id=game.id,
            override_by=result.score_override.get("overridden_by"),
        )
        return None

    if result is None:
        result = GameResult(
            game_id=game.id,
            away_team=game.away_team,
            home_team=game.home_team,
        )
        session.add(result)

    result.status = status
    result.away_score = away_score
    result.home_score = home_score
    result.final_score = final_score_text(away_score, home_score)
    if status == GameStatus.final.value and away_score is not None and home_score is not None:
        result.winner = winner_team(game.away_team, game.home_team, away_score, home_score)
    else:
        result.winner = None
    result.quarter = quarter
    result.time_remaining = time_remaining
    result.provider_game_id = provider_game_id
    result.processed = False
    result.processed_at = None
    result.last_updated = now
    session.flush()
    return result


def mark_result_unprocessed(session: Session, game_id: int) -> bool:
    """Queue a final result for regrading. Returns False when there is none."""
    result = get_result_for_game(session, game_id)
    if result is None or result.status != GameStatus.final.value:
        return False
    result.processed = False
    result.processed_at = None
    session.flush()
    logger.info("result_marked_for_regrade", game_id=game_id, result_id=result.id)
    return True
