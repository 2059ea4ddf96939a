"""Reconciliation: bring stored games and results in line with the provider.

Provider data arrives repeatedly and gets corrected after the fact. Each pass
diffs provider state against what is stored and writes only real changes, so
re-running a pass with identical input is a no-op. Results written here are
left ``processed=False`` for the grading engine.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Protocol

from sqlalchemy.orm import Session

from ..errors import InvalidScoreError, ProviderError
from ..logging import logger
from ..models import GameOdds, ProviderGame, ScoreOverride
from ..orm import Game, GameResult, GameStatus
from ..persistence.activity import log_score_override
from ..persistence.games import (
    final_score_text,
    get_game,
    get_result_for_game,
    get_week_games,
    resolve_status_transition,
    upsert_game_result,
    winner_side,
    winner_team,
)
from ..provider.espn import odds_key
from ..utils.datetime_utils import now_utc
from ..utils.job_guard import CancellationToken

DEFAULT_OVERRIDE_REASON = "Admin score override"


class ScoreProvider(Protocol):
    def get_week_games(self, season: int, week: int) -> list[ProviderGame]: ...

    def get_team_standings(self, season: int) -> dict[str, str]: ...

    def get_game_odds(self, season: int, week: int) -> dict[str, GameOdds]: ...


@dataclass
class ReconcileSummary:
    season: int
    week: int
    provider_games: int = 0
    matched: int = 0
    updated_games: int = 0
    results_upserted: int = 0
    unmatched: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _scores_for_stored_orientation(game: Game, incoming: ProviderGame) -> tuple[int | None, int | None]:
    """Map provider scores onto the stored away/home orientation by team name."""
    if incoming.away_team == game.away_team:
        return incoming.away_score, incoming.home_score
    return incoming.home_score, incoming.away_score


def reconcile_game(session: Session, game: Game, incoming: ProviderGame, now: datetime) -> tuple[bool, bool]:
    """Apply one provider record to one stored game.

    Returns (game_updated, result_upserted).
    """
    target_status = resolve_status_transition(game.status, incoming.status)
    if target_status != incoming.status:
        # Stale provider data behind a status we already hold
        return False, False

    away_score, home_score = _scores_for_stored_orientation(game, incoming)
    if (game.status, game.away_score, game.home_score) == (target_status, away_score, home_score):
        return False, False

    previous = (game.status, game.away_score, game.home_score)
    game.status = target_status
    game.away_score = away_score
    game.home_score = home_score
    game.quarter = incoming.quarter
    game.time_remaining = incoming.time_remaining
    game.winner = (
        winner_side(away_score, home_score)
        if target_status == GameStatus.final.value
        else None
    )
    if not game.provider_game_id:
        game.provider_game_id = incoming.provider_game_id

    result = upsert_game_result(
        session,
        game,
        status=target_status,
        away_score=away_score,
        home_score=home_score,
        quarter=incoming.quarter,
        time_remaining=incoming.time_remaining,
        provider_game_id=incoming.provider_game_id,
        now=now,
    )
    logger.info(
        "game_reconciled",
        game_id=game.id,
        game=game.display_name,
        from_status=previous[0],
        to_status=target_status,
        from_score=final_score_text(previous[1], previous[2]),
        to_score=final_score_text(away_score, home_score),
    )
    return True, result is not None


def reconcile_week(
    session: Session,
    provider: ScoreProvider,
    season: int,
    week: int,
    now: datetime | None = None,
) -> ReconcileSummary:
    """Reconcile one league week. Raises ``ProviderError`` if the fetch fails.

    Provider games are matched to stored games on the unordered team pair;
    unmatched provider games are logged and skipped, never created.
    """
    now = now or now_utc()
    summary = ReconcileSummary(season=season, week=week)

    incoming_games = provider.get_week_games(season, week)
    summary.provider_games = len(incoming_games)
    if not incoming_games:
        logger.info("reconcile_week_no_provider_games", season=season, week=week)
        return summary

    stored = {
        frozenset((game.away_team, game.home_team)): game
        for game in get_week_games(session, season, week)
    }

    for incoming in incoming_games:
        game = stored.get(incoming.teams())
        if game is None:
            label = f"{incoming.away_team} @ {incoming.home_team}"
            summary.unmatched.append(label)
            logger.warning(
                "reconcile_unmatched_provider_game",
                season=season,
                week=week,
                game=label,
                provider_game_id=incoming.provider_game_id,
            )
            continue
        summary.matched += 1
        updated, upserted = reconcile_game(session, game, incoming, now)
        summary.updated_games += int(updated)
        summary.results_upserted += int(upserted)

    session.flush()
    logger.info("reconcile_week_complete", **summary.to_dict())
    return summary


def reconcile_season(
    session: Session,
    provider: ScoreProvider,
    season: int,
    weeks: Iterable[int],
    cancel_token: CancellationToken | None = None,
) -> dict:
    """Reconcile several weeks, committing after each one.

    A provider failure skips that week only. The cancellation token is
    checked between weeks.
    """
    totals: dict = {
        "season": season,
        "weeks_processed": 0,
        "failed_weeks": [],
        "updated_games": 0,
        "results_upserted": 0,
        "unmatched": 0,
        "cancelled": False,
    }
    for week in weeks:
        if cancel_token is not None and cancel_token.cancelled:
            totals["cancelled"] = True
            logger.info("reconcile_season_cancelled", season=season, next_week=week)
            break
        try:
            summary = reconcile_week(session, provider, season, week)
            session.commit()
        except ProviderError as exc:
            session.rollback()
            totals["failed_weeks"].append(week)
            logger.warning("reconcile_week_provider_failed", season=season, week=week, error=str(exc))
            continue
        totals["weeks_processed"] += 1
        totals["updated_games"] += summary.updated_games
        totals["results_upserted"] += summary.results_upserted
        totals["unmatched"] += len(summary.unmatched)

    logger.info("reconcile_season_complete", **totals)
    return totals


def _validate_score(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidScoreError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidScoreError(f"{name} cannot be negative, got {value}")
    return value


def override_score(
    session: Session,
    game_id: int,
    away_score: int,
    home_score: int,
    acting_admin_id: int,
    reason: str | None = None,
    now: datetime | None = None,
) -> GameResult:
    """Force a final score for a game and queue it for regrading.

    The Game record is left as the provider last reported it; the override
    lives on the GameResult, which grading reads and reconciliation will not
    overwrite.
    """
    away_score = _validate_score("away_score", away_score)
    home_score = _validate_score("home_score", home_score)
    game = get_game(session, game_id)
    now = now or now_utc()
    reason = reason or DEFAULT_OVERRIDE_REASON

    result = get_result_for_game(session, game.id)
    if result is None:
        result = GameResult(
            game_id=game.id,
            away_team=game.away_team,
            home_team=game.home_team,
            status=GameStatus.scheduled.value,
        )
        session.add(result)

    previous_away, previous_home = result.away_score, result.home_score
    result.score_override = ScoreOverride(
        overridden_by=acting_admin_id,
        overridden_at=now,
        reason=reason,
        previous_away_score=previous_away,
        previous_home_score=previous_home,
        previous_status=result.status,
    ).model_dump(mode="json")
    result.away_score = away_score
    result.home_score = home_score
    result.final_score = final_score_text(away_score, home_score)
    result.winner = winner_team(game.away_team, game.home_team, away_score, home_score)
    result.status = GameStatus.final.value
    result.processed = False
    result.processed_at = None
    result.last_updated = now
    session.flush()

    log_score_override(
        session, acting_admin_id, game, previous_away, previous_home,
        away_score, home_score, reason,
    )
    logger.info(
        "score_overridden",
        game_id=game.id,
        game=game.display_name,
        admin_user_id=acting_admin_id,
        previous_score=final_score_text(previous_away, previous_home),
        new_score=result.final_score,
    )
    return result


def update_records_and_odds(
    session: Session,
    provider: ScoreProvider,
    season: int,
    weeks: Iterable[int],
) -> dict[str, int]:
    """Refresh team records and betting lines shown on games. Best-effort."""
    counts = {"records_updated": 0, "odds_updated": 0, "games_seen": 0}
    standings = provider.get_team_standings(season)

    for week in weeks:
        odds = provider.get_game_odds(season, week)
        for game in get_week_games(session, season, week):
            counts["games_seen"] += 1
            away_record = standings.get(game.away_team)
            home_record = standings.get(game.home_team)
            if away_record and home_record and (
                (game.away_record, game.home_record) != (away_record, home_record)
            ):
                game.away_record = away_record
                game.home_record = home_record
                counts["records_updated"] += 1

            line = odds.get(odds_key(game.away_team, game.home_team))
            if line is not None and (game.spread, game.over_under) != (line.spread, line.over_under):
                game.spread = line.spread
                game.over_under = line.over_under
                counts["odds_updated"] += 1
        session.commit()

    logger.info("records_and_odds_updated", season=season, **counts)
    return counts
