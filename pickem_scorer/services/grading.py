"""Grading engine: score picks against final, unprocessed results.

Safe to run at any frequency. A result is graded when it is final and
``processed`` is False; every pick on the game is rewritten and the owners'
totals are recomputed from scratch, so regrading after a correction or an
override converges on the same state as grading once.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import DataIntegrityError
from ..logging import logger
from ..models import PickResultSnapshot
from ..orm import GameResult, GameStatus, Pick
from ..persistence.games import final_score_text, winner_team
from ..persistence.users import recompute_user_totals
from ..utils.datetime_utils import now_utc
from ..utils.job_guard import CancellationToken

__all__ = [
    "determine_winner",
    "grade_pick",
    "process_all_results",
    "process_game_result",
    "recompute_user_totals",
]


def determine_winner(result: GameResult) -> str:
    """Winning team name from the result's own scores, or ``"tie"``."""
    if result.away_score is None or result.home_score is None:
        raise DataIntegrityError(f"Result {result.id} is final but has no score")
    return winner_team(result.away_team, result.home_team, result.away_score, result.home_score)


def grade_pick(pick: Pick, result: GameResult, winner: str, now: datetime) -> bool:
    """Write correctness, points and the result snapshot onto a pick."""
    is_correct = pick.selected_team == winner
    points = settings.scoring_config.points_per_correct_pick if is_correct else 0
    pick.is_correct = is_correct
    pick.points = points
    pick.result = PickResultSnapshot(
        winner=winner,
        away_score=result.away_score,
        home_score=result.home_score,
        final_score=final_score_text(result.away_score, result.home_score),
        is_correct=is_correct,
        points=points,
        processed_at=now,
    ).model_dump(mode="json")
    return is_correct


def process_game_result(session: Session, result: GameResult, now: datetime | None = None) -> dict[str, int]:
    """Grade every pick on one result's game and recompute their owners' totals."""
    now = now or now_utc()
    winner = determine_winner(result)
    result.winner = winner
    result.processed = True
    result.processed_at = now

    picks = session.query(Pick).filter(Pick.game_id == result.game_id).all()
    correct = sum(1 for pick in picks if grade_pick(pick, result, winner, now))
    session.flush()

    if picks:
        recompute_user_totals(session, {pick.user_id for pick in picks}, now)

    logger.info(
        "game_result_graded",
        result_id=result.id,
        game_id=result.game_id,
        game=f"{result.away_team} @ {result.home_team}",
        winner=winner,
        picks=len(picks),
        correct=correct,
    )
    return {"picks_graded": len(picks), "correct": correct}


def process_all_results(
    session: Session,
    cancel_token: CancellationToken | None = None,
) -> dict[str, int]:
    """Grade every final, unprocessed result. Returns counts.

    Each result is committed on its own. A failure rolls back that result
    only and leaves it unprocessed for the next run.
    """
    counts = {"results_found": 0, "results_processed": 0, "results_failed": 0, "picks_graded": 0}
    result_ids = [
        row[0]
        for row in session.query(GameResult.id)
        .filter(
            GameResult.status == GameStatus.final.value,
            GameResult.processed.is_(False),
        )
        .order_by(GameResult.id)
        .all()
    ]
    counts["results_found"] = len(result_ids)

    for result_id in result_ids:
        if cancel_token is not None and cancel_token.cancelled:
            logger.info("grading_cancelled", remaining=len(result_ids) - counts["results_processed"])
            break
        try:
            result = session.get(GameResult, result_id)
            if result is None or result.processed:
                continue
            graded = process_game_result(session, result)
            session.commit()
        except Exception as exc:
            session.rollback()
            counts["results_failed"] += 1
            logger.exception("grading_result_failed", result_id=result_id, error=str(exc))
            continue
        counts["results_processed"] += 1
        counts["picks_graded"] += graded["picks_graded"]

    if counts["results_found"]:
        logger.info("grading_complete", **counts)
    else:
        logger.debug("grading_no_unprocessed_results")
    return counts
