"""Standings and streaks derived from graded picks.

Read-only over picks and games. The only writes are the weekly-winner
awards and the ``weekly_wins``/``best_week_score`` caches on users.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..logging import logger
from ..orm import Game, GameResult, GameStatus, Pick, User, WeeklyWin
from ..persistence.users import get_user, recompute_weekly_wins
from ..utils.date_utils import validate_week
from ..utils.datetime_utils import ensure_utc, now_utc


@dataclass(frozen=True)
class Streaks:
    current: int = 0
    best: int = 0


@dataclass
class WeekBreakdown:
    week: int
    correct: int
    total: int
    percentage: int


@dataclass
class UserStats:
    user_id: int
    season: int
    total_picks: int = 0
    correct_picks: int = 0
    win_percentage: int = 0
    current_streak: int = 0
    best_streak: int = 0
    rank: int = 0
    total_players: int = 0
    weekly_breakdown: list[WeekBreakdown] = field(default_factory=list)


@dataclass
class LeaderboardEntry:
    rank: int
    user_id: int
    name: str
    total_points: int
    total_picks: int
    correct_picks: int
    win_percentage: int
    current_streak: int
    best_streak: int
    weekly_wins: int
    best_week_score: int


@dataclass
class WeeklyEntry:
    rank: int
    user_id: int
    name: str
    points: int
    correct_picks: int
    total_picks: int
    win_percentage: int


@dataclass
class WeeklyWinnersResult:
    week: int
    season: int
    highest_score: int = 0
    winners: list[WeeklyEntry] = field(default_factory=list)
    is_tie: bool = False
    tiebreaker_applied: bool = False
    tiebreaker_game_id: int | None = None


def win_percentage(correct: int, finalized: int) -> int:
    """correct/finalized as a whole percentage, half rounded up."""
    if finalized <= 0:
        return 0
    return int(math.floor(correct / finalized * 100 + 0.5))


def _streak_order(pick: Pick) -> tuple[int, datetime, int]:
    return (pick.week, ensure_utc(pick.submitted_at), pick.id or 0)


def compute_streaks(picks: Iterable[Pick]) -> Streaks:
    """Current and best run of correct picks.

    Picks are ordered by (week, submitted_at), not by when they were graded,
    so the current streak reflects the latest game in schedule order.
    Ungraded picks are ignored.
    """
    running = best = 0
    for pick in sorted((p for p in picks if p.is_correct is not None), key=_streak_order):
        if pick.is_correct:
            running += 1
            best = max(best, running)
        else:
            running = 0
    return Streaks(current=running, best=best)


def compute_rankings(session: Session, season: int) -> list[int]:
    """User ids with picks, ordered by points desc, picks desc, then id."""
    rows = (
        session.query(
            Pick.user_id,
            func.coalesce(func.sum(Pick.points), 0).label("points"),
            func.count(Pick.id).label("picks"),
        )
        .filter(Pick.season == season)
        .group_by(Pick.user_id)
        .all()
    )
    ordered = sorted(rows, key=lambda row: (-int(row.points), -int(row.picks), row.user_id))
    return [row.user_id for row in ordered]


def rank_for_user(session: Session, user_id: int, season: int) -> int:
    """1-based rank, or 0 for a user with no picks this season."""
    try:
        return compute_rankings(session, season).index(user_id) + 1
    except ValueError:
        return 0


def get_user_stats(session: Session, user_id: int, season: int) -> UserStats:
    get_user(session, user_id)
    picks = (
        session.query(Pick)
        .filter(Pick.user_id == user_id, Pick.season == season)
        .all()
    )
    total_players = session.query(func.count(User.id)).filter(User.active.is_(True)).scalar() or 0
    stats = UserStats(user_id=user_id, season=season, total_players=int(total_players))
    if not picks:
        return stats

    finalized = [p for p in picks if p.is_correct is not None]
    correct = sum(1 for p in finalized if p.is_correct)
    streaks = compute_streaks(picks)

    by_week: dict[int, list[Pick]] = defaultdict(list)
    for pick in picks:
        by_week[pick.week].append(pick)

    stats.total_picks = len(picks)
    stats.correct_picks = correct
    stats.win_percentage = win_percentage(correct, len(finalized))
    stats.current_streak = streaks.current
    stats.best_streak = streaks.best
    stats.rank = rank_for_user(session, user_id, season)
    stats.weekly_breakdown = [
        WeekBreakdown(
            week=week,
            correct=sum(1 for p in week_picks if p.is_correct),
            total=len(week_picks),
            percentage=win_percentage(sum(1 for p in week_picks if p.is_correct), len(week_picks)),
        )
        for week, week_picks in sorted(by_week.items())
    ]
    return stats


def get_leaderboard(session: Session, season: int, limit: int | None = None) -> list[LeaderboardEntry]:
    ranking = compute_rankings(session, season)
    if limit is not None:
        ranking = ranking[:limit]
    if not ranking:
        return []

    users = {u.id: u for u in session.query(User).filter(User.id.in_(ranking)).all()}
    picks_by_user: dict[int, list[Pick]] = defaultdict(list)
    for pick in session.query(Pick).filter(Pick.season == season, Pick.user_id.in_(ranking)):
        picks_by_user[pick.user_id].append(pick)

    entries: list[LeaderboardEntry] = []
    for position, user_id in enumerate(ranking, start=1):
        user = users[user_id]
        picks = picks_by_user[user_id]
        finalized = [p for p in picks if p.is_correct is not None]
        correct = sum(1 for p in finalized if p.is_correct)
        streaks = compute_streaks(picks)
        entries.append(
            LeaderboardEntry(
                rank=position,
                user_id=user_id,
                name=user.name,
                total_points=sum(p.points for p in picks),
                total_picks=len(picks),
                correct_picks=correct,
                win_percentage=win_percentage(correct, len(finalized)),
                current_streak=streaks.current,
                best_streak=streaks.best,
                weekly_wins=user.weekly_wins,
                best_week_score=user.best_week_score,
            )
        )
    return entries


def _week_entries(session: Session, week: int, season: int) -> list[WeeklyEntry]:
    """Per-user tallies for one week, unranked."""
    rows = (
        session.query(Pick, User.name)
        .join(User, User.id == Pick.user_id)
        .filter(Pick.season == season, Pick.week == week)
        .all()
    )
    tallies: dict[int, WeeklyEntry] = {}
    for pick, name in rows:
        entry = tallies.get(pick.user_id)
        if entry is None:
            entry = tallies[pick.user_id] = WeeklyEntry(
                rank=0, user_id=pick.user_id, name=name,
                points=0, correct_picks=0, total_picks=0, win_percentage=0,
            )
        entry.total_picks += 1
        entry.points += pick.points or 0
        if pick.is_correct:
            entry.correct_picks += 1
    for entry in tallies.values():
        entry.win_percentage = win_percentage(entry.correct_picks, entry.total_picks)
    return list(tallies.values())


def get_weekly_leaderboard(session: Session, week: int, season: int) -> list[WeeklyEntry]:
    validate_week(week)
    entries = sorted(
        _week_entries(session, week, season),
        key=lambda e: (-e.points, -e.correct_picks, e.name.casefold(), e.user_id),
    )
    for position, entry in enumerate(entries, start=1):
        entry.rank = position
    return entries


def tiebreaker_game(session: Session, week: int, season: int) -> Game | None:
    """The week's flagged tiebreaker game, else its last kickoff."""
    games = (
        session.query(Game)
        .filter(Game.season == season, Game.week == week)
        .order_by(Game.kickoff.desc(), Game.id.desc())
        .all()
    )
    flagged = [g for g in games if g.is_tiebreaker]
    if flagged:
        return flagged[0]
    return games[0] if games else None


def _predicted_total(pick: Pick | None) -> int | None:
    if pick is None:
        return None
    if pick.tiebreaker_total is not None:
        return pick.tiebreaker_total
    if pick.tiebreaker_away_score is not None and pick.tiebreaker_home_score is not None:
        return pick.tiebreaker_away_score + pick.tiebreaker_home_score
    return None


def _apply_tiebreaker(
    session: Session,
    tied: list[WeeklyEntry],
    game: Game | None,
) -> tuple[list[WeeklyEntry], bool]:
    """Narrow a tie by closest combined-score prediction.

    Returns (winners, applied). Without a final result for the tiebreaker
    game the full tie set is kept in alphabetical order.
    """
    alphabetical = sorted(tied, key=lambda e: (e.name.casefold(), e.user_id))
    if game is None:
        return alphabetical, False
    result = (
        session.query(GameResult)
        .filter(GameResult.game_id == game.id, GameResult.status == GameStatus.final.value)
        .one_or_none()
    )
    if result is None or result.away_score is None or result.home_score is None:
        logger.info("weekly_tiebreaker_unresolved", game_id=game.id, tied=len(tied))
        return alphabetical, False

    actual = result.away_score + result.home_score
    picks = {
        p.user_id: p
        for p in session.query(Pick).filter(
            Pick.game_id == game.id, Pick.user_id.in_([e.user_id for e in tied])
        )
    }
    distance: dict[int, float] = {}
    for entry in tied:
        predicted = _predicted_total(picks.get(entry.user_id))
        distance[entry.user_id] = math.inf if predicted is None else abs(predicted - actual)
    best = min(distance.values())
    winners = [e for e in alphabetical if distance[e.user_id] == best]
    return winners, True


def calculate_weekly_winners(
    session: Session,
    week: int,
    season: int,
    use_tiebreaker: bool = False,
    now: datetime | None = None,
) -> WeeklyWinnersResult:
    """Determine and record the winners of one week.

    Winners are everyone tied at the week's highest correct-pick count,
    optionally narrowed by the tiebreaker game. Awards for the week are
    rewritten, so running this again for the same week changes nothing.
    """
    validate_week(week)
    now = now or now_utc()
    outcome = WeeklyWinnersResult(week=week, season=season)
    entries = _week_entries(session, week, season)
    if not entries:
        logger.info("weekly_winners_no_picks", week=week, season=season)
        return outcome

    highest = max(e.correct_picks for e in entries)
    winners = sorted(
        (e for e in entries if e.correct_picks == highest),
        key=lambda e: (e.name.casefold(), e.user_id),
    )
    if use_tiebreaker and len(winners) > 1:
        game = tiebreaker_game(session, week, season)
        outcome.tiebreaker_game_id = game.id if game else None
        winners, outcome.tiebreaker_applied = _apply_tiebreaker(session, winners, game)
    for position, entry in enumerate(winners, start=1):
        entry.rank = position

    previous_ids = {
        row[0]
        for row in session.query(WeeklyWin.user_id).filter(
            WeeklyWin.season == season, WeeklyWin.week == week
        )
    }
    session.query(WeeklyWin).filter(
        WeeklyWin.season == season, WeeklyWin.week == week
    ).delete()
    for entry in winners:
        session.add(
            WeeklyWin(
                season=season,
                week=week,
                user_id=entry.user_id,
                correct_picks=entry.correct_picks,
                awarded_at=now,
            )
        )
    session.flush()

    participant_ids = [e.user_id for e in entries]
    recompute_weekly_wins(session, previous_ids | set(participant_ids))
    correct_by_user = {e.user_id: e.correct_picks for e in entries}
    for user in session.query(User).filter(User.id.in_(participant_ids)):
        user.best_week_score = max(user.best_week_score or 0, correct_by_user[user.id])
        user.last_updated = now
    session.flush()

    outcome.highest_score = highest
    outcome.winners = winners
    outcome.is_tie = len(winners) > 1
    logger.info(
        "weekly_winners_calculated",
        week=week,
        season=season,
        highest_score=highest,
        winners=[e.user_id for e in winners],
        is_tie=outcome.is_tie,
        tiebreaker_applied=outcome.tiebreaker_applied,
    )
    return outcome
