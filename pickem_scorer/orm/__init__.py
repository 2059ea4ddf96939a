"""ORM models for the scoring core.

Import models from their respective modules:
    from pickem_scorer.orm.games import Game, GameResult
    from pickem_scorer.orm.picks import Pick
"""

from .activity import Activity, ActivityType
from .base import Base
from .games import TIE, Game, GameResult, GameSide, GameStatus
from .jobs import JobRunStatus, ScoringJobRun
from .picks import EditSource, Pick
from .users import User, WeeklyWin

__all__ = [
    "Activity",
    "ActivityType",
    "Base",
    "EditSource",
    "Game",
    "GameResult",
    "GameSide",
    "GameStatus",
    "JobRunStatus",
    "Pick",
    "ScoringJobRun",
    "TIE",
    "User",
    "WeeklyWin",
]
