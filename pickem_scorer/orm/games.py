"""Games and their authoritative results."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .picks import Pick

# GameResult.winner value when the final score is level
TIE = "tie"


class GameStatus(str, Enum):
    """Canonical game lifecycle.

    Happy path: scheduled → live → final. postponed and cancelled are
    absorbing; picks on those games are never graded.
    """

    scheduled = "scheduled"
    live = "live"
    final = "final"
    postponed = "postponed"
    cancelled = "cancelled"


class GameSide(str, Enum):
    away = "away"
    home = "home"


class Game(Base):
    """A scheduled contest for one league week."""

    __tablename__ = "games"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    season: Mapped[int] = mapped_column(Integer, nullable=False)
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    away_team: Mapped[str] = mapped_column(String(100), nullable=False)
    home_team: Mapped[str] = mapped_column(String(100), nullable=False)
    kickoff: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    lock_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=GameStatus.scheduled.value, index=True
    )
    away_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    home_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    winner: Mapped[str | None] = mapped_column(String(10), nullable=True)
    quarter: Mapped[str | None] = mapped_column(String(10), nullable=True)
    time_remaining: Mapped[str | None] = mapped_column(String(50), nullable=True)
    away_record: Mapped[str] = mapped_column(String(10), nullable=False, default="0-0")
    home_record: Mapped[str] = mapped_column(String(10), nullable=False, default="0-0")
    spread: Mapped[str | None] = mapped_column(String(50), nullable=True)
    over_under: Mapped[str | None] = mapped_column(String(50), nullable=True)
    venue: Mapped[str | None] = mapped_column(String(200), nullable=True)
    network: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_tiebreaker: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    provider_game_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    result: Mapped["GameResult | None"] = relationship(
        "GameResult", back_populates="game", uselist=False
    )
    picks: Mapped[list["Pick"]] = relationship("Pick", back_populates="game")

    __table_args__ = (
        UniqueConstraint("season", "week", "away_team", "home_team", name="uq_games_matchup"),
        Index("idx_games_season_week", "season", "week"),
    )

    @property
    def display_name(self) -> str:
        return f"{self.away_team} @ {self.home_team}"


class GameResult(Base):
    """Authoritative outcome of a game, graded independently of the schedule.

    ``processed`` is False whenever grading owes this result a pass over the
    game's picks. ``score_override`` holds the audit block of the latest admin
    override and is only ever replaced as a whole.
    """

    __tablename__ = "game_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    game_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    away_team: Mapped[str] = mapped_column(String(100), nullable=False)
    home_team: Mapped[str] = mapped_column(String(100), nullable=False)
    away_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    home_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    final_score: Mapped[str | None] = mapped_column(String(20), nullable=True)
    winner: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=GameStatus.scheduled.value
    )
    quarter: Mapped[str | None] = mapped_column(String(10), nullable=True)
    time_remaining: Mapped[str | None] = mapped_column(String(50), nullable=True)
    provider_game_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    score_override: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    game: Mapped[Game] = relationship("Game", back_populates="result")

    __table_args__ = (
        Index("idx_game_results_status_processed", "status", "processed"),
    )
