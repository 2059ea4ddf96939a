"""User picks with grading and edit-audit fields."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .games import Game
from .users import User


class EditSource(str, Enum):
    user_update = "user_update"
    admin_edit = "admin_edit"


class Pick(Base):
    """One user's selection for one game."""

    __tablename__ = "picks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    game_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True
    )
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    season: Mapped[int] = mapped_column(Integer, nullable=False)
    selected_team: Mapped[str] = mapped_column(String(100), nullable=False)
    # Only meaningful on the week's tiebreaker game
    tiebreaker_total: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tiebreaker_away_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tiebreaker_home_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    result: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_modified: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_edited_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    last_edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    edit_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    edit_source: Mapped[str | None] = mapped_column(String(20), nullable=True)

    user: Mapped[User] = relationship("User", back_populates="picks", foreign_keys=[user_id])
    game: Mapped[Game] = relationship("Game", back_populates="picks")

    __table_args__ = (
        UniqueConstraint("user_id", "game_id", name="uq_picks_user_game"),
        Index("idx_picks_user_season", "user_id", "season"),
        Index("idx_picks_season_week", "season", "week"),
    )

    @property
    def status(self) -> str:
        if self.is_correct is None:
            return "pending"
        return "correct" if self.is_correct else "incorrect"
