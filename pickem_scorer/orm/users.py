"""League members and the aggregates derived from their picks."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .picks import Pick


class User(Base):
    """League member. Point/win columns are caches recomputed from picks."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # {"<season>:<week>": points} across all seasons
    weekly_points: Mapped[dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    weekly_wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_week_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    picks: Mapped[list["Pick"]] = relationship(
        "Pick", back_populates="user", foreign_keys="[Pick.user_id]"
    )


class WeeklyWin(Base):
    """A weekly-winner award. Rewritten per week on every recalculation."""

    __tablename__ = "weekly_wins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    season: Mapped[int] = mapped_column(Integer, nullable=False)
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    correct_picks: Mapped[int] = mapped_column(Integer, nullable=False)
    awarded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("season", "week", "user_id", name="uq_weekly_wins_user_week"),
    )
