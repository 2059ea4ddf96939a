"""Append-only league activity log."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ActivityType(str, Enum):
    pick_submission = "pick_submission"
    pick_update = "pick_update"
    pick_edit = "pick_edit"
    pick_delete = "pick_delete"
    score_override = "score_override"


class Activity(Base):
    """One entry in the league feed.

    ``payload`` is stored in the ``metadata`` column (the attribute name is
    reserved on declarative classes) and is validated against the typed
    models in ``models.activity`` before it is written.
    """

    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    target_user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    game_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("games.id", ondelete="SET NULL"), nullable=True
    )
    week: Mapped[int | None] = mapped_column(Integer, nullable=True)
    season: Mapped[int | None] = mapped_column(Integer, nullable=True)
    action: Mapped[str] = mapped_column(String(200), nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_activities_created", "created_at"),)
