"""Pydantic models shared by the provider adapter and the scoring services."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

GameStatusCode = Literal["scheduled", "live", "final", "postponed", "cancelled"]

# Placeholder written into activity metadata when there was nothing before
NO_PICK = "No pick"
NO_SCORE = "No score"


class ProviderGame(BaseModel):
    """One game as reported by the score provider, already normalized.

    Scores are None until the game has started.
    """

    provider_game_id: str
    away_team: str
    home_team: str
    away_score: int | None = None
    home_score: int | None = None
    status: GameStatusCode = "scheduled"
    quarter: str | None = None
    time_remaining: str | None = None
    kickoff: datetime | None = None
    venue: str | None = None

    def teams(self) -> frozenset[str]:
        return frozenset((self.away_team, self.home_team))


class GameOdds(BaseModel):
    spread: str
    over_under: str | None = None


class ScoreOverride(BaseModel):
    """Audit block written onto a GameResult by an admin score override."""

    overridden_by: int
    overridden_at: datetime
    reason: str = "Admin score override"
    previous_away_score: int | None = None
    previous_home_score: int | None = None
    previous_status: GameStatusCode | None = None


class PickResultSnapshot(BaseModel):
    """Copy of the result a pick was last graded against."""

    winner: str
    away_score: int
    home_score: int
    final_score: str
    is_correct: bool
    points: int
    processed_at: datetime


class TiebreakerPrediction(BaseModel):
    total: int | None = Field(None, ge=0, le=100)
    away_score: int | None = Field(None, ge=0, le=100)
    home_score: int | None = Field(None, ge=0, le=100)


class PickSelection(BaseModel):
    """A user's selection for one game, as handed in by a collaborator."""

    game_id: int
    selected_team: str
    tiebreaker: TiebreakerPrediction | None = None

    @field_validator("selected_team")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("selected_team must not be empty")
        return v


# Activity metadata, one shape per activity type


class PickSubmissionMeta(BaseModel):
    type: Literal["pick_submission"] = "pick_submission"
    new_value: str
    game_ids: list[int] = Field(default_factory=list)


class PickUpdateMeta(BaseModel):
    type: Literal["pick_update"] = "pick_update"
    previous_value: str
    new_value: str
    edit_source: Literal["user_update"] = "user_update"


class PickEditMeta(BaseModel):
    type: Literal["pick_edit"] = "pick_edit"
    previous_value: str
    new_value: str
    edit_reason: str
    edit_source: Literal["admin_edit"] = "admin_edit"
    game_was_locked: bool = False


class PickDeleteMeta(BaseModel):
    type: Literal["pick_delete"] = "pick_delete"
    previous_value: str


class ScoreOverrideMeta(BaseModel):
    type: Literal["score_override"] = "score_override"
    away_team: str
    home_team: str
    previous_away_score: int | str
    previous_home_score: int | str
    new_away_score: int
    new_home_score: int
    reason: str
    edit_source: Literal["admin_override"] = "admin_override"


ActivityMetadata = Annotated[
    Union[PickSubmissionMeta, PickUpdateMeta, PickEditMeta, PickDeleteMeta, ScoreOverrideMeta],
    Field(discriminator="type"),
]

activity_metadata_adapter: TypeAdapter[ActivityMetadata] = TypeAdapter(ActivityMetadata)


class FeedEntry(BaseModel):
    type: str
    message: str
    details: str | None = None
    timestamp: datetime
    user_id: int | None = None
    week: int | None = None
