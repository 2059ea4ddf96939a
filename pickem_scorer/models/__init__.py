"""Typed models shared across the scoring core."""

from .schemas import (
    NO_PICK,
    NO_SCORE,
    ActivityMetadata,
    FeedEntry,
    GameOdds,
    PickDeleteMeta,
    PickEditMeta,
    PickResultSnapshot,
    PickSelection,
    PickSubmissionMeta,
    PickUpdateMeta,
    ProviderGame,
    ScoreOverride,
    ScoreOverrideMeta,
    TiebreakerPrediction,
    activity_metadata_adapter,
)

__all__ = [
    "NO_PICK",
    "NO_SCORE",
    "ActivityMetadata",
    "FeedEntry",
    "GameOdds",
    "PickDeleteMeta",
    "PickEditMeta",
    "PickResultSnapshot",
    "PickSelection",
    "PickSubmissionMeta",
    "PickUpdateMeta",
    "ProviderGame",
    "ScoreOverride",
    "ScoreOverrideMeta",
    "TiebreakerPrediction",
    "activity_metadata_adapter",
]
