"""Exception taxonomy for the scoring core.

Collaborators (HTTP handlers) map ``DataIntegrityError`` and
``PickLockedError`` to 4xx responses; anything else is a 5xx. Scheduled jobs
catch ``ProviderError`` per unit of work and keep going.
"""

from __future__ import annotations


class ScoringError(Exception):
    """Base class for all scoring-core errors."""


class ProviderError(ScoringError):
    """Transient failure talking to the external score provider."""


class DataIntegrityError(ScoringError):
    """A write was rejected because it would violate a data invariant."""


class DuplicatePickError(DataIntegrityError):
    def __init__(self, user_id: int, game_id: int) -> None:
        super().__init__(f"Pick already exists for user {user_id} and game {game_id}")
        self.user_id = user_id
        self.game_id = game_id


class GameNotFoundError(DataIntegrityError):
    def __init__(self, game_id: int) -> None:
        super().__init__(f"Game {game_id} not found")
        self.game_id = game_id


class PickNotFoundError(DataIntegrityError):
    def __init__(self, pick_id: int) -> None:
        super().__init__(f"Pick {pick_id} not found")
        self.pick_id = pick_id


class UserNotFoundError(DataIntegrityError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class InvalidScoreError(DataIntegrityError):
    """Score override with a negative or non-integer value."""


class InvalidSelectionError(DataIntegrityError):
    """Pick payload that does not fit the game it references."""


class PickLockedError(ScoringError):
    """An ordinary user tried to change a pick after the game locked."""

    def __init__(self, action: str, games: list[str]) -> None:
        super().__init__(f"Cannot {action} picks for locked games: {', '.join(games)}")
        self.action = action
        self.games = games
