"""Shared pytest fixtures and configuration."""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

# Set required environment variables before any imports
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("ENVIRONMENT", "development")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from pickem_scorer.orm import Base, Game, GameResult, Pick, User  # noqa: E402

SEASON = 2025
# Sunday of week 3, well after every fixture game kicks off
NOW = datetime(2025, 9, 21, 23, 0, tzinfo=UTC)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine) -> Session:
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = factory()
    yield session
    session.close()


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(name: str | None = None, **kwargs) -> User:
        counter["n"] += 1
        name = name or f"User {counter['n']}"
        user = User(
            name=name,
            email=kwargs.pop("email", f"{name.lower().replace(' ', '.')}@example.com"),
            **kwargs,
        )
        session.add(user)
        session.flush()
        return user

    return _make


@pytest.fixture
def make_game(session):
    def _make(
        away: str = "Falcons",
        home: str = "Saints",
        week: int = 1,
        season: int = SEASON,
        kickoff: datetime | None = None,
        **kwargs,
    ) -> Game:
        game = Game(
            season=season,
            week=week,
            away_team=away,
            home_team=home,
            kickoff=kickoff or datetime(2025, 9, 7, 17, 0, tzinfo=UTC) + timedelta(weeks=week - 1),
            **kwargs,
        )
        session.add(game)
        session.flush()
        return game

    return _make


@pytest.fixture
def make_pick(session):
    def _make(user: User, game: Game, selected_team: str | None = None, **kwargs) -> Pick:
        submitted = kwargs.pop("submitted_at", game.kickoff - timedelta(days=1))
        pick = Pick(
            user_id=user.id,
            game_id=game.id,
            week=game.week,
            season=game.season,
            selected_team=selected_team or game.away_team,
            submitted_at=submitted,
            last_modified=submitted,
            **kwargs,
        )
        session.add(pick)
        session.flush()
        return pick

    return _make


@pytest.fixture
def make_result(session):
    def _make(game: Game, away_score: int, home_score: int, status: str = "final", **kwargs) -> GameResult:
        result = GameResult(
            game_id=game.id,
            away_team=game.away_team,
            home_team=game.home_team,
            away_score=away_score,
            home_score=home_score,
            final_score=f"{away_score}-{home_score}",
            status=status,
            **kwargs,
        )
        session.add(result)
        session.flush()
        return result

    return _make


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx client."""
    client = MagicMock()
    client.get.return_value = MagicMock(status_code=200, json=lambda: {}, text="")
    return client
