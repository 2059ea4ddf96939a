"""
Database helpers for the scoring service.

Synchronous session management for Celery tasks and for collaborators that
call the scoring core directly. The engine is created lazily so tests and
tooling can import the package without a reachable database.
"""

from __future__ import annotations

from contextlib import contextmanager
from types import SimpleNamespace
from typing import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .logging import logger
from .orm import (
    Activity,
    ActivityType,
    EditSource,
    Game,
    GameResult,
    GameSide,
    GameStatus,
    JobRunStatus,
    Pick,
    ScoringJobRun,
    User,
    WeeklyWin,
)

# Unified namespace exposing all ORM models
db_models = SimpleNamespace(
    # Enums
    ActivityType=ActivityType,
    EditSource=EditSource,
    GameSide=GameSide,
    GameStatus=GameStatus,
    JobRunStatus=JobRunStatus,
    # Models
    Activity=Activity,
    Game=Game,
    GameResult=GameResult,
    Pick=Pick,
    ScoringJobRun=ScoringJobRun,
    User=User,
    WeeklyWin=WeeklyWin,
)

_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    """Get or create the database engine (lazy initialization)."""
    global _engine
    if _engine is None:
        _engine = create_engine(settings.database_url, future=True, pool_pre_ping=True)
    return _engine


def _get_session_factory() -> sessionmaker[Session]:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            bind=get_engine(),
            autoflush=False,
            autocommit=False,
            class_=Session,
        )
    return _SessionLocal


@contextmanager
def get_session() -> Iterator[Session]:
    """
    Provide a transactional database session context manager.

    Automatically handles commit/rollback and session cleanup.

    Usage:
        with get_session() as session:
            reconcile_week(session, client, season, week)
            # Commit happens automatically on exit
    """
    session = _get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception as exc:
        session.rollback()
        logger.exception("db_session_rollback", error=str(exc))
        raise
    finally:
        session.close()


__all__ = ["get_session", "get_engine", "db_models"]
