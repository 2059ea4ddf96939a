"""
Typed settings for the pick'em scoring service.

Uses Pydantic Settings to load configuration from environment variables
with validation and type safety. A local .env file is honoured for
development; in Docker the variables are passed in directly.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .validate_env import validate_env


class ProviderConfig(BaseModel):
    base_url: str = Field(
        default="https://site.api.espn.com/apis/site/v2/sports/football/nfl"
    )
    standings_url: str = Field(
        default=(
            "https://sports.core.api.espn.com/v2/sports/football/leagues/nfl"
            "/seasons/{season}/types/2/standings"
        )
    )
    # ESPN is slow on Sunday afternoons; never go below 10s
    request_timeout_seconds: float = 15.0
    user_agent: str = "pickem-scorer/1.0"

    @field_validator("request_timeout_seconds")
    @classmethod
    def _minimum_timeout(cls, v: float) -> float:
        if v < 10:
            raise ValueError("request_timeout_seconds must be at least 10 seconds")
        return v


class ScoringConfig(BaseModel):
    # Picks lock this many minutes before kickoff unless a game overrides it
    lock_offset_minutes: int = 60
    points_per_correct_pick: int = 1
    max_week: int = 18
    # First month of a new league season; Jan/Feb games belong to the prior season
    season_rollover_month: int = 3
    season_start_month: int = 9
    season_start_day: int = 1
    league_feed_limit: int = 20


class SchedulerConfig(BaseModel):
    timezone: str = "America/New_York"
    score_poll_minutes: int = 2
    result_processing_minutes: int = 5
    # Weekly winners run Monday 2 AM league time (celery day_of_week 1)
    weekly_winners_hour: int = 2
    weekly_winners_day_of_week: int = 1
    records_update_hour: int = 6
    # Seconds to wait for a running job to honour cancel-and-restart
    restart_wait_seconds: float = 30.0
    stale_run_hours: int = 1


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    For local development values are read from a .env file at the project
    root. All settings are validated by Pydantic.
    """
    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[1] / ".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="allow",
    )

    database_url: str = Field(..., alias="DATABASE_URL")

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_async_to_sync(cls, v: str) -> str:
        """
        Convert an asyncpg URL to psycopg for synchronous SQLAlchemy.

        Celery workers run synchronous sessions, so a shared .env that points
        at asyncpg is rewritten here instead of keeping two URLs around.
        """
        if isinstance(v, str) and "asyncpg" in v:
            return v.replace("asyncpg", "psycopg")
        return v

    redis_url: str = Field("redis://localhost:6379/3", alias="REDIS_URL")
    environment: str = Field("development", alias="ENVIRONMENT")
    log_level: str | None = Field(None, alias="LOG_LEVEL")
    provider_config: ProviderConfig = Field(default_factory=ProviderConfig)
    scoring_config: ScoringConfig = Field(default_factory=ScoringConfig)
    scheduler_config: SchedulerConfig = Field(default_factory=SchedulerConfig)
    provider_timeout_override: float | None = Field(None, alias="PROVIDER_TIMEOUT_SECONDS")
    lock_offset_override: int | None = Field(None, alias="PICK_LOCK_OFFSET_MINUTES")

    @model_validator(mode="after")
    def _apply_overrides(self) -> Settings:
        """
        Allow flat env vars to override nested config without requiring
        double-underscore syntax.
        """
        if self.provider_timeout_override is not None:
            self.provider_config = self.provider_config.model_copy(
                update={"request_timeout_seconds": max(10.0, self.provider_timeout_override)}
            )
        if self.lock_offset_override is not None:
            self.scoring_config.lock_offset_minutes = self.lock_offset_override
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Environment variables don't change during runtime, so parsing once is
    enough.
    """
    validate_env()
    return Settings()


# Global settings instance - import this in other modules
settings = get_settings()
