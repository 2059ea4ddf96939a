"""Fail-fast environment validation for the scoring worker and scheduler.

Runs once, before ``Settings`` is built, so a misconfigured container dies at
startup instead of on its first beat tick.
"""

from __future__ import annotations

import os
from functools import lru_cache
from urllib.parse import urlparse

ALLOWED_ENVIRONMENTS = {"development", "staging", "production"}
ALLOWED_SCORER_ROLES = {"worker", "beat"}

# Flat overrides read by Settings; must parse as numbers when present
NUMERIC_OVERRIDES = {
    "PICK_LOCK_OFFSET_MINUTES": 0,
    "PROVIDER_TIMEOUT_SECONDS": 1,
}


def require_env(name: str) -> str:
    """Fetch an environment variable or raise RuntimeError if missing."""
    value = (os.getenv(name) or "").strip()
    if not value:
        raise RuntimeError(f"{name} is required and must be set before startup.")
    return value


def _check_choice(name: str, value: str, allowed: set[str]) -> None:
    if value not in allowed:
        raise RuntimeError(f"{name} must be one of: {', '.join(sorted(allowed))}.")


def _check_numeric_overrides() -> None:
    for name, minimum in NUMERIC_OVERRIDES.items():
        raw = (os.getenv(name) or "").strip()
        if not raw:
            continue
        try:
            value = float(raw)
        except ValueError:
            raise RuntimeError(f"{name} must be a number, got {raw!r}.") from None
        if value < minimum:
            raise RuntimeError(f"{name} must be at least {minimum}, got {raw}.")


def _check_production_url(name: str, value: str) -> None:
    """Production URLs need a real, non-local host."""
    host = urlparse(value).hostname
    if not host:
        raise RuntimeError(f"{name} must be a valid URL (missing hostname).")
    if host in {"localhost", "127.0.0.1"}:
        raise RuntimeError(f"{name} must not point to localhost in production.")


def _check_production(database_url: str) -> None:
    if database_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must not use SQLite in production.")
    _check_production_url("DATABASE_URL", database_url)
    parsed = urlparse(database_url)
    if (parsed.username, parsed.password) == ("postgres", "postgres"):
        raise RuntimeError(
            "DATABASE_URL must not use default postgres credentials in production."
        )
    _check_production_url("REDIS_URL", require_env("REDIS_URL"))
    _check_choice("SCORER_ROLE", os.getenv("SCORER_ROLE", "worker"), ALLOWED_SCORER_ROLES)


@lru_cache(maxsize=1)
def validate_env() -> None:
    """Validate required environment variables before the worker starts.

    Production workers must point at a real PostgreSQL/Redis pair; SQLite is
    only accepted outside production.
    """
    environment = (os.getenv("ENVIRONMENT") or "").strip() or "development"
    _check_choice("ENVIRONMENT", environment, ALLOWED_ENVIRONMENTS)
    database_url = require_env("DATABASE_URL")
    _check_numeric_overrides()
    if environment == "production":
        _check_production(database_url)
