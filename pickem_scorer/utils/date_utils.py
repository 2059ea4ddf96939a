"""League calendar helpers: season and week resolution.

A league season spans two calendar years (September through early
February). The season is resolved once, from a date, and stored on every
Game/Pick; queries then filter on it exactly.
"""

from __future__ import annotations

from datetime import date

from ..config import settings


def season_from_date(day: date) -> int:
    """Return the league season a calendar date belongs to.

    Dates before the rollover month (default March) belong to the previous
    season, so a January wildcard game in 2026 is season 2025.
    """
    rollover = settings.scoring_config.season_rollover_month
    return day.year if day.month >= rollover else day.year - 1


def season_start(season: int) -> date:
    cfg = settings.scoring_config
    return date(season, cfg.season_start_month, cfg.season_start_day)


def current_week(day: date) -> int:
    """Return the league week for a date, clamped to 1..max_week.

    Weeks are counted in 7-day blocks from the configured season start.
    Dates before the season start map to week 1.
    """
    cfg = settings.scoring_config
    days_since_start = (day - season_start(season_from_date(day))).days
    week = days_since_start // 7 + 1
    return min(max(week, 1), cfg.max_week)


def weeks_to_poll(day: date) -> list[int]:
    """All weeks from 1 through the current week, oldest first.

    Earlier weeks are included so late provider corrections are picked up.
    """
    return list(range(1, current_week(day) + 1))


def validate_week(week: int) -> int:
    max_week = settings.scoring_config.max_week
    if not 1 <= week <= max_week:
        raise ValueError(f"week must be between 1 and {max_week}, got {week}")
    return week
