"""ESPN scoreboard client.

Fetches weekly schedules, live/final scores, team records and betting lines
from ESPN's public site API and normalizes them into ``ProviderGame`` /
``GameOdds``. Score fetches raise ``ProviderError`` so the caller can skip
the week; records and odds are display-only and degrade to ``{}``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from ..config import settings
from ..errors import ProviderError
from ..logging import logger
from ..models import GameOdds, ProviderGame
from .teams import normalize_team_name

# ESPN competition state -> canonical game status
ESPN_STATE_MAP: dict[str, str] = {
    "pre": "scheduled",
    "in": "live",
    "post": "final",
    "postponed": "postponed",
    "cancelled": "cancelled",
}

OVERTIME_PERIOD = 5

# Below this many teams the scoreboard is missing records (early season)
MIN_STANDINGS_TEAMS = 10


def map_espn_state(state: str | None) -> str:
    return ESPN_STATE_MAP.get((state or "").lower(), "scheduled")


def format_quarter(period: int | None) -> str | None:
    if not period:
        return None
    if period == OVERTIME_PERIOD:
        return "OT"
    return str(period)


def _parse_score(value: Any) -> int | None:
    if value in (None, "", "-"):
        return None
    try:
        return int(float(value))
    except (ValueError, TypeError):
        return None


def _parse_kickoff(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _competitors(event: dict[str, Any]) -> tuple[dict, dict, dict] | None:
    """Return (competition, away, home) or None when the event is incomplete."""
    competitions = event.get("competitions") or []
    if not competitions:
        return None
    competition = competitions[0]
    competitors = competition.get("competitors") or []
    away = next((c for c in competitors if c.get("homeAway") == "away"), None)
    home = next((c for c in competitors if c.get("homeAway") == "home"), None)
    if away is None or home is None:
        return None
    return competition, away, home


def parse_event(event: dict[str, Any]) -> ProviderGame | None:
    """Normalize one scoreboard event. Returns None for incomplete events."""
    parts = _competitors(event)
    if parts is None:
        return None
    competition, away, home = parts

    status_type = (event.get("status") or {}).get("type") or {}
    status = map_espn_state(status_type.get("state"))
    period = (event.get("status") or {}).get("period") or status_type.get("period")

    # Pre-game payloads carry "0" scores; keep them unknown
    if status == "scheduled":
        away_score = home_score = None
    else:
        away_score = _parse_score(away.get("score"))
        home_score = _parse_score(home.get("score"))

    return ProviderGame(
        provider_game_id=str(event.get("id", "")),
        away_team=normalize_team_name((away.get("team") or {}).get("name", "")),
        home_team=normalize_team_name((home.get("team") or {}).get("name", "")),
        away_score=away_score,
        home_score=home_score,
        status=status,
        quarter=format_quarter(period),
        time_remaining=status_type.get("description"),
        kickoff=_parse_kickoff(event.get("date")),
        venue=(competition.get("venue") or {}).get("fullName"),
    )


class ESPNClient:
    """Synchronous client for the ESPN NFL site API."""

    def __init__(self, client: httpx.Client | None = None) -> None:
        cfg = settings.provider_config
        self.base_url = cfg.base_url.rstrip("/")
        self.standings_url = cfg.standings_url
        self.client = client or httpx.Client(
            timeout=cfg.request_timeout_seconds,
            headers={"User-Agent": cfg.user_agent},
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> ESPNClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _get_json(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = self.client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise ProviderError(f"ESPN request failed: {exc}") from exc
        if response.status_code != 200:
            raise ProviderError(
                f"ESPN returned {response.status_code} for {url}: {response.text[:200]}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(f"ESPN returned invalid JSON for {url}") from exc
        if not isinstance(payload, dict):
            raise ProviderError(f"ESPN returned unexpected payload for {url}")
        return payload

    def get_week_games(self, season: int, week: int) -> list[ProviderGame]:
        """Fetch and normalize all games for one league week.

        An empty scoreboard (pre-season, bye) returns [] instead of raising.
        """
        payload = self._get_json(
            f"{self.base_url}/scoreboard", params={"week": week, "year": season}
        )
        events = payload.get("events")
        if not events:
            logger.info("espn_week_empty", season=season, week=week)
            return []

        games: list[ProviderGame] = []
        for event in events:
            game = parse_event(event)
            if game is None:
                logger.warning("espn_event_incomplete", event_id=event.get("id"), week=week)
                continue
            games.append(game)
        logger.info("espn_week_parsed", season=season, week=week, count=len(games))
        return games

    def get_game_details(self, provider_game_id: str) -> ProviderGame | None:
        payload = self._get_json(
            f"{self.base_url}/summary", params={"event": provider_game_id}
        )
        header = payload.get("header")
        if not header:
            logger.warning("espn_summary_missing_header", provider_game_id=provider_game_id)
            return None
        return parse_event(header)

    def get_team_standings(self, season: int) -> dict[str, str]:
        """Return ``{short team name: "W-L"}``; ``{}`` on any failure."""
        standings: dict[str, str] = {}
        try:
            payload = self._get_json(f"{self.base_url}/scoreboard", params={"year": season})
        except ProviderError as exc:
            logger.warning("espn_standings_failed", season=season, error=str(exc))
            return {}

        for event in payload.get("events") or []:
            for competition in event.get("competitions") or []:
                for competitor in competition.get("competitors") or []:
                    team = competitor.get("team") or {}
                    total = next(
                        (r for r in competitor.get("records") or [] if r.get("type") == "total"),
                        None,
                    )
                    if team.get("displayName") and total and total.get("summary"):
                        standings[normalize_team_name(team["displayName"])] = total["summary"]

        if len(standings) < MIN_STANDINGS_TEAMS:
            logger.info("espn_standings_fallback", season=season, found=len(standings))
            standings.update(self._fetch_standings_endpoint(season))

        logger.info("espn_standings_parsed", season=season, teams=len(standings))
        return standings

    def _fetch_standings_endpoint(self, season: int) -> dict[str, str]:
        try:
            payload = self._get_json(self.standings_url.format(season=season))
        except ProviderError as exc:
            logger.warning("espn_standings_endpoint_failed", season=season, error=str(exc))
            return {}

        standings: dict[str, str] = {}
        for conference in payload.get("children") or []:
            for division in conference.get("children") or []:
                for entry in division.get("children") or []:
                    team = entry.get("team") or {}
                    stats = entry.get("stats") or []
                    if not team.get("displayName") or not stats:
                        continue
                    wins = next((s.get("value") for s in stats if s.get("label") == "W"), 0)
                    losses = next((s.get("value") for s in stats if s.get("label") == "L"), 0)
                    standings[normalize_team_name(team["displayName"])] = (
                        f"{_parse_score(wins) or 0}-{_parse_score(losses) or 0}"
                    )
        return standings

    def get_game_odds(self, season: int, week: int) -> dict[str, GameOdds]:
        """Return ``{"away@home": GameOdds}`` for the week; ``{}`` on failure."""
        try:
            payload = self._get_json(
                f"{self.base_url}/scoreboard", params={"week": week, "year": season}
            )
        except ProviderError as exc:
            logger.warning("espn_odds_failed", season=season, week=week, error=str(exc))
            return {}

        odds: dict[str, GameOdds] = {}
        for event in payload.get("events") or []:
            parts = _competitors(event)
            if parts is None:
                continue
            competition, away, home = parts
            lines = competition.get("odds") or []
            spread = next((o for o in lines if o.get("type") == "spread"), None)
            if not spread or not spread.get("details"):
                continue
            over_under = next((o for o in lines if o.get("type") == "overUnder"), None)
            key = odds_key(
                normalize_team_name((away.get("team") or {}).get("name", "")),
                normalize_team_name((home.get("team") or {}).get("name", "")),
            )
            odds[key] = GameOdds(
                spread=spread["details"],
                over_under=(over_under or {}).get("details"),
            )
        return odds


def odds_key(away_team: str, home_team: str) -> str:
    return f"{away_team}@{home_team}"
