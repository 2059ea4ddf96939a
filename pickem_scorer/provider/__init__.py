"""External score provider adapter."""

from .espn import ESPNClient, odds_key, parse_event
from .teams import normalize_team_name

__all__ = ["ESPNClient", "normalize_team_name", "odds_key", "parse_event"]
