"""NFL team names as the provider reports them and as games store them.

Games store the short nickname ("Falcons"). The scoreboard already reports
that as ``team.name``; standings and some odds payloads use the full display
name, which is mapped back here.
"""

from __future__ import annotations

import re

# full display name -> (short name, abbreviation, common variations)
NFL_TEAMS: dict[str, tuple[str, str, list[str]]] = {
    "Arizona Cardinals": ("Cardinals", "ARI", ["Arizona"]),
    "Atlanta Falcons": ("Falcons", "ATL", ["Atlanta"]),
    "Baltimore Ravens": ("Ravens", "BAL", ["Baltimore"]),
    "Buffalo Bills": ("Bills", "BUF", ["Buffalo"]),
    "Carolina Panthers": ("Panthers", "CAR", ["Carolina"]),
    "Chicago Bears": ("Bears", "CHI", ["Chicago"]),
    "Cincinnati Bengals": ("Bengals", "CIN", ["Cincinnati"]),
    "Cleveland Browns": ("Browns", "CLE", ["Cleveland"]),
    "Dallas Cowboys": ("Cowboys", "DAL", ["Dallas"]),
    "Denver Broncos": ("Broncos", "DEN", ["Denver"]),
    "Detroit Lions": ("Lions", "DET", ["Detroit"]),
    "Green Bay Packers": ("Packers", "GB", ["Green Bay"]),
    "Houston Texans": ("Texans", "HOU", ["Houston"]),
    "Indianapolis Colts": ("Colts", "IND", ["Indianapolis"]),
    "Jacksonville Jaguars": ("Jaguars", "JAX", ["Jacksonville"]),
    "Kansas City Chiefs": ("Chiefs", "KC", ["Kansas City"]),
    "Las Vegas Raiders": ("Raiders", "LV", ["Las Vegas", "Oakland Raiders"]),
    "Los Angeles Chargers": ("Chargers", "LAC", ["LA Chargers", "L.A. Chargers"]),
    "Los Angeles Rams": ("Rams", "LAR", ["LA Rams", "L.A. Rams"]),
    "Miami Dolphins": ("Dolphins", "MIA", ["Miami"]),
    "Minnesota Vikings": ("Vikings", "MIN", ["Minnesota"]),
    "New England Patriots": ("Patriots", "NE", ["New England"]),
    "New Orleans Saints": ("Saints", "NO", ["New Orleans"]),
    "New York Giants": ("Giants", "NYG", ["NY Giants"]),
    "New York Jets": ("Jets", "NYJ", ["NY Jets"]),
    "Philadelphia Eagles": ("Eagles", "PHI", ["Philadelphia"]),
    "Pittsburgh Steelers": ("Steelers", "PIT", ["Pittsburgh"]),
    "San Francisco 49ers": ("49ers", "SF", ["San Francisco"]),
    "Seattle Seahawks": ("Seahawks", "SEA", ["Seattle"]),
    "Tampa Bay Buccaneers": ("Buccaneers", "TB", ["Tampa Bay"]),
    "Tennessee Titans": ("Titans", "TEN", ["Tennessee"]),
    "Washington Commanders": ("Commanders", "WAS", ["Washington", "Washington Football Team"]),
}

# Build lookup: any known spelling (lowercased) -> short name
TEAM_MAPPINGS: dict[str, str] = {}
for _full, (_short, _abbr, _variations) in NFL_TEAMS.items():
    for _key in (_full, _short, _abbr, *_variations):
        TEAM_MAPPINGS[_key.lower()] = _short


def _normalize_string(s: str) -> str:
    s = re.sub(r"\s+", " ", s.strip().lower())
    return re.sub(r"[.,]", "", s)


def normalize_team_name(display_name: str) -> str:
    """Map any provider spelling of a team to the stored short name.

    Unknown names are returned unchanged so a new or relocated franchise
    still flows through; reconciliation then logs it as unmatched.
    """
    if not display_name:
        return display_name
    key = display_name.strip().lower()
    if key in TEAM_MAPPINGS:
        return TEAM_MAPPINGS[key]
    normalized = _normalize_string(display_name)
    for variation, short in TEAM_MAPPINGS.items():
        if _normalize_string(variation) == normalized:
            return short
    return display_name.strip()
