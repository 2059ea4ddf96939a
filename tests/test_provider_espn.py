"""Tests for the ESPN provider adapter with mocked HTTP."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock

import httpx
import pytest

from pickem_scorer.errors import ProviderError
from pickem_scorer.provider.espn import (
    ESPNClient,
    format_quarter,
    map_espn_state,
    parse_event,
)
from pickem_scorer.provider.teams import normalize_team_name


def _event(
    state="post",
    away="Falcons",
    home="Saints",
    away_score="24",
    home_score="17",
    period=4,
    description="Final",
    odds=None,
    records=None,
):
    competitors = [
        {"homeAway": "away", "score": away_score, "team": {"name": away, "displayName": f"City {away}"}},
        {"homeAway": "home", "score": home_score, "team": {"name": home, "displayName": f"City {home}"}},
    ]
    if records:
        for competitor, summary in zip(competitors, records):
            competitor["team"]["displayName"] = summary[0]
            competitor["records"] = [{"type": "total", "summary": summary[1]}]
    return {
        "id": "401772",
        "date": "2025-09-07T17:00Z",
        "status": {"period": period, "type": {"state": state, "description": description}},
        "competitions": [
            {
                "venue": {"fullName": "Caesars Superdome"},
                "competitors": competitors,
                "odds": odds or [],
            }
        ],
    }


def _response(payload, status_code=200):
    response = MagicMock(status_code=status_code, text="")
    response.json.return_value = payload
    return response


# ---------------------------------------------------------------------------
# parsing helpers
# ---------------------------------------------------------------------------
class TestStateMapping:
    @pytest.mark.parametrize(
        "state, expected",
        [("pre", "scheduled"), ("in", "live"), ("post", "final"), ("POST", "final"),
         ("postponed", "postponed"), ("cancelled", "cancelled"), (None, "scheduled"), ("odd", "scheduled")],
    )
    def test_map(self, state, expected):
        assert map_espn_state(state) == expected

    def test_overtime_period(self):
        assert format_quarter(5) == "OT"
        assert format_quarter(3) == "3"
        assert format_quarter(None) is None


class TestParseEvent:
    def test_final_event(self):
        game = parse_event(_event())
        assert game.provider_game_id == "401772"
        assert (game.away_team, game.home_team) == ("Falcons", "Saints")
        assert (game.away_score, game.home_score) == (24, 17)
        assert game.status == "final"
        assert game.quarter == "4"
        assert game.kickoff == datetime(2025, 9, 7, 17, 0, tzinfo=UTC)
        assert game.venue == "Caesars Superdome"

    def test_scheduled_event_has_no_scores(self):
        game = parse_event(_event(state="pre", away_score="0", home_score="0", period=0))
        assert game.away_score is None
        assert game.home_score is None
        assert game.quarter is None

    def test_missing_competitor(self):
        event = _event()
        event["competitions"][0]["competitors"].pop()
        assert parse_event(event) is None

    def test_no_competitions(self):
        assert parse_event({"id": "1"}) is None


class TestNormalizeTeamName:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Atlanta Falcons", "Falcons"),
            ("falcons", "Falcons"),
            ("ATL", "Falcons"),
            ("L.A. Rams", "Rams"),
            ("LA Rams", "Rams"),
            ("  New York Jets ", "Jets"),
            ("Washington Football Team", "Commanders"),
        ],
    )
    def test_known_spellings(self, raw, expected):
        assert normalize_team_name(raw) == expected

    def test_unknown_name_passes_through(self):
        assert normalize_team_name(" Expansion Team ") == "Expansion Team"


# ---------------------------------------------------------------------------
# ESPNClient
# ---------------------------------------------------------------------------
class TestESPNClientWeekGames:
    def test_parses_events(self, mock_httpx_client):
        mock_httpx_client.get.return_value = _response({"events": [_event(), _event(state="in")]})
        games = ESPNClient(client=mock_httpx_client).get_week_games(2025, 1)
        assert [g.status for g in games] == ["final", "live"]
        _, kwargs = mock_httpx_client.get.call_args
        assert kwargs["params"] == {"week": 1, "year": 2025}

    def test_empty_scoreboard(self, mock_httpx_client):
        mock_httpx_client.get.return_value = _response({"events": []})
        assert ESPNClient(client=mock_httpx_client).get_week_games(2025, 1) == []

    def test_incomplete_event_skipped(self, mock_httpx_client):
        broken = _event()
        broken["competitions"] = []
        mock_httpx_client.get.return_value = _response({"events": [broken, _event()]})
        assert len(ESPNClient(client=mock_httpx_client).get_week_games(2025, 1)) == 1

    def test_transport_error_raises_provider_error(self, mock_httpx_client):
        mock_httpx_client.get.side_effect = httpx.ConnectTimeout("timed out")
        with pytest.raises(ProviderError):
            ESPNClient(client=mock_httpx_client).get_week_games(2025, 1)

    def test_non_200_raises_provider_error(self, mock_httpx_client):
        mock_httpx_client.get.return_value = _response({}, status_code=503)
        with pytest.raises(ProviderError, match="503"):
            ESPNClient(client=mock_httpx_client).get_week_games(2025, 1)

    def test_invalid_json_raises_provider_error(self, mock_httpx_client):
        response = _response(None)
        response.json.side_effect = ValueError("bad json")
        mock_httpx_client.get.return_value = response
        with pytest.raises(ProviderError):
            ESPNClient(client=mock_httpx_client).get_week_games(2025, 1)

    def test_context_manager_closes_client(self, mock_httpx_client):
        with ESPNClient(client=mock_httpx_client):
            pass
        mock_httpx_client.close.assert_called_once()


class TestESPNClientDetails:
    def test_summary_header(self, mock_httpx_client):
        mock_httpx_client.get.return_value = _response({"header": _event(state="in", period=5)})
        game = ESPNClient(client=mock_httpx_client).get_game_details("401772")
        assert game.status == "live"
        assert game.quarter == "OT"

    def test_missing_header(self, mock_httpx_client):
        mock_httpx_client.get.return_value = _response({})
        assert ESPNClient(client=mock_httpx_client).get_game_details("401772") is None


class TestESPNClientStandings:
    def test_falls_back_to_standings_endpoint(self, mock_httpx_client):
        scoreboard = {
            "events": [_event(records=[("Atlanta Falcons", "1-0"), ("New Orleans Saints", "0-1")])]
        }
        standings = {
            "children": [
                {
                    "children": [
                        {
                            "children": [
                                {
                                    "team": {"displayName": "Buffalo Bills"},
                                    "stats": [{"label": "W", "value": 2.0}, {"label": "L", "value": 0.0}],
                                }
                            ]
                        }
                    ]
                }
            ]
        }
        mock_httpx_client.get.side_effect = [_response(scoreboard), _response(standings)]

        result = ESPNClient(client=mock_httpx_client).get_team_standings(2025)

        assert result == {"Falcons": "1-0", "Saints": "0-1", "Bills": "2-0"}

    def test_string_and_malformed_stat_values(self, mock_httpx_client):
        standings = {
            "children": [
                {
                    "children": [
                        {
                            "children": [
                                {
                                    "team": {"displayName": "Buffalo Bills"},
                                    "stats": [{"label": "W", "value": "10.0"}, {"label": "L", "value": "7"}],
                                },
                                {
                                    "team": {"displayName": "New York Jets"},
                                    "stats": [{"label": "W", "value": "n/a"}, {"label": "L", "value": "3"}],
                                },
                            ]
                        }
                    ]
                }
            ]
        }
        mock_httpx_client.get.side_effect = [_response({"events": []}), _response(standings)]

        result = ESPNClient(client=mock_httpx_client).get_team_standings(2025)

        assert result == {"Bills": "10-7", "Jets": "0-3"}

    def test_failure_returns_empty(self, mock_httpx_client):
        mock_httpx_client.get.side_effect = httpx.ConnectError("down")
        assert ESPNClient(client=mock_httpx_client).get_team_standings(2025) == {}


class TestESPNClientOdds:
    def test_spread_and_total(self, mock_httpx_client):
        odds = [
            {"type": "spread", "details": "ATL -3.5"},
            {"type": "overUnder", "details": "44.5"},
        ]
        mock_httpx_client.get.return_value = _response(
            {"events": [_event(state="pre", odds=odds), _event(away="Bills", home="Jets")]}
        )

        result = ESPNClient(client=mock_httpx_client).get_game_odds(2025, 1)

        assert list(result) == ["Falcons@Saints"]
        assert result["Falcons@Saints"].spread == "ATL -3.5"
        assert result["Falcons@Saints"].over_under == "44.5"

    def test_failure_returns_empty(self, mock_httpx_client):
        mock_httpx_client.get.return_value = _response({}, status_code=500)
        assert ESPNClient(client=mock_httpx_client).get_game_odds(2025, 1) == {}
