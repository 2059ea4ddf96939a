"""Tests for game/result persistence helpers."""

from __future__ import annotations

import pytest

from pickem_scorer.errors import GameNotFoundError
from pickem_scorer.persistence.games import (
    final_score_text,
    get_game,
    get_week_games,
    mark_result_unprocessed,
    normalize_status,
    resolve_status_transition,
    upsert_game_result,
    winner_side,
    winner_team,
)

from .conftest import NOW


# ---------------------------------------------------------------------------
# status handling
# ---------------------------------------------------------------------------
class TestNormalizeStatus:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (None, "scheduled"),
            ("", "scheduled"),
            ("FINAL", "final"),
            ("completed", "final"),
            ("in", "live"),
            ("canceled", "cancelled"),
            ("postponed", "postponed"),
            ("something-new", "scheduled"),
        ],
    )
    def test_maps_variants(self, raw, expected):
        assert normalize_status(raw) == expected


class TestResolveStatusTransition:
    def test_forward_progression(self):
        assert resolve_status_transition("scheduled", "live") == "live"
        assert resolve_status_transition("live", "final") == "final"
        assert resolve_status_transition("scheduled", "final") == "final"

    def test_live_does_not_regress_to_scheduled(self):
        assert resolve_status_transition("live", "scheduled") == "live"

    def test_final_never_regresses(self):
        assert resolve_status_transition("final", "live") == "final"
        assert resolve_status_transition("final", "scheduled") == "final"
        assert resolve_status_transition("final", "postponed") == "final"

    def test_postponed_and_cancelled_are_absorbing(self):
        assert resolve_status_transition("postponed", "live") == "postponed"
        assert resolve_status_transition("cancelled", "final") == "cancelled"

    def test_postponed_accepted_from_scheduled(self):
        assert resolve_status_transition("scheduled", "postponed") == "postponed"
        assert resolve_status_transition("live", "cancelled") == "cancelled"


# ---------------------------------------------------------------------------
# winner helpers
# ---------------------------------------------------------------------------
class TestWinnerHelpers:
    def test_winner_side(self):
        assert winner_side(24, 17) == "away"
        assert winner_side(10, 13) == "home"
        assert winner_side(20, 20) is None
        assert winner_side(None, 3) is None

    def test_winner_team_tie_sentinel(self):
        assert winner_team("Falcons", "Saints", 24, 17) == "Falcons"
        assert winner_team("Falcons", "Saints", 17, 24) == "Saints"
        assert winner_team("Falcons", "Saints", 20, 20) == "tie"

    def test_final_score_text(self):
        assert final_score_text(24, 17) == "24-17"
        assert final_score_text(None, 17) is None


# ---------------------------------------------------------------------------
# queries and upserts
# ---------------------------------------------------------------------------
class TestGameQueries:
    def test_get_game_missing_raises(self, session):
        with pytest.raises(GameNotFoundError):
            get_game(session, 999)

    def test_get_week_games_filters_season_and_week(self, session, make_game):
        g1 = make_game("Falcons", "Saints", week=1)
        make_game("Bills", "Jets", week=2)
        make_game("Bears", "Lions", week=1, season=2024)
        assert [g.id for g in get_week_games(session, 2025, 1)] == [g1.id]


class TestUpsertGameResult:
    def test_creates_result_with_winner_when_final(self, session, make_game):
        game = make_game()
        result = upsert_game_result(
            session, game, status="final", away_score=27, home_score=20,
            quarter="4", time_remaining="Final", provider_game_id="401", now=NOW,
        )
        assert result is not None
        assert result.winner == "Falcons"
        assert result.final_score == "27-20"
        assert result.processed is False

    def test_live_result_has_no_winner(self, session, make_game):
        game = make_game()
        result = upsert_game_result(
            session, game, status="live", away_score=7, home_score=3,
            quarter="2", time_remaining="5:00", provider_game_id=None, now=NOW,
        )
        assert result.winner is None

    def test_update_resets_processed(self, session, make_game, make_result):
        game = make_game()
        existing = make_result(game, 20, 17, processed=True)
        upsert_game_result(
            session, game, status="final", away_score=20, home_score=24,
            quarter="4", time_remaining="Final", provider_game_id=None, now=NOW,
        )
        assert existing.processed is False
        assert existing.winner == "Saints"

    def test_override_is_preserved(self, session, make_game, make_result):
        game = make_game()
        existing = make_result(game, 30, 0, score_override={"overridden_by": 1}, processed=True)
        returned = upsert_game_result(
            session, game, status="final", away_score=20, home_score=24,
            quarter="4", time_remaining="Final", provider_game_id=None, now=NOW,
        )
        assert returned is None
        assert (existing.away_score, existing.home_score) == (30, 0)
        assert existing.processed is True


class TestMarkResultUnprocessed:
    def test_marks_final_result(self, session, make_game, make_result):
        game = make_game()
        result = make_result(game, 1, 0, processed=True)
        assert mark_result_unprocessed(session, game.id) is True
        assert result.processed is False

    def test_ignores_missing_or_live(self, session, make_game, make_result):
        game = make_game()
        assert mark_result_unprocessed(session, game.id) is False
        make_result(game, 7, 0, status="live")
        assert mark_result_unprocessed(session, game.id) is False
