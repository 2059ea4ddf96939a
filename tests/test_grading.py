"""Tests for the grading engine."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from pickem_scorer.errors import DataIntegrityError
from pickem_scorer.services.grading import (
    determine_winner,
    process_all_results,
    process_game_result,
)
from pickem_scorer.services.reconciliation import override_score
from pickem_scorer.utils.job_guard import CancellationToken

from .conftest import NOW, SEASON

_MOD = "pickem_scorer.services.grading"


# ---------------------------------------------------------------------------
# determine_winner
# ---------------------------------------------------------------------------
class TestDetermineWinner:
    def test_away_home_and_tie(self, make_game, make_result):
        g1, g2, g3 = (
            make_game("Falcons", "Saints"),
            make_game("Bills", "Jets"),
            make_game("Bears", "Lions"),
        )
        assert determine_winner(make_result(g1, 24, 17)) == "Falcons"
        assert determine_winner(make_result(g2, 10, 13)) == "Jets"
        assert determine_winner(make_result(g3, 20, 20)) == "tie"

    def test_missing_score_is_integrity_error(self, make_game, make_result):
        result = make_result(make_game(), 24, 17)
        result.home_score = None
        with pytest.raises(DataIntegrityError):
            determine_winner(result)


# ---------------------------------------------------------------------------
# process_game_result
# ---------------------------------------------------------------------------
class TestProcessGameResult:
    def test_grades_picks_and_totals(self, session, make_user, make_game, make_pick, make_result):
        alice, bob = make_user("Alice"), make_user("Bob")
        game = make_game()
        p1 = make_pick(alice, game, "Falcons")
        p2 = make_pick(bob, game, "Saints")
        result = make_result(game, 24, 17)

        counts = process_game_result(session, result, now=NOW)

        assert counts == {"picks_graded": 2, "correct": 1}
        assert (p1.is_correct, p1.points) == (True, 1)
        assert (p2.is_correct, p2.points) == (False, 0)
        assert p1.result["winner"] == "Falcons"
        assert p1.result["final_score"] == "24-17"
        assert result.processed is True
        assert alice.total_points == 1
        assert alice.weekly_points == {"2025:1": 1}
        assert bob.total_points == 0
        assert bob.weekly_points == {"2025:1": 0}

    def test_tie_makes_every_pick_incorrect(self, session, make_user, make_game, make_pick, make_result):
        alice, bob = make_user("Alice"), make_user("Bob")
        game = make_game()
        p1 = make_pick(alice, game, "Falcons")
        p2 = make_pick(bob, game, "Saints")

        process_game_result(session, make_result(game, 20, 20), now=NOW)

        assert p1.is_correct is False and p2.is_correct is False
        assert p1.result["winner"] == "tie"

    def test_no_picks_still_marks_processed(self, session, make_game, make_result):
        result = make_result(make_game(), 3, 0)
        assert process_game_result(session, result, now=NOW) == {"picks_graded": 0, "correct": 0}
        assert result.processed is True

    def test_regrading_is_idempotent(self, session, make_user, make_game, make_pick, make_result):
        alice = make_user("Alice")
        game = make_game()
        make_pick(alice, game, "Falcons")
        result = make_result(game, 24, 17)

        process_game_result(session, result, now=NOW)
        result.processed = False
        process_game_result(session, result, now=NOW)

        assert alice.total_points == 1

    def test_totals_span_seasons(self, session, make_user, make_game, make_pick, make_result):
        alice = make_user("Alice")
        last_season = make_game(season=SEASON - 1, kickoff=datetime(2024, 9, 8, 17, 0, tzinfo=UTC))
        this_season = make_game("Bills", "Jets")
        make_pick(alice, last_season, "Falcons")
        make_pick(alice, this_season, "Bills")
        make_result(last_season, 24, 17)
        make_result(this_season, 21, 10)

        process_all_results(session)

        assert alice.total_points == 2
        assert alice.weekly_points == {"2024:1": 1, "2025:1": 1}


# ---------------------------------------------------------------------------
# process_all_results
# ---------------------------------------------------------------------------
class TestProcessAllResults:
    def test_only_final_unprocessed_results(self, session, make_user, make_game, make_pick, make_result):
        alice = make_user("Alice")
        final_game = make_game("Falcons", "Saints")
        live_game = make_game("Bills", "Jets")
        done_game = make_game("Bears", "Lions")
        make_pick(alice, final_game, "Falcons")
        live_pick = make_pick(alice, live_game, "Bills")
        make_result(final_game, 24, 17)
        make_result(live_game, 7, 0, status="live")
        make_result(done_game, 10, 3, processed=True)

        counts = process_all_results(session)

        assert counts["results_found"] == 1
        assert counts["results_processed"] == 1
        assert counts["picks_graded"] == 1
        assert live_pick.is_correct is None

    def test_override_reverses_grading(self, session, make_user, make_game, make_pick, make_result):
        alice, bob = make_user("Alice"), make_user("Bob")
        game = make_game()
        make_pick(alice, game, "Falcons")
        make_pick(bob, game, "Saints")
        make_result(game, 24, 17)
        process_all_results(session)
        assert (alice.total_points, bob.total_points) == (1, 0)

        override_score(session, game.id, 17, 24, acting_admin_id=alice.id, now=NOW)
        process_all_results(session)

        assert (alice.total_points, bob.total_points) == (0, 1)

    def test_failure_is_isolated_per_result(self, session, make_user, make_game, make_pick, make_result):
        alice = make_user("Alice")
        good = make_game("Falcons", "Saints")
        bad = make_game("Bills", "Jets")
        make_pick(alice, good, "Falcons")
        broken = make_result(bad, 7, 0)
        broken.away_score = None
        make_result(good, 24, 17)
        session.commit()

        with patch(f"{_MOD}.logger") as mock_logger:
            counts = process_all_results(session)

        assert counts["results_failed"] == 1
        assert counts["results_processed"] == 1
        assert alice.total_points == 1
        assert broken.processed is False
        mock_logger.exception.assert_called_once()

    def test_cancel_token_stops_before_next_result(self, session, make_game, make_result):
        make_result(make_game("Falcons", "Saints"), 1, 0)
        make_result(make_game("Bills", "Jets"), 1, 0)
        token = CancellationToken()
        token.cancel()

        counts = process_all_results(session, cancel_token=token)

        assert counts["results_found"] == 2
        assert counts["results_processed"] == 0
