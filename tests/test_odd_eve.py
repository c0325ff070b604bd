"""
Tests for src/games/odd_eve.py - hand cricket match flow and the AI bowler.

A ScriptedRng replaces random.Random so every AI number is chosen by the test.
"""
import pytest

from src.games.economy import Economy
from src.games.odd_eve import (
    PHASE_CHOOSE_ROLE,
    PHASE_INNINGS_1,
    PHASE_INNINGS_2,
    PHASE_RESULT,
    OddEveManager,
    OddEveMatch,
)
from utils.error_handler import GameRuleError, InsufficientFundsError
from tests.conftest import FakeClock


class ScriptedRng:
    """Stands in for random.Random: randint() and random() pop queued values."""

    def __init__(self, ints=(), floats=()):
        self.ints = list(ints)
        self.floats = list(floats)

    def randint(self, a, b):
        value = self.ints.pop(0)
        assert a <= value <= b
        return value

    def random(self):
        return self.floats.pop(0)


def batting_match(ints=(), floats=()):
    """Match where the player has won the toss and chosen to bat."""
    rng = ScriptedRng(ints=[2] + list(ints), floats=list(floats))
    match = OddEveMatch(uid="P1", rng=rng)
    match.toss("ODD", 3)          # 3 + 2 = 5, odd
    match.choose_role("BAT")
    return match


# ============================================
# TOSS
# ============================================

class TestToss:

    def test_player_wins_toss(self):
        match = OddEveMatch(uid="P1", rng=ScriptedRng(ints=[2]))
        outcome = match.toss("odd", 3)
        assert outcome["sum"] == 5
        assert outcome["playerWonToss"] is True
        assert match.phase == PHASE_CHOOSE_ROLE

    def test_ai_wins_toss_and_picks(self):
        match = OddEveMatch(uid="P1", rng=ScriptedRng(ints=[2], floats=[0.7]))
        outcome = match.toss("EVE", 3)
        assert outcome["playerWonToss"] is False
        assert outcome["aiRole"] == "BAT"
        assert match.player_role == "BOWL"
        assert match.phase == PHASE_INNINGS_1

    def test_bad_call_rejected(self):
        match = OddEveMatch(uid="P1", rng=ScriptedRng(ints=[2]))
        with pytest.raises(GameRuleError):
            match.toss("HEADS", 3)

    @pytest.mark.parametrize("number", [0, 7, "six", None])
    def test_bad_number_rejected(self, number):
        match = OddEveMatch(uid="P1", rng=ScriptedRng(ints=[2]))
        with pytest.raises(GameRuleError):
            match.toss("ODD", number)

    def test_toss_only_once(self):
        match = batting_match()
        with pytest.raises(GameRuleError):
            match.toss("ODD", 1)

    def test_role_only_after_winning_toss(self):
        match = OddEveMatch(uid="P1")
        with pytest.raises(GameRuleError):
            match.choose_role("BAT")


# ============================================
# INNINGS
# ============================================

class TestInnings:

    def test_runs_and_wicket_set_target(self):
        # AI bowls: first ball random, then 0.9 > 0.3 -> predicted (none yet) -> random
        match = batting_match(ints=[1, 2, 3], floats=[0.9, 0.9])
        match.ball(4)
        match.ball(6)
        assert match.score == 10

        outcome = match.ball(3)

        assert outcome["out"] is True
        assert match.phase == PHASE_INNINGS_2
        assert match.target == 11
        assert match.player_role == "BOWL"
        assert match.score == 0

    def test_player_defends_target(self):
        match = batting_match(ints=[3, 4], floats=[0.5])
        match.ball(3)                  # out first ball, target 1
        assert match.target == 1
        # AI batting: 0.5 -> plain random -> 4, same as player -> out on 0
        outcome = match.ball(4)

        assert match.phase == PHASE_RESULT
        assert match.result == "WIN"
        assert outcome["reward"] == 35

    def test_ai_chases_down_target(self):
        match = batting_match(ints=[1, 2], floats=[0.1, 0.1])
        match.ball(2)                  # +2
        match.ball(2)                  # 0.1 -> random 2 -> out, target 3
        # AI batting: 0.1 -> six
        outcome = match.ball(1)

        assert outcome["aiMove"] == 6
        assert match.result == "LOSS"
        assert outcome["reward"] == 0

    def test_player_chases_successfully(self):
        # AI wins toss and bats; player bowls first
        rng = ScriptedRng(ints=[2, 5], floats=[0.7, 0.5, 0.9])
        match = OddEveMatch(uid="P1", rng=rng)
        match.toss("EVE", 3)
        match.ball(5)                  # AI 0.5 -> random 5 -> out on 0, target 1
        assert match.phase == PHASE_INNINGS_2
        assert match.player_role == "BAT"

        rng.ints.append(1)             # AI bowls first ball at random
        outcome = match.ball(6)

        assert match.result == "WIN"
        assert outcome["runs"] == 6

    def test_no_ball_after_result(self):
        match = batting_match(ints=[3, 4], floats=[0.5])
        match.ball(3)
        match.ball(4)
        with pytest.raises(GameRuleError):
            match.ball(1)

    def test_ball_history_is_capped(self):
        match = batting_match(ints=[1] * 10, floats=[0.1] * 10)
        for _ in range(8):
            match.ball(2)
        assert len(match.ball_history) == 6


# ============================================
# AI BOWLER
# ============================================

class TestPrediction:

    def test_learns_transitions(self):
        match = batting_match(ints=[1, 1, 1], floats=[0.1, 0.1])
        for move in (3, 5, 3):
            match.ball(move)
        assert match.transitions == {3: {5: 1}, 5: {3: 1}}

    def test_predicts_most_frequent_follow_up(self):
        match = OddEveMatch(uid="P1")
        match.transitions = {3: {5: 3, 2: 1}}
        match.last_player_move = 3
        assert match.predict_next() == 5

    def test_ties_go_to_lowest_move(self):
        match = OddEveMatch(uid="P1")
        match.transitions = {3: {5: 2, 1: 2, 2: 1}}
        match.last_player_move = 3
        assert match.predict_next() == 1

    def test_no_history_no_prediction(self):
        match = OddEveMatch(uid="P1")
        match.last_player_move = 4
        assert match.predict_next() is None

    def test_bowler_uses_prediction(self):
        match = batting_match(ints=[1], floats=[0.9])
        match.transitions = {4: {6: 5}}
        match.ball(4)                  # first ball random (1)
        outcome = match.ball(6)        # 0.9 -> predicted 6 -> out
        assert outcome["aiMove"] == 6
        assert outcome["out"] is True


# ============================================
# MANAGER + ECONOMY
# ============================================

class TestManager:

    def test_start_charges_and_win_pays(self, stonks_db):
        stonks_db.add_player("P1")
        rng = ScriptedRng(ints=[2, 3, 4], floats=[0.5])
        manager = OddEveManager(economy=Economy(stonks_db), rng_factory=lambda: rng)

        match = manager.start("p1")
        assert stonks_db.get_player("P1")["stonks"] == 180

        manager.toss(match.match_id, "ODD", 3)
        manager.choose_role(match.match_id, "BAT")
        manager.ball(match.match_id, 3)
        outcome = manager.ball(match.match_id, 4)

        assert outcome["result"] == "WIN"
        assert outcome["stonks"] == 215
        with pytest.raises(GameRuleError):
            manager.get(match.match_id)

    def test_start_without_funds(self, stonks_db):
        stonks_db.add_player("P1", stonks=5)
        manager = OddEveManager(economy=Economy(stonks_db))
        with pytest.raises(InsufficientFundsError):
            manager.start("P1")

    def test_unknown_match(self):
        with pytest.raises(GameRuleError):
            OddEveManager().ball("nope", 3)

    def test_snapshot_shape(self):
        match = OddEveManager().start("P1")
        snap = match.snapshot()
        assert snap["phase"] == "TOSS"
        assert snap["uid"] == "P1"
        assert set(snap) >= {"matchId", "score", "target", "commentary", "ballHistory"}

    def test_abandoned_matches_expire(self):
        clock = FakeClock()
        manager = OddEveManager(ttl_seconds=1800, clock=clock)
        for _ in range(1000):
            manager.start("P1")
        assert manager.active_count() == 1000

        clock.advance(1801)
        live = manager.start("P2")
        assert manager.active_count() == 1
        assert manager.get(live.match_id) is live

    def test_expired_match_is_unknown(self):
        clock = FakeClock()
        manager = OddEveManager(ttl_seconds=60, clock=clock)
        match = manager.start("P1")
        clock.advance(61)
        with pytest.raises(GameRuleError):
            manager.toss(match.match_id, "ODD", 3)
