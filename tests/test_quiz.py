"""
Tests for the picture quizzes: datasets, Deepfake Detective and Dumb Charades
rounds, and the server-side QuizManager that settles the payout.
"""
import json
import random

import pytest

from src.games import charades, deepfake
from src.games.datasets import load_charades, load_deepfake_pairs, validate_entries
from src.games.economy import Economy
from src.games.quiz import QuizGame, QuizManager
from src.games.rewards import charades_reward, deepfake_reward
from utils.error_handler import GameRuleError, InsufficientFundsError
from tests.conftest import FakeClock

PAIRS = [{"id": i, "realImage": f"/real/{i}.jpg", "fakeImage": f"/fake/{i}.jpg"}
         for i in range(1, 7)]
ENTRIES = [{"id": i, "image": f"/charades/{i}.jpg", "prompt": f"prompt {i}"}
           for i in range(1, 6)]


@pytest.fixture
def data_dir(tmp_path):
    (tmp_path / "deepfake_pairs.json").write_text(json.dumps(PAIRS), encoding="utf-8")
    (tmp_path / "charades.json").write_text(json.dumps(ENTRIES), encoding="utf-8")
    return tmp_path


@pytest.fixture
def games(data_dir):
    return {
        "deepfake": QuizGame("deepfake", 5, lambda: load_deepfake_pairs(data_dir),
                             deepfake.make_rounds, deepfake_reward),
        "charades": QuizGame("charades", 4, lambda: load_charades(data_dir),
                             charades.make_rounds, charades_reward),
    }


@pytest.fixture
def manager(stonks_db, games):
    stonks_db.add_player("P1")
    return QuizManager(economy=Economy(stonks_db), games=games,
                       rng_factory=lambda: random.Random(7))


def answers(manager, session_id):
    return [r.answer for r in manager._sessions.get(session_id).rounds]


# ============================================
# DATASETS
# ============================================

class TestDatasets:

    def test_load(self, data_dir):
        assert load_deepfake_pairs(data_dir) == PAIRS
        assert len(load_charades(data_dir)) == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(GameRuleError) as exc:
            load_charades(tmp_path)
        assert "charades.json" in str(exc.value)

    def test_invalid_json(self, tmp_path):
        (tmp_path / "charades.json").write_text("{oops", encoding="utf-8")
        with pytest.raises(GameRuleError):
            load_charades(tmp_path)

    def test_malformed_entries_skipped(self):
        entries = [ENTRIES[0], {"id": 9, "image": ""}, "junk"]
        assert validate_entries(entries, ("id", "image", "prompt"), "charades") == [ENTRIES[0]]

    def test_not_a_list(self):
        with pytest.raises(GameRuleError):
            validate_entries({"id": 1}, ("id",), "charades")

    def test_bundled_datasets_are_playable(self):
        assert len(load_deepfake_pairs()) >= 5
        assert len(load_charades()) >= 4


# ============================================
# ROUND BUILDERS
# ============================================

class TestDeepfakeRounds:

    def test_distinct_pairs_with_fake_on_answer_side(self):
        rounds = deepfake.make_rounds(PAIRS, 5, random.Random(1))
        assert len({r.pair_id for r in rounds}) == 5
        for r in rounds:
            fake = r.left_image if r.answer == "left" else r.right_image
            assert fake.startswith("/fake/")
            assert r.check(r.answer.upper()) is True
            assert "leftIsFake" not in r.public()

    def test_not_enough_pairs(self):
        with pytest.raises(GameRuleError):
            deepfake.make_rounds(PAIRS[:2], 5)

    def test_bad_side(self):
        rnd = deepfake.make_rounds(PAIRS, 1, random.Random(1))[0]
        with pytest.raises(GameRuleError):
            rnd.check("middle")


class TestCharadesRounds:

    def test_one_correct_two_decoys(self):
        rnd = charades.make_round(ENTRIES, ENTRIES[0], random.Random(2))
        assert len(rnd.options) == 3
        assert len(set(rnd.options)) == 3
        assert "prompt 1" in rnd.options
        assert rnd.check("prompt 1") is True

    def test_answer_must_be_an_option(self):
        rnd = charades.make_round(ENTRIES, ENTRIES[0], random.Random(2))
        with pytest.raises(GameRuleError):
            rnd.check("something else")

    def test_not_enough_entries(self):
        with pytest.raises(GameRuleError):
            charades.make_rounds(ENTRIES[:2], 2)

    def test_public_hides_answer(self):
        rnd = charades.make_rounds(ENTRIES, 4, random.Random(3))[0]
        assert set(rnd.public()) == {"entryId", "image", "options"}


# ============================================
# QUIZ MANAGER
# ============================================

class TestQuizManager:

    def test_perfect_deepfake_run_pays_out(self, manager, stonks_db):
        first = manager.start("p1", "deepfake")
        assert first["round"] == 1
        assert first["totalRounds"] == 5
        assert stonks_db.get_player("P1")["stonks"] == 180

        sid = first["sessionId"]
        outcome = None
        for answer in answers(manager, sid):
            outcome = manager.answer(sid, answer)

        assert outcome["finished"] is True
        assert outcome["correctCount"] == 5
        assert outcome["reward"] == 40
        assert outcome["stonks"] == 220

    def test_next_round_returned(self, manager):
        sid = manager.start("P1", "deepfake")["sessionId"]
        outcome = manager.answer(sid, "left")
        assert outcome["finished"] is False
        assert outcome["next"]["round"] == 2
        assert outcome["answer"] in ("left", "right")

    def test_wrong_charades_run_logs_loss(self, manager, stonks_db):
        sid = manager.start("P1", "charades")["sessionId"]
        session = manager._sessions.get(sid)
        outcome = None
        for rnd in list(session.rounds):
            wrong = next(o for o in rnd.options if o != rnd.answer)
            outcome = manager.answer(sid, wrong)

        assert outcome["reward"] == 0
        assert outcome["stonks"] == 200
        assert stonks_db.get_game_logs("P1")[0]["result"] == "LOSS"

    def test_session_closed_after_last_round(self, manager):
        sid = manager.start("P1", "charades")["sessionId"]
        for answer in answers(manager, sid):
            manager.answer(sid, answer)
        with pytest.raises(GameRuleError):
            manager.answer(sid, "prompt 1")

    def test_unknown_quiz(self, manager):
        with pytest.raises(GameRuleError):
            manager.start("P1", "trivia")

    def test_uid_required(self, manager):
        with pytest.raises(GameRuleError):
            manager.start("  ", "deepfake")

    def test_missing_dataset_costs_nothing(self, stonks_db, tmp_path):
        stonks_db.add_player("P1")
        games = {"deepfake": QuizGame("deepfake", 5, lambda: load_deepfake_pairs(tmp_path),
                                      deepfake.make_rounds, deepfake_reward)}
        manager = QuizManager(economy=Economy(stonks_db), games=games)
        with pytest.raises(GameRuleError):
            manager.start("P1", "deepfake")
        assert stonks_db.get_player("P1")["stonks"] == 200

    def test_insufficient_funds(self, manager, stonks_db):
        stonks_db.set_stonks("P1", 5)
        with pytest.raises(InsufficientFundsError):
            manager.start("P1", "deepfake")

    def test_without_economy(self, games):
        manager = QuizManager(games=games)
        sid = manager.start("P1", "charades")["sessionId"]
        outcome = None
        for answer in answers(manager, sid):
            outcome = manager.answer(sid, answer)
        assert outcome["reward"] == 40
        assert "stonks" not in outcome

    def test_abandoned_session_expires(self, games):
        clock = FakeClock()
        manager = QuizManager(games=games, ttl_seconds=900, clock=clock)
        stale = manager.start("P1", "deepfake")["sessionId"]
        clock.advance(901)
        manager.start("P2", "deepfake")

        assert stale not in manager._sessions
        with pytest.raises(GameRuleError):
            manager.answer(stale, "left")
