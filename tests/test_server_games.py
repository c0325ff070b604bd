"""
Tests for the server-run rounds of Emoji Crypt, Semantic Clear and Humanish.

Providers are scripted FakeProviders, time comes from FakeClock and word or
partner draws from small stand-ins for random.Random.
"""
import pytest

from src.games.chat_broker import ChatBroker
from src.games.economy import Economy
from src.games.emoji_crypt import EmojiCryptGenerator, EmojiCryptManager
from src.games.humanish import AFK_LINE, OPENING_LINE, HumanishBot, HumanishManager
from src.games.semantics import MAX_FALLING_WORDS, SemanticManager, SimilarityScorer
from utils.error_handler import GameRuleError, GenerationError, InsufficientFundsError
from tests.conftest import FakeClock, FakeProvider, server_error

MATRIX = '{"title": "The Matrix", "emojis": "🕶️💊🔴🔵", "category": "Movie", "hint": "Red pill?"}'
JAWS = '{"title": "Jaws", "emojis": "🦈🌊", "category": "Movie", "hint": "Bigger boat"}'

VECTORS = {
    "blast": [1.0, 0.0, 0.0],
    "energy": [0.8, 0.6, 0.0],
    "power": [0.8, 0.6, 0.0],
    "space": [0.0, 1.0, 0.0],
}


class Picks:
    """choice() hands out queued values; random() returns a fixed coin."""

    def __init__(self, words=(), coin=0.9):
        self.words = list(words)
        self.coin = coin

    def choice(self, seq):
        word = self.words.pop(0)
        assert word in seq
        return word

    def random(self):
        return self.coin


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def economy(stonks_db):
    stonks_db.add_player("P1")
    return Economy(stonks_db)


# ============================================
# EMOJI CRYPT
# ============================================

@pytest.fixture
def groq():
    return FakeProvider("groq", script=[MATRIX, JAWS, MATRIX, JAWS], default=MATRIX)


@pytest.fixture
def emoji_runs(make_gateway, groq, economy, clock):
    return EmojiCryptManager(EmojiCryptGenerator(make_gateway(groq)),
                             economy=economy, clock=clock)


class TestEmojiCryptRun:

    def test_start_charges_and_hides_title(self, emoji_runs, stonks_db):
        state = emoji_runs.start("p1")

        assert stonks_db.get_player("P1")["stonks"] == 185
        assert state["lives"] == 3
        assert state["round"] == 1
        assert state["timeLeft"] == 30
        assert state["clue"]["emojis"] == "🕶️💊🔴🔵"
        assert "title" not in state["clue"]

    def test_generation_failure_costs_nothing(self, make_gateway, economy, stonks_db):
        broken = FakeProvider("groq", script=[server_error("groq")])
        manager = EmojiCryptManager(EmojiCryptGenerator(make_gateway(broken)), economy=economy)
        with pytest.raises(GenerationError):
            manager.start("P1")
        assert stonks_db.get_player("P1")["stonks"] == 200
        assert manager.active_count() == 0

    def test_fast_answer_scores_more(self, emoji_runs, clock):
        run_id = emoji_runs.start("P1")["runId"]
        clock.advance(5)

        outcome = emoji_runs.guess(run_id, "the matrix!")

        assert outcome["correct"] is True
        assert outcome["points"] == 350
        assert outcome["score"] == 350
        assert outcome["answer"] == "The Matrix"
        assert outcome["clue"] is None

    def test_wrong_guess_is_free(self, emoji_runs):
        run_id = emoji_runs.start("P1")["runId"]
        outcome = emoji_runs.guess(run_id, "inception")
        assert outcome["correct"] is False
        assert outcome["lives"] == 3
        assert outcome["clue"] is not None

    def test_guess_after_timer_loses_life(self, emoji_runs, clock):
        run_id = emoji_runs.start("P1")["runId"]
        clock.advance(31)

        outcome = emoji_runs.guess(run_id, "The Matrix")

        assert outcome["correct"] is False
        assert outcome["timeUp"] is True
        assert outcome["lives"] == 2
        assert outcome["score"] == 0

    def test_next_round_needs_round_finished(self, emoji_runs):
        run_id = emoji_runs.start("P1")["runId"]
        with pytest.raises(GameRuleError):
            emoji_runs.next_round(run_id)

        emoji_runs.guess(run_id, "the matrix")
        state = emoji_runs.next_round(run_id)
        assert state["round"] == 2
        assert state["clue"]["emojis"] == "🦈🌊"

    def test_guess_between_rounds_refused(self, emoji_runs):
        run_id = emoji_runs.start("P1")["runId"]
        emoji_runs.guess(run_id, "the matrix")
        with pytest.raises(GameRuleError) as exc:
            emoji_runs.guess(run_id, "the matrix")
        assert str(exc.value) == "No clue in play"

    def test_last_life_settles_reward(self, emoji_runs, stonks_db, clock):
        run_id = emoji_runs.start("P1")["runId"]
        clock.advance(5)
        emoji_runs.guess(run_id, "The Matrix")            # +350
        for _ in range(2):
            emoji_runs.next_round(run_id)
            emoji_runs.time_up(run_id)
        emoji_runs.next_round(run_id)

        outcome = emoji_runs.time_up(run_id)

        assert outcome["gameOver"] is True
        assert outcome["reward"] == 6                       # 350 // 100 * 2
        assert outcome["stonks"] == 191
        assert stonks_db.get_game_logs("P1", limit=1)[0]["result"] == "WIN"
        with pytest.raises(GameRuleError):
            emoji_runs.guess(run_id, "jaws")

    @pytest.mark.parametrize("guess", [None, "", "   ", 42])
    def test_guess_required(self, emoji_runs, guess):
        run_id = emoji_runs.start("P1")["runId"]
        with pytest.raises(GameRuleError):
            emoji_runs.guess(run_id, guess)

    def test_idle_run_expires(self, emoji_runs, clock):
        run_id = emoji_runs.start("P1")["runId"]
        clock.advance(1801)
        with pytest.raises(GameRuleError):
            emoji_runs.time_up(run_id)


# ============================================
# SEMANTIC CLEAR
# ============================================

@pytest.fixture
def gemini():
    provider = FakeProvider("gemini")
    provider.vectors = dict(VECTORS)
    return provider


def semantic_manager(make_gateway, gemini, cache, economy, words, clock=None):
    picks = Picks(words=words)
    kwargs = {"clock": clock} if clock else {}
    return SemanticManager(SimilarityScorer(make_gateway(gemini), cache=cache),
                           economy=economy, rng_factory=lambda: picks, **kwargs)


class TestSemanticGame:

    def test_start_charges_and_drops_first_word(self, make_gateway, gemini, cache,
                                                economy, stonks_db):
        manager = semantic_manager(make_gateway, gemini, cache, economy, ["energy"])

        state = manager.start("P1")

        assert stonks_db.get_player("P1")["stonks"] == 180
        assert state["words"] == [{"id": "0", "text": "energy"}]
        assert state["lives"] == 3

    def test_clear_removes_word(self, make_gateway, gemini, cache, economy):
        manager = semantic_manager(make_gateway, gemini, cache, economy, ["energy", "space"])
        game_id = manager.start("P1")["gameId"]
        manager.spawn(game_id)

        outcome = manager.submit(game_id, "blast")

        assert outcome["outcome"] == "CLEARED"
        assert outcome["wordId"] == "0"
        assert outcome["points"] == 80
        assert outcome["words"] == [{"id": "1", "text": "space"}]

    def test_near_copy_is_rejected(self, make_gateway, gemini, cache, economy):
        manager = semantic_manager(make_gateway, gemini, cache, economy, ["energy"])
        game_id = manager.start("P1")["gameId"]

        outcome = manager.submit(game_id, "power")

        assert outcome["outcome"] == "TOO_SIMILAR"
        assert outcome["score"] == 0
        assert len(outcome["words"]) == 1

    def test_miss_keeps_word(self, make_gateway, gemini, cache, economy):
        manager = semantic_manager(make_gateway, gemini, cache, economy, ["space"])
        game_id = manager.start("P1")["gameId"]
        outcome = manager.submit(game_id, "blast")
        assert outcome["outcome"] == "MISS"
        assert outcome["words"] == [{"id": "0", "text": "space"}]

    def test_drops_end_game_and_settle(self, make_gateway, gemini, cache, economy, stonks_db):
        manager = semantic_manager(make_gateway, gemini, cache, economy,
                                   ["energy", "energy", "space", "space", "space"])
        game_id = manager.start("P1")["gameId"]
        manager.submit(game_id, "blast")                  # +80
        manager.spawn(game_id)
        manager.submit(game_id, "blast")                  # +80
        for word_id in ("2", "3"):
            manager.spawn(game_id)
            assert manager.drop(game_id, word_id)["gameOver"] is False
        manager.spawn(game_id)

        outcome = manager.drop(game_id, "4")

        assert outcome["gameOver"] is True
        assert outcome["score"] == 160
        assert outcome["reward"] == 2
        assert outcome["stonks"] == 182
        assert manager.active_count() == 0
        with pytest.raises(GameRuleError):
            manager.spawn(game_id)

    def test_drop_unknown_word(self, make_gateway, gemini, cache, economy):
        manager = semantic_manager(make_gateway, gemini, cache, economy, ["energy"])
        game_id = manager.start("P1")["gameId"]
        with pytest.raises(GameRuleError):
            manager.drop(game_id, "99")
        assert manager.drop(game_id, 0)["lives"] == 2

    def test_submit_with_empty_screen(self, make_gateway, gemini, cache, economy):
        manager = semantic_manager(make_gateway, gemini, cache, economy, ["energy"])
        game_id = manager.start("P1")["gameId"]
        manager.drop(game_id, "0")
        with pytest.raises(GameRuleError):
            manager.submit(game_id, "blast")
        assert gemini.calls == []

    def test_screen_is_capped(self, make_gateway, gemini, cache, economy):
        manager = semantic_manager(make_gateway, gemini, cache, economy,
                                   ["space"] * (MAX_FALLING_WORDS + 1))
        game_id = manager.start("P1")["gameId"]
        for _ in range(MAX_FALLING_WORDS - 1):
            manager.spawn(game_id)
        with pytest.raises(GameRuleError):
            manager.spawn(game_id)

    def test_not_enough_stonks(self, make_gateway, gemini, cache, stonks_db):
        stonks_db.add_player("P2", stonks=5)
        manager = semantic_manager(make_gateway, gemini, cache, Economy(stonks_db), [])
        with pytest.raises(InsufficientFundsError):
            manager.start("P2")

    def test_idle_game_expires(self, make_gateway, gemini, cache, economy, clock):
        manager = semantic_manager(make_gateway, gemini, cache, economy, ["energy"], clock)
        game_id = manager.start("P1")["gameId"]
        clock.advance(1801)
        with pytest.raises(GameRuleError):
            manager.spawn(game_id)


# ============================================
# HUMANISH
# ============================================

@pytest.fixture
def broker(clock):
    return ChatBroker(ttl_seconds=120, failover_seconds=15, clock=clock)


def humanish_manager(make_gateway, broker, economy, coin, groq=None):
    bot = HumanishBot(make_gateway(groq or FakeProvider("groq", default="nah im real")))
    return HumanishManager(bot, broker=broker, economy=economy,
                           rng_factory=lambda: Picks(coin=coin))


class TestHumanishRound:

    def test_bot_partner_opens_the_chat(self, make_gateway, broker, economy):
        groq = FakeProvider("groq", default="yo wassup")
        manager = humanish_manager(make_gateway, broker, economy, coin=0.1, groq=groq)

        started = manager.start("P1", session_code="ABC")

        assert started["opening"] == "yo wassup"
        assert started["sessionId"] is None
        assert started["chatSeconds"] == 90
        assert groq.calls[0]["messages"][-1] == {"role": "user", "content": OPENING_LINE}

    def test_opening_line_when_bot_is_down(self, make_gateway, broker, economy):
        groq = FakeProvider("groq", script=[server_error("groq")])
        manager = humanish_manager(make_gateway, broker, economy, coin=0.1, groq=groq)
        assert manager.start("P1")["opening"] == OPENING_LINE

    def test_no_session_code_means_bot(self, make_gateway, broker, economy):
        manager = humanish_manager(make_gateway, broker, economy, coin=0.9)
        started = manager.start("P1")
        assert started["opening"] is not None
        assert manager.guess(started["chatId"], "ai")["correct"] is True

    def test_bot_replies_to_messages(self, make_gateway, broker, economy):
        manager = humanish_manager(make_gateway, broker, economy, coin=0.1)
        chat_id = manager.start("P1")["chatId"]
        assert manager.message(chat_id, "are u a bot") == {"reply": "nah im real",
                                                           "relayed": False}

    def test_volunteer_chat_is_relayed(self, make_gateway, broker, economy):
        manager = humanish_manager(make_gateway, broker, economy, coin=0.9)
        started = manager.start("P1", session_code="ABC")

        assert started["sessionId"] == "session_ABC"
        assert started["opening"] is None
        assert manager.message(started["chatId"], "hello?")["relayed"] is True
        polled = broker.poll("session_ABC")
        assert [m["text"] for m in polled["messages"]] == ["hello?"]

    def test_failover_hands_chat_to_bot(self, make_gateway, broker, economy, clock):
        groq = FakeProvider("groq", default="my bad")
        manager = humanish_manager(make_gateway, broker, economy, coin=0.9, groq=groq)
        chat_id = manager.start("P1", session_code="ABC")["chatId"]
        manager.message(chat_id, "anyone there")

        with pytest.raises(GameRuleError):
            manager.failover(chat_id)
        clock.advance(16)

        assert manager.failover(chat_id) == {"reply": "my bad"}
        assert groq.calls[-1]["messages"][-1] == {"role": "user", "content": AFK_LINE}
        assert manager.message(chat_id, "ok")["relayed"] is False
        with pytest.raises(GameRuleError):
            manager.failover(chat_id)

        # The partner drawn was a human, so that stays the right answer
        outcome = manager.guess(chat_id, "human")
        assert outcome == {"correct": True, "partner": "human", "botTookOver": True,
                           "stonks": 200}

    def test_guess_settles_once(self, make_gateway, broker, economy, stonks_db):
        manager = humanish_manager(make_gateway, broker, economy, coin=0.1)
        chat_id = manager.start("P1")["chatId"]

        outcome = manager.guess(chat_id, "human")

        assert outcome["correct"] is False
        assert outcome["partner"] == "ai"
        assert stonks_db.get_game_logs("P1", limit=1)[0]["result"] == "LOSS"
        with pytest.raises(GameRuleError):
            manager.guess(chat_id, "ai")

    def test_bad_guess_keeps_chat(self, make_gateway, broker, economy):
        manager = humanish_manager(make_gateway, broker, economy, coin=0.1)
        chat_id = manager.start("P1")["chatId"]
        with pytest.raises(GameRuleError):
            manager.guess(chat_id, "robot")
        assert manager.active_count() == 1

    @pytest.mark.parametrize("code", [123, ["ABC"]])
    def test_session_code_must_be_text(self, make_gateway, broker, economy, code):
        manager = humanish_manager(make_gateway, broker, economy, coin=0.9)
        with pytest.raises(GameRuleError):
            manager.start("P1", session_code=code)
