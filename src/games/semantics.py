"""
Semantic Clear - clear falling words by typing something that means the same.

Similarity is the cosine of Gemini text embeddings. A submission clears the
closest falling word when similarity reaches the threshold, but a near-copy
of the word is rejected. Three clears in a row start blaze mode (double
points) until the next miss. SemanticManager runs paid games on the server.
"""
import random
import time
import uuid
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np
from loguru import logger

from config.game_config import CONFIG, RulesConfig
from providers.cache import ResponseCache, get_response_cache
from providers.gateway import AIGateway
from src.games.rewards import semantic_reward
from src.games.sessions import SessionStore
from utils.error_handler import GameRuleError

WORD_POOL = (
    "energy", "power", "electricity", "voltage",
    "space", "universe", "cosmos", "galaxy",
    "planet", "world", "sphere", "globe",
    "theory", "hypothesis", "concept", "idea",
    "run", "sprint", "dash", "race",
    "jump", "leap", "hop", "bound",
    "build", "construct", "create", "assemble",
    "break", "shatter", "fracture", "crack",
    "journey", "voyage", "expedition", "trek",
    "mystery", "puzzle", "enigma", "riddle",
    "dream", "vision", "fantasy", "imagination",
    "future", "tomorrow", "destiny", "fate",
)

STARTING_LIVES = 3
CACHE_NAMESPACE = "embeddings"


def random_word(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(WORD_POOL)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


class SimilarityScorer:
    """Embeds words through the gateway (cached) and compares them."""

    def __init__(self, gateway: AIGateway, cache: Optional[ResponseCache] = None):
        self.gateway = gateway
        self.cache = cache or get_response_cache()

    def _embeddings(self, words: List[str],
                    api_keys: Optional[Mapping[str, str]]) -> Dict[str, List[float]]:
        vectors = {}
        missing = []
        for w in words:
            cached = self.cache.get(CACHE_NAMESPACE, w)
            if cached is None:
                missing.append(w)
            else:
                vectors[w] = cached
        if missing:
            for w, vec in zip(missing, self.gateway.embed(missing, api_keys=api_keys)):
                self.cache.set(CACHE_NAMESPACE, w, vec)
                vectors[w] = vec
        return vectors

    def similarities(self, guess: str, candidates: Sequence[str],
                     api_keys: Optional[Mapping[str, str]] = None) -> Dict[str, float]:
        if not isinstance(guess, str) or not all(isinstance(c, str) for c in candidates):
            raise GameRuleError("word and candidates must be strings")
        guess = guess.strip().lower()
        candidates = [c.strip().lower() for c in candidates if c.strip()]
        if not guess or not candidates:
            raise GameRuleError("word and candidates are required")
        unique = list(dict.fromkeys([guess] + candidates))
        vectors = self._embeddings(unique, api_keys)
        return {c: cosine_similarity(vectors[guess], vectors[c]) for c in candidates}


@dataclass
class SemanticRound:
    """Score keeping for one Semantic Clear run."""
    score: int = 0
    streak: int = 0
    blaze: bool = False
    lives: int = STARTING_LIVES
    rules: RulesConfig = field(default=CONFIG.rules, repr=False)

    @property
    def game_over(self) -> bool:
        return self.lives <= 0

    def submit(self, similarities: Dict[str, float]) -> Dict:
        """Apply one submission given its similarity to each falling word."""
        if self.game_over:
            raise GameRuleError("Game over")
        if not similarities:
            raise GameRuleError("No words on screen")
        best_word = max(similarities, key=similarities.get)
        best = similarities[best_word]

        if best >= self.rules.semantic_too_similar:
            return {"outcome": "TOO_SIMILAR", "word": best_word, "similarity": best,
                    **self.state()}

        if best >= self.rules.semantic_threshold:
            base = round(best * 100)
            points = base * 2 if self.blaze else base
            self.score += points
            self.streak += 1
            if self.streak >= self.rules.semantic_blaze_streak and not self.blaze:
                self.blaze = True
                logger.debug("Semantic Clear: blaze mode")
            return {"outcome": "CLEARED", "word": best_word, "similarity": best,
                    "points": points, **self.state()}

        self.streak = 0
        self.blaze = False
        return {"outcome": "MISS", "word": best_word, "similarity": best, **self.state()}

    def word_hit_bottom(self) -> Dict:
        """A word reached the floor: lose a life and the streak."""
        self.lives = max(0, self.lives - 1)
        self.streak = 0
        self.blaze = False
        return self.state()

    def state(self) -> Dict:
        return {"score": self.score, "streak": self.streak, "blaze": self.blaze,
                "lives": self.lives, "gameOver": self.game_over}


# ============================================
# SERVER-RUN GAME
# ============================================

MAX_FALLING_WORDS = 20


@dataclass
class SemanticGame:
    uid: str
    round: SemanticRound
    game_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    words: Dict[str, str] = field(default_factory=dict)   # word id -> text
    next_word_id: int = 0
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def spawn(self) -> Dict[str, str]:
        if len(self.words) >= MAX_FALLING_WORDS:
            raise GameRuleError("Too many words on screen")
        word_id = str(self.next_word_id)
        self.next_word_id += 1
        self.words[word_id] = random_word(self.rng)
        return {"id": word_id, "text": self.words[word_id]}

    def snapshot(self) -> Dict:
        return {"gameId": self.game_id,
                "words": [{"id": k, "text": v} for k, v in self.words.items()],
                **self.round.state()}


class SemanticManager:
    """Semantic Clear games by id.

    The server owns the falling words and the score; the client reports
    submissions and words that reached the floor. The game settles with
    semantic_reward() when the last life is lost.
    """

    def __init__(self, scorer: SimilarityScorer, economy=None,
                 rng_factory=random.Random, ttl_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.time):
        self.scorer = scorer
        self._economy = economy
        self._rng_factory = rng_factory
        self._games: SessionStore[SemanticGame] = SessionStore(
            "semantic game", ttl_seconds=ttl_seconds, clock=clock)
        self._lock = Lock()

    def start(self, uid: str) -> Dict:
        uid = str(uid or "").strip().upper()
        if not uid:
            raise GameRuleError("uid is required")
        if self._economy is not None:
            self._economy.enter(uid, "semantics")
        game = SemanticGame(uid=uid, round=SemanticRound(lives=CONFIG.rules.semantic_lives),
                            rng=self._rng_factory())
        game.spawn()
        self._games.add(game.game_id, game)
        logger.info(f"Semantic Clear {game.game_id} started for {uid}")
        return game.snapshot()

    def spawn(self, game_id: str) -> Dict:
        game = self._games.get(game_id)
        with self._lock:
            self._check_live(game)
            word = game.spawn()
        return {"word": word, **game.snapshot()}

    def submit(self, game_id: str, text: Any,
               api_keys: Optional[Mapping[str, str]] = None) -> Dict:
        game = self._games.get(game_id)
        with self._lock:
            self._check_live(game)
            on_screen = list(game.words.values())
        if not on_screen:
            raise GameRuleError("No words on screen")
        sims = self.scorer.similarities(text, on_screen, api_keys=api_keys)

        with self._lock:
            self._check_live(game)
            # Words may have dropped while the embeddings were fetched
            sims = {w: s for w, s in sims.items() if w in game.words.values()}
            outcome = game.round.submit(sims)
            if outcome["outcome"] == "CLEARED":
                word_id = next(k for k, v in game.words.items() if v == outcome["word"])
                del game.words[word_id]
                outcome["wordId"] = word_id
            outcome["words"] = game.snapshot()["words"]
        return outcome

    def drop(self, game_id: str, word_id: Any) -> Dict:
        """A word reached the floor: it leaves the screen and costs a life."""
        game = self._games.get(game_id)
        with self._lock:
            self._check_live(game)
            if game.words.pop(str(word_id), None) is None:
                raise GameRuleError(f"Unknown word: {word_id}")
            game.round.word_hit_bottom()
            outcome = game.snapshot()
        if not game.round.game_over or self._games.pop(game_id) is None:
            return outcome

        reward = semantic_reward(game.round.score)
        outcome["reward"] = reward
        logger.info(f"Semantic Clear {game_id} ({game.uid}) over: "
                    f"score {game.round.score}, reward {reward}")
        if self._economy is not None:
            settled = self._economy.settle(game.uid, "semantics", reward)
            outcome["stonks"] = settled["stonks"]
        return outcome

    @staticmethod
    def _check_live(game: SemanticGame):
        if game.round.game_over:
            raise GameRuleError("Game over")

    def active_count(self) -> int:
        return len(self._games)
