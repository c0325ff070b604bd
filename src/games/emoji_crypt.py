"""
Emoji Crypt - guess the title from an emoji-only clue.

Clues are generated by Groq in JSON mode. Guesses are compared after
stripping everything but lowercase letters and digits, and faster answers
score more. Paid runs are played through EmojiCryptManager, which keeps the
title and the round clock on the server.
"""
import re
import time
import uuid
from dataclasses import dataclass, asdict, field
from threading import Lock
from typing import Any, Callable, Dict, Mapping, Optional

from loguru import logger

from config.game_config import CONFIG
from providers.base import parse_json_content
from providers.gateway import AIGateway
from src.games.rewards import emoji_crypt_reward
from src.games.sessions import SessionStore
from utils.error_handler import (
    AuthException,
    GameRuleError,
    GenerationError,
    MelaException,
)

CATEGORIES = ("MIXED", "MOVIE", "BOOK", "SONG")
DIFFICULTIES = ("EASY", "MEDIUM", "HARD")

CLUE_PROMPT = """You are a game host for 'Emoji Crypt'. Your job is to generate a popular movie, book, or song title and describe it using ONLY emojis.

Rules:
1. Choose a {difficulty} difficulty title from the '{category}' category (or mixed if MIXED).
2. The emoji description must be clever but solvable.
3. Do NOT use any text in the emoji field.
4. Output JSON only: {{ "title": "The Matrix", "emojis": "🕶️💊🔴🔵", "category": "Movie", "hint": "Red pill or blue pill?" }}"""

_NON_ALNUM = re.compile(r"[^a-z0-9]")


@dataclass
class EmojiClue:
    title: str
    emojis: str
    category: str
    hint: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def normalize_answer(text: str) -> str:
    return _NON_ALNUM.sub("", (text or "").lower())


def check_guess(guess: str, title: str) -> bool:
    normalized = normalize_answer(guess)
    return bool(normalized) and normalized == normalize_answer(title)


def points_for(time_left: int) -> int:
    """Speed bonus: 10 per second left plus 100 for the answer."""
    time_left = max(0, min(int(time_left), CONFIG.rules.emoji_crypt_round_seconds))
    return time_left * 10 + 100


class EmojiCryptGenerator:
    """Asks Groq for one round."""

    def __init__(self, gateway: AIGateway, provider: str = "groq"):
        self.gateway = gateway
        self.provider = provider

    def generate(self, category: str = "MIXED", difficulty: str = "MEDIUM",
                 api_keys: Optional[Mapping[str, str]] = None) -> EmojiClue:
        """
        Raises:
            AuthException: API_KEY_MISSING (no Groq key)
            GenerationError: FAILED_TO_GENERATE (provider error or bad JSON)
        """
        category = (category or "MIXED").upper()
        difficulty = (difficulty or "MEDIUM").upper()
        if category not in CATEGORIES:
            category = "MIXED"
        if difficulty not in DIFFICULTIES:
            difficulty = "MEDIUM"

        messages = [
            {"role": "system", "content": CLUE_PROMPT.format(category=category, difficulty=difficulty)},
            {"role": "user", "content": "Generate one round."},
        ]
        try:
            result = self.gateway.generate_with(
                self.provider, messages, api_keys=api_keys,
                temperature=0.9, max_tokens=200, json_mode=True,
            )
        except AuthException as e:
            raise AuthException("API_KEY_MISSING") from e
        except MelaException as e:
            logger.error(f"Emoji clue generation failed: {e}")
            raise GenerationError("FAILED_TO_GENERATE") from e

        try:
            data: Any = parse_json_content(result.content)
        except GenerationError as e:
            raise GenerationError("FAILED_TO_GENERATE") from e
        if not isinstance(data, dict) or not data.get("title") or not data.get("emojis"):
            logger.error(f"Emoji clue missing fields: {result.content[:200]}")
            raise GenerationError("FAILED_TO_GENERATE")

        return EmojiClue(
            title=str(data["title"]),
            emojis=str(data["emojis"]),
            category=str(data.get("category", category.title())),
            hint=str(data.get("hint", "")),
        )


# ============================================
# SERVER-RUN GAME
# ============================================

@dataclass
class EmojiCryptRun:
    """One paid run: lives, score and the clue in play (title kept server-side)."""
    uid: str
    category: str = "MIXED"
    difficulty: str = "MEDIUM"
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    score: int = 0
    lives: int = field(default_factory=lambda: CONFIG.rules.emoji_crypt_lives)
    round: int = 0
    clue: Optional[EmojiClue] = None
    round_started: float = 0.0

    @property
    def game_over(self) -> bool:
        return self.lives <= 0

    def time_left(self, now: float) -> int:
        elapsed = int(now - self.round_started)
        return max(0, CONFIG.rules.emoji_crypt_round_seconds - elapsed)

    def snapshot(self, now: float) -> Dict[str, Any]:
        state = {"runId": self.run_id, "score": self.score, "lives": self.lives,
                 "round": self.round, "gameOver": self.game_over, "clue": None,
                 "timeLeft": 0}
        if self.clue is not None:
            state["clue"] = {"emojis": self.clue.emojis, "category": self.clue.category,
                             "hint": self.clue.hint}
            state["timeLeft"] = self.time_left(now)
        return state


class EmojiCryptManager:
    """Runs Emoji Crypt on the server so the title and timer cannot be faked.

    A correct guess scores points_for(seconds left); running out of time (or
    giving up) costs a life. The run settles itself when the last life goes.
    """

    def __init__(self, generator: EmojiCryptGenerator, economy=None,
                 ttl_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.time):
        self.generator = generator
        self._economy = economy
        self._clock = clock
        self._runs: SessionStore[EmojiCryptRun] = SessionStore(
            "emoji crypt run", ttl_seconds=ttl_seconds, clock=clock)
        self._lock = Lock()

    def start(self, uid: str, category: str = "MIXED", difficulty: str = "MEDIUM",
              api_keys: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        uid = str(uid or "").strip().upper()
        if not uid:
            raise GameRuleError("uid is required")
        # First clue before the fee, so a missing key costs nothing
        clue = self.generator.generate(category, difficulty, api_keys=api_keys)
        if self._economy is not None:
            self._economy.enter(uid, "emoji_crypt")

        run = EmojiCryptRun(uid=uid, category=category or "MIXED",
                            difficulty=difficulty or "MEDIUM")
        self._deal(run, clue)
        self._runs.add(run.run_id, run)
        logger.info(f"Emoji Crypt run {run.run_id} started for {uid}")
        return run.snapshot(self._clock())

    def _deal(self, run: EmojiCryptRun, clue: EmojiClue):
        run.clue = clue
        run.round += 1
        run.round_started = self._clock()

    def next_round(self, run_id: str,
                   api_keys: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        run = self._runs.get(run_id)
        with self._lock:
            if run.clue is not None:
                raise GameRuleError("Current round is still in play")
        clue = self.generator.generate(run.category, run.difficulty, api_keys=api_keys)
        with self._lock:
            if run.clue is None:
                self._deal(run, clue)
            return run.snapshot(self._clock())

    def guess(self, run_id: str, text: Any) -> Dict[str, Any]:
        """Wrong guesses are free; a guess after the timer ran out loses the round."""
        if not isinstance(text, str) or not text.strip():
            raise GameRuleError("guess is required")
        run = self._runs.get(run_id)
        with self._lock:
            clue = self._clue_in_play(run)
            now = self._clock()
            time_left = run.time_left(now)
            if time_left <= 0:
                outcome = {"correct": False, "timeUp": True, "answer": clue.title}
                self._lose_life(run)
            elif check_guess(text, clue.title):
                points = points_for(time_left)
                run.score += points
                run.clue = None
                outcome = {"correct": True, "points": points, "answer": clue.title}
            else:
                return {"correct": False, **run.snapshot(now)}
        return self._after_round(run, outcome)

    def time_up(self, run_id: str) -> Dict[str, Any]:
        """The round is forfeited: the answer is revealed and a life is lost."""
        run = self._runs.get(run_id)
        with self._lock:
            clue = self._clue_in_play(run)
            self._lose_life(run)
            outcome = {"correct": False, "timeUp": True, "answer": clue.title}
        return self._after_round(run, outcome)

    def _clue_in_play(self, run: EmojiCryptRun) -> EmojiClue:
        if run.game_over:
            raise GameRuleError("Game over")
        if run.clue is None:
            raise GameRuleError("No clue in play")
        return run.clue

    def _lose_life(self, run: EmojiCryptRun):
        run.lives = max(0, run.lives - 1)
        run.clue = None

    def _after_round(self, run: EmojiCryptRun, outcome: Dict[str, Any]) -> Dict[str, Any]:
        outcome.update(run.snapshot(self._clock()))
        if not run.game_over:
            return outcome
        # Only the caller that removes the run pays it out
        if self._runs.pop(run.run_id) is None:
            return outcome
        reward = emoji_crypt_reward(run.score)
        outcome["reward"] = reward
        logger.info(f"Emoji Crypt run {run.run_id} ({run.uid}) over: "
                    f"score {run.score}, reward {reward}")
        if self._economy is not None:
            settled = self._economy.settle(run.uid, "emoji_crypt", reward)
            outcome["stonks"] = settled["stonks"]
        return outcome

    def active_count(self) -> int:
        return len(self._runs)
