"""
Round-based picture quizzes (Deepfake Detective, Dumb Charades).

The server keeps the answers: a session is created with every round drawn
up front, the client only ever sees the public half of the current round,
and the payout is settled from the server's own correct count.
"""
import random
import time
import uuid
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from config.game_config import CONFIG
from src.games import charades, deepfake
from src.games.datasets import load_charades, load_deepfake_pairs
from src.games.rewards import charades_reward, deepfake_reward
from src.games.sessions import SessionStore
from utils.error_handler import GameRuleError


@dataclass
class QuizGame:
    """How to build rounds and pay out for one quiz game."""
    key: str
    rounds: int
    load: Callable[[], List[Dict]]
    make_rounds: Callable[[List[Dict], int, random.Random], List[Any]]
    reward: Callable[[int], int]


def default_games() -> Dict[str, QuizGame]:
    rewards = CONFIG.rewards
    return {
        "deepfake": QuizGame("deepfake", rewards.deepfake_rounds, load_deepfake_pairs,
                             deepfake.make_rounds, deepfake_reward),
        "charades": QuizGame("charades", rewards.charades_rounds, load_charades,
                             charades.make_rounds, charades_reward),
    }


@dataclass
class QuizSession:
    uid: str
    game: QuizGame
    rounds: List[Any]
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    index: int = 0
    correct: int = 0

    @property
    def finished(self) -> bool:
        return self.index >= len(self.rounds)

    def current(self) -> Dict[str, Any]:
        if self.finished:
            raise GameRuleError("Quiz is over")
        return {"sessionId": self.session_id, "round": self.index + 1,
                "totalRounds": len(self.rounds), **self.rounds[self.index].public()}

    def answer(self, choice: Any) -> Dict[str, Any]:
        if self.finished:
            raise GameRuleError("Quiz is over")
        rnd = self.rounds[self.index]
        is_correct = rnd.check(choice)
        if is_correct:
            self.correct += 1
        self.index += 1
        return {"correct": is_correct, "answer": rnd.answer,
                "correctCount": self.correct, "finished": self.finished}


class QuizManager:
    """Quiz sessions by id; abandoned ones expire after the session TTL."""

    def __init__(self, economy=None, games: Optional[Dict[str, QuizGame]] = None,
                 rng_factory=random.Random, ttl_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.time):
        self._economy = economy
        self._games = games if games is not None else default_games()
        self._rng_factory = rng_factory
        self._sessions: SessionStore[QuizSession] = SessionStore(
            "quiz session", ttl_seconds=ttl_seconds, clock=clock)
        self._lock = Lock()

    def start(self, uid: str, game_key: str) -> Dict[str, Any]:
        game = self._games.get(game_key)
        if game is None:
            raise GameRuleError(f"Unknown quiz: {game_key}")
        uid = str(uid or "").strip().upper()
        if not uid:
            raise GameRuleError("uid is required")

        # Build rounds before charging so a missing dataset costs nothing
        rounds = game.make_rounds(game.load(), game.rounds, self._rng_factory())
        if self._economy is not None:
            self._economy.enter(uid, game_key)

        session = QuizSession(uid=uid, game=game, rounds=rounds)
        self._sessions.add(session.session_id, session)
        logger.info(f"{game_key} quiz {session.session_id} started for {uid}")
        return session.current()

    def answer(self, session_id: str, choice: Any) -> Dict[str, Any]:
        session = self._sessions.get(session_id)
        with self._lock:
            outcome = session.answer(choice)
        if not session.finished:
            outcome["next"] = session.current()
            return outcome

        self._sessions.pop(session_id)
        reward = session.game.reward(session.correct)
        outcome["reward"] = reward
        if self._economy is not None:
            settled = self._economy.settle(session.uid, session.game.key, reward)
            outcome["stonks"] = settled["stonks"]
        return outcome
