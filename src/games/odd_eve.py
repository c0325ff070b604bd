"""
Odd-Eve Cricket - hand cricket against a pattern-learning bowler.

Match flow:
    TOSS -> (CHOOSE_ROLE) -> INNINGS_1 -> INNINGS_2 -> RESULT

Both sides show a number 1-6 each ball. Same numbers = batter out,
otherwise the batter's number is added to the score. The second innings
chases first-innings score + 1.

When bowling, the AI remembers which number the player tends to play after
each previous number and bowls the most frequent follow-up (30% of balls
are random so it is not fully predictable). When batting it favours 6s and
4s.
"""
import random
import time
import uuid
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from config.game_config import CONFIG
from src.games.rewards import odd_eve_reward
from src.games.sessions import SessionStore
from utils.error_handler import GameRuleError

PHASE_TOSS = "TOSS"
PHASE_CHOOSE_ROLE = "CHOOSE_ROLE"
PHASE_INNINGS_1 = "INNINGS_1"
PHASE_INNINGS_2 = "INNINGS_2"
PHASE_RESULT = "RESULT"

ROLE_BAT = "BAT"
ROLE_BOWL = "BOWL"

MOVES = range(1, 7)
BALL_HISTORY_SIZE = 6
RANDOM_BOWL_CHANCE = 0.3


def _check_move(value: Any, what: str = "number") -> int:
    try:
        move = int(value)
    except (TypeError, ValueError):
        raise GameRuleError(f"{what} must be between 1 and 6")
    if move not in MOVES:
        raise GameRuleError(f"{what} must be between 1 and 6")
    return move


def _other(role: str) -> str:
    return ROLE_BOWL if role == ROLE_BAT else ROLE_BAT


@dataclass
class OddEveMatch:
    """One match against the AI. Not thread-safe on its own."""
    uid: str
    match_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    phase: str = PHASE_TOSS
    player_role: Optional[str] = None
    score: int = 0
    target: Optional[int] = None
    result: Optional[str] = None
    commentary: str = "Call Odd or Eve and pick a number."
    ball_history: List[Dict[str, int]] = field(default_factory=list)
    # transitions[prev][next] = times the player followed prev with next
    transitions: Dict[int, Dict[int, int]] = field(default_factory=dict)
    last_player_move: int = 0   # 0 = start of innings
    rng: random.Random = field(default_factory=random.Random, repr=False)

    # ============================================
    # TOSS
    # ============================================

    def toss(self, call: str, number: Any) -> Dict[str, Any]:
        if self.phase != PHASE_TOSS:
            raise GameRuleError("Toss already done")
        call = str(call or "").upper()
        if call not in ("ODD", "EVE"):
            raise GameRuleError("Choose ODD or EVE first")
        player_num = _check_move(number)

        ai_num = self.rng.randint(1, 6)
        total = player_num + ai_num
        sum_is_odd = total % 2 == 1
        player_won = sum_is_odd == (call == "ODD")

        outcome = {"playerNumber": player_num, "aiNumber": ai_num, "sum": total,
                   "playerWonToss": player_won}
        if player_won:
            self.phase = PHASE_CHOOSE_ROLE
            self.commentary = f"Sum is {total}. YOU WON THE TOSS! Choose to Bat or Bowl."
        else:
            ai_role = ROLE_BAT if self.rng.random() > 0.5 else ROLE_BOWL
            outcome["aiRole"] = ai_role
            self._start_innings_1(_other(ai_role))
            self.commentary = f"Sum is {total}. AI Won Toss and chose to {ai_role}."
        return outcome

    def choose_role(self, role: str):
        if self.phase != PHASE_CHOOSE_ROLE:
            raise GameRuleError("Only the toss winner can choose a role")
        role = str(role or "").upper()
        if role not in (ROLE_BAT, ROLE_BOWL):
            raise GameRuleError("Role must be BAT or BOWL")
        self._start_innings_1(role)

    def _start_innings_1(self, role: str):
        self.player_role = role
        self.score = 0
        self.ball_history = []
        self.last_player_move = 0
        self.phase = PHASE_INNINGS_1
        self.commentary = ("You are Batting. Set a high score!" if role == ROLE_BAT
                           else "You are Bowling. Get the AI out!")

    # ============================================
    # AI
    # ============================================

    def _ai_move(self) -> int:
        ai_batting = self.player_role == ROLE_BOWL
        if ai_batting:
            r = self.rng.random()
            if r < 0.2:
                return 6
            if r < 0.4:
                return 4
            return self.rng.randint(1, 6)

        if self.last_player_move == 0:
            return self.rng.randint(1, 6)
        if self.rng.random() < RANDOM_BOWL_CHANCE:
            return self.rng.randint(1, 6)
        return self.predict_next() or self.rng.randint(1, 6)

    def predict_next(self) -> Optional[int]:
        """Most frequent follow-up to the player's last move (lowest wins ties)."""
        history = self.transitions.get(self.last_player_move)
        if not history:
            return None
        return max(sorted(history), key=lambda move: history[move])

    def _learn(self, move: int):
        if self.last_player_move != 0:
            row = self.transitions.setdefault(self.last_player_move, {})
            row[move] = row.get(move, 0) + 1
        self.last_player_move = move

    # ============================================
    # BALLS
    # ============================================

    def ball(self, number: Any) -> Dict[str, Any]:
        if self.phase not in (PHASE_INNINGS_1, PHASE_INNINGS_2):
            raise GameRuleError(f"No ball to play in phase {self.phase}")
        player_move = _check_move(number)
        ai_move = self._ai_move()
        self._learn(player_move)

        out = player_move == ai_move
        runs = player_move if self.player_role == ROLE_BAT else ai_move
        self.ball_history = (self.ball_history + [{"p": player_move, "ai": ai_move}])[-BALL_HISTORY_SIZE:]

        if self.phase == PHASE_INNINGS_1:
            if out:
                self.target = self.score + 1
                self.commentary = f"WICKET! Innings over. Score: {self.score}. Target: {self.target}"
                self.player_role = _other(self.player_role)
                self.score = 0
                self.ball_history = []
                self.last_player_move = 0
                self.phase = PHASE_INNINGS_2
            else:
                self.score += runs
                self.commentary = f"{runs} runs scored."
        else:
            if out:
                chaser_made_it = self.score >= self.target
                player_chasing = self.player_role == ROLE_BAT
                self._finish("WIN" if chaser_made_it == player_chasing else "LOSS")
            else:
                self.score += runs
                self.commentary = f"{runs} runs scored."
                if self.score >= self.target:
                    self._finish("WIN" if self.player_role == ROLE_BAT else "LOSS")

        return {"playerMove": player_move, "aiMove": ai_move, "out": out,
                "runs": 0 if out else runs, **self.snapshot()}

    def _finish(self, result: str):
        self.result = result
        self.phase = PHASE_RESULT
        if result == "WIN":
            self.commentary = f"YOU WON THE MATCH! +{self.reward} STONKS"
        else:
            self.commentary = "YOU LOST THE MATCH."
        logger.info(f"Odd-Eve {self.match_id} ({self.uid}): {result}")

    @property
    def reward(self) -> int:
        return odd_eve_reward(self.result == "WIN")

    def snapshot(self) -> Dict[str, Any]:
        return {
            "matchId": self.match_id,
            "uid": self.uid,
            "phase": self.phase,
            "playerRole": self.player_role,
            "score": self.score,
            "target": self.target,
            "result": self.result,
            "reward": self.reward if self.result else 0,
            "commentary": self.commentary,
            "ballHistory": list(self.ball_history),
        }


class OddEveManager:
    """Live matches by id. Charges the entry fee and pays out via the Economy.

    Matches left idle longer than the session TTL are forgotten.
    """

    def __init__(self, economy=None, rng_factory=random.Random,
                 ttl_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.time):
        self._economy = economy
        self._rng_factory = rng_factory
        self._matches: SessionStore[OddEveMatch] = SessionStore(
            "match", ttl_seconds=ttl_seconds, clock=clock)
        self._lock = Lock()

    def start(self, uid: str) -> OddEveMatch:
        uid = str(uid or "").strip().upper()
        if not uid:
            raise GameRuleError("uid is required")
        if self._economy is not None:
            self._economy.enter(uid, "odd_eve")
        match = OddEveMatch(uid=uid, rng=self._rng_factory())
        self._matches.add(match.match_id, match)
        logger.info(f"Odd-Eve match {match.match_id} started for {uid} "
                    f"(fee {CONFIG.game('odd_eve').entry_fee})")
        return match

    def get(self, match_id: str) -> OddEveMatch:
        return self._matches.get(match_id)

    def active_count(self) -> int:
        return len(self._matches)

    def toss(self, match_id: str, call: str, number: Any) -> Dict[str, Any]:
        match = self.get(match_id)
        with self._lock:
            outcome = match.toss(call, number)
        return {**outcome, **match.snapshot()}

    def choose_role(self, match_id: str, role: str) -> Dict[str, Any]:
        match = self.get(match_id)
        with self._lock:
            match.choose_role(role)
        return match.snapshot()

    def ball(self, match_id: str, number: Any) -> Dict[str, Any]:
        match = self.get(match_id)
        with self._lock:
            if match.phase == PHASE_RESULT:
                raise GameRuleError("Match is over")
            outcome = match.ball(number)
            finished = match.phase == PHASE_RESULT
        if finished:
            self._matches.pop(match_id)
            if self._economy is not None:
                settled = self._economy.settle(match.uid, "odd_eve", match.reward, match.result)
                outcome["stonks"] = settled["stonks"]
        return outcome
