"""
Stonks economy - entry fees, payouts, leaderboard and the player portal.

Games never touch balances directly: they ask the Economy to charge an
entry fee or settle a payout and the ledger does the rest atomically.
"""
from typing import Any, Dict, List, Optional

from loguru import logger

from config.game_config import CONFIG, GameConfig, GameEntry
from utils.error_handler import GameRuleError
from utils.stonks_db import RESULT_PLAYING, StonksDB

RESULT_WIN = "WIN"
RESULT_LOSS = "LOSS"
RESULT_COMPLETED = "COMPLETED"

VALID_RESULTS = {RESULT_WIN, RESULT_LOSS, RESULT_COMPLETED}


class Economy:
    """Fee / payout operations over a StonksDB."""

    def __init__(self, db: StonksDB, config: GameConfig = CONFIG):
        self.db = db
        self.config = config

    def _entry(self, game_key: str) -> GameEntry:
        try:
            return self.config.game(game_key)
        except KeyError:
            raise GameRuleError(f"Unknown game: {game_key}")

    def enter(self, uid: str, game_key: str) -> Dict[str, Any]:
        """Charge the entry fee and log a PLAYING row.

        Free games still get a log row so play counts stay accurate.
        Raises InsufficientFundsError / PlayerNotFoundError.
        """
        entry = self._entry(game_key)
        if entry.entry_fee > 0:
            balance = self.db.apply_change(uid, -entry.entry_fee, entry.title, RESULT_PLAYING)
        else:
            self.db.log_game(uid, entry.title, RESULT_PLAYING, 0)
            balance = self.db.require_player(uid)["stonks"]
        logger.info(f"{uid} entered {entry.title} (fee {entry.entry_fee}, balance {balance})")
        return {
            "uid": uid.strip().upper(),
            "game": game_key,
            "fee": entry.entry_fee,
            "stonks": balance,
        }

    def settle(self, uid: str, game_key: str, reward: int,
               result: Optional[str] = None) -> Dict[str, Any]:
        """Pay out `reward` (>= 0) against the player's open entry and log the result.

        Result defaults to WIN when something was earned, else LOSS. Each
        paid entry settles once; GameRuleError when there is none open.
        """
        entry = self._entry(game_key)
        reward = int(reward)
        if reward < 0:
            raise GameRuleError("reward must be >= 0")
        result = (result or (RESULT_WIN if reward > 0 else RESULT_LOSS)).upper()
        if result not in VALID_RESULTS:
            raise GameRuleError(f"Invalid result: {result}")

        balance = self.db.close_entry(uid, entry.title, reward, result)
        logger.info(f"{uid} settled {entry.title}: {result} +{reward} (balance {balance})")
        return {
            "uid": uid.strip().upper(),
            "game": game_key,
            "result": result,
            "reward": reward,
            "stonks": balance,
        }

    def play_count(self, uid: str, game_key: str) -> int:
        """Number of times the player has entered this game."""
        return self.db.count_plays(uid, self._entry(game_key).title, RESULT_PLAYING)

    def leaderboard(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.db.get_leaderboard(limit or self.config.economy.leaderboard_size)

    def portal(self, uid: str) -> Dict[str, Any]:
        """Player card plus recent history."""
        player = self.db.require_player(uid)
        logs = self.db.get_game_logs(uid, limit=self.config.economy.portal_log_limit)
        return {"player": player, "logs": logs}
