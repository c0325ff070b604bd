"""
Game Economy Configuration - Single source of truth.

ALL Stonks economy parameters are configured here, read from .env with defaults.
Every other module imports from here - no hardcoded fees or rewards anywhere else.

Usage:
    from config.game_config import CONFIG
    print(CONFIG.economy.starting_stonks)
    print(CONFIG.games["odd_eve"].entry_fee)
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict
from dotenv import load_dotenv

# Load .env
load_dotenv(Path(__file__).parent.parent / ".env")


def _env_int(key: str, default: int) -> int:
    """Get int env var."""
    return int(os.getenv(key, str(default)))


def _env_float(key: str, default: float) -> float:
    """Get float env var."""
    return float(os.getenv(key, str(default)))


# ============================================
# ECONOMY
# ============================================

@dataclass(frozen=True)
class EconomyConfig:
    """Balances and leaderboard."""
    starting_stonks: int = field(
        default_factory=lambda: _env_int("STARTING_STONKS", 200)
    )
    leaderboard_size: int = field(
        default_factory=lambda: _env_int("LEADERBOARD_SIZE", 50)
    )
    portal_log_limit: int = field(
        default_factory=lambda: _env_int("PORTAL_LOG_LIMIT", 20)
    )


# ============================================
# GAME CATALOG
# ============================================

@dataclass(frozen=True)
class GameEntry:
    """One arcade game: log title + entry fee."""
    key: str
    title: str
    entry_fee: int


def _game(key: str, title: str, fee: int) -> GameEntry:
    return GameEntry(key=key, title=title, entry_fee=_env_int(f"{key.upper()}_ENTRY_FEE", fee))


def _default_games() -> Dict[str, GameEntry]:
    games = [
        _game("interrogator", "AI Interrogator", 20),
        _game("odd_eve", "Odd-Eve Cricket", 20),
        _game("emoji_crypt", "Emoji Crypt", 15),
        _game("headlines", "Headlines", 20),
        _game("deepfake", "Deepfake Detective", 20),
        _game("charades", "Dumb Charades", 0),
        _game("scavenger", "Emoji Scavenger Hunt", 20),
        _game("meme", "Meme Recreator", 20),
        _game("semantics", "Semantic Clear", 20),
        _game("scribble", "AI Scribble", 0),
        _game("humanish", "Humanish", 0),
    ]
    return {g.key: g for g in games}


# ============================================
# REWARDS
# ============================================

@dataclass(frozen=True)
class RewardConfig:
    """Payouts per game. See src/games/rewards.py for the formulas."""
    odd_eve_win: int = field(default_factory=lambda: _env_int("ODD_EVE_WIN_REWARD", 35))
    interrogator_win: int = field(default_factory=lambda: _env_int("INTERROGATOR_WIN_REWARD", 40))
    headlines_per_correct: int = field(default_factory=lambda: _env_int("HEADLINES_PER_CORRECT", 8))
    headlines_rounds: int = field(default_factory=lambda: _env_int("HEADLINES_ROUNDS", 5))
    deepfake_per_correct: int = field(default_factory=lambda: _env_int("DEEPFAKE_PER_CORRECT", 8))
    deepfake_rounds: int = field(default_factory=lambda: _env_int("DEEPFAKE_ROUNDS", 5))
    charades_per_correct: int = field(default_factory=lambda: _env_int("CHARADES_PER_CORRECT", 10))
    charades_rounds: int = field(default_factory=lambda: _env_int("CHARADES_ROUNDS", 4))
    scavenger_cap: int = field(default_factory=lambda: _env_int("SCAVENGER_REWARD_CAP", 40))
    meme_min_score: int = field(default_factory=lambda: _env_int("MEME_MIN_SCORE", 5))
    meme_base: int = field(default_factory=lambda: _env_int("MEME_BASE_REWARD", 20))
    meme_per_extra: int = field(default_factory=lambda: _env_int("MEME_PER_EXTRA", 4))
    meme_cap: int = field(default_factory=lambda: _env_int("MEME_REWARD_CAP", 40))
    emoji_crypt_per_100: int = field(default_factory=lambda: _env_int("EMOJI_CRYPT_PER_100", 2))


# ============================================
# GAME RULES
# ============================================

@dataclass(frozen=True)
class RulesConfig:
    """Per-game tuning that is not a payout."""
    interrogator_max_difficulty: int = 5
    # Max messages per interrogation, indexed by previous plays
    interrogator_attempts: tuple = (10, 5, 2, 1)
    semantic_threshold: float = field(
        default_factory=lambda: _env_float("SEMANTIC_THRESHOLD", 0.45)
    )
    semantic_too_similar: float = field(
        default_factory=lambda: _env_float("SEMANTIC_TOO_SIMILAR", 0.95)
    )
    semantic_blaze_streak: int = 3
    emoji_crypt_round_seconds: int = 30
    scribble_token_floor: int = 10000
    scribble_request_floor: int = 10
    broker_session_ttl_seconds: int = field(
        default_factory=lambda: _env_int("BROKER_SESSION_TTL", 120)
    )
    volunteer_failover_seconds: int = 15
    # Idle server-run games (matches, quizzes, rounds) are dropped after this
    game_session_ttl_seconds: int = field(
        default_factory=lambda: _env_int("GAME_SESSION_TTL", 1800)
    )
    emoji_crypt_lives: int = 3
    semantic_lives: int = 3


@dataclass
class GameConfig:
    """Master config - single import for everything."""
    economy: EconomyConfig = field(default_factory=EconomyConfig)
    games: Dict[str, GameEntry] = field(default_factory=_default_games)
    rewards: RewardConfig = field(default_factory=RewardConfig)
    rules: RulesConfig = field(default_factory=RulesConfig)

    def __post_init__(self):
        """Validate config values on creation."""
        errors = []
        if self.economy.starting_stonks < 0:
            errors.append(f"starting_stonks ({self.economy.starting_stonks}) must be >= 0")
        for entry in self.games.values():
            if entry.entry_fee < 0:
                errors.append(f"{entry.key} entry_fee ({entry.entry_fee}) must be >= 0")
        if not (0 < self.rules.semantic_threshold < self.rules.semantic_too_similar <= 1):
            errors.append(
                f"semantic thresholds must satisfy 0 < {self.rules.semantic_threshold} "
                f"< {self.rules.semantic_too_similar} <= 1"
            )
        if errors:
            raise ValueError(
                "Invalid game configuration:\n  - " + "\n  - ".join(errors)
            )

    def game(self, key: str) -> GameEntry:
        """Look up a game by key. Raises KeyError for unknown games."""
        return self.games[key]


# Singleton - use this everywhere
CONFIG = GameConfig()
