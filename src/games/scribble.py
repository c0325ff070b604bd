"""
AI Scribble - reverse Pictionary: the player draws, Groq vision guesses.

The client polls analyze_drawing() with canvas snapshots. When Groq's
rate-limit headers show the quota running low the response raises a
"shield" so the client pauses polling instead of burning the last requests.
"""
import random
import re
from dataclasses import dataclass, asdict
from typing import Dict, Mapping, Optional, Tuple

from loguru import logger

from config.game_config import CONFIG
from providers.gateway import AIGateway
from utils.error_handler import (
    AuthException,
    ErrorCategory,
    GameRuleError,
    MelaException,
    categorize_exception,
)

WORD_CATEGORIES: Dict[str, Tuple[str, ...]] = {
    "animals": (
        "cat", "dog", "elephant", "giraffe", "penguin",
        "butterfly", "fish", "bird", "snake", "turtle",
        "lion", "tiger", "bear", "zebra", "monkey",
        "kangaroo", "panda", "frog", "shark", "whale",
        "octopus", "spider", "rabbit", "dragon", "unicorn",
    ),
    "objects": (
        "house", "car", "tree", "sun", "moon",
        "umbrella", "key", "book", "clock", "guitar",
        "pencil", "chair", "table", "computer", "phone",
        "camera", "shoes", "hat", "glasses", "backpack",
        "bicycle", "train", "plane", "boat", "rocket",
    ),
    "food": (
        "pizza", "apple", "banana", "cake", "ice cream",
        "hamburger", "coffee", "carrot", "watermelon", "cheese",
        "bread", "cookie", "donut", "grape", "lemon",
        "orange", "strawberry", "tomato", "potato", "popcorn",
        "sushi", "sandwich", "taco", "chocolate", "egg",
    ),
    "nature": (
        "mountain", "flower", "cloud", "star", "rainbow",
        "beach", "forest", "river", "volcano", "lightning",
        "fire", "water", "snow", "rain", "wind",
        "cactus", "palm tree", "rose", "mushroom", "leaf",
        "planet", "ocean", "desert", "island", "cave",
    ),
}

GUESS_PROMPT = """You are playing a drawing guessing game. Look at this drawing and guess what object or thing it represents.

Rules:
- Respond with ONLY ONE WORD (the object name)
- Be specific but simple (e.g., "cat" not "animal")
- No explanations, just the guess
- If unclear, make your best guess

What is this drawing?"""

# Used when Groq does not report a limit
UNREPORTED_LIMIT = 999999

_NOT_LETTERS = re.compile(r"[^a-z\s]")


def random_word(category: Optional[str] = None, rng: Optional[random.Random] = None) -> str:
    """A word to draw, from one category or from all of them."""
    rng = rng or random
    if category:
        words = WORD_CATEGORIES.get(category.lower())
        if not words:
            raise GameRuleError(f"Unknown word category: {category}")
        return rng.choice(words)
    return rng.choice([w for words in WORD_CATEGORIES.values() for w in words])


def clean_guess(raw: str) -> str:
    return _NOT_LETTERS.sub("", (raw or "").strip().lower()).strip()


def is_correct(guess: str, target: str) -> bool:
    return bool(guess) and guess.strip().lower() == (target or "").strip().lower()


@dataclass
class ScribbleGuess:
    guess: str
    confidence: float
    shieldActive: bool
    remainingTokens: Optional[int] = None
    remainingRequests: Optional[int] = None
    correct: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


class ScribbleJudge:
    def __init__(self, gateway: AIGateway, provider: str = "groq"):
        self.gateway = gateway
        self.provider = provider

    def analyze_drawing(self, image: str, target_word: str = "",
                        api_keys: Optional[Mapping[str, str]] = None) -> ScribbleGuess:
        """Never raises for provider trouble: the error is reported in the result."""
        rules = CONFIG.rules
        try:
            result = self.gateway.analyze_image(
                self.provider, GUESS_PROMPT, image,
                api_keys=api_keys, temperature=0.3, max_tokens=50,
            )
        except AuthException:
            return ScribbleGuess(guess="", confidence=0, shieldActive=False,
                                 error="API key not configured")
        except MelaException as e:
            if categorize_exception(e) == ErrorCategory.RATE_LIMIT:
                logger.warning("Scribble judge rate limited, raising shield")
                return ScribbleGuess(guess="", confidence=0, shieldActive=True,
                                     error="Rate limit reached")
            logger.error(f"Scribble analysis failed: {e}")
            return ScribbleGuess(guess="", confidence=0, shieldActive=False,
                                 error=e.message or "Analysis failed")

        response = result.response
        remaining_tokens = response.remaining_tokens
        remaining_requests = response.remaining_requests
        if remaining_tokens is None:
            remaining_tokens = UNREPORTED_LIMIT
        if remaining_requests is None:
            remaining_requests = UNREPORTED_LIMIT

        shield = (remaining_tokens < rules.scribble_token_floor
                  or remaining_requests < rules.scribble_request_floor)

        guess = clean_guess(result.content)
        confidence = 0.8 if 0 < len(guess) < 20 else 0.5
        return ScribbleGuess(
            guess=guess,
            confidence=confidence,
            shieldActive=shield,
            remainingTokens=remaining_tokens,
            remainingRequests=remaining_requests,
            correct=is_correct(guess, target_word),
        )
