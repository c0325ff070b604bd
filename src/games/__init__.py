"""
Server-side rules for the AI Mela mini-games.

ECONOMY:
- Economy: entry fees, payouts, leaderboard, player portal
- rewards: payout formula per game

AI-JUDGED / AI-GENERATED:
- Interrogator: talk the guardian into leaking the secret vault
- EmojiCryptGenerator, HeadlineGenerator, ScribbleJudge
- EmojiCryptManager: server-run Emoji Crypt runs
- HumanishBot + ChatBroker + HumanishManager: human-or-AI chat
- SimilarityScorer + SemanticManager: Semantic Clear
- verify_item (scavenger hunt), describe_image (charades)

PURE RULES:
- OddEveManager: hand-cricket against a frequency-predicting bot
- QuizManager: Deepfake Detective and Dumb Charades rounds
- check_pose: Meme Recreator pose heuristics
"""

from .economy import Economy
from .rewards import reward_for
from .interrogator import Interrogator
from .odd_eve import OddEveManager, OddEveMatch
from .quiz import QuizManager
from .chat_broker import ChatBroker
from .humanish import HumanishBot, HumanishManager
from .emoji_crypt import EmojiCryptGenerator, EmojiCryptManager
from .headlines import HeadlineGenerator
from .scribble import ScribbleJudge
from .semantics import SemanticManager, SemanticRound, SimilarityScorer
from .scavenger import verify_item
from .charades import describe_image
from .meme_pose import check_pose

__all__ = [
    'Economy',
    'reward_for',
    'Interrogator',
    'OddEveManager',
    'OddEveMatch',
    'QuizManager',
    'ChatBroker',
    'HumanishBot',
    'HumanishManager',
    'EmojiCryptGenerator',
    'EmojiCryptManager',
    'HeadlineGenerator',
    'ScribbleJudge',
    'SemanticManager',
    'SemanticRound',
    'SimilarityScorer',
    'verify_item',
    'describe_image',
    'check_pose',
]
