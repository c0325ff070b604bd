"""
Process-wide objects the HTTP routes work with.

create_app() stores one MelaServices on app.extensions; routes fetch it with
services(). Tests build their own bundle around a temp DB and fake providers.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from flask import current_app, request

from providers.cache import ResponseCache, get_response_cache
from providers.gateway import AIGateway, get_ai_gateway, keys_from_headers
from src.games.chat_broker import ChatBroker
from src.games.economy import Economy
from src.games.emoji_crypt import EmojiCryptGenerator, EmojiCryptManager
from src.games.headlines import HeadlineGenerator
from src.games.humanish import HumanishBot, HumanishManager
from src.games.interrogator import Interrogator
from src.games.odd_eve import OddEveManager
from src.games.quiz import QuizManager
from src.games.scribble import ScribbleJudge
from src.games.semantics import SemanticManager, SimilarityScorer
from utils.stonks_db import StonksDB, get_stonks_db

EXTENSION_KEY = "ai_mela"


@dataclass
class MelaServices:
    db: StonksDB
    gateway: AIGateway
    cache: ResponseCache
    economy: Economy = field(init=False)
    interrogator: Interrogator = field(init=False)
    odd_eve: OddEveManager = field(init=False)
    quiz: QuizManager = field(init=False)
    broker: ChatBroker = field(init=False)
    bot: HumanishBot = field(init=False)
    emoji_crypt: EmojiCryptGenerator = field(init=False)
    headlines: HeadlineGenerator = field(init=False)
    scribble: ScribbleJudge = field(init=False)
    similarity: SimilarityScorer = field(init=False)
    emoji_runs: EmojiCryptManager = field(init=False)
    semantic_games: SemanticManager = field(init=False)
    humanish: HumanishManager = field(init=False)

    def __post_init__(self):
        self.economy = Economy(self.db)
        self.interrogator = Interrogator(self.gateway)
        self.odd_eve = OddEveManager(economy=self.economy)
        self.quiz = QuizManager(economy=self.economy)
        self.broker = ChatBroker()
        self.bot = HumanishBot(self.gateway)
        self.emoji_crypt = EmojiCryptGenerator(self.gateway)
        self.headlines = HeadlineGenerator(self.gateway, cache=self.cache)
        self.scribble = ScribbleJudge(self.gateway)
        self.similarity = SimilarityScorer(self.gateway, cache=self.cache)
        self.emoji_runs = EmojiCryptManager(self.emoji_crypt, economy=self.economy)
        self.semantic_games = SemanticManager(self.similarity, economy=self.economy)
        self.humanish = HumanishManager(self.bot, broker=self.broker, economy=self.economy)


def build_services(db: Optional[StonksDB] = None,
                   gateway: Optional[AIGateway] = None,
                   cache: Optional[ResponseCache] = None) -> MelaServices:
    """Bundle with the global singletons for anything not passed in."""
    return MelaServices(
        db=db or get_stonks_db(),
        gateway=gateway or get_ai_gateway(),
        cache=cache or get_response_cache(),
    )


def services() -> MelaServices:
    return current_app.extensions[EXTENSION_KEY]


def request_json() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def request_keys() -> Dict[str, str]:
    """Per-request provider keys from the x-*-api-key headers."""
    return keys_from_headers(request.headers)
