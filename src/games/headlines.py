"""
Headlines - spot the real (bizarre) news story among two AI-written fakes.

Fakes come from Groq, then Gemini. If both fail the round still plays with
two canned fakes. Generated sets are cached per real headline.
"""
import random
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from loguru import logger

from config.settings import get_settings
from providers.base import parse_json_content
from providers.cache import ResponseCache, get_response_cache
from providers.gateway import AIGateway
from utils.error_handler import GameRuleError, MelaException

SATIRIST_PROMPT = """You are an expert news satirist and creative writer. Your task is to take a real, bizarre news headline and create two 'ridiculous' fake headlines.

Rules for Fakes:
1. They must match the tone, length, and sentence structure of the real headline.
2. They must be bizarre but physically possible (no aliens or magic).
3. Use specific names, locations, and numbers to make them sound authoritative.
4. Ensure the fakes are indistinguishable from the real one in terms of 'weirdness.'
5. Output strictly in JSON format: {"real": "string", "fakes": ["string", "string"]}."""

FALLBACK_FAKES = (
    "Scientists discover new species of bacteria that thrives on plastic waste",
    "Local mayor implements mandatory nap time for all city employees",
)

GENERATION_ORDER = ("groq", "gemini")
CACHE_NAMESPACE = "headlines"


@dataclass
class HeadlineSet:
    real: str
    fakes: List[str]
    provider: str = "fallback"

    def shuffled(self, rng: Optional[random.Random] = None) -> List[Dict]:
        """Real + fakes in random order, each tagged isReal."""
        rng = rng or random
        options = [{"text": self.real, "isReal": True}]
        options.extend({"text": f, "isReal": False} for f in self.fakes)
        rng.shuffle(options)
        return options

    def to_dict(self, rng: Optional[random.Random] = None) -> Dict:
        return {
            "real": self.real,
            "fakes": list(self.fakes),
            "provider": self.provider,
            "options": self.shuffled(rng),
        }


def _valid(data, real: str) -> Optional[List[str]]:
    if not isinstance(data, dict):
        return None
    fakes = data.get("fakes")
    if not data.get("real") or not isinstance(fakes, list) or len(fakes) != 2:
        return None
    fakes = [str(f).strip() for f in fakes]
    if not all(fakes) or real in fakes:
        return None
    return fakes


class HeadlineGenerator:
    def __init__(self, gateway: AIGateway, cache: Optional[ResponseCache] = None,
                 providers=GENERATION_ORDER):
        self.gateway = gateway
        self.cache = cache or get_response_cache()
        self.providers = tuple(providers)

    def generate(self, real_headline: str,
                 api_keys: Optional[Mapping[str, str]] = None) -> HeadlineSet:
        real = (real_headline or "").strip()
        if not real:
            raise GameRuleError("realHeadline is required")

        cached = self.cache.get(CACHE_NAMESPACE, real)
        if cached is not None:
            return cached

        messages = [
            {"role": "system", "content": SATIRIST_PROMPT},
            {"role": "user", "content": f"Real Headline: {real}"},
        ]
        for name in self.providers:
            try:
                result = self.gateway.generate_with(
                    name, messages, api_keys=api_keys,
                    temperature=0.9, max_tokens=500, json_mode=True,
                )
                fakes = _valid(parse_json_content(result.content), real)
            except MelaException as e:
                logger.warning(f"Headline generation via {name} failed: {e}")
                continue
            if fakes is None:
                logger.warning(f"Headline generation via {name} returned an invalid set")
                continue

            headline_set = HeadlineSet(real=real, fakes=fakes, provider=name)
            self.cache.set(CACHE_NAMESPACE, real, headline_set,
                           ttl_seconds=get_settings().headline_cache_ttl)
            return headline_set

        logger.info("Headline generation fell back to canned fakes")
        return HeadlineSet(real=real, fakes=list(FALLBACK_FAKES), provider="fallback")
