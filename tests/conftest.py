"""
Shared test fixtures for AI Mela tests.

Provides FakeProvider (scripted, no network), a temp StonksDB, an AIGateway
over fake providers and a Flask test client wired to all of them.
"""
import sys
import os
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Ensure project root is on path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Patch env BEFORE importing project modules so Settings/CONFIG never see real keys
os.environ["GEMINI_API_KEY"] = ""
os.environ["GOOGLE_API_KEY"] = ""
os.environ["GEMINI_KEY"] = ""
os.environ["GROQ_API_KEY"] = ""
os.environ["GITHUB_TOKEN"] = ""
os.environ["AI_PROVIDERS"] = "gemini,groq,github"
os.environ["PROVIDER_INITIAL_QUOTA"] = "100"
os.environ["PROVIDER_QUOTA_THRESHOLD"] = "5"
os.environ["STARTING_STONKS"] = "200"

from providers.base import (
    BaseEmbeddingProvider, BaseLLMProvider, BaseVisionProvider, LLMResponse
)
from providers.cache import ResponseCache
from providers.gateway import AIGateway
from providers.quota import APIQuotaManager
from utils.error_handler import ProviderException, RateLimitException
from utils.stonks_db import StonksDB


# ============================================
# FAKE PROVIDER (no network, fully scripted)
# ============================================

KEY_HEADERS = {
    "gemini": "x-google-api-key",
    "groq": "x-groq-api-key",
    "github": "x-github-token",
}


class FakeProvider(BaseLLMProvider, BaseVisionProvider, BaseEmbeddingProvider):
    """
    Scripted provider for unit tests.

    Each call pops the next script item:
    - str: returned as the completion content
    - LLMResponse: returned as-is
    - Exception: raised
    With an empty script every call returns `default`.
    """

    def __init__(self, name: str, api_key: str = "test-key",
                 script: Optional[list] = None, default: str = "ok",
                 headers: Optional[Dict[str, str]] = None):
        super().__init__(api_key=api_key, model=f"{name}-test")
        self._name = name
        self.key_header = KEY_HEADERS.get(name, f"x-{name}-key")
        self.script = list(script or [])
        self.default = default
        self.headers = dict(headers or {})
        self.calls: List[Dict] = []
        self.vectors: Dict[str, List[float]] = {}

    @property
    def name(self) -> str:
        return self._name

    def _next(self) -> LLMResponse:
        item = self.script.pop(0) if self.script else self.default
        if isinstance(item, Exception):
            raise item
        if isinstance(item, LLMResponse):
            return item
        return LLMResponse(content=item, provider=self._name, model=self.model,
                           headers=dict(self.headers))

    def complete(self, messages, temperature=0.9, max_tokens=500,
                 api_key=None, json_mode=False) -> LLMResponse:
        self.calls.append({"kind": "complete", "messages": messages, "api_key": api_key,
                           "temperature": temperature, "max_tokens": max_tokens,
                           "json_mode": json_mode})
        return self._next()

    def analyze_image(self, prompt, image, temperature=0.3, max_tokens=100,
                      api_key=None) -> LLMResponse:
        self.calls.append({"kind": "image", "prompt": prompt, "image": image,
                           "api_key": api_key, "temperature": temperature,
                           "max_tokens": max_tokens})
        return self._next()

    def embed(self, texts, api_key=None) -> List[List[float]]:
        self.calls.append({"kind": "embed", "texts": list(texts), "api_key": api_key})
        if self.script and isinstance(self.script[0], Exception):
            raise self.script.pop(0)
        return [self.vectors.get(t, [1.0, 0.0, 0.0]) for t in texts]


def rate_limited(name: str) -> RateLimitException:
    return RateLimitException(f"{name}: 429 Too Many Requests", provider=name)


def server_error(name: str) -> ProviderException:
    return ProviderException(f"{name}: 500 Internal Server Error", provider=name,
                             status_code=500)


class FakeClock:
    """Callable clock for TTL tests; advance() moves time forward."""

    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# ============================================
# FIXTURES
# ============================================

@pytest.fixture
def stonks_db(tmp_path):
    """StonksDB backed by a temp file, starting balance 200."""
    return StonksDB(db_path=tmp_path / "test_stonks.db", starting_stonks=200)


@pytest.fixture
def fake_providers():
    return [FakeProvider("gemini"), FakeProvider("groq"), FakeProvider("github")]


@pytest.fixture
def make_gateway():
    """Factory: AIGateway over the given fake providers with a fresh quota manager."""
    def _make(*providers):
        return AIGateway(providers=list(providers), quota=APIQuotaManager())
    return _make


@pytest.fixture
def gateway(make_gateway, fake_providers):
    return make_gateway(*fake_providers)


@pytest.fixture
def cache():
    return ResponseCache(default_ttl_seconds=60, max_entries=100)


@pytest.fixture
def services(stonks_db, gateway, cache):
    from src.api.services import MelaServices
    return MelaServices(db=stonks_db, gateway=gateway, cache=cache)


@pytest.fixture
def app(services):
    from src.api.app import create_app
    app = create_app(services)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
