"""
AI Gateway - cascading fallback over the configured LLM providers.

Keeps an ordered provider chain (default gemini -> groq -> github) and a
"current index" into it:

1. Before a call, if the active provider is under its quota threshold the
   index moves to the next provider (proactive switch).
2. Providers are tried in order from the current index. A provider is
   skipped when neither the request headers nor the settings supply a key.
3. On success the remaining quota is taken from the rate-limit headers
   (or decremented by one). Dropping under the threshold moves the index
   for the next call.
4. A 429 marks the provider exhausted and moves the index. Any failure
   falls through to the next provider within the same call.

Quota and index live in process memory.

Usage:
    gateway = get_ai_gateway()
    result = gateway.generate(messages, api_keys=request_keys)
    print(result.content, result.provider, result.remaining_quota)
"""
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, List, Mapping, Optional

from loguru import logger

from config.settings import Settings, get_settings
from providers.base import (
    BaseEmbeddingProvider,
    BaseLLMProvider,
    BaseVisionProvider,
    LLMResponse,
)
from providers.quota import APIQuotaManager
from utils.error_handler import (
    AllProvidersFailedError,
    ErrorCategory,
    NoProvidersAvailableError,
    ProviderException,
    categorize_exception,
)


# Request headers that carry per-request keys
KEY_HEADERS = ("x-google-api-key", "x-groq-api-key", "x-github-token")


def keys_from_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Pick provider key overrides out of request headers."""
    keys = {}
    for name in KEY_HEADERS:
        value = headers.get(name)
        if value:
            keys[name] = value.strip()
    return keys


@dataclass
class GatewayResult:
    """Outcome of one gateway call."""
    content: str
    provider: str
    remaining_quota: Optional[int]
    switched_provider: bool
    response: LLMResponse


class AIGateway:
    """Ordered provider chain with quota-aware switching. Thread-safe."""

    def __init__(self, providers: Optional[List[BaseLLMProvider]] = None,
                 quota: Optional[APIQuotaManager] = None,
                 settings: Optional[Settings] = None):
        settings = settings or get_settings()
        if providers is None:
            from providers.llm import get_llm_providers
            providers = get_llm_providers(settings)
        self._providers = list(providers)
        self._quota = quota or APIQuotaManager()
        self._current = 0
        self._lock = Lock()

        for p in self._providers:
            if not self._quota.is_registered(p.name):
                self._quota.register(
                    p.name,
                    initial=settings.provider_initial_quota,
                    threshold=settings.provider_quota_threshold,
                )

    # ============================================
    # INTROSPECTION
    # ============================================

    @property
    def providers(self) -> List[BaseLLMProvider]:
        return list(self._providers)

    @property
    def quota(self) -> APIQuotaManager:
        return self._quota

    @property
    def current_index(self) -> int:
        with self._lock:
            return self._current

    def current_provider(self) -> Optional[str]:
        with self._lock:
            if not self._providers:
                return None
            return self._providers[self._current].name

    def provider(self, name: str) -> BaseLLMProvider:
        for p in self._providers:
            if p.name == name:
                return p
        raise NoProvidersAvailableError(f"AI provider '{name}' is not configured")

    def get_provider_status(self) -> List[Dict[str, Any]]:
        """Per-provider snapshot for API responses and the CLI."""
        usage = self._quota.get_usage()
        with self._lock:
            current = self._current
        status = []
        for i, p in enumerate(self._providers):
            stats = usage.get(p.name, {})
            status.append({
                "name": p.name,
                "active": i == current,
                "remainingQuota": stats.get("remaining"),
                "threshold": stats.get("threshold"),
                "healthy": stats.get("healthy", True),
                "configured": p.is_available(),
            })
        return status

    def reset_quotas(self):
        """Restore every counter and go back to the first provider."""
        self._quota.reset()
        with self._lock:
            self._current = 0
        logger.info("AI gateway quotas reset")

    # ============================================
    # INDEX MANAGEMENT
    # ============================================

    def _last_index(self) -> int:
        return len(self._providers) - 1

    def _advance_past(self, index: int, reason: str):
        """Move the current index beyond `index` (never past the last provider)."""
        with self._lock:
            if self._current <= index < self._last_index():
                self._current = index + 1
                logger.info(
                    f"AI gateway switched {self._providers[index].name} -> "
                    f"{self._providers[self._current].name} ({reason})"
                )

    def _proactive_switch(self) -> bool:
        with self._lock:
            if not self._providers:
                return False
            active = self._providers[self._current]
            if self._quota.is_low(active.name) and self._current < self._last_index():
                self._current += 1
                logger.info(
                    f"AI gateway proactively switched {active.name} -> "
                    f"{self._providers[self._current].name} (quota low)"
                )
                return True
            return False

    # ============================================
    # CALLS
    # ============================================

    def _invoke(self, index: int, call: Callable[[], LLMResponse]) -> LLMResponse:
        """Run one provider call and book-keep quota. Re-raises failures."""
        provider = self._providers[index]
        try:
            response = call()
        except Exception as e:
            if categorize_exception(e) == ErrorCategory.RATE_LIMIT:
                self._quota.record_rate_limit(provider.name)
                self._advance_past(index, "rate limited")
            else:
                self._quota.record_failure(provider.name)
            raise

        self._quota.record_success(provider.name, remaining=response.remaining_requests)
        if self._quota.is_low(provider.name):
            self._advance_past(index, "quota under threshold")
        return response

    def generate(self, messages: List[Dict[str, str]],
                 api_keys: Optional[Mapping[str, str]] = None,
                 temperature: float = 0.9,
                 max_tokens: int = 500,
                 json_mode: bool = False) -> GatewayResult:
        """Chat completion with cascading fallback.

        Raises NoProvidersAvailableError when no provider had a key and
        AllProvidersFailedError when every attempted provider failed.
        """
        switched = self._proactive_switch()
        with self._lock:
            start = self._current

        attempted = 0
        last_error: Optional[Exception] = None
        for i in range(start, len(self._providers)):
            provider = self._providers[i]
            key = provider.resolve_key(api_keys)
            if not key:
                logger.debug(f"Skipping {provider.name}: no API key")
                continue

            attempted += 1
            try:
                response = self._invoke(i, lambda: provider.complete(
                    messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    api_key=key,
                    json_mode=json_mode,
                ))
            except Exception as e:
                last_error = e
                logger.warning(f"AI provider {provider.name} failed: {e}")
                continue

            return GatewayResult(
                content=response.content,
                provider=provider.name,
                remaining_quota=self._quota.remaining(provider.name),
                switched_provider=switched or i != start,
                response=response,
            )

        if attempted == 0:
            raise NoProvidersAvailableError("No AI providers available")
        raise AllProvidersFailedError(
            f"All AI providers failed. Last error: {last_error}", last_error
        )

    def _single(self, name: str, api_keys: Optional[Mapping[str, str]],
                make_call: Callable[[Any, str], LLMResponse]) -> GatewayResult:
        index = next((i for i, p in enumerate(self._providers) if p.name == name), None)
        if index is None:
            raise NoProvidersAvailableError(f"AI provider '{name}' is not configured")
        provider = self._providers[index]
        key = provider.resolve_key(api_keys)
        if not key:
            raise NoProvidersAvailableError(f"{name} API key required")

        response = self._invoke(index, lambda: make_call(provider, key))
        return GatewayResult(
            content=response.content,
            provider=name,
            remaining_quota=self._quota.remaining(name),
            switched_provider=False,
            response=response,
        )

    def generate_with(self, name: str, messages: List[Dict[str, str]],
                      api_keys: Optional[Mapping[str, str]] = None,
                      temperature: float = 0.9,
                      max_tokens: int = 500,
                      json_mode: bool = False) -> GatewayResult:
        """Call one named provider (no fallback). Quota is still tracked."""
        return self._single(name, api_keys, lambda p, key: p.complete(
            messages,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=key,
            json_mode=json_mode,
        ))

    def analyze_image(self, name: str, prompt: str, image: str,
                      api_keys: Optional[Mapping[str, str]] = None,
                      temperature: float = 0.3,
                      max_tokens: int = 100) -> GatewayResult:
        """Vision call on one named provider."""
        def call(p, key):
            if not isinstance(p, BaseVisionProvider):
                raise ProviderException(f"{name} does not support images", provider=name,
                                        category=ErrorCategory.FATAL)
            return p.analyze_image(prompt, image, temperature=temperature,
                                   max_tokens=max_tokens, api_key=key)
        return self._single(name, api_keys, call)

    def embed(self, texts: List[str],
              api_keys: Optional[Mapping[str, str]] = None,
              name: str = "gemini") -> List[List[float]]:
        """Text embeddings from one named provider."""
        index = next((i for i, p in enumerate(self._providers) if p.name == name), None)
        if index is None:
            raise NoProvidersAvailableError(f"AI provider '{name}' is not configured")
        provider = self._providers[index]
        if not isinstance(provider, BaseEmbeddingProvider):
            raise ProviderException(f"{name} does not support embeddings", provider=name,
                                    category=ErrorCategory.FATAL)
        key = provider.resolve_key(api_keys)
        if not key:
            raise NoProvidersAvailableError(f"{name} API key required")
        try:
            vectors = provider.embed(texts, api_key=key)
        except Exception as e:
            if categorize_exception(e) == ErrorCategory.RATE_LIMIT:
                self._quota.record_rate_limit(name)
            else:
                self._quota.record_failure(name)
            raise
        self._quota.record_success(name)
        return vectors

    def format_status_report(self) -> str:
        lines = [self._quota.format_health_report()]
        active = self.current_provider()
        if active:
            lines.append(f"  Active:    {active}")
        return "\n".join(line for line in lines if line)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_gateway: Optional[AIGateway] = None
_gateway_lock = Lock()


def get_ai_gateway() -> AIGateway:
    """Get the process-wide AIGateway singleton."""
    global _gateway
    with _gateway_lock:
        if _gateway is None:
            from providers.quota import get_quota_manager
            _gateway = AIGateway(quota=get_quota_manager())
        return _gateway
