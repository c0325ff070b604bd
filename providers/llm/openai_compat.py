"""
OpenAI-compatible chat provider.

Groq and GitHub Models both expose the OpenAI chat-completions API, so a
single client wrapper serves both; subclasses only pick the base URL,
default model and key header. SDK retries are disabled because the gateway
does its own failover.
"""
from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator, List, Optional

import openai
from loguru import logger

from providers.base import BaseLLMProvider, BaseVisionProvider, LLMResponse
from utils.error_handler import (
    ErrorCategory,
    ProviderException,
    RateLimitException,
    categorize_exception,
)


def _retry_after(headers) -> Optional[float]:
    try:
        value = headers.get("retry-after") if headers is not None else None
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class OpenAICompatibleProvider(BaseLLMProvider, BaseVisionProvider):
    """Chat completions (and vision) over an OpenAI-style endpoint."""

    provider_name = "openai"

    def __init__(self, api_key: str = "", model: str = "",
                 base_url: Optional[str] = None,
                 vision_model: Optional[str] = None,
                 timeout: float = 30.0):
        super().__init__(api_key=api_key, model=model)
        self._base_url = base_url
        self._vision_model = vision_model or model
        self._timeout = timeout
        self._client: Optional[openai.OpenAI] = None
        self._client_lock = Lock()

    @property
    def name(self) -> str:
        return self.provider_name

    @property
    def vision_model(self) -> str:
        return self._vision_model

    def _new_client(self, api_key: str) -> openai.OpenAI:
        return openai.OpenAI(
            api_key=api_key,
            base_url=self._base_url,
            timeout=self._timeout,
            max_retries=0,
        )

    def _get_client(self) -> openai.OpenAI:
        """Lazy-init the shared client for the configured key."""
        with self._client_lock:
            if self._client is None:
                self._client = self._new_client(self._api_key)
            return self._client

    @contextmanager
    def _client_for(self, api_key: Optional[str]) -> Iterator[openai.OpenAI]:
        """Shared client for the configured key; a throwaway one otherwise.

        Keys from request headers are never retained: their client is
        closed as soon as the call returns.
        """
        key = api_key or self._api_key
        if not key:
            raise ProviderException(f"{self.name}: no API key",
                                    provider=self.name, category=ErrorCategory.AUTH)
        if key == self._api_key:
            yield self._get_client()
            return
        client = self._new_client(key)
        try:
            yield client
        finally:
            client.close()

    def _create(self, api_key: Optional[str], **kwargs) -> LLMResponse:
        with self._client_for(api_key) as client:
            try:
                raw = client.chat.completions.with_raw_response.create(**kwargs)
            except openai.RateLimitError as e:
                raise RateLimitException(
                    f"{self.name} rate limited: {e}",
                    provider=self.name,
                    retry_after=_retry_after(getattr(e.response, "headers", None)),
                ) from e
            except openai.APIStatusError as e:
                raise ProviderException(
                    f"{self.name} returned {e.status_code}: {e.message}",
                    provider=self.name,
                    status_code=e.status_code,
                    category=categorize_exception(e),
                ) from e
            except openai.APIError as e:
                raise ProviderException(f"{self.name} request failed: {e}",
                                        provider=self.name) from e
            completion = raw.parse()

        choice = completion.choices[0] if completion.choices else None
        content = (choice.message.content or "").strip() if choice else ""
        if not content:
            raise ProviderException(f"{self.name} returned an empty response",
                                    provider=self.name, category=ErrorCategory.DATA)

        headers = {k.lower(): v for k, v in raw.headers.items()}
        logger.debug(
            f"{self.name} ok: model={kwargs.get('model')} "
            f"remaining={headers.get('x-ratelimit-remaining-requests', '?')}"
        )
        return LLMResponse(
            content=content,
            provider=self.name,
            model=kwargs.get("model", ""),
            headers=headers,
        )

    def complete(self, messages: List[Dict[str, str]],
                 temperature: float = 0.9,
                 max_tokens: int = 500,
                 api_key: Optional[str] = None,
                 json_mode: bool = False) -> LLMResponse:
        kwargs = dict(
            model=self._model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        return self._create(api_key, **kwargs)

    def analyze_image(self, prompt: str, image: str,
                      temperature: float = 0.3,
                      max_tokens: int = 100,
                      api_key: Optional[str] = None) -> LLMResponse:
        messages = [{
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image}},
            ],
        }]
        return self._create(
            api_key,
            model=self._vision_model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
