"""
Google Gemini provider plugin (google-genai SDK).

Chat, JSON mode, image understanding and text embeddings. Gemini has no
system role in its contents list: system messages become the
system_instruction and assistant turns are sent with role "model".
"""
from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator, List, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from loguru import logger

from config.settings import Settings, get_settings
from providers.base import (
    BaseEmbeddingProvider,
    BaseLLMProvider,
    BaseVisionProvider,
    LLMResponse,
    split_data_url,
)
from utils.error_handler import (
    ErrorCategory,
    ProviderException,
    RateLimitException,
    categorize_exception,
)


def to_gemini_contents(messages: List[Dict[str, str]]):
    """Split OpenAI-style messages into (system_instruction, contents)."""
    system_parts = []
    contents = []
    for msg in messages:
        role = msg.get("role", "user")
        text = msg.get("content", "")
        if role == "system":
            system_parts.append(text)
            continue
        contents.append(types.Content(
            role="user" if role == "user" else "model",
            parts=[types.Part(text=text)],
        ))
    system = "\n\n".join(p for p in system_parts if p) or None
    return system, contents


class GeminiProvider(BaseLLMProvider, BaseVisionProvider, BaseEmbeddingProvider):
    """Google Gemini - chat, vision, embeddings."""

    key_header = "x-google-api-key"

    def __init__(self, settings: Optional[Settings] = None, api_key: Optional[str] = None):
        settings = settings or get_settings()
        super().__init__(
            api_key=settings.gemini_api_key if api_key is None else api_key,
            model=settings.gemini_model,
        )
        self._embedding_model = settings.gemini_embedding_model
        self._timeout_ms = int(settings.request_timeout_seconds * 1000)
        self._client: Optional[genai.Client] = None
        self._client_lock = Lock()

    @property
    def name(self) -> str:
        return "gemini"

    def _new_client(self, api_key: str) -> genai.Client:
        return genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=self._timeout_ms),
        )

    def _get_client(self) -> genai.Client:
        with self._client_lock:
            if self._client is None:
                self._client = self._new_client(self._api_key)
            return self._client

    @contextmanager
    def _client_for(self, api_key: Optional[str]) -> Iterator[genai.Client]:
        """Configured key reuses one client; header keys get a closed-after-use one."""
        key = api_key or self._api_key
        if not key:
            raise ProviderException("gemini: no API key", provider=self.name,
                                    category=ErrorCategory.AUTH)
        if key == self._api_key:
            yield self._get_client()
            return
        client = self._new_client(key)
        try:
            yield client
        finally:
            client.close()

    def _wrap_error(self, e: Exception) -> ProviderException:
        if isinstance(e, ProviderException):
            return e
        category = categorize_exception(e)
        if category == ErrorCategory.RATE_LIMIT:
            return RateLimitException(f"gemini rate limited: {e}", provider=self.name)
        status = e.code if isinstance(e, genai_errors.APIError) else None
        return ProviderException(f"gemini request failed: {e}", provider=self.name,
                                 status_code=status, category=category)

    def _generate(self, contents, config: types.GenerateContentConfig,
                  api_key: Optional[str]) -> LLMResponse:
        with self._client_for(api_key) as client:
            try:
                response = client.models.generate_content(
                    model=self._model,
                    contents=contents,
                    config=config,
                )
            except Exception as e:
                raise self._wrap_error(e) from e

        text = (response.text or "").strip()
        if not text:
            raise ProviderException("gemini returned an empty response",
                                    provider=self.name, category=ErrorCategory.DATA)

        http_response = getattr(response, "sdk_http_response", None)
        raw_headers = getattr(http_response, "headers", None) or {}
        headers = {k.lower(): v for k, v in dict(raw_headers).items()}
        logger.debug(f"gemini ok: model={self._model}")
        return LLMResponse(content=text, provider=self.name,
                           model=self._model, headers=headers)

    def complete(self, messages: List[Dict[str, str]],
                 temperature: float = 0.9,
                 max_tokens: int = 500,
                 api_key: Optional[str] = None,
                 json_mode: bool = False) -> LLMResponse:
        system, contents = to_gemini_contents(messages)
        config = types.GenerateContentConfig(
            system_instruction=system,
            temperature=temperature,
            max_output_tokens=max_tokens,
            response_mime_type="application/json" if json_mode else None,
        )
        return self._generate(contents, config, api_key)

    def analyze_image(self, prompt: str, image: str,
                      temperature: float = 0.3,
                      max_tokens: int = 100,
                      api_key: Optional[str] = None) -> LLMResponse:
        """Image must be base64 (data URL or bare); remote URLs are not fetched."""
        if image.startswith(("http://", "https://")):
            raise ProviderException("gemini: remote image URLs are not supported",
                                    provider=self.name, category=ErrorCategory.DATA)
        mime_type, data = split_data_url(image)
        contents = [
            types.Part(text=prompt),
            types.Part.from_bytes(data=data, mime_type=mime_type),
        ]
        config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_tokens,
        )
        return self._generate(contents, config, api_key)

    def embed(self, texts: List[str], api_key: Optional[str] = None) -> List[List[float]]:
        with self._client_for(api_key) as client:
            try:
                result = client.models.embed_content(
                    model=self._embedding_model,
                    contents=texts,
                )
            except Exception as e:
                raise self._wrap_error(e) from e

        vectors = [list(e.values or []) for e in (result.embeddings or [])]
        if len(vectors) != len(texts):
            raise ProviderException(
                f"gemini returned {len(vectors)} embeddings for {len(texts)} texts",
                provider=self.name, category=ErrorCategory.DATA,
            )
        return vectors
