"""
Abstract Base Classes for AI providers.

Each hosted model API (Gemini, Groq, GitHub Models) implements one minimal
contract. The gateway handles quota tracking, proactive switching and
failover; a provider only knows how to make a single call and how to
describe the rate-limit headers that came back.
"""
import base64
import binascii
import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from utils.error_handler import ErrorCategory, GenerationError, ProviderException


# Header names the gateway reads remaining quota from (lowercase)
REMAINING_REQUEST_HEADERS = ("x-ratelimit-remaining-requests", "x-ratelimit-remaining")
REMAINING_TOKEN_HEADERS = ("x-ratelimit-remaining-tokens",)

_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.*)$", re.DOTALL)


def _header_int(headers: Mapping[str, str], names) -> Optional[int]:
    for name in names:
        value = headers.get(name)
        if value is None:
            continue
        try:
            return int(float(value))
        except (TypeError, ValueError):
            continue
    return None


@dataclass
class LLMResponse:
    """Normalized completion from any provider."""
    content: str
    provider: str
    model: str = ""
    headers: Dict[str, str] = field(default_factory=dict)  # lowercased keys

    @property
    def remaining_requests(self) -> Optional[int]:
        """Requests left according to the provider, None if not reported."""
        return _header_int(self.headers, REMAINING_REQUEST_HEADERS)

    @property
    def remaining_tokens(self) -> Optional[int]:
        return _header_int(self.headers, REMAINING_TOKEN_HEADERS)


def split_data_url(image: str) -> Tuple[str, bytes]:
    """Decode a base64 data URL into (mime_type, raw bytes).

    Bare base64 (no data: prefix) is accepted and treated as JPEG.
    """
    match = _DATA_URL.match(image.strip())
    if match:
        mime, payload = match.group("mime"), match.group("data")
    else:
        mime, payload = "image/jpeg", image.strip()
    try:
        return mime, base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ProviderException(f"Invalid image payload: {e}",
                                category=ErrorCategory.DATA) from e


def parse_json_content(content: str) -> Any:
    """Parse model output as JSON, tolerating ```json fences."""
    text = content or ""
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0]
    elif "```" in text:
        text = text.split("```")[1].split("```")[0]
    try:
        return json.loads(text.strip())
    except json.JSONDecodeError as e:
        raise GenerationError(f"Model returned invalid JSON: {e}") from e


class BaseLLMProvider(ABC):
    """Plugin interface for chat-completion services.

    Implement this to add a new model API. The gateway will:
    - Resolve the API key (per-request header override, then configured key)
    - Track remaining quota from response headers
    - Move on to the next provider on failure / 429
    """

    #: Request header that carries a per-request key override
    key_header: str = ""

    def __init__(self, api_key: str = "", model: str = ""):
        self._api_key = api_key or ""
        self._model = model

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique provider identifier (e.g., 'gemini', 'groq')."""
        ...

    @property
    def model(self) -> str:
        return self._model

    def resolve_key(self, overrides: Optional[Mapping[str, str]] = None) -> str:
        """Per-request key if supplied, else the configured one."""
        if overrides:
            key = overrides.get(self.key_header) or overrides.get(self.name)
            if key:
                return key
        return self._api_key

    def is_available(self, overrides: Optional[Mapping[str, str]] = None) -> bool:
        """True if a key is configured or supplied for this request."""
        return bool(self.resolve_key(overrides))

    @abstractmethod
    def complete(self, messages: List[Dict[str, str]],
                 temperature: float = 0.9,
                 max_tokens: int = 500,
                 api_key: Optional[str] = None,
                 json_mode: bool = False) -> LLMResponse:
        """Chat completion.

        Messages are OpenAI-style dicts: {"role": system|user|assistant,
        "content": str}. Raises ProviderException / RateLimitException on
        failure; never returns None.
        """
        ...


class BaseVisionProvider(ABC):
    """Plugin interface for image understanding."""

    @abstractmethod
    def analyze_image(self, prompt: str, image: str,
                      temperature: float = 0.3,
                      max_tokens: int = 100,
                      api_key: Optional[str] = None) -> LLMResponse:
        """Answer `prompt` about `image` (http URL or base64 data URL)."""
        ...


class BaseEmbeddingProvider(ABC):
    """Plugin interface for text embeddings."""

    @abstractmethod
    def embed(self, texts: List[str], api_key: Optional[str] = None) -> List[List[float]]:
        """One vector per input text, same order."""
        ...
