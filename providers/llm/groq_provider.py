"""
Groq LLM provider plugin.

Served through Groq's OpenAI-compatible endpoint. Groq reports
x-ratelimit-remaining-requests / -tokens on every response, which the
gateway uses to track quota and AI Scribble uses for its shield.
"""
from typing import Optional

from config.settings import Settings, get_settings
from providers.llm.openai_compat import OpenAICompatibleProvider


class GroqProvider(OpenAICompatibleProvider):
    """Groq - Llama chat + vision."""

    provider_name = "groq"
    key_header = "x-groq-api-key"

    def __init__(self, settings: Optional[Settings] = None, api_key: Optional[str] = None):
        settings = settings or get_settings()
        super().__init__(
            api_key=settings.groq_api_key if api_key is None else api_key,
            model=settings.groq_model,
            base_url=settings.groq_base_url,
            vision_model=settings.groq_vision_model,
            timeout=settings.request_timeout_seconds,
        )
