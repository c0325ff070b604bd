"""
LLM provider plugins.
"""
from typing import List, Optional

from loguru import logger

from config.settings import Settings, get_settings
from providers.base import BaseLLMProvider


def _registry():
    from providers.llm.gemini_provider import GeminiProvider
    from providers.llm.groq_provider import GroqProvider
    from providers.llm.github_provider import GitHubModelsProvider

    return {
        "gemini": GeminiProvider,
        "groq": GroqProvider,
        "github": GitHubModelsProvider,
    }


def get_llm_providers(settings: Optional[Settings] = None) -> List[BaseLLMProvider]:
    """Return LLM providers in AI_PROVIDERS order.

    Providers without a configured key are still returned: a request may
    bring its own key in a header. The gateway skips them when it has none.
    """
    settings = settings or get_settings()
    registry = _registry()
    ordered_names = [s.strip().lower() for s in settings.ai_providers.split(",") if s.strip()]

    providers = []
    for name in ordered_names:
        cls = registry.get(name)
        if cls is None:
            logger.warning(f"Unknown LLM provider '{name}', skipping")
            continue
        if any(p.name == name for p in providers):
            continue
        provider = cls(settings=settings)
        providers.append(provider)
        logger.info(
            f"LLM provider '{name}' registered "
            f"({'key configured' if provider.is_available() else 'no key, header override only'})"
        )

    return providers
