"""
GitHub Models provider plugin (OpenAI-compatible, authenticated by a GitHub token).
"""
from typing import Optional

from config.settings import Settings, get_settings
from providers.llm.openai_compat import OpenAICompatibleProvider


class GitHubModelsProvider(OpenAICompatibleProvider):
    provider_name = "github"
    key_header = "x-github-token"

    def __init__(self, settings: Optional[Settings] = None, api_key: Optional[str] = None):
        settings = settings or get_settings()
        super().__init__(
            api_key=settings.github_token if api_key is None else api_key,
            model=settings.github_model,
            base_url=settings.github_base_url,
            timeout=settings.request_timeout_seconds,
        )
