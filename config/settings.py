"""
Configuration management for AI Mela.
"""
from pathlib import Path
from functools import lru_cache
from typing import Optional
from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings

# Get base directory at module level
_BASE_DIR = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_API_KEY", "GEMINI_KEY"),
    )
    groq_api_key: str = Field(default="", alias="GROQ_API_KEY")
    github_token: str = Field(default="", alias="GITHUB_TOKEN")

    # Models
    gemini_model: str = Field(default="gemini-2.0-flash", alias="GEMINI_MODEL")
    gemini_embedding_model: str = Field(default="text-embedding-004", alias="GEMINI_EMBEDDING_MODEL")
    groq_model: str = Field(default="llama-3.3-70b-versatile", alias="GROQ_MODEL")
    groq_vision_model: str = Field(
        default="meta-llama/llama-4-scout-17b-16e-instruct", alias="GROQ_VISION_MODEL"
    )
    github_model: str = Field(default="gpt-4o", alias="GITHUB_MODEL")

    # Endpoints (OpenAI-compatible)
    groq_base_url: str = "https://api.groq.com/openai/v1"
    github_base_url: str = "https://models.inference.ai.azure.com"

    # Gateway
    ai_providers: str = Field(default="gemini,groq,github", alias="AI_PROVIDERS")
    provider_initial_quota: int = Field(default=100, alias="PROVIDER_INITIAL_QUOTA")
    provider_quota_threshold: int = Field(default=5, alias="PROVIDER_QUOTA_THRESHOLD")
    request_timeout_seconds: float = Field(default=30.0, alias="AI_REQUEST_TIMEOUT")

    # Paths - use defaults directly
    base_dir: Path = _BASE_DIR
    data_dir: Path = _BASE_DIR / "data"
    db_path: Path = Field(default=_BASE_DIR / "data" / "stonks.db", alias="DB_PATH")
    log_dir: Optional[Path] = Field(default=None, alias="LOG_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    # Headline cache TTL (seconds)
    headline_cache_ttl: int = Field(default=1800, alias="HEADLINE_CACHE_TTL")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
