"""Application configuration using Pydantic settings."""

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import dotenv_values
from pydantic_settings import BaseSettings, SettingsConfigDict

LLMProvider = Literal["openai", "groq", "together", "ollama"]

# OpenAI-compatible endpoints for the non-OpenAI providers
PROVIDER_BASE_URLS = {
    "openai": None,
    "groq": "https://api.groq.com/openai/v1",
    "together": "https://api.together.xyz/v1",
}
DEFAULT_OLLAMA_URL = "http://localhost:11434/v1"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TOTOAI_",
        extra="ignore",
    )

    # App
    debug: bool = False
    log_level: str = "INFO"

    # LLM provider
    llm_provider: LLMProvider = "openai"
    chat_model: str = "gpt-4o-mini"
    openai_api_key: str = ""
    groq_api_key: str = ""
    together_api_key: str = ""
    ollama_url: str = DEFAULT_OLLAMA_URL
    llm_timeout: float = 30.0
    llm_max_retries: int = 3

    # Staging: canned model responses, no external calls
    mock_external: bool = False

    # Match snapshot seed (JSON list of matches)
    matches_path: Optional[Path] = None

    default_max_variants: int = 10

    def model_post_init(self, __context) -> None:
        """Load OpenAI key from the standard env var or .env file if not set."""
        if not self.openai_api_key:
            self.openai_api_key = os.getenv("OPENAI_API_KEY", "")
        if not self.openai_api_key:
            env_vals = dotenv_values(".env")
            self.openai_api_key = env_vals.get("OPENAI_API_KEY", "") or ""

    @property
    def llm_api_key(self) -> str:
        """API key for the configured provider (ollama needs none)."""
        if self.llm_provider == "groq":
            return self.groq_api_key
        if self.llm_provider == "together":
            return self.together_api_key
        if self.llm_provider == "ollama":
            return "ollama"
        return self.openai_api_key

    @property
    def llm_base_url(self) -> Optional[str]:
        """Base URL for the configured provider (None = OpenAI default)."""
        if self.llm_provider == "ollama":
            return self.ollama_url or DEFAULT_OLLAMA_URL
        return PROVIDER_BASE_URLS.get(self.llm_provider)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Export for convenience
settings = get_settings()
