"""
Configuration management for aigis-bot

Uses pydantic-settings for environment variable parsing and validation.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

AKASH_BASE_URL = "https://chatapi.akash.network/api/v1/"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# Model ids served by the Akash chat API rather than their nominal provider
AKASH_MODELS = ("Qwen3-235B-A22B-FP8", "DeepSeek-R1-0528")

Provider = Literal["openai", "anthropic", "openrouter", "akash"]


class LLMConfig(BaseSettings):
    """Configuration for a single LLM provider."""

    model_config = SettingsConfigDict(extra="ignore")

    provider: Provider = "akash"
    model: str = "DeepSeek-R1-0528"
    api_key: str = ""
    base_url: str | None = None
    max_tokens: int = 4096
    temperature: float = 0.7


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Application
    app_name: str = "aigis"
    debug: bool = False
    log_level: str = "INFO"

    # Health / metrics server
    host: str = "0.0.0.0"
    port: int = 9000

    # Bluesky
    atp_user: str = Field(default="", description="Bluesky handle or DID to log in as")
    atp_password: str = Field(default="", description="Bluesky app password")
    atp_service: str = Field(default="https://bsky.social", description="PDS base URL")
    reply_language: str = Field(default="en", description="Language tag set on replies")

    # Jetstream
    jetstream_url: str = Field(
        default="wss://jetstream2.us-east.bsky.network/subscribe",
        description="Jetstream subscribe endpoint",
    )
    cursor_file: str = Field(default="./data/cursor", description="Where the last-seen cursor is kept")
    cursor_flush_seconds: int = Field(default=60, description="Cursor flush interval")

    # Workers
    worker_count: int = Field(default=3, ge=1, description="Concurrent event workers")

    # Security
    allowed_users: str = Field(default="", description="Comma-separated DIDs allowed to trigger replies")

    # LLM
    llm_provider: Provider = "akash"
    llm_model: str = "DeepSeek-R1-0528"
    openai_api_key: str = Field(default="", description="OpenAI API key")
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")
    akash_api_key: str = Field(default="", description="Akash chat API key")
    max_tokens: int = 4096
    temperature: float = 0.7

    # Prompt
    prompt_file: str = Field(default="./prompt.txt", description="Persona prompt file")

    # Embeddings
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = 1536
    embedding_api_key: str = Field(default="", description="Falls back to OPENAI_API_KEY")
    embedding_base_url: str | None = None

    # Vector store
    qdrant_url: str = Field(default="http://localhost:6333", description="Qdrant REST URL")
    qdrant_collection: str = Field(default="aigis-db", description="Qdrant collection name")
    qdrant_api_key: str = ""

    # Conversation behaviour
    retrieval_top_k: int = Field(default=2, ge=1, description="Similar memories pulled per turn")
    tool_repeat_limit: int = Field(default=3, ge=1, description="Identical tool calls before aborting")
    archive_posts: bool = Field(default=False, description="Also store every thread post as memory")

    # Tools
    enable_calculator: bool = True
    enable_web_search: bool = True
    enable_website: bool = True

    @field_validator("allowed_users", mode="before")
    @classmethod
    def parse_allowed_users(cls, v: str) -> str:
        return v.strip() if v else ""

    @property
    def allowed_users_list(self) -> list[str]:
        """Get list of allowed DIDs."""
        if not self.allowed_users:
            return []
        return [u.strip() for u in self.allowed_users.split(",") if u.strip()]

    def get_llm_config(self, provider: str | None = None, model: str | None = None) -> LLMConfig:
        """Get LLM configuration for a provider.

        Akash-hosted model ids are always routed to the Akash endpoint,
        whatever provider was asked for.
        """
        provider = provider or self.llm_provider
        model = model or self.llm_model

        if model in AKASH_MODELS:
            provider = "akash"

        api_key_map = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "openrouter": self.openrouter_api_key,
            "akash": self.akash_api_key,
        }

        base_url_map = {
            "openai": None,
            "anthropic": None,
            "openrouter": OPENROUTER_BASE_URL,
            "akash": AKASH_BASE_URL,
        }

        return LLMConfig(
            provider=provider,  # type: ignore
            model=model,
            api_key=api_key_map.get(provider, ""),
            base_url=base_url_map.get(provider),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
