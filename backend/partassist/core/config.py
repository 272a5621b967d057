"""
Configuration management for the parts assistant.
"""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Completion providers (deepseek | openai | ollama)
    PRIMARY_PROVIDER: str = "deepseek"
    SECONDARY_PROVIDER: str = "openai"

    DEEPSEEK_API_KEY: str = ""
    DEEPSEEK_API_URL: str = "https://api.deepseek.com/v1/chat/completions"
    DEEPSEEK_MODEL: str = "deepseek-chat"
    DEEPSEEK_TIMEOUT: float = 12.0

    OPENAI_API_KEY: str = ""
    OPENAI_API_URL: str = "https://api.openai.com/v1/chat/completions"
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT: float = 10.0

    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "qwen2.5:0.5b"
    OLLAMA_TIMEOUT: float = 12.0

    # Embeddings (openai | ollama)
    EMBEDDING_BACKEND: str = "openai"
    OPENAI_EMBEDDINGS_URL: str = "https://api.openai.com/v1/embeddings"
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    OLLAMA_EMBEDDING_MODEL: str = "mxbai-embed-large"
    EMBEDDING_TIMEOUT: float = 10.0

    # Circuit breaker
    CIRCUIT_BREAKER_THRESHOLD: int = Field(default=3, ge=1)
    CIRCUIT_BREAKER_RESET_SECONDS: float = Field(default=30.0, gt=0)
    FALLBACK_RESETS_BREAKER: bool = True

    # Generation defaults
    HISTORY_WINDOW: int = 5
    DEFAULT_TEMPERATURE: float = 0.7
    DEFAULT_MAX_TOKENS: int = 1000

    # Retries for idempotent lookups
    RETRY_ATTEMPTS: int = Field(default=3, ge=1)
    RETRY_DELAY_SECONDS: float = 0.5

    # Caching
    REDIS_URL: Optional[str] = None
    SESSION_CONTEXT_TTL_SECONDS: int = 3600
    LOOKUP_CACHE_TTL_SECONDS: int = 86400

    # Conversation lifecycle
    CONVERSATION_IDLE_MINUTES: float = 5.0
    IDLE_SWEEP_INTERVAL_SECONDS: float = 300.0
    SERIALIZE_USER_REQUESTS: bool = True

    # Storage
    DATABASE_URL: str = "sqlite:///./partassist.db"
    DATABASE_ECHO: bool = False
    SIMILARITY_TOP_K: int = 5

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3001
    CORS_ORIGINS: list[str] = ["https://www.partselect.com", "http://localhost:3000"]
    PRODUCT_URL_TEMPLATE: str = "https://www.partselect.com/{part_number}.htm"

    # Per-client request limit, counted in the shared cache
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = Field(default=30, ge=1)
    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=60, ge=1)

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_COLOR: bool = True


# Global settings instance
settings = Settings()
