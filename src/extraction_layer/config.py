"""
Configuration settings for the LLM Extraction Layer.

All settings are loaded from environment variables with sensible defaults.
A .env file in the working directory is read for local development.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    APP_NAME: str = "LLM Extraction Layer"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # === Run Defaults ===
    DEFAULT_RETRIES: int = 3
    MAX_RETRIES_LIMIT: int = 10  # Hard ceiling on caller-supplied retries
    DEFAULT_MODEL: str = "qwen2.5:7b"
    DEFAULT_TEMPERATURE: float = 0.4
    DEFAULT_MAX_TOKENS: int = 4096

    # === Retry Engine ===
    PERSISTENT_FAILURE_THRESHOLD: int = 3  # Attempt at which schema failures escalate

    # === Ollama Configuration ===
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_TIMEOUT: int = 120  # seconds

    # === Sessions ===
    SESSION_BACKEND: str = "memory"  # memory | file | redis
    SESSION_STORAGE_DIR: str = "~/.extraction_layer/sessions"
    SESSION_MAX_AGE_SECONDS: int = 30 * 24 * 3600  # 30 days
    SESSION_TTL_SECONDS: int = 30 * 24 * 3600  # Redis key expiry

    # === Redis ===
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50


# Global settings instance
settings = Settings()
