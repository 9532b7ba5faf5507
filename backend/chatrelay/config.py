"""Application configuration."""
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "ChatRelay"
    version: str = "1.0.0"
    debug: bool = False
    environment: Literal["development", "test", "production"] = "development"

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True

    # Database - resolved from environment when not set explicitly
    database_path: Optional[str] = None
    chat_retention_days: int = 90

    # Provider API keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    google_generative_ai_api_key: str = ""
    deepseek_api_key: str = ""
    openrouter_api_key: str = ""

    # LLM calls
    default_provider: str = "openai"
    llm_timeout_seconds: float = 60.0
    llm_max_tokens: int = 1000
    llm_temperature: float = 0.7
    # Make a test completion when an API key is stored at runtime
    verify_api_keys: bool = True

    # Rate Limiting
    redis_url: str = "redis://localhost:6379/0"
    rate_limit_enabled: bool = True
    rate_limit_chat_per_minute: int = 30
    rate_limit_window: int = 60  # seconds

    # CORS
    frontend_url: str = "http://localhost:5173"

    def resolve_database_path(self) -> Path:
        """Location of the SQLite file; test runs get their own file."""
        if self.database_path:
            return Path(self.database_path)
        filename = "test-chat.db" if self.environment == "test" else "chat.db"
        return Path.cwd() / "data" / "db" / filename


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
