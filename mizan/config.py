"""Application configuration loaded from the environment."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # API
    app_name: str = "Mizan Rules Engine"
    debug: bool = False
    cors_origins: str = "*"

    # Authentication
    api_key: str = "mizan-rules-2026"
    require_api_key: bool = False

    # Optional LLM extraction
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_timeout: float = 30.0

    # Storage
    database_url: str | None = None

    # Logging
    log_level: str = "info"
    log_json: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def cors_origin_list(self) -> list[str]:
        """Split the comma-separated CORS origins setting."""
        if self.cors_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
