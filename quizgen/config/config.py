"""Configuration management for the question generation service."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    env: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    service_name: str = "quizgen"

    # Provider API Keys
    together_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    # Provider Models
    together_base_url: str = "https://api.together.xyz/v1"
    deepseek_model: str = "deepseek-ai/DeepSeek-R1-Distill-Llama-70B"
    llama_vision_model: str = "meta-llama/Llama-Vision-Free"
    gemini_model: str = "gemini-1.5-flash"
    anthropic_model: str = "claude-sonnet-4-5-20250929"

    # Tunables (retry, budgets, chains) live in a YAML file; defaults apply when unset
    generation_config_path: Optional[str] = None

    # Observability
    sentry_dsn: Optional[str] = None
    otel_exporter: str = "none"  # "console", "otlp" or "none"
    otel_endpoint: Optional[str] = None

    # HTTP edge
    api_host: str = "0.0.0.0"
    api_port: int = 8001

    @property
    def is_production(self) -> bool:
        return self.env == "production"


# Global settings instance
settings = Settings()
