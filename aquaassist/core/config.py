"""
Aqua Assist - Configuration Management
Centralized configuration using pydantic-settings.
"""

from functools import lru_cache
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

    # Application
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./aquaassist.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30

    # Open-Meteo (weather history, no key required)
    weather_api_url: str = "https://api.open-meteo.com/v1/forecast"

    # NewsAPI
    news_api_key: Optional[str] = None
    news_api_url: str = "https://newsapi.org/v2/everything"

    # Social media search
    social_api_url: Optional[str] = None
    social_access_token: Optional[str] = None

    # Signal adapters
    signal_timeout_seconds: float = 5.0
    signal_lookback_hours: int = 72
    signal_lookahead_hours: int = 24

    # Bulk verification
    bulk_max_limit: int = 50
    bulk_default_limit: int = 20
    bulk_concurrency: int = 4
    claim_ttl_seconds: int = 300

    # Votes
    vote_max_retries: int = 5

    # Trust score
    trust_score_min: int = 0
    trust_score_max: int = 1000
    trust_score_default: int = 100
    trust_vote_threshold: int = 5
    trust_delta_votes_confirmed: int = 5
    trust_delta_votes_refuted: int = -10
    trust_delta_auto_verified: int = 10
    trust_delta_moderator_verified: int = 15
    trust_delta_moderator_rejected: int = -25

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
