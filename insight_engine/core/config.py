"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the engine and its store adapters.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Engine settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Observation Store
    STORE_BACKEND: str = Field(default="memory")  # memory, sql or redis
    STORE_KEY_PREFIX: str = Field(default="insight_engine")

    # SQL store (any SQLAlchemy URL; sqlite for single-device installs)
    DATABASE_URL: str = Field(default="sqlite:///./insight_engine.db")
    DB_POOL_SIZE: int = Field(default=5)
    DB_MAX_OVERFLOW: int = Field(default=5)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # Redis store
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    REDIS_SOCKET_TIMEOUT: int = Field(default=2)

    # Behavior Ledger
    LEDGER_RETENTION_DAYS: int = Field(default=90, ge=1)

    # Pattern Detector
    MIN_OBSERVATIONS_FOR_PATTERNS: int = Field(default=10, ge=1)

    # Recommendation Synthesizer
    MAX_PATTERN_RECOMMENDATIONS: int = Field(default=5, ge=1)
    MAX_DEFAULT_RECOMMENDATIONS: int = Field(default=5, ge=1)
    # Seed for the per-pillar default pass. Unset = fresh entropy per engine.
    RECOMMENDATION_SEED: Optional[int] = Field(default=None)

    # Health assessment history kept in the store (entries, oldest dropped first)
    HEALTH_HISTORY_LIMIT: int = Field(default=365, ge=1)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="text")  # json or text

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)


# Global settings instance
settings = Settings()
