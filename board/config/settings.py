"""Configuration settings for the board backend."""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Firebase
    firebase_project_id: str = ""
    firebase_credentials: str = ""

    # Admin console (out-of-band secrets)
    admin_id: str = ""
    admin_password: str = ""
    admin_session_secret: str = ""
    admin_session_hours: int = 2

    # Retry policies
    read_retry_attempts: int = 3
    read_retry_base_delay: float = 1.0
    admin_retry_attempts: int = 5
    admin_retry_base_delay: float = 2.0
    admin_retry_jitter: float = 0.25

    # HTTP API
    cors_origins: List[str] = ["*"]
    rate_limit: str = "60/minute"

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
