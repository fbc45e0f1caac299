"""Application settings loaded from environment variables."""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Project Info
    PROJECT_NAME: str = "WP Plugin Builder"
    VERSION: str = "0.1.0"

    # Database (Postgres)
    DATABASE_URL: Optional[str] = None

    # Auth (Supabase-issued JWTs)
    JWT_SECRET: str = "development_secret_key_change_me"
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    # New profiles start on a trial of this many days
    TRIAL_DAYS: int = 14

    DEBUG: bool = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
