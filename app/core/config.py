"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables (.env file).
"""

import datetime

from pydantic_settings import BaseSettings, SettingsConfigDict

from app.fasting.config import FastingConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Project Info
    PROJECT_NAME: str = "Fasting Session Engine"
    VERSION: str = "0.1.0"

    DEBUG: bool = False

    # Database
    DATABASE_USER: str = "postgres"
    DATABASE_PASSWORD: str = ""
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432
    DATABASE_DBNAME: str = "postgres"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # 'json' or 'console'

    # Fasting engine
    STREAK_HISTORY_LIMIT: int = 200
    COMPLETION_TOLERANCE: float = 0.001
    MAX_PLANNED_DURATION_HOURS: float = 168.0

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def DATABASE_URL(self) -> str:
        return (f"postgresql://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}@{self.DATABASE_HOST}"
                f":{self.DATABASE_PORT}/{self.DATABASE_DBNAME}")

    def fasting_config(self) -> FastingConfig:
        """Build the engine configuration from settings."""
        return FastingConfig(completion_tolerance=self.COMPLETION_TOLERANCE,
                             max_planned_duration=datetime.timedelta(hours=self.MAX_PLANNED_DURATION_HOURS), )


# Global settings instance
settings = Settings()
