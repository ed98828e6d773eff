from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    # Environment mode: dev or prod
    ENV: Literal["dev", "prod"] = "dev"

    # Database
    DATABASE_URL: str

    # YouTube Data API v3
    YOUTUBE_API_KEY: str | None = None
    YOUTUBE_API_BASE_URL: str = "https://youtube.googleapis.com/youtube/v3"
    YOUTUBE_DAILY_QUOTA: int = 10_000  # soft ceiling, only warned about
    HTTP_TIMEOUT_SECONDS: float = 15.0

    # Ingestion
    REFRESH_CONCURRENCY: int = 5
    STATISTICS_BATCH_SIZE: int = 50  # provider maximum for videos.list
    STATISTICS_BATCH_CONCURRENCY: int = 10

    # Background refresh of every tracked channel
    REFRESH_ENABLED: bool = False
    REFRESH_INTERVAL_SECONDS: int = 6 * 60 * 60

    # Rollup cache
    REDIS_URL: str | None = None  # None = in-process cache
    ROLLUP_CACHE_TTL_SECONDS: int = 60 * 60

    # Logging
    LOG_LEVEL: LogLevel = "INFO"
    LOG_DIR: str = "logs"
    SLACK_WEBHOOK_URL: str | None = None

    # Docs Configuration
    DOCS_ENABLED: bool | None = None  # Override docs setting (None = auto based on ENV)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # ignore unrelated keys in local .env
    )

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalize_log_level(cls, value):
        return str(value or "INFO").strip().upper()

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENV == "prod"

    @property
    def is_development(self) -> bool:
        return self.ENV == "dev"

    @property
    def debug_enabled(self) -> bool:
        """Debug mode is only enabled in development."""
        return self.is_development

    @property
    def effective_log_level(self) -> str:
        """Return appropriate log level based on environment."""
        if self.is_production:
            # In production, minimum INFO level
            return "INFO" if self.LOG_LEVEL in ("TRACE", "DEBUG") else self.LOG_LEVEL
        return self.LOG_LEVEL

    @property
    def docs_enabled(self) -> bool:
        """Swagger/ReDoc docs enabled based on environment or override."""
        if self.DOCS_ENABLED is not None:
            return self.DOCS_ENABLED
        return self.is_development


settings = Settings()
