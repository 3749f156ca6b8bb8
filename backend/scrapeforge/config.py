"""Application configuration via Pydantic Settings."""

from typing import List
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./scrapeforge.db"

    @model_validator(mode="after")
    def fix_database_url(self) -> "Settings":
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://"""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            self.DATABASE_URL = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgres://"):
            self.DATABASE_URL = url.replace("postgres://", "postgresql+asyncpg://", 1)
        return self

    # App
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Browser
    BROWSER_HEADLESS: bool = True

    # Proxy
    PROXY_LIST: str = ""  # Comma-separated list of proxy URLs

    # Job orchestration
    MAX_CONCURRENT_JOBS: int = 4
    PRODUCT_BATCH_SIZE: int = 50

    # Anti-bot handling
    CAPTCHA_PAUSE_SECONDS: float = 60.0

    # robots.txt compliance
    ROBOTS_USER_AGENT: str = "*"
    ROBOTS_TIMEOUT_SECONDS: float = 10.0

    def get_proxy_list(self) -> List[str]:
        """Parse PROXY_LIST into a list of proxy URLs.

        Returns:
            List of proxy URL strings, empty if PROXY_LIST is not set
        """
        if not self.PROXY_LIST:
            return []
        return [p.strip() for p in self.PROXY_LIST.split(",") if p.strip()]


settings = Settings()
