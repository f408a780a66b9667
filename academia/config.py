"""Application configuration."""

import os
from functools import lru_cache

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        """Initialize settings from environment variables."""
        # API Settings
        self.API_TITLE: str = os.getenv("API_TITLE", "Academia")
        self.API_VERSION: str = os.getenv("API_VERSION", "0.1.0")
        self.DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

        # Server Settings
        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = int(os.getenv("PORT", "8000"))

        # Database Settings
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "")
        self.DB_HOST: str = os.getenv("DB_HOST", "localhost")
        self.DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
        self.DB_USER: str = os.getenv("DB_USER", "postgres")
        self.DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
        self.DB_NAME: str = os.getenv("DB_NAME", "academia")

        # Redis Settings (empty URL keeps the change feed in-process)
        self.REDIS_URL: str = os.getenv("REDIS_URL", "")

        # Auth Settings
        self.API_KEY: str = os.getenv("API_KEY", "dev-api-key")
        self.SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-key")

        # Enrollment rules
        self.MAX_SUBJECTS_PER_SEMESTER: int = int(
            os.getenv("MAX_SUBJECTS_PER_SEMESTER", "3")
        )
        self.MAX_CREDITS_PER_SEMESTER: int = int(
            os.getenv("MAX_CREDITS_PER_SEMESTER", "9")
        )
        self.CREDITS_PER_SUBJECT: int = int(os.getenv("CREDITS_PER_SUBJECT", "3"))
        self.DEFAULT_SUBJECT_CAPACITY: int = int(
            os.getenv("DEFAULT_SUBJECT_CAPACITY", "30")
        )

    @property
    def database_url(self) -> str:
        """Database URL, preferring an explicit DATABASE_URL."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
