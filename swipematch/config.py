from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "Swipematch API"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    API_V1_PREFIX: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # CORS - Allowed origins (comma-separated in env)
    CORS_ORIGINS: str = "http://localhost:8081,http://localhost:19006,http://localhost:3000"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        if self.ENVIRONMENT == "development" and self.DEBUG:
            # In development, allow common dev origins
            return [
                "http://localhost:8081",
                "http://localhost:19006",
                "http://localhost:3000",
                "http://127.0.0.1:8081",
                "http://127.0.0.1:19006",
                "http://127.0.0.1:3000",
            ]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # PostgreSQL (sqlite+aiosqlite accepted for local runs)
    DATABASE_URL: str

    # Upstash Redis
    UPSTASH_REDIS_URL: str
    UPSTASH_REDIS_TOKEN: str

    # Operator access to /admin (admin routes are refused while unset)
    ADMIN_API_KEY: Optional[str] = None

    # Rate Limiting
    SWIPE_LIMIT_PER_DAY: int = 100
    API_RATE_LIMIT_PER_MINUTE: int = 100

    # Compatibility scoring weights (normalized at use, need not sum to 1)
    SCORE_WEIGHT_INTEREST: float = 0.4
    SCORE_WEIGHT_PROXIMITY: float = 0.4
    SCORE_WEIGHT_AGE: float = 0.2
    INTEREST_SATURATION: int = 5  # shared interests needed for a full interest sub-score

    # Feed paging
    FEED_DEFAULT_PAGE_SIZE: int = 20
    FEED_MAX_PAGE_SIZE: int = 50

    # Messaging
    MESSAGE_MAX_LENGTH: int = 2000
    TOP_SENDERS_DEFAULT_LIMIT: int = 10

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
