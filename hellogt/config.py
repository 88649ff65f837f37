from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "HelloGT Match API"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    API_V1_PREFIX: str = "/api/v1"

    # CORS - Allowed origins (comma-separated in env)
    CORS_ORIGINS: str = "http://localhost:8081,http://localhost:19006,http://localhost:3000"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Firebase (optional - falls back to the in-memory document store)
    FIREBASE_PROJECT_ID: str = ""
    FIREBASE_PRIVATE_KEY: str = ""
    FIREBASE_CLIENT_EMAIL: str = ""

    # Upstash Redis (optional - per-device state kept in memory without it)
    UPSTASH_REDIS_URL: str = ""
    UPSTASH_REDIS_TOKEN: str = ""

    # Document store collections
    SWIPE_DECISIONS_COLLECTION: str = "swipeDecisions"
    USER_SWIPE_DATA_COLLECTION: str = "userSwipeData"
    MATCHES_COLLECTION: str = "matches"
    EVENT_ATTENDANCE_COLLECTION: str = "eventAttendance"
    USERS_COLLECTION: str = "users"

    # Firestore caps the number of values in an "in" filter
    FIRESTORE_IN_FILTER_LIMIT: int = 30

    @property
    def firebase_configured(self) -> bool:
        return bool(self.FIREBASE_PROJECT_ID and self.FIREBASE_CLIENT_EMAIL)

    @property
    def redis_configured(self) -> bool:
        return bool(self.UPSTASH_REDIS_URL and self.UPSTASH_REDIS_TOKEN)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
