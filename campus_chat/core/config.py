from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Security
    SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # MongoDB
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "campus_chat"
    # Requires a replica set; wraps message insert + summary update in one transaction
    MONGO_TRANSACTIONS: bool = False

    # Redis pub/sub; unset means in-process delivery only
    REDIS_URL: Optional[str] = None
    PRESENCE_TTL_SECONDS: int = 60

    MESSAGE_PREVIEW_LENGTH: int = 200
    NOTIFICATION_LIST_LIMIT: int = 100

    # Firebase Cloud Messaging
    FCM_SERVICE_ACCOUNT_FILE: Optional[str] = None
    FCM_PROJECT_ID: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
