"""Configuration settings for the storefront interaction service"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Storefront Interactions"
    VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # Database Settings
    POSTGRES_USER: str = "storefront"
    POSTGRES_PASSWORD: str = "storefront_pass"
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "storefront"
    SQLALCHEMY_DATABASE_URI: Optional[str] = None

    @property
    def DATABASE_URL(self) -> str:
        if self.SQLALCHEMY_DATABASE_URI:
            return self.SQLALCHEMY_DATABASE_URI
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Redis Settings
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None

    @property
    def REDIS_URL(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # Interaction ingestion
    UPSERT_MAX_ATTEMPTS: int = 3  # Write attempts before a conflict becomes a server error
    INTERACTIONS_RATE_LIMIT: str = "600/minute"
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # External recommendation scoring service
    RECOMMENDATION_API_URL: str = "http://127.0.0.1:8000"
    RECOMMENDATION_TIMEOUT: float = 10.0
    RECOMMENDATION_CACHE_ENABLED: bool = True
    RECOMMENDATION_CACHE_TTL: int = 300  # 5 minutes

    # Client-side emitter
    EMITTER_BASE_URL: str = "http://127.0.0.1:8080"
    EMITTER_DEBOUNCE_SECONDS: float = 0.3
    EMITTER_SEARCH_WINDOW_SECONDS: float = 2.0
    EMITTER_TIMEOUT: float = 5.0

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
