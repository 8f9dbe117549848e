from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "microSaaS Template"
    VERSION: str = "0.1.0"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # MongoDB Configuration
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "microsaas"

    # Supabase Auth Configuration
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    AUTH_TIMEOUT_SECONDS: float = 10.0

    # Stripe Configuration
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    # auto | stripe | mock
    PAYMENT_PROVIDER: str = "auto"

    # Frontend Configuration (OAuth redirects, checkout return URLs)
    APP_URL: str = "http://localhost:3000"

    LOG_LEVEL: str = "INFO"

    # Testing Configuration
    TEST_MODE: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra env variables


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
