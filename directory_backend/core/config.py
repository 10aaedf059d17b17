"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "Startup Directory Admin"
    DEBUG: bool = False
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Database
    DATABASE_URL: str = "sqlite:///./directory.db"

    # Redis (shared rate-limit store when RATE_LIMIT_BACKEND=redis)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Auth (session tokens are minted by the external auth provider)
    JWT_SECRET: str = "super-secret-jwt-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"

    # Admin back-office
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_AUDIT_TOKEN: Optional[str] = None
    ADMIN_RATE_LIMIT_MAX_REQUESTS: int = 120
    ADMIN_RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_BACKEND: str = "memory"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


settings = Settings()
