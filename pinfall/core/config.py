"""
Application Configuration for the Pinfall tournament backend
"""
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

# Get the project root directory (where .env file is located)
PROJECT_ROOT = Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database Configuration
    DATABASE_URL: Optional[str] = None  # Full override, e.g. sqlite:///./pinfall.db
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432
    DATABASE_NAME: str = "pinfall"
    DATABASE_USERNAME: str = "postgres"
    DATABASE_PASSWORD: str = "postgres"  # Default for development

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """Use DATABASE_URL when set, otherwise construct a PostgreSQL URL from components"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.DATABASE_USERNAME}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )

    # JWT Configuration
    JWT_SECRET_KEY: str = "dev-secret-key-change-in-production"  # Default for development
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 720  # 12 hours

    # Admin login
    ADMIN_PASSWORD: str = "change-me"

    # Squad holds
    RESERVATION_TTL_MINUTES: int = 10
    RESERVATION_SWEEP_MINUTES: int = 5

    # Score entry limits
    MAX_BONUS_PINS_PER_GAME: int = 100

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RESERVATION_RATE_LIMIT: str = "10/minute"
    REGISTRATION_RATE_LIMIT: str = "10/5 minutes"
    GENERAL_RATE_LIMIT: str = "30/minute"
    ADMIN_WRITE_RATE_LIMIT: str = "20/minute"

    # Email (SMTP)
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str = "noreply@pinfall.local"

    # API Configuration
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8400
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Pinfall Tournament API"
    DEBUG: bool = True

    # CORS Configuration
    ALLOWED_ORIGINS: str = "*"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from string"""
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Environment
    ENVIRONMENT: str = "development"

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def email_enabled(self) -> bool:
        return bool(self.SMTP_HOST)


# Global settings instance
settings = Settings()
