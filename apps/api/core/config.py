"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the application.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration
    # DATABASE_URL wins over the POSTGRES_* parts when set (tests use sqlite://).
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="command_center")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=10)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # Redis Configuration
    REDIS_URL: str = Field(default="redis://redis:6379/0")

    # Sessions
    # "redis" in deployed environments, "memory" for a single local process.
    SESSION_BACKEND: str = Field(default="redis")
    SESSION_TTL_S: int = Field(default=14 * 24 * 3600, ge=60)  # 14 days
    SESSION_COOKIE_NAME: str = Field(default="session_id")

    # Secret used to sign OAuth state. Must be set via environment variable.
    SECRET_KEY: str = Field(
        default=...,  # Required - no default
        description="Signing key. Must be cryptographically secure (32+ chars). "
                    "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )

    # Token Encryption (Google OAuth tokens at rest)
    TOKEN_ENCRYPTION_KEY: Optional[str] = Field(default=None)

    # Google Calendar API Configuration
    GOOGLE_CLIENT_ID: Optional[str] = Field(default=None)
    GOOGLE_CLIENT_SECRET: Optional[str] = Field(default=None)
    GOOGLE_REDIRECT_URI: str = Field(default="http://localhost:8000/api/auth/google/callback")

    # Calendar sync
    CALENDAR_SYNC_ENABLED: bool = Field(default=True)
    CALENDAR_SYNC_INTERVAL_MINUTES: int = Field(default=30, ge=5)
    CALENDAR_SYNC_PAST_DAYS: int = Field(default=7, ge=0)
    CALENDAR_SYNC_FUTURE_DAYS: int = Field(default=30, ge=1)

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    API_RELOAD: bool = Field(default=False)
    EXPOSE_API_DOCS: bool = Field(default=False)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # External API Configuration
    EXTERNAL_API_TIMEOUT: int = Field(default=30)

    # Celery Configuration
    CELERY_BROKER_URL: str = Field(default="redis://redis:6379/0")
    CELERY_RESULT_BACKEND: str = Field(default="redis://redis:6379/0")

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    # e.g., "https://app.example.com,https://www.example.com"
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # Web app base URL (for OAuth redirects back to the UI).
    WEB_APP_BASE_URL: str = Field(default="http://localhost:3000")

    # OAuth state TTL for provider callbacks (seconds).
    OAUTH_STATE_TTL_S: int = Field(default=600)

    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.1)  # 10% of transactions

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            url = self.DATABASE_URL
            # Heroku/Render style URLs
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql://", 1)
            return url
        return (
            f"postgresql://{self.POSTGRES_USER}:"
            f"{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:"
            f"{self.POSTGRES_PORT}/"
            f"{self.POSTGRES_DB}"
        )


WEAK_POSTGRES_PASSWORDS = {"postgres", "password", "changeme", "admin"}
MIN_SECRET_KEY_LENGTH = 32


def validate_production_config(
    environment: str,
    debug: bool,
    cors_origins: Optional[str],
    postgres_password: Optional[str],
    secret_key: Optional[str] = None,
    session_backend: str = "redis",
    token_encryption_key: Optional[str] = None,
    database_url: Optional[str] = None,
) -> None:
    """
    Refuse to start a production process with unsafe settings.

    No-op outside production. Raises ValueError naming the first bad setting.
    """
    if environment != "production":
        return

    if debug:
        raise ValueError("DEBUG must be False in production")
    if not cors_origins or not cors_origins.strip():
        raise ValueError("CORS_ORIGINS must list the web app origin(s) in production")
    # A full DATABASE_URL carries its own credentials
    if not database_url:
        if not postgres_password or len(postgres_password) < 12 or postgres_password.lower() in WEAK_POSTGRES_PASSWORDS:
            raise ValueError("POSTGRES_PASSWORD is missing or too weak for production")
    if secret_key is not None and len(secret_key) < MIN_SECRET_KEY_LENGTH:
        raise ValueError(f"SECRET_KEY must be at least {MIN_SECRET_KEY_LENGTH} characters in production")
    if session_backend != "redis":
        raise ValueError("SESSION_BACKEND must be 'redis' in production")
    if token_encryption_key is not None and not token_encryption_key.strip():
        raise ValueError("TOKEN_ENCRYPTION_KEY must not be blank in production")


# Global settings instance
settings = Settings()
