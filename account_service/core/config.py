from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, ValidationError, field_validator
from typing import Optional
import sys
from functools import lru_cache
import structlog

logger = structlog.get_logger()

_BASE_URLS = {
    "development": "http://localhost:3000",
    "staging": "http://localhost:3000",
}


class Settings(BaseSettings):
    """
    Account Service Configuration

    Sensitive values MUST be provided via environment variables.
    The service will fail fast if required security configurations are missing.
    """

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "Account Service"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    API_PREFIX: str = "/api"

    # Security settings - SECRET_KEY is REQUIRED, NO DEFAULT
    SECRET_KEY: str = Field(..., min_length=32)
    ALGORITHM: str = "HS256"
    SESSION_TOKEN_EXPIRE_MINUTES: int = Field(default=120, ge=1, le=24 * 60)
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=16)
    VERIFY_TOKEN_BYTES: int = Field(default=32, ge=16, le=64)

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./accounts.db"
    DATABASE_ECHO: bool = False
    DATABASE_POOL_SIZE: int = Field(default=10, ge=1, le=100)
    # How long a SQLite writer waits for the file lock
    DATABASE_BUSY_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    # Links inside outbound emails; derived from ENVIRONMENT when unset
    APP_BASE_URL: Optional[str] = None
    PRODUCT_NAME: str = "account-service"

    # Email settings - SMTP_HOST unset means "log instead of send"
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_TLS: bool = True
    SMTP_TIMEOUT_SECONDS: int = Field(default=10, ge=1, le=120)
    EMAILS_FROM_EMAIL: str = "no-reply@example.com"
    EMAILS_FROM_NAME: str = "Account Service"

    # Avatars
    AVATAR_DIR: str = "public/avatars"
    AVATAR_URL_PREFIX: str = "/avatars"
    AVATAR_MAX_BYTES: int = Field(default=2 * 1024 * 1024, ge=1024)

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Reject obviously weak or placeholder keys"""
        bad_values = ["your-secret-key", "change-me", "changeme", "supersecretkey", "12345"]
        if any(bad in v.lower() for bad in bad_values):
            raise ValueError("SECRET_KEY contains weak or default values")
        return v

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = ["development", "staging", "production", "test"]
        if v not in valid_envs:
            raise ValueError(f"ENVIRONMENT must be one of: {valid_envs}")
        return v

    @property
    def base_url(self) -> str:
        if self.APP_BASE_URL:
            return self.APP_BASE_URL.rstrip("/")
        return _BASE_URLS.get(self.ENVIRONMENT, "http://localhost:3000")

    @property
    def verification_link_base(self) -> str:
        return f"{self.base_url}{self.API_PREFIX}/users/verify"


def validate_required_settings(settings: Settings) -> None:
    """
    Validate environment-specific requirements.
    Fail fast if critical settings are missing or invalid.
    """
    errors = []

    if settings.ENVIRONMENT == "production":
        if settings.DEBUG:
            errors.append("DEBUG must be False in production")
        if settings.DATABASE_URL.startswith("sqlite"):
            errors.append("DATABASE_URL cannot use SQLite in production")
        if not settings.SMTP_HOST:
            errors.append("SMTP_HOST is required in production")
        if not settings.APP_BASE_URL:
            errors.append("APP_BASE_URL is required in production")

    if settings.SMTP_USER and not settings.SMTP_PASSWORD:
        errors.append("SMTP_PASSWORD required when SMTP_USER is set")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        logger.error(error_msg)
        raise ValueError(error_msg)

    logger.info(
        "Configuration validated successfully",
        environment=settings.ENVIRONMENT,
        debug=settings.DEBUG,
        smtp_configured=bool(settings.SMTP_HOST),
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Exits if required environment variables are missing.
    """
    try:
        settings = Settings()
        validate_required_settings(settings)
        return settings
    except ValidationError as e:
        for error in e.errors():
            logger.error(
                "Invalid configuration value",
                field=".".join(str(part) for part in error.get("loc", ["unknown"])),
                message=error.get("msg", "Invalid value"),
            )
        sys.exit(1)
    except ValueError:
        sys.exit(1)
