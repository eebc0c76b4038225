"""
Academy Admin - Configuration Management

Centralized configuration using Pydantic Settings.
All secrets and connection strings are loaded from environment variables.

Security: No secrets are hardcoded. Use .env for local development.
"""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        SECRET_KEY: JWT signing key for authentication
        DATABASE_URL: SQLModel database URL
        FRONTEND_URL: Base URL used to build invitation and reset links
        INVITATION_EXPIRE_DAYS: Lifetime of an invitation
        PASSWORD_RESET_EXPIRE_MINUTES: Lifetime of a password reset token
        PASSWORD_RESET_RESEND_SECONDS: Minimum interval between reset requests
        RESET_RATE_LIMIT_SURFACED: Return 429 to the caller when a reset is
            requested too soon (False answers with the generic body instead)
        SMTP_*: Outbound mail transport
        RECLAIM_INTERVAL_MINUTES: Period of the expired-record cleanup job (0 disables)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Security
    SECRET_KEY: str = ""  # Must be set via environment
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    SESSION_EXPIRE_HOURS: int = 24
    BCRYPT_WORK_FACTOR: int = 12

    # Database (PostgreSQL for production, SQLite for development)
    DATABASE_URL: str = "sqlite:///./academy.db"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173"]

    # Links and branding
    FRONTEND_URL: str = "http://localhost:5173"
    ORGANIZATION_NAME: str = "ElBethel Academy"

    # Invitations
    INVITATION_EXPIRE_DAYS: int = 7
    INVITE_PASSWORD_MIN_LENGTH: int = 6

    # Password reset
    RESET_PASSWORD_MIN_LENGTH: int = 8
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    PASSWORD_RESET_RESEND_SECONDS: int = 120
    RESET_RATE_LIMIT_SURFACED: bool = True

    # Email (SMTP)
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_SSL: bool = False
    SMTP_USE_TLS: bool = True
    SMTP_FROM_EMAIL: str = ""
    SMTP_FROM_NAME: str = "ElBethel Academy"
    SMTP_TIMEOUT_SECONDS: float = 10.0

    # Maintenance
    RECLAIM_INTERVAL_MINUTES: int = 60

    LOG_LEVEL: str = "INFO"


settings = Settings()
