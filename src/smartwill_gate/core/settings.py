"""Application settings and configuration.

This module defines all configuration options for the SmartWill Gate service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    The validity windows and attempt limits default to the values the
    verification flows were designed around (5 minute challenges, 15 minute
    codes, 3 attempts, 24 hour sessions).
    """

    # Application metadata
    app_name: str = Field(default="SmartWill Gate", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")

    # Session token settings
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    session_token_expire_hours: int = Field(default=24, alias="SESSION_TOKEN_EXPIRE_HOURS")

    # Wallet challenge settings
    challenge_ttl_seconds: int = Field(default=300, alias="CHALLENGE_TTL_SECONDS")
    challenge_app_label: str = Field(
        default="SmartWill Authentication",
        alias="CHALLENGE_APP_LABEL",
    )
    wallet_default_role: str = Field(default="owner", alias="WALLET_DEFAULT_ROLE")

    # Email one-time code settings
    otp_ttl_minutes: int = Field(default=15, alias="OTP_TTL_MINUTES")
    otp_max_attempts: int = Field(default=3, alias="OTP_MAX_ATTEMPTS")
    email_sender: str = Field(default="no-reply@smartwill.app", alias="EMAIL_SENDER")

    # Background sweep of expired challenges and codes
    cleanup_interval_seconds: float = Field(default=1800.0, alias="CLEANUP_INTERVAL_SECONDS")

    # Roles allowed to read challenge statistics
    stats_roles: list[str] = Field(
        default=["owner", "verifier"],
        alias="STATS_ROLES",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
