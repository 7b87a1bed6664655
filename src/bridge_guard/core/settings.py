"""Application settings and configuration.

This module defines all configuration options for the gateway middleware.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Bridge Guard", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration for users, public keys and nonces
    database_url: str = Field(default="sqlite:///./bridge_guard.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis configuration for rate-limit windows and proof-of-work state
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")

    # Default rate limiter window
    rate_limit_total: int = Field(default=100, alias="RATE_LIMIT_TOTAL")
    rate_limit_expire_ms: int = Field(default=60 * 60 * 1000, alias="RATE_LIMIT_EXPIRE_MS")
    rate_limit_ignore_errors: bool = Field(default=False, alias="RATE_LIMIT_IGNORE_ERRORS")

    # Proof-of-work challenges
    pow_key_prefix: str = Field(default="contact-", alias="POW_KEY_PREFIX")
    pow_initial_target: str = Field(
        default="0000" + "f" * 60,
        alias="POW_INITIAL_TARGET",
    )
    pow_challenge_ttl_seconds: int = Field(default=3600, alias="POW_CHALLENGE_TTL_SECONDS")
    pow_retarget_period_seconds: int = Field(
        default=60 * 60,
        alias="POW_RETARGET_PERIOD_SECONDS",
    )
    pow_retarget_count: int = Field(default=1000, alias="POW_RETARGET_COUNT")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def pow_stats_key(self) -> str:
        """Return the Redis hash key holding proof-of-work statistics."""
        return f"{self.pow_key_prefix}stats"


settings = Settings()
