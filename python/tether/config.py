"""Application settings loaded from environment variables.

Environment Configuration:
    TETHER_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: Database connection string (required)
    LOG_JSON: Emit JSON logs (default true); false renders console-friendly lines

Auth Configuration:
    TETHER_TOKEN_SECRET: Shared HS256 secret for runtime tokens (required in staging/prod)
    TETHER_TOKEN_ISSUER: Expected `iss` claim (optional)
    TETHER_TOKEN_AUDIENCE: Expected `aud` claim (optional)

Local and test environments fall back to a fixed development secret so the
service can boot without extra setup.
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

DEV_TOKEN_SECRET = "tether-dev-secret-not-for-production"


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - DATABASE_URL is always required
    - TETHER_TOKEN_SECRET is required in staging and prod only
    """

    tether_env: Environment = Field(default=Environment.LOCAL, alias="TETHER_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    log_json: bool = Field(default=True, alias="LOG_JSON")

    token_secret: str | None = Field(default=None, alias="TETHER_TOKEN_SECRET")
    token_issuer: str | None = Field(default=None, alias="TETHER_TOKEN_ISSUER")
    token_audience: str | None = Field(default=None, alias="TETHER_TOKEN_AUDIENCE")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure deployed environments carry a real token secret."""
        if self.tether_env in (Environment.STAGING, Environment.PROD):
            if not self.token_secret:
                raise ValueError(
                    f"TETHER_TOKEN_SECRET is required for TETHER_ENV={self.tether_env.value}"
                )
        return self

    @property
    def is_deployed(self) -> bool:
        """Whether this is a staging or production deployment."""
        return self.tether_env in (Environment.STAGING, Environment.PROD)

    @property
    def effective_token_secret(self) -> str:
        """Return the configured secret, or the development secret outside deployments."""
        return self.token_secret or DEV_TOKEN_SECRET


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
